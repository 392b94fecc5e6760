import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from findr.core.config import ResolvePolicy
from findr.errors import CollaboratorError, PermissionDeniedError, ReportNotFoundError
from findr.models.report import Report, ReportKind
from findr.services.collaborators import BlobStore, ReportCollection
from findr.utils.auth_helper import Identity, is_owner
from findr.utils.form_validator import ValidatedReportForm, validate_report_form
from findr.utils.report_filter import SearchFields, SortKey, filter_and_sort

logger = logging.getLogger(__name__)


class ReportService:
    """
    Every report action goes through here.

    Ownership is checked in one place (`_authorize`) before any collaborator
    is called, so callers cannot forget it. Collaborator failures are
    relayed unchanged.
    """

    def __init__(
        self,
        collection: ReportCollection,
        blob_store: Optional[BlobStore] = None,
        resolve_policy: ResolvePolicy = ResolvePolicy.OWNER,
        search_fields: SearchFields = SearchFields.TITLE_ONLY,
    ):
        self.collection = collection
        self.blob_store = blob_store
        self.resolve_policy = resolve_policy
        self.search_fields = search_fields

    # Queries

    def list_reports(
        self,
        kind: ReportKind,
        query: str = "",
        sort_key: SortKey = SortKey.LATEST,
        search_fields: Optional[SearchFields] = None,
    ) -> List[Report]:
        snapshot = self.collection.snapshot(kind)
        return filter_and_sort(snapshot, kind, query, sort_key, search_fields or self.search_fields)

    def get(self, report_id: str) -> Report:
        report = self.collection.get(report_id)

        if report is None:
            raise ReportNotFoundError(report_id)

        return report

    def image_url(self, report: Report) -> Optional[str]:
        if not report.image_ref or self.blob_store is None:
            return None
        return self.blob_store.url_for(report.image_ref)

    # Mutations

    def create(
        self,
        identity: Identity,
        form: Dict[str, Any],
        image: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Report:
        """
        Validate and store a new report. `image` is {"data", "content_type", "filename"}.

        The form is validated before the photo is uploaded, and the photo is
        removed again if storing the report fails.
        """
        validated = validate_report_form(**self._with_reporter(identity, form), now=now)

        image_ref = self._upload(image) if image else None

        report = Report(
            **validated.model_dump(),
            image_ref=image_ref,
            resolved=False,
            created_at=now or datetime.now(timezone.utc),
        )

        try:
            created = self.collection.create(report)
        except CollaboratorError:
            if image_ref:
                self._discard_blob(image_ref)
            raise

        logger.info("Report %s (%s) created by %s", created.id, created.kind, identity.email)
        return created

    def update(
        self,
        identity: Optional[Identity],
        report_id: str,
        form: Dict[str, Any],
        now: Optional[datetime] = None,
    ) -> Report:
        existing = self.get(report_id)
        self._authorize(existing, identity, "edit")

        validated: ValidatedReportForm = validate_report_form(**self._with_reporter(identity, form), now=now)

        # id, created_at and resolved carry over untouched
        updated = Report(
            id=existing.id,
            created_at=existing.created_at,
            resolved=existing.resolved,
            image_ref=existing.image_ref,
            **validated.model_dump(),
        )

        result = self.collection.update(updated)

        logger.info("Report %s edited by %s", report_id, identity.email)
        return result

    def delete(self, identity: Optional[Identity], report_id: str):
        existing = self.get(report_id)
        self._authorize(existing, identity, "delete")

        self.collection.delete(report_id)

        if existing.image_ref:
            self._discard_blob(existing.image_ref)

        logger.info("Report %s deleted by %s", report_id, identity.email)

    def resolve(self, identity: Optional[Identity], report_id: str) -> Report:
        """Mark a report resolved. Resolving twice is a no-op; there is no way back."""
        existing = self.get(report_id)

        if not self.can_resolve(existing, identity):
            self._deny(existing, identity, "resolve")

        if existing.resolved:
            return existing

        result = self.collection.set_resolved(report_id)

        logger.info("Report %s resolved by %s", report_id, identity.email if identity else "anonymous")
        return result

    def attach_image(self, identity: Optional[Identity], report_id: str, image: Dict[str, Any]) -> Report:
        existing = self.get(report_id)
        self._authorize(existing, identity, "change the photo of")

        old_ref = existing.image_ref
        new_ref = self._upload(image)

        existing.image_ref = new_ref

        try:
            result = self.collection.update(existing)
        except CollaboratorError:
            self._discard_blob(new_ref)
            raise

        if old_ref:
            self._discard_blob(old_ref)

        return result

    def can_modify(self, report: Report, identity: Optional[Identity]) -> bool:
        return is_owner(report, identity.email if identity else None)

    def can_resolve(self, report: Report, identity: Optional[Identity]) -> bool:
        if self.resolve_policy == ResolvePolicy.ANYONE:
            return identity is not None
        return self.can_modify(report, identity)

    # Helpers

    def _authorize(self, report: Report, identity: Optional[Identity], action: str):
        if not self.can_modify(report, identity):
            self._deny(report, identity, action)

    def _deny(self, report: Report, identity: Optional[Identity], action: str):
        logger.warning(
            "Denied %s on report %s for %s",
            action,
            report.id,
            identity.email if identity else "anonymous",
        )
        raise PermissionDeniedError(f"Unauthorized to {action} this report")

    def _with_reporter(self, identity: Identity, form: Dict[str, Any]) -> Dict[str, Any]:
        """
        Fill the reporter email from the signed-in account.

        The email is the ownership key, so a form may not name someone else.
        """
        form = dict(form)
        email = form.get("reporter_email")

        # anything that is not text is left for the validator to reject
        if email is None or (isinstance(email, str) and not email.strip()):
            form["reporter_email"] = identity.email
        elif isinstance(email, str) and email.strip() != identity.email:
            raise PermissionDeniedError("Reporter email must match the signed-in account")

        return form

    def _upload(self, image: Dict[str, Any]) -> str:
        if self.blob_store is None:
            raise CollaboratorError("image upload", RuntimeError("no blob store configured"))

        return self.blob_store.upload(image["data"], image.get("content_type"), image.get("filename") or "")

    def _discard_blob(self, reference: str):
        # the report change already happened; a leftover object is only logged
        if self.blob_store is None:
            logger.error("Orphaned image %s: no blob store configured", reference)
            return

        try:
            self.blob_store.delete(reference)
        except CollaboratorError as e:
            logger.error("Orphaned image %s: %s", reference, e)
