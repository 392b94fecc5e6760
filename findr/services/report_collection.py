import logging
import threading
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from findr.errors import CollaboratorError, ReportNotFoundError
from findr.models.report import Report, ReportKind
from findr.services.collaborators import SnapshotListener, Unsubscribe

logger = logging.getLogger(__name__)

# created_at and resolved are deliberately absent: edits never touch them
UPDATABLE_FIELDS = (
    "title",
    "kind",
    "description",
    "tags",
    "color",
    "occurred_at",
    "location",
    "reporter_name",
    "reporter_email",
    "image_ref",
)


class SQLReportCollection:
    """
    The reports table behind the ReportCollection interface.

    Subscribers receive the full (optionally kind-filtered) snapshot once on
    subscribe and again after every successful write.
    """

    def __init__(self, engine):
        self.engine = engine
        self._listeners: List[Tuple[SnapshotListener, Optional[ReportKind]]] = []
        self._lock = threading.Lock()

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    def snapshot(self, kind: Optional[ReportKind] = None) -> List[Report]:
        query = select(Report)

        if kind is not None:
            query = query.where(Report.kind == kind)

        try:
            with self._session() as session:
                return list(session.exec(query).all())
        except SQLAlchemyError as e:
            raise CollaboratorError("report query", e) from e

    def get(self, report_id: str) -> Optional[Report]:
        try:
            with self._session() as session:
                return session.get(Report, report_id)
        except SQLAlchemyError as e:
            raise CollaboratorError("report lookup", e) from e

    def create(self, report: Report) -> Report:
        try:
            with self._session() as session:
                session.add(report)
                session.commit()
                session.refresh(report)
        except SQLAlchemyError as e:
            logger.error("Creating report %s failed: %s", report.id, e)
            raise CollaboratorError("report create", e) from e

        self._publish()
        return report

    def update(self, report: Report) -> Report:
        try:
            with self._session() as session:
                existing = session.get(Report, report.id)
                if existing is None:
                    raise ReportNotFoundError(report.id)

                for field in UPDATABLE_FIELDS:
                    setattr(existing, field, getattr(report, field))

                session.add(existing)
                session.commit()
                session.refresh(existing)
        except SQLAlchemyError as e:
            logger.error("Updating report %s failed: %s", report.id, e)
            raise CollaboratorError("report update", e) from e

        self._publish()
        return existing

    def delete(self, report_id: str) -> None:
        try:
            with self._session() as session:
                existing = session.get(Report, report_id)
                if existing is None:
                    raise ReportNotFoundError(report_id)

                session.delete(existing)
                session.commit()
        except SQLAlchemyError as e:
            logger.error("Deleting report %s failed: %s", report_id, e)
            raise CollaboratorError("report delete", e) from e

        self._publish()

    def set_resolved(self, report_id: str) -> Report:
        try:
            with self._session() as session:
                existing = session.get(Report, report_id)
                if existing is None:
                    raise ReportNotFoundError(report_id)

                existing.resolved = True

                session.add(existing)
                session.commit()
                session.refresh(existing)
        except SQLAlchemyError as e:
            logger.error("Resolving report %s failed: %s", report_id, e)
            raise CollaboratorError("report resolve", e) from e

        self._publish()
        return existing

    def subscribe(self, listener: SnapshotListener, kind: Optional[ReportKind] = None) -> Unsubscribe:
        entry = (listener, kind)

        with self._lock:
            self._listeners.append(entry)

        listener(self.snapshot(kind))

        def unsubscribe():
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return unsubscribe

    def _publish(self):
        with self._lock:
            listeners = list(self._listeners)

        for listener, kind in listeners:
            try:
                listener(self.snapshot(kind))
            except Exception:
                # one broken subscriber must not hide the write from the others
                logger.exception("Report snapshot listener %r failed", listener)
