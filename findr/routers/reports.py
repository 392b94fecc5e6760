from datetime import date as date_type, datetime, time as time_type
from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, Request, UploadFile

from findr.errors import (
    CollaboratorError,
    FindrError,
    PermissionDeniedError,
    ReportNotFoundError,
    ReportValidationError,
    ValidationError,
)
from findr.models.report import Report, ReportKind
from findr.services.report_service import ReportService
from findr.utils.auth_helper import Identity, get_current_identity_optional, get_current_identity_required
from findr.utils.form_validator import compose_occurred_at
from findr.utils.report_filter import SearchFields, SortKey


router = APIRouter()

ALLOWED_FIELDS = {
    "title",
    "kind",
    "description",
    "tags",
    "color",
    "location",
    "reporter_name",
    "reporter_email",
    "occurred_at",
}


def get_report_service(request: Request) -> ReportService:
    return request.app.state.report_service


def raise_http(e: FindrError):
    if isinstance(e, ReportValidationError):
        raise HTTPException(status_code=400, detail={"field_errors": e.field_errors}) from e
    if isinstance(e, ValidationError):
        raise HTTPException(status_code=400, detail=str(e)) from e
    if isinstance(e, PermissionDeniedError):
        raise HTTPException(status_code=403, detail=str(e)) from e
    if isinstance(e, ReportNotFoundError):
        raise HTTPException(status_code=404, detail="Report not found") from e
    if isinstance(e, CollaboratorError):
        raise HTTPException(status_code=502, detail=str(e)) from e
    raise e


def serialize(report: Report, service: ReportService, identity: Optional[Identity]) -> dict:
    data = {"id": report.id, **report.to_document()}
    data["image"] = service.image_url(report)
    data["is_owner"] = service.can_modify(report, identity)
    data["can_resolve"] = service.can_resolve(report, identity) and not report.resolved
    return data


def parse_occurred_at(date: str, time: str) -> datetime:
    try:
        return compose_occurred_at(date_type.fromisoformat(date), time_type.fromisoformat(time))
    except ValueError:
        raise HTTPException(status_code=400, detail="Date not parseable")


async def read_image(image: Optional[UploadFile]) -> Optional[dict]:
    if image is None or not image.filename:
        return None

    return {
        "data": await image.read(),
        "content_type": image.content_type,
        "filename": image.filename,
    }


@router.get("/")
def list_reports(
    kind: ReportKind = ReportKind.LOST,
    q: str = "",
    sort: SortKey = SortKey.LATEST,
    search_fields: Optional[SearchFields] = None,
    service: ReportService = Depends(get_report_service),
    identity: Optional[Identity] = Depends(get_current_identity_optional),
):
    try:
        reports = service.list_reports(kind, q.strip(), sort, search_fields)
    except FindrError as e:
        raise_http(e)

    return {
        "reports": [serialize(r, service, identity) for r in reports],
    }


@router.post("/create")
async def create_report(
    kind: str = Form(...),
    title: str = Form(...),
    description: str = Form(...),
    tags: str = Form(...),
    color: str = Form(...),
    date: str = Form(...),
    time: str = Form(...),
    location: str = Form(...),
    reporter_name: str = Form(...),
    reporter_email: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    service: ReportService = Depends(get_report_service),
    identity: Identity = Depends(get_current_identity_required),
):
    occurred_at = parse_occurred_at(date, time)

    form = {
        "kind": kind,
        "title": title,
        "description": description,
        "tags": tags,
        "color": color,
        "location": location,
        "reporter_name": reporter_name,
        "reporter_email": reporter_email,
        "occurred_at": occurred_at,
    }

    try:
        report = service.create(identity, form, await read_image(image))
    except FindrError as e:
        raise_http(e)

    return serialize(report, service, identity)


@router.get("/{report_id}")
def get_report(
    report_id: str,
    service: ReportService = Depends(get_report_service),
    identity: Optional[Identity] = Depends(get_current_identity_optional),
):
    try:
        report = service.get(report_id)
    except FindrError as e:
        raise_http(e)

    return serialize(report, service, identity)


@router.patch("/{report_id}")
def update_report(
    report_id: str,
    updates: dict = Body(...),
    service: ReportService = Depends(get_report_service),
    identity: Identity = Depends(get_current_identity_required),
):
    for field in updates:
        if field not in ALLOWED_FIELDS:
            raise HTTPException(
                status_code=400,
                detail=f"Field '{field}' cannot be updated",
            )

    try:
        existing = service.get(report_id)
    except FindrError as e:
        raise_http(e)

    # unchanged fields are revalidated along with the edited ones
    form = {
        "kind": existing.kind,
        "title": existing.title,
        "description": existing.description,
        "tags": existing.tags,
        "color": existing.color,
        "location": existing.location,
        "reporter_name": existing.reporter_name,
        "reporter_email": existing.reporter_email,
        "occurred_at": existing.occurred_at,
    }
    form.update(updates)

    if isinstance(form["occurred_at"], str):
        try:
            form["occurred_at"] = datetime.fromisoformat(form["occurred_at"].replace("Z", "+00:00"))
        except ValueError:
            raise HTTPException(status_code=400, detail="Date not parseable")

    try:
        report = service.update(identity, report_id, form)
    except FindrError as e:
        raise_http(e)

    return serialize(report, service, identity)


@router.delete("/{report_id}")
def delete_report(
    report_id: str,
    service: ReportService = Depends(get_report_service),
    identity: Identity = Depends(get_current_identity_required),
):
    try:
        service.delete(identity, report_id)
    except FindrError as e:
        raise_http(e)

    return True


@router.post("/{report_id}/resolve")
def resolve_report(
    report_id: str,
    service: ReportService = Depends(get_report_service),
    identity: Identity = Depends(get_current_identity_required),
):
    try:
        report = service.resolve(identity, report_id)
    except FindrError as e:
        raise_http(e)

    return serialize(report, service, identity)


@router.post("/{report_id}/image")
async def replace_image(
    report_id: str,
    image: UploadFile = File(...),
    service: ReportService = Depends(get_report_service),
    identity: Identity = Depends(get_current_identity_required),
):
    payload = await read_image(image)
    if payload is None:
        raise HTTPException(status_code=400, detail="Image is required")

    try:
        report = service.attach_image(identity, report_id, payload)
    except FindrError as e:
        raise_http(e)

    return serialize(report, service, identity)
