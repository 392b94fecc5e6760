import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, StrictBool, StrictStr
from pydantic import Field as PydanticField
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from findr.errors import ReportDecodeError


class ReportKind(str, Enum):
    LOST = "lost"
    FOUND = "found"


def as_utc(value: datetime) -> datetime:
    # SQLite hands datetimes back without tzinfo; everything we store is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Report(SQLModel, table=True):
    __tablename__ = "reports"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Item fields
    title: str
    kind: ReportKind = Field(index=True)
    description: str
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    color: str
    occurred_at: datetime  # when the item was lost/found
    location: str

    # Reporter info, email doubles as the ownership key
    reporter_name: str
    reporter_email: str = Field(index=True)

    image_ref: Optional[str] = Field(default=None)
    resolved: bool = Field(default=False)

    @classmethod
    def from_document(cls, report_id: str, data: Dict[str, Any]) -> "Report":
        """
        Build a report from a document-store map (camelCase keys, ISO-8601 timestamps).

        Fails closed: every missing or malformed field is reported in a single
        ReportDecodeError instead of being defaulted.
        """
        if not isinstance(report_id, str) or not report_id:
            raise ReportDecodeError(report_id, ["id: must be a non-empty string"])

        if not isinstance(data, dict):
            raise ReportDecodeError(report_id, ["document: must be a mapping"])

        try:
            doc = ReportDocument.model_validate(data)
        except PydanticValidationError as e:
            problems = [
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            raise ReportDecodeError(report_id, problems) from e

        return cls(
            id=report_id,
            title=doc.title,
            kind=doc.kind,
            description=doc.description,
            tags=list(doc.tags),
            color=doc.color,
            occurred_at=as_utc(doc.occurred_at),
            location=doc.location,
            reporter_name=doc.reporter_name,
            reporter_email=doc.reporter_email,
            image_ref=doc.image_ref,
            resolved=doc.resolved,
            created_at=as_utc(doc.created_at),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "type": ReportKind(self.kind).value,
            "description": self.description,
            "tags": list(self.tags),
            "colour": self.color,
            "timeFoundLost": as_utc(self.occurred_at).isoformat(),
            "location": self.location,
            "reporterName": self.reporter_name,
            "reporterEmail": self.reporter_email,
            "image": self.image_ref,
            "resolved": self.resolved,
            "createdAt": as_utc(self.created_at).isoformat(),
        }


class ReportDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: StrictStr
    kind: ReportKind = PydanticField(alias="type")
    description: StrictStr
    tags: List[StrictStr] = PydanticField(default_factory=list)
    color: StrictStr = PydanticField(alias="colour")
    occurred_at: datetime = PydanticField(alias="timeFoundLost")
    location: StrictStr
    reporter_name: StrictStr = PydanticField(alias="reporterName")
    reporter_email: StrictStr = PydanticField(alias="reporterEmail")
    image_ref: Optional[StrictStr] = PydanticField(default=None, alias="image")
    resolved: StrictBool
    created_at: datetime = PydanticField(alias="createdAt")
