import re
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Dict, Iterable, List, NamedTuple, Optional, Union

from pydantic import BaseModel, Field

from findr.errors import FutureDateError, ReportValidationError
from findr.models.report import ReportKind, as_utc


COLOR_NAMES = {
    "red",
    "blue",
    "green",
    "yellow",
    "purple",
    "orange",
    "pink",
    "brown",
    "grey",
    "gray",
}

HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")
TAG_RE = re.compile(r"^[A-Za-z0-9 ]+$")
NAME_RE = re.compile(r"^[A-Za-z ]+$")
EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

MAX_TAGS = 10


class ViolationCode(str, Enum):
    REQUIRED = "required"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    INVALID_FORMAT = "invalid_format"
    INVALID_COLOR = "invalid_color"
    TOO_FEW_TAGS = "too_few_tags"
    TOO_MANY_TAGS = "too_many_tags"
    FUTURE_DATE = "future_date"


class Violation(NamedTuple):
    code: ViolationCode
    message: str


def _check_text(value, label: str) -> Optional[Violation]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return Violation(ViolationCode.REQUIRED, f"{label} is required")

    # JSON edits can carry numbers, lists or objects in any field
    if not isinstance(value, str):
        return Violation(ViolationCode.INVALID_FORMAT, f"{label} must be text")

    return None


def _check_length(value: Optional[str], label: str, min_len: int, max_len: int) -> Optional[Violation]:
    violation = _check_text(value, label)
    if violation:
        return violation

    value = value.strip()

    if len(value) < min_len:
        return Violation(ViolationCode.TOO_SHORT, f"{label} must be at least {min_len} characters long")

    if len(value) > max_len:
        return Violation(ViolationCode.TOO_LONG, f"{label} must be at most {max_len} characters long")

    return None


def validate_title(value: Optional[str]) -> Optional[Violation]:
    return _check_length(value, "Title", 3, 100)


def validate_description(value: Optional[str]) -> Optional[Violation]:
    return _check_length(value, "Description", 10, 500)


def validate_location(value: Optional[str]) -> Optional[Violation]:
    return _check_length(value, "Location", 3, 100)


def validate_color(value: Optional[str]) -> Optional[Violation]:
    violation = _check_text(value, "Color")
    if violation:
        return violation

    value = value.strip()

    if HEX_COLOR_RE.match(value) or value.lower() in COLOR_NAMES:
        return None

    return Violation(ViolationCode.INVALID_COLOR, "Enter #RRGGBB or a supported color name")


def parse_tags(value: Union[str, Iterable[str], None]) -> List[str]:
    """
    Split comma separated tags, trim each one and drop the empty segments.
    A list of already separated tags goes through the same cleanup.
    """
    if value is None:
        return []

    segments = value.split(",") if isinstance(value, str) else list(value)

    return [tag.strip() for tag in segments if tag.strip()]


def validate_tags(value: Union[str, Iterable[str], None]) -> Optional[Violation]:
    if value is not None and not isinstance(value, str):
        if not isinstance(value, (list, tuple)) or not all(isinstance(tag, str) for tag in value):
            return Violation(ViolationCode.INVALID_FORMAT, "Tags must be text")

    tags = parse_tags(value)

    if not tags:
        return Violation(ViolationCode.TOO_FEW_TAGS, "At least one tag is required")

    if len(tags) > MAX_TAGS:
        return Violation(ViolationCode.TOO_MANY_TAGS, f"Maximum {MAX_TAGS} tags allowed")

    for tag in tags:
        if len(tag) < 2:
            return Violation(ViolationCode.TOO_SHORT, "Each tag must be at least 2 characters long")
        if len(tag) > 20:
            return Violation(ViolationCode.TOO_LONG, "Each tag must be at most 20 characters long")
        if not TAG_RE.match(tag):
            return Violation(ViolationCode.INVALID_FORMAT, "Tags can only contain letters, numbers, and spaces")

    return None


def validate_reporter_name(value: Optional[str]) -> Optional[Violation]:
    violation = _check_length(value, "Name", 2, 50)
    if violation:
        return violation

    if not NAME_RE.match(value.strip()):
        return Violation(ViolationCode.INVALID_FORMAT, "Name can only contain letters and spaces")

    return None


def validate_reporter_email(value: Optional[str]) -> Optional[Violation]:
    violation = _check_text(value, "Email")
    if violation:
        return violation

    value = value.strip()

    if not EMAIL_RE.match(value):
        return Violation(ViolationCode.INVALID_FORMAT, "Please enter a valid email address")

    if len(value) > 100:
        return Violation(ViolationCode.TOO_LONG, "Email must be at most 100 characters long")

    return None


def validate_kind(value: Optional[str]) -> Optional[Violation]:
    if isinstance(value, ReportKind):
        return None

    if value is None or value == "":
        return Violation(ViolationCode.REQUIRED, "Type is required")

    if not isinstance(value, str) or value not in {k.value for k in ReportKind}:
        return Violation(ViolationCode.INVALID_FORMAT, "Type must be 'lost' or 'found'")

    return None


def compose_occurred_at(day: date, at: time, tz=timezone.utc) -> datetime:
    # date and time are picked separately; minutes are the finest resolution
    return datetime(day.year, day.month, day.day, at.hour, at.minute, tzinfo=at.tzinfo or tz)


def validate_occurred_at_format(value) -> Optional[Violation]:
    if value is None:
        return Violation(ViolationCode.REQUIRED, "Date and time are required")

    if not isinstance(value, datetime):
        return Violation(ViolationCode.INVALID_FORMAT, "Date and time must be a date with a time of day")

    return None


def validate_occurred_at(value: datetime, now: Optional[datetime] = None) -> Optional[Violation]:
    now = as_utc(now or datetime.now(timezone.utc))

    if as_utc(value) > now:
        return Violation(ViolationCode.FUTURE_DATE, "Date and time cannot be in the future")

    return None


class ValidatedReportForm(BaseModel):
    kind: ReportKind
    title: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=10, max_length=500)
    tags: List[str] = Field(min_length=1, max_length=MAX_TAGS)
    color: str
    occurred_at: datetime
    location: str = Field(min_length=3, max_length=100)
    reporter_name: str = Field(min_length=2, max_length=50)
    reporter_email: str = Field(max_length=100)


def validate_report_form(
    *,
    kind: Optional[str],
    title: Optional[str],
    description: Optional[str],
    tags: Union[str, Iterable[str], None],
    color: Optional[str],
    location: Optional[str],
    reporter_name: Optional[str],
    reporter_email: Optional[str],
    occurred_at: datetime,
    now: Optional[datetime] = None,
) -> ValidatedReportForm:
    """
    Run every field rule and return the cleaned form.

    All field violations are collected into one ReportValidationError so the
    caller can show feedback next to each field. The future date check only
    runs once the fields are clean, and raises FutureDateError on its own.
    """
    kind = kind.value if isinstance(kind, ReportKind) else kind

    checks = {
        "kind": validate_kind(kind),
        "title": validate_title(title),
        "description": validate_description(description),
        "tags": validate_tags(tags),
        "color": validate_color(color),
        "location": validate_location(location),
        "reporter_name": validate_reporter_name(reporter_name),
        "reporter_email": validate_reporter_email(reporter_email),
        "occurred_at": validate_occurred_at_format(occurred_at),
    }

    violations: Dict[str, Violation] = {field: v for field, v in checks.items() if v is not None}
    if violations:
        raise ReportValidationError(violations)

    date_violation = validate_occurred_at(occurred_at, now)
    if date_violation:
        raise FutureDateError(date_violation.message)

    return ValidatedReportForm(
        kind=ReportKind(kind),
        title=title.strip(),
        description=description.strip(),
        tags=parse_tags(tags),
        color=color.strip(),
        occurred_at=as_utc(occurred_at),
        location=location.strip(),
        reporter_name=reporter_name.strip(),
        reporter_email=reporter_email.strip(),
    )
