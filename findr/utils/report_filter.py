from enum import Enum
from typing import Iterable, List

from findr.models.report import Report, ReportKind, as_utc


class SortKey(str, Enum):
    LATEST = "latest"
    OLDEST = "oldest"


class SearchFields(str, Enum):
    TITLE_ONLY = "title_only"
    TITLE_DESCRIPTION_TAGS = "title_description_tags"


def matches_query(report: Report, query: str, search_fields: SearchFields = SearchFields.TITLE_ONLY) -> bool:
    if not query:
        return True

    needle = query.casefold()

    if needle in report.title.casefold():
        return True

    if search_fields == SearchFields.TITLE_DESCRIPTION_TAGS:
        if needle in report.description.casefold():
            return True
        return any(needle in tag.casefold() for tag in report.tags)

    return False


def filter_and_sort(
    records: Iterable[Report],
    kind: ReportKind,
    query: str = "",
    sort_key: SortKey = SortKey.LATEST,
    search_fields: SearchFields = SearchFields.TITLE_ONLY,
) -> List[Report]:
    """
    Derive the displayed list from a collection snapshot and the current selections.

    Keeps the records of the selected kind whose text matches `query`, ordered
    by occurred_at (latest first, or oldest first). Builds a new list every
    time and never raises; no input yields an empty list.
    """
    if not records:
        return []

    # kind is a closed set, exact comparison is enough
    kept = [
        r for r in records
        if r.kind == kind and matches_query(r, query or "", search_fields)
    ]

    return sorted(
        kept,
        key=lambda r: as_utc(r.occurred_at),
        reverse=(sort_key == SortKey.LATEST),
    )
