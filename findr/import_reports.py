"""
Load a document-store export into the reports table.

    python -m findr.import_reports export.json

The export is a JSON object mapping report ids to report documents. Each
document goes through the strict decoder and then the same field rules a
submitted form must pass; documents that fail either check, or fail to
store, are logged and skipped. The rest are created as-is (ids, creation
times and resolved flags are kept).
"""
import argparse
import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional

from findr.core.config import get_settings
from findr.core.logging import setup_logging
from findr.db.db import create_db_engine, init_db
from findr.errors import CollaboratorError, FutureDateError, ReportDecodeError, ReportValidationError
from findr.models.report import Report
from findr.services.collaborators import ReportCollection
from findr.services.report_collection import SQLReportCollection
from findr.utils.form_validator import validate_report_form

logger = logging.getLogger(__name__)

# form field -> key in the exported document
DOCUMENT_KEYS = {
    "kind": "type",
    "color": "colour",
    "occurred_at": "timeFoundLost",
    "reporter_name": "reporterName",
    "reporter_email": "reporterEmail",
}


class ImportSummary(NamedTuple):
    imported: List[str]
    rejected: Dict[str, str]


def check_report(report: Report, now: Optional[datetime] = None):
    """Raise ReportDecodeError if a decoded report breaks any form rule."""
    try:
        validate_report_form(
            kind=report.kind,
            title=report.title,
            description=report.description,
            tags=report.tags,
            color=report.color,
            location=report.location,
            reporter_name=report.reporter_name,
            reporter_email=report.reporter_email,
            occurred_at=report.occurred_at,
            now=now,
        )
    except ReportValidationError as e:
        problems = [f"{DOCUMENT_KEYS.get(field, field)}: {message}" for field, message in e.field_errors.items()]
        raise ReportDecodeError(report.id, problems) from e
    except FutureDateError as e:
        raise ReportDecodeError(report.id, [f"timeFoundLost: {e}"]) from e


def import_reports(
    collection: ReportCollection,
    documents: Dict[str, Any],
    now: Optional[datetime] = None,
) -> ImportSummary:
    imported = []
    rejected = {}

    for report_id, data in documents.items():
        try:
            report = Report.from_document(report_id, data)
            check_report(report, now)
        except ReportDecodeError as e:
            logger.warning("Skipping %s: %s", report_id, e)
            rejected[report_id] = str(e)
            continue

        try:
            collection.create(report)
        except CollaboratorError as e:
            logger.warning("Could not store %s: %s", report_id, e)
            rejected[report_id] = str(e)
            continue

        imported.append(report_id)

    logger.info("Imported %d reports, rejected %d", len(imported), len(rejected))
    return ImportSummary(imported, rejected)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Import exported Findr reports")
    parser.add_argument("export", help="JSON file mapping report ids to documents")
    parser.add_argument("--database-url", help="Overrides DATABASE_URL")
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(settings.log_level)

    with open(args.export, encoding="utf-8") as f:
        documents = json.load(f)

    if not isinstance(documents, dict):
        logger.error("%s must contain a JSON object of id -> document", args.export)
        return 1

    engine = create_db_engine(args.database_url or settings.database_url)
    init_db(engine)

    summary = import_reports(SQLReportCollection(engine), documents)

    return 0 if not summary.rejected else 2


if __name__ == "__main__":
    sys.exit(main())
