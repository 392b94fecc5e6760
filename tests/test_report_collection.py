"""
Tests for the SQL backed report collection
"""
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from findr.errors import CollaboratorError, ReportNotFoundError
from findr.models.report import ReportKind


class TestSQLReportCollection:

    def test_create_and_get(self, collection, make_report):
        report = collection.create(make_report("Blue Wallet"))

        stored = collection.get(report.id)

        assert stored.title == "Blue Wallet"
        assert stored.kind == ReportKind.LOST
        assert stored.tags == ["misc"]

    def test_get_unknown_returns_none(self, collection):
        assert collection.get("missing") is None

    def test_snapshot_filters_by_kind(self, collection, make_report):
        collection.create(make_report("Wallet", ReportKind.LOST))
        collection.create(make_report("Cap", ReportKind.FOUND))

        assert {r.title for r in collection.snapshot()} == {"Wallet", "Cap"}
        assert [r.title for r in collection.snapshot(ReportKind.FOUND)] == ["Cap"]

    def test_update_keeps_created_at_and_resolved(self, collection, make_report):
        original = collection.create(make_report("Wallet"))
        collection.set_resolved(original.id)

        edited = make_report("Brown Wallet", id=original.id, resolved=False)
        edited.created_at = edited.created_at.replace(year=2030)

        result = collection.update(edited)

        assert result.title == "Brown Wallet"
        assert result.created_at.replace(tzinfo=None) == original.created_at.replace(tzinfo=None)
        assert result.resolved is True

    def test_update_unknown_raises(self, collection, make_report):
        with pytest.raises(ReportNotFoundError):
            collection.update(make_report(id="missing"))

    def test_delete(self, collection, make_report):
        report = collection.create(make_report())

        collection.delete(report.id)

        assert collection.get(report.id) is None
        with pytest.raises(ReportNotFoundError):
            collection.delete(report.id)

    def test_set_resolved(self, collection, make_report):
        report = collection.create(make_report())

        assert collection.set_resolved(report.id).resolved is True
        assert collection.get(report.id).resolved is True

    def test_subscribers_get_snapshots_after_writes(self, collection, make_report):
        seen = []
        unsubscribe = collection.subscribe(lambda snap: seen.append([r.title for r in snap]), kind=ReportKind.LOST)

        collection.create(make_report("Wallet", ReportKind.LOST))
        collection.create(make_report("Cap", ReportKind.FOUND))
        unsubscribe()
        collection.create(make_report("Keys", ReportKind.LOST))

        assert seen == [[], ["Wallet"], ["Wallet"]]

    def test_failing_listener_does_not_block_others(self, collection, make_report):
        seen = []
        broken = MagicMock(side_effect=[None, RuntimeError("boom")])

        collection.subscribe(broken)
        collection.subscribe(lambda snap: seen.append(len(snap)))
        collection.create(make_report())

        assert seen == [0, 1]

    def test_database_errors_are_wrapped(self, collection, make_report, monkeypatch):
        def fail(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("disk full"))

        monkeypatch.setattr("findr.services.report_collection.Session.commit", fail)

        with pytest.raises(CollaboratorError) as exc:
            collection.create(make_report())

        assert "disk full" in str(exc.value)
