"""
Tests for securityinspector.report -- Report Matrix Engine.

Covers: cell evaluation over every row and column, row classification,
unresolvable rows, absent cells, insertion-ordered rows, idempotent builds,
immutability, and serialization.
"""

from __future__ import annotations

from typing import Optional

import pytest
from pydantic import ValidationError

from securityinspector.errors import RowUnresolvable
from securityinspector.models import Permission, ReportKind, ReportNotice, RowStatus
from securityinspector.report import Report, ReportMatrixEngine, classify


class _NameView:
    """Rows are plain names; names in ``gone`` no longer resolve."""

    def __init__(self, gone: set[str] | None = None, raise_on_gone: bool = False) -> None:
        self.gone = gone or set()
        self.raise_on_gone = raise_on_gone

    def row_header(self) -> str:
        return "Job"

    def row_id(self, row: str) -> str:
        return row

    def row_title(self, row: str) -> str:
        return row.upper()

    def resolve(self, row: str) -> Optional[str]:
        if row in self.gone:
            if self.raise_on_gone:
                raise RowUnresolvable("JOB", row)
            return None
        return row


READ = Permission(group="Job", name="Read")
BUILD = Permission(group="Job", name="Build")
TAG = Permission(group="SCM", name="Tag")
COLUMNS = [READ, BUILD, TAG]


def _grants(table: dict[str, set[str]]):
    def evaluate(row: str, permission: Permission) -> bool:
        return permission.permission_id in table.get(row, set())
    return evaluate


def _build(rows, evaluate, view=None) -> Report:
    return ReportMatrixEngine(ReportKind.JOBS, view or _NameView()).build(rows, COLUMNS, evaluate)


# ---------------------------------------------------------------------------
# 1. Classification
# ---------------------------------------------------------------------------

class TestClassify:
    @pytest.mark.parametrize(
        "cells, expected",
        [
            ([True, True, True], RowStatus.OK),
            ([True, False, True], RowStatus.PARTIAL),
            ([False, False], RowStatus.DENIED),
            ([None, None], RowStatus.DENIED),
            ([True, None], RowStatus.OK),
            ([False, None], RowStatus.DENIED),
            ([], RowStatus.DENIED),
        ],
    )
    def test_classification_from_cells(self, cells, expected):
        assert classify(cells) == expected


# ---------------------------------------------------------------------------
# 2. Matrix building
# ---------------------------------------------------------------------------

class TestBuild:
    def test_every_row_has_every_column(self):
        report = _build(["a", "b"], _grants({"a": {"Job.Read"}}))
        for row in report.rows:
            assert set(report.cells(row.row_id)) == {"Job.Read", "Job.Build", "SCM.Tag"}

    def test_cells_and_statuses(self):
        report = _build(
            ["full", "some", "none"],
            _grants({
                "full": {"Job.Read", "Job.Build", "SCM.Tag"},
                "some": {"Job.Read"},
            }),
        )
        assert report.cell("some", "Job.Read") is True
        assert report.cell("some", "Job.Build") is False
        assert report.status("full") == RowStatus.OK
        assert report.status("some") == RowStatus.PARTIAL
        assert report.status("none") == RowStatus.DENIED

    def test_rows_keep_insertion_order(self):
        report = _build(["zeta", "alpha", "mid"], _grants({}))
        assert [r.row_id for r in report.rows] == ["zeta", "alpha", "mid"]

    def test_duplicate_rows_listed_once(self):
        report = _build(["a", "b", "a"], _grants({}))
        assert [r.row_id for r in report.rows] == ["a", "b"]

    def test_titles_and_header_come_from_view(self):
        report = _build(["proj-a"], _grants({}))
        assert report.row_header == "Job"
        assert report.row("proj-a").title == "PROJ-A"

    def test_columns_grouped_in_first_seen_order(self):
        report = _build(["a"], _grants({}))
        assert [g.name for g in report.groups] == ["Job", "SCM"]
        assert [c.permission_id for c in report.columns] == ["Job.Read", "Job.Build", "SCM.Tag"]

    def test_absent_cells_are_recorded(self):
        def evaluate(row, permission):
            return None if permission.group == "SCM" else True

        report = _build(["a"], evaluate)
        assert report.cell("a", "SCM.Tag") is None
        assert report.status("a") == RowStatus.OK

    def test_empty_rows_give_empty_report(self):
        report = _build([], _grants({}))
        assert report.is_empty
        assert report.notice is None


# ---------------------------------------------------------------------------
# 3. Unresolvable rows
# ---------------------------------------------------------------------------

class TestUnresolvableRows:
    def test_deleted_row_is_listed_as_denied(self):
        """A row deleted between selection and evaluation stays in the report."""
        calls = []

        def evaluate(row, permission):
            calls.append(row)
            return True

        report = _build(["kept", "deleted"], evaluate, _NameView(gone={"deleted"}))
        row = report.row("deleted")
        assert row.resolvable is False
        assert all(v is False for v in report.cells("deleted").values())
        assert report.status("deleted") == RowStatus.DENIED
        assert "deleted" not in calls
        assert report.row("kept").resolvable is True

    def test_resolver_raising_row_unresolvable_is_absorbed(self):
        view = _NameView(gone={"deleted"}, raise_on_gone=True)
        report = _build(["deleted", "kept"], _grants({"kept": {"Job.Read"}}), view)
        assert report.row("deleted").resolvable is False
        assert report.status("kept") == RowStatus.PARTIAL


# ---------------------------------------------------------------------------
# 4. Immutability, idempotence, serialization
# ---------------------------------------------------------------------------

class TestReportValue:
    def test_building_twice_yields_identical_reports(self):
        table = {"a": {"Job.Read"}, "b": {"Job.Read", "Job.Build", "SCM.Tag"}}
        first = _build(["a", "b", "c"], _grants(table))
        second = _build(["a", "b", "c"], _grants(table))
        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_cells_cannot_be_mutated(self):
        report = _build(["a"], _grants({}))
        with pytest.raises(TypeError):
            report.cells("a")["Job.Read"] = True  # type: ignore[index]

    def test_rows_and_groups_cannot_be_mutated(self):
        report = _build(["a", "gone"], _grants({"a": {"Job.Read"}}), _NameView(gone={"gone"}))
        before = report.to_dict()
        with pytest.raises(ValidationError):
            report.rows[1].resolvable = True
        with pytest.raises(ValidationError):
            report.groups[0].columns = ()
        with pytest.raises(TypeError):
            report.rows[0] = report.rows[1]  # type: ignore[index]
        assert report.to_dict() == before

    def test_cells_are_copied_from_input(self):
        cells = {"a": {"Job.Read": True}}
        report = Report(ReportKind.JOBS, "Job", (), (), cells)
        cells["a"]["Job.Read"] = False
        assert report.cell("a", "Job.Read") is True

    def test_unknown_row_raises_key_error(self):
        with pytest.raises(KeyError):
            _build(["a"], _grants({})).row("missing")

    def test_to_dict_contains_status_and_marker(self):
        report = _build(["a", "gone"], _grants({"a": {"Job.Read"}}), _NameView(gone={"gone"}))
        data = report.to_dict()
        assert data["kind"] == "JOBS"
        assert data["rows"][0]["status"] == "PARTIAL"
        assert data["rows"][1]["resolvable"] is False
        assert data["groups"][0]["columns"][0] == {"id": "Job.Read", "header": "Read"}

    def test_empty_report_carries_notice(self):
        report = Report.empty(ReportKind.JOBS, "Job", notice=ReportNotice.PIVOT_UNRESOLVABLE)
        assert report.is_empty
        assert report.to_dict()["notice"] == "PIVOT_UNRESOLVABLE"
