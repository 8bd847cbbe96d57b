"""
Report Matrix Engine -- rows x permissions, evaluated cell by cell.

The engine performs no permission logic.  It iterates rows and columns,
calls an injected ``evaluate(handle, permission)`` function for every cell,
and aggregates the results into an immutable ``Report``.  The same engine
drives every report kind; what varies is the ``RowView`` (how rows are
identified, titled and re-resolved) and the evaluator.

**Unresolvable rows:** a row whose identifier no longer resolves in the
host directory (e.g. a job deleted after selection) is still listed.  All
of its cells are ``False``, it carries ``resolvable=False`` for the
renderer, and it classifies as ``DENIED``.  It never aborts the report.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Callable, Generic, Iterable, Mapping, Optional, Protocol, TypeVar

from pydantic import BaseModel, ConfigDict

from securityinspector.catalog import ColumnGroup, group_columns
from securityinspector.errors import RowUnresolvable
from securityinspector.models import Permission, ReportKind, ReportNotice, RowStatus

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT")
HandleT = TypeVar("HandleT")

CellResult = Optional[bool]
"""``True`` granted, ``False`` denied, ``None`` not applicable to the row."""


class RowView(Protocol[RowT, HandleT]):
    """Accessor hooks a report kind implements to plug into the engine."""

    def row_header(self) -> str:
        """Header text of the row-title column."""
        ...

    def row_id(self, row: RowT) -> str:
        """Stable identifier of ``row``."""
        ...

    def row_title(self, row: RowT) -> str:
        """Display title of ``row``."""
        ...

    def resolve(self, row: RowT) -> Optional[HandleT]:
        """Re-resolve ``row`` at evaluation time; ``None`` if it vanished."""
        ...


def classify(cells: Iterable[CellResult]) -> RowStatus:
    """Classify a row from its cell results.

    Absent cells are ignored.  ``OK`` needs at least one applicable cell
    and all applicable cells granted.
    """
    applicable = [c for c in cells if c is not None]
    if applicable and all(applicable):
        return RowStatus.OK
    if any(applicable):
        return RowStatus.PARTIAL
    return RowStatus.DENIED


# ---------------------------------------------------------------------------
# Report value objects
# ---------------------------------------------------------------------------

class ReportRow(BaseModel):
    """One row of a report: identifier, display title, resolution marker."""

    model_config = ConfigDict(frozen=True)

    row_id: str
    title: str
    resolvable: bool = True

    def __repr__(self) -> str:
        return f"ReportRow(row_id={self.row_id}, resolvable={self.resolvable})"


class Report:
    """An immutable permission matrix.

    Rows keep the insertion order of the filter stage.  Every row has an
    entry for every column.  ``status()`` is recomputed on each call from
    the stored cells.
    """

    def __init__(
        self,
        kind: ReportKind,
        row_header: str,
        rows: tuple[ReportRow, ...],
        groups: tuple[ColumnGroup, ...],
        cells: Mapping[str, Mapping[str, CellResult]],
        notice: Optional[ReportNotice] = None,
    ) -> None:
        self._kind = kind
        self._row_header = row_header
        self._rows = tuple(rows)
        self._groups = tuple(groups)
        self._cells = MappingProxyType(
            {row_id: MappingProxyType(dict(row_cells)) for row_id, row_cells in cells.items()}
        )
        self._notice = notice

    @classmethod
    def empty(
        cls,
        kind: ReportKind,
        row_header: str,
        notice: Optional[ReportNotice] = None,
    ) -> "Report":
        return cls(kind, row_header, (), (), {}, notice=notice)

    @property
    def kind(self) -> ReportKind:
        return self._kind

    @property
    def row_header(self) -> str:
        return self._row_header

    @property
    def rows(self) -> tuple[ReportRow, ...]:
        return self._rows

    @property
    def groups(self) -> tuple[ColumnGroup, ...]:
        return self._groups

    @property
    def columns(self) -> tuple[Permission, ...]:
        return tuple(c for g in self._groups for c in g.columns)

    @property
    def notice(self) -> Optional[ReportNotice]:
        return self._notice

    @property
    def is_empty(self) -> bool:
        return not self._rows

    def row(self, row_id: str) -> ReportRow:
        for row in self._rows:
            if row.row_id == row_id:
                return row
        raise KeyError(f"No row '{row_id}' in report")

    def cells(self, row_id: str) -> Mapping[str, CellResult]:
        """Cells of one row, keyed by permission id."""
        return self._cells[row_id]

    def cell(self, row_id: str, permission_id: str) -> CellResult:
        return self._cells[row_id][permission_id]

    def status(self, row_id: str) -> RowStatus:
        return classify(self._cells[row_id].values())

    def to_dict(self) -> dict[str, Any]:
        """Serialize the report to a dictionary for rendering."""
        return {
            "kind": self._kind.value,
            "row_header": self._row_header,
            "notice": self._notice.value if self._notice else None,
            "groups": [
                {
                    "name": g.name,
                    "columns": [
                        {"id": c.permission_id, "header": c.header} for c in g.columns
                    ],
                }
                for g in self._groups
            ],
            "rows": [
                {
                    "id": r.row_id,
                    "title": r.title,
                    "resolvable": r.resolvable,
                    "status": self.status(r.row_id).value,
                    "cells": dict(self._cells[r.row_id]),
                }
                for r in self._rows
            ],
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Report):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return (
            f"Report(kind={self._kind.value}, rows={len(self._rows)}, "
            f"columns={len(self.columns)}, notice={self._notice})"
        )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class ReportMatrixEngine(Generic[RowT, HandleT]):
    """Builds a ``Report`` from rows, columns and a cell evaluator."""

    def __init__(self, kind: ReportKind, view: RowView[RowT, HandleT]) -> None:
        self._kind = kind
        self._view = view

    def build(
        self,
        rows: Iterable[RowT],
        columns: Iterable[Permission],
        evaluate: Callable[[HandleT, Permission], CellResult],
    ) -> Report:
        """Evaluate every (row, column) cell and return the matrix.

        Args:
            rows: Rows in filter order.  Duplicate identifiers keep the
                first occurrence.
            columns: Permission columns, already filtered for the kind.
            evaluate: Cell evaluator called with the re-resolved row handle.

        Returns:
            An immutable ``Report``.
        """
        groups = group_columns(columns)
        ordered = [c for g in groups for c in g.columns]

        report_rows: list[ReportRow] = []
        cells: dict[str, dict[str, CellResult]] = {}
        for row in rows:
            row_id = self._view.row_id(row)
            if row_id in cells:
                continue

            handle = self._resolve(row)
            if handle is None:
                logger.warning("Row '%s' is no longer resolvable; reporting it as denied", row_id)
                cells[row_id] = {c.permission_id: False for c in ordered}
                report_rows.append(
                    ReportRow(row_id=row_id, title=self._view.row_title(row), resolvable=False)
                )
                continue

            cells[row_id] = {c.permission_id: evaluate(handle, c) for c in ordered}
            report_rows.append(ReportRow(row_id=row_id, title=self._view.row_title(row)))

        logger.info(
            "Built %s report: %d rows x %d columns",
            self._kind.value, len(report_rows), len(ordered),
        )
        return Report(
            kind=self._kind,
            row_header=self._view.row_header(),
            rows=tuple(report_rows),
            groups=groups,
            cells=cells,
        )

    def _resolve(self, row: RowT) -> Optional[HandleT]:
        try:
            return self._view.resolve(row)
        except RowUnresolvable:
            return None
