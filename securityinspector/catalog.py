"""
Capability Catalog -- the permission columns of each report kind.

Wraps the host-supplied list of permissions and applies the per-kind group
settings from ``InspectorSettings``.  Catalog order is preserved so the
matrix columns are stable between builds.
"""

from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, ConfigDict

from securityinspector.config import DEFAULT_SETTINGS, InspectorSettings
from securityinspector.models import Permission, ReportKind


class ColumnGroup(BaseModel):
    """An ordered group of permission columns sharing a group tag."""

    model_config = ConfigDict(frozen=True)

    name: str
    columns: tuple[Permission, ...]

    def __repr__(self) -> str:
        return f"ColumnGroup(name={self.name}, columns={len(self.columns)})"


def group_columns(columns: Iterable[Permission]) -> tuple[ColumnGroup, ...]:
    """Group columns by their group tag, groups ordered by first appearance."""
    grouped: dict[str, list[Permission]] = {}
    for column in columns:
        grouped.setdefault(column.group, []).append(column)
    return tuple(ColumnGroup(name=name, columns=tuple(cols)) for name, cols in grouped.items())


class CapabilityCatalog:
    """Checkable permission columns, filtered per report kind."""

    def __init__(
        self,
        permissions: Iterable[Permission],
        settings: InspectorSettings = DEFAULT_SETTINGS,
    ) -> None:
        seen: set[str] = set()
        self._permissions: list[Permission] = []
        for permission in permissions:
            if permission.permission_id in seen:
                continue
            seen.add(permission.permission_id)
            self._permissions.append(permission)
        self._settings = settings

    def columns_for(self, kind: ReportKind) -> list[Permission]:
        """Return the columns of ``kind`` in catalog order."""
        kind_settings = self._settings.for_kind(kind)
        return [p for p in self._permissions if kind_settings.accepts(p.group)]

    def groups_for(self, kind: ReportKind) -> tuple[ColumnGroup, ...]:
        return group_columns(self.columns_for(kind))

    def __len__(self) -> int:
        return len(self._permissions)

    def __contains__(self, permission_id: str) -> bool:
        return any(p.permission_id == permission_id for p in self._permissions)
