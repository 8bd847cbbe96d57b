"""
Core data models for the Security Inspector reporting core.

Rows are ``Entity`` values (jobs, users, nodes) supplied by the host
directory.  Columns are ``Permission`` values from the capability catalog.
The core never owns or mutates host objects -- it keeps canonical names and
resolved display titles only.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class EntityKind(str, enum.Enum):
    """Kinds of items the host directory can enumerate."""

    JOB = "JOB"
    USER = "USER"
    NODE = "NODE"


class RowStatus(str, enum.Enum):
    """Classification of a report row, derived from its cell results.

    * ``OK``      -- every applicable cell is granted.
    * ``PARTIAL`` -- at least one cell is granted, but not all.
    * ``DENIED``  -- nothing is granted (or the row could not be resolved).
    """

    OK = "OK"
    PARTIAL = "PARTIAL"
    DENIED = "DENIED"


class SelectionMode(str, enum.Enum):
    """How the entity filter picks candidates.

    ``ALL`` keeps every candidate matching the regex.  ``SELECTED`` keeps
    only the candidates explicitly named in the submitted selection list,
    further filtered by the regex.
    """

    ALL = "ALL"
    SELECTED = "SELECTED"


class ReportKind(str, enum.Enum):
    """Report variants.  The value names the row kind of the matrix.

    * ``JOBS``  -- jobs x job permissions, for one pivot user.
    * ``USERS`` -- users x job permissions, for one pivot job.
    * ``NODES`` -- nodes x node permissions, for one pivot user.
    """

    JOBS = "JOBS"
    USERS = "USERS"
    NODES = "NODES"

    @property
    def row_kind(self) -> EntityKind:
        return _ROW_KINDS[self]

    @property
    def pivot_kind(self) -> EntityKind:
        return _PIVOT_KINDS[self]


_ROW_KINDS = {
    ReportKind.JOBS: EntityKind.JOB,
    ReportKind.USERS: EntityKind.USER,
    ReportKind.NODES: EntityKind.NODE,
}

_PIVOT_KINDS = {
    ReportKind.JOBS: EntityKind.USER,
    ReportKind.USERS: EntityKind.JOB,
    ReportKind.NODES: EntityKind.USER,
}


class ReportNotice(str, enum.Enum):
    """Reason code attached to a report that was short-circuited.

    An empty report is ambiguous on its own: it could mean "nothing matched"
    or "the pivot vanished".  The notice lets the renderer tell them apart.
    """

    PIVOT_UNRESOLVABLE = "PIVOT_UNRESOLVABLE"


# ---------------------------------------------------------------------------
# Host-facing value objects
# ---------------------------------------------------------------------------

class Entity(BaseModel):
    """A row candidate supplied by the host directory.

    ``name`` is the canonical, stable identifier (e.g. a job's full name).
    ``display_name`` is the human-readable title and is never used for
    matching.
    """

    model_config = ConfigDict(frozen=True)

    kind: EntityKind = Field(..., description="Kind of directory item.")
    name: str = Field(
        ...,
        min_length=1,
        description="Canonical name; the filter regex is matched against it.",
    )
    display_name: str = Field(
        default="",
        description="Human-readable title; falls back to ``name`` when empty.",
    )

    @property
    def title(self) -> str:
        return self.display_name or self.name


class Identity(BaseModel):
    """A principal in the host's identity store."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Login / user id.")
    display_name: str = Field(default="", description="Full name, if known.")


ANONYMOUS = Identity(name="anonymous", display_name="Anonymous")
"""Ambient identity observed when no caller has been bound."""


class Permission(BaseModel):
    """A checkable capability -- one column of a report matrix.

    Columns are grouped for display by ``group`` but every permission is an
    independent boolean check.
    """

    model_config = ConfigDict(frozen=True)

    group: str = Field(..., min_length=1, description="Permission group tag (e.g. 'Job').")
    name: str = Field(..., min_length=1, description="Permission name within its group.")
    label: str = Field(default="", description="Human-readable column label.")

    @property
    def permission_id(self) -> str:
        return f"{self.group}.{self.name}"

    @property
    def header(self) -> str:
        return self.label or self.name


# ---------------------------------------------------------------------------
# Query models
# ---------------------------------------------------------------------------

class FilterCriteria(BaseModel):
    """Immutable row-selection criteria submitted by the user.

    Constructed once per submitted request and stored verbatim in the
    session cache.  The regex is validated lazily by the entity filter so
    that a malformed pattern surfaces as ``InvalidCriteria`` rather than a
    pydantic validation error.
    """

    model_config = ConfigDict(frozen=True)

    include_regex: str = Field(
        default=".*",
        description="Regex matched (full match) against each candidate's canonical name.",
    )
    group: Optional[str] = Field(
        default=None,
        description="Optional group (e.g. a view) whose members the result is intersected with.",
    )
    mode: SelectionMode = Field(default=SelectionMode.ALL)
    selected: tuple[str, ...] = Field(
        default=(),
        description="Explicitly selected names, used when ``mode`` is SELECTED.",
    )

    @field_validator("group")
    @classmethod
    def blank_group_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class QueryContext(BaseModel):
    """Cached criteria plus the pivot item anchoring the cross-report."""

    model_config = ConfigDict(frozen=True)

    kind: ReportKind
    criteria: FilterCriteria
    pivot: str = Field(
        ...,
        min_length=1,
        description="Canonical name of the pivot user or job.",
    )
