"""
Inspector Settings -- Per-Report Configuration for the Security Inspector.

Each report kind decides which permission groups become matrix columns and
what the row header reads.  Hosts differ in which permission groups they
register (credentials, SCM, pipelines ...) so the groups are configurable
rather than hard-coded, and are validated on load.

**Meta groups:** administrative and bookkeeping groups (the ``Permission``
root group, ``Overall``) never make sense as per-item checks.  They are
excluded by default from every report kind.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from securityinspector.models import ReportKind


META_GROUPS = ("Permission", "Overall")
"""Permission groups that describe the permission system itself."""


# ---------------------------------------------------------------------------
# Per-kind settings
# ---------------------------------------------------------------------------

class ReportKindSettings(BaseModel):
    """Column and header settings for one report kind."""

    row_header: str = Field(
        ...,
        min_length=1,
        description="Header text of the row-title column.",
    )
    excluded_groups: list[str] = Field(
        default_factory=lambda: list(META_GROUPS),
        description=(
            "Permission groups dropped from the columns.  Meta groups should "
            "stay listed here so the matrix only shows checkable permissions."
        ),
    )
    included_groups: Optional[list[str]] = Field(
        default=None,
        description=(
            "If set, only these permission groups become columns (after "
            "exclusions).  Node reports use this to keep the Computer group."
        ),
    )

    @field_validator("excluded_groups", "included_groups")
    @classmethod
    def no_blank_groups(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        if v is not None and any(not g.strip() for g in v):
            raise ValueError("Permission group names must not be blank")
        return v

    def accepts(self, group: str) -> bool:
        """Whether permissions of ``group`` become columns for this kind."""
        if group in self.excluded_groups:
            return False
        if self.included_groups is not None:
            return group in self.included_groups
        return True


# ---------------------------------------------------------------------------
# Inspector settings
# ---------------------------------------------------------------------------

def _default_kinds() -> dict[ReportKind, ReportKindSettings]:
    return {
        ReportKind.JOBS: ReportKindSettings(
            row_header="Job",
            excluded_groups=[*META_GROUPS, "Computer", "View"],
        ),
        ReportKind.USERS: ReportKindSettings(
            row_header="User",
            excluded_groups=[*META_GROUPS, "Computer", "View"],
        ),
        ReportKind.NODES: ReportKindSettings(
            row_header="Node",
            included_groups=["Computer"],
        ),
    }


class InspectorSettings(BaseModel):
    """Complete configuration of a ``SecurityInspector`` instance."""

    reports: dict[ReportKind, ReportKindSettings] = Field(
        default_factory=_default_kinds,
        description="Settings per report kind.  Every kind must be configured.",
    )
    max_rows: Optional[int] = Field(
        default=None,
        gt=0,
        description=(
            "Upper bound on the number of rows in one report.  Report cost "
            "grows with rows x columns; large installations may cap it and "
            "ask users to narrow their filters instead."
        ),
    )

    @model_validator(mode="after")
    def all_kinds_configured(self) -> "InspectorSettings":
        missing = [k.value for k in ReportKind if k not in self.reports]
        if missing:
            raise ValueError(f"Missing report settings for kinds: {missing}")
        return self

    def for_kind(self, kind: ReportKind) -> ReportKindSettings:
        return self.reports[kind]


DEFAULT_SETTINGS = InspectorSettings()
"""Built-in settings mirroring the permission groups of a stock host."""


# ---------------------------------------------------------------------------
# YAML loader
# ---------------------------------------------------------------------------

def load_settings_from_yaml(path: str | Path) -> InspectorSettings:
    """Load inspector settings from a YAML file.

    The file must contain a top-level ``inspector`` mapping.  Report kinds
    that are not listed keep their defaults.

    Example YAML structure::

        inspector:
          max_rows: 500
          reports:
            NODES:
              row_header: "Agent"
              included_groups: ["Computer"]

    Args:
        path: Path to the YAML file.

    Returns:
        Validated ``InspectorSettings``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the YAML structure is invalid.
        pydantic.ValidationError: If any setting fails validation.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    with open(path, "r") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict) or not isinstance(raw.get("inspector"), dict):
        raise ValueError("YAML file must contain a top-level 'inspector' mapping.")

    data = dict(raw["inspector"])
    overrides = data.pop("reports", None) or {}
    if not isinstance(overrides, dict):
        raise ValueError("'reports' must be a mapping of report kind to settings.")

    reports = _default_kinds()
    for key, entry in overrides.items():
        if not isinstance(entry, dict):
            raise ValueError(f"Settings for report kind '{key}' must be a mapping.")
        try:
            kind = ReportKind(str(key).upper())
        except ValueError:
            raise ValueError(f"Unknown report kind '{key}'.") from None
        merged = reports[kind].model_dump()
        merged.update(entry)
        reports[kind] = ReportKindSettings(**merged)

    return InspectorSettings(reports=reports, **data)
