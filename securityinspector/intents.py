"""
Request intents and outcomes.

The transport layer parses each inbound request into exactly one intent
and hands it to ``SecurityInspector.handle()``; the core never sees raw
form parameters.  ``handle()`` answers with one outcome, which the
transport turns into a redirect or a rendered page.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from securityinspector.models import FilterCriteria, ReportKind
from securityinspector.report import Report


# ---------------------------------------------------------------------------
# Intents
# ---------------------------------------------------------------------------

class SubmitFilters(BaseModel):
    """The user submitted a filter form for a report kind."""

    model_config = ConfigDict(frozen=True)

    intent: Literal["submit_filters"] = "submit_filters"
    kind: ReportKind
    criteria: FilterCriteria = Field(default_factory=FilterCriteria)
    pivot: str = Field(..., min_length=1, description="Selected user or job.")


class ViewReport(BaseModel):
    """The user asked for the report built from the cached filters."""

    model_config = ConfigDict(frozen=True)

    intent: Literal["view_report"] = "view_report"
    kind: ReportKind


class ShowFilterPage(BaseModel):
    """The user wants the filter form of a report kind."""

    model_config = ConfigDict(frozen=True)

    intent: Literal["show_filter_page"] = "show_filter_page"
    kind: ReportKind


class ClearFilters(BaseModel):
    """The user discarded the cached filters."""

    model_config = ConfigDict(frozen=True)

    intent: Literal["clear_filters"] = "clear_filters"


class GoHome(BaseModel):
    """The user went back to the landing page."""

    model_config = ConfigDict(frozen=True)

    intent: Literal["go_home"] = "go_home"


Intent = Union[SubmitFilters, ViewReport, ShowFilterPage, ClearFilters, GoHome]


class IntentEnvelope(BaseModel):
    """Parses a transport payload into the matching intent by its tag."""

    intent: Intent = Field(..., discriminator="intent")


def parse_intent(payload: dict) -> Intent:
    """Build an intent from a decoded payload such as ``{"intent": "go_home"}``.

    Raises:
        pydantic.ValidationError: If the tag is unknown or fields are invalid.
    """
    return IntentEnvelope(intent=payload).intent


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

class RedirectToReport:
    def __init__(self, kind: ReportKind) -> None:
        self.kind = kind

    def __repr__(self) -> str:
        return f"RedirectToReport(kind={self.kind.value})"


class RedirectToFilter:
    def __init__(self, kind: ReportKind) -> None:
        self.kind = kind

    def __repr__(self) -> str:
        return f"RedirectToFilter(kind={self.kind.value})"


class RedirectToHome:
    def __repr__(self) -> str:
        return "RedirectToHome()"


class RenderReport:
    def __init__(self, report: Report) -> None:
        self.report = report

    def __repr__(self) -> str:
        return f"RenderReport(report={self.report!r})"


class RenderError:
    """A recoverable input problem to show on the error page."""

    def __init__(self, message: str) -> None:
        self.message = message

    def __repr__(self) -> str:
        return f"RenderError(message='{self.message}')"


Outcome = Union[RedirectToReport, RedirectToFilter, RedirectToHome, RenderReport, RenderError]
