"""
Synthetic Scenario: Auditing a Small CI Server
==============================================

This script walks through the Security Inspector interaction against an
entirely synthetic permission model (``examples/host_model.yaml``).  No real
accounts or servers are involved.

Steps demonstrated:
  1. Load inspector settings and the host model from YAML
  2. Submit job filters for a developer (cached per session)
  3. View the jobs x permissions report, impersonating the developer
  4. Cross-report: users x permissions for one job
  5. Nodes x permissions report
  6. A deleted pivot user and a malformed regex
  7. Clear the session's filters

Usage:
    python -m examples.synthetic_scenario
    # or: python examples/synthetic_scenario.py
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

# Ensure the project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from securityinspector.config import load_settings_from_yaml
from securityinspector.host import load_host_from_yaml
from securityinspector.impersonation import bind_caller
from securityinspector.inspector import SecurityInspector
from securityinspector.intents import (
    ClearFilters,
    RenderReport,
    SubmitFilters,
    ViewReport,
    parse_intent,
)
from securityinspector.models import FilterCriteria, ReportKind, SelectionMode
from securityinspector.report import Report
from securityinspector.session_cache import QueryContextCache

SESSION_ID = "synthetic-session-1"


def _banner(text: str) -> None:
    print(f"\n{'=' * 60}")
    print(f"  {text}")
    print(f"{'=' * 60}\n")


def _print_matrix(report: Report) -> None:
    columns = report.columns
    header = [report.row_header] + [c.permission_id for c in columns] + ["Status"]
    print(" | ".join(header))
    for row in report.rows:
        marks = []
        for column in columns:
            value = report.cell(row.row_id, column.permission_id)
            marks.append("-" if value is None else ("Y" if value else "."))
        title = row.title if row.resolvable else f"{row.title} (missing)"
        print(" | ".join([title, *marks, report.status(row.row_id).value]))
    if report.notice:
        print(f"Notice: {report.notice.value}")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    _banner("Security Inspector Synthetic Scenario")

    # ------------------------------------------------------------------
    # Step 1: Load settings and host model
    # ------------------------------------------------------------------
    _banner("Step 1: Load Settings and Host Model")

    here = Path(__file__).parent
    settings = load_settings_from_yaml(here / "inspector.yaml")
    host = load_host_from_yaml(here / "host_model.yaml")
    cache = QueryContextCache()
    inspector = SecurityInspector(host, cache, settings)
    print(f"Permissions in catalog: {len(host.capability_catalog())}")
    print(f"Max rows per report: {settings.max_rows}")

    admin = host.resolve_identity("admin")
    with bind_caller(admin):
        # --------------------------------------------------------------
        # Step 2-3: Jobs report for a developer
        # --------------------------------------------------------------
        _banner("Step 2: Jobs x Permissions for dev-alice")

        outcome = inspector.handle(SESSION_ID, SubmitFilters(
            kind=ReportKind.JOBS,
            criteria=FilterCriteria(include_regex="proj-.*"),
            pivot="dev-alice",
        ))
        print(f"Submit outcome: {outcome}")

        outcome = inspector.handle(SESSION_ID, ViewReport(kind=ReportKind.JOBS))
        assert isinstance(outcome, RenderReport)
        _print_matrix(outcome.report)

        # --------------------------------------------------------------
        # Step 4: Users report for one job
        # --------------------------------------------------------------
        _banner("Step 3: Users x Permissions on proj-api")

        intent = parse_intent({
            "intent": "submit_filters",
            "kind": "USERS",
            "criteria": {"mode": SelectionMode.SELECTED.value, "selected": ["dev-alice", "qa-bob"]},
            "pivot": "proj-api",
        })
        inspector.handle(SESSION_ID, intent)
        outcome = inspector.handle(SESSION_ID, ViewReport(kind=ReportKind.USERS))
        _print_matrix(outcome.report)

        # --------------------------------------------------------------
        # Step 5: Nodes report
        # --------------------------------------------------------------
        _banner("Step 4: Nodes x Permissions for dev-alice")

        report = inspector.build_report(ReportKind.NODES, FilterCriteria(), "dev-alice")
        _print_matrix(report)
        print(json.dumps(report.to_dict(), indent=2))

        # --------------------------------------------------------------
        # Step 6: Recoverable failures
        # --------------------------------------------------------------
        _banner("Step 5: Deleted Pivot User and Malformed Regex")

        report = inspector.build_report(ReportKind.JOBS, FilterCriteria(), "former-employee")
        _print_matrix(report)

        outcome = inspector.handle(SESSION_ID, SubmitFilters(
            kind=ReportKind.JOBS,
            criteria=FilterCriteria(include_regex="proj-["),
            pivot="dev-alice",
        ))
        print(f"Malformed regex outcome: {outcome}")

        # --------------------------------------------------------------
        # Step 7: Clear filters
        # --------------------------------------------------------------
        _banner("Step 6: Clear Filters")

        print(f"Clear outcome: {inspector.handle(SESSION_ID, ClearFilters())}")
        print(f"Filters configured: {inspector.has_configured_filters(SESSION_ID)}")

    cache.clear()

    _banner("Scenario Complete")
    print("All accounts, jobs and nodes in this demo are synthetic.")


if __name__ == "__main__":
    main()
