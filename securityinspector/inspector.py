"""
Security Inspector -- the reporting entry point.

Wires the entity filter, the capability catalog, the report matrix engine,
the impersonation scope, and the session cache into the three report kinds:

* ``JOBS``  -- the pivot user's job permissions.  Checks run while
  impersonating the pivot user, against each re-resolved job.
* ``NODES`` -- the pivot user's node permissions, the same way.
* ``USERS`` -- every selected user's permissions on the pivot job.  Each
  cell checks the row user's identity directly; the ambient identity is
  never switched.

**Pivot resolution:** a pivot that no longer resolves (deleted user or job)
yields an empty report carrying ``ReportNotice.PIVOT_UNRESOLVABLE`` rather
than an error, because the user can recover by picking another pivot.  The
notice keeps that case distinguishable from "nothing matched".

**Access:** ``handle()`` only serves administrators, like every other
management page of the host.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Callable, Iterator, Optional

from securityinspector.catalog import CapabilityCatalog
from securityinspector.config import DEFAULT_SETTINGS, InspectorSettings
from securityinspector.errors import (
    ContextMissing,
    DirectoryUnavailable,
    IdentityUnresolvable,
    InvalidCriteria,
)
from securityinspector.filters import EntityFilter
from securityinspector.host import Host
from securityinspector.impersonation import current_identity, with_identity
from securityinspector.intents import (
    ClearFilters,
    GoHome,
    Intent,
    Outcome,
    RedirectToFilter,
    RedirectToHome,
    RedirectToReport,
    RenderError,
    RenderReport,
    ShowFilterPage,
    SubmitFilters,
    ViewReport,
)
from securityinspector.models import (
    Entity,
    EntityKind,
    FilterCriteria,
    Identity,
    Permission,
    QueryContext,
    ReportKind,
    ReportNotice,
)
from securityinspector.report import CellResult, Report, ReportMatrixEngine
from securityinspector.session_cache import QueryContextCache

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Row views
# ---------------------------------------------------------------------------

class EntityRowView:
    """Rows are directory items re-resolved through the host directory."""

    def __init__(self, host: Host, kind: EntityKind, header: str) -> None:
        self._host = host
        self._kind = kind
        self._header = header

    def row_header(self) -> str:
        return self._header

    def row_id(self, row: Entity) -> str:
        return row.name

    def row_title(self, row: Entity) -> str:
        return row.title

    def resolve(self, row: Entity) -> Optional[Entity]:
        return self._host.resolve(self._kind, row.name)


class UserRowView(EntityRowView):
    """Rows are users; they resolve to identities for permission checks."""

    def __init__(self, host: Host, header: str) -> None:
        super().__init__(host, EntityKind.USER, header)

    def resolve(self, row: Entity) -> Optional[Identity]:  # type: ignore[override]
        return self._host.resolve_identity(row.name)


# ---------------------------------------------------------------------------
# Inspector
# ---------------------------------------------------------------------------

class SecurityInspector:
    """Builds permission reports and drives the filter/report interaction.

    Args:
        host: The embedding server's directory, identity store, permission
            checker and permission catalog.
        cache: Session cache owned by the host for the inspector's lifetime.
        settings: Column and header settings per report kind.
    """

    def __init__(
        self,
        host: Host,
        cache: QueryContextCache,
        settings: InspectorSettings = DEFAULT_SETTINGS,
    ) -> None:
        self._host = host
        self._cache = cache
        self._settings = settings
        self._filter = EntityFilter()

    # -- reports --

    def select_rows(self, kind: ReportKind, criteria: FilterCriteria) -> list[Entity]:
        """Resolve ``criteria`` against the host directory for ``kind``.

        Raises:
            InvalidCriteria: On malformed criteria or too many rows.
            DirectoryUnavailable: If the host directory cannot be reached.
        """
        self._filter.validate(criteria)
        row_kind = kind.row_kind
        with self._directory_errors():
            universe = self._host.enumerate_candidates(row_kind)
            members = (
                self._host.group_members(row_kind, criteria.group)
                if criteria.group is not None
                else None
            )
            rows = self._filter.select(criteria, universe, members)
            if kind == ReportKind.NODES:
                # Nodes whose machine was removed have nothing to check.
                rows = [r for r in rows if self._host.resolve(row_kind, r.name) is not None]

        max_rows = self._settings.max_rows
        if max_rows is not None and len(rows) > max_rows:
            raise InvalidCriteria(
                f"The filter selects {len(rows)} items; at most {max_rows} are "
                "allowed in one report. Narrow the include regex.",
                pattern=criteria.include_regex,
            )
        return rows

    def build_report(self, kind: ReportKind, criteria: FilterCriteria, pivot: str) -> Report:
        """Build the ``kind`` report for ``criteria`` anchored on ``pivot``.

        Returns:
            The immutable report.  Empty with ``PIVOT_UNRESOLVABLE`` if the
            pivot does not resolve.

        Raises:
            InvalidCriteria: If the criteria are malformed.
            DirectoryUnavailable: If the host directory cannot be reached.
        """
        rows = self.select_rows(kind, criteria)
        header = self._settings.for_kind(kind).row_header

        with self._directory_errors():
            columns = CapabilityCatalog(
                self._host.capability_catalog(), self._settings
            ).columns_for(kind)

            if kind == ReportKind.USERS:
                job = self._host.resolve(EntityKind.JOB, pivot)
                if job is None:
                    return self._pivot_unresolvable(kind, header, pivot)
                engine = ReportMatrixEngine(kind, UserRowView(self._host, header))
                return engine.build(rows, columns, self._checker_for(job))

            engine = ReportMatrixEngine(kind, EntityRowView(self._host, kind.row_kind, header))
            try:
                return with_identity(
                    self._host,
                    pivot,
                    lambda: engine.build(rows, columns, self._check_as_ambient),
                )
            except IdentityUnresolvable:
                return self._pivot_unresolvable(kind, header, pivot)

    def _check_as_ambient(self, entity: Entity, permission: Permission) -> CellResult:
        return self._host.check_permission(current_identity(), entity, permission)

    def _checker_for(self, job: Entity) -> Callable[[Identity, Permission], CellResult]:
        def check(identity: Identity, permission: Permission) -> CellResult:
            return self._host.check_permission(identity, job, permission)
        return check

    def _pivot_unresolvable(self, kind: ReportKind, header: str, pivot: str) -> Report:
        logger.warning(
            "Pivot %s '%s' cannot be resolved; returning an empty %s report",
            kind.pivot_kind.value.lower(), pivot, kind.value,
        )
        return Report.empty(kind, header, notice=ReportNotice.PIVOT_UNRESOLVABLE)

    @contextlib.contextmanager
    def _directory_errors(self) -> Iterator[None]:
        try:
            yield
        except (ConnectionError, OSError) as exc:
            raise DirectoryUnavailable(f"Host directory is unavailable: {exc}") from exc

    # -- session interaction --

    def submit_filters(
        self,
        session_id: str,
        kind: ReportKind,
        criteria: FilterCriteria,
        pivot: str,
    ) -> QueryContext:
        """Validate and cache the session's filters, replacing older ones.

        Raises:
            InvalidCriteria: If the criteria are malformed.  Nothing is cached.
        """
        self._filter.validate(criteria)
        context = QueryContext(kind=kind, criteria=criteria, pivot=pivot)
        self._cache.put(session_id, context)
        return context

    def report_for_session(self, session_id: str, kind: Optional[ReportKind] = None) -> Report:
        """Build the report described by the session's cached filters.

        Raises:
            ContextMissing: If the session has no filters, or its filters
                were configured for a different report kind.
        """
        context = self._cache.require(session_id)
        if kind is not None and context.kind != kind:
            raise ContextMissing(
                session_id,
                f"Session '{session_id}' has filters for the {context.kind.value} "
                f"report, not the {kind.value} report.",
            )
        return self.build_report(context.kind, context.criteria, context.pivot)

    def has_configured_filters(self, session_id: str) -> bool:
        return self._cache.contains(session_id)

    def clear_filters(self, session_id: str) -> None:
        self._cache.remove(session_id)

    # -- intent dispatch --

    def handle(self, session_id: str, intent: Intent) -> Outcome:
        """Serve one parsed request intent for an administrator.

        Raises:
            PermissionError: If the ambient caller is not an administrator.
            DirectoryUnavailable: If the host directory cannot be reached.
            TypeError: If ``intent`` is not a known intent type.
        """
        caller = current_identity()
        if not self._host.is_administrator(caller):
            raise PermissionError(
                f"User '{caller.name}' is not permitted to inspect security settings."
            )

        if isinstance(intent, SubmitFilters):
            try:
                self.submit_filters(session_id, intent.kind, intent.criteria, intent.pivot)
            except InvalidCriteria as exc:
                return RenderError(str(exc))
            return RedirectToReport(intent.kind)

        if isinstance(intent, ViewReport):
            try:
                return RenderReport(self.report_for_session(session_id, intent.kind))
            except ContextMissing:
                return RedirectToFilter(intent.kind)
            except InvalidCriteria as exc:
                return RenderError(str(exc))

        if isinstance(intent, ShowFilterPage):
            return RedirectToFilter(intent.kind)

        if isinstance(intent, ClearFilters):
            self.clear_filters(session_id)
            return RedirectToHome()

        if isinstance(intent, GoHome):
            return RedirectToHome()

        raise TypeError(f"Unsupported intent: {intent!r}")
