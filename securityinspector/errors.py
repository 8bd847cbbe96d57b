"""
Typed failures raised by the Security Inspector core.

Request-level failures (``InvalidCriteria``, ``ContextMissing``,
``DirectoryUnavailable``) propagate to the caller and carry enough context
to render a specific message.  Per-row failures (``RowUnresolvable``) are
absorbed into the report data model and never escape a report build.
"""

from __future__ import annotations

from typing import Optional


class InspectorError(Exception):
    """Base class for all Security Inspector failures."""
    pass


class InvalidCriteria(InspectorError):
    """Raised when submitted filter input is malformed (e.g. a bad regex)."""

    def __init__(self, message: str, pattern: Optional[str] = None) -> None:
        super().__init__(message)
        self.pattern = pattern


class ContextMissing(InspectorError):
    """Raised when no query context is cached for a session.

    Not a system fault -- the caller should send the user back to the
    filter-selection step.
    """

    def __init__(self, session_id: str, message: str | None = None) -> None:
        super().__init__(
            message or f"No filters have been configured for session '{session_id}'."
        )
        self.session_id = session_id


class IdentityUnresolvable(InspectorError):
    """Raised when an identity name no longer resolves in the host store."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Identity '{name}' cannot be resolved.")
        self.name = name


class RowUnresolvable(InspectorError):
    """Raised by a row resolver when a row vanished after selection."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind} '{name}' no longer exists.")
        self.kind = kind
        self.name = name


class DirectoryUnavailable(InspectorError):
    """Raised when the host directory cannot be reached.  Never retried here."""
    pass


class ImpersonationError(InspectorError):
    """Raised when an impersonation scope is entered while another is active."""
    pass
