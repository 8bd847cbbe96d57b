"""
Session Query Context Cache.

The reporting interaction spans several stateless requests (pick filters,
confirm, view report).  The cache keeps the last submitted ``QueryContext``
per session so the report request does not have to re-submit every
criterion.

**Lifecycle:** one cache instance is constructed at host startup, injected
into ``SecurityInspector``, and cleared at shutdown.  Entries are created on
the first filter submission of a session, replaced wholesale by each later
submission, and removed on an explicit clear or when the host reports the
session expired.  Nothing is persisted.

**Concurrency:** every access goes through one lock.  Concurrent ``put``
calls for the same session resolve last-write-wins; a reader never sees a
mix of two contexts because contexts are immutable values.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from securityinspector.errors import ContextMissing
from securityinspector.models import QueryContext

logger = logging.getLogger(__name__)


class QueryContextCache:
    """Thread-safe, in-memory mapping of session id to ``QueryContext``."""

    def __init__(self) -> None:
        self._contexts: dict[str, QueryContext] = {}
        self._lock = threading.Lock()

    def put(self, session_id: str, context: QueryContext) -> None:
        """Store ``context`` for the session, replacing any previous one."""
        with self._lock:
            replaced = session_id in self._contexts
            self._contexts[session_id] = context
        logger.info(
            "%s query context for session %s (kind=%s, pivot=%s)",
            "Replaced" if replaced else "Stored", session_id, context.kind.value, context.pivot,
        )

    def get(self, session_id: str) -> Optional[QueryContext]:
        """Return the cached context, or ``None`` if filters were never set."""
        with self._lock:
            return self._contexts.get(session_id)

    def require(self, session_id: str) -> QueryContext:
        """Return the cached context.

        Raises:
            ContextMissing: If nothing is cached for the session.
        """
        context = self.get(session_id)
        if context is None:
            raise ContextMissing(session_id)
        return context

    def remove(self, session_id: str) -> bool:
        """Drop the session's context.  Returns whether one was present."""
        with self._lock:
            removed = self._contexts.pop(session_id, None) is not None
        if removed:
            logger.info("Removed query context for session %s", session_id)
        return removed

    def expire(self, session_id: str) -> None:
        """Host notification that a session expired."""
        with self._lock:
            expired = self._contexts.pop(session_id, None) is not None
        if expired:
            logger.info("Session %s expired; query context discarded", session_id)

    def contains(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._contexts

    def clear(self) -> None:
        """Drop every entry.  Called at host shutdown."""
        with self._lock:
            count = len(self._contexts)
            self._contexts.clear()
        logger.info("Cleared %d query contexts", count)

    def __contains__(self, session_id: str) -> bool:
        return self.contains(session_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)
