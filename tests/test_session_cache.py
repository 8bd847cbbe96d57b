"""
Tests for securityinspector.session_cache -- Session Query Context Cache.

Covers: put/get round-trip, explicit absence, wholesale replacement,
removal, expiry, shutdown clear, and concurrent last-write-wins.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from securityinspector.errors import ContextMissing
from securityinspector.models import FilterCriteria, QueryContext, ReportKind, SelectionMode
from securityinspector.session_cache import QueryContextCache


def _make_context(
    pivot: str = "alice",
    regex: str = "proj-.*",
    kind: ReportKind = ReportKind.JOBS,
) -> QueryContext:
    return QueryContext(kind=kind, criteria=FilterCriteria(include_regex=regex), pivot=pivot)


# ---------------------------------------------------------------------------
# 1. Basic operations
# ---------------------------------------------------------------------------

class TestBasicOperations:
    def test_put_then_get_round_trip(self):
        cache = QueryContextCache()
        ctx = _make_context()
        cache.put("s1", ctx)
        assert cache.get("s1") == ctx
        assert cache.contains("s1") is True
        assert "s1" in cache

    def test_missing_session_returns_none(self):
        cache = QueryContextCache()
        assert cache.get("unknown") is None
        assert cache.contains("unknown") is False

    def test_require_missing_raises_context_missing(self):
        cache = QueryContextCache()
        with pytest.raises(ContextMissing) as excinfo:
            cache.require("unknown")
        assert excinfo.value.session_id == "unknown"

    def test_remove_then_get_returns_none(self):
        cache = QueryContextCache()
        cache.put("s1", _make_context())
        assert cache.remove("s1") is True
        assert cache.get("s1") is None
        assert cache.remove("s1") is False

    def test_put_replaces_wholesale(self):
        cache = QueryContextCache()
        cache.put("s1", QueryContext(
            kind=ReportKind.USERS,
            criteria=FilterCriteria(mode=SelectionMode.SELECTED, selected=("alice",)),
            pivot="proj-a",
        ))
        replacement = _make_context(pivot="bob")
        cache.put("s1", replacement)
        assert cache.get("s1") == replacement
        assert cache.get("s1").criteria.selected == ()
        assert len(cache) == 1

    def test_sessions_are_isolated(self):
        cache = QueryContextCache()
        cache.put("s1", _make_context(pivot="alice"))
        cache.put("s2", _make_context(pivot="bob"))
        cache.remove("s1")
        assert cache.get("s2").pivot == "bob"

    def test_expire_and_clear(self):
        cache = QueryContextCache()
        cache.put("s1", _make_context())
        cache.put("s2", _make_context())
        cache.expire("s1")
        assert "s1" not in cache
        cache.clear()
        assert len(cache) == 0

    def test_contexts_are_immutable(self):
        ctx = _make_context()
        with pytest.raises(Exception):
            ctx.pivot = "mallory"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# 2. Concurrency
# ---------------------------------------------------------------------------

class TestConcurrency:
    def test_sequenced_puts_last_write_wins(self):
        """C1 then C2 for the same session: get returns C2, never a mix."""
        cache = QueryContextCache()
        c1 = _make_context(pivot="alice", regex="a.*")
        c2 = _make_context(pivot="bob", regex="b.*")
        first_done = threading.Event()

        def put_first():
            cache.put("s1", c1)
            first_done.set()

        def put_second():
            first_done.wait(timeout=5)
            cache.put("s1", c2)

        threads = [threading.Thread(target=put_first), threading.Thread(target=put_second)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert cache.get("s1") == c2

    def test_racing_puts_leave_one_complete_context(self):
        cache = QueryContextCache()
        contexts = [_make_context(pivot=f"user{i}", regex=f"r{i}") for i in range(50)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda c: cache.put("shared", c), contexts))

        final = cache.get("shared")
        assert final in contexts
        index = int(final.pivot.removeprefix("user"))
        assert final.criteria.include_regex == f"r{index}"

    def test_concurrent_mixed_operations_across_sessions(self):
        cache = QueryContextCache()

        def session_worker(i: int) -> bool:
            sid = f"s{i}"
            ctx = _make_context(pivot=f"user{i}")
            cache.put(sid, ctx)
            ok = cache.get(sid) == ctx
            cache.remove(sid)
            return ok and cache.get(sid) is None

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(session_worker, range(200)))

        assert all(results)
        assert len(cache) == 0
