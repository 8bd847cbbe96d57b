"""
Impersonation-Scoped Evaluation.

Permission checks for a report run with the authority of the pivot user,
not the administrator who asked for the report.  The ambient identity is
held in a ``contextvars.ContextVar``: each thread (and each asyncio task)
sees its own value, so an impersonation on one request thread is invisible
to every other request.

**Guarantees:**

* The ambient identity is captured before switching and restored in a
  ``finally`` block -- on normal return and when the wrapped evaluation
  raises.  A reused worker thread never inherits the pivot's authority.
* An unresolvable identity short-circuits *before* the switch; nothing is
  evaluated under the wrong authority.
* Scopes do not nest.  Entering one while another is active on the same
  thread raises ``ImpersonationError``.
"""

from __future__ import annotations

import contextlib
import contextvars
import logging
from typing import Callable, Iterator, Optional, TypeVar

from securityinspector.errors import IdentityUnresolvable, ImpersonationError
from securityinspector.host import IdentityStore
from securityinspector.models import ANONYMOUS, Identity

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ambient_identity: contextvars.ContextVar[Identity] = contextvars.ContextVar(
    "securityinspector_ambient_identity", default=ANONYMOUS
)
_impersonating: contextvars.ContextVar[Optional[Identity]] = contextvars.ContextVar(
    "securityinspector_impersonating", default=None
)


def current_identity() -> Identity:
    """Return the identity permission checks currently run as."""
    return _ambient_identity.get()


def is_impersonating() -> bool:
    return _impersonating.get() is not None


@contextlib.contextmanager
def bind_caller(identity: Identity) -> Iterator[Identity]:
    """Bind the authenticated caller of a request as the ambient identity.

    Used by the transport layer at the start of a request.  Not an
    impersonation: it does not count against the no-nesting rule, but it
    may not be entered from inside an impersonation scope either.
    """
    if is_impersonating():
        raise ImpersonationError("Cannot bind a caller inside an impersonation scope.")
    token = _ambient_identity.set(identity)
    try:
        yield identity
    finally:
        _ambient_identity.reset(token)


@contextlib.contextmanager
def impersonate(identity: Identity) -> Iterator[Identity]:
    """Run the enclosed block with ``identity`` as the ambient identity.

    Yields:
        The identity that was active before the switch.

    Raises:
        ImpersonationError: If an impersonation is already active.
    """
    active = _impersonating.get()
    if active is not None:
        raise ImpersonationError(
            f"Already impersonating '{active.name}'; cannot impersonate "
            f"'{identity.name}'. Impersonation scopes do not nest."
        )

    previous = _ambient_identity.get()
    flag_token = _impersonating.set(identity)
    identity_token = _ambient_identity.set(identity)
    logger.debug("Impersonating '%s' (caller '%s')", identity.name, previous.name)
    try:
        yield previous
    finally:
        _ambient_identity.reset(identity_token)
        _impersonating.reset(flag_token)
        logger.debug("Restored ambient identity '%s'", _ambient_identity.get().name)


def with_identity(store: IdentityStore, name: str, fn: Callable[[], T]) -> T:
    """Resolve ``name`` and call ``fn`` with that identity's authority.

    Args:
        store: Host identity store.
        name: Name of the identity to impersonate.
        fn: Zero-argument evaluation to run inside the scope.

    Returns:
        Whatever ``fn`` returns.

    Raises:
        IdentityUnresolvable: If ``name`` does not resolve.  ``fn`` is not
            called.
        ImpersonationError: If called inside another impersonation scope.
    """
    identity = store.resolve_identity(name)
    if identity is None:
        raise IdentityUnresolvable(name)
    with impersonate(identity):
        return fn()
