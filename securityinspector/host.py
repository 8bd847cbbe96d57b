"""
Host collaborator interfaces and an in-process reference host.

The CI/CD server that embeds the Security Inspector owns the real
directory, identity store, and permission primitive.  The core talks to
them only through the protocols below.

``InMemoryHost`` implements every protocol over plain dictionaries.  It is
a lightweight, in-process model suitable for demonstrations, tests, and
offline audits of an exported permission model -- production hosts plug in
their own adapters.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Protocol, Sequence

import yaml

from securityinspector.models import Entity, EntityKind, Identity, Permission


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

class Directory(Protocol):
    """Enumeration and re-resolution of directory items.

    Implementations raise ``ConnectionError`` / ``OSError`` (or
    ``DirectoryUnavailable``) when the backing store cannot be reached.
    """

    def enumerate_candidates(self, kind: EntityKind) -> Sequence[Entity]:
        ...

    def group_members(self, kind: EntityKind, group: str) -> Optional[Sequence[str]]:
        """Canonical names of the members of ``group``; ``None`` if unknown."""
        ...

    def resolve(self, kind: EntityKind, name: str) -> Optional[Entity]:
        ...


class IdentityStore(Protocol):
    def resolve_identity(self, name: str) -> Optional[Identity]:
        ...


class PermissionChecker(Protocol):
    def check_permission(
        self, identity: Identity, entity: Entity, permission: Permission
    ) -> bool:
        ...

    def is_administrator(self, identity: Identity) -> bool:
        ...


class PermissionSource(Protocol):
    def capability_catalog(self) -> Iterable[Permission]:
        ...


class Host(Directory, IdentityStore, PermissionChecker, PermissionSource, Protocol):
    """Everything ``SecurityInspector`` needs from the embedding server."""


# ---------------------------------------------------------------------------
# In-memory host
# ---------------------------------------------------------------------------

WILDCARD = "*"


class InMemoryHost:
    """Dictionary-backed implementation of ``Host``.

    Grants are keyed by identity name and permission id; each grant lists
    the item names it covers, or ``"*"`` for every item.  Administrators
    hold every permission on every item.
    """

    def __init__(self) -> None:
        self._entities: dict[EntityKind, dict[str, Entity]] = {k: {} for k in EntityKind}
        self._groups: dict[tuple[EntityKind, str], list[str]] = {}
        self._identities: dict[str, Identity] = {}
        self._permissions: list[Permission] = []
        self._grants: dict[str, dict[str, set[str]]] = {}
        self._administrators: set[str] = set()
        self.available = True

    # -- population --

    def add_permission(self, group: str, name: str, label: str = "") -> Permission:
        permission = Permission(group=group, name=name, label=label)
        self._permissions.append(permission)
        return permission

    def add_entity(self, kind: EntityKind, name: str, display_name: str = "") -> Entity:
        entity = Entity(kind=kind, name=name, display_name=display_name)
        self._entities[kind][name] = entity
        return entity

    def add_user(self, name: str, display_name: str = "", administrator: bool = False) -> Identity:
        """Register a user both as a directory item and as an identity."""
        self.add_entity(EntityKind.USER, name, display_name)
        identity = Identity(name=name, display_name=display_name)
        self._identities[name] = identity
        if administrator:
            self._administrators.add(name)
        return identity

    def remove_entity(self, kind: EntityKind, name: str) -> None:
        self._entities[kind].pop(name, None)
        if kind == EntityKind.USER:
            self._identities.pop(name, None)
            self._administrators.discard(name)

    def set_group(self, kind: EntityKind, group: str, members: Iterable[str]) -> None:
        self._groups[(kind, group)] = list(members)

    def grant(self, identity_name: str, permission_id: str, items: Iterable[str] = (WILDCARD,)) -> None:
        self._grants.setdefault(identity_name, {}).setdefault(permission_id, set()).update(items)

    # -- Directory --

    def enumerate_candidates(self, kind: EntityKind) -> list[Entity]:
        self._ensure_available()
        return list(self._entities[kind].values())

    def group_members(self, kind: EntityKind, group: str) -> Optional[list[str]]:
        self._ensure_available()
        members = self._groups.get((kind, group))
        return list(members) if members is not None else None

    def resolve(self, kind: EntityKind, name: str) -> Optional[Entity]:
        self._ensure_available()
        return self._entities[kind].get(name)

    # -- IdentityStore --

    def resolve_identity(self, name: str) -> Optional[Identity]:
        self._ensure_available()
        return self._identities.get(name)

    # -- PermissionChecker --

    def is_administrator(self, identity: Identity) -> bool:
        return identity.name in self._administrators

    def check_permission(
        self, identity: Identity, entity: Entity, permission: Permission
    ) -> bool:
        if self.is_administrator(identity):
            return True
        items = self._grants.get(identity.name, {}).get(permission.permission_id, set())
        return WILDCARD in items or entity.name in items

    # -- PermissionSource --

    def capability_catalog(self) -> list[Permission]:
        return list(self._permissions)

    def _ensure_available(self) -> None:
        if not self.available:
            raise ConnectionError("In-memory directory is offline")


# ---------------------------------------------------------------------------
# YAML loader
# ---------------------------------------------------------------------------

_KIND_KEYS = {"jobs": EntityKind.JOB, "nodes": EntityKind.NODE}


_PERMISSION_KEYS = frozenset({"group", "name", "label"})
_USER_KEYS = frozenset({"name", "display_name", "administrator"})
_ENTITY_KEYS = frozenset({"name", "display_name"})


def _checked_keys(entry: dict, allowed: frozenset, where: str) -> dict:
    """Reject unknown keys and entries without the required ones."""
    unknown = sorted(set(entry) - allowed)
    if unknown:
        raise ValueError(f"{where} has unknown keys: {unknown}")
    required = {"group", "name"} & allowed
    missing = sorted(required - set(entry))
    if missing:
        raise ValueError(f"{where} is missing required keys: {missing}")
    return entry


def load_host_from_yaml(path: str | Path) -> InMemoryHost:
    """Load an exported permission model into an ``InMemoryHost``.

    Example YAML structure::

        host:
          permissions:
            - {group: "Job", name: "Read", label: "Read"}
          users:
            - {name: "admin", administrator: true}
            - {name: "alice", display_name: "Alice Example"}
          jobs: ["proj-a", {name: "infra-x", display_name: "Infra X"}]
          nodes: ["agent-1"]
          groups:
            jobs: {"Projects": ["proj-a"]}
          grants:
            alice: {"Job.Read": ["proj-a"], "Computer.Connect": "*"}

    Args:
        path: Path to the YAML file.

    Returns:
        A populated ``InMemoryHost``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the YAML structure is invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Host model file not found: {path}")

    with open(path, "r") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict) or not isinstance(raw.get("host"), dict):
        raise ValueError("YAML file must contain a top-level 'host' mapping.")
    data = raw["host"]

    host = InMemoryHost()
    for idx, entry in enumerate(data.get("permissions") or []):
        if not isinstance(entry, dict):
            raise ValueError(f"Permission entry at index {idx} must be a mapping.")
        where = f"Permission entry at index {idx}"
        host.add_permission(**_checked_keys(entry, _PERMISSION_KEYS, where))

    for idx, entry in enumerate(data.get("users") or []):
        entry = {"name": entry} if isinstance(entry, str) else entry
        if not isinstance(entry, dict):
            raise ValueError(f"User entry at index {idx} must be a name or a mapping.")
        host.add_user(**_checked_keys(entry, _USER_KEYS, f"User entry at index {idx}"))

    for key, kind in _KIND_KEYS.items():
        for idx, entry in enumerate(data.get(key) or []):
            entry = {"name": entry} if isinstance(entry, str) else entry
            if not isinstance(entry, dict):
                raise ValueError(f"Entry at index {idx} of '{key}' must be a name or a mapping.")
            where = f"Entry at index {idx} of '{key}'"
            host.add_entity(kind, **_checked_keys(entry, _ENTITY_KEYS, where))

    groups = data.get("groups") or {}
    if not isinstance(groups, dict):
        raise ValueError("'groups' must be a mapping.")
    for key, named in groups.items():
        kind = _KIND_KEYS.get(key) or (EntityKind.USER if key == "users" else None)
        if kind is None or not isinstance(named, dict):
            raise ValueError(f"Invalid group section '{key}'.")
        for group, members in named.items():
            if not isinstance(members, list):
                raise ValueError(f"Members of group '{group}' must be a list of names.")
            host.set_group(kind, group, members)

    grants = data.get("grants") or {}
    if not isinstance(grants, dict):
        raise ValueError("'grants' must be a mapping of user to permissions.")
    for user, permissions in grants.items():
        if not isinstance(permissions, dict):
            raise ValueError(f"Grants of '{user}' must be a mapping.")
        for permission_id, items in permissions.items():
            if isinstance(items, str):
                items = [items]
            if not isinstance(items, list) or not all(isinstance(i, str) for i in items):
                raise ValueError(
                    f"Grant '{permission_id}' of '{user}' must be a name or a list of names."
                )
            host.grant(user, permission_id, items)

    return host
