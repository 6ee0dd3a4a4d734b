"""
Role based permission checks.

A user carries a list of role grants, each ``{"resource": ..., "permissions": [...]}``.
The resource is ``*``, a database name, or a ``database.collection`` name.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

READ = "read"
WRITE = "write"
ADMIN = "admin"

WILDCARD = "*"


@dataclass(frozen=True, slots=True)
class RoleGrant:
    resource: str
    permissions: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, resource: str, *permissions: str) -> "RoleGrant":
        return cls(resource, frozenset(permissions))

    @classmethod
    def from_document(cls, doc: Mapping[str, object]) -> "RoleGrant | None":
        resource = doc.get("resource")
        permissions = doc.get("permissions")
        if not isinstance(resource, str) or isinstance(permissions, (str, bytes)):
            return None
        if not isinstance(permissions, Iterable):
            return None
        return cls(resource, frozenset(p for p in permissions if isinstance(p, str)))

    def to_document(self) -> dict[str, object]:
        return {"resource": self.resource, "permissions": sorted(self.permissions)}

    def covers(self, resource: str) -> bool:
        database = resource.split(".", 1)[0]
        return self.resource in (resource, database, WILDCARD)


def grants_of(user: Mapping[str, object] | None) -> list[RoleGrant]:
    if not isinstance(user, Mapping):
        return []
    roles = user.get("roles")
    if not isinstance(roles, (list, tuple)):
        return []
    grants = []
    for role in roles:
        if isinstance(role, RoleGrant):
            grants.append(role)
        elif isinstance(role, Mapping):
            grant = RoleGrant.from_document(role)
            if grant is not None:
                grants.append(grant)
    return grants


def has_permission(user: Mapping[str, object] | None, resource: str, permission: str) -> bool:
    """
    True when one of the user's grants covers resource with permission.

    A ``*`` grant holding ``admin`` allows everything. Never raises.
    """
    grants = grants_of(user)
    if not grants or not isinstance(resource, str):
        return False

    if any(g.resource == WILDCARD and ADMIN in g.permissions for g in grants):
        return True

    return any(g.covers(resource) and permission in g.permissions for g in grants)
