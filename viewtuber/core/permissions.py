"""
Field-level access grants for project members.

A member's permission set is a list of strings of the form
``"<resource>.<field>:<read|write>"`` (e.g. ``"video.title:write"``), or the
sentinel ``"all"`` which grants everything. A grant field of ``*`` covers
every field of its resource.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from viewtuber.errors import MalformedPermissionError, NoPermittedFieldsError

ALL = "all"
ACCESS_LEVELS = ("read", "write")
WILDCARD = "*"


@dataclass(frozen=True)
class Permission:
    resource: str
    field: str
    access: str

    def matches(self, resource: str, action: str, field: Optional[str] = None) -> bool:
        if self.resource != resource or self.access != action:
            return False
        if field is None or self.field == WILDCARD:
            return True
        return self.field == field


def parse_permission(raw: str) -> Permission:
    """Parse ``"resource.field:access"``; anything else is malformed."""
    if not isinstance(raw, str) or raw.count(":") != 1:
        raise MalformedPermissionError(f"Malformed permission: {raw!r}")

    resource_field, access = raw.split(":")
    if resource_field.count(".") != 1:
        raise MalformedPermissionError(f"Malformed permission: {raw!r}")

    resource, field = resource_field.split(".")
    if not resource or not field:
        raise MalformedPermissionError(f"Malformed permission: {raw!r}")
    if access not in ACCESS_LEVELS:
        raise MalformedPermissionError(f"Unknown access level in permission: {raw!r}")

    return Permission(resource=resource, field=field, access=access)


def _split_resource(resource: str, field: Optional[str]) -> Tuple[str, Optional[str]]:
    # "video.title" is accepted as shorthand for resource="video", field="title"
    if field is None and "." in resource:
        resource, field = resource.split(".", 1)
    return resource, field


class PermissionSet:
    """Grants parsed once, then queried for every field of a request."""

    def __init__(self, grants: Iterable[str]):
        grants = list(grants or [])
        self.unrestricted = ALL in grants
        # "all" short-circuits, the remaining strings are never parsed
        self.permissions = frozenset() if self.unrestricted else frozenset(
            parse_permission(g) for g in grants
        )

    def allows(self, resource: str, action: str, field: Optional[str] = None) -> bool:
        if self.unrestricted:
            return True
        resource, field = _split_resource(resource, field)
        return any(p.matches(resource, action, field) for p in self.permissions)


def has_permission(grants: Iterable[str], resource: str, action: str, field: Optional[str] = None) -> bool:
    return PermissionSet(grants).allows(resource, action, field)


def validate_grants(grants: Iterable[str]) -> list:
    """Return the grants as a list, raising on the first malformed entry."""
    if grants is None or isinstance(grants, str):
        raise MalformedPermissionError("Permissions must be a list of strings")
    grants = list(grants)
    for g in grants:
        if g != ALL:
            parse_permission(g)
    return grants


def filter_permitted_fields(grants: Iterable[str], resource: str, updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Keep only the keys of `updates` the grants allow writing.

    Raises NoPermittedFieldsError instead of returning an empty update.
    """
    perms = PermissionSet(grants)
    allowed = {k: v for k, v in updates.items() if perms.allows(resource, "write", k)}
    if not allowed:
        raise NoPermittedFieldsError()
    return allowed
