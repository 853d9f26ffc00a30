"""Permission sets and the permission evaluator."""

from __future__ import annotations

from collections.abc import Iterable

WILDCARD = "*"
_SEPARATOR = ","


class PermissionSet(frozenset[str]):
    """Immutable set of `resource.action` permission strings.

    Entries are whitespace-trimmed and empty entries are dropped. An entry
    containing a comma raises ValueError. The storage form is the
    comma-joined, sorted list of entries so the same set always serializes to
    the same text.
    """

    def __new__(cls, permissions: Iterable[str] = ()) -> PermissionSet:
        normalized = [item.strip() for item in permissions if item is not None]
        for item in normalized:
            if _SEPARATOR in item:
                raise ValueError(f"Permission entries must not contain {_SEPARATOR!r}: {item!r}")
        return super().__new__(cls, (item for item in normalized if item))

    @classmethod
    def parse(cls, stored: str | None) -> PermissionSet:
        """Build a permission set from its comma-joined storage form."""
        if not stored:
            return cls()
        return cls(stored.split(_SEPARATOR))

    def serialize(self) -> str:
        """Render the comma-joined storage form."""
        return _SEPARATOR.join(self.ordered())

    def ordered(self) -> list[str]:
        """Return entries in stable sorted order."""
        return sorted(self)

    @property
    def is_wildcard(self) -> bool:
        """Return True when the set grants every permission."""
        return WILDCARD in self

    def __repr__(self) -> str:
        return f"PermissionSet({self.ordered()!r})"


def has_permissions(granted: str | Iterable[str] | None, required: Iterable[str]) -> bool:
    """Return True when granted permissions contain every required permission.

    `granted` may be the comma-joined storage form or any iterable of strings.
    A `*` entry grants everything; otherwise matching is exact set containment.
    """
    required_items = [item.strip() for item in required]
    if not required_items:
        return True

    if isinstance(granted, PermissionSet):
        granted_set = granted
    elif granted is None or isinstance(granted, str):
        granted_set = PermissionSet.parse(granted)
    else:
        granted_set = PermissionSet(granted)

    if not granted_set:
        return False
    if granted_set.is_wildcard:
        return True
    return all(item in granted_set for item in required_items)
