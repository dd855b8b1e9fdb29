"""
Read-time visibility rules for contracts and alerts.

Admins see everything; every other role sees only records whose parent
contract they own. All read paths (SQL queries, in-memory filtering, single
record checks) go through VisibilityFilter.owner_scope() so the rule lives
in exactly one place.

This never influences what the scanner writes.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, TypeVar

T = TypeVar("T")


class Role(Enum):
    """Caller role as far as visibility is concerned."""

    ADMIN = "admin"
    MEMBER = "member"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Role":
        """Map an upstream role string onto a Role. Anything but 'admin' is a member."""
        if value is not None and value.strip().lower() == cls.ADMIN.value:
            return cls.ADMIN
        return cls.MEMBER


@dataclass(frozen=True)
class Viewer:
    """The authenticated caller of a read API."""

    user_id: int
    role: Role = Role.MEMBER

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class VisibilityFilter:
    """
    Restricts result sets to what a viewer may see.

    Usage:
        scope = VisibilityFilter.owner_scope(viewer)   # None => unrestricted
        clause, params = VisibilityFilter.sql_clause(viewer, "c.created_by", 2)
        mine = VisibilityFilter.apply(viewer, alerts, lambda a: a.owner_id)
    """

    @staticmethod
    def owner_scope(viewer: Viewer) -> Optional[int]:
        """Owner id the viewer is restricted to, or None when unrestricted."""
        if viewer.role is Role.ADMIN:
            return None
        return viewer.user_id

    @classmethod
    def can_view(cls, viewer: Viewer, owner_id: Optional[int]) -> bool:
        scope = cls.owner_scope(viewer)
        return scope is None or owner_id == scope

    @classmethod
    def sql_clause(
        cls, viewer: Viewer, owner_column: str, param_index: int
    ) -> tuple[str, list]:
        """
        Build an ' AND <owner_column> = $n' fragment for asyncpg queries.

        Returns ("", []) for unrestricted viewers.
        """
        scope = cls.owner_scope(viewer)
        if scope is None:
            return "", []
        return f" AND {owner_column} = ${param_index}", [scope]

    @classmethod
    def apply(
        cls,
        viewer: Viewer,
        items: Iterable[T],
        owner_of: Callable[[T], Optional[int]],
    ) -> list[T]:
        """Filter an in-memory collection."""
        return [item for item in items if cls.can_view(viewer, owner_of(item))]
