"""
Roles and the request principal.

Every role string stored on a user must map to a Role member; visibility
rules are keyed on this enum rather than on raw strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID


class Role(StrEnum):
    SALES = "sales"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    SOCIAL_MEDIA = "social_media"


def parse_role(value: str | None) -> Role | None:
    """Return the Role for a stored role string, or None if it is not recognised."""
    if not value:
        return None
    try:
        return Role(value.strip().lower())
    except ValueError:
        return None


@dataclass(frozen=True)
class Principal:
    """The authenticated user a request is evaluated for. Read-only per request."""

    id: UUID
    role: Role
    is_master_sales: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role in {Role.ADMIN, Role.SUPER_ADMIN}
