"""
Visibility policy for pipeline records and stored files.

A principal resolves to an AccessScope per record family. The same scope is
used two ways: as a SQL predicate for list queries and as an in-memory check
against a single fetched record, so listing and download authorization can
never disagree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import false, or_
from sqlalchemy.sql.elements import ColumnElement

from access_control.roles import Principal, Role
from models.user_file import FileEntityType, UserFile
from services.errors import AccessDeniedError, NotFoundError

logger = logging.getLogger(__name__)


class ScopeKind(StrEnum):
    FULL = "full"
    SCOPED = "scoped"
    DENIED = "denied"


# File types every admin may see regardless of uploader
ADMIN_SHARED_FILE_TYPES: frozenset[str] = frozenset({
    FileEntityType.PROPOSAL.value,
    FileEntityType.CONTRACT.value,
    FileEntityType.SIGNED_CONTRACT.value,
    FileEntityType.HARDBOUND_CONTRACT.value,
    FileEntityType.CUSTOM_TEMPLATE.value,
})


@dataclass(frozen=True)
class AccessScope:
    """What part of a record family a principal may read."""

    kind: ScopeKind
    owner_id: Optional[UUID] = None
    shared_categories: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def full(cls) -> AccessScope:
        return cls(kind=ScopeKind.FULL)

    @classmethod
    def denied(cls) -> AccessScope:
        return cls(kind=ScopeKind.DENIED)

    @classmethod
    def owned_by(cls, owner_id: UUID, shared_categories: frozenset[str] = frozenset()) -> AccessScope:
        return cls(kind=ScopeKind.SCOPED, owner_id=owner_id, shared_categories=shared_categories)

    @property
    def is_unrestricted(self) -> bool:
        return self.kind == ScopeKind.FULL

    def permits(self, *, owner_id: Optional[UUID], category: Optional[str] = None) -> bool:
        if self.kind == ScopeKind.FULL:
            return True
        if self.kind == ScopeKind.DENIED:
            return False
        if category is not None and category in self.shared_categories:
            return True
        return owner_id is not None and owner_id == self.owner_id

    def clause(
        self,
        owner_column: Any,
        category_column: Any = None,
    ) -> ColumnElement[bool] | None:
        """SQL predicate for this scope; None means no restriction."""
        if self.kind == ScopeKind.FULL:
            return None
        if self.kind == ScopeKind.DENIED:
            return false()
        owner_match = owner_column == self.owner_id
        if self.shared_categories and category_column is not None:
            return or_(category_column.in_(sorted(self.shared_categories)), owner_match)
        return owner_match


def _has_full_file_access(principal: Principal) -> bool:
    return principal.role == Role.SUPER_ADMIN or (
        principal.role == Role.SALES and principal.is_master_sales
    )


def resolve_file_scope(principal: Principal) -> AccessScope:
    """
    Resolve which stored files a principal may list or download.

    Order matters: the tiers overlap (an admin also owns files), so full
    access is checked before the admin scope, and the admin scope before
    owner-only.
    """
    if _has_full_file_access(principal):
        return AccessScope.full()
    if principal.role == Role.ADMIN:
        return AccessScope.owned_by(principal.id, ADMIN_SHARED_FILE_TYPES)
    return AccessScope.owned_by(principal.id)


_PIPELINE_RULES: dict[Role, ScopeKind] = {
    Role.SUPER_ADMIN: ScopeKind.FULL,
    Role.ADMIN: ScopeKind.FULL,
    Role.SALES: ScopeKind.SCOPED,  # master sales are widened to FULL below
    Role.SOCIAL_MEDIA: ScopeKind.FULL,
}

_missing_rules = set(Role) - set(_PIPELINE_RULES)
if _missing_rules:
    raise RuntimeError(f"No pipeline visibility rule for roles: {sorted(_missing_rules)}")


def resolve_pipeline_scope(principal: Principal) -> AccessScope:
    """Resolve which proposals/contracts a principal may list."""
    if principal.role == Role.SALES and principal.is_master_sales:
        return AccessScope.full()
    kind = _PIPELINE_RULES[principal.role]
    if kind == ScopeKind.SCOPED:
        return AccessScope.owned_by(principal.id)
    return AccessScope(kind=kind)


def authorize_file(principal: Principal, record: Optional[UserFile]) -> UserFile:
    """
    Check a single fetched file against the principal's file scope.

    Returns the record when allowed. Raises NotFoundError when there is no
    record and AccessDeniedError when the scope rejects it.
    """
    if record is None:
        raise NotFoundError("File not found")

    scope = resolve_file_scope(principal)
    if not scope.permits(owner_id=record.uploaded_by, category=record.entity_type):
        logger.warning(
            "File access denied",
            extra={
                "user_id": str(principal.id),
                "role": principal.role.value,
                "file_id": str(record.id),
                "entity_type": record.entity_type,
            },
        )
        raise AccessDeniedError("Access denied")
    return record
