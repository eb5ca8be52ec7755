"""
Access control layer: roles, principals and record visibility.

List queries and single-record checks both go through the scopes resolved
here so the two can never drift apart.
"""

from access_control.roles import Principal, Role, parse_role
from access_control.visibility import (
    ADMIN_SHARED_FILE_TYPES,
    AccessScope,
    ScopeKind,
    authorize_file,
    resolve_file_scope,
    resolve_pipeline_scope,
)

__all__ = [
    "Principal",
    "Role",
    "parse_role",
    "ADMIN_SHARED_FILE_TYPES",
    "AccessScope",
    "ScopeKind",
    "authorize_file",
    "resolve_file_scope",
    "resolve_pipeline_scope",
]
