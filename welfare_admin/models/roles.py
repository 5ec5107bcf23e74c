"""Dashboard roles and the permission keys looked up for bulk actions."""

from enum import Enum
from typing import Dict

from .action_models import BulkActionKind


class Role(str, Enum):
    """System user roles."""
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"
    VIEWER = "viewer"


class PermissionAction(str, Enum):
    """Action column of the permissions table."""
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    APPROVE = "approve"


# Permission row consulted before each bulk action kind runs
BULK_ACTION_PERMISSIONS: Dict[BulkActionKind, PermissionAction] = {
    BulkActionKind.DELETE: PermissionAction.DELETE,
    BulkActionKind.APPROVE: PermissionAction.APPROVE,
    BulkActionKind.REJECT: PermissionAction.APPROVE,
    BulkActionKind.STATUS_CHANGE: PermissionAction.WRITE,
    BulkActionKind.EMAIL: PermissionAction.WRITE,
}


def parse_role(value: str) -> Role:
    """Map a stored role string to a Role, unknown values fall back to USER."""
    try:
        return Role(value)
    except ValueError:
        return Role.USER


def is_admin(role: Role) -> bool:
    return role == Role.ADMIN
