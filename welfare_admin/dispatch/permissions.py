"""Role and permission lookups against the system_users and permissions tables."""

import logging
from typing import Optional

import httpx

from ..models import (
    ConditionOperator,
    DataSourceError,
    FilterCondition,
    FilterGroup,
    LogicalOperator,
    PermissionAction,
    Role,
    parse_role,
)

logger = logging.getLogger(__name__)


async def resolve_user_role(data_source, auth_user_id: Optional[str]) -> Role:
    """Look up a user's role in system_users, defaulting to USER when unknown."""
    if not auth_user_id:
        return Role.USER
    try:
        row = await data_source.fetch_one(
            "system_users",
            select="role, status",
            expression=FilterCondition(field="auth_user_id", operator=ConditionOperator.EQ, value=auth_user_id),
        )
    except (DataSourceError, httpx.HTTPError) as e:
        logger.warning(f"Role lookup for {auth_user_id} failed, defaulting to user: {e}")
        return Role.USER
    if not row:
        return Role.USER
    return parse_role(row.get("role", "user"))


async def resolve_permission(data_source, role: Role, resource: str, action: PermissionAction) -> bool:
    """
    Whether the permissions table allows a role to perform an action on a resource.

    A missing row, a row without `allowed`, or a failed lookup all deny.
    """
    try:
        row = await data_source.fetch_one(
            "permissions",
            select="allowed",
            expression=FilterGroup(
                operator=LogicalOperator.AND,
                value=[
                    FilterCondition(field="role", operator=ConditionOperator.EQ, value=role.value),
                    FilterCondition(field="resource", operator=ConditionOperator.EQ, value=resource),
                    FilterCondition(field="action", operator=ConditionOperator.EQ, value=action.value),
                ],
            ),
        )
    except (DataSourceError, httpx.HTTPError) as e:
        logger.warning(f"Permission lookup for {role.value}/{resource}/{action.value} failed, denying: {e}")
        return False
    return bool(row and row.get("allowed"))
