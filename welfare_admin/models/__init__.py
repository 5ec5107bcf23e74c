"""Data models for the welfare administration service."""

from .filter_models import (
    ConditionOperator,
    FieldDefinition,
    FieldOption,
    FieldType,
    FilterCondition,
    FilterExpression,
    FilterGroup,
    FilterOperator,
    FilterPredicate,
    LogicalOperator,
    QueryState,
    default_operator,
    valid_operators,
)
from .action_models import (
    ActionCancelled,
    BulkAction,
    BulkActionError,
    BulkActionKind,
    BulkActionResponse,
    BulkActionSuccess,
    ConfirmationRequired,
    DispatchState,
    EmailTemplate,
    NoRecipientsNotice,
    PendingAction,
)
from .entity_catalog import ENTITY_CATALOG, EntityDefinition, get_entity
from .entities import hydrate_row
from .errors import (
    BulkActionInProgressError,
    DataSourceError,
    EmailSendError,
    InvalidOperatorError,
    PendingActionNotFoundError,
    UnknownEntityError,
    UnknownFieldError,
    WelfareAdminError,
)
from .roles import BULK_ACTION_PERMISSIONS, PermissionAction, Role, is_admin, parse_role

__all__ = [
    "ConditionOperator",
    "FieldDefinition",
    "FieldOption",
    "FieldType",
    "FilterCondition",
    "FilterExpression",
    "FilterGroup",
    "FilterOperator",
    "FilterPredicate",
    "LogicalOperator",
    "QueryState",
    "default_operator",
    "valid_operators",
    "ActionCancelled",
    "BulkAction",
    "BulkActionError",
    "BulkActionKind",
    "BulkActionResponse",
    "BulkActionSuccess",
    "ConfirmationRequired",
    "DispatchState",
    "EmailTemplate",
    "NoRecipientsNotice",
    "PendingAction",
    "ENTITY_CATALOG",
    "EntityDefinition",
    "get_entity",
    "hydrate_row",
    "BulkActionInProgressError",
    "DataSourceError",
    "EmailSendError",
    "InvalidOperatorError",
    "PendingActionNotFoundError",
    "UnknownEntityError",
    "UnknownFieldError",
    "WelfareAdminError",
    "Role",
    "BULK_ACTION_PERMISSIONS",
    "PermissionAction",
    "is_admin",
    "parse_role",
]
