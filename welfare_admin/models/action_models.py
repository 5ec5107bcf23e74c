"""Bulk action request and response models."""

from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field
from enum import Enum


class BulkActionKind(str, Enum):
    """Group operations offered on selected rows."""
    DELETE = "delete"
    STATUS_CHANGE = "status"
    APPROVE = "approve"
    REJECT = "reject"
    EMAIL = "email"


# Actions that need a human confirmation before they run
DESTRUCTIVE_ACTIONS = frozenset({BulkActionKind.DELETE})


class DispatchState(str, Enum):
    """Per-page state of the bulk action dispatcher."""
    IDLE = "idle"
    CONFIRMING = "confirming"
    INFLIGHT = "inflight"


class EmailTemplate(str, Enum):
    """Named templates rendered by the email function."""
    NOTIFICATION = "notification"
    APPROVAL = "approval"
    REPORT = "report"
    REMINDER = "reminder"


class BulkAction(BaseModel):
    """A tagged bulk operation and its payload."""
    kind: BulkActionKind = Field(..., description="Action kind")
    status: Optional[str] = Field(None, description="Target status for status changes")
    approved_amount: Optional[float] = Field(None, description="Approved amount stamped on approval")
    rejection_reason: Optional[str] = Field(None, description="Reason stored on rejection")
    subject: Optional[str] = Field(None, description="Email subject")
    html: Optional[str] = Field(None, description="Raw email HTML")
    template: Optional[EmailTemplate] = Field(None, description="Named email template")
    data: Optional[Dict[str, Any]] = Field(None, description="Template substitution data")


class PendingAction(BaseModel):
    """A destructive action waiting for confirmation."""
    id: str = Field(..., description="Pending action identifier")
    entity: str = Field(..., description="Entity name")
    action: BulkAction = Field(..., description="The requested action")
    row_ids: List[str] = Field(..., description="Selected identifiers at request time")


class BulkActionSuccess(BaseModel):
    """The action settled successfully."""
    type: str = Field(default="success", description="Response type")
    kind: BulkActionKind = Field(..., description="Action kind")
    message: str = Field(..., description="Human-readable message")
    affected_ids: List[str] = Field(default_factory=list, description="Identifiers the action applied to")
    recipients: Optional[List[str]] = Field(None, description="Email recipients")


class BulkActionError(BaseModel):
    """The action failed or was refused."""
    type: str = Field(default="error", description="Response type")
    kind: Optional[BulkActionKind] = Field(None, description="Action kind")
    message: str = Field(..., description="Error message")
    error_code: str = Field(..., description="Error code")


class ConfirmationRequired(BaseModel):
    """A destructive action needs confirmation."""
    type: str = Field(default="confirmation_required", description="Response type")
    message: str = Field(..., description="Confirmation prompt")
    pending_action: PendingAction = Field(..., description="Action to confirm or cancel")


class ActionCancelled(BaseModel):
    """The user declined a pending action."""
    type: str = Field(default="cancelled", description="Response type")
    message: str = Field(..., description="Human-readable message")
    pending_action_id: str = Field(..., description="Discarded pending action")


class NoRecipientsNotice(BaseModel):
    """None of the selected rows has a usable email address."""
    type: str = Field(default="no_recipients", description="Response type")
    message: str = Field(..., description="Notice shown to the user")
    skipped_ids: List[str] = Field(default_factory=list, description="Rows without an address")


# Union type for dispatcher responses
BulkActionResponse = Union[
    BulkActionSuccess,
    BulkActionError,
    ConfirmationRequired,
    ActionCancelled,
    NoRecipientsNotice,
]
