"""Exceptions raised by the filter, selection and bulk action layers."""

from typing import Any, List, Optional


class WelfareAdminError(Exception):
    """Base class for all service errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class UnknownEntityError(WelfareAdminError):
    """Raised when an entity name is not in the catalog."""

    def __init__(self, entity: str):
        self.entity = entity
        super().__init__(f"Unknown entity '{entity}'")


class UnknownFieldError(WelfareAdminError):
    """Raised when a predicate references a field the entity does not declare."""

    def __init__(self, entity: str, field: str, available_fields: List[str]):
        self.entity = entity
        self.field = field
        self.available_fields = available_fields
        super().__init__(f"Field '{field}' is not declared for entity '{entity}'")


class InvalidOperatorError(WelfareAdminError):
    """Raised when an operator does not apply to the field's type."""

    def __init__(self, field: str, operator: str, allowed: List[str]):
        self.field = field
        self.operator = operator
        self.allowed = allowed
        super().__init__(f"Operator '{operator}' does not apply to field '{field}'")


class DataSourceError(WelfareAdminError):
    """Raised when the tabular backend rejects a fetch or mutation."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class EmailSendError(WelfareAdminError):
    """Raised when the email function reports a failure."""

    def __init__(self, message: str, details: Any = None):
        self.details = details
        super().__init__(message)


class BulkActionInProgressError(WelfareAdminError):
    """Raised when a bulk action is requested while another one is pending or inflight."""

    def __init__(self, state: str):
        self.state = state
        super().__init__(f"Another bulk action is already {state}")


class PendingActionNotFoundError(WelfareAdminError):
    """Raised when confirming or cancelling an unknown pending action."""

    def __init__(self, pending_id: str):
        self.pending_id = pending_id
        super().__init__(f"No pending action with id '{pending_id}'")
