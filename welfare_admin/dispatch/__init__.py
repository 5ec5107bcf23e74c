"""Bulk action dispatch and page control."""

from .bulk_dispatcher import BulkActionDispatcher, contact_email, resolve_path
from .page_controller import PageController, RowsError, RowsResponse
from .permissions import resolve_permission, resolve_user_role

__all__ = [
    "BulkActionDispatcher",
    "contact_email",
    "resolve_path",
    "PageController",
    "RowsError",
    "RowsResponse",
    "resolve_permission",
    "resolve_user_role",
]
