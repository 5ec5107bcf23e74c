"""Bulk action dispatcher: one remote operation over all selected rows."""

import logging
import uuid
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from ..clients.email_client import EmailMessage, default_subject
from ..models import (
    BULK_ACTION_PERMISSIONS,
    ActionCancelled,
    BulkAction,
    BulkActionError,
    BulkActionInProgressError,
    BulkActionKind,
    BulkActionResponse,
    BulkActionSuccess,
    ConfirmationRequired,
    DataSourceError,
    DispatchState,
    EmailSendError,
    EntityDefinition,
    NoRecipientsNotice,
    PendingAction,
    PendingActionNotFoundError,
    Role,
)
from ..models.action_models import DESTRUCTIVE_ACTIONS
from ..tools.selection import SelectionSet
from ..utils.result_cache import ResultCache
from .permissions import resolve_permission

logger = logging.getLogger(__name__)


def resolve_path(row: Optional[dict], path: str) -> Any:
    """Read a dotted path such as 'families.husband_email' from a joined row."""
    value: Any = row
    for part in path.split("."):
        if isinstance(value, list):
            value = value[0] if value else None
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def contact_email(row: Optional[dict], primary: Optional[str], secondary: Optional[str]) -> Optional[str]:
    """Primary contact email, falling back to the secondary one."""
    for path in (primary, secondary):
        if not path:
            continue
        address = resolve_path(row, path)
        if isinstance(address, str) and address.strip():
            return address.strip()
    return None


class BulkActionDispatcher:
    """
    Applies one bulk action to every selected row of a page.

    States: IDLE -> CONFIRMING (destructive actions only) -> INFLIGHT -> IDLE.
    A successful action clears the selection and, for mutations, invalidates
    the entity's cached results after the mutation has completed. A failed
    action leaves the selection untouched so it can be retried.
    """

    def __init__(
        self,
        entity: EntityDefinition,
        data_source,
        cache: ResultCache,
        email_client,
        selection: SelectionSet,
        rows_provider: Callable[[], List[dict]],
        role: Role = Role.USER,
        today: Callable[[], date] = date.today,
    ):
        self.entity = entity
        self.data_source = data_source
        self.cache = cache
        self.email_client = email_client
        self.selection = selection
        self.role = role
        self._rows_provider = rows_provider
        self._today = today
        self._pending: Optional[PendingAction] = None
        self.state = DispatchState.IDLE

    @property
    def pending(self) -> Optional[PendingAction]:
        return self._pending

    async def _permitted(self, kind: BulkActionKind) -> bool:
        resource = self.entity.permission_resource
        if resource is None:
            return True
        return await resolve_permission(self.data_source, self.role, resource, BULK_ACTION_PERMISSIONS[kind])

    async def _refusal(self, action: BulkAction) -> Optional[BulkActionError]:
        """Validate an action against the page's allow-list, the role's permissions and its payload."""
        if not self.entity.allows(action.kind):
            return BulkActionError(
                kind=action.kind,
                message=f"Action '{action.kind.value}' is not available for {self.entity.name}",
                error_code="ACTION_NOT_AVAILABLE",
            )
        if not await self._permitted(action.kind):
            return BulkActionError(
                kind=action.kind,
                message=f"Role '{self.role.value}' may not run '{action.kind.value}'",
                error_code="PERMISSION_DENIED",
            )
        if action.kind == BulkActionKind.STATUS_CHANGE and action.status not in self.entity.status_change_options:
            return BulkActionError(
                kind=action.kind,
                message=f"Status must be one of: {', '.join(self.entity.status_change_options)}",
                error_code="INVALID_STATUS",
            )
        if action.kind == BulkActionKind.EMAIL and not (action.html or action.template):
            return BulkActionError(
                kind=action.kind,
                message="An email needs either an HTML body or a template",
                error_code="INVALID_PAYLOAD",
            )
        return None

    async def dispatch(self, action: BulkAction) -> BulkActionResponse:
        """
        Run an action over the current selection.

        Destructive actions are not run here: they return ConfirmationRequired
        with a PendingAction that must be passed to confirm() or cancel().

        Raises:
            BulkActionInProgressError: If an action is already pending or inflight
        """
        if self.state != DispatchState.IDLE:
            raise BulkActionInProgressError(self.state.value)

        refusal = await self._refusal(action)
        if refusal is not None:
            return refusal
        if self.state != DispatchState.IDLE:
            raise BulkActionInProgressError(self.state.value)

        row_ids = self.selection.ids
        if not row_ids:
            return BulkActionError(kind=action.kind, message="No rows selected", error_code="EMPTY_SELECTION")

        if action.kind in DESTRUCTIVE_ACTIONS:
            self._pending = PendingAction(
                id=uuid.uuid4().hex,
                entity=self.entity.name,
                action=action,
                row_ids=row_ids,
            )
            self.state = DispatchState.CONFIRMING
            return ConfirmationRequired(
                message=f"Delete {len(row_ids)} selected {self.entity.name}? This cannot be undone.",
                pending_action=self._pending,
            )

        return await self._execute(action, row_ids)

    def _take_pending(self, pending_id: str) -> PendingAction:
        if self._pending is None or self._pending.id != pending_id:
            raise PendingActionNotFoundError(pending_id)
        pending = self._pending
        self._pending = None
        self.state = DispatchState.IDLE
        return pending

    async def confirm(self, pending_id: str) -> BulkActionResponse:
        """Run a pending destructive action over the ids captured when it was requested."""
        pending = self._take_pending(pending_id)
        logger.info(f"Confirmed {pending.action.kind.value} of {len(pending.row_ids)} {self.entity.name}")
        return await self._execute(pending.action, pending.row_ids)

    def cancel(self, pending_id: str) -> ActionCancelled:
        """Discard a pending action. Nothing is sent and the selection is kept."""
        pending = self._take_pending(pending_id)
        return ActionCancelled(
            message=f"{pending.action.kind.value.capitalize()} cancelled",
            pending_action_id=pending.id,
        )

    async def _execute(self, action: BulkAction, row_ids: List[str]) -> BulkActionResponse:
        self.state = DispatchState.INFLIGHT
        try:
            if action.kind == BulkActionKind.EMAIL:
                return await self._send_email(action, row_ids)
            return await self._apply_mutation(action, row_ids)
        finally:
            self.state = DispatchState.IDLE

    def _updates_for(self, action: BulkAction) -> Dict[str, Any]:
        status_field = self.entity.status_field or "status"
        if action.kind == BulkActionKind.APPROVE:
            updates = {status_field: "approved", "approval_date": self._today().isoformat()}
            if action.approved_amount is not None:
                updates["approved_amount"] = action.approved_amount
            return updates
        if action.kind == BulkActionKind.REJECT:
            updates = {status_field: "rejected"}
            if action.rejection_reason:
                updates["rejection_reason"] = action.rejection_reason
            return updates
        return {status_field: action.status}

    async def _apply_mutation(self, action: BulkAction, row_ids: List[str]) -> BulkActionResponse:
        table = self.entity.table
        try:
            if action.kind == BulkActionKind.DELETE:
                await self.data_source.delete_many(table, row_ids, id_field=self.entity.id_field)
            else:
                await self.data_source.update_many(
                    table,
                    row_ids,
                    self._updates_for(action),
                    id_field=self.entity.id_field,
                )
        except (DataSourceError, httpx.HTTPError) as e:
            logger.warning(f"Bulk {action.kind.value} on {self.entity.name} failed: {e}")
            return BulkActionError(
                kind=action.kind,
                message=f"Failed to {action.kind.value} {len(row_ids)} rows: {e}",
                error_code="MUTATION_FAILED",
            )

        self.cache.invalidate(self.entity.name)
        self.selection.clear()
        logger.info(f"Bulk {action.kind.value} applied to {len(row_ids)} {self.entity.name}")
        return BulkActionSuccess(
            kind=action.kind,
            message=f"{action.kind.value.capitalize()} applied to {len(row_ids)} rows",
            affected_ids=row_ids,
        )

    def _collect_recipients(self, row_ids: List[str]) -> Tuple[List[str], List[str]]:
        rows_by_id = {str(row.get(self.entity.id_field)): row for row in self._rows_provider()}
        recipients: List[str] = []
        skipped: List[str] = []
        for row_id in row_ids:
            address = contact_email(
                rows_by_id.get(row_id),
                self.entity.primary_email_field,
                self.entity.secondary_email_field,
            )
            if address is None:
                skipped.append(row_id)
            elif address not in recipients:
                recipients.append(address)
        return recipients, skipped

    async def _send_email(self, action: BulkAction, row_ids: List[str]) -> BulkActionResponse:
        recipients, skipped = self._collect_recipients(row_ids)
        if not recipients:
            return NoRecipientsNotice(
                message="None of the selected rows has an email address",
                skipped_ids=skipped,
            )

        message = EmailMessage(
            to=recipients,
            subject=action.subject or default_subject(action.template),
            html=action.html,
            template=action.template,
            data=action.data,
        )
        try:
            await self.email_client.send(message)
        except (EmailSendError, httpx.HTTPError) as e:
            logger.warning(f"Bulk email for {self.entity.name} failed: {e}")
            return BulkActionError(kind=action.kind, message=str(e), error_code="EMAIL_FAILED")

        self.selection.clear()
        if skipped:
            logger.info(f"Skipped {len(skipped)} rows without an email address")
        return BulkActionSuccess(
            kind=action.kind,
            message=f"Email sent to {len(recipients)} recipients",
            affected_ids=[row_id for row_id in row_ids if row_id not in skipped],
            recipients=recipients,
        )
