"""
Unit Tests for the Bulk Action Dispatcher

Covers:
1. Status change, approve and reject mutations
2. Delete confirmation flow
3. Bulk email recipient collection
4. Failure handling and selection preservation
5. Re-entrancy and permission checks
"""
import asyncio
from datetime import date
from unittest.mock import AsyncMock, patch

import pytest

from welfare_admin.clients import TEMPLATE_SUBJECTS
from welfare_admin.dispatch import BulkActionDispatcher, contact_email, resolve_path
from welfare_admin.models import (
    BulkAction,
    BulkActionError,
    BulkActionInProgressError,
    BulkActionKind,
    BulkActionSuccess,
    ConfirmationRequired,
    DataSourceError,
    DispatchState,
    EmailSendError,
    EmailTemplate,
    NoRecipientsNotice,
    PendingActionNotFoundError,
    QueryState,
    Role,
    get_entity,
)
from welfare_admin.utils import cache_key


ROWS = [{"id": "a"}, {"id": "b"}, {"id": "c"}]


def make_dispatcher(entity, source, cache, selection, rows=ROWS, email_client=None, role=Role.MANAGER, allowed=True):
    source.fetch_one.return_value = {"allowed": allowed}
    return BulkActionDispatcher(
        entity=entity,
        data_source=source,
        cache=cache,
        email_client=email_client or AsyncMock(),
        selection=selection,
        rows_provider=lambda: rows,
        role=role,
        today=lambda: date(2024, 6, 1),
    )


async def warm(cache, entity_name="families"):
    await cache.get_or_fetch(cache_key(entity_name, QueryState()), AsyncMock(return_value=ROWS))


# =============================================================================
# MUTATIONS
# =============================================================================
class TestStatusChange:
    """Test the status change scenario over rows a, b, c"""

    @pytest.mark.asyncio
    async def test_status_change_on_selected_rows(self, families, mock_source, cache, selection):
        """Selecting a and b and setting 'inactive' updates exactly those rows"""
        await warm(cache)
        selection.toggle("a", True)
        selection.toggle("b", True)
        dispatcher = make_dispatcher(families, mock_source, cache, selection)

        result = await dispatcher.dispatch(BulkAction(kind=BulkActionKind.STATUS_CHANGE, status="inactive"))

        assert isinstance(result, BulkActionSuccess)
        mock_source.update_many.assert_awaited_once_with(
            "families", ["a", "b"], {"status": "inactive"}, id_field="id"
        )
        assert len(selection) == 0
        assert cache.get_stats()["entries"] == 0
        assert dispatcher.state == DispatchState.IDLE

    @pytest.mark.asyncio
    async def test_invalidation_waits_for_mutation(self, families, mock_source, cache, selection):
        events = []

        async def update_many(*args, **kwargs):
            await asyncio.sleep(0)
            events.append("mutated")

        mock_source.update_many.side_effect = update_many
        selection.toggle("a", True)
        dispatcher = make_dispatcher(families, mock_source, cache, selection)

        with patch.object(cache, "invalidate", side_effect=lambda entity: events.append("invalidated")):
            await dispatcher.dispatch(BulkAction(kind=BulkActionKind.STATUS_CHANGE, status="active"))

        assert events == ["mutated", "invalidated"]

    @pytest.mark.asyncio
    async def test_unknown_status_is_refused(self, families, mock_source, cache, selection):
        selection.toggle("a", True)
        dispatcher = make_dispatcher(families, mock_source, cache, selection)

        result = await dispatcher.dispatch(BulkAction(kind=BulkActionKind.STATUS_CHANGE, status="archived"))

        assert isinstance(result, BulkActionError)
        assert result.error_code == "INVALID_STATUS"
        mock_source.update_many.assert_not_awaited()


class TestApproveReject:
    """Test support request decisions"""

    @pytest.mark.asyncio
    async def test_approve_stamps_date_and_amount(self, support_requests, mock_source, cache, selection):
        selection.toggle("req-1", True)
        dispatcher = make_dispatcher(support_requests, mock_source, cache, selection)

        await dispatcher.dispatch(BulkAction(kind=BulkActionKind.APPROVE, approved_amount=1500))

        mock_source.update_many.assert_awaited_once_with(
            "support_requests",
            ["req-1"],
            {"status": "approved", "approval_date": "2024-06-01", "approved_amount": 1500},
            id_field="id",
        )

    @pytest.mark.asyncio
    async def test_reject_with_reason(self, support_requests, mock_source, cache, selection):
        selection.toggle("req-2", True)
        dispatcher = make_dispatcher(support_requests, mock_source, cache, selection)

        await dispatcher.dispatch(BulkAction(kind=BulkActionKind.REJECT, rejection_reason="Incomplete"))

        updates = mock_source.update_many.await_args.args[2]
        assert updates == {"status": "rejected", "rejection_reason": "Incomplete"}

    @pytest.mark.asyncio
    async def test_action_outside_allow_list(self, families, mock_source, cache, selection):
        selection.toggle("a", True)
        dispatcher = make_dispatcher(families, mock_source, cache, selection)

        result = await dispatcher.dispatch(BulkAction(kind=BulkActionKind.APPROVE))

        assert result.error_code == "ACTION_NOT_AVAILABLE"


class TestMutationFailure:
    """Test that failures keep the selection for retry"""

    @pytest.mark.asyncio
    async def test_failure_preserves_selection_and_cache(self, families, mock_source, cache, selection):
        await warm(cache)
        mock_source.update_many.side_effect = DataSourceError("permission denied", status_code=403)
        selection.toggle("a", True)
        selection.toggle("b", True)
        dispatcher = make_dispatcher(families, mock_source, cache, selection)

        result = await dispatcher.dispatch(BulkAction(kind=BulkActionKind.STATUS_CHANGE, status="inactive"))

        assert isinstance(result, BulkActionError)
        assert result.error_code == "MUTATION_FAILED"
        assert "permission denied" in result.message
        assert selection.ids == ["a", "b"]
        assert cache.get_stats()["entries"] == 1
        assert dispatcher.state == DispatchState.IDLE

    @pytest.mark.asyncio
    async def test_empty_selection(self, families, mock_source, cache, selection):
        dispatcher = make_dispatcher(families, mock_source, cache, selection)
        result = await dispatcher.dispatch(BulkAction(kind=BulkActionKind.STATUS_CHANGE, status="active"))
        assert result.error_code == "EMPTY_SELECTION"


# =============================================================================
# DELETE CONFIRMATION
# =============================================================================
class TestDeleteConfirmation:
    """Test the confirmation step of destructive actions"""

    @pytest.mark.asyncio
    async def test_declined_delete_changes_nothing(self, families, mock_source, cache, selection):
        selection.toggle("a", True)
        selection.toggle("b", True)
        dispatcher = make_dispatcher(families, mock_source, cache, selection)

        prompt = await dispatcher.dispatch(BulkAction(kind=BulkActionKind.DELETE))
        assert isinstance(prompt, ConfirmationRequired)
        assert dispatcher.state == DispatchState.CONFIRMING

        cancelled = dispatcher.cancel(prompt.pending_action.id)

        assert cancelled.pending_action_id == prompt.pending_action.id
        mock_source.delete_many.assert_not_awaited()
        assert selection.ids == ["a", "b"]
        assert dispatcher.state == DispatchState.IDLE

    @pytest.mark.asyncio
    async def test_confirmed_delete_uses_ids_from_request_time(self, families, mock_source, cache, selection):
        selection.toggle("a", True)
        selection.toggle("b", True)
        dispatcher = make_dispatcher(families, mock_source, cache, selection)

        prompt = await dispatcher.dispatch(BulkAction(kind=BulkActionKind.DELETE))
        selection.toggle("c", True)
        result = await dispatcher.confirm(prompt.pending_action.id)

        assert isinstance(result, BulkActionSuccess)
        mock_source.delete_many.assert_awaited_once_with("families", ["a", "b"], id_field="id")
        assert len(selection) == 0

    @pytest.mark.asyncio
    async def test_new_action_refused_while_confirming(self, families, mock_source, cache, selection):
        selection.toggle("a", True)
        dispatcher = make_dispatcher(families, mock_source, cache, selection)
        await dispatcher.dispatch(BulkAction(kind=BulkActionKind.DELETE))

        with pytest.raises(BulkActionInProgressError):
            await dispatcher.dispatch(BulkAction(kind=BulkActionKind.STATUS_CHANGE, status="active"))

    @pytest.mark.asyncio
    async def test_unknown_pending_id(self, families, mock_source, cache, selection):
        dispatcher = make_dispatcher(families, mock_source, cache, selection)
        with pytest.raises(PendingActionNotFoundError):
            await dispatcher.confirm("missing")

    @pytest.mark.asyncio
    async def test_denied_permission_refuses_delete(self, families, mock_source, cache, selection):
        """A permissions row with allowed=false refuses the delete before any prompt"""
        selection.toggle("a", True)
        dispatcher = make_dispatcher(families, mock_source, cache, selection, role=Role.USER, allowed=False)

        result = await dispatcher.dispatch(BulkAction(kind=BulkActionKind.DELETE))

        assert result.error_code == "PERMISSION_DENIED"
        assert dispatcher.pending is None
        mock_source.delete_many.assert_not_awaited()
        lookup = mock_source.fetch_one.await_args
        assert lookup.args[0] == "permissions"
        members = {(c.field, c.value) for c in lookup.kwargs["expression"].value}
        assert members == {("role", "user"), ("resource", "families"), ("action", "delete")}

    @pytest.mark.asyncio
    async def test_missing_permission_row_denies(self, support_requests, mock_source, cache, selection):
        """No permissions row means the action is not allowed"""
        selection.toggle("a", True)
        dispatcher = make_dispatcher(support_requests, mock_source, cache, selection)
        mock_source.fetch_one.return_value = None

        result = await dispatcher.dispatch(BulkAction(kind=BulkActionKind.APPROVE))

        assert result.error_code == "PERMISSION_DENIED"
        mock_source.update_many.assert_not_awaited()
        assert selection.ids == ["a"]

    @pytest.mark.asyncio
    async def test_unguarded_entity_skips_lookup(self, mock_source, cache, selection):
        """Entities without a permission resource only check their allow-list"""
        donors = get_entity("donors")
        selection.toggle("a", True)
        dispatcher = make_dispatcher(donors, mock_source, cache, selection, allowed=False)

        result = await dispatcher.dispatch(BulkAction(kind=BulkActionKind.DELETE))

        mock_source.fetch_one.assert_not_awaited()
        assert isinstance(result, ConfirmationRequired)


class TestReentrancy:
    """Only one action may be inflight per page"""

    @pytest.mark.asyncio
    async def test_second_action_refused_while_inflight(self, families, mock_source, cache, selection):
        release = asyncio.Event()

        async def slow_update(*args, **kwargs):
            await release.wait()

        mock_source.update_many.side_effect = slow_update
        selection.toggle("a", True)
        dispatcher = make_dispatcher(families, mock_source, cache, selection)

        first = asyncio.ensure_future(
            dispatcher.dispatch(BulkAction(kind=BulkActionKind.STATUS_CHANGE, status="inactive"))
        )
        await asyncio.sleep(0)
        assert dispatcher.state == DispatchState.INFLIGHT

        with pytest.raises(BulkActionInProgressError):
            await dispatcher.dispatch(BulkAction(kind=BulkActionKind.STATUS_CHANGE, status="active"))

        release.set()
        assert isinstance(await first, BulkActionSuccess)
        assert mock_source.update_many.await_count == 1


# =============================================================================
# BULK EMAIL
# =============================================================================
class TestBulkEmail:
    """Test recipient collection and sending"""

    ROWS = [
        {"id": "a", "husband_email": "david@example.org"},
        {"id": "b", "husband_email": "   ", "wife_email": None},
        {"id": "c"},
    ]

    @pytest.mark.asyncio
    async def test_only_rows_with_addresses_receive_mail(self, families, mock_source, cache, selection):
        """Three rows selected, one usable address: one send with exactly that address"""
        email_client = AsyncMock()
        selection.select_all(True, ["a", "b", "c"])
        dispatcher = make_dispatcher(families, mock_source, cache, selection, rows=self.ROWS, email_client=email_client)

        result = await dispatcher.dispatch(BulkAction(kind=BulkActionKind.EMAIL, subject="Hello", html="<p>Hi</p>"))

        email_client.send.assert_awaited_once()
        message = email_client.send.await_args.args[0]
        assert message.to == ["david@example.org"]
        assert result.recipients == ["david@example.org"]
        assert result.affected_ids == ["a"]
        assert len(selection) == 0

    @pytest.mark.asyncio
    async def test_secondary_address_and_dedup(self, families, mock_source, cache, selection, outbox):
        rows = [
            {"id": "a", "wife_email": "sarah@example.org"},
            {"id": "b", "husband_email": "sarah@example.org"},
        ]
        selection.select_all(True, ["a", "b"])
        dispatcher = make_dispatcher(families, mock_source, cache, selection, rows=rows, email_client=outbox)

        await dispatcher.dispatch(BulkAction(kind=BulkActionKind.EMAIL, html="<p>Hi</p>"))

        assert len(outbox.sent) == 1
        assert outbox.sent[0].to == ["sarah@example.org"]

    @pytest.mark.asyncio
    async def test_no_recipients_is_a_notice(self, families, mock_source, cache, selection):
        email_client = AsyncMock()
        selection.toggle("c", True)
        dispatcher = make_dispatcher(families, mock_source, cache, selection, rows=self.ROWS, email_client=email_client)

        result = await dispatcher.dispatch(BulkAction(kind=BulkActionKind.EMAIL, html="<p>Hi</p>"))

        assert isinstance(result, NoRecipientsNotice)
        assert result.skipped_ids == ["c"]
        email_client.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_failure_keeps_selection(self, families, mock_source, cache, selection):
        email_client = AsyncMock()
        email_client.send.side_effect = EmailSendError("Resend rejected the request")
        selection.toggle("a", True)
        dispatcher = make_dispatcher(families, mock_source, cache, selection, rows=self.ROWS, email_client=email_client)

        result = await dispatcher.dispatch(BulkAction(kind=BulkActionKind.EMAIL, html="<p>Hi</p>"))

        assert result.error_code == "EMAIL_FAILED"
        assert selection.ids == ["a"]

    @pytest.mark.asyncio
    async def test_email_needs_a_body(self, families, mock_source, cache, selection):
        selection.toggle("a", True)
        dispatcher = make_dispatcher(families, mock_source, cache, selection, rows=self.ROWS)
        result = await dispatcher.dispatch(BulkAction(kind=BulkActionKind.EMAIL, subject="Empty"))
        assert result.error_code == "INVALID_PAYLOAD"

    @pytest.mark.asyncio
    async def test_template_supplies_default_subject(self, families, mock_source, cache, selection, outbox):
        """A template email without a subject gets the template's subject line"""
        selection.toggle("a", True)
        dispatcher = make_dispatcher(families, mock_source, cache, selection, rows=self.ROWS, email_client=outbox)

        await dispatcher.dispatch(
            BulkAction(kind=BulkActionKind.EMAIL, template=EmailTemplate.REMINDER, data={"message": "Documents due"})
        )

        assert outbox.sent[0].subject == TEMPLATE_SUBJECTS[EmailTemplate.REMINDER]
        assert outbox.sent[0].data == {"message": "Documents due"}

    @pytest.mark.asyncio
    async def test_explicit_subject_wins_over_template(self, families, mock_source, cache, selection, outbox):
        selection.toggle("a", True)
        dispatcher = make_dispatcher(families, mock_source, cache, selection, rows=self.ROWS, email_client=outbox)

        await dispatcher.dispatch(BulkAction(kind=BulkActionKind.EMAIL, subject="Hello", template=EmailTemplate.REPORT))

        assert outbox.sent[0].subject == "Hello"


class TestContactResolution:
    """Test reading contact emails from joined rows"""

    def test_resolve_embedded_relation(self):
        row = {"families": {"husband_email": "x@example.org"}}
        assert resolve_path(row, "families.husband_email") == "x@example.org"

    def test_resolve_one_item_list(self):
        row = {"families": [{"husband_email": "x@example.org"}]}
        assert resolve_path(row, "families.husband_email") == "x@example.org"

    def test_missing_path(self):
        assert resolve_path({"families": None}, "families.husband_email") is None
        assert resolve_path(None, "email") is None

    def test_fallback_to_secondary(self):
        row = {"submitter_email": "", "families": {"husband_email": "x@example.org"}}
        assert contact_email(row, "submitter_email", "families.husband_email") == "x@example.org"
