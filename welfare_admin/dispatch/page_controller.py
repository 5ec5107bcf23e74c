"""Per-page controller owning query state, row list, selection and bulk actions."""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

import httpx
from pydantic import BaseModel, Field, ValidationError

from ..models import (
    BulkAction,
    BulkActionError,
    BulkActionInProgressError,
    BulkActionResponse,
    ActionCancelled,
    DataSourceError,
    EntityDefinition,
    FilterOperator,
    FilterPredicate,
    QueryState,
    Role,
    hydrate_row,
)
from ..models.filter_models import Scalar
from ..tools import compile_query, create_predicate, set_field, set_operator, set_values
from ..tools.selection import SelectionSet, SelectionState
from ..utils.result_cache import ResultCache, cache_key
from .bulk_dispatcher import BulkActionDispatcher

logger = logging.getLogger(__name__)


class RowsResponse(BaseModel):
    """Loaded rows of a page."""
    type: str = Field(default="success", description="Response type")
    entity: str = Field(..., description="Entity name")
    rows: List[Dict[str, Any]] = Field(..., description="Hydrated records")
    total: int = Field(..., description="Number of rows")
    selection: SelectionState = Field(..., description="Selection state against these rows")


class RowsError(BaseModel):
    """The row list could not be fetched, shown in place of the list."""
    type: str = Field(default="error", description="Response type")
    entity: str = Field(..., description="Entity name")
    message: str = Field(..., description="Error message")
    error_code: str = Field(default="FETCH_FAILED", description="Error code")


RowsAPIResponse = Union[RowsResponse, RowsError]


class PageController:
    """
    State of one entity list page.

    The controller owns the QueryState (with its predicate list), the
    SelectionSet and the last fetched rows. Nothing here outlives the page.
    """

    def __init__(
        self,
        entity: EntityDefinition,
        data_source,
        cache: ResultCache,
        email_client,
        role: Role = Role.USER,
        page_id: Optional[str] = None,
    ):
        self.page_id = page_id or uuid.uuid4().hex
        self.entity = entity
        self.data_source = data_source
        self.cache = cache
        self.role = role
        self.query_state = QueryState()
        self.selection = SelectionSet()
        self.rows: List[dict] = []
        self.dispatcher = BulkActionDispatcher(
            entity=entity,
            data_source=data_source,
            cache=cache,
            email_client=email_client,
            selection=self.selection,
            rows_provider=lambda: self.rows,
            role=role,
        )
        self.created_at = datetime.now()

    # Query editing

    def set_search(self, search_term: str) -> None:
        self.query_state = self.query_state.model_copy(update={"search_term": search_term or ""})

    def set_status_filter(self, status_filter: str) -> None:
        if status_filter != "all" and status_filter not in self.entity.statuses:
            raise ValueError(f"Unknown status '{status_filter}' for {self.entity.name}")
        self.query_state = self.query_state.model_copy(update={"status_filter": status_filter})

    def _replace_predicates(self, predicates: List[FilterPredicate]) -> None:
        self.query_state = self.query_state.model_copy(update={"predicates": predicates})

    def add_filter(self, field: Optional[str] = None) -> FilterPredicate:
        predicate = create_predicate(self.entity, field)
        self._replace_predicates(self.query_state.predicates + [predicate])
        return predicate

    def _update_filter(self, index: int, predicate: FilterPredicate) -> FilterPredicate:
        predicates = list(self.query_state.predicates)
        predicates[index] = predicate
        self._replace_predicates(predicates)
        return predicate

    def update_filter_field(self, index: int, field: str) -> FilterPredicate:
        return self._update_filter(index, set_field(self.entity, self.query_state.predicates[index], field))

    def update_filter_operator(self, index: int, operator: FilterOperator) -> FilterPredicate:
        return self._update_filter(index, set_operator(self.entity, self.query_state.predicates[index], operator))

    def update_filter_values(
        self,
        index: int,
        value: Optional[Scalar] = None,
        value2: Optional[Scalar] = None,
    ) -> FilterPredicate:
        return self._update_filter(index, set_values(self.query_state.predicates[index], value, value2))

    def edit_filter(
        self,
        index: int,
        field: Optional[str] = None,
        operator: Optional[FilterOperator] = None,
        values: Optional[Tuple[Optional[Scalar], Optional[Scalar]]] = None,
    ) -> FilterPredicate:
        """Apply a field, operator and value change together. Nothing is stored if any step is rejected."""
        predicate = self.query_state.predicates[index]
        if field is not None and field != predicate.field:
            predicate = set_field(self.entity, predicate, field)
        if operator is not None and operator != predicate.operator:
            predicate = set_operator(self.entity, predicate, operator)
        if values is not None:
            predicate = set_values(predicate, *values)
        return self._update_filter(index, predicate)

    def remove_filter(self, index: int) -> None:
        predicates = list(self.query_state.predicates)
        del predicates[index]
        self._replace_predicates(predicates)

    def clear_filters(self) -> None:
        self._replace_predicates([])

    # Rows

    async def load_rows(self) -> RowsAPIResponse:
        """Fetch (or reuse) the rows for the current query state."""
        state = self.query_state
        expression = compile_query(self.entity, state)

        async def fetch() -> List[dict]:
            return await self.data_source.fetch_rows(
                self.entity.table,
                select=self.entity.select,
                expression=expression,
                order_by=self.entity.order_by,
                descending=self.entity.order_descending,
            )

        try:
            rows = await self.cache.get_or_fetch(cache_key(self.entity.name, state), fetch)
        except (DataSourceError, httpx.HTTPError) as e:
            logger.warning(f"Loading {self.entity.name} failed: {e}")
            return RowsError(entity=self.entity.name, message=str(e))

        try:
            records = [hydrate_row(self.entity.name, row).model_dump(mode="json") for row in rows]
        except ValidationError as e:
            logger.warning(f"Unexpected {self.entity.name} row shape: {e}")
            return RowsError(
                entity=self.entity.name,
                message=f"Received {e.error_count()} invalid values from {self.entity.table}",
                error_code="INVALID_ROWS",
            )

        self.rows = rows
        return RowsResponse(
            entity=self.entity.name,
            rows=records,
            total=len(records),
            selection=self.selection_state(),
        )

    def row_ids(self) -> List[str]:
        return [str(row.get(self.entity.id_field)) for row in self.rows]

    # Selection

    def select_all(self, checked: bool) -> SelectionState:
        self.selection.select_all(checked, self.row_ids())
        return self.selection_state()

    def toggle_row(self, row_id: str, checked: bool) -> SelectionState:
        self.selection.toggle(row_id, checked)
        return self.selection_state()

    def selection_state(self) -> SelectionState:
        return self.selection.state(len(self.rows))

    # Bulk actions

    async def run_bulk_action(self, action: BulkAction) -> BulkActionResponse:
        try:
            return await self.dispatcher.dispatch(action)
        except BulkActionInProgressError as e:
            return BulkActionError(kind=action.kind, message=e.message, error_code="ACTION_IN_PROGRESS")

    async def confirm_pending(self, pending_id: str) -> BulkActionResponse:
        return await self.dispatcher.confirm(pending_id)

    def cancel_pending(self, pending_id: str) -> ActionCancelled:
        return self.dispatcher.cancel(pending_id)

    def summary(self) -> Dict[str, Any]:
        """Serializable view of the page state."""
        pending = self.dispatcher.pending
        return {
            "page_id": self.page_id,
            "entity": self.entity.name,
            "role": self.role.value,
            "query": self.query_state.model_dump(mode="json"),
            "selection": self.selection_state().model_dump(),
            "dispatch_state": self.dispatcher.state.value,
            "pending_action": pending.model_dump(mode="json") if pending else None,
        }
