"""FastAPI application for entity pages: filters, rows, selection and bulk actions."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..clients import EmailClient, MemoryDataSource, OutboxEmailClient, SupabaseTableClient, demo_tables
from ..config import Settings, get_settings
from ..dispatch import PageController, resolve_user_role
from ..models import (
    ENTITY_CATALOG,
    BulkAction,
    FilterOperator,
    InvalidOperatorError,
    PendingActionNotFoundError,
    UnknownEntityError,
    UnknownFieldError,
    get_entity,
    is_admin,
)
from ..models.filter_models import Scalar
from ..utils import PageSessionStore, ResultCache

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Error response."""
    type: str = Field(default="error", description="Response type")
    message: str = Field(..., description="Error message")
    error_code: str = Field(..., description="Error code")


class CreatePageRequest(BaseModel):
    """Open a list page for an entity."""
    entity: str = Field(..., description="Entity name")
    auth_user_id: Optional[str] = Field(None, description="Authenticated user, used to resolve the role")


class QueryUpdateRequest(BaseModel):
    """Change the free-text search and/or status filter."""
    search_term: Optional[str] = Field(None, description="Free-text search")
    status_filter: Optional[str] = Field(None, description="Status value or 'all'")


class AddFilterRequest(BaseModel):
    field: Optional[str] = Field(None, description="Declared field, defaults to the first one")


class UpdateFilterRequest(BaseModel):
    """Edit one filter row. A field change resets operator and values, an operator change resets values."""
    field: Optional[str] = Field(None, description="New field")
    operator: Optional[FilterOperator] = Field(None, description="New operator")
    value: Optional[Scalar] = Field(None, description="Filter value")
    value2: Optional[Scalar] = Field(None, description="Upper bound for 'between'")


class SelectionRequest(BaseModel):
    checked: bool = Field(..., description="Select or deselect")


def _build_collaborators(settings: Settings):
    """Hosted backend clients, or in-memory stand-ins in demo mode."""
    if settings.demo_mode:
        logger.info("No Supabase credentials configured, running in demo mode")
        return MemoryDataSource(demo_tables()), OutboxEmailClient()
    data_source = SupabaseTableClient(
        settings.supabase_url,
        settings.supabase_anon_key,
        timeout=settings.request_timeout_seconds,
    )
    email_client = EmailClient(
        settings.supabase_url,
        settings.supabase_anon_key,
        function_name=settings.email_function,
        timeout=settings.request_timeout_seconds,
    )
    return data_source, email_client


def create_app(settings: Optional[Settings] = None, data_source=None, email_client=None) -> FastAPI:
    """Create the API with its data source, email client, cache and page store."""
    settings = settings or get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    if data_source is None or email_client is None:
        default_source, default_email = _build_collaborators(settings)
        data_source = data_source or default_source
        email_client = email_client or default_email

    cache = ResultCache(ttl_seconds=settings.cache_ttl_seconds)
    pages = PageSessionStore(idle_minutes=settings.page_idle_minutes)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        for client in (data_source, email_client):
            if hasattr(client, "aclose"):
                await client.aclose()

    app = FastAPI(
        title="Welfare Fund Administration",
        description="Filter, select and apply bulk actions to welfare fund records",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.data_source = data_source
    app.state.email_client = email_client
    app.state.cache = cache
    app.state.pages = pages

    @app.exception_handler(UnknownEntityError)
    async def unknown_entity_handler(request: Request, exc: UnknownEntityError):
        return JSONResponse(
            status_code=404,
            content=ErrorResponse(message=exc.message, error_code="UNKNOWN_ENTITY").model_dump(),
        )

    @app.exception_handler(UnknownFieldError)
    async def unknown_field_handler(request: Request, exc: UnknownFieldError):
        return JSONResponse(
            status_code=422,
            content=ErrorResponse(message=exc.message, error_code="UNKNOWN_FIELD").model_dump(),
        )

    @app.exception_handler(InvalidOperatorError)
    async def invalid_operator_handler(request: Request, exc: InvalidOperatorError):
        return JSONResponse(
            status_code=422,
            content=ErrorResponse(message=exc.message, error_code="INVALID_OPERATOR").model_dump(),
        )

    @app.exception_handler(PendingActionNotFoundError)
    async def pending_not_found_handler(request: Request, exc: PendingActionNotFoundError):
        return JSONResponse(
            status_code=404,
            content=ErrorResponse(message=exc.message, error_code="PENDING_ACTION_NOT_FOUND").model_dump(),
        )

    def _get_page(page_id: str) -> PageController:
        page = pages.get(page_id)
        if page is None:
            raise HTTPException(status_code=404, detail=f"Page {page_id} not found")
        return page

    def _check_index(page: PageController, index: int) -> None:
        if not 0 <= index < len(page.query_state.predicates):
            raise HTTPException(status_code=404, detail=f"Filter {index} not found")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "Welfare Fund Administration",
            "demo_mode": settings.demo_mode,
        }

    @app.get("/api/entities")
    async def list_entities():
        """Declared entities with their filterable fields and operator menus."""
        return [
            {
                "name": entity.name,
                "search_fields": entity.search_fields,
                "statuses": entity.statuses,
                "status_change_options": entity.status_change_options,
                "available_actions": [kind.value for kind in entity.available_actions],
                "fields": [
                    {**field.model_dump(mode="json"), "operators": [op.value for op in field.operators]}
                    for field in entity.fields
                ],
            }
            for entity in ENTITY_CATALOG.values()
        ]

    @app.get("/api/cache/stats")
    async def get_cache_stats():
        """Get result cache and page store statistics."""
        return {"cache": cache.get_stats(), "pages": pages.get_stats()}

    @app.post("/api/pages")
    async def open_page(request: CreatePageRequest):
        """Open a page for an entity, resolving the user's role."""
        entity = get_entity(request.entity)
        role = await resolve_user_role(data_source, request.auth_user_id)
        if entity.admin_only and not is_admin(role):
            raise HTTPException(status_code=403, detail=f"Only admins may open the {entity.name} page")
        page = PageController(entity, data_source, cache, email_client, role=role)
        pages.add(page)
        logger.info(f"Opened {entity.name} page {page.page_id} for role {role.value}")
        return page.summary()

    @app.post("/api/pages/cleanup")
    async def cleanup_idle_pages():
        """Close pages that have been idle too long."""
        cleaned_count = pages.cleanup_idle_pages()
        return {"message": f"Closed {cleaned_count} idle pages"}

    @app.get("/api/pages/{page_id}")
    async def get_page(page_id: str):
        return _get_page(page_id).summary()

    @app.delete("/api/pages/{page_id}")
    async def close_page(page_id: str):
        """Close a page. An inflight action still completes remotely."""
        if not pages.remove(page_id):
            raise HTTPException(status_code=404, detail=f"Page {page_id} not found")
        return {"message": f"Page {page_id} closed"}

    @app.put("/api/pages/{page_id}/query")
    async def update_query(page_id: str, request: QueryUpdateRequest):
        page = _get_page(page_id)
        if request.search_term is not None:
            page.set_search(request.search_term)
        if request.status_filter is not None:
            try:
                page.set_status_filter(request.status_filter)
            except ValueError as e:
                raise HTTPException(status_code=422, detail=str(e))
        return page.summary()

    @app.post("/api/pages/{page_id}/filters")
    async def add_filter(page_id: str, request: AddFilterRequest):
        page = _get_page(page_id)
        predicate = page.add_filter(request.field)
        return {"index": len(page.query_state.predicates) - 1, "predicate": predicate.model_dump(mode="json")}

    @app.patch("/api/pages/{page_id}/filters/{index}")
    async def update_filter(page_id: str, index: int, request: UpdateFilterRequest):
        page = _get_page(page_id)
        _check_index(page, index)

        values = None
        if {"value", "value2"} & request.model_fields_set:
            values = (request.value, request.value2)
        predicate = page.edit_filter(index, field=request.field, operator=request.operator, values=values)

        return {"index": index, "predicate": predicate.model_dump(mode="json")}

    @app.delete("/api/pages/{page_id}/filters/{index}")
    async def remove_filter(page_id: str, index: int):
        page = _get_page(page_id)
        _check_index(page, index)
        page.remove_filter(index)
        return page.summary()

    @app.delete("/api/pages/{page_id}/filters")
    async def clear_filters(page_id: str):
        page = _get_page(page_id)
        page.clear_filters()
        return page.summary()

    @app.get("/api/pages/{page_id}/rows")
    async def load_rows(page_id: str):
        """Rows for the page's current query, or an inline error."""
        return await _get_page(page_id).load_rows()

    @app.get("/api/pages/{page_id}/selection")
    async def get_selection(page_id: str):
        return _get_page(page_id).selection_state()

    @app.put("/api/pages/{page_id}/selection")
    async def select_all(page_id: str, request: SelectionRequest):
        return _get_page(page_id).select_all(request.checked)

    @app.put("/api/pages/{page_id}/selection/{row_id}")
    async def toggle_row(page_id: str, row_id: str, request: SelectionRequest):
        return _get_page(page_id).toggle_row(row_id, request.checked)

    @app.post("/api/pages/{page_id}/bulk-actions")
    async def run_bulk_action(page_id: str, action: BulkAction):
        """Run a bulk action on the selection. Deletes come back as a pending confirmation."""
        return await _get_page(page_id).run_bulk_action(action)

    @app.post("/api/pages/{page_id}/bulk-actions/{pending_id}/confirm")
    async def confirm_bulk_action(page_id: str, pending_id: str):
        return await _get_page(page_id).confirm_pending(pending_id)

    @app.delete("/api/pages/{page_id}/bulk-actions/{pending_id}")
    async def cancel_bulk_action(page_id: str, pending_id: str):
        return _get_page(page_id).cancel_pending(pending_id)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
