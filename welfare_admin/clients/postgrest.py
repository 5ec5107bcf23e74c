"""Tabular data source backed by Supabase's PostgREST API."""

import logging
import re
from typing import Any, Dict, List, Optional, Protocol

import httpx

from ..models import DataSourceError, FilterExpression
from ..tools.predicate_compiler import format_value, to_postgrest_params

logger = logging.getLogger(__name__)


class TabularDataSource(Protocol):
    """Fetch and bulk-mutation interface the dispatcher and pages rely on."""

    async def fetch_rows(
        self,
        table: str,
        select: str = "*",
        expression: Optional[FilterExpression] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> List[dict]:
        ...

    async def fetch_one(
        self,
        table: str,
        select: str = "*",
        expression: Optional[FilterExpression] = None,
    ) -> Optional[dict]:
        ...

    async def update_many(self, table: str, ids: List[str], updates: Dict[str, Any], id_field: str = "id") -> None:
        ...

    async def delete_many(self, table: str, ids: List[str], id_field: str = "id") -> None:
        ...


def _compact_select(select: str) -> str:
    """PostgREST rejects whitespace in select lists."""
    return re.sub(r"\s+", "", select)


def _id_list(ids: List[str]) -> str:
    return "in.(" + ",".join(format_value(row_id, quote=True) for row_id in ids) + ")"


class SupabaseTableClient:
    """PostgREST client for the hosted tables."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )
        logger.info(f"PostgREST client initialized for {self.base_url}")

    async def _request(self, method: str, table: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, f"/{table}", **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {table} failed: {e}")
            raise DataSourceError(f"Request to '{table}' failed: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {"message": response.text}
            if not isinstance(body, dict):
                body = {"message": response.text}
            message = body.get("message") or f"HTTP {response.status_code}"
            logger.warning(f"{method} {table} returned {response.status_code}: {message}")
            raise DataSourceError(message, status_code=response.status_code, details=body.get("details"))

        return response

    async def fetch_rows(
        self,
        table: str,
        select: str = "*",
        expression: Optional[FilterExpression] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> List[dict]:
        """Fetch rows matching an expression, with embedded relations from `select`."""
        params = [("select", _compact_select(select))]
        params.extend(to_postgrest_params(expression))
        if order_by:
            params.append(("order", f"{order_by}.{'desc' if descending else 'asc'}"))

        response = await self._request("GET", table, params=params)
        return response.json() or []

    async def fetch_one(
        self,
        table: str,
        select: str = "*",
        expression: Optional[FilterExpression] = None,
    ) -> Optional[dict]:
        params = [("select", _compact_select(select))]
        params.extend(to_postgrest_params(expression))
        params.append(("limit", "1"))

        response = await self._request("GET", table, params=params)
        rows = response.json() or []
        return rows[0] if rows else None

    async def update_many(self, table: str, ids: List[str], updates: Dict[str, Any], id_field: str = "id") -> None:
        """Apply the same field updates to every listed row."""
        await self._request(
            "PATCH",
            table,
            params=[(id_field, _id_list(ids))],
            json=updates,
            headers={"Prefer": "return=minimal"},
        )
        logger.info(f"Updated {len(ids)} rows in {table}: {sorted(updates)}")

    async def delete_many(self, table: str, ids: List[str], id_field: str = "id") -> None:
        await self._request(
            "DELETE",
            table,
            params=[(id_field, _id_list(ids))],
            headers={"Prefer": "return=minimal"},
        )
        logger.info(f"Deleted {len(ids)} rows from {table}")

    async def aclose(self) -> None:
        await self._client.aclose()
