"""In-memory data source and email outbox used when no backend is configured."""

import copy
import logging
from typing import Any, Dict, List, Optional

from ..models import FilterExpression
from ..tools.predicate_compiler import evaluate
from .email_client import EmailMessage

logger = logging.getLogger(__name__)


class MemoryDataSource:
    """Tables held as lists of row dicts, with relations already embedded."""

    def __init__(self, tables: Optional[Dict[str, List[dict]]] = None):
        self.tables: Dict[str, List[dict]] = copy.deepcopy(tables or {})

    async def fetch_rows(
        self,
        table: str,
        select: str = "*",
        expression: Optional[FilterExpression] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> List[dict]:
        rows = [copy.deepcopy(row) for row in self.tables.get(table, []) if evaluate(expression, row)]
        if order_by:
            present = [row for row in rows if row.get(order_by) is not None]
            missing = [row for row in rows if row.get(order_by) is None]
            present.sort(key=lambda row: row[order_by], reverse=descending)
            rows = present + missing
        return rows

    async def fetch_one(
        self,
        table: str,
        select: str = "*",
        expression: Optional[FilterExpression] = None,
    ) -> Optional[dict]:
        rows = await self.fetch_rows(table, select, expression)
        return rows[0] if rows else None

    async def update_many(self, table: str, ids: List[str], updates: Dict[str, Any], id_field: str = "id") -> None:
        targets = set(ids)
        for row in self.tables.get(table, []):
            if row.get(id_field) in targets:
                row.update(updates)
        logger.info(f"Updated {len(targets)} rows in memory table {table}")

    async def delete_many(self, table: str, ids: List[str], id_field: str = "id") -> None:
        targets = set(ids)
        self.tables[table] = [row for row in self.tables.get(table, []) if row.get(id_field) not in targets]
        logger.info(f"Deleted {len(targets)} rows from memory table {table}")


class OutboxEmailClient:
    """Collects messages instead of sending them."""

    def __init__(self):
        self.sent: List[EmailMessage] = []

    async def send(self, message: EmailMessage) -> Dict[str, Any]:
        self.sent.append(message)
        logger.info(f"Queued '{message.subject}' for {len(message.recipients)} recipients in outbox")
        return {"success": True, "id": f"outbox-{len(self.sent)}"}


# Actions granted per role on every guarded resource in demo mode
DEMO_GRANTS = {
    "admin": ("read", "write", "delete", "approve"),
    "manager": ("read", "write", "delete", "approve"),
    "user": ("read", "write"),
    "viewer": ("read",),
}
DEMO_RESOURCES = ("families", "supports", "projects", "users", "settings")


def demo_permissions() -> List[dict]:
    rows = []
    for role, granted in DEMO_GRANTS.items():
        for resource in DEMO_RESOURCES:
            for action in ("read", "write", "delete", "approve"):
                rows.append({"role": role, "resource": resource, "action": action, "allowed": action in granted})
    return rows


def demo_tables() -> Dict[str, List[dict]]:
    """A small data set for demo mode."""
    return {
        "families": [
            {
                "id": "fam-1",
                "status": "active",
                "husband_first_name": "David",
                "husband_last_name": "Cohen",
                "husband_phone": "050-1234567",
                "husband_email": "david.cohen@example.org",
                "wife_first_name": "Sarah",
                "wife_email": "sarah.cohen@example.org",
                "created_at": "2024-03-01T09:00:00+00:00",
                "cities": {"name": "Jerusalem"},
                "children": [{"id": "child-1"}, {"id": "child-2"}],
            },
            {
                "id": "fam-2",
                "status": "pending",
                "husband_first_name": "Moshe",
                "husband_last_name": "Levi",
                "husband_phone": "052-7654321",
                "wife_first_name": "Rivka",
                "wife_email": "rivka.levi@example.org",
                "created_at": "2024-04-12T10:30:00+00:00",
                "cities": {"name": "Bnei Brak"},
                "children": [],
            },
            {
                "id": "fam-3",
                "status": "inactive",
                "husband_first_name": "Yosef",
                "husband_last_name": "Friedman",
                "created_at": "2023-11-20T08:15:00+00:00",
                "cities": None,
                "children": [{"id": "child-3"}],
            },
        ],
        "support_requests": [
            {
                "id": "req-1",
                "family_id": "fam-1",
                "request_date": "2024-05-01",
                "purpose": "Rent assistance",
                "requested_amount": 2500,
                "status": "in_review",
                "created_at": "2024-05-01T12:00:00+00:00",
                "families": {
                    "husband_first_name": "David",
                    "husband_last_name": "Cohen",
                    "husband_email": "david.cohen@example.org",
                },
            },
            {
                "id": "req-2",
                "family_id": "fam-2",
                "request_date": "2024-05-03",
                "purpose": "Medical expenses",
                "requested_amount": 1200,
                "status": "new",
                "submitter_email": "rivka.levi@example.org",
                "created_at": "2024-05-03T14:00:00+00:00",
                "families": {"husband_first_name": "Moshe", "husband_last_name": "Levi"},
            },
        ],
        "projects": [
            {
                "id": "proj-1",
                "name": "Passover food baskets",
                "budget": 50000,
                "status": "active",
                "created_at": "2024-02-01T00:00:00+00:00",
            },
        ],
        "donors": [
            {
                "id": "donor-1",
                "name": "Weiss Foundation",
                "email": "office@weiss.example.org",
                "created_at": "2024-01-15T00:00:00+00:00",
            },
        ],
        "supports": [],
        "system_users": [
            {
                "id": "user-1",
                "email": "admin@example.org",
                "full_name": "Demo Admin",
                "role": "admin",
                "status": "active",
                "auth_user_id": "demo-admin",
            },
        ],
        "permissions": demo_permissions(),
    }
