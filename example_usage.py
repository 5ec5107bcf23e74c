#!/usr/bin/env python3
"""Example usage of a families page against the in-memory demo tables."""

import asyncio
import json

from welfare_admin.clients import MemoryDataSource, OutboxEmailClient, demo_tables
from welfare_admin.dispatch import PageController, resolve_user_role
from welfare_admin.models import BulkAction, BulkActionKind, FilterOperator, get_entity
from welfare_admin.utils import ResultCache


async def demo_families_page():
    """Filter families, select the result and send them a bulk email."""
    print("🚀 Families Page Demo")
    print("=" * 50)

    data_source = MemoryDataSource(demo_tables())
    outbox = OutboxEmailClient()
    role = await resolve_user_role(data_source, "demo-admin")
    page = PageController(get_entity("families"), data_source, ResultCache(), outbox, role=role)
    print(f"👤 Role: {role.value}")

    response = await page.load_rows()
    print(f"\n📋 All families ({response.total}):")
    for row in response.rows:
        print(f"  - {row['husband_first_name']} {row['husband_last_name']} [{row['status']}]")

    page.add_filter("created_at")
    page.update_filter_operator(0, FilterOperator.AFTER)
    page.update_filter_values(0, "2024-01-01")
    page.set_search("o")
    print("\n🔍 Query:")
    print(json.dumps(page.query_state.model_dump(mode="json"), indent=2))

    response = await page.load_rows()
    print(f"\n📋 Matching families ({response.total}):")
    for row in response.rows:
        print(f"  - {row['husband_first_name']} {row['husband_last_name']}")

    state = page.select_all(True)
    print(f"\n☑️  Selected {state.count} rows (all selected: {state.all_selected})")

    result = await page.run_bulk_action(BulkAction(
        kind=BulkActionKind.EMAIL,
        subject="Holiday distribution",
        html="<p>Food baskets can be collected on Sunday.</p>",
    ))
    print(f"\n📧 {result.message}")
    for message in outbox.sent:
        print(f"  to: {', '.join(message.recipients)}")

    page.select_all(True)
    prompt = await page.run_bulk_action(BulkAction(kind=BulkActionKind.DELETE))
    print(f"\n⚠️  {prompt.message}")


if __name__ == "__main__":
    asyncio.run(demo_families_page())
