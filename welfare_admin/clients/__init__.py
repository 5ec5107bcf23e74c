"""Clients for the hosted tables and the email function."""

from .postgrest import SupabaseTableClient, TabularDataSource
from .email_client import TEMPLATE_SUBJECTS, EmailClient, EmailMessage, default_subject
from .memory_source import MemoryDataSource, OutboxEmailClient, demo_tables

__all__ = [
    "SupabaseTableClient",
    "TabularDataSource",
    "TEMPLATE_SUBJECTS",
    "EmailClient",
    "EmailMessage",
    "default_subject",
    "MemoryDataSource",
    "OutboxEmailClient",
    "demo_tables",
]
