"""Declared entities: tables, joins, searchable and filterable fields, bulk actions."""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from .action_models import BulkActionKind
from .errors import UnknownEntityError, UnknownFieldError
from .filter_models import FieldDefinition, FieldOption, FieldType


class EntityDefinition(BaseModel):
    """Everything the compiler and dispatcher need to know about one entity page."""
    name: str = Field(..., description="Entity name, also the cache scope")
    table: str = Field(..., description="Backend table")
    select: str = Field(default="*", description="PostgREST select with embedded relations")
    order_by: str = Field(default="created_at", description="Ordering column")
    order_descending: bool = Field(default=True, description="Newest first")
    search_fields: List[str] = Field(default_factory=list, description="Fields OR-ed by free-text search")
    status_field: Optional[str] = Field(default="status", description="Status column, None if the entity has none")
    statuses: List[str] = Field(default_factory=list, description="Valid status values")
    status_change_options: List[str] = Field(default_factory=list, description="Targets offered by the status menu")
    fields: List[FieldDefinition] = Field(default_factory=list, description="Declared filterable fields")
    available_actions: List[BulkActionKind] = Field(default_factory=list, description="Bulk action allow-list")
    primary_email_field: Optional[str] = Field(None, description="Preferred contact email path")
    secondary_email_field: Optional[str] = Field(None, description="Fallback contact email path")
    id_field: str = Field(default="id", description="Row identifier column")
    permission_resource: Optional[str] = Field(None, description="Resource column of the permissions table, None if unguarded")
    admin_only: bool = Field(default=False, description="Page restricted to admins")

    def get_field(self, key: str) -> FieldDefinition:
        """Look up a declared field, rejecting anything undeclared."""
        for field in self.fields:
            if field.key == key:
                return field
        raise UnknownFieldError(self.name, key, [field.key for field in self.fields])

    def allows(self, kind: BulkActionKind) -> bool:
        return kind in self.available_actions


def _options(*values: str) -> List[FieldOption]:
    return [FieldOption(value=value, label=value.replace("_", " ")) for value in values]


FAMILY_STATUSES = ["active", "inactive", "pending"]
REQUEST_STATUSES = ["new", "in_review", "approved", "rejected", "completed", "cancelled"]
SUPPORT_STATUSES = ["pending", "completed", "cancelled"]
PROJECT_STATUSES = ["planned", "active", "completed", "cancelled"]
USER_STATUSES = ["active", "inactive", "pending"]


ENTITY_CATALOG: Dict[str, EntityDefinition] = {
    "families": EntityDefinition(
        name="families",
        table="families",
        select="*, cities (name), children (id)",
        search_fields=[
            "husband_last_name",
            "husband_first_name",
            "wife_first_name",
            "husband_id_number",
            "husband_phone",
        ],
        statuses=FAMILY_STATUSES,
        status_change_options=FAMILY_STATUSES,
        fields=[
            FieldDefinition(key="husband_last_name", label="Family name"),
            FieldDefinition(key="husband_first_name", label="Husband first name"),
            FieldDefinition(key="wife_first_name", label="Wife first name"),
            FieldDefinition(key="husband_id_number", label="Husband ID number"),
            FieldDefinition(key="husband_phone", label="Husband phone"),
            FieldDefinition(key="husband_email", label="Husband email"),
            FieldDefinition(key="husband_birth_date", label="Husband birth date", type=FieldType.DATE),
            FieldDefinition(key="status", label="Status", type=FieldType.SELECT, options=_options(*FAMILY_STATUSES)),
            FieldDefinition(key="created_at", label="Created", type=FieldType.DATE),
        ],
        available_actions=[BulkActionKind.DELETE, BulkActionKind.EMAIL, BulkActionKind.STATUS_CHANGE],
        primary_email_field="husband_email",
        secondary_email_field="wife_email",
        permission_resource="families",
    ),
    "support_requests": EntityDefinition(
        name="support_requests",
        table="support_requests",
        select="*, families (husband_first_name, husband_last_name, husband_phone, husband_email, wife_email)",
        search_fields=["purpose", "description", "submitted_by"],
        statuses=REQUEST_STATUSES,
        status_change_options=REQUEST_STATUSES,
        fields=[
            FieldDefinition(key="purpose", label="Purpose"),
            FieldDefinition(key="description", label="Description"),
            FieldDefinition(key="requested_amount", label="Requested amount", type=FieldType.NUMBER),
            FieldDefinition(key="approved_amount", label="Approved amount", type=FieldType.NUMBER),
            FieldDefinition(key="request_date", label="Request date", type=FieldType.DATE),
            FieldDefinition(key="status", label="Status", type=FieldType.SELECT, options=_options(*REQUEST_STATUSES)),
        ],
        available_actions=[
            BulkActionKind.APPROVE,
            BulkActionKind.REJECT,
            BulkActionKind.DELETE,
            BulkActionKind.EMAIL,
        ],
        primary_email_field="submitter_email",
        secondary_email_field="families.husband_email",
        permission_resource="supports",
    ),
    "supports": EntityDefinition(
        name="supports",
        table="supports",
        select="*, families (husband_first_name, husband_last_name), projects (name), support_types (name)",
        order_by="support_date",
        search_fields=["description", "notes"],
        statuses=SUPPORT_STATUSES,
        status_change_options=SUPPORT_STATUSES,
        fields=[
            FieldDefinition(key="amount", label="Amount", type=FieldType.NUMBER),
            FieldDefinition(key="support_date", label="Support date", type=FieldType.DATE),
            FieldDefinition(
                key="payment_method",
                label="Payment method",
                type=FieldType.SELECT,
                options=_options("transfer", "check", "cash", "voucher", "other"),
            ),
            FieldDefinition(key="description", label="Description"),
            FieldDefinition(key="status", label="Status", type=FieldType.SELECT, options=_options(*SUPPORT_STATUSES)),
        ],
        available_actions=[BulkActionKind.DELETE, BulkActionKind.STATUS_CHANGE],
        permission_resource="supports",
    ),
    "projects": EntityDefinition(
        name="projects",
        table="projects",
        search_fields=["name", "description"],
        statuses=PROJECT_STATUSES,
        status_change_options=PROJECT_STATUSES,
        fields=[
            FieldDefinition(key="name", label="Name"),
            FieldDefinition(key="budget", label="Budget", type=FieldType.NUMBER),
            FieldDefinition(key="start_date", label="Start date", type=FieldType.DATE),
            FieldDefinition(key="end_date", label="End date", type=FieldType.DATE),
            FieldDefinition(key="status", label="Status", type=FieldType.SELECT, options=_options(*PROJECT_STATUSES)),
        ],
        available_actions=[BulkActionKind.DELETE, BulkActionKind.STATUS_CHANGE],
        permission_resource="projects",
    ),
    "donors": EntityDefinition(
        name="donors",
        table="donors",
        search_fields=["name", "phone", "email"],
        status_field=None,
        fields=[
            FieldDefinition(key="name", label="Name"),
            FieldDefinition(key="phone", label="Phone"),
            FieldDefinition(key="email", label="Email"),
            FieldDefinition(key="created_at", label="Created", type=FieldType.DATE),
        ],
        available_actions=[BulkActionKind.DELETE, BulkActionKind.EMAIL],
        primary_email_field="email",
    ),
    "system_users": EntityDefinition(
        name="system_users",
        table="system_users",
        search_fields=["email", "full_name"],
        statuses=USER_STATUSES,
        status_change_options=USER_STATUSES,
        fields=[
            FieldDefinition(key="email", label="Email"),
            FieldDefinition(key="full_name", label="Full name"),
            FieldDefinition(
                key="role",
                label="Role",
                type=FieldType.SELECT,
                options=_options("admin", "manager", "user", "viewer"),
            ),
            FieldDefinition(key="status", label="Status", type=FieldType.SELECT, options=_options(*USER_STATUSES)),
        ],
        available_actions=[BulkActionKind.DELETE, BulkActionKind.STATUS_CHANGE, BulkActionKind.EMAIL],
        primary_email_field="email",
        permission_resource="users",
        admin_only=True,
    ),
}


def get_entity(name: str) -> EntityDefinition:
    """Get an entity definition by name."""
    try:
        return ENTITY_CATALOG[name]
    except KeyError:
        raise UnknownEntityError(name)
