"""Typed records for the welfare fund tables and their joined relations."""

from datetime import date, datetime
from typing import Any, Callable, Dict, Optional
from pydantic import BaseModel, Field

from .errors import UnknownEntityError


class CityRef(BaseModel):
    """City joined onto a family row."""
    name: str = Field(..., description="City name")


class FamilyRef(BaseModel):
    """Family joined onto a request or support row."""
    husband_first_name: Optional[str] = None
    husband_last_name: Optional[str] = None
    husband_phone: Optional[str] = None
    husband_email: Optional[str] = None
    wife_email: Optional[str] = None

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.husband_first_name, self.husband_last_name) if part)


class ProjectRef(BaseModel):
    """Project joined onto a support row."""
    name: str


class SupportTypeRef(BaseModel):
    """Support type joined onto a support row."""
    name: str


class Family(BaseModel):
    """Beneficiary family."""
    id: str
    status: str = "active"
    nedarim_id: Optional[str] = None
    husband_first_name: Optional[str] = None
    husband_last_name: str
    husband_id_number: Optional[str] = None
    husband_birth_date: Optional[date] = None
    husband_phone: Optional[str] = None
    husband_email: Optional[str] = None
    wife_first_name: Optional[str] = None
    wife_last_name: Optional[str] = None
    wife_id_number: Optional[str] = None
    wife_phone: Optional[str] = None
    wife_email: Optional[str] = None
    city_id: Optional[str] = None
    house_number: Optional[str] = None
    home_phone: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    city: Optional[CityRef] = Field(None, description="Joined city")
    children_count: int = Field(default=0, description="Number of joined children")

    @property
    def contact_phone(self) -> Optional[str]:
        return self.husband_phone or self.wife_phone


class SupportRequest(BaseModel):
    """Support request submitted for a family."""
    id: str
    family_id: str
    request_date: Optional[date] = None
    description: Optional[str] = None
    purpose: Optional[str] = None
    requested_amount: Optional[float] = None
    status: str = "new"
    submitted_by: Optional[str] = None
    submitter_email: Optional[str] = None
    approved_amount: Optional[float] = None
    approval_date: Optional[date] = None
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    family: Optional[FamilyRef] = Field(None, description="Joined family")


class Support(BaseModel):
    """Support disbursed to a family."""
    id: str
    family_id: str
    request_id: Optional[str] = None
    project_id: Optional[str] = None
    donor_id: Optional[str] = None
    amount: float
    support_date: Optional[date] = None
    description: Optional[str] = None
    payment_method: Optional[str] = None
    status: str = "pending"
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    family: Optional[FamilyRef] = None
    project: Optional[ProjectRef] = None
    support_type: Optional[SupportTypeRef] = None


class Project(BaseModel):
    """Project or campaign."""
    id: str
    name: str
    description: Optional[str] = None
    budget: float = 0
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: str = "planned"
    created_at: Optional[datetime] = None


class Donor(BaseModel):
    """Donor contact."""
    id: str
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class SystemUser(BaseModel):
    """Dashboard user with a role."""
    id: str
    email: str
    full_name: Optional[str] = None
    role: str = "user"
    status: str = "active"
    auth_user_id: Optional[str] = None
    created_at: Optional[datetime] = None


def _related(row: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    """Return a joined record, PostgREST may embed it as an object or a one-item list."""
    related = row.get(key)
    if isinstance(related, list):
        related = related[0] if related else None
    return related if isinstance(related, dict) else None


def _own_columns(row: Dict[str, Any], *joined: str) -> Dict[str, Any]:
    return {key: value for key, value in row.items() if key not in joined}


def hydrate_family(row: Dict[str, Any]) -> Family:
    city = _related(row, "cities")
    children = row.get("children") or []
    return Family(
        **_own_columns(row, "cities", "children", "city", "children_count"),
        city=CityRef(**city) if city and city.get("name") else None,
        children_count=len(children),
    )


def hydrate_support_request(row: Dict[str, Any]) -> SupportRequest:
    family = _related(row, "families")
    return SupportRequest(
        **_own_columns(row, "families", "family"),
        family=FamilyRef(**family) if family else None,
    )


def hydrate_support(row: Dict[str, Any]) -> Support:
    family = _related(row, "families")
    project = _related(row, "projects")
    support_type = _related(row, "support_types")
    return Support(
        **_own_columns(row, "families", "projects", "support_types", "family", "project", "support_type"),
        family=FamilyRef(**family) if family else None,
        project=ProjectRef(**project) if project else None,
        support_type=SupportTypeRef(**support_type) if support_type else None,
    )


HYDRATORS: Dict[str, Callable[[Dict[str, Any]], BaseModel]] = {
    "families": hydrate_family,
    "support_requests": hydrate_support_request,
    "supports": hydrate_support,
    "projects": lambda row: Project(**row),
    "donors": lambda row: Donor(**row),
    "system_users": lambda row: SystemUser(**row),
}


def hydrate_row(entity: str, row: Dict[str, Any]) -> BaseModel:
    """Resolve a raw (possibly joined) row into the entity's typed record."""
    try:
        hydrator = HYDRATORS[entity]
    except KeyError:
        raise UnknownEntityError(entity)
    return hydrator(row)
