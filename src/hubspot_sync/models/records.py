"""Normalized (typed) HubSpot records derived from exactly one RawRecord."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class NormalizedRecord(BaseModel):
    """Common fields for every normalized record. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="HubSpot object ID")
    created_at: datetime
    last_modified_at: datetime
    is_archived: bool = False
    custom_properties: dict[str, str] = Field(default_factory=dict)


class Deal(NormalizedRecord):
    """Canonical deal record."""

    deal_name: str = "Untitled Deal"
    amount: float = 0.0
    currency: str = "USD"
    stage: str = "unknown"
    stage_label: str = "unknown"
    pipeline: str = "default"
    pipeline_label: str = "default"
    deal_type: Optional[str] = None
    close_date: Optional[datetime] = None
    owner_id: Optional[str] = None
    stage_probability: float = 0.0
    forecast_amount: float = 0.0
    projected_amount: float = 0.0
    days_to_close: Optional[int] = None
    is_won: bool = False
    is_closed: bool = False
    contact_count: int = 0
    note_count: int = 0
    associated_contacts: list[str] = Field(default_factory=list)
    associated_companies: list[str] = Field(default_factory=list)


class Contact(NormalizedRecord):
    """Canonical contact record."""

    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: str = "Unknown Contact"
    company: Optional[str] = None
    phone: Optional[str] = None
    lifecycle_stage: str = "unknown"
    owner_id: Optional[str] = None


class Company(NormalizedRecord):
    """Canonical company record."""

    name: str = "Untitled Company"
    domain: Optional[str] = None
    industry: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    annual_revenue: float = 0.0
    number_of_employees: int = 0
    owner_id: Optional[str] = None
