from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, field_validator


class LeadStatus(str, Enum):
    HOT = "Hot"
    WARM = "Warm"
    COLD = "Cold"


class Stage(str, Enum):
    CONTACTED = "Contacted"
    REQUIREMENTS_RECEIVED = "Requirements Received"
    FOLLOW_UPS = "Follow-ups"
    CLOSED_WON = "Closed/Won"


# Kanban column order
STAGES: List[Stage] = [
    Stage.CONTACTED,
    Stage.REQUIREMENTS_RECEIVED,
    Stage.FOLLOW_UPS,
    Stage.CLOSED_WON,
]

SERVICE_OPTIONS: List[str] = [
    "SEO",
    "SMM (Social Media Marketing)",
    "Website Development",
    "Paid Ads (Google/Facebook)",
    "Content Marketing",
    "Email Marketing",
    "Graphic Design",
    "Video Production",
]

REQUIRED_FIELDS = ("business_name", "contact_person", "phone")
OPTIONAL_TEXT_FIELDS = ("email", "address", "city", "notes_first_call")


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _check_services(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return None
    unknown = [service for service in value if service not in SERVICE_OPTIONS]
    if unknown:
        raise ValueError(f"Unknown services: {', '.join(unknown)}")
    # membership only, duplicates collapse
    deduped = list(dict.fromkeys(value))
    return deduped or None


class Lead(BaseModel):
    """A lead row as returned by the record store."""

    id: str
    user_id: Optional[str] = None
    business_name: str
    contact_person: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    lead_status: LeadStatus
    stage: Stage
    next_followup_date: Optional[datetime] = None
    interested_services: Optional[List[str]] = None
    notes_first_call: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None

    @field_validator("id", "user_id", "created_by", mode="before")
    @classmethod
    def _stringify_ids(cls, value):
        return str(value) if value is not None else None


class LeadCreate(BaseModel):
    business_name: str
    contact_person: str
    phone: str
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    city: Optional[str] = None
    lead_status: LeadStatus = LeadStatus.WARM
    next_followup_date: Optional[datetime] = None
    interested_services: Optional[List[str]] = None
    notes_first_call: Optional[str] = None

    @field_validator(*REQUIRED_FIELDS)
    @classmethod
    def _required_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("This field is required.")
        return value

    @field_validator(*OPTIONAL_TEXT_FIELDS, "next_followup_date", mode="before")
    @classmethod
    def _optional_blank(cls, value):
        return _blank_to_none(value)

    @field_validator("interested_services")
    @classmethod
    def _services_from_catalog(cls, value):
        return _check_services(value)


class LeadUpdate(BaseModel):
    """Partial edit; only fields the caller sends are written."""

    business_name: Optional[str] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    city: Optional[str] = None
    lead_status: Optional[LeadStatus] = None
    stage: Optional[Stage] = None
    next_followup_date: Optional[datetime] = None
    interested_services: Optional[List[str]] = None
    notes_first_call: Optional[str] = None

    @field_validator(*REQUIRED_FIELDS)
    @classmethod
    def _required_not_blank(cls, value: Optional[str]) -> str:
        if value is None or not value.strip():
            raise ValueError("This field cannot be empty.")
        return value.strip()

    @field_validator(*OPTIONAL_TEXT_FIELDS, "next_followup_date", mode="before")
    @classmethod
    def _optional_blank(cls, value):
        return _blank_to_none(value)

    @field_validator("lead_status", "stage")
    @classmethod
    def _enum_not_null(cls, value):
        if value is None:
            raise ValueError("This field cannot be null.")
        return value

    @field_validator("interested_services")
    @classmethod
    def _services_from_catalog(cls, value):
        return _check_services(value)


class StageChange(BaseModel):
    stage: Stage


class StatusChange(BaseModel):
    lead_status: LeadStatus


class FollowUpDateChange(BaseModel):
    next_followup_date: Optional[datetime] = None

    @field_validator("next_followup_date", mode="before")
    @classmethod
    def _optional_blank(cls, value):
        return _blank_to_none(value)


class StageColumn(BaseModel):
    stage: Stage
    count: int
    leads: List[Lead]


class FollowUpEntry(BaseModel):
    lead: Lead
    overdue: bool


class FollowUpBucketOption(BaseModel):
    id: str
    label: str
