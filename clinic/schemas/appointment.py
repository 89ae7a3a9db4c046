from datetime import datetime
import re
from typing import Optional, List, Dict
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..models.appointment import AppointmentStatus, TIME_SLOTS

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

def _check_preferred_date(value: Optional[str]) -> Optional[str]:
    if value in (None, ""):
        return None
    message = "preferred_date must be an ISO date (yyyy-MM-dd)"
    if not ISO_DATE.match(value):
        raise ValueError(message)
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise ValueError(message)
    return value

def _check_phone(value: Optional[str]) -> Optional[str]:
    if value is not None and not re.search(r"\d", value):
        raise ValueError("phone must contain digits")
    return value

def _check_preferred_time(value: Optional[str]) -> Optional[str]:
    if value in (None, ""):
        return None
    if value not in TIME_SLOTS:
        raise ValueError(f"preferred_time must be one of {TIME_SLOTS}")
    return value

class AppointmentCreate(BaseModel):
    """Payload of the public booking form. Status is never accepted here."""
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=40)
    message: str = ""
    service_id: Optional[str] = None
    preferred_date: Optional[str] = None
    preferred_time: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value):
        return _check_phone(value)

    @field_validator("preferred_date")
    @classmethod
    def validate_preferred_date(cls, value):
        return _check_preferred_date(value)

    @field_validator("preferred_time")
    @classmethod
    def validate_preferred_time(cls, value):
        return _check_preferred_time(value)

class StaffAppointmentCreate(AppointmentCreate):
    """Appointment entered directly by the administrator."""
    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    admin_notes: Optional[str] = None

class AppointmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=1, max_length=40)
    message: Optional[str] = None
    service_id: Optional[str] = None
    preferred_date: Optional[str] = None
    preferred_time: Optional[str] = None
    status: Optional[AppointmentStatus] = None
    admin_notes: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value):
        return _check_phone(value)

    @field_validator("preferred_date")
    @classmethod
    def validate_preferred_date(cls, value):
        return _check_preferred_date(value)

    @field_validator("preferred_time")
    @classmethod
    def validate_preferred_time(cls, value):
        return _check_preferred_time(value)

class ContactMessage(BaseModel):
    """Payload of the public contact form."""
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=40)
    message: str = Field(..., min_length=1)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value):
        return _check_phone(value)

class AppointmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    phone: str
    message: str = ""
    service_id: Optional[str] = None
    service_title: Optional[str] = None
    preferred_date: Optional[str] = None
    preferred_time: Optional[str] = None
    status: AppointmentStatus
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

class AppointmentStats(BaseModel):
    total: int
    by_status: Dict[AppointmentStatus, int]

class TimeSlots(BaseModel):
    slots: List[str]
