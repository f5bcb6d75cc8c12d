# siteaccess/schemas/visit.py
from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from typing import Optional
from siteaccess.models.enums import VisitPurpose


class VisitCreate(BaseModel):
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    email: Optional[str] = None
    phone: str = Field(pattern=r"^\+?[1-9]\d{0,15}$")
    id_number: str = Field(min_length=5, max_length=50)
    company: Optional[str] = Field(default=None, max_length=100)
    vehicle_number: Optional[str] = Field(default=None, max_length=20)
    host_employee: str = Field(min_length=1, max_length=100)   # employee id, email or full name
    host_department: str = Field(min_length=1, max_length=100)
    visit_purpose: VisitPurpose
    expected_date: date
    expected_time: str = Field(pattern=r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("first_name", "last_name", "id_number", "host_employee", "host_department")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().lower() if value else None


class VisitReject(BaseModel):
    reason: str = Field(max_length=500)


class GateAction(BaseModel):
    """Optional body for check-in / check-out."""
    location: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=500)


class VisitOut(BaseModel):
    id: str
    first_name: str
    last_name: str
    full_name: str
    email: Optional[str]
    phone: str
    id_number: str
    company: Optional[str]
    vehicle_number: Optional[str]
    host_employee: str
    host_employee_id: Optional[str]
    host_department: str
    visit_purpose: str
    expected_date: date
    expected_time: str
    status: str
    qr_code: Optional[str]
    approved_by_id: Optional[str]
    rejection_reason: Optional[str]
    actual_check_in: Optional[datetime]
    actual_check_out: Optional[datetime]
    reception_confirmed_at: Optional[datetime]
    reception_confirmed_by_id: Optional[str]
    is_reception_confirmed: bool
    visit_duration: Optional[str]
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
