"""
Appointment Schemas - Pydantic models for appointment validation and serialization.
"""
import datetime as dt
import re
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator
from .models import AppointmentStatus

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _check_time(value: str) -> str:
    value = value.strip()
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM format")
    return value


class AppointmentCreate(BaseModel):
    """
    Appointment Create Schema

    Fields:
    - patient_id: Patient record id
    - doctor_id: Account id of a doctor
    - date: Appointment day
    - time: Time slot (HH:MM, 24-hour)
    - status: Defaults to scheduled
    - notes: Optional notes
    """
    patient_id: int
    doctor_id: int
    date: dt.date
    time: str
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _check_time(v)


class AppointmentUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""
    patient_id: Optional[int] = None
    doctor_id: Optional[int] = None
    date: Optional[dt.date] = None
    time: Optional[str] = None
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_time(v)


class AppointmentPatient(BaseModel):
    id: int
    patient_code: str
    first_name: str
    last_name: str

    class Config:
        from_attributes = True


class AppointmentDoctor(BaseModel):
    id: int
    name: str
    specialization: Optional[str] = None

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    date: dt.date
    time: str
    status: AppointmentStatus
    notes: Optional[str] = None
    patient: Optional[AppointmentPatient] = None
    doctor: Optional[AppointmentDoctor] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
