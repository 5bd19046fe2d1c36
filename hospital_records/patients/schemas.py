"""
Patient Schemas - Pydantic models for patient record validation and serialization.

Reads are projected per role: doctors and nurses receive ``PatientDetailView``
with every clinical sub-record, every other role receives
``PatientSummaryView`` with demographics and per-collection counts.
"""
import datetime as dt
import re
from datetime import date, datetime
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from ..core.audit_models import AccessAction
from ..core.pagination import PageResponse
from .models import (
    AllergySeverity,
    ConditionSeverity,
    ConditionStatus,
    Gender,
    LabStatus,
    PrescriptionStatus,
    VisitType,
)

PATIENT_CODE_PATTERN = re.compile(r"^[A-Z]{3}\d{6}$")
NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-']+$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s-]{10,}$")


def _check_name(value: str, label: str) -> str:
    value = value.strip()
    if not 2 <= len(value) <= 50:
        raise ValueError(f"{label} must be between 2 and 50 characters")
    if not NAME_PATTERN.match(value):
        raise ValueError(f"{label} can only contain letters, spaces, hyphens, and apostrophes")
    return value


def _check_phone(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    value = value.strip()
    if not PHONE_PATTERN.match(value):
        raise ValueError("Invalid phone number format")
    return value


def _check_date_of_birth(value: date) -> date:
    if value >= date.today():
        raise ValueError("Date of birth must be in the past")
    return value


class EmergencyContact(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    relationship: str = Field(..., min_length=2, max_length=50)
    phone: str

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        checked = _check_phone(v)
        if checked is None:
            raise ValueError("Emergency contact phone is required")
        return checked


class Insurance(BaseModel):
    provider: str = Field(..., min_length=2, max_length=100)
    policy_number: str = Field(..., min_length=1, max_length=50)
    group_number: Optional[str] = None
    coverage_type: Optional[str] = None
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None

    @model_validator(mode="after")
    def check_validity_window(self):
        if self.valid_from and self.valid_to and self.valid_to < self.valid_from:
            raise ValueError("Insurance valid_to must not be before valid_from")
        return self


class PatientCreate(BaseModel):
    """
    Patient Create Schema - Used when registering a patient

    Fields:
    - patient_code: Three uppercase letters followed by six digits (e.g. PAT000123)
    - first_name / last_name: Letters, spaces, hyphens, apostrophes (2-50 chars)
    - date_of_birth: Must be in the past
    - gender: Male, Female or Other
    - phone / email / address: Optional contact details
    - emergency_contact / insurance: Optional nested details
    """
    patient_code: str
    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = Field(None, max_length=200)
    emergency_contact: Optional[EmergencyContact] = None
    insurance: Optional[Insurance] = None

    @field_validator("patient_code")
    @classmethod
    def validate_patient_code(cls, v: str) -> str:
        v = v.strip()
        if not PATIENT_CODE_PATTERN.match(v):
            raise ValueError("Patient ID must be 3 uppercase letters followed by 6 digits")
        return v

    @field_validator("first_name")
    @classmethod
    def validate_first_name(cls, v: str) -> str:
        return _check_name(v, "First name")

    @field_validator("last_name")
    @classmethod
    def validate_last_name(cls, v: str) -> str:
        return _check_name(v, "Last name")

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, v: date) -> date:
        return _check_date_of_birth(v)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return _check_phone(v)


class PatientUpdate(BaseModel):
    """
    Demographic update. The patient code is immutable and is rejected if sent.
    """
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = Field(None, max_length=200)
    emergency_contact: Optional[EmergencyContact] = None
    insurance: Optional[Insurance] = None

    class Config:
        extra = "forbid"

    @field_validator("first_name")
    @classmethod
    def validate_first_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_name(v, "First name")

    @field_validator("last_name")
    @classmethod
    def validate_last_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_name(v, "Last name")

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, v: Optional[date]) -> Optional[date]:
        return None if v is None else _check_date_of_birth(v)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return _check_phone(v)


# Sub-entry payloads

class MedicalHistoryCreate(BaseModel):
    condition: str = Field(..., min_length=1, max_length=200)
    diagnosis_date: date
    status: ConditionStatus = ConditionStatus.ACTIVE
    severity: Optional[ConditionSeverity] = None
    notes: Optional[str] = None

    @field_validator("diagnosis_date")
    @classmethod
    def not_in_future(cls, v: date) -> date:
        if v > date.today():
            raise ValueError("Diagnosis date cannot be in the future")
        return v


class AllergyCreate(BaseModel):
    allergen: str = Field(..., min_length=1, max_length=100)
    severity: AllergySeverity
    reaction: Optional[str] = None
    notes: Optional[str] = None
    diagnosed_date: Optional[date] = None


class PrescriptionCreate(BaseModel):
    """New prescriptions always start with status Active."""
    medication: str = Field(..., min_length=1, max_length=100)
    dosage: str = Field(..., min_length=1, max_length=50)
    frequency: str = Field(..., min_length=1, max_length=50)
    start_date: date
    end_date: Optional[date] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("End date must not be before start date")
        return self


class PrescriptionStatusUpdate(BaseModel):
    status: PrescriptionStatus
    end_date: Optional[date] = None
    notes: Optional[str] = None


class RefillCreate(BaseModel):
    date: dt.date = Field(default_factory=dt.date.today)
    quantity: int = Field(..., ge=1)


class Vitals(BaseModel):
    blood_pressure: Optional[str] = Field(None, pattern=r"^\d{2,3}/\d{2,3}$")
    heart_rate: Optional[int] = Field(None, ge=20, le=250)
    temperature: Optional[float] = Field(None, ge=30, le=45)
    weight: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)
    oxygen_saturation: Optional[float] = Field(None, ge=0, le=100)


class AttachmentCreate(BaseModel):
    type: str = Field(..., min_length=1, max_length=50)
    url: str = Field(..., min_length=1)
    description: Optional[str] = None


class VisitCreate(BaseModel):
    date: datetime = Field(default_factory=datetime.now)
    type: VisitType
    department: str = Field(..., min_length=2, max_length=50)
    doctor_id: Optional[int] = None
    diagnosis: Optional[str] = None
    notes: Optional[str] = None
    vitals: Optional[Vitals] = None
    follow_up_date: Optional[dt.date] = None
    wait_time_minutes: Optional[float] = Field(None, ge=0)
    attachments: List[AttachmentCreate] = Field(default_factory=list)


class LabReportCreate(BaseModel):
    """New lab reports always start with status Pending."""
    test_name: str = Field(..., min_length=1, max_length=100)
    date: dt.date = Field(default_factory=dt.date.today)
    results: Optional[str] = None
    notes: Optional[str] = None


class LabReportReview(BaseModel):
    status: LabStatus
    results: Optional[str] = None
    notes: Optional[str] = None


# Response models

class StaffRef(BaseModel):
    id: int
    name: str
    role: str

    class Config:
        from_attributes = True


class MedicalHistoryResponse(BaseModel):
    id: int
    condition: str
    diagnosis_date: date
    status: ConditionStatus
    severity: Optional[ConditionSeverity] = None
    notes: Optional[str] = None
    diagnosed_by: Optional[int] = None

    class Config:
        from_attributes = True


class AllergyResponse(BaseModel):
    id: int
    allergen: str
    severity: AllergySeverity
    reaction: Optional[str] = None
    notes: Optional[str] = None
    diagnosed_date: Optional[date] = None
    recorded_by: Optional[int] = None

    class Config:
        from_attributes = True


class RefillResponse(BaseModel):
    id: int
    date: dt.date
    quantity: int
    dispensed_by: Optional[int] = None

    class Config:
        from_attributes = True


class PrescriptionResponse(BaseModel):
    id: int
    medication: str
    dosage: str
    frequency: str
    start_date: date
    end_date: Optional[date] = None
    status: PrescriptionStatus
    notes: Optional[str] = None
    prescribed_by: Optional[int] = None
    refills: List[RefillResponse] = []

    class Config:
        from_attributes = True


class AttachmentResponse(BaseModel):
    id: int
    type: str
    url: str
    description: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    uploaded_by: Optional[int] = None

    class Config:
        from_attributes = True


class VisitResponse(BaseModel):
    id: int
    date: datetime
    type: VisitType
    department: str
    doctor_id: Optional[int] = None
    diagnosis: Optional[str] = None
    notes: Optional[str] = None
    vitals: Optional[Dict[str, Optional[Union[float, int, str]]]] = None
    follow_up_date: Optional[date] = None
    wait_time_minutes: Optional[float] = None
    recorded_by: Optional[int] = None
    attachments: List[AttachmentResponse] = []

    class Config:
        from_attributes = True


class LabReportResponse(BaseModel):
    id: int
    test_name: str
    date: dt.date
    results: Optional[str] = None
    status: LabStatus
    notes: Optional[str] = None
    ordered_by: Optional[int] = None
    reviewed_by: Optional[int] = None

    class Config:
        from_attributes = True


class PatientBase(BaseModel):
    id: int
    patient_code: str
    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PatientListItem(PatientBase):
    """Row shape used by list, find and search results."""


class PatientDetailView(PatientBase):
    """
    Full record, exposed to doctors and nurses only.
    """
    view: Literal["detail"] = "detail"
    emergency_contact: Optional[EmergencyContact] = None
    insurance: Optional[Insurance] = None
    medical_history: List[MedicalHistoryResponse] = []
    allergies: List[AllergyResponse] = []
    prescriptions: List[PrescriptionResponse] = []
    visits: List[VisitResponse] = []
    lab_reports: List[LabReportResponse] = []
    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    last_accessed_at: Optional[datetime] = None
    last_accessed_by: Optional[int] = None


class PatientSummaryView(PatientBase):
    """
    Demographics plus per-collection counts, for roles without clinical access.
    """
    view: Literal["summary"] = "summary"
    medical_history_count: int = 0
    allergy_count: int = 0
    prescription_count: int = 0
    visit_count: int = 0
    lab_report_count: int = 0


PatientView = Union[PatientDetailView, PatientSummaryView]


class PatientMutationResponse(BaseModel):
    message: str
    patient: PatientView


class PatientSearchResponse(PageResponse[PatientListItem]):
    """One page of active patients, newest first."""


class AccessLogEntryResponse(BaseModel):
    id: int
    timestamp: datetime
    action: AccessAction
    details: Optional[str] = None
    user: Optional[StaffRef] = None

    class Config:
        from_attributes = True


class AuditSummary(BaseModel):
    created_at: Optional[datetime] = None
    created_by: Optional[StaffRef] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[StaffRef] = None
    last_accessed_at: Optional[datetime] = None
    last_accessed_by: Optional[StaffRef] = None


class AuditLogResponse(BaseModel):
    patient_id: int
    patient_code: str
    audit: AuditSummary
    access_log: List[AccessLogEntryResponse]


class PatientExport(BaseModel):
    exported_at: datetime
    exported_by: int
    patient: PatientView
    access_log: List[AccessLogEntryResponse]
