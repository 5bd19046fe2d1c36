"""
Patient Models - Patient records and their clinical sub-records.

Sub-collections are append-only in normal operation and ordered by insertion.
Each entry references the account that authored it.
"""
import enum
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Date, DateTime, Float, ForeignKey, JSON, Enum, func,
)
from sqlalchemy.orm import relationship
from ..database import Base


def _enum_column(enum_cls, name: str, **kwargs):
    return Column(Enum(enum_cls, name=name, values_callable=lambda e: [m.value for m in e]), **kwargs)


class Gender(str, enum.Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class ConditionStatus(str, enum.Enum):
    ACTIVE = "Active"
    RESOLVED = "Resolved"
    CHRONIC = "Chronic"
    UNDER_OBSERVATION = "Under Observation"


class ConditionSeverity(str, enum.Enum):
    MILD = "Mild"
    MODERATE = "Moderate"
    SEVERE = "Severe"
    CRITICAL = "Critical"


class AllergySeverity(str, enum.Enum):
    MILD = "Mild"
    MODERATE = "Moderate"
    SEVERE = "Severe"
    LIFE_THREATENING = "Life-threatening"


class PrescriptionStatus(str, enum.Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    DISCONTINUED = "Discontinued"


class VisitType(str, enum.Enum):
    ROUTINE_CHECKUP = "Routine Checkup"
    EMERGENCY = "Emergency"
    FOLLOW_UP = "Follow-up"
    SPECIALIST_CONSULTATION = "Specialist Consultation"


class LabStatus(str, enum.Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    ABNORMAL = "Abnormal"
    CRITICAL = "Critical"


class Patient(Base):
    """
    Patient Model - Demographics plus nested clinical data

    Fields:
    - patient_code: Unique, immutable code (three uppercase letters, six digits)
    - first_name / last_name / date_of_birth / gender: Demographics
    - phone / email / address: Optional contact details
    - emergency_contact: {name, relationship, phone}
    - insurance: {provider, policy_number, group_number, coverage_type, valid_from, valid_to}
    - is_active: Cleared by soft delete
    - created_by / updated_by / last_accessed_by: Acting accounts
    """
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    patient_code = Column(String(9), unique=True, index=True, nullable=False)
    first_name = Column(String(50), nullable=False, index=True)
    last_name = Column(String(50), nullable=False, index=True)
    date_of_birth = Column(Date, nullable=False)
    gender = _enum_column(Gender, "patient_gender", nullable=False)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    address = Column(String(200), nullable=True)
    emergency_contact = Column(JSON, nullable=True)
    insurance = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    updated_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    last_accessed_at = Column(DateTime(timezone=True), nullable=True)
    last_accessed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    medical_history = relationship("MedicalHistoryEntry", back_populates="patient",
                                   cascade="all, delete-orphan", order_by="MedicalHistoryEntry.id")
    allergies = relationship("Allergy", back_populates="patient",
                             cascade="all, delete-orphan", order_by="Allergy.id")
    prescriptions = relationship("Prescription", back_populates="patient",
                                 cascade="all, delete-orphan", order_by="Prescription.id")
    visits = relationship("Visit", back_populates="patient",
                          cascade="all, delete-orphan", order_by="Visit.id")
    lab_reports = relationship("LabReport", back_populates="patient",
                               cascade="all, delete-orphan", order_by="LabReport.id")
    access_log = relationship("PatientAccessLog", back_populates="patient",
                              cascade="all, delete-orphan", order_by="PatientAccessLog.id")
    appointments = relationship("Appointment", back_populates="patient", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Patient(id={self.id}, patient_code='{self.patient_code}')>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class MedicalHistoryEntry(Base):
    __tablename__ = "medical_history"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    condition = Column(String, nullable=False, index=True)
    diagnosis_date = Column(Date, nullable=False)
    status = _enum_column(ConditionStatus, "condition_status", nullable=False, default=ConditionStatus.ACTIVE)
    severity = _enum_column(ConditionSeverity, "condition_severity", nullable=True)
    notes = Column(Text, nullable=True)
    diagnosed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    patient = relationship("Patient", back_populates="medical_history")


class Allergy(Base):
    __tablename__ = "allergies"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    allergen = Column(String, nullable=False, index=True)
    severity = _enum_column(AllergySeverity, "allergy_severity", nullable=False)
    reaction = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    diagnosed_date = Column(Date, nullable=True)
    recorded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    patient = relationship("Patient", back_populates="allergies")


class Prescription(Base):
    __tablename__ = "prescriptions"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    medication = Column(String, nullable=False, index=True)
    dosage = Column(String, nullable=False)
    frequency = Column(String, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    status = _enum_column(PrescriptionStatus, "prescription_status", nullable=False,
                          default=PrescriptionStatus.ACTIVE)
    notes = Column(Text, nullable=True)
    prescribed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    patient = relationship("Patient", back_populates="prescriptions")
    refills = relationship("PrescriptionRefill", back_populates="prescription",
                           cascade="all, delete-orphan", order_by="PrescriptionRefill.id")


class PrescriptionRefill(Base):
    __tablename__ = "prescription_refills"

    id = Column(Integer, primary_key=True, index=True)
    prescription_id = Column(Integer, ForeignKey("prescriptions.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    quantity = Column(Integer, nullable=False)
    dispensed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    prescription = relationship("Prescription", back_populates="refills")


class Visit(Base):
    """
    Visit Model - A single encounter

    ``vitals`` holds blood_pressure, heart_rate, temperature, weight, height
    and oxygen_saturation; it is null when no vitals were recorded.
    """
    __tablename__ = "visits"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    type = _enum_column(VisitType, "visit_type", nullable=False)
    department = Column(String, nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    diagnosis = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    vitals = Column(JSON, nullable=True)
    follow_up_date = Column(Date, nullable=True)
    wait_time_minutes = Column(Float, nullable=True)
    recorded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    patient = relationship("Patient", back_populates="visits")
    doctor = relationship("User", foreign_keys=[doctor_id])
    attachments = relationship("VisitAttachment", back_populates="visit",
                               cascade="all, delete-orphan", order_by="VisitAttachment.id")


class VisitAttachment(Base):
    __tablename__ = "visit_attachments"

    id = Column(Integer, primary_key=True, index=True)
    visit_id = Column(Integer, ForeignKey("visits.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String, nullable=False)
    url = Column(String, nullable=False)
    description = Column(String, nullable=True)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())
    uploaded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    visit = relationship("Visit", back_populates="attachments")


class LabReport(Base):
    __tablename__ = "lab_reports"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    test_name = Column(String, nullable=False, index=True)
    date = Column(Date, nullable=False)
    results = Column(Text, nullable=True)
    status = _enum_column(LabStatus, "lab_status", nullable=False, default=LabStatus.PENDING)
    notes = Column(Text, nullable=True)
    ordered_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    patient = relationship("Patient", back_populates="lab_reports")
