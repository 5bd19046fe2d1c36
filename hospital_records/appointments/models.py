"""
Appointment Model - Scheduled patient/doctor meetings.
"""
from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, Enum, func
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum
from ..database import Base


class AppointmentStatus(str, enum.Enum):
    """Enum for appointment status"""
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class Appointment(Base):
    """
    Appointment Model - Stores appointment information

    Fields:
    - id: Primary key for appointment
    - patient_id: Foreign key to the patient record
    - doctor_id: Foreign key to an account with role doctor
    - date: Day of the appointment
    - time: Time slot as HH:MM
    - status: Current status of the appointment
    - notes: Additional notes about the appointment
    - created_at / updated_at: Timestamps
    """
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    time = Column(String(5), nullable=False)
    status = Column(Enum(AppointmentStatus, name="appointment_status", values_callable=lambda e: [m.value for m in e]),
                    nullable=False, default=AppointmentStatus.SCHEDULED)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("User")

    def __repr__(self):
        return f"<Appointment(id={self.id}, doctor_id={self.doctor_id}, patient_id={self.patient_id}, date='{self.date}')>"

    def update_status(self, status: AppointmentStatus) -> None:
        self.status = status
        self.updated_at = datetime.now(timezone.utc)
