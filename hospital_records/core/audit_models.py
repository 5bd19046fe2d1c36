"""
Patient access log model.

Entries are append-only: nothing in the application updates or deletes them.
"""
import enum
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class AccessAction(str, enum.Enum):
    VIEW = "View"
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"
    EXPORT = "Export"


class PatientAccessLog(Base):
    __tablename__ = "patient_access_log"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(Enum(AccessAction, name="access_action", values_callable=lambda e: [m.value for m in e]),
                    nullable=False, index=True)
    details = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    user = relationship("User")
    patient = relationship("Patient", back_populates="access_log")

    def __repr__(self):
        return f"<PatientAccessLog(id={self.id}, patient_id={self.patient_id}, action='{self.action}', timestamp='{self.timestamp}')>"
