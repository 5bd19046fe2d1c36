"""
Appointment Service - Business logic for appointment scheduling.
"""
from datetime import date
from typing import List, Optional
import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..auth.models import User, UserRole
from ..exceptions import FieldValidationException
from ..patients.models import Patient
from .exceptions import AppointmentNotFoundException
from .models import Appointment, AppointmentStatus
from .schemas import AppointmentCreate, AppointmentUpdate

# Set up logging
logger = logging.getLogger(__name__)


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error while {action}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"An error occurred while {action}"
        )


def _check_participants(db: Session, patient_id: Optional[int], doctor_id: Optional[int]) -> None:
    """
    Raises:
        FieldValidationException: If the patient is unknown or the doctor is
            not an account with role doctor
    """
    details = []
    if patient_id is not None and not db.query(Patient.id).filter(Patient.id == patient_id).first():
        details.append({"field": "patient_id", "message": "Patient not found"})
    if doctor_id is not None:
        doctor = db.query(User).filter(User.id == doctor_id).first()
        if not doctor or doctor.role != UserRole.DOCTOR:
            details.append({"field": "doctor_id", "message": "Doctor not found"})
    if details:
        raise FieldValidationException(details)


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    """
    Get an appointment by ID.

    Raises:
        AppointmentNotFoundException: If no such appointment exists
    """
    appointment = (
        db.query(Appointment)
        .options(joinedload(Appointment.patient), joinedload(Appointment.doctor))
        .filter(Appointment.id == appointment_id)
        .first()
    )
    if not appointment:
        raise AppointmentNotFoundException()
    return appointment


def list_appointments(
    db: Session,
    status_filter: Optional[AppointmentStatus] = None,
    doctor_id: Optional[int] = None,
    on_date: Optional[date] = None,
) -> List[Appointment]:
    query = db.query(Appointment).options(joinedload(Appointment.patient), joinedload(Appointment.doctor))
    if status_filter:
        query = query.filter(Appointment.status == status_filter)
    if doctor_id:
        query = query.filter(Appointment.doctor_id == doctor_id)
    if on_date:
        query = query.filter(Appointment.date == on_date)
    return query.order_by(Appointment.date.asc(), Appointment.time.asc(), Appointment.id.asc()).all()


def create_appointment(db: Session, data: AppointmentCreate, current_user_id: int) -> Appointment:
    """
    Book an appointment.

    Args:
        db: Database session
        data: Validated appointment data
        current_user_id: ID of the booking account

    Returns:
        Appointment: The stored appointment
    """
    _check_participants(db, data.patient_id, data.doctor_id)

    appointment = Appointment(**data.model_dump())
    db.add(appointment)
    _commit(db, "creating the appointment")
    db.refresh(appointment)

    logger.info(f"Appointment {appointment.id} booked by user {current_user_id}")
    return appointment


def update_appointment(
    db: Session,
    appointment_id: int,
    data: AppointmentUpdate,
    current_user_id: int
) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    update_data = data.model_dump(exclude_unset=True)
    _check_participants(db, update_data.get("patient_id"), update_data.get("doctor_id"))

    new_status = update_data.pop("status", None)
    for field, value in update_data.items():
        # Only notes may be cleared
        if value is None and field != "notes":
            continue
        setattr(appointment, field, value)
    if new_status is not None:
        appointment.update_status(new_status)

    _commit(db, "updating the appointment")
    db.refresh(appointment)
    logger.info(f"Appointment {appointment_id} updated by user {current_user_id}")
    return appointment


def delete_appointment(db: Session, appointment_id: int, current_user_id: int) -> None:
    """Hard delete."""
    appointment = get_appointment(db, appointment_id)
    db.delete(appointment)
    _commit(db, "deleting the appointment")
    logger.info(f"Appointment {appointment_id} deleted by user {current_user_id}")
