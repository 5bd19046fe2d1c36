"""
Appointment routes.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..auth.dependencies import AuthenticatedUser, require_route
from ..auth.schemas import MessageResponse
from ..database import get_db
from . import service
from .models import AppointmentStatus
from .schemas import AppointmentCreate, AppointmentResponse, AppointmentUpdate

router = APIRouter()


@router.get("/", response_model=List[AppointmentResponse])
def list_appointments(
    status_filter: Optional[AppointmentStatus] = Query(None, alias="status"),
    doctor_id: Optional[int] = None,
    on_date: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("appointments.list")),
):
    """
    List appointments, optionally filtered by status, doctor, or day.
    """
    return service.list_appointments(db, status_filter, doctor_id, on_date)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("appointments.view")),
):
    return service.get_appointment(db, appointment_id)


@router.post("/", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: AppointmentCreate,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("appointments.create")),
):
    return service.create_appointment(db, data, current_user.id)


@router.patch("/{appointment_id}", response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("appointments.update")),
):
    return service.update_appointment(db, appointment_id, data, current_user.id)


@router.delete("/{appointment_id}", response_model=MessageResponse)
def delete_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("appointments.delete")),
):
    service.delete_appointment(db, appointment_id, current_user.id)
    return {"message": "Appointment deleted"}
