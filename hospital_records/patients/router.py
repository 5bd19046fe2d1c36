"""
Patient record routes.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..auth.dependencies import AuthenticatedUser, require_route
from ..auth.schemas import MessageResponse
from ..core.pagination import PageParams
from ..database import get_db
from . import service
from .schemas import (
    AllergyCreate,
    AuditLogResponse,
    LabReportCreate,
    LabReportReview,
    MedicalHistoryCreate,
    PatientCreate,
    PatientExport,
    PatientListItem,
    PatientMutationResponse,
    PatientSearchResponse,
    PatientUpdate,
    PatientView,
    PrescriptionCreate,
    PrescriptionStatusUpdate,
    RefillCreate,
    VisitCreate,
)

# Set up logging
logger = logging.getLogger(__name__)

router = APIRouter()


def _mutation(message: str, patient, current_user: AuthenticatedUser) -> dict:
    return {"message": message, "patient": service.project_patient(patient, current_user.role)}


@router.get("/", response_model=List[PatientListItem])
def list_patients(
    search: Optional[str] = Query(None, description="Substring of name or patient code"),
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("patients.list")),
):
    """
    List active patients, optionally filtered by name or patient code.
    """
    return service.find_patients(db, search)


@router.get("/search", response_model=PatientSearchResponse)
def search_patients(
    name: Optional[str] = None,
    condition: Optional[str] = None,
    allergy: Optional[str] = None,
    date_range: Optional[str] = Query(None, description="Visit date bounds as 'start,end'"),
    page_params: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("patients.search")),
):
    return service.search_patients(
        db, page_params, name=name, condition=condition, allergy=allergy, date_range=date_range
    )


@router.post("/", response_model=PatientMutationResponse, status_code=status.HTTP_201_CREATED)
@router.post("/add", response_model=PatientMutationResponse, status_code=status.HTTP_201_CREATED,
             include_in_schema=False)
def create_patient(
    data: PatientCreate,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("patients.create")),
):
    """
    Register a new patient.

    Raises:
        400 "Patient ID already exists" if the patient code is taken
    """
    patient = service.create_patient(db, data, current_user)
    return _mutation("Patient added successfully", patient, current_user)


@router.get("/{patient_id}", response_model=PatientView)
def get_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("patients.view")),
):
    """
    Get one patient. Doctors and nurses receive the full record; other roles
    receive demographics with per-collection counts.
    """
    return service.get_patient(db, patient_id, current_user)


@router.patch("/{patient_id}", response_model=PatientMutationResponse)
def update_patient(
    patient_id: int,
    data: PatientUpdate,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("patients.update")),
):
    patient = service.update_patient(db, patient_id, data, current_user)
    return _mutation("Patient updated successfully", patient, current_user)


@router.post("/{patient_id}/medical-history", response_model=PatientMutationResponse,
             status_code=status.HTTP_201_CREATED)
def add_medical_history(
    patient_id: int,
    data: MedicalHistoryCreate,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("patients.add_medical_history")),
):
    patient = service.add_medical_history(db, patient_id, data, current_user)
    return _mutation("Medical history entry added successfully", patient, current_user)


@router.post("/{patient_id}/allergies", response_model=PatientMutationResponse,
             status_code=status.HTTP_201_CREATED)
def add_allergy(
    patient_id: int,
    data: AllergyCreate,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("patients.add_allergy")),
):
    patient = service.add_allergy(db, patient_id, data, current_user)
    return _mutation("Allergy added successfully", patient, current_user)


@router.post("/{patient_id}/prescriptions", response_model=PatientMutationResponse,
             status_code=status.HTTP_201_CREATED)
def add_prescription(
    patient_id: int,
    data: PrescriptionCreate,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("patients.add_prescription")),
):
    patient = service.add_prescription(db, patient_id, data, current_user)
    return _mutation("Prescription added successfully", patient, current_user)


@router.patch("/{patient_id}/prescriptions/{prescription_id}", response_model=PatientMutationResponse)
def update_prescription(
    patient_id: int,
    prescription_id: int,
    data: PrescriptionStatusUpdate,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("patients.update_prescription")),
):
    patient = service.update_prescription_status(db, patient_id, prescription_id, data, current_user)
    return _mutation("Prescription updated successfully", patient, current_user)


@router.post("/{patient_id}/prescriptions/{prescription_id}/refills", response_model=PatientMutationResponse,
             status_code=status.HTTP_201_CREATED)
def add_refill(
    patient_id: int,
    prescription_id: int,
    data: RefillCreate,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("patients.add_refill")),
):
    patient = service.add_refill(db, patient_id, prescription_id, data, current_user)
    return _mutation("Refill recorded successfully", patient, current_user)


@router.post("/{patient_id}/visits", response_model=PatientMutationResponse,
             status_code=status.HTTP_201_CREATED)
def add_visit(
    patient_id: int,
    data: VisitCreate,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("patients.add_visit")),
):
    patient = service.add_visit(db, patient_id, data, current_user)
    return _mutation("Visit recorded successfully", patient, current_user)


@router.post("/{patient_id}/lab-reports", response_model=PatientMutationResponse,
             status_code=status.HTTP_201_CREATED)
def add_lab_report(
    patient_id: int,
    data: LabReportCreate,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("patients.add_lab_report")),
):
    patient = service.add_lab_report(db, patient_id, data, current_user)
    return _mutation("Lab report added successfully", patient, current_user)


@router.patch("/{patient_id}/lab-reports/{report_id}", response_model=PatientMutationResponse)
def review_lab_report(
    patient_id: int,
    report_id: int,
    data: LabReportReview,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("patients.review_lab_report")),
):
    patient = service.review_lab_report(db, patient_id, report_id, data, current_user)
    return _mutation("Lab report updated successfully", patient, current_user)


@router.get("/{patient_id}/audit-log", response_model=AuditLogResponse)
def get_audit_log(
    patient_id: int,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("patients.audit_log")),
):
    return service.get_audit_log(db, patient_id, current_user)


@router.get("/{patient_id}/export", response_model=PatientExport)
def export_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("patients.export")),
):
    return service.export_patient(db, patient_id, current_user)


@router.delete("/{patient_id}", response_model=MessageResponse)
def delete_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("patients.delete")),
):
    """Soft delete: the record is marked inactive, never removed."""
    service.soft_delete_patient(db, patient_id, current_user)
    return {"message": "Patient record deleted successfully"}
