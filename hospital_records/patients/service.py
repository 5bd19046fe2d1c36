"""
Patient Service - Business logic for patient records.

Every per-record operation stages exactly one access log entry and commits it
in the same transaction as its own changes. Collection queries (list, find,
search) never write.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from fastapi import HTTPException, status
from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.dependencies import AuthenticatedUser
from ..auth.models import User, UserRole
from ..core.audit_models import AccessAction
from ..core.audit_service import log_access
from ..core.pagination import PageParams, paginate
from ..core.permissions import can_view_clinical_details
from ..exceptions import FieldValidationException
from .exceptions import (
    DuplicatePatientCodeException,
    PatientNotFoundException,
    SubRecordNotFoundException,
)
from .models import (
    Allergy,
    LabReport,
    LabStatus,
    MedicalHistoryEntry,
    Patient,
    Prescription,
    PrescriptionRefill,
    PrescriptionStatus,
    Visit,
    VisitAttachment,
)
from .schemas import (
    AccessLogEntryResponse,
    AllergyCreate,
    AuditLogResponse,
    AuditSummary,
    LabReportCreate,
    LabReportReview,
    MedicalHistoryCreate,
    PatientBase,
    PatientCreate,
    PatientDetailView,
    PatientExport,
    PatientListItem,
    PatientSummaryView,
    PatientUpdate,
    PatientView,
    PrescriptionCreate,
    PrescriptionStatusUpdate,
    RefillCreate,
    StaffRef,
    VisitCreate,
)

# Set up logging
logger = logging.getLogger(__name__)

# Demographic columns that cannot be cleared once set
REQUIRED_FIELDS = {"first_name", "last_name", "date_of_birth", "gender"}
NESTED_FIELDS = {"emergency_contact", "insurance"}


def _commit(db: Session, action: str) -> None:
    """
    Commit the effect and its access log entry together.

    Raises:
        HTTPException: 500 if the store rejects the transaction
    """
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error while {action}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"An error occurred while {action}"
        )


def get_patient_or_404(db: Session, patient_id: int) -> Patient:
    """
    Load a patient by id, active or not.

    Raises:
        PatientNotFoundException: If no such record exists
    """
    patient = db.query(Patient).filter(Patient.id == patient_id).first()
    if not patient:
        raise PatientNotFoundException()
    return patient


def project_patient(patient: Patient, role: UserRole) -> PatientView:
    """
    Build the read view for a role.

    Doctors and nurses get every sub-record; all other roles get demographics
    and per-collection counts. The projection never blocks the read.
    """
    if can_view_clinical_details(role):
        return PatientDetailView.model_validate(patient)

    base = PatientBase.model_validate(patient).model_dump()
    return PatientSummaryView(
        **base,
        medical_history_count=len(patient.medical_history),
        allergy_count=len(patient.allergies),
        prescription_count=len(patient.prescriptions),
        visit_count=len(patient.visits),
        lab_report_count=len(patient.lab_reports),
    )


def _nested_json(model) -> Optional[Dict[str, Any]]:
    return model.model_dump(mode="json") if model is not None else None


def _active_patients(db: Session):
    return db.query(Patient).filter(Patient.is_active.is_(True))


def _name_or_code_filter(term: str):
    pattern = f"%{term.strip()}%"
    full_name = Patient.first_name + " " + Patient.last_name
    return or_(
        Patient.first_name.ilike(pattern),
        Patient.last_name.ilike(pattern),
        full_name.ilike(pattern),
        Patient.patient_code.ilike(pattern),
    )


def create_patient(db: Session, data: PatientCreate, current_user: AuthenticatedUser) -> Patient:
    """
    Register a new patient record.

    Args:
        db: Database session
        data: Validated demographics
        current_user: Acting account

    Returns:
        Patient: The stored record

    Raises:
        DuplicatePatientCodeException: If the patient code is already taken
    """
    if db.query(Patient.id).filter(Patient.patient_code == data.patient_code).first():
        logger.warning(f"Patient creation failed: code {data.patient_code} already exists")
        raise DuplicatePatientCodeException()

    fields = data.model_dump(exclude=NESTED_FIELDS)
    patient = Patient(
        **fields,
        emergency_contact=_nested_json(data.emergency_contact),
        insurance=_nested_json(data.insurance),
        is_active=True,
        created_by=current_user.id,
    )
    db.add(patient)
    log_access(db, patient, current_user.id, AccessAction.CREATE, "Patient record created")

    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent create using the same code
        db.rollback()
        raise DuplicatePatientCodeException()
    db.refresh(patient)

    logger.info(f"Patient {patient.patient_code} created by user {current_user.id}")
    return patient


def get_patient(db: Session, patient_id: int, current_user: AuthenticatedUser) -> PatientView:
    """Read one record, projected for the caller's role."""
    patient = get_patient_or_404(db, patient_id)
    log_access(db, patient, current_user.id, AccessAction.VIEW, "Patient record accessed")
    _commit(db, "recording patient access")
    db.refresh(patient)
    return project_patient(patient, current_user.role)


def update_patient(
    db: Session,
    patient_id: int,
    data: PatientUpdate,
    current_user: AuthenticatedUser
) -> Patient:
    """
    Update demographics. The patient code never changes.
    """
    patient = get_patient_or_404(db, patient_id)

    for field, value in data.model_dump(exclude_unset=True, exclude=NESTED_FIELDS).items():
        if value is None and field in REQUIRED_FIELDS:
            continue
        setattr(patient, field, value)
    for field in NESTED_FIELDS & data.model_fields_set:
        setattr(patient, field, _nested_json(getattr(data, field)))

    patient.updated_by = current_user.id
    patient.updated_at = datetime.now(timezone.utc)
    log_access(db, patient, current_user.id, AccessAction.UPDATE, "Patient record updated")
    _commit(db, "updating the patient record")
    db.refresh(patient)

    logger.info(f"Patient {patient_id} updated by user {current_user.id}")
    return patient


def _append(db: Session, patient: Patient, current_user: AuthenticatedUser, details: str) -> Patient:
    patient.updated_by = current_user.id
    patient.updated_at = datetime.now(timezone.utc)
    log_access(db, patient, current_user.id, AccessAction.UPDATE, details)
    _commit(db, "saving the patient record")
    db.refresh(patient)
    return patient


def add_medical_history(
    db: Session, patient_id: int, data: MedicalHistoryCreate, current_user: AuthenticatedUser
) -> Patient:
    patient = get_patient_or_404(db, patient_id)
    patient.medical_history.append(MedicalHistoryEntry(**data.model_dump(), diagnosed_by=current_user.id))
    return _append(db, patient, current_user, "Medical history entry added")


def add_allergy(db: Session, patient_id: int, data: AllergyCreate, current_user: AuthenticatedUser) -> Patient:
    patient = get_patient_or_404(db, patient_id)
    patient.allergies.append(Allergy(**data.model_dump(), recorded_by=current_user.id))
    return _append(db, patient, current_user, "Allergy added")


def add_prescription(
    db: Session, patient_id: int, data: PrescriptionCreate, current_user: AuthenticatedUser
) -> Patient:
    patient = get_patient_or_404(db, patient_id)
    patient.prescriptions.append(
        Prescription(**data.model_dump(), status=PrescriptionStatus.ACTIVE, prescribed_by=current_user.id)
    )
    return _append(db, patient, current_user, "New prescription added")


def _get_prescription(patient: Patient, prescription_id: int) -> Prescription:
    for prescription in patient.prescriptions:
        if prescription.id == prescription_id:
            return prescription
    raise SubRecordNotFoundException("Prescription")


def add_refill(
    db: Session,
    patient_id: int,
    prescription_id: int,
    data: RefillCreate,
    current_user: AuthenticatedUser
) -> Patient:
    patient = get_patient_or_404(db, patient_id)
    prescription = _get_prescription(patient, prescription_id)
    prescription.refills.append(PrescriptionRefill(**data.model_dump(), dispensed_by=current_user.id))
    return _append(db, patient, current_user, "Prescription refill recorded")


def update_prescription_status(
    db: Session,
    patient_id: int,
    prescription_id: int,
    data: PrescriptionStatusUpdate,
    current_user: AuthenticatedUser
) -> Patient:
    patient = get_patient_or_404(db, patient_id)
    prescription = _get_prescription(patient, prescription_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(prescription, field, value)
    return _append(db, patient, current_user, f"Prescription status changed to {data.status.value}")


def add_visit(db: Session, patient_id: int, data: VisitCreate, current_user: AuthenticatedUser) -> Patient:
    """
    Record a visit, with optional vitals and attachments.

    Raises:
        FieldValidationException: If doctor_id does not name a doctor account
    """
    patient = get_patient_or_404(db, patient_id)
    if data.doctor_id is not None:
        doctor = db.query(User).filter(User.id == data.doctor_id).first()
        if not doctor or doctor.role != UserRole.DOCTOR:
            raise FieldValidationException.for_field("doctor_id", "Doctor not found")

    visit = Visit(
        **data.model_dump(exclude={"vitals", "attachments"}),
        vitals=data.vitals.model_dump(exclude_none=True) if data.vitals else None,
        recorded_by=current_user.id,
    )
    for attachment in data.attachments:
        visit.attachments.append(VisitAttachment(**attachment.model_dump(), uploaded_by=current_user.id))
    patient.visits.append(visit)
    return _append(db, patient, current_user, "Visit recorded")


def add_lab_report(db: Session, patient_id: int, data: LabReportCreate, current_user: AuthenticatedUser) -> Patient:
    patient = get_patient_or_404(db, patient_id)
    patient.lab_reports.append(LabReport(**data.model_dump(), status=LabStatus.PENDING, ordered_by=current_user.id))
    return _append(db, patient, current_user, "New lab report added")


def review_lab_report(
    db: Session,
    patient_id: int,
    report_id: int,
    data: LabReportReview,
    current_user: AuthenticatedUser
) -> Patient:
    patient = get_patient_or_404(db, patient_id)
    report = next((r for r in patient.lab_reports if r.id == report_id), None)
    if report is None:
        raise SubRecordNotFoundException("Lab report")
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(report, field, value)
    report.reviewed_by = current_user.id
    return _append(db, patient, current_user, f"Lab report reviewed ({data.status.value})")


def find_patients(db: Session, query: Optional[str] = None) -> List[Patient]:
    """
    Case-insensitive substring match on name or patient code.

    Only active records are returned. Nothing is written, so repeated calls
    return the same result while the store is unchanged.
    """
    q = _active_patients(db)
    if query and query.strip():
        q = q.filter(_name_or_code_filter(query))
    return q.order_by(Patient.created_at.desc(), Patient.id.desc()).all()


def _parse_date_range(date_range: str):
    try:
        start_raw, end_raw = [part.strip() for part in date_range.split(",")]
        start = datetime.fromisoformat(start_raw)
        end = datetime.fromisoformat(end_raw)
    except ValueError:
        raise FieldValidationException.for_field("date_range", "Date range must be 'start,end' in ISO format")
    # A bare end date covers the whole day
    if len(end_raw) == 10:
        end = end.replace(hour=23, minute=59, second=59, microsecond=999999)
    if end < start:
        raise FieldValidationException.for_field("date_range", "Date range end must not be before start")
    return start, end


def search_patients(
    db: Session,
    page_params: PageParams,
    name: Optional[str] = None,
    condition: Optional[str] = None,
    allergy: Optional[str] = None,
    date_range: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Filtered, paginated search over active records, newest first.

    Args:
        db: Database session
        page_params: Page and limit
        name: Substring of first name, last name or full name
        condition: Substring of a medical history condition
        allergy: Substring of an allergen
        date_range: "start,end" bounds on visit dates

    Returns:
        Dict with items, total, page, limit, pages
    """
    q = _active_patients(db)

    if name:
        pattern = f"%{name.strip()}%"
        q = q.filter(or_(
            Patient.first_name.ilike(pattern),
            Patient.last_name.ilike(pattern),
            (Patient.first_name + " " + Patient.last_name).ilike(pattern),
        ))
    if condition:
        q = q.filter(Patient.medical_history.any(MedicalHistoryEntry.condition.ilike(f"%{condition.strip()}%")))
    if allergy:
        q = q.filter(Patient.allergies.any(Allergy.allergen.ilike(f"%{allergy.strip()}%")))
    if date_range:
        start, end = _parse_date_range(date_range)
        q = q.filter(Patient.visits.any(and_(Visit.date >= start, Visit.date <= end)))

    q = q.order_by(Patient.created_at.desc(), Patient.id.desc())
    return paginate(q, page_params, PatientListItem.model_validate)


def soft_delete_patient(db: Session, patient_id: int, current_user: AuthenticatedUser) -> None:
    """Mark the record inactive; it stays readable by id."""
    patient = get_patient_or_404(db, patient_id)
    log_access(db, patient, current_user.id, AccessAction.DELETE, "Patient record deleted")
    patient.is_active = False
    patient.updated_by = current_user.id
    patient.updated_at = datetime.now(timezone.utc)
    _commit(db, "deleting the patient record")
    logger.info(f"Patient {patient_id} deactivated by user {current_user.id}")


def _staff_ref(db: Session, user_id: Optional[int]) -> Optional[StaffRef]:
    if user_id is None:
        return None
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        return None
    return StaffRef(id=user.id, name=user.name, role=user.role.value)


def _access_log_entries(patient: Patient) -> List[AccessLogEntryResponse]:
    entries = []
    for entry in patient.access_log:
        entries.append(AccessLogEntryResponse(
            id=entry.id,
            timestamp=entry.timestamp,
            action=entry.action,
            details=entry.details,
            user=StaffRef(id=entry.user.id, name=entry.user.name, role=entry.user.role.value) if entry.user else None,
        ))
    return entries


def export_patient(db: Session, patient_id: int, current_user: AuthenticatedUser) -> PatientExport:
    """
    Record as a JSON document with its access history, projected for the caller's role.
    """
    patient = get_patient_or_404(db, patient_id)
    log_access(db, patient, current_user.id, AccessAction.EXPORT, "Patient record exported")
    _commit(db, "exporting the patient record")
    db.refresh(patient)

    logger.info(f"Patient {patient_id} exported by user {current_user.id}")
    return PatientExport(
        exported_at=datetime.now(timezone.utc),
        exported_by=current_user.id,
        patient=project_patient(patient, current_user.role),
        access_log=_access_log_entries(patient),
    )


def get_audit_log(db: Session, patient_id: int, current_user: AuthenticatedUser) -> AuditLogResponse:
    """
    Audit summary and access history. Reading the log is itself logged.
    """
    patient = get_patient_or_404(db, patient_id)
    log_access(db, patient, current_user.id, AccessAction.VIEW, "Audit log accessed")
    _commit(db, "recording audit log access")
    db.refresh(patient)

    return AuditLogResponse(
        patient_id=patient.id,
        patient_code=patient.patient_code,
        audit=AuditSummary(
            created_at=patient.created_at,
            created_by=_staff_ref(db, patient.created_by),
            updated_at=patient.updated_at,
            updated_by=_staff_ref(db, patient.updated_by),
            last_accessed_at=patient.last_accessed_at,
            last_accessed_by=_staff_ref(db, patient.last_accessed_by),
        ),
        access_log=_access_log_entries(patient),
    )
