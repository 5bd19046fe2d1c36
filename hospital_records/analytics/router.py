"""
Analytics routes. All aggregates are read-only and computed per request.
"""
from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.dependencies import AuthenticatedUser, require_route
from ..database import get_db
from . import service
from .schemas import (
    AnalyticsSummary,
    ConditionStats,
    CountResponse,
    DepartmentMetrics,
    GenderDemographics,
    LabReportStats,
    NurseActivity,
    PrescriptionStats,
    RegistrationTrend,
    VisitTrend,
)

router = APIRouter()


@router.get("/", response_model=AnalyticsSummary)
def get_summary(
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("analytics.summary")),
):
    """
    Dashboard summary: gender counts, age distribution, appointments per
    specialization, and the last 7 days of appointments.
    """
    return service.get_summary(db)


@router.get("/demographics", response_model=List[GenderDemographics])
def get_demographics(
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("analytics.demographics")),
):
    return service.get_demographics(db)


@router.get("/medical-conditions", response_model=List[ConditionStats])
def get_medical_conditions(
    limit: Optional[int] = Query(None, ge=1, le=100, description="Return only the top N conditions"),
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("analytics.medical_conditions")),
):
    return service.get_medical_conditions(db, limit=limit)


@router.get("/prescriptions", response_model=List[PrescriptionStats])
def get_prescriptions(
    limit: Optional[int] = Query(None, ge=1, le=100, description="Return only the top N medications"),
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("analytics.prescriptions")),
):
    return service.get_prescription_stats(db, limit=limit)


@router.get("/visit-trends", response_model=List[VisitTrend])
def get_visit_trends(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    interval: Literal["day", "month"] = "month",
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("analytics.visit_trends")),
):
    return service.get_visit_trends(db, start_date=start_date, end_date=end_date, interval=interval)


@router.get("/lab-reports", response_model=List[LabReportStats])
def get_lab_reports(
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("analytics.lab_reports")),
):
    return service.get_lab_report_stats(db)


@router.get("/registration-trends", response_model=List[RegistrationTrend])
def get_registration_trends(
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("analytics.registration_trends")),
):
    return service.get_registration_trends(db)


@router.get("/department-metrics", response_model=List[DepartmentMetrics])
def get_department_metrics(
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("analytics.department_metrics")),
):
    """Administrators and doctors only."""
    return service.get_department_metrics(db)


@router.get("/nurse/patient-care", response_model=CountResponse)
def nurse_patient_care(
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("analytics.nurse_patient_care")),
):
    """Active patients whose records this nurse has accessed."""
    return {"count": service.count_nurse_patients(db, current_user.id)}


@router.get("/nurse/medications", response_model=CountResponse)
def nurse_medications(
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("analytics.nurse_medications")),
):
    return {"count": service.count_nurse_active_medications(db, current_user.id)}


@router.get("/nurse/vitals", response_model=CountResponse)
def nurse_vitals(
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("analytics.nurse_vitals")),
):
    return {"count": service.count_nurse_pending_vitals(db, current_user.id)}


@router.get("/nurse/recent-activity", response_model=List[NurseActivity])
def nurse_recent_activity(
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("analytics.nurse_recent_activity")),
):
    return service.get_nurse_recent_activity(db, current_user.id)
