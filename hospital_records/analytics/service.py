"""
Analytics Service - Read-only aggregates over active patient records.

Aggregates are computed at call time from the relational store; nothing is
cached and nothing is written. Ages use 365-day years.
"""
from collections import Counter, defaultdict
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ..appointments.models import Appointment
from ..auth.models import User
from ..core.audit_models import PatientAccessLog
from ..patients.models import (
    ConditionSeverity,
    ConditionStatus,
    Gender,
    LabStatus,
    Patient,
    Prescription,
    PrescriptionStatus,
    Visit,
    VisitType,
)

# Set up logging
logger = logging.getLogger(__name__)

AGE_BUCKETS: List[Tuple[str, float]] = [
    ("Under 18", 18),
    ("18-29", 30),
    ("30-44", 45),
    ("45-59", 60),
]
AGE_BUCKET_LABELS = [label for label, _ in AGE_BUCKETS] + ["60+"]

ABNORMAL_LAB_STATUSES = {LabStatus.ABNORMAL, LabStatus.CRITICAL}
TREND_FORMATS = {"day": "%Y-%m-%d", "month": "%Y-%m"}


def age_in_years(date_of_birth: date, today: Optional[date] = None) -> float:
    today = today or date.today()
    return (today - date_of_birth).days / 365


def age_bucket(age: float) -> str:
    """Map an age to its fixed bucket label."""
    for label, upper in AGE_BUCKETS:
        if age < upper:
            return label
    return "60+"


def performance_score(
    total_visits: int,
    unique_patients: int,
    follow_up_rate: float,
    average_wait_time: Optional[float],
) -> float:
    """
    Weighted department score.

    A department with no recorded wait times scores as if the wait were zero.
    """
    wait = average_wait_time or 0
    score = (
        total_visits * 0.3
        + unique_patients * 0.2
        + follow_up_rate * 0.3
        + max(0, 100 - wait * 10) * 0.2
    )
    return round(score, 2)


def _zeroed(values: Iterable[Any]) -> Dict[str, int]:
    return {v.value if hasattr(v, "value") else v: 0 for v in values}


def _tally(initial: Dict[str, int], values: Iterable[Any]) -> Dict[str, int]:
    result = dict(initial)
    for value in values:
        if value is None:
            continue
        key = value.value if hasattr(value, "value") else value
        result[key] = result.get(key, 0) + 1
    return result


def _average(values: List[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def _active_patients(db: Session, *relations):
    query = db.query(Patient).filter(Patient.is_active.is_(True))
    if relations:
        query = query.options(*[selectinload(r) for r in relations])
    return query.all()


def get_summary(db: Session, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Dashboard summary: gender counts, age buckets, appointments per doctor
    specialization, and appointments per day over the last 7 days.
    """
    today = today or date.today()
    patients = _active_patients(db)

    gender = {"male": 0, "female": 0, "other": 0}
    ages = Counter()
    for patient in patients:
        gender[patient.gender.value.lower()] += 1
        ages[age_bucket(age_in_years(patient.date_of_birth, today))] += 1

    specialization_rows = (
        db.query(User.specialization, func.count(Appointment.id))
        .join(Appointment, Appointment.doctor_id == User.id)
        .join(Patient, Appointment.patient_id == Patient.id)
        .filter(Patient.is_active.is_(True), User.specialization.isnot(None))
        .group_by(User.specialization)
        .order_by(User.specialization.asc())
        .all()
    )

    days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
    day_rows = (
        db.query(Appointment.date, func.count(Appointment.id))
        .join(Patient, Appointment.patient_id == Patient.id)
        .filter(Patient.is_active.is_(True), Appointment.date >= days[0], Appointment.date <= days[-1])
        .group_by(Appointment.date)
        .all()
    )
    per_day = {row_date: count for row_date, count in day_rows}

    return {
        "demographics": {"gender": gender},
        "age_distribution": {
            "labels": AGE_BUCKET_LABELS,
            "data": [ages.get(label, 0) for label in AGE_BUCKET_LABELS],
        },
        "departments": {
            "labels": [row[0] for row in specialization_rows],
            "data": [row[1] for row in specialization_rows],
        },
        "appointments": {
            "labels": [d.isoformat() for d in days],
            "data": [per_day.get(d, 0) for d in days],
        },
    }


def get_demographics(db: Session, today: Optional[date] = None) -> List[Dict[str, Any]]:
    """Per-gender count, average age and age bucket distribution."""
    today = today or date.today()
    groups: Dict[str, List[float]] = defaultdict(list)
    for patient in _active_patients(db):
        groups[patient.gender.value].append(age_in_years(patient.date_of_birth, today))

    results = []
    for gender in sorted(groups):
        ages = groups[gender]
        results.append({
            "gender": gender,
            "count": len(ages),
            "average_age": _average(ages),
            "age_distribution": _tally(_zeroed(AGE_BUCKET_LABELS), (age_bucket(a) for a in ages)),
        })
    return results


def get_medical_conditions(db: Session, limit: Optional[int] = None, today: Optional[date] = None) -> List[Dict[str, Any]]:
    """
    Per-condition entry counts with severity, status, age and gender breakdowns,
    most frequent first.
    """
    today = today or date.today()
    grouped: Dict[str, List[Tuple[Any, Patient]]] = defaultdict(list)
    for patient in _active_patients(db, Patient.medical_history):
        for entry in patient.medical_history:
            grouped[entry.condition].append((entry, patient))

    results = []
    for condition, rows in grouped.items():
        results.append({
            "condition": condition,
            "count": len(rows),
            "severity_breakdown": _tally(_zeroed(ConditionSeverity), (e.severity for e, _ in rows)),
            "status_breakdown": _tally(_zeroed(ConditionStatus), (e.status for e, _ in rows)),
            "average_age": _average([age_in_years(p.date_of_birth, today) for _, p in rows]),
            "gender_distribution": _tally(_zeroed(Gender), (p.gender for _, p in rows)),
        })
    results.sort(key=lambda r: (-r["count"], r["condition"]))
    return results[:limit] if limit else results


def get_prescription_stats(db: Session, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Per-medication totals, active counts, most common dosage and frequency,
    and the conditions recorded for patients taking it.
    """
    grouped: Dict[str, List[Tuple[Prescription, Patient]]] = defaultdict(list)
    for patient in _active_patients(db, Patient.prescriptions, Patient.medical_history):
        for prescription in patient.prescriptions:
            grouped[prescription.medication].append((prescription, patient))

    results = []
    for medication, rows in grouped.items():
        dosages = Counter(p.dosage for p, _ in rows)
        frequencies = Counter(p.frequency for p, _ in rows)
        patients_by_id = {pt.id: pt for _, pt in rows}
        conditions = sorted({
            entry.condition
            for patient in patients_by_id.values()
            for entry in patient.medical_history
        })
        results.append({
            "medication": medication,
            "total_prescriptions": len(rows),
            "active_prescriptions": sum(1 for p, _ in rows if p.status == PrescriptionStatus.ACTIVE),
            "most_common_dosage": dosages.most_common(1)[0][0] if dosages else None,
            "most_common_frequency": frequencies.most_common(1)[0][0] if frequencies else None,
            "associated_conditions": conditions,
        })
    results.sort(key=lambda r: (-r["total_prescriptions"], r["medication"]))
    return results[:limit] if limit else results


def get_visit_trends(
    db: Session,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    interval: str = "month",
) -> List[Dict[str, Any]]:
    """
    Visit counts per day or month, ascending, with type and department
    distributions. Either bound may be given alone; both are inclusive.
    """
    period_format = TREND_FORMATS[interval]
    query = (
        db.query(Visit)
        .join(Patient, Visit.patient_id == Patient.id)
        .filter(Patient.is_active.is_(True))
    )
    if start_date:
        query = query.filter(Visit.date >= datetime.combine(start_date, time.min))
    if end_date:
        query = query.filter(Visit.date <= datetime.combine(end_date, time.max))

    grouped: Dict[str, List[Visit]] = defaultdict(list)
    for visit in query.all():
        grouped[visit.date.strftime(period_format)].append(visit)

    return [
        {
            "period": period,
            "count": len(visits),
            "type_distribution": _tally(_zeroed(VisitType), (v.type for v in visits)),
            "department_distribution": _tally({}, (v.department for v in visits)),
        }
        for period, visits in sorted(grouped.items())
    ]


def get_lab_report_stats(db: Session, today: Optional[date] = None) -> List[Dict[str, Any]]:
    """Per-test totals with abnormal counts and rate (Abnormal or Critical)."""
    today = today or date.today()
    grouped: Dict[str, List[Tuple[Any, Patient]]] = defaultdict(list)
    for patient in _active_patients(db, Patient.lab_reports):
        for report in patient.lab_reports:
            grouped[report.test_name].append((report, patient))

    results = []
    for test_name, rows in grouped.items():
        abnormal = sum(1 for r, _ in rows if r.status in ABNORMAL_LAB_STATUSES)
        results.append({
            "test_name": test_name,
            "total_tests": len(rows),
            "abnormal_tests": abnormal,
            "abnormal_rate": round(abnormal / len(rows) * 100, 2),
            "status_breakdown": _tally(_zeroed(LabStatus), (r.status for r, _ in rows)),
            "average_age": _average([age_in_years(p.date_of_birth, today) for _, p in rows]),
            "gender_distribution": _tally(_zeroed(Gender), (p.gender for _, p in rows)),
        })
    results.sort(key=lambda r: (-r["total_tests"], r["test_name"]))
    return results


def get_department_metrics(db: Session) -> List[Dict[str, Any]]:
    """
    Per-department visit volume, reach, wait time, follow-up rate and
    performance score, busiest first.
    """
    visits = (
        db.query(Visit)
        .join(Patient, Visit.patient_id == Patient.id)
        .filter(Patient.is_active.is_(True))
        .all()
    )
    grouped: Dict[str, List[Visit]] = defaultdict(list)
    for visit in visits:
        grouped[visit.department].append(visit)

    results = []
    for department, rows in grouped.items():
        waits = [v.wait_time_minutes for v in rows if v.wait_time_minutes is not None]
        average_wait = round(sum(waits) / len(waits), 2) if waits else None
        follow_ups = sum(1 for v in rows if v.type == VisitType.FOLLOW_UP)
        follow_up_rate = round(follow_ups / len(rows) * 100, 2)
        unique_patients = len({v.patient_id for v in rows})
        results.append({
            "department": department,
            "total_visits": len(rows),
            "unique_patients": unique_patients,
            "visit_type_distribution": _tally(_zeroed(VisitType), (v.type for v in rows)),
            "average_wait_time": average_wait,
            "follow_up_rate": follow_up_rate,
            "performance_score": performance_score(len(rows), unique_patients, follow_up_rate, average_wait),
        })
    results.sort(key=lambda r: (-r["total_visits"], r["department"]))
    return results


def get_registration_trends(db: Session) -> List[Dict[str, Any]]:
    """Active patient registrations per month, ascending."""
    counts = Counter(
        created_at.strftime("%Y-%m")
        for (created_at,) in db.query(Patient.created_at).filter(Patient.is_active.is_(True)).all()
        if created_at is not None
    )
    return [{"period": period, "count": count} for period, count in sorted(counts.items())]


# Nurse counters, scoped to the patients the nurse has accessed

def _nurse_patient_ids(db: Session, nurse_id: int) -> List[int]:
    rows = (
        db.query(PatientAccessLog.patient_id)
        .join(Patient, PatientAccessLog.patient_id == Patient.id)
        .filter(PatientAccessLog.user_id == nurse_id, Patient.is_active.is_(True))
        .distinct()
        .all()
    )
    return [row[0] for row in rows]


def count_nurse_patients(db: Session, nurse_id: int) -> int:
    return len(_nurse_patient_ids(db, nurse_id))


def count_nurse_active_medications(db: Session, nurse_id: int) -> int:
    patient_ids = _nurse_patient_ids(db, nurse_id)
    if not patient_ids:
        return 0
    return (
        db.query(func.count(Prescription.id))
        .filter(Prescription.patient_id.in_(patient_ids), Prescription.status == PrescriptionStatus.ACTIVE)
        .scalar()
    )


def count_nurse_pending_vitals(db: Session, nurse_id: int) -> int:
    """Visits of the nurse's patients with no vitals recorded."""
    patient_ids = _nurse_patient_ids(db, nurse_id)
    if not patient_ids:
        return 0
    visits = db.query(Visit.vitals).filter(Visit.patient_id.in_(patient_ids)).all()
    return sum(1 for (vitals,) in visits if not vitals)


def get_nurse_recent_activity(db: Session, nurse_id: int, limit: int = 5) -> List[Dict[str, Any]]:
    entries = (
        db.query(PatientAccessLog)
        .options(selectinload(PatientAccessLog.patient))
        .filter(PatientAccessLog.user_id == nurse_id)
        .order_by(PatientAccessLog.timestamp.desc(), PatientAccessLog.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "type": entry.action.value,
            "description": f"{entry.details or entry.action.value} - {entry.patient.full_name}",
            "timestamp": entry.timestamp,
            "patient_id": entry.patient_id,
            "patient_code": entry.patient.patient_code,
        }
        for entry in entries
    ]
