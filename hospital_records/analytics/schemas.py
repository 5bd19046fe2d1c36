"""
Analytics Schemas - Response models for dashboard aggregates.
"""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel


class ChartSeries(BaseModel):
    labels: List[str]
    data: List[int]


class GenderCounts(BaseModel):
    male: int = 0
    female: int = 0
    other: int = 0


class SummaryDemographics(BaseModel):
    gender: GenderCounts


class AnalyticsSummary(BaseModel):
    """
    Dashboard summary

    Fields:
    - demographics: Patient counts per gender
    - age_distribution: Patient counts per age bucket
    - departments: Appointments per doctor specialization
    - appointments: Appointments per day over the last 7 days
    """
    demographics: SummaryDemographics
    age_distribution: ChartSeries
    departments: ChartSeries
    appointments: ChartSeries


class GenderDemographics(BaseModel):
    gender: str
    count: int
    average_age: float
    age_distribution: Dict[str, int]


class ConditionStats(BaseModel):
    condition: str
    count: int
    severity_breakdown: Dict[str, int]
    status_breakdown: Dict[str, int]
    average_age: float
    gender_distribution: Dict[str, int]


class PrescriptionStats(BaseModel):
    medication: str
    total_prescriptions: int
    active_prescriptions: int
    most_common_dosage: Optional[str] = None
    most_common_frequency: Optional[str] = None
    associated_conditions: List[str]


class VisitTrend(BaseModel):
    period: str
    count: int
    type_distribution: Dict[str, int]
    department_distribution: Dict[str, int]


class LabReportStats(BaseModel):
    test_name: str
    total_tests: int
    abnormal_tests: int
    abnormal_rate: float
    status_breakdown: Dict[str, int]
    average_age: float
    gender_distribution: Dict[str, int]


class DepartmentMetrics(BaseModel):
    department: str
    total_visits: int
    unique_patients: int
    visit_type_distribution: Dict[str, int]
    average_wait_time: Optional[float] = None
    follow_up_rate: float
    performance_score: float


class RegistrationTrend(BaseModel):
    period: str
    count: int


class CountResponse(BaseModel):
    count: int


class NurseActivity(BaseModel):
    type: str
    description: str
    timestamp: datetime
    patient_id: int
    patient_code: str
