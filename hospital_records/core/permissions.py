"""
Core permissions utilities for role-based access control.

There is no role hierarchy. Every protected route is listed in
``ROUTE_PERMISSIONS`` together with each role allowed to call it.
"""
from typing import Dict, FrozenSet, Iterable, Union
from ..auth.models import UserRole
from ..auth.exceptions import AccessDeniedException

ADMIN = UserRole.ADMIN
DOCTOR = UserRole.DOCTOR
NURSE = UserRole.NURSE
RECEPTIONIST = UserRole.RECEPTIONIST

ALL_ROLES: FrozenSet[UserRole] = frozenset({ADMIN, DOCTOR, NURSE, RECEPTIONIST})

# Route name -> roles allowed to call it
ROUTE_PERMISSIONS: Dict[str, FrozenSet[UserRole]] = {
    # Account administration
    "auth.list_users": frozenset({ADMIN}),
    "auth.update_user": frozenset({ADMIN}),
    "auth.deactivate_user": frozenset({ADMIN}),
    "auth.list_roles": frozenset({ADMIN}),
    "auth.list_doctors": frozenset({ADMIN, RECEPTIONIST, NURSE}),

    # Patient records
    "patients.list": ALL_ROLES,
    "patients.search": ALL_ROLES,
    "patients.view": ALL_ROLES,
    "patients.create": frozenset({DOCTOR, NURSE, RECEPTIONIST}),
    "patients.update": frozenset({DOCTOR, NURSE}),
    "patients.add_medical_history": frozenset({DOCTOR, NURSE}),
    "patients.add_allergy": frozenset({DOCTOR, NURSE}),
    "patients.add_prescription": frozenset({DOCTOR, NURSE}),
    "patients.update_prescription": frozenset({DOCTOR, NURSE}),
    "patients.add_refill": frozenset({DOCTOR, NURSE}),
    "patients.add_visit": frozenset({DOCTOR, NURSE}),
    "patients.add_lab_report": frozenset({DOCTOR, NURSE}),
    "patients.review_lab_report": frozenset({DOCTOR, NURSE}),
    "patients.audit_log": frozenset({ADMIN, DOCTOR}),
    "patients.export": frozenset({ADMIN, DOCTOR}),
    "patients.delete": frozenset({ADMIN}),

    # Appointments
    "appointments.list": ALL_ROLES,
    "appointments.view": ALL_ROLES,
    "appointments.create": ALL_ROLES,
    "appointments.update": ALL_ROLES,
    "appointments.delete": ALL_ROLES,

    # Analytics
    "analytics.summary": ALL_ROLES,
    "analytics.demographics": ALL_ROLES,
    "analytics.medical_conditions": ALL_ROLES,
    "analytics.prescriptions": ALL_ROLES,
    "analytics.visit_trends": ALL_ROLES,
    "analytics.lab_reports": ALL_ROLES,
    "analytics.registration_trends": ALL_ROLES,
    "analytics.department_metrics": frozenset({ADMIN, DOCTOR}),
    "analytics.nurse_patient_care": frozenset({NURSE}),
    "analytics.nurse_medications": frozenset({NURSE}),
    "analytics.nurse_vitals": frozenset({NURSE}),
    "analytics.nurse_recent_activity": frozenset({NURSE}),
}

# Roles that see full clinical sub-record contents when reading a patient
CLINICAL_DETAIL_ROLES: FrozenSet[UserRole] = frozenset({DOCTOR, NURSE})


def parse_role(role: Union[UserRole, str, None]) -> Union[UserRole, None]:
    """
    Resolve a role value case-insensitively.

    Returns:
        UserRole or None if the value is not a known role
    """
    if isinstance(role, UserRole):
        return role
    if not role:
        return None
    try:
        return UserRole(role)
    except ValueError:
        return None


def authorize(role: Union[UserRole, str, None], allowed_roles: Iterable[Union[UserRole, str]]) -> UserRole:
    """
    Check that a role belongs to the allowed set.

    Args:
        role: Role of the authenticated identity
        allowed_roles: Roles permitted on the route

    Returns:
        UserRole: The resolved role

    Raises:
        AccessDeniedException: If the role is unknown or not in the allowed set
    """
    resolved = parse_role(role)
    allowed = {parse_role(r) for r in allowed_roles}
    if resolved is None or resolved not in allowed:
        raise AccessDeniedException()
    return resolved


def roles_for_route(route_name: str) -> FrozenSet[UserRole]:
    """Look up the permitted roles for a route name (KeyError if undeclared)."""
    return ROUTE_PERMISSIONS[route_name]


def can_view_clinical_details(role: Union[UserRole, str, None]) -> bool:
    return parse_role(role) in CLINICAL_DETAIL_ROLES
