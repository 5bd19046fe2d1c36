"""
Tests for the role permission table.
"""
import pytest

from hospital_records.auth.exceptions import AccessDeniedException
from hospital_records.auth.models import UserRole
from hospital_records.core.permissions import (
    ROUTE_PERMISSIONS,
    authorize,
    can_view_clinical_details,
    parse_role,
    roles_for_route,
)


def test_authorize_allows_listed_role():
    assert authorize("doctor", roles_for_route("patients.update")) == UserRole.DOCTOR


def test_authorize_is_case_insensitive():
    assert authorize("ADMIN", ["admin"]) == UserRole.ADMIN
    assert parse_role(" Nurse ") == UserRole.NURSE


@pytest.mark.parametrize("role", ["receptionist", "admin"])
def test_authorize_rejects_unlisted_role(role):
    with pytest.raises(AccessDeniedException):
        authorize(role, roles_for_route("patients.add_visit"))


@pytest.mark.parametrize("role", ["janitor", "", None])
def test_authorize_rejects_unknown_role(role):
    with pytest.raises(AccessDeniedException) as exc:
        authorize(role, ROUTE_PERMISSIONS["patients.list"])
    assert exc.value.status_code == 403
    assert exc.value.detail == "Access denied"


def test_no_role_hierarchy():
    # Admin is not implicitly allowed on nurse-only routes
    assert UserRole.ADMIN not in roles_for_route("analytics.nurse_vitals")
    assert roles_for_route("patients.delete") == frozenset({UserRole.ADMIN})


def test_permission_table_entries():
    assert roles_for_route("patients.audit_log") == frozenset({UserRole.ADMIN, UserRole.DOCTOR})
    assert roles_for_route("patients.create") == frozenset(
        {UserRole.DOCTOR, UserRole.NURSE, UserRole.RECEPTIONIST}
    )
    assert roles_for_route("analytics.department_metrics") == frozenset({UserRole.ADMIN, UserRole.DOCTOR})
    with pytest.raises(KeyError):
        roles_for_route("patients.unknown")


def test_clinical_detail_roles():
    assert can_view_clinical_details("doctor")
    assert can_view_clinical_details(UserRole.NURSE)
    assert not can_view_clinical_details("admin")
    assert not can_view_clinical_details("receptionist")
    assert not can_view_clinical_details(None)
