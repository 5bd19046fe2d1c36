"""
Tests for patient records, clinical sub-records and the access audit log.
"""
import pytest
from sqlalchemy.exc import SQLAlchemyError

from conftest import patient_payload
from hospital_records.core.audit_models import PatientAccessLog
from hospital_records.patients.models import Allergy, Patient

BASE = "/api/v1/patients"


def audit_actions(db, patient_id):
    entries = (
        db.query(PatientAccessLog)
        .filter(PatientAccessLog.patient_id == patient_id)
        .order_by(PatientAccessLog.id.asc())
        .all()
    )
    return [entry.action.value for entry in entries]


def add_condition(client, headers, patient_id, condition="Type 2 Diabetes"):
    response = client.post(
        f"{BASE}/{patient_id}/medical-history",
        json={"condition": condition, "diagnosis_date": "2020-03-01", "severity": "Moderate"},
        headers=headers["doctor"],
    )
    assert response.status_code == 201, response.text
    return response.json()["patient"]


def add_prescription(client, headers, patient_id, medication="Metformin"):
    response = client.post(
        f"{BASE}/{patient_id}/prescriptions",
        json={"medication": medication, "dosage": "500mg", "frequency": "Twice daily", "start_date": "2024-01-10"},
        headers=headers["doctor"],
    )
    assert response.status_code == 201, response.text
    return response.json()["patient"]


# Creation and validation

def test_create_patient(client, headers, db):
    response = client.post(BASE + "/", json=patient_payload(), headers=headers["receptionist"])
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["message"] == "Patient added successfully"
    patient = body["patient"]
    assert patient["patient_code"] == "PAT000001"
    assert patient["is_active"] is True
    # Receptionists get the summary projection
    assert patient["view"] == "summary"
    assert audit_actions(db, patient["id"]) == ["Create"]


def test_create_patient_legacy_path(client, headers):
    response = client.post(BASE + "/add", json=patient_payload(), headers=headers["nurse"])
    assert response.status_code == 201
    assert response.json()["patient"]["view"] == "detail"


def test_admin_cannot_create_patient(client, headers):
    response = client.post(BASE + "/", json=patient_payload(), headers=headers["admin"])
    assert response.status_code == 403


def test_patient_code_boundary_is_accepted(client, headers):
    response = client.post(BASE + "/", json=patient_payload("PAT000000"), headers=headers["doctor"])
    assert response.status_code == 201


@pytest.mark.parametrize("code", ["PAT12345", "pat000001", "PA0000001", "PATX00001", "PAT0000012"])
def test_invalid_patient_code(client, headers, code):
    response = client.post(BASE + "/", json=patient_payload(code), headers=headers["doctor"])
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    assert body["details"] == [{
        "field": "patient_code",
        "message": "Patient ID must be 3 uppercase letters followed by 6 digits",
    }]


def test_duplicate_patient_code(client, headers, patient, db):
    response = client.post(BASE + "/", json=patient_payload(first_name="Other"), headers=headers["nurse"])
    assert response.status_code == 400
    assert response.json() == {"status": "error", "message": "Patient ID already exists"}
    assert db.query(Patient).count() == 1


def test_date_of_birth_must_be_past(client, headers):
    response = client.post(
        BASE + "/", json=patient_payload(date_of_birth="2999-01-01"), headers=headers["doctor"]
    )
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "date_of_birth"


def test_invalid_name_and_phone(client, headers):
    response = client.post(
        BASE + "/", json=patient_payload(first_name="J4ne", phone="12"), headers=headers["doctor"]
    )
    assert response.status_code == 400
    fields = {d["field"] for d in response.json()["details"]}
    assert fields == {"first_name", "phone"}


def test_requires_authentication(client):
    response = client.get(BASE + "/")
    assert response.status_code == 401


# Reading and role projection

def test_doctor_gets_detail_view(client, headers, patient):
    add_condition(client, headers, patient["id"])
    response = client.get(f"{BASE}/{patient['id']}", headers=headers["doctor"])
    assert response.status_code == 200
    body = response.json()
    assert body["view"] == "detail"
    assert body["medical_history"][0]["condition"] == "Type 2 Diabetes"
    assert body["emergency_contact"]["relationship"] == "Spouse"


def test_nurse_gets_detail_view(client, headers, patient):
    response = client.get(f"{BASE}/{patient['id']}", headers=headers["nurse"])
    assert response.json()["view"] == "detail"


@pytest.mark.parametrize("role", ["receptionist", "admin"])
def test_non_clinical_roles_get_counts(client, headers, patient, role):
    add_condition(client, headers, patient["id"])
    add_prescription(client, headers, patient["id"])

    response = client.get(f"{BASE}/{patient['id']}", headers=headers[role])
    assert response.status_code == 200
    body = response.json()
    assert body["view"] == "summary"
    assert body["first_name"] == "Jane"
    assert body["medical_history_count"] == 1
    assert body["prescription_count"] == 1
    assert body["allergy_count"] == 0
    assert "medical_history" not in body
    assert "prescriptions" not in body


def test_get_unknown_patient(client, headers):
    response = client.get(f"{BASE}/9999", headers=headers["doctor"])
    assert response.status_code == 404
    assert response.json() == {"status": "error", "message": "Patient not found"}


# Audit log

def test_one_audit_entry_per_operation(client, headers, patient, db):
    pid = patient["id"]
    assert audit_actions(db, pid) == ["Create"]

    client.get(f"{BASE}/{pid}", headers=headers["nurse"])
    assert audit_actions(db, pid) == ["Create", "View"]

    # Collection reads never write
    client.get(BASE + "/", headers=headers["nurse"])
    client.get(BASE + "/search", params={"name": "Jane"}, headers=headers["nurse"])
    assert audit_actions(db, pid) == ["Create", "View"]

    client.patch(f"{BASE}/{pid}", json={"phone": "555-000-1111"}, headers=headers["doctor"])
    client.post(
        f"{BASE}/{pid}/allergies", json={"allergen": "Penicillin", "severity": "Severe"}, headers=headers["nurse"]
    )
    client.get(f"{BASE}/{pid}/export", headers=headers["doctor"])
    client.get(f"{BASE}/{pid}/audit-log", headers=headers["admin"])
    client.delete(f"{BASE}/{pid}", headers=headers["admin"])

    assert audit_actions(db, pid) == ["Create", "View", "Update", "Update", "Export", "View", "Delete"]


def test_audit_entry_records_actor(client, headers, patient, nurse, db):
    client.get(f"{BASE}/{patient['id']}", headers=headers["nurse"])
    entry = (
        db.query(PatientAccessLog)
        .filter(PatientAccessLog.patient_id == patient["id"])
        .order_by(PatientAccessLog.id.desc())
        .first()
    )
    assert entry.user_id == nurse.id
    assert entry.details == "Patient record accessed"

    stored = db.get(Patient, patient["id"])
    assert stored.last_accessed_by == nurse.id


@pytest.fixture
def failing_commit(db, patient, monkeypatch):
    def commit():
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(db, "commit", commit)


def last_accessed_at(db, patient_id):
    db.expire_all()
    return db.get(Patient, patient_id).last_accessed_at


def test_failed_commit_discards_change_and_entry(client, headers, patient, db, failing_commit):
    pid = patient["id"]
    accessed = last_accessed_at(db, pid)

    response = client.post(
        f"{BASE}/{pid}/allergies", json={"allergen": "Latex", "severity": "Mild"}, headers=headers["nurse"]
    )
    assert response.status_code == 500
    assert response.json()["message"] == "An error occurred while saving the patient record"

    assert db.query(Allergy).count() == 0
    assert audit_actions(db, pid) == ["Create"]
    assert last_accessed_at(db, pid) == accessed


def test_failed_commit_leaves_no_view_entry(client, headers, patient, db, failing_commit):
    pid = patient["id"]
    accessed = last_accessed_at(db, pid)

    response = client.get(f"{BASE}/{pid}", headers=headers["doctor"])
    assert response.status_code == 500
    assert audit_actions(db, pid) == ["Create"]
    assert last_accessed_at(db, pid) == accessed


def test_audit_log_response(client, headers, patient, doctor):
    response = client.get(f"{BASE}/{patient['id']}/audit-log", headers=headers["doctor"])
    assert response.status_code == 200
    body = response.json()
    assert body["patient_code"] == "PAT000001"
    assert body["audit"]["created_by"]["id"] == doctor.id
    assert body["audit"]["last_accessed_by"]["role"] == "doctor"
    actions = [entry["action"] for entry in body["access_log"]]
    assert actions == ["Create", "View"]
    assert body["access_log"][-1]["details"] == "Audit log accessed"


@pytest.mark.parametrize("role,expected", [
    ("admin", 200), ("doctor", 200), ("nurse", 403), ("receptionist", 403),
])
def test_audit_log_permissions(client, headers, patient, role, expected):
    response = client.get(f"{BASE}/{patient['id']}/audit-log", headers=headers[role])
    assert response.status_code == expected


def test_denied_request_is_not_logged(client, headers, patient, db):
    client.get(f"{BASE}/{patient['id']}/audit-log", headers=headers["nurse"])
    assert audit_actions(db, patient["id"]) == ["Create"]


# Listing and search

def test_find_patients_is_idempotent(client, headers, patient):
    client.post(
        BASE + "/",
        json=patient_payload("PAT000002", first_name="John", last_name="Smith"),
        headers=headers["doctor"],
    )
    first = client.get(BASE + "/", params={"search": "jane"}, headers=headers["receptionist"])
    second = client.get(BASE + "/", params={"search": "jane"}, headers=headers["receptionist"])
    assert first.status_code == 200
    assert first.json() == second.json()
    assert [p["patient_code"] for p in first.json()] == ["PAT000001"]


def test_find_by_full_name_and_code(client, headers, patient):
    by_name = client.get(BASE + "/", params={"search": "Jane Doe"}, headers=headers["doctor"])
    assert len(by_name.json()) == 1
    by_code = client.get(BASE + "/", params={"search": "pat0000"}, headers=headers["doctor"])
    assert len(by_code.json()) == 1


def test_list_newest_first(client, headers, patient):
    client.post(
        BASE + "/",
        json=patient_payload("PAT000002", first_name="John", last_name="Smith"),
        headers=headers["doctor"],
    )
    response = client.get(BASE + "/", headers=headers["doctor"])
    assert [p["patient_code"] for p in response.json()] == ["PAT000002", "PAT000001"]


def test_search_by_condition_and_allergy(client, headers, patient):
    other = client.post(
        BASE + "/",
        json=patient_payload("PAT000002", first_name="John", last_name="Smith"),
        headers=headers["doctor"],
    ).json()["patient"]
    add_condition(client, headers, patient["id"])
    client.post(
        f"{BASE}/{other['id']}/allergies",
        json={"allergen": "Peanuts", "severity": "Life-threatening"},
        headers=headers["doctor"],
    )

    by_condition = client.get(BASE + "/search", params={"condition": "diabetes"}, headers=headers["doctor"])
    assert [p["id"] for p in by_condition.json()["items"]] == [patient["id"]]

    by_allergy = client.get(BASE + "/search", params={"allergy": "peanut"}, headers=headers["doctor"])
    assert [p["id"] for p in by_allergy.json()["items"]] == [other["id"]]


def test_search_by_visit_date_range(client, headers, patient):
    client.post(
        f"{BASE}/{patient['id']}/visits",
        json={"date": "2024-01-15T10:00:00", "type": "Routine Checkup", "department": "Cardiology"},
        headers=headers["doctor"],
    )
    inside = client.get(
        BASE + "/search", params={"date_range": "2024-01-01,2024-01-31"}, headers=headers["doctor"]
    )
    assert inside.json()["total"] == 1
    outside = client.get(
        BASE + "/search", params={"date_range": "2024-02-01,2024-02-28"}, headers=headers["doctor"]
    )
    assert outside.json()["total"] == 0


def test_search_rejects_bad_date_range(client, headers):
    response = client.get(BASE + "/search", params={"date_range": "yesterday"}, headers=headers["doctor"])
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "date_range"


def test_search_pagination(client, headers):
    for n in range(1, 4):
        client.post(BASE + "/", json=patient_payload(f"PAT00000{n}"), headers=headers["doctor"])

    response = client.get(BASE + "/search", params={"page": 2, "limit": 2}, headers=headers["doctor"])
    body = response.json()
    assert body["total"] == 3
    assert body["pages"] == 2
    assert body["page"] == 2
    assert [p["patient_code"] for p in body["items"]] == ["PAT000001"]


def test_search_limit_is_capped(client, headers):
    response = client.get(BASE + "/search", params={"limit": 500}, headers=headers["doctor"])
    assert response.status_code == 400


# Updates and sub-records

def test_update_patient(client, headers, patient, doctor):
    response = client.patch(
        f"{BASE}/{patient['id']}",
        json={"phone": "555-222-3333", "insurance": {"provider": "Acme Health", "policy_number": "P-1"}},
        headers=headers["doctor"],
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Patient updated successfully"
    assert body["patient"]["phone"] == "555-222-3333"
    assert body["patient"]["insurance"]["provider"] == "Acme Health"
    assert body["patient"]["updated_by"] == doctor.id


def test_update_cannot_change_patient_code(client, headers, patient):
    response = client.patch(
        f"{BASE}/{patient['id']}", json={"patient_code": "PAT999999"}, headers=headers["doctor"]
    )
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "patient_code"


def test_receptionist_cannot_update(client, headers, patient):
    response = client.patch(f"{BASE}/{patient['id']}", json={"phone": "555-222-3333"}, headers=headers["receptionist"])
    assert response.status_code == 403
    assert response.json()["message"] == "Access denied"


def test_new_prescription_is_active(client, headers, patient):
    result = add_prescription(client, headers, patient["id"])
    prescription = result["prescriptions"][0]
    assert prescription["status"] == "Active"
    assert prescription["refills"] == []


def test_prescription_end_before_start(client, headers, patient):
    response = client.post(
        f"{BASE}/{patient['id']}/prescriptions",
        json={
            "medication": "Metformin", "dosage": "500mg", "frequency": "Daily",
            "start_date": "2024-02-01", "end_date": "2024-01-01",
        },
        headers=headers["doctor"],
    )
    assert response.status_code == 400


def test_refill_and_status_change(client, headers, patient, nurse):
    prescription = add_prescription(client, headers, patient["id"])["prescriptions"][0]
    url = f"{BASE}/{patient['id']}/prescriptions/{prescription['id']}"

    refill = client.post(url + "/refills", json={"quantity": 30, "date": "2024-02-10"}, headers=headers["nurse"])
    assert refill.status_code == 201
    refills = refill.json()["patient"]["prescriptions"][0]["refills"]
    assert refills == [{"id": refills[0]["id"], "date": "2024-02-10", "quantity": 30, "dispensed_by": nurse.id}]

    completed = client.patch(url, json={"status": "Completed", "end_date": "2024-03-01"}, headers=headers["doctor"])
    assert completed.status_code == 200
    assert completed.json()["patient"]["prescriptions"][0]["status"] == "Completed"


def test_refill_requires_positive_quantity(client, headers, patient):
    prescription = add_prescription(client, headers, patient["id"])["prescriptions"][0]
    response = client.post(
        f"{BASE}/{patient['id']}/prescriptions/{prescription['id']}/refills",
        json={"quantity": 0},
        headers=headers["doctor"],
    )
    assert response.status_code == 400


def test_refill_unknown_prescription(client, headers, patient):
    response = client.post(
        f"{BASE}/{patient['id']}/prescriptions/9999/refills", json={"quantity": 1}, headers=headers["doctor"]
    )
    assert response.status_code == 404
    assert response.json()["message"] == "Prescription not found"


def test_add_visit_with_vitals(client, headers, patient, doctor):
    response = client.post(
        f"{BASE}/{patient['id']}/visits",
        json={
            "type": "Follow-up",
            "department": "Cardiology",
            "doctor_id": doctor.id,
            "vitals": {"blood_pressure": "120/80", "heart_rate": 72},
            "attachments": [{"type": "ECG", "url": "https://files.example.com/ecg.pdf"}],
        },
        headers=headers["nurse"],
    )
    assert response.status_code == 201, response.text
    visit = response.json()["patient"]["visits"][0]
    assert visit["vitals"] == {"blood_pressure": "120/80", "heart_rate": 72}
    assert visit["attachments"][0]["type"] == "ECG"


def test_add_visit_rejects_non_doctor(client, headers, patient, nurse):
    response = client.post(
        f"{BASE}/{patient['id']}/visits",
        json={"type": "Emergency", "department": "Emergency", "doctor_id": nurse.id},
        headers=headers["doctor"],
    )
    assert response.status_code == 400
    assert response.json()["details"] == [{"field": "doctor_id", "message": "Doctor not found"}]


def test_add_visit_rejects_bad_vitals(client, headers, patient):
    response = client.post(
        f"{BASE}/{patient['id']}/visits",
        json={"type": "Emergency", "department": "Emergency", "vitals": {"blood_pressure": "high"}},
        headers=headers["doctor"],
    )
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "vitals.blood_pressure"


def test_lab_report_pending_then_reviewed(client, headers, patient, doctor):
    response = client.post(
        f"{BASE}/{patient['id']}/lab-reports",
        json={"test_name": "HbA1c", "date": "2024-01-20"},
        headers=headers["nurse"],
    )
    assert response.status_code == 201
    report = response.json()["patient"]["lab_reports"][0]
    assert report["status"] == "Pending"

    reviewed = client.patch(
        f"{BASE}/{patient['id']}/lab-reports/{report['id']}",
        json={"status": "Abnormal", "results": "8.1%"},
        headers=headers["doctor"],
    )
    assert reviewed.status_code == 200
    report = reviewed.json()["patient"]["lab_reports"][0]
    assert report["status"] == "Abnormal"
    assert report["results"] == "8.1%"
    assert report["reviewed_by"] == doctor.id


def test_sub_records_require_clinical_role(client, headers, patient):
    response = client.post(
        f"{BASE}/{patient['id']}/allergies",
        json={"allergen": "Latex", "severity": "Mild"},
        headers=headers["receptionist"],
    )
    assert response.status_code == 403


def test_medical_history_date_cannot_be_future(client, headers, patient):
    response = client.post(
        f"{BASE}/{patient['id']}/medical-history",
        json={"condition": "Asthma", "diagnosis_date": "2999-01-01"},
        headers=headers["doctor"],
    )
    assert response.status_code == 400


# Export and soft delete

def test_export_patient(client, headers, patient, doctor):
    response = client.get(f"{BASE}/{patient['id']}/export", headers=headers["doctor"])
    assert response.status_code == 200
    body = response.json()
    assert body["exported_by"] == doctor.id
    assert body["patient"]["patient_code"] == "PAT000001"
    assert body["patient"]["view"] == "detail"
    assert body["access_log"][-1]["action"] == "Export"


def test_admin_export_has_counts_only(client, headers, patient):
    add_condition(client, headers, patient["id"], condition="HIV")

    response = client.get(f"{BASE}/{patient['id']}/export", headers=headers["admin"])
    assert response.status_code == 200
    exported = response.json()["patient"]
    assert exported["view"] == "summary"
    assert exported["medical_history_count"] == 1
    assert "medical_history" not in exported


def test_export_denied_for_nurse(client, headers, patient):
    response = client.get(f"{BASE}/{patient['id']}/export", headers=headers["nurse"])
    assert response.status_code == 403


def test_soft_delete(client, headers, patient, db):
    response = client.delete(f"{BASE}/{patient['id']}", headers=headers["admin"])
    assert response.status_code == 200
    assert response.json() == {"message": "Patient record deleted successfully"}

    listed = client.get(BASE + "/", headers=headers["doctor"])
    assert listed.json() == []
    searched = client.get(BASE + "/search", params={"name": "Jane"}, headers=headers["doctor"])
    assert searched.json()["total"] == 0

    # Still readable by id
    fetched = client.get(f"{BASE}/{patient['id']}", headers=headers["doctor"])
    assert fetched.status_code == 200
    assert fetched.json()["is_active"] is False
    assert db.query(Patient).count() == 1


def test_only_admin_deletes(client, headers, patient):
    response = client.delete(f"{BASE}/{patient['id']}", headers=headers["doctor"])
    assert response.status_code == 403
