"""
Tests for the API client and its formatting helpers.
"""
from datetime import date

import pytest

from conftest import TEST_PASSWORD, patient_payload
from hospital_records.client import ApiClient, ApiError, calculate_age, collection_counts, patient_rows


@pytest.fixture
def session_file(tmp_path):
    return tmp_path / "session.json"


@pytest.fixture
def api(client, session_file):
    return ApiClient(client=client, session_path=session_file)


def register_nurse(api):
    return api.register(
        first_name="Mary",
        last_name="Seacole",
        email="mary@hospital.test",
        password="Str0ng!Pass",
        role="nurse",
        license_number="RN-7777",
    )


def test_register_persists_session(api, client, session_file):
    register_nurse(api)
    assert api.is_authenticated
    assert api.role == "nurse"
    assert session_file.exists()

    restored = ApiClient(client=client, session_path=session_file)
    assert restored.token == api.token
    assert restored.profile()["email"] == "mary@hospital.test"


def test_logout_clears_session(api, session_file):
    register_nurse(api)
    api.logout()
    assert not api.is_authenticated
    assert not session_file.exists()


def test_login_and_error_message(api, doctor):
    with pytest.raises(ApiError) as exc:
        api.login(doctor.email, "Wrong123!")
    assert exc.value.status_code == 401
    assert exc.value.message == "Invalid credentials"

    api.login(doctor.email, TEST_PASSWORD)
    assert api.role == "doctor"


def test_validation_error_details(api):
    with pytest.raises(ApiError) as exc:
        api.register(first_name="Mary", last_name="Seacole", email="mary@hospital.test",
                     password="Str0ng!Pass", role="doctor")
    assert exc.value.status_code == 400
    assert exc.value.message == "Validation failed"
    assert {d["field"] for d in exc.value.details} == {"specialization", "license_number"}


def test_rejected_token_clears_session(api, session_file):
    register_nurse(api)
    api.token = "not-a-token"

    with pytest.raises(ApiError) as exc:
        api.profile()
    assert exc.value.status_code == 401
    assert not api.is_authenticated
    assert not session_file.exists()


def test_patient_workflow(api):
    register_nurse(api)
    created = api.create_patient(**patient_payload())
    patient_id = created["patient"]["id"]

    api.add_entry(patient_id, "allergies", allergen="Penicillin", severity="Severe")
    api.add_entry(patient_id, "medical-history", condition="Asthma", diagnosis_date="2019-04-02")

    detail = api.get_patient(patient_id)
    assert collection_counts(detail) == {
        "medical_history": 1, "allergies": 1, "prescriptions": 0, "visits": 0, "lab_reports": 0,
    }

    rows = patient_rows([detail], today=date(2024, 5, 17))
    assert rows[0]["name"] == "Jane Doe"
    assert rows[0]["age"] == 44
    assert rows[0]["allergies"] == 1
    assert rows[0]["status"] == "Active"

    listed = api.list_patients(search="doe")
    assert [p["id"] for p in listed] == [patient_id]
    assert api.search_patients(allergy="penicillin")["total"] == 1

    with pytest.raises(ApiError) as exc:
        api.audit_log(patient_id)
    assert exc.value.status_code == 403


def test_analytics_and_appointments(api, doctor):
    register_nurse(api)
    patient_id = api.create_patient(**patient_payload())["patient"]["id"]
    appointment = api.create_appointment(patient_id=patient_id, doctor_id=doctor.id, date="2024-06-03", time="14:15")
    assert api.appointments(date="2024-06-03")[0]["id"] == appointment["id"]
    assert api.delete_appointment(appointment["id"]) == {"message": "Appointment deleted"}

    # Registering the patient counts as an access by this nurse
    assert api.analytics("nurse/patient-care") == {"count": 1}
    assert "demographics" in api.analytics()


def test_prescription_and_lab_review(api):
    register_nurse(api)
    patient_id = api.create_patient(**patient_payload())["patient"]["id"]
    api.add_entry(patient_id, "prescriptions", medication="Metformin", dosage="500mg",
                  frequency="Twice daily", start_date="2024-01-10")
    api.add_entry(patient_id, "lab-reports", test_name="CBC", date="2024-03-01")
    detail = api.get_patient(patient_id)

    prescription_id = detail["prescriptions"][0]["id"]
    updated = api.update_prescription(patient_id, prescription_id, "Completed", end_date="2024-02-10")
    assert updated["patient"]["prescriptions"][0]["status"] == "Completed"

    report_id = detail["lab_reports"][0]["id"]
    reviewed = api.review_lab_report(patient_id, report_id, "Abnormal", results="Low haemoglobin")
    assert reviewed["patient"]["lab_reports"][0]["status"] == "Abnormal"


def test_account_administration(api, admin, receptionist):
    api.login(admin.email, TEST_PASSWORD)
    assert api.roles() == ["admin", "doctor", "nurse", "receptionist"]
    assert receptionist.email in [user["email"] for user in api.users()]

    updated = api.update_user(receptionist.id, department="Front Desk")
    assert updated["user"]["department"] == "Front Desk"
    assert api.deactivate_user(receptionist.id) == {"message": "User deactivated successfully"}

    with pytest.raises(ApiError) as exc:
        api.login(receptionist.email, TEST_PASSWORD)
    assert exc.value.status_code == 403


def test_get_appointment(api, doctor):
    register_nurse(api)
    patient_id = api.create_patient(**patient_payload())["patient"]["id"]
    created = api.create_appointment(patient_id=patient_id, doctor_id=doctor.id, date="2024-06-03", time="09:30")
    assert api.get_appointment(created["id"])["time"] == "09:30"

    with pytest.raises(ApiError) as exc:
        api.get_appointment(9999)
    assert exc.value.message == "Appointment not found"


def test_collection_counts_for_summary_view():
    summary = {"view": "summary", "medical_history_count": 2, "allergy_count": 1,
               "prescription_count": 0, "visit_count": 3, "lab_report_count": 0}
    assert collection_counts(summary)["visits"] == 3
    assert collection_counts(summary)["medical_history"] == 2


def test_calculate_age():
    assert calculate_age("1980-05-17", date(2024, 5, 16)) == 43
    assert calculate_age(date(1980, 5, 17), date(2024, 5, 17)) == 44
