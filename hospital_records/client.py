"""
HTTP client for the Hospital Records API.

Holds the session token and the signed-in user, persists them to a local JSON
file between runs, and wraps each API route in a method. Formatting helpers
turn API payloads into table rows for command-line or notebook use.
"""
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
CLINICAL_COLLECTIONS = ("medical_history", "allergies", "prescriptions", "visits", "lab_reports")


class ApiError(Exception):
    """
    Error response from the API.

    Attributes:
        status_code: HTTP status
        message: Message from either error envelope
        details: Field-level messages for validation failures
    """
    def __init__(self, status_code: int, message: str, details: Optional[List[Dict[str, str]]] = None):
        self.status_code = status_code
        self.message = message
        self.details = details or []
        super().__init__(f"{status_code}: {message}")

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        try:
            body = response.json()
        except ValueError:
            return cls(response.status_code, response.text or response.reason_phrase)
        if "details" in body:
            return cls(response.status_code, body.get("error", "Validation failed"), body["details"])
        return cls(response.status_code, body.get("message") or body.get("detail") or "Request failed")


class ApiClient:
    """
    Session-aware API client.

    Args:
        base_url: Server root, e.g. ``http://localhost:8000``
        session_path: File used to persist the token and user between runs
        client: Pre-built httpx client (its base URL is used as-is)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        session_path: Optional[Union[str, Path]] = None,
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ):
        self.http = client or httpx.Client(base_url=base_url, timeout=timeout)
        self.session_path = Path(session_path) if session_path else None
        self.token: Optional[str] = None
        self.user: Optional[Dict[str, Any]] = None
        self._load_session()

    # Session state

    def _load_session(self) -> None:
        if not self.session_path or not self.session_path.exists():
            return
        try:
            data = json.loads(self.session_path.read_text())
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session file {self.session_path}: {str(e)}")
            return
        self.token = data.get("token")
        self.user = data.get("user")

    def _save_session(self) -> None:
        if not self.session_path:
            return
        self.session_path.write_text(json.dumps({"token": self.token, "user": self.user}))

    def _set_session(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.token = payload["token"]
        self.user = payload["user"]
        self._save_session()
        return payload

    def clear_session(self) -> None:
        self.token = None
        self.user = None
        if self.session_path and self.session_path.exists():
            self.session_path.unlink()

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    @property
    def role(self) -> Optional[str]:
        return self.user.get("role") if self.user else None

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    # Transport

    def request(self, method: str, path: str, **kwargs) -> Any:
        """
        Send a request under the API prefix and decode the JSON body.

        A 401 clears the stored session, since the token is no longer usable.

        Raises:
            ApiError: For any non-2xx response
        """
        headers = {**self.auth_headers(), **kwargs.pop("headers", {})}
        response = self.http.request(method, f"{API_PREFIX}{path}", headers=headers, **kwargs)
        if response.status_code == 401 and self.token:
            logger.info("Session rejected by server; clearing stored token")
            self.clear_session()
        if response.is_error:
            raise ApiError.from_response(response)
        return response.json() if response.content else None

    def close(self) -> None:
        self.http.close()

    # Authentication

    def register(self, **fields) -> Dict[str, Any]:
        return self._set_session(self.request("POST", "/auth/register", json=fields))

    def login(self, email: str, password: str) -> Dict[str, Any]:
        return self._set_session(self.request("POST", "/auth/login", json={"email": email, "password": password}))

    def logout(self) -> None:
        self.clear_session()

    def refresh(self) -> Dict[str, Any]:
        return self._set_session(self.request("POST", "/auth/refresh"))

    def email_available(self, email: str) -> bool:
        return self.request("GET", "/auth/check-email", params={"email": email})["available"]

    def profile(self) -> Dict[str, Any]:
        return self.request("GET", "/auth/profile")

    def update_profile(self, **fields) -> Dict[str, Any]:
        result = self.request("PATCH", "/auth/profile", json=fields)
        self.user = result["user"]
        self._save_session()
        return result

    def doctors(self) -> List[Dict[str, Any]]:
        return self.request("GET", "/auth/doctors")

    def roles(self) -> List[str]:
        return self.request("GET", "/auth/roles")["roles"]

    # Account administration

    def users(self) -> List[Dict[str, Any]]:
        return self.request("GET", "/auth/users")

    def update_user(self, user_id: int, **fields) -> Dict[str, Any]:
        return self.request("PATCH", f"/auth/users/{user_id}", json=fields)

    def deactivate_user(self, user_id: int) -> Dict[str, Any]:
        return self.request("DELETE", f"/auth/users/{user_id}")

    # Patients

    def list_patients(self, search: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"search": search} if search else None
        return self.request("GET", "/patients/", params=params)

    def search_patients(self, page: int = 1, limit: int = 10, **filters) -> Dict[str, Any]:
        params = {k: v for k, v in filters.items() if v is not None}
        params.update(page=page, limit=limit)
        return self.request("GET", "/patients/search", params=params)

    def get_patient(self, patient_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/patients/{patient_id}")

    def create_patient(self, **fields) -> Dict[str, Any]:
        return self.request("POST", "/patients/", json=fields)

    def update_patient(self, patient_id: int, **fields) -> Dict[str, Any]:
        return self.request("PATCH", f"/patients/{patient_id}", json=fields)

    def add_entry(self, patient_id: int, kind: str, **fields) -> Dict[str, Any]:
        """
        Append a sub-record.

        Args:
            kind: One of medical-history, allergies, prescriptions, visits, lab-reports
        """
        return self.request("POST", f"/patients/{patient_id}/{kind}", json=fields)

    def add_refill(self, patient_id: int, prescription_id: int, quantity: int, **fields) -> Dict[str, Any]:
        return self.request(
            "POST",
            f"/patients/{patient_id}/prescriptions/{prescription_id}/refills",
            json={"quantity": quantity, **fields},
        )

    def update_prescription(self, patient_id: int, prescription_id: int, status: str, **fields) -> Dict[str, Any]:
        return self.request(
            "PATCH",
            f"/patients/{patient_id}/prescriptions/{prescription_id}",
            json={"status": status, **fields},
        )

    def review_lab_report(self, patient_id: int, report_id: int, status: str, **fields) -> Dict[str, Any]:
        return self.request(
            "PATCH", f"/patients/{patient_id}/lab-reports/{report_id}", json={"status": status, **fields}
        )

    def audit_log(self, patient_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/patients/{patient_id}/audit-log")

    def export_patient(self, patient_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/patients/{patient_id}/export")

    def delete_patient(self, patient_id: int) -> Dict[str, Any]:
        return self.request("DELETE", f"/patients/{patient_id}")

    # Appointments

    def appointments(self, **filters) -> List[Dict[str, Any]]:
        params = {k: v for k, v in filters.items() if v is not None}
        return self.request("GET", "/appointments/", params=params or None)

    def get_appointment(self, appointment_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/appointments/{appointment_id}")

    def create_appointment(self, **fields) -> Dict[str, Any]:
        return self.request("POST", "/appointments/", json=fields)

    def update_appointment(self, appointment_id: int, **fields) -> Dict[str, Any]:
        return self.request("PATCH", f"/appointments/{appointment_id}", json=fields)

    def delete_appointment(self, appointment_id: int) -> Dict[str, Any]:
        return self.request("DELETE", f"/appointments/{appointment_id}")

    # Analytics

    def analytics(self, name: str = "", **params) -> Any:
        """
        Fetch an analytics view, e.g. ``analytics("visit-trends", interval="day")``.
        An empty name returns the dashboard summary.
        """
        path = f"/analytics/{name}" if name else "/analytics/"
        return self.request("GET", path, params={k: v for k, v in params.items() if v is not None} or None)


def calculate_age(date_of_birth: Union[str, date], today: Optional[date] = None) -> int:
    """Whole years between a date of birth and today."""
    if isinstance(date_of_birth, str):
        date_of_birth = date.fromisoformat(date_of_birth[:10])
    today = today or date.today()
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


def collection_counts(patient: Dict[str, Any]) -> Dict[str, int]:
    """
    Per-collection counts for either read view.

    Summary views carry ``*_count`` fields; detail views carry the lists.
    """
    if patient.get("view") == "summary":
        return {
            "medical_history": patient.get("medical_history_count", 0),
            "allergies": patient.get("allergy_count", 0),
            "prescriptions": patient.get("prescription_count", 0),
            "visits": patient.get("visit_count", 0),
            "lab_reports": patient.get("lab_report_count", 0),
        }
    return {name: len(patient.get(name) or []) for name in CLINICAL_COLLECTIONS}


def patient_row(patient: Dict[str, Any], today: Optional[date] = None) -> Dict[str, Any]:
    row = {
        "id": patient["id"],
        "patient_code": patient["patient_code"],
        "name": f"{patient['first_name']} {patient['last_name']}",
        "age": calculate_age(patient["date_of_birth"], today),
        "gender": patient["gender"],
        "status": "Active" if patient.get("is_active", True) else "Inactive",
    }
    if "view" in patient:
        row.update(collection_counts(patient))
    return row


def patient_rows(patients: List[Dict[str, Any]], today: Optional[date] = None) -> List[Dict[str, Any]]:
    return [patient_row(p, today) for p in patients]
