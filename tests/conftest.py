"""
Test configuration for the hospital records backend.
"""
import os

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient

from hospital_records.auth.models import User, UserRole
from hospital_records.core.security import create_token_for_user, hash_password
from hospital_records.database import Database, get_db
from hospital_records.main import create_app

TEST_PASSWORD = "Password123!"

# Hashed once; bcrypt is slow
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@pytest.fixture(scope="function")
def database():
    """
    Fresh in-memory database for each test.
    """
    database = Database("sqlite://")
    database.create_all()
    yield database
    database.drop_all()
    database.dispose()


@pytest.fixture(scope="function")
def db(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def app(database):
    return create_app(database=database)


@pytest.fixture(scope="function")
def client(app, db):
    """
    Create a test client sharing the test database session.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides = {}


@pytest.fixture
def make_user(db):
    """Factory creating an account directly in the store."""
    counter = {"n": 0}

    def _make_user(role: UserRole, **fields) -> User:
        counter["n"] += 1
        defaults = {
            "name": f"Test {role.value.title()} {counter['n']}",
            "email": f"{role.value}{counter['n']}@hospital.test",
            "password_hash": TEST_PASSWORD_HASH,
            "role": role,
            "department": "General",
            "is_active": True,
        }
        if role == UserRole.DOCTOR:
            defaults.update(specialization="Cardiology", license_number="MD-1001")
        if role == UserRole.NURSE:
            defaults.update(license_number="RN-2001")
        defaults.update(fields)
        user = User(**defaults)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


def bearer(user: User) -> dict:
    return {"Authorization": f"Bearer {create_token_for_user(user)}"}


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN)


@pytest.fixture
def doctor(make_user):
    return make_user(UserRole.DOCTOR)


@pytest.fixture
def nurse(make_user):
    return make_user(UserRole.NURSE)


@pytest.fixture
def receptionist(make_user):
    return make_user(UserRole.RECEPTIONIST)


@pytest.fixture
def headers(admin, doctor, nurse, receptionist):
    """Authorization headers keyed by role name."""
    return {
        "admin": bearer(admin),
        "doctor": bearer(doctor),
        "nurse": bearer(nurse),
        "receptionist": bearer(receptionist),
    }


def patient_payload(code: str = "PAT000001", **overrides) -> dict:
    payload = {
        "patient_code": code,
        "first_name": "Jane",
        "last_name": "Doe",
        "date_of_birth": "1980-05-17",
        "gender": "Female",
        "phone": "+1 555 123 4567",
        "email": "jane.doe@example.com",
        "address": "12 Elm Street",
        "emergency_contact": {"name": "John Doe", "relationship": "Spouse", "phone": "555-987-6543"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def patient(client, headers):
    """A patient registered through the API by a doctor."""
    response = client.post("/api/v1/patients/", json=patient_payload(), headers=headers["doctor"])
    assert response.status_code == 201, response.text
    return response.json()["patient"]
