"""
User Schemas - Pydantic models for account data validation and serialization.
"""
import re
from typing import Optional, List
from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from .models import UserRole
from ..core.security import password_strength_errors

NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-']+$")
LICENSE_PATTERN = re.compile(r"^[A-Z0-9-]+$")


def _check_person_name(value: str, label: str) -> str:
    value = value.strip()
    if not 2 <= len(value) <= 50:
        raise ValueError(f"{label} must be between 2 and 50 characters")
    if not NAME_PATTERN.match(value):
        raise ValueError(f"{label} can only contain letters, spaces, hyphens, and apostrophes")
    return value


def _check_department(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not 2 <= len(value) <= 50:
        raise ValueError("Department name must be between 2 and 50 characters")
    return value


class UserRegistration(BaseModel):
    """
    Registration Schema - Used for staff self-registration

    Fields:
    - first_name / last_name: Letters, spaces, hyphens, apostrophes (2-50 chars)
    - email: Login email
    - password: Plain text password (hashed before storage)
    - role: One of admin, doctor, nurse, receptionist (case-insensitive)
    - department: Department name (optional, defaults to "General")
    - specialization: Required for doctors
    - license_number: Required for doctors and nurses
    """
    first_name: str
    last_name: str
    email: EmailStr
    password: str
    role: UserRole = UserRole.RECEPTIONIST
    department: Optional[str] = None
    specialization: Optional[str] = None
    license_number: Optional[str] = None

    @field_validator("first_name")
    @classmethod
    def validate_first_name(cls, v: str) -> str:
        return _check_person_name(v, "First name")

    @field_validator("last_name")
    @classmethod
    def validate_last_name(cls, v: str) -> str:
        return _check_person_name(v, "Last name")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        problems = password_strength_errors(v)
        if problems:
            raise ValueError(problems[0])
        return v

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("department")
    @classmethod
    def validate_department(cls, v: Optional[str]) -> Optional[str]:
        return _check_department(v)

    @field_validator("specialization")
    @classmethod
    def blank_specialization_is_missing(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v

    @field_validator("license_number")
    @classmethod
    def validate_license_number(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not LICENSE_PATTERN.match(v):
            raise ValueError("License number can only contain uppercase letters, numbers, and hyphens")
        return v

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class UserLogin(BaseModel):
    """
    User Login Schema - Used for authentication

    Fields:
    - email: User's email address
    - password: User's plain text password
    """
    email: EmailStr
    password: str


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""
    name: Optional[str] = None
    password: Optional[str] = None
    department: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_person_name(v, "Name")

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        problems = password_strength_errors(v)
        if problems:
            raise ValueError(problems[0])
        return v

    @field_validator("department")
    @classmethod
    def validate_department(cls, v: Optional[str]) -> Optional[str]:
        return _check_department(v)


class AdminUserUpdate(BaseModel):
    """
    Admin User Update Schema - Used by administrators to change role/status
    """
    name: Optional[str] = None
    department: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    specialization: Optional[str] = None
    license_number: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("department")
    @classmethod
    def validate_department(cls, v: Optional[str]) -> Optional[str]:
        return _check_department(v)

    @field_validator("license_number")
    @classmethod
    def validate_license_number(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not LICENSE_PATTERN.match(v):
            raise ValueError("License number can only contain uppercase letters, numbers, and hyphens")
        return v


class UserResponse(BaseModel):
    """
    User Response Schema - Public account fields (credential excluded)
    """
    id: int
    name: str
    email: EmailStr
    role: UserRole
    department: str
    specialization: Optional[str] = None
    license_number: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    class Config:
        """Configuration for Pydantic model to enable ORM mode"""
        from_attributes = True


class AuthResponse(BaseModel):
    """
    Returned after registration, login, and token refresh

    Fields:
    - message: Human-readable outcome
    - token: Signed session token
    - token_type: Always "bearer"
    - expires_in: Token lifetime in seconds
    - user: Public account fields
    """
    message: str
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class UserUpdateResponse(BaseModel):
    message: str
    user: UserResponse


class DoctorSummary(BaseModel):
    """Doctor listing entry used to populate assignment dropdowns."""
    id: int
    name: str
    specialization: Optional[str] = None
    department: Optional[str] = None

    class Config:
        from_attributes = True


class EmailAvailability(BaseModel):
    available: bool


class MessageResponse(BaseModel):
    message: str


class RoleList(BaseModel):
    roles: List[UserRole] = Field(default_factory=lambda: list(UserRole))
