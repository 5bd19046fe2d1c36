"""
User Model - Stores staff account information.

Accounts are never physically deleted: deactivation clears ``is_active`` and
bars the account from authentication.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from sqlalchemy.sql import func
import enum
from ..database import Base

class UserRole(str, enum.Enum):
    """
    Enumeration for staff roles in the hospital system.

    Roles:
    - ADMIN: System administrators
    - DOCTOR: Physicians
    - NURSE: Nursing staff
    - RECEPTIONIST: Front-desk staff

    Parsing is case-insensitive, so ``UserRole("DOCTOR")`` and
    ``UserRole("doctor")`` resolve to the same member.
    """
    ADMIN = "admin"
    DOCTOR = "doctor"
    NURSE = "nurse"
    RECEPTIONIST = "receptionist"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class User(Base):
    """
    User Model - Stores all staff account information

    Fields:
    - id: Primary key for user identification
    - name: Display name ("First Last")
    - email: Unique email address used for login
    - password_hash: bcrypt hash (never store raw passwords)
    - role: Staff role
    - department: Department name
    - specialization: Medical specialization (doctors)
    - license_number: Professional license number (doctors and nurses)
    - is_active: Cleared when an administrator deactivates the account
    - created_at: Timestamp when user was created
    - last_login: Timestamp of the last successful authentication
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(Enum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
                  nullable=False, default=UserRole.RECEPTIONIST)
    department = Column(String, nullable=False, default="General")
    specialization = Column(String, nullable=True)
    license_number = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    last_login = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
