"""
Authentication service layer for business logic.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..core.security import (
    create_token_for_user,
    decode_access_token,
    hash_password,
    verify_password,
)
from ..exceptions import FieldValidationException
from .dependencies import AuthenticatedUser
from .exceptions import (
    AccountDeactivatedException,
    EmailAlreadyExistsException,
    InvalidCredentialsException,
    InvalidOrInactiveUserException,
    InvalidTokenException,
    UserNotFoundException,
)
from .models import User, UserRole
from .schemas import AdminUserUpdate, ProfileUpdate, UserRegistration, UserResponse

# Set up logging
logger = logging.getLogger(__name__)


def _auth_payload(user: User, message: str) -> Dict[str, Any]:
    return {
        "message": message,
        "token": create_token_for_user(user),
        "token_type": "bearer",
        "expires_in": settings.access_token_expire_minutes * 60,
        "user": UserResponse.model_validate(user),
    }


def _check_role_requirements(role: UserRole, specialization: Optional[str], license_number: Optional[str]) -> None:
    """
    Enforce role-specific registration fields.

    Raises:
        FieldValidationException: Listing every missing field
    """
    details = []
    if role == UserRole.DOCTOR and not specialization:
        details.append({"field": "specialization", "message": "Specialization is required for doctors"})
    if role in (UserRole.DOCTOR, UserRole.NURSE) and not license_number:
        details.append({"field": "license_number", "message": "License number is required for medical professionals"})
    if details:
        raise FieldValidationException(details)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def get_user_by_id(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise UserNotFoundException()
    return user


def register_user(db: Session, registration: UserRegistration) -> Dict[str, Any]:
    """
    Register a new staff account and issue a session token.

    Args:
        db: Database session
        registration: Validated registration data

    Returns:
        Dict with message, token and public account fields

    Raises:
        FieldValidationException: If role-specific fields are missing
        EmailAlreadyExistsException: If email already exists
    """
    logger.info(f"Registration attempt for email: {registration.email} (role: {registration.role.value})")

    _check_role_requirements(registration.role, registration.specialization, registration.license_number)

    # Check if email already exists
    if get_user_by_email(db, registration.email):
        logger.warning(f"Registration failed: Email {registration.email} already registered")
        raise EmailAlreadyExistsException()

    user = User(
        name=registration.full_name,
        email=registration.email,
        password_hash=hash_password(registration.password),
        role=registration.role,
        department=registration.department or "General",
        specialization=registration.specialization,
        license_number=registration.license_number,
        is_active=True,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent registration with the same email won the race
        db.rollback()
        raise EmailAlreadyExistsException()
    db.refresh(user)

    logger.info(f"Account created: {user.id} ({user.role.value})")
    return _auth_payload(user, "Registration successful")


def authenticate_user(db: Session, email: str, password: str) -> Dict[str, Any]:
    """
    Authenticate a user and issue a fresh session token.

    Raises:
        InvalidCredentialsException: Unknown email or wrong password
        AccountDeactivatedException: Correct credentials on a deactivated account
    """
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        logger.warning(f"Failed login attempt for email: {email}")
        raise InvalidCredentialsException()

    if not user.is_active:
        logger.warning(f"Login refused for deactivated account: {user.id}")
        raise AccountDeactivatedException()

    user.last_login = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)

    logger.info(f"User {user.id} logged in")
    return _auth_payload(user, "Login successful")


def verify_token(db: Session, token: str) -> AuthenticatedUser:
    """
    Validate a session token and re-check the account's active status.

    Returns:
        AuthenticatedUser: Identity embedded in the token

    Raises:
        InvalidTokenException, TokenExpiredException, InvalidOrInactiveUserException
    """
    payload = decode_access_token(token)
    try:
        user_id = int(payload["sub"])
        role = UserRole(payload.get("role"))
    except (KeyError, TypeError, ValueError):
        raise InvalidTokenException()

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise InvalidOrInactiveUserException()

    return AuthenticatedUser(id=user.id, email=payload.get("email", user.email), role=role, account=user)


def refresh_session(current_user: AuthenticatedUser) -> Dict[str, Any]:
    """Issue a new token reflecting the account's current role."""
    return _auth_payload(current_user.account, "Token refreshed")


def is_email_available(db: Session, email: str) -> bool:
    return get_user_by_email(db, email) is None


def update_profile(db: Session, user: User, update: ProfileUpdate) -> User:
    """
    Update the caller's own profile (name, password, department only).
    """
    data = update.model_dump(exclude_unset=True, exclude_none=True)
    if "password" in data:
        user.password_hash = hash_password(data.pop("password"))
    for field, value in data.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    logger.info(f"Profile updated for user {user.id}")
    return user


def list_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.created_at.asc(), User.id.asc()).all()


def admin_update_user(db: Session, user_id: int, update: AdminUserUpdate, admin_id: int) -> User:
    """
    Administrator update, including role and active-status changes.

    A role change does not revoke outstanding tokens; they keep their
    embedded role until they expire.
    """
    user = get_user_by_id(db, user_id)
    data = update.model_dump(exclude_unset=True)
    for field, value in data.items():
        if value is None and field in ("role", "is_active", "name", "department"):
            continue
        setattr(user, field, value)
    try:
        _check_role_requirements(user.role, user.specialization, user.license_number)
    except FieldValidationException:
        db.rollback()
        raise
    db.commit()
    db.refresh(user)
    logger.info(f"User {user_id} updated by admin {admin_id}: {sorted(data)}")
    return user


def deactivate_user(db: Session, user_id: int, admin_id: int) -> User:
    """Clear the active flag; the account is retained."""
    user = get_user_by_id(db, user_id)
    user.is_active = False
    db.commit()
    db.refresh(user)
    logger.info(f"User {user_id} deactivated by admin {admin_id}")
    return user


def list_doctors(db: Session) -> List[User]:
    return (
        db.query(User)
        .filter(User.role == UserRole.DOCTOR, User.is_active.is_(True))
        .order_by(User.name.asc())
        .all()
    )
