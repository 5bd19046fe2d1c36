"""
Authentication and account administration routes.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from .dependencies import AuthenticatedUser, get_current_user, require_route
from .schemas import (
    AdminUserUpdate,
    AuthResponse,
    DoctorSummary,
    EmailAvailability,
    MessageResponse,
    ProfileUpdate,
    RoleList,
    UserLogin,
    UserRegistration,
    UserResponse,
    UserUpdateResponse,
)
from . import service

# Set up logging
logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED,
             summary="Staff self-registration")
def register(registration: UserRegistration, db: Session = Depends(get_db)):
    """
    Register a staff account and log it in immediately.

    Doctors must supply a specialization; doctors and nurses must supply a
    license number.
    """
    return service.register_user(db, registration)


@router.get("/check-email", response_model=EmailAvailability)
def check_email(email: str = Query(..., min_length=3), db: Session = Depends(get_db)):
    return {"available": service.is_email_available(db, email)}


@router.post("/login", response_model=AuthResponse)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """
    Authenticate with email and password.

    Returns:
        AuthResponse: Session token valid for 8 hours plus public account fields
    """
    return service.authenticate_user(db, credentials.email, credentials.password)


@router.post("/refresh", response_model=AuthResponse)
def refresh(current_user: AuthenticatedUser = Depends(get_current_user)):
    return service.refresh_session(current_user)


@router.get("/profile", response_model=UserResponse)
def get_profile(current_user: AuthenticatedUser = Depends(get_current_user)):
    return current_user.account


@router.patch("/profile", response_model=UserUpdateResponse)
def update_profile(
    update: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """Users can only update their own name, password, and department."""
    user = service.update_profile(db, current_user.account, update)
    return {"message": "Profile updated successfully", "user": user}


@router.get("/users", response_model=List[UserResponse])
def list_users(
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("auth.list_users")),
):
    return service.list_users(db)


@router.patch("/users/{user_id}", response_model=UserUpdateResponse)
def update_user(
    user_id: int,
    update: AdminUserUpdate,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("auth.update_user")),
):
    user = service.admin_update_user(db, user_id, update, current_user.id)
    return {"message": "User updated successfully", "user": user}


@router.delete("/users/{user_id}", response_model=MessageResponse)
def deactivate_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("auth.deactivate_user")),
):
    """Deactivate (never delete) an account."""
    service.deactivate_user(db, user_id, current_user.id)
    return {"message": "User deactivated successfully"}


@router.get("/roles", response_model=RoleList)
def list_roles(current_user: AuthenticatedUser = Depends(require_route("auth.list_roles"))):
    return RoleList()


@router.get("/doctors", response_model=List[DoctorSummary])
def list_doctors(
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_route("auth.list_doctors")),
):
    return service.list_doctors(db)
