"""
FastAPI dependencies for authentication and authorization.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ..database import get_db
from ..core.permissions import authorize, roles_for_route
from .exceptions import MissingTokenException
from .models import User, UserRole

logger = logging.getLogger(__name__)

# Bearer scheme; missing headers are reported by get_current_user itself
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthenticatedUser:
    """
    Resolved identity attached to each request.

    ``role`` is the role embedded in the session token at issuance time,
    which may lag behind the account's current role until the token expires.
    """
    id: int
    email: str
    role: UserRole
    account: User

    @property
    def name(self) -> str:
        return self.account.name


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> AuthenticatedUser:
    """
    Get current authenticated user from the bearer token.

    Args:
        credentials: Parsed Authorization header
        db: Database session

    Returns:
        AuthenticatedUser: Identity from the token, re-checked against the store

    Raises:
        MissingTokenException, InvalidTokenException, TokenExpiredException,
        InvalidOrInactiveUserException
    """
    # Imported here to avoid a cycle with the service module
    from .service import verify_token

    if credentials is None or not credentials.credentials:
        raise MissingTokenException()
    return verify_token(db, credentials.credentials)


def require_roles(allowed_roles: Iterable[Union[UserRole, str]]):
    """
    Dependency factory to require specific roles.

    Args:
        allowed_roles: Roles that are allowed access

    Returns:
        Function that checks if user has required role
    """
    allowed = frozenset(allowed_roles)

    def role_checker(current_user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
        authorize(current_user.role, allowed)
        return current_user
    return role_checker


def require_route(route_name: str):
    """Dependency factory enforcing the permission table entry for a route."""
    return require_roles(roles_for_route(route_name))
