"""
Core security utilities for authentication and password handling.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List
from jose import jwt, JWTError, ExpiredSignatureError
from passlib.context import CryptContext
import logging

from ..config import settings
from ..auth.exceptions import InvalidTokenException, TokenExpiredException

# Set up logging
logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

PASSWORD_SPECIAL_CHARS = "!@#$%^&*"

def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt (salted, irreversible).

    Args:
        password: Plain text password

    Returns:
        str: Hashed password
    """
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a hash.

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password to compare against

    Returns:
        bool: True if password matches hash
    """
    return pwd_context.verify(plain_password, hashed_password)

def password_strength_errors(password: str) -> List[str]:
    """
    Validate password strength.

    Args:
        password: Password to validate

    Returns:
        List of human-readable problems; empty if the password is acceptable
    """
    problems = []
    if len(password) < 8:
        problems.append("Password must be at least 8 characters long")
    if not any(c.isupper() for c in password):
        problems.append("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in password):
        problems.append("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in password):
        problems.append("Password must contain at least one number")
    if not any(c in PASSWORD_SPECIAL_CHARS for c in password):
        problems.append(f"Password must contain at least one special character ({PASSWORD_SPECIAL_CHARS})")
    return problems

def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode in the token (``sub``, ``email``, ``role``)
        expires_delta: Token expiration time; defaults to the configured lifetime

    Returns:
        str: Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.access_token_expire_minutes
        )

    to_encode.update({"exp": expire, "iat": datetime.now(timezone.utc)})

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

def create_token_for_user(user, expires_delta: Optional[timedelta] = None) -> str:
    """Issue a session token binding the account id, email, and role."""
    role = user.role.value if hasattr(user.role, "value") else str(user.role)
    return create_access_token(
        {"sub": str(user.id), "email": user.email, "role": role},
        expires_delta=expires_delta,
    )

def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a JWT token.

    Args:
        token: JWT token string

    Returns:
        Dict containing the token payload

    Raises:
        TokenExpiredException: If the token is past its expiry
        InvalidTokenException: If the token is malformed or badly signed
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except ExpiredSignatureError:
        raise TokenExpiredException()
    except JWTError as e:
        logger.info(f"Rejected token: {str(e)}")
        raise InvalidTokenException()

    if not payload.get("sub"):
        raise InvalidTokenException()
    return payload
