"""
Authentication-specific exceptions.

Messages are fixed strings; none of these exceptions carry internal detail
back to the client.
"""
from fastapi import HTTPException, status

class AuthException(HTTPException):
    """Base class for authentication exceptions."""
    def __init__(self, status_code: int, detail: str, headers: dict = None):
        super().__init__(status_code=status_code, detail=detail, headers=headers)

class UnauthenticatedException(AuthException):
    """Base class for 401 responses; advertises the bearer scheme."""
    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

class InvalidCredentialsException(AuthException):
    """Exception raised when credentials are invalid."""
    def __init__(self, detail: str = "Invalid credentials"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)

class EmailAlreadyExistsException(AuthException):
    """Exception raised when email already exists."""
    def __init__(self, detail: str = "User already exists"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

class AccountDeactivatedException(AuthException):
    """Exception raised when a deactivated account tries to log in."""
    def __init__(self, detail: str = "Account is deactivated"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)

class MissingTokenException(UnauthenticatedException):
    def __init__(self, detail: str = "Access token required"):
        super().__init__(detail)

class TokenExpiredException(UnauthenticatedException):
    """Exception raised when token has expired."""
    def __init__(self, detail: str = "Token expired"):
        super().__init__(detail)

class InvalidTokenException(UnauthenticatedException):
    """Exception raised when token is malformed or its signature is bad."""
    def __init__(self, detail: str = "Invalid token"):
        super().__init__(detail)

class InvalidOrInactiveUserException(UnauthenticatedException):
    """Exception raised when the token's account is missing or deactivated."""
    def __init__(self, detail: str = "Invalid or inactive user"):
        super().__init__(detail)

class AccessDeniedException(AuthException):
    """Exception raised when user doesn't have a permitted role."""
    def __init__(self, detail: str = "Access denied"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)

class UserNotFoundException(AuthException):
    def __init__(self, detail: str = "User not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
