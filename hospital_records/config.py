"""
Application configuration settings loaded from environment variables.
Uses pydantic_settings for validation and type conversion.
"""
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    """
    Application settings class with environment variable validation.

    Attributes:
        database_url: SQLAlchemy connection string (PostgreSQL or SQLite)
        secret_key: Secret key for JWT token encoding
        algorithm: Algorithm used for JWT encoding (typically HS256)
        access_token_expire_minutes: Session token lifetime in minutes (8 hours)

        debug: Include stack traces in unclassified error responses
        environment: Deployment environment name
        cors_origins: Origins allowed by the CORS middleware

        # Bootstrap admin settings (optional)
        bootstrap_admin_email: Optional admin email for first admin creation
        bootstrap_admin_password: Optional admin password for first admin creation
        bootstrap_admin_name: Display name for the bootstrap admin
    """
    # Database settings
    database_url: str = "sqlite:///./hospital.db"

    # JWT settings
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 8

    # Runtime settings
    debug: bool = False
    environment: str = "development"
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5000"]

    # Bootstrap admin settings (optional - only used for first admin creation)
    bootstrap_admin_email: Optional[str] = None
    bootstrap_admin_password: Optional[str] = None
    bootstrap_admin_name: str = "System Administrator"

    class Config:
        """Configuration for environment variables loading"""
        env_file = ".env"
        case_sensitive = False


# Create settings instance
settings = Settings()
