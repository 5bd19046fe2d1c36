"""
Bootstrap utilities for first admin creation.
Creates the first administrator account from configuration when none exists.
"""
import logging
from sqlalchemy.orm import Session
from .auth.models import User, UserRole
from .config import Settings
from .core.security import hash_password

logger = logging.getLogger(__name__)


def admin_count(db: Session) -> int:
    return db.query(User).filter(User.role == UserRole.ADMIN).count()


def create_bootstrap_admin(db: Session, settings: Settings) -> bool:
    """
    Create the first admin account from configured credentials.

    Args:
        db: Database session
        settings: Application settings carrying the bootstrap credentials

    Returns:
        bool: True if admin was created successfully, False otherwise
    """
    if not settings.bootstrap_admin_email or not settings.bootstrap_admin_password:
        logger.warning("Bootstrap admin credentials not provided in environment variables")
        return False

    email = settings.bootstrap_admin_email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        logger.warning(f"Bootstrap failed: Email {email} already exists")
        return False

    try:
        admin = User(
            name=settings.bootstrap_admin_name,
            email=email,
            password_hash=hash_password(settings.bootstrap_admin_password),
            role=UserRole.ADMIN,
            department="Administration",
            is_active=True,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
    except Exception as e:
        logger.error(f"Failed to create bootstrap admin: {str(e)}")
        db.rollback()
        return False

    logger.info(f"Bootstrap admin created: {admin.email} (ID: {admin.id})")
    return True


def bootstrap_admin_if_needed(db: Session, settings: Settings) -> None:
    """
    Create the bootstrap admin if no admin account exists yet.
    Called once during application startup.
    """
    existing = admin_count(db)
    if existing:
        logger.info(f"Admin users found ({existing} total). Bootstrap not needed.")
        return

    logger.info("No admin users found. Attempting bootstrap admin creation...")
    if not create_bootstrap_admin(db, settings):
        logger.info("To create the first admin, set BOOTSTRAP_ADMIN_EMAIL and BOOTSTRAP_ADMIN_PASSWORD in your .env file.")
