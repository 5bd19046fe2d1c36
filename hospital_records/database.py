"""
Database connection and session management.
Provides the SQLAlchemy declarative base, an explicitly constructed
database handle, and the per-request session dependency.
"""
import logging
from typing import Optional
from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Create base class for declarative models
Base = declarative_base()


class Database:
    """
    Store handle owning the engine and session factory.

    One instance is built per application in ``create_app`` and handed to
    request handlers through ``app.state.db``; nothing else holds a
    connection.
    """

    def __init__(self, url: str, engine: Optional[Engine] = None):
        self.url = url
        self.engine = engine or self._create_engine(url)
        self.session_factory = sessionmaker(bind=self.engine, autoflush=False, autocommit=False)

    @staticmethod
    def _create_engine(url: str) -> Engine:
        if url.startswith("sqlite"):
            # In-memory SQLite must share one connection across threads
            if url in ("sqlite://", "sqlite:///:memory:"):
                return create_engine(
                    url,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                )
            return create_engine(url, connect_args={"check_same_thread": False})
        return create_engine(url, pool_pre_ping=True)

    def create_all(self) -> None:
        """Create database tables if they don't exist."""
        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def session(self) -> Session:
        return self.session_factory()

    def is_connected(self) -> bool:
        """
        Check database connectivity with a trivial round trip.

        Returns:
            bool: True if the database answered
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database connectivity check failed: {str(e)}")
            return False

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request):
    """
    Database dependency - Creates and yields a database session.

    The session is automatically closed after the request is processed,
    even if an exception occurs during request handling.

    Yields:
        SQLAlchemy Session: Database session
    """
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()
