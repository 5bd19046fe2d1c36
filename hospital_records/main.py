"""
Main FastAPI application entry point.
Configures the application, middleware, and includes routers.
"""
from dotenv import load_dotenv

# Load environment variables from .env file first
load_dotenv()

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .analytics.router import router as analytics_router
from .appointments.router import router as appointments_router
from .auth.router import router as auth_router
from .bootstrap import bootstrap_admin_if_needed
from .config import Settings, settings as default_settings
from .core.middleware import setup_middlewares
from .database import Database
from .exceptions import register_exception_handlers
from .patients.router import router as patients_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Build the application around an explicit database handle.

    Args:
        settings: Application settings (defaults to the environment)
        database: Store handle (defaults to one built from ``settings.database_url``)

    Returns:
        FastAPI: Configured application
    """
    settings = settings or default_settings
    # A handle passed in by the caller is disposed by the caller
    owns_database = database is None
    database = database or Database(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Hospital Records API...")
        database.create_all()
        db = database.session()
        try:
            bootstrap_admin_if_needed(db, settings)
        except Exception as e:
            logger.error(f"Bootstrap process failed: {str(e)}")
        finally:
            db.close()
        yield
        if owns_database:
            database.dispose()
        logger.info("Hospital Records API stopped")

    app = FastAPI(
        title="Hospital Records API",
        description="Patient records, appointments and analytics for hospital staff",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.db = database
    app.state.settings = settings
    app.state.started_at = time.monotonic()

    # Register exception handlers
    register_exception_handlers(app, debug=settings.debug)

    # Configure CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Setup custom middleware
    setup_middlewares(app)

    # Include routers
    app.include_router(auth_router, prefix="/api/v1/auth", tags=["Authentication"])
    app.include_router(patients_router, prefix="/api/v1/patients", tags=["Patients"])
    app.include_router(appointments_router, prefix="/api/v1/appointments", tags=["Appointments"])
    app.include_router(analytics_router, prefix="/api/v1/analytics", tags=["Analytics"])

    @app.get("/")
    def root():
        """
        Root endpoint.

        Returns:
            dict: Welcome message and API version
        """
        return {"message": "Welcome to Hospital Records API", "version": __version__}

    @app.get("/health")
    def health_check(request: Request):
        """
        Health check endpoint for monitoring.

        Returns:
            dict: Status, timestamp, uptime in seconds and database connectivity
        """
        connected = request.app.state.db.is_connected()
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - request.app.state.started_at, 3),
            "database": "connected" if connected else "disconnected",
        }

    return app


app = create_app()
