"""
University Placement Portal - Main Application

FastAPI backend with:
- PostgreSQL (SQLite for tests) through SQLAlchemy
- JWT authentication with role-based access
- JSON API under /api
- Jinja2 HTML pages at the root

Run: uvicorn placement_portal.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError

from placement_portal.api import api_router
from placement_portal.api.pages import router as pages_router
from placement_portal.core.config import get_settings
from placement_portal.core.exceptions import (
    PortalError,
    portal_exception_handler,
    validation_exception_handler,
    integrity_exception_handler,
    unhandled_exception_handler,
)
from placement_portal.db import engine, create_schema, test_database_connection

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Check the database and create missing tables when auto_create_schema is on."""
    logger.info("Starting Placement Portal")
    if test_database_connection():
        logger.info("Database connection OK")
    else:
        logger.warning("Database is not reachable; requests will fail until it is")
    if settings.auto_create_schema:
        create_schema(engine)
        logger.info("Database schema ready")
    yield
    logger.info("Shutting down Placement Portal")


# Create FastAPI app
app = FastAPI(
    title="University Placement Portal",
    description="""
    Multi-tenant placement tracking for universities.

    ## Roles
    - **Super admin**: universities, global dashboards
    - **University admin**: students, companies, jobs, sub-users
    - **Sub-user**: interview pipelines of assigned jobs
    - **Student**: job applications and offers
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(PortalError, portal_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(IntegrityError, integrity_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# Include API routes
app.include_router(api_router, prefix="/api")
app.include_router(pages_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    connected = test_database_connection()
    return {
        "status": "healthy" if connected else "degraded",
        "database": "connected" if connected else "disconnected"
    }
