"""
FastAPI application entry point.
"""

from collections.abc import Sequence
from contextlib import asynccontextmanager
from typing import Any

import redis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from src.core.config import settings
from src.core.database import SyncSessionLocal
from src.core.exceptions import CRMError
from src.core.logging import get_logger

logger = get_logger(__name__)

SERVICE_NAME = "network-crm"
VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(f"Starting Network CRM API ({settings.app_env})")

    yield

    logger.info("Shutting down API")


# Create FastAPI application
app = FastAPI(
    title="Network CRM",
    description="Personal network CRM: contacts, reminders, Google integrations and AI icebreakers",
    version=VERSION,
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else [settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CRMError)
async def crm_error_handler(request: Request, exc: CRMError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def format_validation_errors(errors: Sequence[dict[str, Any]]) -> str:
    """Flatten pydantic errors into "field: message; ..." for the detail string."""
    messages = []
    for error in errors:
        field = ".".join(
            str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")
        )
        messages.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return "; ".join(messages) or "Invalid request"


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": format_validation_errors(exc.errors())})


@app.get("/")
async def root():
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "environment": settings.app_env,
    }


def check_database() -> str:
    db = SyncSessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return "connected"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return "disconnected"
    finally:
        db.close()


def check_redis() -> str:
    try:
        client = redis.from_url(settings.redis_url, socket_connect_timeout=2)
        client.ping()
        return "connected"
    except redis.RedisError as e:
        logger.error(f"Redis health check failed: {e}")
        return "disconnected"


@app.get("/health")
def health_check():
    """Detailed health check against the database and Redis."""
    components = {"database": check_database(), "redis": check_redis()}
    healthy = all(value == "connected" for value in components.values())
    body = {"status": "healthy" if healthy else "unhealthy", **components}
    return JSONResponse(status_code=200 if healthy else 503, content=body)


# Include routers
from src.api.routers import (
    contacts,
    dashboard,
    icebreakers,
    integrations,
    notes,
    notifications,
    reminders,
    users,
)

API_PREFIX = "/api/v1"

app.include_router(contacts.router, prefix=f"{API_PREFIX}/contacts", tags=["contacts"])
app.include_router(reminders.router, prefix=f"{API_PREFIX}/reminders", tags=["reminders"])
app.include_router(notes.router, prefix=f"{API_PREFIX}/notes", tags=["notes"])
app.include_router(notifications.router, prefix=f"{API_PREFIX}/notifications", tags=["notifications"])
app.include_router(integrations.router, prefix=f"{API_PREFIX}/integrations", tags=["integrations"])
app.include_router(icebreakers.router, prefix=f"{API_PREFIX}/icebreakers", tags=["icebreakers"])
app.include_router(dashboard.router, prefix=f"{API_PREFIX}/dashboard", tags=["dashboard"])
app.include_router(users.router, prefix=f"{API_PREFIX}/users", tags=["users"])
