"""
Main FastAPI application entry point.

This module creates the FastAPI application instance, configures logging,
maps store errors onto HTTP responses and mounts all routes.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn
from typing import AsyncGenerator

from fleetgroups.config.settings import settings
from fleetgroups.core.database import create_tables
from fleetgroups.core.errors import ErrorKind, StoreError, is_kind
from fleetgroups.api.routes import groups, members, memberships, invites

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Set up root logging from settings.log_level."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def status_for(exc: StoreError) -> int:
    """HTTP status code for a store error."""
    if is_kind(exc, ErrorKind.NOT_FOUND):
        return 404
    if is_kind(exc, ErrorKind.MALFORMED_ENTITY):
        return 400
    if is_kind(exc, ErrorKind.CONFLICT) or is_kind(exc, ErrorKind.GROUP_NOT_EMPTY):
        return 409
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Ensures the database tables exist before serving requests.
    """
    logger.info(f"Starting {settings.project_name} API...")
    create_tables()
    logger.info("Database tables verified")

    yield

    logger.info(f"Shutting down {settings.project_name} API...")


configure_logging()

# Create FastAPI application instance
app = FastAPI(
    title=settings.project_name,
    description="""
    ## Fleet Groups API

    Organization-scoped groups of devices, channels and profiles, the
    users that may act on them and the invites that grant that access.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url=f"{settings.api_v1_str}/openapi.json",
    lifespan=lifespan
)


@app.exception_handler(StoreError)
async def store_exception_handler(request: Request, exc: StoreError):
    """
    Map store errors onto HTTP responses.

    Generic store failures are reported as 500 and only carry their
    detail in debug mode.
    """
    status_code = status_for(exc)
    if status_code == 500:
        logger.error(f"Store failure on {request.method} {request.url.path}: {exc}")
        detail = str(exc) if settings.debug else exc.message
    else:
        detail = exc.message

    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.kind.value,
            "detail": detail,
            "path": str(request.url),
            "method": request.method
        }
    )


# Health check endpoint
@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint for monitoring and load balancers."""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "environment": "development" if settings.debug else "production",
        "relation_variant": settings.relation_variant,
    }


# Include API routers
# Fixed path segments (memberships, invites) must be mounted before the
# member routes, whose {kind} segment would otherwise capture them
app.include_router(
    groups.router,
    prefix=f"{settings.api_v1_str}/groups",
    tags=["Groups"]
)

app.include_router(
    memberships.router,
    prefix=f"{settings.api_v1_str}/groups",
    tags=["Memberships"]
)

app.include_router(
    invites.router,
    prefix=settings.api_v1_str,
    tags=["Invites"]
)

app.include_router(
    members.router,
    prefix=settings.api_v1_str,
    tags=["Members"]
)


# Development server entry point
if __name__ == "__main__":
    uvicorn.run(
        "fleetgroups.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
