"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from clinic_ops.api.v1.router import api_router
from clinic_ops.core.config import settings
from clinic_ops.core.errors import ClinicError
from clinic_ops.core.logging import setup_logging
from clinic_ops.db.base import Base
from clinic_ops.db.session import engine

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    logger.info(f"Starting Clinic Ops API (env={settings.env})")

    if settings.init_db_on_startup and settings.is_dev:
        logger.info("Creating database tables...")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    yield

    logger.info("Shutting down Clinic Ops API")
    await engine.dispose()


app = FastAPI(
    title="Clinic Ops API",
    description="Appointment lifecycle, consent gate and treatment session tracking",
    version="0.1.0",
    docs_url="/docs" if settings.is_dev else None,
    redoc_url="/redoc" if settings.is_dev else None,
    openapi_url="/openapi.json" if settings.is_dev else None,
    lifespan=lifespan,
)


@app.exception_handler(ClinicError)
async def clinic_error_handler(request: Request, exc: ClinicError) -> JSONResponse:
    """Render expected business failures as ``{code, message, details}``."""
    logger.info(
        f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}",
        extra={"request_id": request.headers.get("X-Request-ID")},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render malformed input in the same shape as business validation failures."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": {"errors": jsonable_encoder(exc.errors())},
        },
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions."""
    logger.exception(
        f"Unhandled exception: {exc}",
        extra={"request_id": request.headers.get("X-Request-ID")},
    )

    content = {"code": "INTERNAL_ERROR", "message": "Internal server error"}
    # Never expose internals in production
    if settings.expose_internal_errors and not settings.is_prod:
        content["details"] = {"error": str(exc)}

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
    )


app.include_router(api_router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root() -> dict:
    return {
        "service": "Clinic Ops API",
        "version": "0.1.0",
        "docs": "/docs" if settings.is_dev else "Disabled in production",
    }
