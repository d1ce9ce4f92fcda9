"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from clinic_ops.api.v1 import appointments, audit, health, patients, treatment_steps

api_router = APIRouter()

# Health check
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

# Appointment lifecycle
api_router.include_router(
    appointments.router,
    prefix="/appointments",
    tags=["appointments"],
)

# Treatment step sessions
api_router.include_router(
    treatment_steps.router,
    prefix="/treatment-steps",
    tags=["treatment"],
)

# Planning views
api_router.include_router(
    patients.router,
    prefix="/patients",
    tags=["planning"],
)

# Audit
api_router.include_router(
    audit.router,
    prefix="/audit",
    tags=["audit"],
)
