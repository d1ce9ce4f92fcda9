"""Audit event endpoints.

IMPORTANT: This module intentionally provides READ-ONLY access to audit events.
Audit events are created internally through ``BestEffortAuditor``.
"""

from fastapi import APIRouter, Depends, status

from clinic_ops.api.deps import Store, require_permissions
from clinic_ops.schemas.audit_event import AuditEventFilter, AuditEventRead
from clinic_ops.services.audit import AuditService
from clinic_ops.services.rbac import Permission

router = APIRouter()


@router.get(
    "/events",
    response_model=list[AuditEventRead],
    status_code=status.HTTP_200_OK,
    summary="List audit events",
    description="Query audit events with optional filters (append-only, no modification endpoints)",
    dependencies=[Depends(require_permissions(Permission.AUDIT_READ))],
)
async def list_audit_events(
    store: Store,
    entity_id: str | None = None,
    entity_type: str | None = None,
    actor_id: str | None = None,
    action: str | None = None,
    action_category: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[AuditEventRead]:
    """Query audit events with optional filters, newest first.

    Args:
        store: Clinic store
        entity_id: Filter by entity ID
        entity_type: Filter by entity type
        actor_id: Filter by actor ID
        action: Filter by action
        action_category: Filter by action category
        limit: Maximum results (default 100, max 500)
        offset: Results to skip

    Returns:
        List of audit events matching filters
    """
    filters = AuditEventFilter(
        entity_id=entity_id,
        entity_type=entity_type,
        actor_id=actor_id,
        action=action,
        action_category=action_category,
        limit=min(limit, 500),  # Cap at 500
        offset=max(offset, 0),
    )

    audit_service = AuditService(store)
    events = await audit_service.get_events(**filters.model_dump())

    return [AuditEventRead.model_validate(e) for e in events]


@router.get(
    "/events/{entity_type}/{entity_id}",
    response_model=list[AuditEventRead],
    status_code=status.HTTP_200_OK,
    summary="Get entity audit history",
    description="Get complete audit history for a specific entity",
    dependencies=[Depends(require_permissions(Permission.AUDIT_READ))],
)
async def get_entity_history(
    entity_type: str,
    entity_id: str,
    store: Store,
    limit: int = 100,
) -> list[AuditEventRead]:
    """Get audit history for a specific entity."""
    audit_service = AuditService(store)
    events = await audit_service.get_entity_history(
        entity_type=entity_type,
        entity_id=entity_id,
        limit=min(limit, 500),
    )

    return [AuditEventRead.model_validate(e) for e in events]


# NOTE: No POST, PUT, PATCH, or DELETE endpoints are provided.
