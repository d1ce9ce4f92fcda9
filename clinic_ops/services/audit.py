"""Audit event service for append-only audit logging."""

import logging
from dataclasses import dataclass
from typing import Any

from clinic_ops.core.logging import audit_logger
from clinic_ops.models.audit_event import AuditEvent
from clinic_ops.store.base import ClinicStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditContext:
    """Who performed an action and from where."""

    actor_id: str | None
    actor_role: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    request_id: str | None = None


async def write_audit_event(
    store: ClinicStore,
    context: AuditContext,
    action: str,
    entity_type: str,
    entity_id: str | None,
    metadata: dict[str, Any] | None = None,
    action_category: str | None = None,
    description: str | None = None,
) -> AuditEvent:
    """Write an audit event to the store.

    Events are append-only and cannot be modified or deleted. The store
    persists each event in its own unit of work; service code goes through
    ``BestEffortAuditor`` so a failed write never reaches the caller.

    Args:
        store: Clinic store
        context: Actor and request context
        action: Action performed (e.g. "TRANSITION_START", "CONSENT_VERIFIED")
        entity_type: Type of entity affected (e.g. "appointment", "treatment_step")
        entity_id: ID of the affected entity
        metadata: Additional context as JSON
        action_category: Category of action (appointment, consent, treatment)
        description: Human-readable description

    Returns:
        Created AuditEvent instance
    """
    event = AuditEvent(
        actor_id=context.actor_id,
        actor_role=context.actor_role,
        action=action,
        action_category=action_category,
        entity_type=entity_type,
        entity_id=entity_id,
        event_metadata=metadata,
        description=description,
        ip_address=context.ip_address,
        user_agent=context.user_agent,
        request_id=context.request_id,
    )

    await store.add_audit_event(event)

    # Also log to structured logger
    audit_logger.log(
        action=action,
        actor_id=context.actor_id or "system",
        entity_type=entity_type,
        entity_id=entity_id or "none",
        metadata=metadata,
    )

    return event


class BestEffortAuditor:
    """Audit writer that never raises.

    Each record is written in its own unit of work after the primary mutation
    has committed, so an audit failure can neither roll back nor block it.
    Failures are logged with their traceback and otherwise ignored.
    """

    def __init__(self, store: ClinicStore) -> None:
        self.store = store

    async def record(
        self,
        context: AuditContext,
        action: str,
        entity_type: str,
        entity_id: str | None,
        metadata: dict[str, Any] | None = None,
        action_category: str | None = None,
        description: str | None = None,
    ) -> AuditEvent | None:
        """Persist an audit event, returning None if the write failed."""
        try:
            return await write_audit_event(
                self.store,
                context,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                metadata=metadata,
                action_category=action_category,
                description=description,
            )
        except Exception:
            logger.exception(
                "Audit write failed",
                extra={"action": action, "entity_id": entity_id},
            )
            return None


class AuditService:
    """Service for querying audit events.

    Note: This service only provides read operations.
    Audit events are created via write_audit_event() function.
    """

    def __init__(self, store: ClinicStore) -> None:
        self.store = store

    async def get_events(
        self,
        entity_id: str | None = None,
        entity_type: str | None = None,
        actor_id: str | None = None,
        action: str | None = None,
        action_category: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AuditEvent]:
        """Query audit events with optional filters, newest first."""
        return await self.store.list_audit_events(
            entity_id=entity_id,
            entity_type=entity_type,
            actor_id=actor_id,
            action=action,
            action_category=action_category,
            limit=limit,
            offset=offset,
        )

    async def get_entity_history(
        self,
        entity_type: str,
        entity_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get audit history for a specific entity.

        Args:
            entity_type: Type of entity
            entity_id: ID of entity
            limit: Maximum events to return

        Returns:
            List of audit events for the entity
        """
        return await self.store.list_audit_events(
            entity_type=entity_type,
            entity_id=entity_id,
            limit=limit,
        )
