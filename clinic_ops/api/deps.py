"""FastAPI dependency injection utilities."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.core.security import decode_access_token
from clinic_ops.db.session import get_db
from clinic_ops.services.audit import AuditContext
from clinic_ops.services.rbac import Permission, RBACService, StaffRole
from clinic_ops.store.base import ClinicStore
from clinic_ops.store.sql import SqlClinicStore

# Security scheme
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    """Authenticated staff member, as asserted by the auth service token."""

    id: str
    role: StaffRole
    email: str | None = None


async def get_current_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> dict | None:
    """Extract and decode the current JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Decoded token payload or None
    """
    if not credentials:
        return None

    return decode_access_token(credentials.credentials)


async def get_current_actor(
    token: Annotated[dict | None, Depends(get_current_token)],
) -> Actor:
    """Resolve the acting staff member from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing or invalid, 403 if the
            role is not one this service recognises
    """
    if not token or not token.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        role = StaffRole(token.get("role"))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff role not recognised",
        )

    return Actor(id=token["sub"], role=role, email=token.get("email"))


def require_permissions(*permissions: Permission):
    """Create a dependency that requires specific permissions.

    Usage:
        @router.get("/", dependencies=[Depends(require_permissions(Permission.PLANNING_READ))])

    Args:
        permissions: Required permissions (actor must have all)

    Returns:
        Dependency function
    """

    async def permission_checker(
        actor: Annotated[Actor, Depends(get_current_actor)],
    ) -> Actor:
        if not RBACService.has_all_permissions(actor.role, list(permissions)):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return actor

    return permission_checker


async def get_store(
    session: Annotated[AsyncSession, Depends(get_db)],
) -> ClinicStore:
    """Wrap the request's database session in the clinic store."""
    return SqlClinicStore(session)


def get_client_ip(request: Request) -> str | None:
    """Extract client IP from request.

    Args:
        request: FastAPI request

    Returns:
        Client IP address or None
    """
    # Check for forwarded header (when behind proxy)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return None


def get_request_id(request: Request) -> str | None:
    """Extract request ID from headers."""
    return request.headers.get("X-Request-ID")


async def get_audit_context(
    request: Request,
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> AuditContext:
    """Bundle actor and request metadata for audit entries."""
    return AuditContext(
        actor_id=actor.id,
        actor_role=actor.role.value,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
        request_id=get_request_id(request),
    )


# Type aliases for cleaner dependency injection
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
Store = Annotated[ClinicStore, Depends(get_store)]
AuditCtx = Annotated[AuditContext, Depends(get_audit_context)]
