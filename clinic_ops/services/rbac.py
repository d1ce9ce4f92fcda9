"""Role-Based Access Control (RBAC) service.

Staff roles are asserted by the external auth service in the bearer token;
this module only maps them to permissions.
"""

from enum import Enum


class StaffRole(str, Enum):
    """Staff roles recognised by the clinic core."""

    ADMIN = "admin"
    DENTIST = "dentist"
    RECEPTIONIST = "receptionist"
    READONLY = "readonly"


class Permission(str, Enum):
    """Available permissions in the clinic core."""

    # Front-desk lifecycle actions (confirm, check in, cancel, no-show)
    APPOINTMENTS_TRANSITION = "appointments:transition"
    # Clinical lifecycle actions (start, complete)
    APPOINTMENTS_CLINICAL_TRANSITION = "appointments:clinical_transition"

    TREATMENT_SESSIONS_WRITE = "treatment:sessions:write"
    PLANNING_READ = "planning:read"

    AUDIT_READ = "audit:read"


# Role to permissions mapping
ROLE_PERMISSIONS: dict[StaffRole, set[Permission]] = {
    StaffRole.ADMIN: {
        Permission.APPOINTMENTS_TRANSITION,
        Permission.APPOINTMENTS_CLINICAL_TRANSITION,
        Permission.TREATMENT_SESSIONS_WRITE,
        Permission.PLANNING_READ,
        Permission.AUDIT_READ,
    },
    StaffRole.DENTIST: {
        Permission.APPOINTMENTS_TRANSITION,
        Permission.APPOINTMENTS_CLINICAL_TRANSITION,
        Permission.TREATMENT_SESSIONS_WRITE,
        Permission.PLANNING_READ,
        Permission.AUDIT_READ,
    },
    StaffRole.RECEPTIONIST: {
        # NOTE: Receptionists cannot start or complete appointments
        Permission.APPOINTMENTS_TRANSITION,
        Permission.PLANNING_READ,
    },
    StaffRole.READONLY: {
        Permission.PLANNING_READ,
    },
}


class RBACService:
    """Service for checking role-based permissions."""

    @staticmethod
    def get_permissions(role: StaffRole) -> set[Permission]:
        """Get all permissions for a role.

        Args:
            role: Staff role

        Returns:
            Set of permissions granted to the role
        """
        return ROLE_PERMISSIONS.get(role, set())

    @staticmethod
    def has_permission(role: StaffRole, permission: Permission) -> bool:
        """Check if a role has a specific permission."""
        return permission in ROLE_PERMISSIONS.get(role, set())

    @staticmethod
    def has_all_permissions(role: StaffRole, permissions: list[Permission]) -> bool:
        """Check if a role has all specified permissions.

        Args:
            role: Staff role to check
            permissions: List of permissions (all must match)

        Returns:
            True if role has all permissions
        """
        role_permissions = ROLE_PERMISSIONS.get(role, set())
        return all(p in role_permissions for p in permissions)
