"""Role-based access control. No FastAPI."""

from enum import Enum

from content_guard.security.exceptions import AuthorizationError


class Role(Enum):
    ADMIN = "ADMIN"
    EDITOR = "EDITOR"
    APPROVER = "APPROVER"
    VIEWER = "VIEWER"


# Permission matrix:
# Role      share_preview  request_approval  approve  view_audit  verify_integrity
# ADMIN     ✓              ✓                 ✓        ✓           ✓
# EDITOR    ✓              ✓                 ✗        ✓           ✗
# APPROVER  ✗              ✗                 ✓        ✓           ✗
# VIEWER    ✗              ✗                 ✗        ✓           ✗

_ROLE_PERMISSIONS: dict[Role, frozenset[str]] = {
    Role.ADMIN: frozenset(
        {"share_preview", "request_approval", "approve", "view_audit", "verify_integrity"}
    ),
    Role.EDITOR: frozenset({"share_preview", "request_approval", "view_audit"}),
    Role.APPROVER: frozenset({"approve", "view_audit"}),
    Role.VIEWER: frozenset({"view_audit"}),
}


class RBACService:
    """Check permission for role and action. Raise AuthorizationError if invalid."""

    def check_permission(self, role: Role, action: str) -> None:
        """Raises AuthorizationError if role does not have permission for action."""
        if action not in _ROLE_PERMISSIONS.get(role, frozenset()):
            raise AuthorizationError(
                f"Role {role.value} does not have permission for action '{action}'"
            )
