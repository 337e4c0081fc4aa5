"""Security tests: RBAC permission matrix fully tested."""

import pytest

from content_guard.security.exceptions import AuthorizationError
from content_guard.security.rbac import RBACService, Role


@pytest.fixture
def rbac():
    return RBACService()


ALL_PERMISSIONS = ["share_preview", "request_approval", "approve", "view_audit", "verify_integrity"]


def test_admin_has_all_permissions(rbac):
    for permission in ALL_PERMISSIONS:
        rbac.check_permission(Role.ADMIN, permission)


def test_editor_shares_and_requests_but_cannot_approve(rbac):
    rbac.check_permission(Role.EDITOR, "share_preview")
    rbac.check_permission(Role.EDITOR, "request_approval")
    rbac.check_permission(Role.EDITOR, "view_audit")
    with pytest.raises(AuthorizationError):
        rbac.check_permission(Role.EDITOR, "approve")
    with pytest.raises(AuthorizationError):
        rbac.check_permission(Role.EDITOR, "verify_integrity")


def test_approver_approves_but_cannot_share(rbac):
    rbac.check_permission(Role.APPROVER, "approve")
    rbac.check_permission(Role.APPROVER, "view_audit")
    with pytest.raises(AuthorizationError):
        rbac.check_permission(Role.APPROVER, "share_preview")
    with pytest.raises(AuthorizationError):
        rbac.check_permission(Role.APPROVER, "request_approval")


def test_viewer_only_views_audit(rbac):
    rbac.check_permission(Role.VIEWER, "view_audit")
    for permission in ["share_preview", "request_approval", "approve", "verify_integrity"]:
        with pytest.raises(AuthorizationError):
            rbac.check_permission(Role.VIEWER, permission)


def test_unknown_action_raises(rbac):
    with pytest.raises(AuthorizationError):
        rbac.check_permission(Role.ADMIN, "unknown_action")
