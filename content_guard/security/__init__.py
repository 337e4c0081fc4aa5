"""Security: sensitivity policy, RBAC, encryption at rest. No FastAPI."""

from content_guard.security.encryption import EncryptionService
from content_guard.security.rbac import RBACService, Role
from content_guard.security.sensitivity_policy import (
    IpRestriction,
    SensitivityPolicy,
    build_policy_table,
    embargo_blocks,
    policy_for,
)

__all__ = [
    "EncryptionService",
    "IpRestriction",
    "RBACService",
    "Role",
    "SensitivityPolicy",
    "build_policy_table",
    "embargo_blocks",
    "policy_for",
]
