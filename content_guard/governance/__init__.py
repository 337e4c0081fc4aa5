"""Governance: tamper-evident audit log, checksums, preview approval workflow. No FastAPI."""

from content_guard.governance.approval_workflow import (
    ApprovalRequest,
    ApprovalStatus,
    ApprovalWorkflow,
)
from content_guard.governance.audit_service import AuditLogService
from content_guard.governance.checksum import canonical_json, compute_checksum, verify_checksum

__all__ = [
    "ApprovalRequest",
    "ApprovalStatus",
    "ApprovalWorkflow",
    "AuditLogService",
    "canonical_json",
    "compute_checksum",
    "verify_checksum",
]
