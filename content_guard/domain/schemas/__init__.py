"""Domain schemas. Request/response and validation."""

from content_guard.domain.schemas.audit import (
    AuditEntryResponse,
    AuditHistoryResponse,
    AuditSearchResponse,
    IntegrityReportResponse,
    IntegrityVerifyRequest,
)
from content_guard.domain.schemas.preview import (
    ActiveGrantResponse,
    ApprovalCreateRequest,
    ApprovalDecisionRequest,
    ApprovalResponse,
    PreviewContentResponse,
    PreviewGrantCreateRequest,
    PreviewGrantResponse,
    PreviewRejectedResponse,
)

__all__ = [
    "ActiveGrantResponse",
    "ApprovalCreateRequest",
    "ApprovalDecisionRequest",
    "ApprovalResponse",
    "AuditEntryResponse",
    "AuditHistoryResponse",
    "AuditSearchResponse",
    "IntegrityReportResponse",
    "IntegrityVerifyRequest",
    "PreviewContentResponse",
    "PreviewGrantCreateRequest",
    "PreviewGrantResponse",
    "PreviewRejectedResponse",
]
