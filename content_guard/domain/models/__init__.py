"""Domain models. Pure business entities."""

from content_guard.domain.models.audit import (
    ActionCategory,
    Actor,
    AuditAction,
    AuditContext,
    AuditEntryDraft,
    AuditLogEntry,
    AuditSearchFilters,
    AuditSearchResult,
    IntegrityReport,
    RequestContext,
    ResourceRef,
    category_for,
)
from content_guard.domain.models.document import Document, Sensitivity
from content_guard.domain.models.preview import (
    GrantOverrides,
    GrantState,
    GrantValidation,
    IssuedGrant,
    PreviewGrant,
    RejectionReason,
    ResourceLocator,
    token_fingerprint,
)

__all__ = [
    "ActionCategory",
    "Actor",
    "AuditAction",
    "AuditContext",
    "AuditEntryDraft",
    "AuditLogEntry",
    "AuditSearchFilters",
    "AuditSearchResult",
    "Document",
    "GrantOverrides",
    "GrantState",
    "GrantValidation",
    "IntegrityReport",
    "IssuedGrant",
    "PreviewGrant",
    "RejectionReason",
    "RequestContext",
    "ResourceLocator",
    "ResourceRef",
    "Sensitivity",
    "category_for",
    "token_fingerprint",
]
