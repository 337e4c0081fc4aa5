"""Domain layer: models, schemas, validators, exceptions. Pure business logic only."""

from content_guard.domain.exceptions import (
    ApprovalRequiredError,
    DomainError,
    DomainValidationError,
    EmbargoActiveError,
    InvalidActionError,
    IpRestrictionRequiredError,
    MissingActorError,
)
from content_guard.domain.models import (
    ActionCategory,
    Actor,
    AuditAction,
    AuditLogEntry,
    Document,
    PreviewGrant,
    RequestContext,
    ResourceRef,
    Sensitivity,
)

__all__ = [
    "ActionCategory",
    "Actor",
    "ApprovalRequiredError",
    "AuditAction",
    "AuditLogEntry",
    "Document",
    "DomainError",
    "DomainValidationError",
    "EmbargoActiveError",
    "InvalidActionError",
    "IpRestrictionRequiredError",
    "MissingActorError",
    "PreviewGrant",
    "RequestContext",
    "ResourceRef",
    "Sensitivity",
]
