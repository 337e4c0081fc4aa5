"""Validators for audit entry rules. Pure functions, no infrastructure or DB access."""

from typing import Any, Optional

from content_guard.domain.exceptions import (
    DomainValidationError,
    InvalidActionError,
    MissingActorError,
)
from content_guard.domain.models.audit import Actor, AuditAction, ResourceRef


def resolve_action(action: Any) -> AuditAction:
    """Map a raw action to the closed enum. Raises InvalidActionError for anything else."""
    if isinstance(action, AuditAction):
        return action
    try:
        return AuditAction(action)
    except ValueError:
        raise InvalidActionError(f"Unknown audit action: {action!r}") from None


def validate_actor(actor: Optional[Actor]) -> Actor:
    """Every entry must be attributable: actor with non-empty id and email."""
    if actor is None:
        raise MissingActorError("Audit entry requires an authenticated actor")
    if not (actor.id or "").strip() or not (actor.email or "").strip():
        raise MissingActorError("Actor id and email must not be empty")
    return actor


def validate_resource(resource: Optional[ResourceRef]) -> ResourceRef:
    if resource is None or not (resource.type or "").strip() or not (resource.id or "").strip():
        raise DomainValidationError("Audit entry requires a resource type and id")
    return resource


def validate_pagination(limit: int, offset: int, max_limit: int) -> int:
    """Reject negative values; clamp limit to max_limit. Returns the effective limit."""
    if limit < 0 or offset < 0:
        raise DomainValidationError(
            f"limit and offset must be non-negative, got limit={limit} offset={offset}"
        )
    return min(limit, max_limit)


def validate_time_range(since: Optional[int], until: Optional[int]) -> None:
    if since is not None and until is not None and since > until:
        raise DomainValidationError(f"since ({since}) must not be after until ({until})")
