"""Domain validators. Pure functions for audit and preview rules."""

from content_guard.domain.validators.audit_validator import (
    resolve_action,
    validate_actor,
    validate_pagination,
    validate_resource,
    validate_time_range,
)
from content_guard.domain.validators.preview_validator import (
    normalize_ip_allowlist,
    validate_expires_in,
    validate_max_views,
)

__all__ = [
    "normalize_ip_allowlist",
    "resolve_action",
    "validate_actor",
    "validate_expires_in",
    "validate_max_views",
    "validate_pagination",
    "validate_resource",
    "validate_time_range",
]
