"""Domain-specific exceptions. Pure domain layer, no infrastructure."""


class DomainError(Exception):
    """Base for all domain-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DomainValidationError(DomainError):
    """Raised when domain validation rules are violated."""


class InvalidActionError(DomainError):
    """Raised when an audit action is not a member of the closed action set."""


class MissingActorError(DomainError):
    """Raised when an audit entry or grant request has no attributable actor."""


class EmbargoActiveError(DomainError):
    """Raised when a preview grant is requested for embargoed content before its release time."""


class ApprovalRequiredError(DomainError):
    """Raised when the sensitivity policy requires preview approval and none is recorded."""


class IpRestrictionRequiredError(DomainError):
    """Raised when policy requires an IP allowlist and none can be derived for the grant."""
