"""Governance-layer exceptions. Typed, no HTTP."""


class GovernanceError(Exception):
    """Base for all governance-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidWorkflowStateError(GovernanceError):
    """Raised when approval workflow status transition is not allowed."""


class AuditWriteError(GovernanceError):
    """Raised when an audit row could not be persisted after bounded retries. Already sent to the fallback channel."""
