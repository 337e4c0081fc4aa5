"""Application-layer exceptions. Do not reuse domain exceptions."""


class ApplicationError(Exception):
    """Base for all application-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class GrantStoreUnavailableError(ApplicationError):
    """
    Raised when grant state could not be read or updated (timeout, store down).
    Transient: the token may still be valid and the caller should retry.
    """


class DocumentNotFoundError(ApplicationError):
    """Raised when the content system has no document for the requested collection/slug."""


class DocumentSourceError(ApplicationError):
    """Raised when the content system could not be reached or returned a malformed document."""
