# Application layer: services that orchestrate domain, governance and infrastructure.

from content_guard.application.document_source import DocumentSource
from content_guard.application.exceptions import (
    ApplicationError,
    DocumentNotFoundError,
    DocumentSourceError,
    GrantStoreUnavailableError,
)
from content_guard.application.grant_repository import GrantRepository
from content_guard.application.preview_service import ANONYMOUS_VIEWER, PreviewGrantService

__all__ = [
    "ANONYMOUS_VIEWER",
    "ApplicationError",
    "DocumentNotFoundError",
    "DocumentSource",
    "DocumentSourceError",
    "GrantRepository",
    "GrantStoreUnavailableError",
    "PreviewGrantService",
]
