# content_guard/infrastructure/http/document_client.py

from typing import Any, Optional

import httpx

from content_guard.application.exceptions import DocumentSourceError
from content_guard.config.settings import get_settings
from content_guard.core.clock import parse_timestamp
from content_guard.domain.models.document import Document, Sensitivity


def document_from_payload(collection: str, slug: str, data: dict[str, Any]) -> Document:
    """Map the content system's document metadata payload to a Document. Raises DocumentSourceError if malformed."""
    try:
        return Document(
            collection=collection,
            slug=slug,
            title=data.get("title"),
            sensitivity=Sensitivity(data.get("sensitivity") or Sensitivity.NORMAL.value),
            embargo_until=parse_timestamp(data.get("embargo_until")),
            approved_for_preview=bool(data.get("approved_for_preview", False)),
            body=data.get("body"),
            is_encrypted=bool(data.get("is_encrypted", False)),
        )
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise DocumentSourceError(f"Malformed document {collection}/{slug}: {e}") from e


class HttpDocumentSource:
    """
    Reads document metadata from the content system over HTTP:
    GET {base_url}/{collection}/{slug}. Implements DocumentSource protocol.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        settings = get_settings()
        self._client = client or httpx.AsyncClient(
            base_url=(base_url or settings.document_source_url).rstrip("/"),
            timeout=timeout or settings.document_source_timeout_seconds,
        )

    async def get_document(self, collection: str, slug: str) -> Optional[Document]:
        try:
            response = await self._client.get(f"/{collection}/{slug}")
        except httpx.HTTPError as e:
            raise DocumentSourceError(f"Content system unreachable: {e}") from e
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise DocumentSourceError(
                f"Content system returned {response.status_code} for {collection}/{slug}"
            )
        try:
            data = response.json()
        except ValueError as e:
            raise DocumentSourceError(f"Malformed document {collection}/{slug}: {e}") from e
        if not isinstance(data, dict):
            raise DocumentSourceError(f"Malformed document {collection}/{slug}: expected an object")
        return document_from_payload(collection, slug, data)

    async def close(self) -> None:
        await self._client.aclose()
