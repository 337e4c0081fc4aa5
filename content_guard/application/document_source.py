"""Document source protocol: read-only access to document metadata and body in the content system."""

from typing import Optional, Protocol

from content_guard.domain.models.document import Document


class DocumentSource(Protocol):
    async def get_document(self, collection: str, slug: str) -> Optional[Document]:
        """Return the document or None if it does not exist. Raises DocumentSourceError on transport failure."""
        ...
