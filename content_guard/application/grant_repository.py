"""Preview grant repository protocol. Application layer depends on this; infrastructure implements it."""

from datetime import datetime
from typing import List, Optional, Protocol

from content_guard.domain.models.preview import PreviewGrant, ResourceLocator


class GrantRepository(Protocol):
    """
    Durable store of preview grants. Grants are never deleted. The only mutation after
    insert is consume_view, which must be a single conditional update in the store.
    """

    async def add(self, grant: PreviewGrant) -> None:
        ...

    async def get(self, token: str) -> Optional[PreviewGrant]:
        ...

    async def consume_view(self, token: str, now: datetime) -> Optional[int]:
        """
        Atomically increment view_count iff the grant is unexpired at `now` and below
        max_views. Returns the new view_count, or None if no row was updated.
        """
        ...

    async def list_active(
        self,
        now: datetime,
        locator: Optional[ResourceLocator] = None,
    ) -> List[PreviewGrant]:
        """Grants that are unexpired and not exhausted at `now`."""
        ...
