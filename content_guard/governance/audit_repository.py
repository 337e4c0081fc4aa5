"""Audit repository protocol. Governance layer depends on this; infrastructure implements it."""

from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Sequence

from content_guard.domain.models.audit import AuditAction, AuditSearchFilters

AuditRow = Dict[str, Any]


class AuditRepository(Protocol):
    """
    Append-only store of audit rows (flat column dicts, see AuditLogEntry.to_row).
    Implementations must expose no update or delete path for existing rows.
    """

    async def append(self, row: AuditRow) -> None:
        """Insert a new row. Must never overwrite an existing id."""
        ...

    async def list_for_resource(
        self,
        resource_type: str,
        resource_id: str,
        *,
        limit: int,
        offset: int,
        actions: Optional[Sequence[AuditAction]] = None,
    ) -> List[AuditRow]:
        """Rows for one resource, newest first."""
        ...

    async def list_for_actor(
        self,
        actor_email: str,
        *,
        limit: int,
        since: Optional[int] = None,
        until: Optional[int] = None,
    ) -> List[AuditRow]:
        ...

    async def search(
        self,
        filters: AuditSearchFilters,
        *,
        limit: int,
        offset: int,
    ) -> tuple[List[AuditRow], int]:
        """Page of matching rows (newest first) and the total filtered count."""
        ...

    def iter_range(
        self,
        since: Optional[int],
        until: Optional[int],
        *,
        batch_size: int,
    ) -> AsyncIterator[List[AuditRow]]:
        """Yield batches of raw rows in (timestamp, id) order for integrity scans."""
        ...
