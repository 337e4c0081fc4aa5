"""DB-backed audit repository. Append-only: this class has no update or delete path."""

from typing import AsyncIterator, List, Optional, Sequence

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from content_guard.domain.models.audit import AuditAction, AuditSearchFilters
from content_guard.governance.audit_repository import AuditRow
from content_guard.infrastructure.database.models import AuditLogRecord

_COLUMNS = (
    "id",
    "timestamp",
    "actor_id",
    "actor_email",
    "actor_name",
    "action",
    "action_category",
    "resource_type",
    "resource_id",
    "resource_title",
    "field_path",
    "value_before",
    "value_after",
    "change_summary",
    "ip_address",
    "user_agent",
    "session_id",
    "correlation_id",
    "checksum",
)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _to_row(orm: AuditLogRecord) -> AuditRow:
    row = {name: getattr(orm, name) for name in _COLUMNS}
    row["metadata"] = orm.metadata_
    return row


def _from_row(row: AuditRow) -> AuditLogRecord:
    values = {name: row.get(name) for name in _COLUMNS}
    return AuditLogRecord(metadata_=row.get("metadata"), **values)


def _range_conditions(since: Optional[int], until: Optional[int]) -> list:
    conditions = []
    if since is not None:
        conditions.append(AuditLogRecord.timestamp >= since)
    if until is not None:
        conditions.append(AuditLogRecord.timestamp <= until)
    return conditions


def _newest_first(stmt):
    return stmt.order_by(AuditLogRecord.timestamp.desc(), AuditLogRecord.id.desc())


class DbAuditRepository:
    """Persists audit rows to the audit_log table. Implements AuditRepository protocol."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, row: AuditRow) -> None:
        async with self._session_factory() as session:
            session.add(_from_row(row))
            await session.commit()

    async def list_for_resource(
        self,
        resource_type: str,
        resource_id: str,
        *,
        limit: int,
        offset: int,
        actions: Optional[Sequence[AuditAction]] = None,
    ) -> List[AuditRow]:
        stmt = select(AuditLogRecord).where(
            AuditLogRecord.resource_type == resource_type,
            AuditLogRecord.resource_id == resource_id,
        )
        if actions:
            stmt = stmt.where(AuditLogRecord.action.in_([a.value for a in actions]))
        stmt = _newest_first(stmt).limit(limit).offset(offset)
        return await self._fetch(stmt)

    async def list_for_actor(
        self,
        actor_email: str,
        *,
        limit: int,
        since: Optional[int] = None,
        until: Optional[int] = None,
    ) -> List[AuditRow]:
        stmt = select(AuditLogRecord).where(
            AuditLogRecord.actor_email == actor_email,
            *_range_conditions(since, until),
        )
        stmt = _newest_first(stmt).limit(limit)
        return await self._fetch(stmt)

    async def search(
        self,
        filters: AuditSearchFilters,
        *,
        limit: int,
        offset: int,
    ) -> tuple[List[AuditRow], int]:
        conditions = self._search_conditions(filters)
        count_stmt = select(func.count()).select_from(AuditLogRecord).where(*conditions)
        page_stmt = _newest_first(select(AuditLogRecord).where(*conditions)).limit(limit).offset(offset)
        async with self._session_factory() as session:
            total = (await session.execute(count_stmt)).scalar_one()
            result = await session.execute(page_stmt)
            rows = [_to_row(r) for r in result.scalars().all()]
        return rows, total

    @staticmethod
    def _search_conditions(filters: AuditSearchFilters) -> list:
        conditions = _range_conditions(filters.since, filters.until)
        if filters.actions:
            conditions.append(AuditLogRecord.action.in_(sorted(a.value for a in filters.actions)))
        if filters.categories:
            conditions.append(
                AuditLogRecord.action_category.in_(sorted(c.value for c in filters.categories))
            )
        if filters.actors:
            conditions.append(AuditLogRecord.actor_email.in_(sorted(filters.actors)))
        if filters.resource_types:
            conditions.append(AuditLogRecord.resource_type.in_(sorted(filters.resource_types)))
        if filters.query:
            pattern = f"%{_escape_like(filters.query)}%"
            conditions.append(
                or_(
                    AuditLogRecord.resource_title.ilike(pattern, escape="\\"),
                    AuditLogRecord.change_summary.ilike(pattern, escape="\\"),
                    AuditLogRecord.actor_email.ilike(pattern, escape="\\"),
                )
            )
        return conditions

    async def iter_range(
        self,
        since: Optional[int],
        until: Optional[int],
        *,
        batch_size: int,
    ) -> AsyncIterator[List[AuditRow]]:
        """Keyset-paginated scan in (timestamp, id) order; one short session per batch."""
        conditions = _range_conditions(since, until)
        last: Optional[tuple[int, str]] = None
        while True:
            stmt = select(AuditLogRecord).where(*conditions)
            if last is not None:
                last_ts, last_id = last
                stmt = stmt.where(
                    or_(
                        AuditLogRecord.timestamp > last_ts,
                        and_(AuditLogRecord.timestamp == last_ts, AuditLogRecord.id > last_id),
                    )
                )
            stmt = stmt.order_by(AuditLogRecord.timestamp.asc(), AuditLogRecord.id.asc()).limit(batch_size)
            batch = await self._fetch(stmt)
            if not batch:
                return
            yield batch
            if len(batch) < batch_size:
                return
            last = (batch[-1]["timestamp"], batch[-1]["id"])

    async def _fetch(self, stmt) -> List[AuditRow]:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_to_row(r) for r in result.scalars().all()]
