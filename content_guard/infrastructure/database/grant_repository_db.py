"""DB-backed preview grant repository. View consumption is one conditional UPDATE ... RETURNING."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from content_guard.application.exceptions import GrantStoreUnavailableError
from content_guard.core.clock import from_epoch_ms, to_epoch_ms
from content_guard.domain.models.document import Sensitivity
from content_guard.domain.models.preview import PreviewGrant, ResourceLocator
from content_guard.infrastructure.database.models import PreviewGrantRecord


def _to_domain(orm: PreviewGrantRecord) -> PreviewGrant:
    return PreviewGrant(
        token=orm.token,
        resource_ref=ResourceLocator(collection=orm.collection, slug=orm.slug),
        issued_by=orm.issued_by,
        issued_at=from_epoch_ms(orm.issued_at),
        expires_at=from_epoch_ms(orm.expires_at),
        sensitivity_at_issue=Sensitivity(orm.sensitivity_at_issue),
        max_views=orm.max_views,
        view_count=orm.view_count or 0,
        ip_allowlist=frozenset(orm.ip_allowlist) if orm.ip_allowlist is not None else None,
    )


def _usable_at(now_ms: int) -> list:
    return [
        PreviewGrantRecord.expires_at > now_ms,
        or_(
            PreviewGrantRecord.max_views.is_(None),
            PreviewGrantRecord.view_count < PreviewGrantRecord.max_views,
        ),
    ]


class DbGrantRepository:
    """Persists preview grants to preview_grants. Implements GrantRepository protocol."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add(self, grant: PreviewGrant) -> None:
        orm = PreviewGrantRecord(
            token=grant.token,
            collection=grant.resource_ref.collection,
            slug=grant.resource_ref.slug,
            issued_by=grant.issued_by,
            issued_at=to_epoch_ms(grant.issued_at),
            expires_at=to_epoch_ms(grant.expires_at),
            max_views=grant.max_views,
            view_count=grant.view_count,
            ip_allowlist=sorted(grant.ip_allowlist) if grant.ip_allowlist is not None else None,
            sensitivity_at_issue=grant.sensitivity_at_issue.value,
        )
        try:
            async with self._session_factory() as session:
                session.add(orm)
                await session.commit()
        except DBAPIError as e:
            raise GrantStoreUnavailableError(f"Grant store unavailable: {e}") from e

    async def get(self, token: str) -> Optional[PreviewGrant]:
        stmt = select(PreviewGrantRecord).where(PreviewGrantRecord.token == token)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                orm = result.scalar_one_or_none()
        except DBAPIError as e:
            raise GrantStoreUnavailableError(f"Grant store unavailable: {e}") from e
        return _to_domain(orm) if orm is not None else None

    async def consume_view(self, token: str, now: datetime) -> Optional[int]:
        """Increment-and-return in the store. Zero rows updated means the grant had no capacity left."""
        stmt = (
            update(PreviewGrantRecord)
            .where(PreviewGrantRecord.token == token, *_usable_at(to_epoch_ms(now)))
            .values(view_count=PreviewGrantRecord.view_count + 1)
            .returning(PreviewGrantRecord.view_count)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                new_count = result.scalar_one_or_none()
                await session.commit()
        except DBAPIError as e:
            raise GrantStoreUnavailableError(f"Grant store unavailable: {e}") from e
        return new_count

    async def list_active(
        self,
        now: datetime,
        locator: Optional[ResourceLocator] = None,
    ) -> List[PreviewGrant]:
        stmt = select(PreviewGrantRecord).where(*_usable_at(to_epoch_ms(now)))
        if locator is not None:
            stmt = stmt.where(
                PreviewGrantRecord.collection == locator.collection,
                PreviewGrantRecord.slug == locator.slug,
            )
        stmt = stmt.order_by(PreviewGrantRecord.issued_at.desc())
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [_to_domain(r) for r in result.scalars().all()]
        except DBAPIError as e:
            raise GrantStoreUnavailableError(f"Grant store unavailable: {e}") from e
