"""DB-backed preview approval repository."""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from content_guard.core.clock import from_epoch_ms, to_epoch_ms
from content_guard.domain.models.preview import ResourceLocator
from content_guard.governance.approval_workflow import ApprovalRequest, ApprovalStatus
from content_guard.infrastructure.database.models import PreviewApprovalRecord


def _to_domain(orm: PreviewApprovalRecord) -> ApprovalRequest:
    return ApprovalRequest(
        request_id=orm.request_id,
        collection=orm.collection,
        slug=orm.slug,
        title=orm.title,
        requested_by=orm.requested_by,
        status=ApprovalStatus(orm.status),
        created_at=from_epoch_ms(orm.created_at),
        decided_by=orm.decided_by,
        decided_at=from_epoch_ms(orm.decided_at) if orm.decided_at is not None else None,
        reason=orm.reason,
    )


class DbApprovalRepository:
    """Implements ApprovalRepository protocol over preview_approval_requests."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def save(self, request: ApprovalRequest) -> None:
        orm = PreviewApprovalRecord(
            request_id=request.request_id,
            collection=request.collection,
            slug=request.slug,
            title=request.title,
            requested_by=request.requested_by,
            status=request.status.value,
            created_at=to_epoch_ms(request.created_at),
            decided_by=request.decided_by,
            decided_at=to_epoch_ms(request.decided_at) if request.decided_at else None,
            reason=request.reason,
        )
        async with self._session_factory() as session:
            await session.merge(orm)
            await session.commit()

    async def record_decision(self, request: ApprovalRequest) -> bool:
        """Conditional UPDATE ... WHERE status = 'PENDING'. False when another decision won."""
        stmt = (
            update(PreviewApprovalRecord)
            .where(
                PreviewApprovalRecord.request_id == request.request_id,
                PreviewApprovalRecord.status == ApprovalStatus.PENDING.value,
            )
            .values(
                status=request.status.value,
                decided_by=request.decided_by,
                decided_at=to_epoch_ms(request.decided_at) if request.decided_at else None,
                reason=request.reason,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            updated = result.rowcount
            await session.commit()
        return updated == 1

    async def get(self, request_id: str) -> Optional[ApprovalRequest]:
        async with self._session_factory() as session:
            orm = await session.get(PreviewApprovalRecord, request_id)
        return _to_domain(orm) if orm is not None else None

    async def find_approved(self, locator: ResourceLocator) -> Optional[ApprovalRequest]:
        stmt = (
            select(PreviewApprovalRecord)
            .where(
                PreviewApprovalRecord.collection == locator.collection,
                PreviewApprovalRecord.slug == locator.slug,
                PreviewApprovalRecord.status == ApprovalStatus.APPROVED.value,
            )
            .order_by(PreviewApprovalRecord.decided_at.desc())
            .limit(1)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            orm = result.scalar_one_or_none()
        return _to_domain(orm) if orm is not None else None
