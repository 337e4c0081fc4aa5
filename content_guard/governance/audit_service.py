"""
Tamper-evident audit log: append-only writes, history/search queries, integrity scans.

Business operations call ``dispatch`` so that an audit failure never rolls back or
blocks the action being audited. Failed writes are retried a bounded number of times
and then reported to the fallback channel (``content_guard.audit.fallback`` logger and
the ``audit_write_failures`` counter). Integrity mismatches are reported, never
corrected and never written back into the log.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import replace
from typing import List, Optional, Sequence, Set

from content_guard.core.clock import Clock, to_epoch_ms, utc_now
from content_guard.domain.models.audit import (
    AuditContext,
    AuditEntryDraft,
    AuditLogEntry,
    AuditSearchFilters,
    AuditSearchResult,
    IntegrityReport,
    category_for,
)
from content_guard.domain.validators.audit_validator import (
    resolve_action,
    validate_actor,
    validate_pagination,
    validate_resource,
    validate_time_range,
)
from content_guard.governance.audit_repository import AuditRepository, AuditRow
from content_guard.governance.checksum import canonical_json, compute_checksum, verify_checksum
from content_guard.governance.exceptions import AuditWriteError
from content_guard.observability.metrics import MetricsCollector
from content_guard.scalability.retry import retry_with_backoff

FALLBACK_LOGGER_NAME = "content_guard.audit.fallback"

DEFAULT_HISTORY_LIMIT = 50
DEFAULT_ACTOR_HISTORY_LIMIT = 100
DEFAULT_RECENT_LIMIT = 20


def _snapshot(value) -> Optional[str]:
    if value is None:
        return None
    return canonical_json(value)


class AuditLogService:
    """
    Writes immutable, checksummed audit entries via repository and answers queries.
    Must include: who, what, when (UTC ms), which resource, request context.
    """

    def __init__(
        self,
        repository: AuditRepository,
        *,
        metrics: Optional[MetricsCollector] = None,
        clock: Clock = utc_now,
        write_retries: int = 3,
        retry_base_delay: float = 0.05,
        write_timeout: Optional[float] = None,
        max_page_size: int = 500,
        integrity_batch_size: int = 500,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._repository = repository
        self._metrics = metrics
        self._clock = clock
        self._write_attempts = write_retries + 1
        self._retry_base_delay = retry_base_delay
        self._write_timeout = write_timeout
        self._max_page_size = max_page_size
        self._integrity_batch_size = integrity_batch_size
        self._logger = logger or logging.getLogger(__name__)
        self._fallback = logging.getLogger(FALLBACK_LOGGER_NAME)
        self._last_timestamp = 0
        self._pending: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def _next_timestamp(self) -> int:
        """Millisecond timestamp that never goes backwards for this writer."""
        now_ms = to_epoch_ms(self._clock())
        self._last_timestamp = max(now_ms, self._last_timestamp)
        return self._last_timestamp

    def build_entry(self, draft: AuditEntryDraft, context: AuditContext) -> AuditLogEntry:
        """
        Validate and stamp a draft. Raises InvalidActionError / MissingActorError
        before anything is written. The checksum is computed last.
        """
        action = resolve_action(draft.action)
        actor = validate_actor(context.actor)
        resource = validate_resource(draft.resource)
        entry = AuditLogEntry(
            id=str(uuid.uuid4()),
            timestamp=self._next_timestamp(),
            actor=actor,
            action=action,
            action_category=category_for(action),
            resource=resource,
            request_context=context.request,
            checksum=None,
            field_path=draft.field_path,
            value_before=_snapshot(draft.value_before),
            value_after=_snapshot(draft.value_after),
            change_summary=draft.change_summary,
            metadata=_snapshot(draft.metadata),
        )
        return replace(entry, checksum=compute_checksum(entry.to_row()))

    async def log(self, draft: AuditEntryDraft, context: AuditContext) -> str:
        """Validate, stamp, checksum and persist. Returns the entry id or raises AuditWriteError."""
        entry = self.build_entry(draft, context)
        await self._persist(entry)
        return entry.id

    def dispatch(self, draft: AuditEntryDraft, context: AuditContext) -> asyncio.Task:
        """
        Fire-and-forget write for use after a business operation commits.
        Validation errors still raise here; storage errors only reach the fallback channel.
        """
        entry = self.build_entry(draft, context)
        task = asyncio.get_running_loop().create_task(self._persist_best_effort(entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for all dispatched writes (shutdown and tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _persist_best_effort(self, entry: AuditLogEntry) -> None:
        try:
            await self._persist(entry)
        except AuditWriteError:
            # Already logged to the fallback channel and counted.
            return

    async def _append(self, row: AuditRow) -> None:
        if self._write_timeout is None:
            await self._repository.append(row)
        else:
            await asyncio.wait_for(self._repository.append(row), timeout=self._write_timeout)

    def _on_retry(self, attempt: int, error: BaseException) -> None:
        self._logger.warning(
            "audit_write_retry",
            extra={"attempt": attempt, "error": repr(error)},
        )
        if self._metrics is not None:
            self._metrics.increment("audit_write_retries")

    async def _persist(self, entry: AuditLogEntry) -> None:
        row = entry.to_row()
        started = time.monotonic()
        try:
            await retry_with_backoff(
                lambda: self._append(row),
                max_attempts=self._write_attempts,
                base_delay=self._retry_base_delay,
                on_retry=self._on_retry,
            )
        except Exception as e:
            self._fallback.error(
                "audit_write_failed",
                extra={"audit_row": row, "error": repr(e)},
            )
            if self._metrics is not None:
                self._metrics.increment(
                    "audit_write_failures", labels={"action": entry.action.value}
                )
            raise AuditWriteError(f"Audit write failed for entry {entry.id}: {e}") from e
        if self._metrics is not None:
            self._metrics.increment(
                "audit_entries_written", labels={"category": entry.action_category.value}
            )
            self._metrics.observe_latency(
                "audit_write_latency_ms", (time.monotonic() - started) * 1000
            )
        self._logger.debug(
            "audit_entry_written",
            extra={"audit_id": entry.id, "action": entry.action.value},
        )

    # ------------------------------------------------------------------
    # Query path
    # ------------------------------------------------------------------

    async def get_resource_history(
        self,
        resource_type: str,
        resource_id: str,
        *,
        limit: int = DEFAULT_HISTORY_LIMIT,
        offset: int = 0,
        actions: Optional[Sequence] = None,
    ) -> List[AuditLogEntry]:
        """Entries for one resource, newest first."""
        limit = validate_pagination(limit, offset, self._max_page_size)
        resolved = [resolve_action(a) for a in actions] if actions else None
        rows = await self._repository.list_for_resource(
            resource_type,
            resource_id,
            limit=limit,
            offset=offset,
            actions=resolved,
        )
        return [AuditLogEntry.from_row(r) for r in rows]

    async def get_actor_history(
        self,
        actor_email: str,
        *,
        limit: int = DEFAULT_ACTOR_HISTORY_LIMIT,
        since: Optional[int] = None,
        until: Optional[int] = None,
    ) -> List[AuditLogEntry]:
        limit = validate_pagination(limit, 0, self._max_page_size)
        validate_time_range(since, until)
        rows = await self._repository.list_for_actor(
            actor_email, limit=limit, since=since, until=until
        )
        return [AuditLogEntry.from_row(r) for r in rows]

    async def get_recent_activity(self, limit: int = DEFAULT_RECENT_LIMIT) -> List[AuditLogEntry]:
        result = await self.search(AuditSearchFilters(), limit=limit, offset=0)
        return result.entries

    async def search(
        self,
        filters: AuditSearchFilters,
        *,
        limit: int = DEFAULT_HISTORY_LIMIT,
        offset: int = 0,
    ) -> AuditSearchResult:
        """Filtered page, newest first. total is the filtered count, not the page size."""
        limit = validate_pagination(limit, offset, self._max_page_size)
        validate_time_range(filters.since, filters.until)
        if filters.actions:
            filters = replace(
                filters, actions=frozenset(resolve_action(a) for a in filters.actions)
            )
        rows, total = await self._repository.search(filters, limit=limit, offset=offset)
        return AuditSearchResult(
            entries=[AuditLogEntry.from_row(r) for r in rows],
            total=total,
        )

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    async def verify_integrity(
        self,
        since: Optional[int] = None,
        until: Optional[int] = None,
    ) -> IntegrityReport:
        """
        Recompute every checksum in [since, until]. Read-only and idempotent.
        Rows written concurrently may or may not fall inside this scan.
        """
        validate_time_range(since, until)
        valid_count = 0
        invalid_ids: List[str] = []
        async for batch in self._repository.iter_range(
            since, until, batch_size=self._integrity_batch_size
        ):
            for row in batch:
                if verify_checksum(row):
                    valid_count += 1
                else:
                    invalid_ids.append(row["id"])
        if invalid_ids:
            self._logger.warning(
                "audit_integrity_mismatch",
                extra={
                    "invalid_count": len(invalid_ids),
                    "invalid_entry_ids": invalid_ids,
                    "since": since,
                    "until": until,
                },
            )
            if self._metrics is not None:
                self._metrics.increment("audit_integrity_mismatches", len(invalid_ids))
        self._logger.info(
            "audit_integrity_verified",
            extra={"valid_count": valid_count, "invalid_count": len(invalid_ids)},
        )
        return IntegrityReport(valid_count=valid_count, invalid_entry_ids=invalid_ids)
