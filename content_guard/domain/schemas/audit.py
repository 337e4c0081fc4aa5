"""Pydantic schemas for the audit API. Strict validation, no DB or infrastructure."""

import json
from typing import Any, List, Optional

from pydantic import BaseModel, Field, model_validator

from content_guard.domain.models.audit import (
    ActionCategory,
    AuditAction,
    AuditLogEntry,
    AuditSearchResult,
    IntegrityReport,
)


def _decode_snapshot(value: Optional[str]) -> Any:
    if value is None:
        return None
    return json.loads(value)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class IntegrityVerifyRequest(BaseModel):
    """Time range (epoch ms, inclusive) to verify. Both bounds optional."""

    since: Optional[int] = Field(None, ge=0)
    until: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def range_must_be_ordered(self) -> "IntegrityVerifyRequest":
        if self.since is not None and self.until is not None and self.since > self.until:
            raise ValueError("since must not be after until")
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class ActorResponse(BaseModel):
    id: str
    email: str
    display_name: Optional[str] = None


class ResourceResponse(BaseModel):
    type: str
    id: str
    title: Optional[str] = None


class RequestContextResponse(BaseModel):
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None
    correlation_id: Optional[str] = None


class AuditEntryResponse(BaseModel):
    """One audit entry. Snapshots are returned decoded; the checksum covers their stored form."""

    id: str
    timestamp: int
    actor: ActorResponse
    action: AuditAction
    action_category: ActionCategory
    resource: ResourceResponse
    field_path: Optional[str] = None
    value_before: Any = None
    value_after: Any = None
    change_summary: Optional[str] = None
    request_context: RequestContextResponse
    metadata: Any = None
    checksum: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: AuditLogEntry) -> "AuditEntryResponse":
        return cls(
            id=entry.id,
            timestamp=entry.timestamp,
            actor=ActorResponse(
                id=entry.actor.id,
                email=entry.actor.email,
                display_name=entry.actor.display_name,
            ),
            action=entry.action,
            action_category=entry.action_category,
            resource=ResourceResponse(
                type=entry.resource.type,
                id=entry.resource.id,
                title=entry.resource.title,
            ),
            field_path=entry.field_path,
            value_before=_decode_snapshot(entry.value_before),
            value_after=_decode_snapshot(entry.value_after),
            change_summary=entry.change_summary,
            request_context=RequestContextResponse(
                ip=entry.request_context.ip,
                user_agent=entry.request_context.user_agent,
                session_id=entry.request_context.session_id,
                correlation_id=entry.request_context.correlation_id,
            ),
            metadata=_decode_snapshot(entry.metadata),
            checksum=entry.checksum,
        )


class AuditHistoryResponse(BaseModel):
    entries: List[AuditEntryResponse]
    limit: int
    offset: int = 0

    @classmethod
    def from_entries(cls, entries: List[AuditLogEntry], limit: int, offset: int = 0) -> "AuditHistoryResponse":
        return cls(
            entries=[AuditEntryResponse.from_entry(e) for e in entries],
            limit=limit,
            offset=offset,
        )


class AuditSearchResponse(BaseModel):
    entries: List[AuditEntryResponse]
    total: int = Field(..., description="Count of all entries matching the filters")
    limit: int
    offset: int

    @classmethod
    def from_result(cls, result: AuditSearchResult, limit: int, offset: int) -> "AuditSearchResponse":
        return cls(
            entries=[AuditEntryResponse.from_entry(e) for e in result.entries],
            total=result.total,
            limit=limit,
            offset=offset,
        )


class IntegrityReportResponse(BaseModel):
    valid_count: int
    invalid_count: int
    invalid_entry_ids: List[str]

    @classmethod
    def from_report(cls, report: IntegrityReport) -> "IntegrityReportResponse":
        return cls(
            valid_count=report.valid_count,
            invalid_count=report.invalid_count,
            invalid_entry_ids=list(report.invalid_entry_ids),
        )
