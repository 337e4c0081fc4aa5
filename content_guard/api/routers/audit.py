"""Audit API router: resource/actor history, recent activity, search, integrity verification."""

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query

from content_guard.api.dependencies import get_audit_service, require_permission
from content_guard.domain.exceptions import DomainValidationError
from content_guard.domain.models.audit import ActionCategory, Actor, AuditSearchFilters
from content_guard.domain.schemas.audit import (
    AuditHistoryResponse,
    AuditSearchResponse,
    IntegrityReportResponse,
    IntegrityVerifyRequest,
)
from content_guard.governance.audit_service import (
    DEFAULT_ACTOR_HISTORY_LIMIT,
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_RECENT_LIMIT,
    AuditLogService,
)

router = APIRouter()

ViewAuditActor = Annotated[Actor, Depends(require_permission("view_audit"))]
AuditService = Annotated[AuditLogService, Depends(get_audit_service)]


def _parse_categories(values: Optional[List[str]]) -> Optional[frozenset]:
    if not values:
        return None
    try:
        return frozenset(ActionCategory(v) for v in values)
    except ValueError:
        raise DomainValidationError(f"Unknown action category in {values!r}") from None


@router.get("/resources/{resource_type}/{resource_id}", response_model=AuditHistoryResponse)
async def resource_history(
    resource_type: str,
    resource_id: str,
    actor: ViewAuditActor,
    audit: AuditService,
    limit: int = DEFAULT_HISTORY_LIMIT,
    offset: int = 0,
    action: Annotated[Optional[List[str]], Query()] = None,
):
    """Change history for one resource, newest first."""
    entries = await audit.get_resource_history(
        resource_type, resource_id, limit=limit, offset=offset, actions=action
    )
    return AuditHistoryResponse.from_entries(entries, limit=limit, offset=offset)


@router.get("/actors/{email}", response_model=AuditHistoryResponse)
async def actor_history(
    email: str,
    actor: ViewAuditActor,
    audit: AuditService,
    limit: int = DEFAULT_ACTOR_HISTORY_LIMIT,
    since: Optional[int] = None,
    until: Optional[int] = None,
):
    entries = await audit.get_actor_history(email, limit=limit, since=since, until=until)
    return AuditHistoryResponse.from_entries(entries, limit=limit)


@router.get("/recent", response_model=AuditHistoryResponse)
async def recent_activity(
    actor: ViewAuditActor,
    audit: AuditService,
    limit: int = DEFAULT_RECENT_LIMIT,
):
    entries = await audit.get_recent_activity(limit=limit)
    return AuditHistoryResponse.from_entries(entries, limit=limit)


@router.get("/search", response_model=AuditSearchResponse)
async def search_audit(
    actor: ViewAuditActor,
    audit: AuditService,
    action: Annotated[Optional[List[str]], Query()] = None,
    category: Annotated[Optional[List[str]], Query()] = None,
    actor_email: Annotated[Optional[List[str]], Query(alias="actor")] = None,
    resource_type: Annotated[Optional[List[str]], Query()] = None,
    since: Optional[int] = None,
    until: Optional[int] = None,
    q: Optional[str] = None,
    limit: int = DEFAULT_HISTORY_LIMIT,
    offset: int = 0,
):
    """Filtered search. total counts every match, not just this page."""
    filters = AuditSearchFilters(
        actions=frozenset(action) if action else None,
        categories=_parse_categories(category),
        actors=frozenset(actor_email) if actor_email else None,
        resource_types=frozenset(resource_type) if resource_type else None,
        since=since,
        until=until,
        query=q or None,
    )
    result = await audit.search(filters, limit=limit, offset=offset)
    return AuditSearchResponse.from_result(result, limit=limit, offset=offset)


@router.post("/verify", response_model=IntegrityReportResponse)
async def verify_integrity(
    actor: Annotated[Actor, Depends(require_permission("verify_integrity"))],
    audit: AuditService,
    body: Optional[IntegrityVerifyRequest] = None,
):
    """Recompute checksums over a time range. Read-only; mismatches are reported, not repaired."""
    body = body or IntegrityVerifyRequest()
    report = await audit.verify_integrity(since=body.since, until=body.until)
    return IntegrityReportResponse.from_report(report)
