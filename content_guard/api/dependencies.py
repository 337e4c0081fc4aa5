"""FastAPI dependency injection: stores, services, rate limiter, actor identity and permissions."""

import logging
from typing import Annotated, Callable, Optional

from fastapi import Depends, Request

from content_guard.application.document_source import DocumentSource
from content_guard.application.grant_repository import GrantRepository
from content_guard.application.preview_service import PreviewGrantService
from content_guard.config.settings import get_settings
from content_guard.domain.exceptions import MissingActorError
from content_guard.domain.models.audit import Actor, RequestContext
from content_guard.governance.approval_workflow import ApprovalRepository, ApprovalWorkflow
from content_guard.governance.audit_service import AuditLogService
from content_guard.infrastructure.cache.redis_client import RedisClient, RedisRateLimitBackend
from content_guard.infrastructure.database.approval_repository_db import DbApprovalRepository
from content_guard.infrastructure.database.audit_repository_db import DbAuditRepository
from content_guard.infrastructure.database.grant_repository_db import DbGrantRepository
from content_guard.infrastructure.database.session import get_sessionmaker
from content_guard.infrastructure.http.document_client import HttpDocumentSource
from content_guard.observability.metrics import MetricsCollector
from content_guard.scalability.rate_limiter import ClientRateLimiter
from content_guard.security.encryption import EncryptionService
from content_guard.security.rbac import RBACService, Role
from content_guard.security.sensitivity_policy import PolicyTable, build_policy_table

_metrics: MetricsCollector | None = None
_audit_service: AuditLogService | None = None
_redis_client: RedisClient | None = None
_rate_limiter: ClientRateLimiter | None = None
_document_source: HttpDocumentSource | None = None
_encryption: EncryptionService | None = None
_rbac = RBACService()


def get_metrics() -> MetricsCollector:
    """Return singleton metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_audit_service() -> AuditLogService:
    """Return singleton AuditLogService; its pending writes are drained on shutdown."""
    global _audit_service
    if _audit_service is None:
        settings = get_settings()
        _audit_service = AuditLogService(
            DbAuditRepository(get_sessionmaker()),
            metrics=get_metrics(),
            write_retries=settings.audit_write_retries,
            retry_base_delay=settings.audit_retry_base_delay_seconds,
            write_timeout=settings.store_timeout_seconds,
            max_page_size=settings.audit_max_page_size,
            integrity_batch_size=settings.integrity_batch_size,
        )
    return _audit_service


def get_grant_repository() -> GrantRepository:
    return DbGrantRepository(get_sessionmaker())


def get_approval_repository() -> ApprovalRepository:
    return DbApprovalRepository(get_sessionmaker())


def get_document_source() -> DocumentSource:
    """Return singleton content-system client."""
    global _document_source
    if _document_source is None:
        _document_source = HttpDocumentSource()
    return _document_source


def get_redis_client() -> RedisClient:
    """Return singleton Redis client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = RedisClient()
    return _redis_client


def get_rate_limiter(
    redis: Annotated[RedisClient, Depends(get_redis_client)],
    metrics: Annotated[MetricsCollector, Depends(get_metrics)],
) -> ClientRateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        settings = get_settings()
        _rate_limiter = ClientRateLimiter(
            RedisRateLimitBackend(redis),
            requests_per_window=settings.preview_rate_limit_requests,
            window_seconds=settings.preview_rate_limit_window_seconds,
            metrics=metrics,
        )
    return _rate_limiter


def get_encryption_service() -> Optional[EncryptionService]:
    """None when no key is configured; reading an encrypted body then fails with EncryptionError."""
    global _encryption
    key = get_settings().encryption_key
    if _encryption is None and key:
        _encryption = EncryptionService(key)
    return _encryption


def get_policy_table() -> PolicyTable:
    return build_policy_table(get_settings().policy)


def get_rbac() -> RBACService:
    return _rbac


async def get_approval_workflow(
    repository: Annotated[ApprovalRepository, Depends(get_approval_repository)],
    audit: Annotated[AuditLogService, Depends(get_audit_service)],
    rbac: Annotated[RBACService, Depends(get_rbac)],
) -> ApprovalWorkflow:
    return ApprovalWorkflow(repository=repository, audit=audit, rbac=rbac)


async def get_preview_service(
    repository: Annotated[GrantRepository, Depends(get_grant_repository)],
    documents: Annotated[DocumentSource, Depends(get_document_source)],
    audit: Annotated[AuditLogService, Depends(get_audit_service)],
    approvals: Annotated[ApprovalWorkflow, Depends(get_approval_workflow)],
    policy_table: Annotated[PolicyTable, Depends(get_policy_table)],
    encryption: Annotated[Optional[EncryptionService], Depends(get_encryption_service)],
    metrics: Annotated[MetricsCollector, Depends(get_metrics)],
) -> PreviewGrantService:
    """Build PreviewGrantService with injected grant store, document source, audit log and policy."""
    return PreviewGrantService(
        repository=repository,
        documents=documents,
        audit=audit,
        approvals=approvals,
        policy_table=policy_table,
        encryption=encryption,
        store_timeout=get_settings().store_timeout_seconds,
        metrics=metrics,
        logger=logging.getLogger("content_guard.application.preview_service"),
    )


def get_correlation_id(request: Request) -> str:
    """Extract correlation_id from request.state (set by middleware)."""
    return getattr(request.state, "correlation_id", "") or ""


def get_request_context(request: Request) -> RequestContext:
    """Who-is-calling details recorded on every audit entry."""
    return RequestContext(
        ip=getattr(request.state, "client_ip", None),
        user_agent=request.headers.get("User-Agent"),
        session_id=request.headers.get("X-Session-ID"),
        correlation_id=get_correlation_id(request) or None,
    )


def get_optional_actor(request: Request) -> Optional[Actor]:
    return getattr(request.state, "actor", None)


def require_actor(request: Request) -> Actor:
    """Raise MissingActorError (401) when the request carries no authenticated identity."""
    actor = get_optional_actor(request)
    if actor is None:
        raise MissingActorError("X-Actor-ID and X-Actor-Email headers are required")
    return actor


def get_role(request: Request) -> Role:
    """Role from request.state; callers without one get the least-privileged role."""
    return getattr(request.state, "role", None) or Role.VIEWER


def require_permission(permission: str) -> Callable[..., Actor]:
    """Dependency factory: authenticated actor whose role holds permission, else 401/403."""

    def _dependency(
        actor: Annotated[Actor, Depends(require_actor)],
        role: Annotated[Role, Depends(get_role)],
        rbac: Annotated[RBACService, Depends(get_rbac)],
    ) -> Actor:
        rbac.check_permission(role, permission)
        return actor

    return _dependency


async def shutdown() -> None:
    """Drain dispatched audit writes and close network clients."""
    global _redis_client, _rate_limiter, _document_source
    if _audit_service is not None:
        await _audit_service.drain()
    if _document_source is not None:
        await _document_source.close()
        _document_source = None
    if _redis_client is not None:
        await _redis_client.close()
        _redis_client = None
        _rate_limiter = None
