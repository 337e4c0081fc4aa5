"""Preview grant application service. Issues, validates and consumes preview tokens; audits every lifecycle event."""

import asyncio
import logging
import secrets
from datetime import datetime, timedelta
from typing import Awaitable, List, Optional, Protocol, Tuple, TypeVar

from content_guard.application.document_source import DocumentSource
from content_guard.application.exceptions import DocumentSourceError, GrantStoreUnavailableError
from content_guard.application.grant_repository import GrantRepository
from content_guard.core.clock import Clock, as_utc, utc_now
from content_guard.domain.exceptions import (
    ApprovalRequiredError,
    DomainValidationError,
    EmbargoActiveError,
    IpRestrictionRequiredError,
)
from content_guard.domain.models.audit import (
    Actor,
    AuditAction,
    AuditContext,
    AuditEntryDraft,
    RequestContext,
    ResourceRef,
)
from content_guard.domain.models.document import Document
from content_guard.domain.models.preview import (
    GrantOverrides,
    GrantValidation,
    IssuedGrant,
    PreviewGrant,
    RejectionReason,
    ResourceLocator,
    token_fingerprint,
)
from content_guard.domain.validators.audit_validator import validate_actor
from content_guard.domain.validators.preview_validator import (
    normalize_ip_allowlist,
    validate_expires_in,
    validate_max_views,
)
from content_guard.governance.audit_service import AuditLogService
from content_guard.observability.metrics import MetricsCollector
from content_guard.security.encryption import EncryptionService
from content_guard.security.exceptions import EncryptionError
from content_guard.security.sensitivity_policy import (
    IpRestriction,
    PolicyTable,
    SensitivityPolicy,
    embargo_blocks,
    policy_for,
)

T = TypeVar("T")

TOKEN_BYTES = 32
UNKNOWN_GRANT_RESOURCE_TYPE = "preview_grant"

# Public preview links carry no identity; their views are attributed to this actor.
ANONYMOUS_VIEWER = Actor(
    id="anonymous-preview-viewer",
    email="anonymous@preview.invalid",
    display_name="Anonymous preview viewer",
)


class ApprovalLookup(Protocol):
    async def is_approved(self, locator: ResourceLocator) -> bool:
        ...


class PreviewGrantService:
    """
    Application-layer orchestration only. No HTTP, no FastAPI.
    The grant store is the source of truth; audit writes are dispatched after the
    store operation and never decide its outcome.
    """

    def __init__(
        self,
        repository: GrantRepository,
        documents: DocumentSource,
        audit: AuditLogService,
        *,
        approvals: Optional[ApprovalLookup] = None,
        policy_table: Optional[PolicyTable] = None,
        encryption: Optional[EncryptionService] = None,
        store_timeout: Optional[float] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Clock = utc_now,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._repository = repository
        self._documents = documents
        self._audit = audit
        self._approvals = approvals
        self._policy_table = policy_table
        self._encryption = encryption
        self._store_timeout = store_timeout
        self._metrics = metrics
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_grant(
        self,
        document: Document,
        requested_by: Actor,
        overrides: Optional[GrantOverrides] = None,
        context: RequestContext = RequestContext(),
    ) -> IssuedGrant:
        """
        Issue a grant under the document's sensitivity policy.
        Overrides may only tighten the policy; looser values are clamped to it.
        Raises EmbargoActiveError, ApprovalRequiredError, IpRestrictionRequiredError.
        """
        validate_actor(requested_by)
        now = self._clock()

        # Step 1: Embargo gate, independent of any override
        if embargo_blocks(document, now):
            raise EmbargoActiveError(
                f"Document {document.collection}/{document.slug} is under embargo until "
                f"{document.embargo_until.isoformat()}; preview not available"
            )

        # Step 2: Policy and approval gate
        policy = policy_for(document.sensitivity, self._policy_table)
        if policy.requires_approval_before_grant and not await self._is_approved(document):
            raise ApprovalRequiredError(
                f"{document.sensitivity.value} content requires approval before preview sharing"
            )

        # Step 3: Merge overrides under the policy
        overrides = overrides or GrantOverrides()
        expires_at, expiry_clamped = self._resolve_expiry(policy, overrides, now)
        max_views, views_clamped = self._resolve_max_views(policy, overrides)
        ip_allowlist = self._resolve_ip_allowlist(policy, overrides, context)

        # Step 4: Persist
        grant = PreviewGrant(
            token=secrets.token_urlsafe(TOKEN_BYTES),
            resource_ref=ResourceLocator(collection=document.collection, slug=document.slug),
            issued_by=requested_by.email,
            issued_at=now,
            expires_at=expires_at,
            sensitivity_at_issue=document.sensitivity,
            max_views=max_views,
            view_count=0,
            ip_allowlist=ip_allowlist,
        )
        await self._call_store(self._repository.add(grant))

        self._logger.info(
            "preview_grant_created",
            extra={
                "token_fingerprint": grant.fingerprint,
                "collection": document.collection,
                "slug": document.slug,
                "sensitivity": document.sensitivity.value,
                "expires_at": expires_at.isoformat(),
                "max_views": max_views,
            },
        )
        if self._metrics is not None:
            self._metrics.increment(
                "preview_grants_created", labels={"sensitivity": document.sensitivity.value}
            )

        # Step 5: Audit (best-effort)
        clamped = [
            name for name, hit in (("expires_at", expiry_clamped), ("max_views", views_clamped)) if hit
        ]
        self._audit.dispatch(
            AuditEntryDraft(
                action=AuditAction.SHARE_PREVIEW,
                resource=self._document_resource(document),
                value_after={
                    "expires_at": expires_at.isoformat(),
                    "max_views": max_views,
                    "ip_allowlist": sorted(ip_allowlist) if ip_allowlist else None,
                },
                change_summary=f"Preview link created ({document.sensitivity.value})",
                metadata={
                    "token_fingerprint": grant.fingerprint,
                    "sensitivity": document.sensitivity.value,
                    "clamped": clamped,
                },
            ),
            AuditContext(actor=requested_by, request=context),
        )

        return IssuedGrant(
            token=grant.token,
            expires_at=expires_at,
            max_views=max_views,
            sensitivity=document.sensitivity,
        )

    async def _is_approved(self, document: Document) -> bool:
        if document.approved_for_preview:
            return True
        if self._approvals is None:
            return False
        locator = ResourceLocator(collection=document.collection, slug=document.slug)
        return await self._approvals.is_approved(locator)

    def _resolve_expiry(
        self,
        policy: SensitivityPolicy,
        overrides: GrantOverrides,
        now: datetime,
    ) -> Tuple[datetime, bool]:
        """Earliest requested expiry, never later than the policy default. Returns (expires_at, clamped)."""
        ceiling = now + timedelta(seconds=policy.default_expiry_seconds)
        requested: List[datetime] = []
        if overrides.expires_in_seconds is not None:
            validate_expires_in(overrides.expires_in_seconds)
            requested.append(now + timedelta(seconds=overrides.expires_in_seconds))
        if overrides.expires_at is not None:
            requested.append(as_utc(overrides.expires_at))
        if not requested:
            return ceiling, False
        expires_at = min(requested)
        if expires_at <= now:
            raise DomainValidationError("Requested expiry must be in the future")
        if expires_at > ceiling:
            return ceiling, True
        return expires_at, False

    def _resolve_max_views(
        self,
        policy: SensitivityPolicy,
        overrides: GrantOverrides,
    ) -> Tuple[Optional[int], bool]:
        validate_max_views(overrides.max_views)
        if overrides.max_views is None:
            return policy.default_max_views, False
        if policy.default_max_views is not None and overrides.max_views > policy.default_max_views:
            return policy.default_max_views, True
        return overrides.max_views, False

    def _resolve_ip_allowlist(
        self,
        policy: SensitivityPolicy,
        overrides: GrantOverrides,
        context: RequestContext,
    ):
        allowlist = normalize_ip_allowlist(overrides.ip_allowlist)
        if allowlist is not None:
            return allowlist
        if policy.ip_restriction_required:
            # Bind the grant to the issuing client rather than issue an unrestricted one.
            if not context.ip:
                raise IpRestrictionRequiredError(
                    f"{policy.sensitivity.value} content requires an IP allowlist"
                )
            try:
                return normalize_ip_allowlist([context.ip])
            except DomainValidationError:
                raise IpRestrictionRequiredError(
                    f"{policy.sensitivity.value} content requires an IP allowlist; "
                    f"requester address {context.ip!r} is not usable"
                ) from None
        if policy.ip_restriction is IpRestriction.RECOMMENDED:
            self._logger.warning(
                "preview_grant_without_ip_restriction",
                extra={"sensitivity": policy.sensitivity.value},
            )
        return None

    # ------------------------------------------------------------------
    # Validate / consume
    # ------------------------------------------------------------------

    async def validate_grant(
        self,
        token: str,
        client_ip: Optional[str],
        viewer: Optional[Actor] = None,
        context: Optional[RequestContext] = None,
    ) -> GrantValidation:
        """
        Check the grant's constraints and consume one view atomically.
        Every outcome is audited, including failures to deliver. The body is read
        and decrypted before the view is consumed, so a delivery failure never
        costs the viewer a view. Raises GrantStoreUnavailableError when the store
        cannot answer, which callers must not treat as invalid_token.
        """
        viewer = viewer or ANONYMOUS_VIEWER
        context = context or RequestContext(ip=client_ip)
        grant: Optional[PreviewGrant] = None
        try:
            now = self._clock()
            grant = await self._call_store(self._repository.get(token)) if token else None
            if grant is None:
                return self._reject(RejectionReason.INVALID_TOKEN, token, None, viewer, context)

            reason = grant.rejection_reason(now, client_ip)
            if reason is not None:
                return self._reject(reason, token, grant, viewer, context)

            document = await self._documents.get_document(
                grant.resource_ref.collection, grant.resource_ref.slug
            )
            if document is None:
                return self._reject(RejectionReason.INVALID_TOKEN, token, grant, viewer, context)
            content = self._read_body(document, grant)

            # A racing consumer may have taken the last view since the read above.
            new_count = await self._call_store(self._repository.consume_view(token, now))
        except (GrantStoreUnavailableError, DocumentSourceError, EncryptionError) as e:
            self._audit_delivery_failure(e, token, grant, viewer, context)
            raise
        if new_count is None:
            return self._reject(RejectionReason.MAX_VIEWS_EXCEEDED, token, grant, viewer, context)
        consumed = grant.with_view_count(new_count)

        if self._metrics is not None:
            self._metrics.increment(
                "preview_views", labels={"sensitivity": grant.sensitivity_at_issue.value}
            )
        self._logger.info(
            "preview_viewed",
            extra={
                "token_fingerprint": grant.fingerprint,
                "view_count": new_count,
                "max_views": grant.max_views,
            },
        )
        self._audit.dispatch(
            AuditEntryDraft(
                action=AuditAction.PREVIEW_VIEW,
                resource=self._document_resource(document),
                change_summary=f"Preview viewed ({new_count}"
                + (f"/{grant.max_views})" if grant.max_views is not None else ")"),
                metadata={
                    "token_fingerprint": grant.fingerprint,
                    "view_count": new_count,
                    "sensitivity": grant.sensitivity_at_issue.value,
                },
            ),
            AuditContext(actor=viewer, request=context),
        )
        return GrantValidation(
            valid=True,
            content=content,
            sensitivity=grant.sensitivity_at_issue,
            views_remaining=consumed.views_remaining(),
        )

    def _grant_resource(self, token: str, grant: Optional[PreviewGrant]) -> ResourceRef:
        if grant is not None:
            return ResourceRef(type=grant.resource_ref.collection, id=grant.resource_ref.slug)
        return ResourceRef(type=UNKNOWN_GRANT_RESOURCE_TYPE, id=token_fingerprint(token or ""))

    def _audit_delivery_failure(
        self,
        error: Exception,
        token: str,
        grant: Optional[PreviewGrant],
        viewer: Actor,
        context: RequestContext,
    ) -> None:
        """The preview could not be served. The error is re-raised by the caller."""
        fingerprint = token_fingerprint(token or "")
        if self._metrics is not None:
            self._metrics.increment("preview_delivery_failures", labels={"error": type(error).__name__})
        self._logger.warning(
            "preview_delivery_failed",
            extra={"token_fingerprint": fingerprint, "error": repr(error)},
        )
        self._audit.dispatch(
            AuditEntryDraft(
                action=AuditAction.PREVIEW_REJECTED,
                resource=self._grant_resource(token, grant),
                change_summary=f"Preview could not be delivered: {type(error).__name__}",
                metadata={
                    "token_fingerprint": fingerprint,
                    "delivered": False,
                    "error": type(error).__name__,
                },
            ),
            AuditContext(actor=viewer, request=context),
        )

    def _reject(
        self,
        reason: RejectionReason,
        token: str,
        grant: Optional[PreviewGrant],
        viewer: Actor,
        context: RequestContext,
    ) -> GrantValidation:
        fingerprint = token_fingerprint(token or "")
        if self._metrics is not None:
            self._metrics.increment("preview_rejections", labels={"reason": reason.value})
        self._logger.info(
            "preview_rejected",
            extra={"token_fingerprint": fingerprint, "reason": reason.value, "client_ip": context.ip},
        )
        self._audit.dispatch(
            AuditEntryDraft(
                action=AuditAction.PREVIEW_REJECTED,
                resource=self._grant_resource(token, grant),
                change_summary=f"Preview access rejected: {reason.value}",
                metadata={"token_fingerprint": fingerprint, "reason": reason.value},
            ),
            AuditContext(actor=viewer, request=context),
        )
        return GrantValidation.rejected(reason)

    def _read_body(self, document: Document, grant: PreviewGrant) -> Optional[str]:
        policy = policy_for(grant.sensitivity_at_issue, self._policy_table)
        if not document.is_encrypted:
            if policy.encryption_required:
                self._logger.warning(
                    "sensitive_document_not_encrypted",
                    extra={"collection": document.collection, "slug": document.slug},
                )
            return document.body
        if self._encryption is None:
            raise EncryptionError("Document body is encrypted but no encryption key is configured")
        if document.body is None:
            return None
        return self._encryption.decrypt(document.body)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_active_grants(
        self,
        collection: Optional[str] = None,
        slug: Optional[str] = None,
    ) -> List[PreviewGrant]:
        """Currently valid grants, optionally for one document. Invalid grants are kept but not listed."""
        locator = None
        if collection is not None and slug is not None:
            locator = ResourceLocator(collection=collection, slug=slug)
        now = self._clock()
        grants = await self._call_store(self._repository.list_active(now, locator))
        return [g for g in grants if g.is_active(now)]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _call_store(self, awaitable: Awaitable[T]) -> T:
        try:
            if self._store_timeout is None:
                return await awaitable
            return await asyncio.wait_for(awaitable, timeout=self._store_timeout)
        except asyncio.TimeoutError as e:
            self._logger.warning("grant_store_timeout", extra={"timeout": self._store_timeout})
            raise GrantStoreUnavailableError("Preview grant store timed out; retry") from e

    @staticmethod
    def _document_resource(document: Document) -> ResourceRef:
        return ResourceRef(type=document.collection, id=document.slug, title=document.title)
