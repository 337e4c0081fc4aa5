"""Preview approval gating for sensitive documents. No auto-approve; RBAC enforced; audit trail. No FastAPI."""

import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Protocol

from content_guard.core.clock import Clock, utc_now
from content_guard.domain.models.audit import (
    Actor,
    AuditAction,
    AuditContext,
    AuditEntryDraft,
    RequestContext,
    ResourceRef,
)
from content_guard.domain.models.document import Document
from content_guard.domain.models.preview import ResourceLocator
from content_guard.domain.validators.audit_validator import validate_actor
from content_guard.governance.audit_service import AuditLogService
from content_guard.governance.exceptions import InvalidWorkflowStateError
from content_guard.security.rbac import RBACService, Role


class ApprovalStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class ApprovalRequest:
    """Request to approve preview sharing for one document. PENDING -> APPROVED | REJECTED."""

    request_id: str
    collection: str
    slug: str
    title: Optional[str]
    requested_by: str
    status: ApprovalStatus
    created_at: datetime
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    reason: Optional[str] = None

    @property
    def locator(self) -> ResourceLocator:
        return ResourceLocator(collection=self.collection, slug=self.slug)


class ApprovalRepository(Protocol):
    """Storage for approval requests."""

    async def save(self, request: ApprovalRequest) -> None:
        ...

    async def record_decision(self, request: ApprovalRequest) -> bool:
        """
        Store a decision only if the request is still PENDING, as one conditional write.
        Returns False when the request was already decided.
        """
        ...

    async def get(self, request_id: str) -> Optional[ApprovalRequest]:
        ...

    async def find_approved(self, locator: ResourceLocator) -> Optional[ApprovalRequest]:
        """Most recent APPROVED request for the document, if any."""
        ...


class ApprovalWorkflow:
    """
    Human-in-the-loop gating for approval-gated sensitivity levels.
    Cannot auto-approve. Only APPROVER or ADMIN may decide. Every transition is audited.
    """

    def __init__(
        self,
        repository: ApprovalRepository,
        audit: AuditLogService,
        rbac: RBACService,
        clock: Clock = utc_now,
    ) -> None:
        self._repo = repository
        self._audit = audit
        self._rbac = rbac
        self._clock = clock

    async def is_approved(self, locator: ResourceLocator) -> bool:
        return await self._repo.find_approved(locator) is not None

    async def request_approval(
        self,
        *,
        document: Document,
        requested_by: Actor,
        role: Role,
        context: RequestContext = RequestContext(),
        reason: Optional[str] = None,
    ) -> ApprovalRequest:
        """Create a PENDING request. Only roles that may share previews can ask."""
        validate_actor(requested_by)
        self._rbac.check_permission(role, "request_approval")
        request = ApprovalRequest(
            request_id=str(uuid.uuid4()),
            collection=document.collection,
            slug=document.slug,
            title=document.title,
            requested_by=requested_by.email,
            status=ApprovalStatus.PENDING,
            created_at=self._clock(),
            reason=reason,
        )
        await self._repo.save(request)
        self._audit_transition(
            AuditAction.PREVIEW_APPROVAL_REQUESTED, request, requested_by, context, reason
        )
        return request

    async def approve(
        self,
        *,
        request_id: str,
        approver: Actor,
        approver_role: Role,
        context: RequestContext = RequestContext(),
        reason: Optional[str] = None,
    ) -> ApprovalRequest:
        return await self._decide(
            request_id,
            ApprovalStatus.APPROVED,
            approver,
            approver_role,
            context,
            reason,
        )

    async def reject(
        self,
        *,
        request_id: str,
        rejector: Actor,
        rejector_role: Role,
        context: RequestContext = RequestContext(),
        reason: Optional[str] = None,
    ) -> ApprovalRequest:
        # same permission to reject
        return await self._decide(
            request_id,
            ApprovalStatus.REJECTED,
            rejector,
            rejector_role,
            context,
            reason,
        )

    async def _decide(
        self,
        request_id: str,
        status: ApprovalStatus,
        actor: Actor,
        role: Role,
        context: RequestContext,
        reason: Optional[str],
    ) -> ApprovalRequest:
        validate_actor(actor)
        self._rbac.check_permission(role, "approve")
        request = await self._repo.get(request_id)
        if request is None:
            raise InvalidWorkflowStateError(f"Approval request not found: {request_id}")
        if request.status != ApprovalStatus.PENDING:
            raise InvalidWorkflowStateError(
                f"Request not pending: {request_id} (status={request.status.value})"
            )
        decided = replace(
            request,
            status=status,
            decided_by=actor.email,
            decided_at=self._clock(),
            reason=reason,
        )
        if not await self._repo.record_decision(decided):
            raise InvalidWorkflowStateError(f"Request already decided: {request_id}")
        action = (
            AuditAction.PREVIEW_APPROVAL_GRANTED
            if status is ApprovalStatus.APPROVED
            else AuditAction.PREVIEW_APPROVAL_DENIED
        )
        self._audit_transition(action, decided, actor, context, reason)
        return decided

    def _audit_transition(
        self,
        action: AuditAction,
        request: ApprovalRequest,
        actor: Actor,
        context: RequestContext,
        reason: Optional[str],
    ) -> None:
        self._audit.dispatch(
            AuditEntryDraft(
                action=action,
                resource=ResourceRef(type=request.collection, id=request.slug, title=request.title),
                change_summary=f"Preview approval {request.status.value.lower()}",
                metadata={"request_id": request.request_id, "reason": reason},
            ),
            AuditContext(actor=actor, request=context),
        )
