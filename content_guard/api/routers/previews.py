"""Preview API router: create/list grants, approval workflow, public token lookup."""

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from content_guard.api.dependencies import (
    get_approval_workflow,
    get_document_source,
    get_optional_actor,
    get_preview_service,
    get_rate_limiter,
    get_request_context,
    get_role,
    require_actor,
    require_permission,
)
from content_guard.application.document_source import DocumentSource
from content_guard.application.exceptions import DocumentNotFoundError
from content_guard.application.preview_service import PreviewGrantService
from content_guard.core.clock import utc_now
from content_guard.domain.models.audit import Actor, RequestContext
from content_guard.domain.models.document import Document
from content_guard.domain.models.preview import RejectionReason
from content_guard.domain.schemas.preview import (
    ActiveGrantResponse,
    ApprovalCreateRequest,
    ApprovalDecisionRequest,
    ApprovalResponse,
    PreviewContentResponse,
    PreviewGrantCreateRequest,
    PreviewGrantResponse,
    PreviewRejectedResponse,
)
from content_guard.governance.approval_workflow import ApprovalWorkflow
from content_guard.scalability.rate_limiter import ClientRateLimiter
from content_guard.security.rbac import Role

router = APIRouter()

_REJECTION_DETAIL = {
    RejectionReason.INVALID_TOKEN: "This preview link is not valid",
    RejectionReason.EXPIRED: "This preview link has expired",
    RejectionReason.MAX_VIEWS_EXCEEDED: "This preview link has reached its view limit",
    RejectionReason.IP_NOT_ALLOWED: "This preview link is not available from your network",
}


async def _load_document(documents: DocumentSource, collection: str, slug: str) -> Document:
    document = await documents.get_document(collection, slug)
    if document is None:
        raise DocumentNotFoundError(f"Document not found: {collection}/{slug}")
    return document


@router.post("", response_model=PreviewGrantResponse, status_code=status.HTTP_201_CREATED)
async def create_preview(
    body: PreviewGrantCreateRequest,
    actor: Annotated[Actor, Depends(require_permission("share_preview"))],
    context: Annotated[RequestContext, Depends(get_request_context)],
    documents: Annotated[DocumentSource, Depends(get_document_source)],
    service: Annotated[PreviewGrantService, Depends(get_preview_service)],
):
    """
    Issue a preview link. Sensitivity policy decides the ceiling; the body can only tighten it.

    Embargoed documents always get an IP restriction. Without `ip_allowlist` the link is
    bound to the caller's IP, and viewers elsewhere are refused with `ip_not_allowed`.
    """
    document = await _load_document(documents, body.collection, body.slug)
    issued = await service.create_grant(
        document=document,
        requested_by=actor,
        overrides=body.to_overrides(),
        context=context,
    )
    return PreviewGrantResponse.from_issued(issued)


@router.get("", response_model=List[ActiveGrantResponse])
async def list_active_previews(
    actor: Annotated[Actor, Depends(require_actor)],
    service: Annotated[PreviewGrantService, Depends(get_preview_service)],
    collection: Optional[str] = None,
    slug: Optional[str] = None,
):
    """Currently valid grants, optionally for one document."""
    grants = await service.list_active_grants(collection=collection, slug=slug)
    now = utc_now()
    return [ActiveGrantResponse.from_grant(g, now) for g in grants]


@router.post("/approvals", response_model=ApprovalResponse, status_code=status.HTTP_201_CREATED)
async def request_preview_approval(
    body: ApprovalCreateRequest,
    actor: Annotated[Actor, Depends(require_actor)],
    role: Annotated[Role, Depends(get_role)],
    context: Annotated[RequestContext, Depends(get_request_context)],
    documents: Annotated[DocumentSource, Depends(get_document_source)],
    workflow: Annotated[ApprovalWorkflow, Depends(get_approval_workflow)],
):
    document = await _load_document(documents, body.collection, body.slug)
    request = await workflow.request_approval(
        document=document,
        requested_by=actor,
        role=role,
        context=context,
        reason=body.reason,
    )
    return ApprovalResponse.from_request(request)


@router.post("/approvals/{request_id}/approve", response_model=ApprovalResponse)
async def approve_preview(
    request_id: str,
    actor: Annotated[Actor, Depends(require_actor)],
    role: Annotated[Role, Depends(get_role)],
    context: Annotated[RequestContext, Depends(get_request_context)],
    workflow: Annotated[ApprovalWorkflow, Depends(get_approval_workflow)],
    body: Optional[ApprovalDecisionRequest] = None,
):
    decided = await workflow.approve(
        request_id=request_id,
        approver=actor,
        approver_role=role,
        context=context,
        reason=body.reason if body else None,
    )
    return ApprovalResponse.from_request(decided)


@router.post("/approvals/{request_id}/reject", response_model=ApprovalResponse)
async def reject_preview(
    request_id: str,
    actor: Annotated[Actor, Depends(require_actor)],
    role: Annotated[Role, Depends(get_role)],
    context: Annotated[RequestContext, Depends(get_request_context)],
    workflow: Annotated[ApprovalWorkflow, Depends(get_approval_workflow)],
    body: Optional[ApprovalDecisionRequest] = None,
):
    decided = await workflow.reject(
        request_id=request_id,
        rejector=actor,
        rejector_role=role,
        context=context,
        reason=body.reason if body else None,
    )
    return ApprovalResponse.from_request(decided)


@router.get(
    "/{token}",
    response_model=PreviewContentResponse,
    responses={403: {"model": PreviewRejectedResponse}, 429: {}, 503: {}},
)
async def view_preview(
    token: str,
    request: Request,
    context: Annotated[RequestContext, Depends(get_request_context)],
    limiter: Annotated[ClientRateLimiter, Depends(get_rate_limiter)],
    service: Annotated[PreviewGrantService, Depends(get_preview_service)],
):
    """Public: no identity required. Every outcome is audited; one successful call consumes one view."""
    if not await limiter.allow_request(context.ip):
        return JSONResponse(
            status_code=429,
            content={"detail": "Too many preview requests"},
            headers={"Retry-After": str(limiter.window_seconds)},
        )
    result = await service.validate_grant(
        token,
        client_ip=context.ip,
        viewer=get_optional_actor(request),
        context=context,
    )
    if not result.valid:
        rejected = PreviewRejectedResponse(
            reason=result.reason,
            detail=_REJECTION_DETAIL[result.reason],
        )
        return JSONResponse(status_code=403, content=rejected.model_dump(mode="json"))
    return PreviewContentResponse(
        content=result.content,
        sensitivity=result.sensitivity,
        views_remaining=result.views_remaining,
    )
