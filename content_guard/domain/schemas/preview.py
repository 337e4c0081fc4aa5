"""Pydantic schemas for the preview API. Strict validation, no DB or infrastructure."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from content_guard.domain.models.document import Sensitivity
from content_guard.domain.models.preview import (
    GrantOverrides,
    GrantState,
    IssuedGrant,
    PreviewGrant,
    RejectionReason,
)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class PreviewGrantCreateRequest(BaseModel):
    """Request a preview link for one document. Constraints can only be tightened below policy."""

    collection: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    expires_in_seconds: Optional[int] = Field(None, ge=1)
    expires_at: Optional[datetime] = None
    max_views: Optional[int] = Field(None, ge=1)
    ip_allowlist: Optional[List[str]] = Field(
        None,
        min_length=1,
        description=(
            "IP addresses or CIDR networks. Sensitivity levels that require an IP "
            "restriction bind the link to the caller's own IP when this is omitted, "
            "so pass the reviewer's network explicitly when sharing outside it."
        ),
    )

    def to_overrides(self) -> GrantOverrides:
        return GrantOverrides(
            expires_in_seconds=self.expires_in_seconds,
            expires_at=self.expires_at,
            max_views=self.max_views,
            ip_allowlist=frozenset(self.ip_allowlist) if self.ip_allowlist is not None else None,
        )


class ApprovalCreateRequest(BaseModel):
    collection: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    reason: Optional[str] = None


class ApprovalDecisionRequest(BaseModel):
    reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class PreviewGrantResponse(BaseModel):
    token: str
    expires_at: datetime
    max_views: Optional[int] = None
    sensitivity: Sensitivity

    @classmethod
    def from_issued(cls, issued: IssuedGrant) -> "PreviewGrantResponse":
        return cls(
            token=issued.token,
            expires_at=issued.expires_at,
            max_views=issued.max_views,
            sensitivity=issued.sensitivity,
        )


class PreviewContentResponse(BaseModel):
    valid: bool = True
    content: Optional[str] = None
    sensitivity: Sensitivity
    views_remaining: Optional[int] = None


class PreviewRejectedResponse(BaseModel):
    valid: bool = False
    reason: RejectionReason
    detail: str


class ActiveGrantResponse(BaseModel):
    """Active grant listing. The raw token is never listed, only its fingerprint."""

    token_fingerprint: str
    collection: str
    slug: str
    issued_by: str
    issued_at: datetime
    expires_at: datetime
    max_views: Optional[int] = None
    view_count: int
    views_remaining: Optional[int] = None
    sensitivity: Sensitivity
    state: GrantState

    @classmethod
    def from_grant(cls, grant: PreviewGrant, now: datetime) -> "ActiveGrantResponse":
        return cls(
            token_fingerprint=grant.fingerprint,
            collection=grant.resource_ref.collection,
            slug=grant.resource_ref.slug,
            issued_by=grant.issued_by,
            issued_at=grant.issued_at,
            expires_at=grant.expires_at,
            max_views=grant.max_views,
            view_count=grant.view_count,
            views_remaining=grant.views_remaining(),
            sensitivity=grant.sensitivity_at_issue,
            state=grant.state(now),
        )


class ApprovalResponse(BaseModel):
    request_id: str
    collection: str
    slug: str
    title: Optional[str] = None
    requested_by: str
    status: str = Field(..., description="PENDING, APPROVED or REJECTED")
    created_at: datetime
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    reason: Optional[str] = None

    @classmethod
    def from_request(cls, request: Any) -> "ApprovalResponse":
        return cls(
            request_id=request.request_id,
            collection=request.collection,
            slug=request.slug,
            title=request.title,
            requested_by=request.requested_by,
            status=request.status.value,
            created_at=request.created_at,
            decided_by=request.decided_by,
            decided_at=request.decided_at,
            reason=request.reason,
        )
