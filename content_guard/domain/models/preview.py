"""Domain model for preview grants. Validity is computed per access, never cached."""

import hashlib
import ipaddress
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Optional

from content_guard.domain.models.document import Sensitivity


class RejectionReason(str, Enum):
    INVALID_TOKEN = "invalid_token"
    EXPIRED = "expired"
    MAX_VIEWS_EXCEEDED = "max_views_exceeded"
    IP_NOT_ALLOWED = "ip_not_allowed"


class GrantState(str, Enum):
    """issued -> active -> consumed | expired. Both terminal states are permanent."""

    ISSUED = "issued"
    ACTIVE = "active"
    CONSUMED = "consumed"
    EXPIRED = "expired"


TERMINAL_STATES = frozenset({GrantState.CONSUMED, GrantState.EXPIRED})


def token_fingerprint(token: str) -> str:
    """Short non-reversible identifier for a token, safe to write to logs and audit entries."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]


def ip_allowed(client_ip: Optional[str], allowlist: FrozenSet[str]) -> bool:
    """Allowlist entries are addresses or CIDR networks. Unparseable client IPs never match."""
    if not client_ip:
        return False
    try:
        address = ipaddress.ip_address(client_ip.strip())
    except ValueError:
        return False
    for entry in allowlist:
        network = ipaddress.ip_network(entry, strict=False)
        if address.version == network.version and address in network:
            return True
    return False


@dataclass(frozen=True)
class ResourceLocator:
    """Document being previewed."""

    collection: str
    slug: str


@dataclass(frozen=True)
class PreviewGrant:
    """
    Token-bearing permission to view one unpublished document.
    Only view_count changes after issue, and only through the store's atomic consume.
    """

    token: str
    resource_ref: ResourceLocator
    issued_by: str
    issued_at: datetime
    expires_at: datetime
    sensitivity_at_issue: Sensitivity
    max_views: Optional[int] = None
    view_count: int = 0
    ip_allowlist: Optional[FrozenSet[str]] = None

    @property
    def fingerprint(self) -> str:
        return token_fingerprint(self.token)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_exhausted(self) -> bool:
        return self.max_views is not None and self.view_count >= self.max_views

    def rejection_reason(self, now: datetime, client_ip: Optional[str]) -> Optional[RejectionReason]:
        """First failing constraint, or None when the grant is valid for this caller."""
        if self.is_expired(now):
            return RejectionReason.EXPIRED
        if self.is_exhausted():
            return RejectionReason.MAX_VIEWS_EXCEEDED
        if self.ip_allowlist is not None and not ip_allowed(client_ip, self.ip_allowlist):
            return RejectionReason.IP_NOT_ALLOWED
        return None

    def is_valid(self, now: datetime, client_ip: Optional[str]) -> bool:
        return self.rejection_reason(now, client_ip) is None

    def is_active(self, now: datetime) -> bool:
        return self.state(now) not in TERMINAL_STATES

    def state(self, now: datetime) -> GrantState:
        if self.is_expired(now):
            return GrantState.EXPIRED
        if self.is_exhausted():
            return GrantState.CONSUMED
        if self.view_count == 0:
            return GrantState.ISSUED
        return GrantState.ACTIVE

    def views_remaining(self) -> Optional[int]:
        if self.max_views is None:
            return None
        return max(self.max_views - self.view_count, 0)

    def with_view_count(self, view_count: int) -> "PreviewGrant":
        return replace(self, view_count=view_count)


@dataclass(frozen=True)
class GrantOverrides:
    """Caller-requested parameters. Merged under the sensitivity policy, never above it."""

    expires_in_seconds: Optional[int] = None
    expires_at: Optional[datetime] = None
    max_views: Optional[int] = None
    ip_allowlist: Optional[FrozenSet[str]] = None


@dataclass(frozen=True)
class IssuedGrant:
    token: str
    expires_at: datetime
    max_views: Optional[int]
    sensitivity: Sensitivity


@dataclass(frozen=True)
class GrantValidation:
    valid: bool
    reason: Optional[RejectionReason] = None
    content: Optional[str] = None
    sensitivity: Optional[Sensitivity] = None
    views_remaining: Optional[int] = None

    @classmethod
    def rejected(cls, reason: RejectionReason) -> "GrantValidation":
        return cls(valid=False, reason=reason)
