"""Validators for preview grant requests."""

import ipaddress
from typing import FrozenSet, Iterable, Optional

from content_guard.domain.exceptions import DomainValidationError


def normalize_ip_allowlist(entries: Optional[Iterable[str]]) -> Optional[FrozenSet[str]]:
    """
    Parse allowlist entries (addresses or CIDR networks) into canonical text.
    None stays None; an empty list is rejected since it would make the grant unusable.
    """
    if entries is None:
        return None
    normalized = set()
    for entry in entries:
        try:
            network = ipaddress.ip_network(str(entry).strip(), strict=False)
        except ValueError:
            raise DomainValidationError(f"Invalid IP allowlist entry: {entry!r}") from None
        if network.num_addresses == 1:
            normalized.add(str(network.network_address))
        else:
            normalized.add(str(network))
    if not normalized:
        raise DomainValidationError("ip_allowlist must not be empty when provided")
    return frozenset(normalized)


def validate_max_views(max_views: Optional[int]) -> None:
    if max_views is not None and max_views < 1:
        raise DomainValidationError(f"max_views must be at least 1, got {max_views}")


def validate_expires_in(expires_in_seconds: Optional[int]) -> None:
    if expires_in_seconds is not None and expires_in_seconds < 1:
        raise DomainValidationError(
            f"expires_in_seconds must be at least 1, got {expires_in_seconds}"
        )
