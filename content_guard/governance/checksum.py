"""
Tamper-evidence checksum for audit rows.

The checksum is SHA-256 over a canonical JSON encoding of every column except
``checksum`` itself: keys sorted at every depth, compact separators, UTF-8, no NaN or
Infinity. Identical logical rows hash identically regardless of key insertion order.
"""

import hashlib
import json
from typing import Any, Mapping

CHECKSUM_FIELD = "checksum"


class ChecksumSerializationError(TypeError):
    """A row contained a value with no canonical JSON form. Always a programming error."""


def canonical_json(value: Any) -> str:
    """Deterministic JSON text for snapshots and checksum input."""
    try:
        return json.dumps(
            value,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise ChecksumSerializationError(f"Value is not canonically serializable: {e}") from e


def compute_checksum(record: Mapping[str, Any]) -> str:
    """Hex SHA-256 (64 chars) over record minus its checksum field."""
    payload = {k: v for k, v in record.items() if k != CHECKSUM_FIELD}
    digest = hashlib.sha256(canonical_json(payload).encode("utf-8"))
    return digest.hexdigest()


def verify_checksum(record: Mapping[str, Any]) -> bool:
    """True when the stored checksum matches a fresh computation. Missing checksum never matches."""
    stored = record.get(CHECKSUM_FIELD)
    if not stored:
        return False
    return stored == compute_checksum(record)
