"""Document metadata consumed from the content system. This service never stores documents."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Sensitivity(str, Enum):
    NORMAL = "normal"
    CONFIDENTIAL = "confidential"
    EMBARGOED = "embargoed"


@dataclass(frozen=True)
class Document:
    """Point-in-time view of a document as supplied by the content system."""

    collection: str
    slug: str
    title: Optional[str]
    sensitivity: Sensitivity
    embargo_until: Optional[datetime] = None
    approved_for_preview: bool = False
    body: Optional[str] = None
    is_encrypted: bool = False
