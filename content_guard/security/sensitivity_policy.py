"""
Sensitivity policy engine: pure mapping from a document's sensitivity level to the
default security parameters for its preview grants. No I/O.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Mapping, Optional

from content_guard.config.settings import LevelPolicySettings, PolicyTableSettings
from content_guard.core.clock import as_utc
from content_guard.domain.models.document import Document, Sensitivity


class IpRestriction(str, Enum):
    OPTIONAL = "optional"
    RECOMMENDED = "recommended"
    REQUIRED = "required"


@dataclass(frozen=True)
class SensitivityPolicy:
    sensitivity: Sensitivity
    default_expiry_seconds: int
    default_max_views: Optional[int]
    ip_restriction: IpRestriction
    encryption_required: bool
    requires_approval_before_grant: bool

    @property
    def ip_restriction_required(self) -> bool:
        return self.ip_restriction is IpRestriction.REQUIRED


PolicyTable = Mapping[Sensitivity, SensitivityPolicy]


def _from_settings(sensitivity: Sensitivity, level: LevelPolicySettings) -> SensitivityPolicy:
    return SensitivityPolicy(
        sensitivity=sensitivity,
        default_expiry_seconds=level.default_expiry_seconds,
        default_max_views=level.default_max_views,
        ip_restriction=IpRestriction(level.ip_restriction),
        encryption_required=level.encryption_required,
        requires_approval_before_grant=level.requires_approval_before_grant,
    )


def build_policy_table(settings: Optional[PolicyTableSettings] = None) -> PolicyTable:
    """Policy table from deployment settings; defaults to the reference values."""
    settings = settings or PolicyTableSettings()
    return {
        Sensitivity.NORMAL: _from_settings(Sensitivity.NORMAL, settings.normal),
        Sensitivity.CONFIDENTIAL: _from_settings(Sensitivity.CONFIDENTIAL, settings.confidential),
        Sensitivity.EMBARGOED: _from_settings(Sensitivity.EMBARGOED, settings.embargoed),
    }


DEFAULT_POLICY_TABLE: PolicyTable = build_policy_table()


def policy_for(sensitivity: Sensitivity, table: Optional[PolicyTable] = None) -> SensitivityPolicy:
    """
    Total over the sensitivity enum. An unknown level is a programming error:
    Sensitivity(...) raises ValueError instead of falling back to a default.
    """
    level = Sensitivity(sensitivity)
    return (table or DEFAULT_POLICY_TABLE)[level]


def embargo_blocks(document: Document, now: datetime) -> bool:
    """Embargoed documents refuse grants until embargo_until, whatever else is requested."""
    if document.sensitivity is not Sensitivity.EMBARGOED:
        return False
    if document.embargo_until is None:
        return False
    return as_utc(now) < as_utc(document.embargo_until)
