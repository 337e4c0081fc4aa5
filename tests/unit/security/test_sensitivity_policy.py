"""Sensitivity policy engine: reference table, settings overrides, embargo gate."""

from datetime import datetime, timedelta, timezone

import pytest

from content_guard.config.settings import LevelPolicySettings, PolicyTableSettings
from content_guard.domain.models.document import Document, Sensitivity
from content_guard.security.sensitivity_policy import (
    IpRestriction,
    build_policy_table,
    embargo_blocks,
    policy_for,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_normal_policy():
    policy = policy_for(Sensitivity.NORMAL)
    assert policy.default_expiry_seconds == 7 * 24 * 3600
    assert policy.default_max_views is None
    assert policy.ip_restriction is IpRestriction.OPTIONAL
    assert not policy.encryption_required
    assert not policy.requires_approval_before_grant


def test_confidential_policy():
    policy = policy_for(Sensitivity.CONFIDENTIAL)
    assert policy.default_expiry_seconds == 24 * 3600
    assert policy.default_max_views == 10
    assert policy.ip_restriction is IpRestriction.RECOMMENDED
    assert not policy.ip_restriction_required
    assert policy.encryption_required
    assert policy.requires_approval_before_grant


def test_embargoed_policy():
    policy = policy_for(Sensitivity.EMBARGOED)
    assert policy.default_expiry_seconds == 4 * 3600
    assert policy.default_max_views == 3
    assert policy.ip_restriction_required
    assert policy.encryption_required
    assert policy.requires_approval_before_grant


def test_policy_accepts_raw_value():
    assert policy_for("confidential").sensitivity is Sensitivity.CONFIDENTIAL


def test_unknown_sensitivity_fails_fast():
    with pytest.raises(ValueError):
        policy_for("top-secret")


def test_stricter_levels_never_loosen():
    normal, confidential, embargoed = (policy_for(s) for s in Sensitivity)
    assert normal.default_expiry_seconds > confidential.default_expiry_seconds > embargoed.default_expiry_seconds
    assert confidential.default_max_views > embargoed.default_max_views


def test_table_from_settings():
    settings = PolicyTableSettings(
        normal=LevelPolicySettings(default_expiry_seconds=3600, default_max_views=50),
    )
    table = build_policy_table(settings)
    assert policy_for(Sensitivity.NORMAL, table).default_expiry_seconds == 3600
    assert policy_for(Sensitivity.NORMAL, table).default_max_views == 50
    assert policy_for(Sensitivity.EMBARGOED, table).default_max_views == 3


def _embargoed(embargo_until):
    return Document(
        collection="press",
        slug="merger",
        title="Merger",
        sensitivity=Sensitivity.EMBARGOED,
        embargo_until=embargo_until,
    )


def test_embargo_blocks_until_lift():
    assert embargo_blocks(_embargoed(NOW + timedelta(minutes=2)), NOW)
    assert not embargo_blocks(_embargoed(NOW), NOW)
    assert not embargo_blocks(_embargoed(NOW - timedelta(seconds=1)), NOW)


def test_embargo_without_date_does_not_block():
    assert not embargo_blocks(_embargoed(None), NOW)


def test_embargo_date_on_lower_sensitivity_is_ignored():
    doc = Document(
        collection="press",
        slug="x",
        title=None,
        sensitivity=Sensitivity.CONFIDENTIAL,
        embargo_until=NOW + timedelta(days=1),
    )
    assert not embargo_blocks(doc, NOW)


def test_naive_embargo_date_is_read_as_utc():
    naive_lift = (NOW + timedelta(minutes=2)).replace(tzinfo=None)
    assert embargo_blocks(_embargoed(naive_lift), NOW)
    assert not embargo_blocks(_embargoed(naive_lift), NOW + timedelta(minutes=2))
