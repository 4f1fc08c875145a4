"""
Unit tests for super-admin capability checks
"""
from types import SimpleNamespace

from app.core.capabilities import (
    BULK_DESTRUCTIVE_ACTIONS,
    LEDGER_CORRECTIONS,
    capabilities_for,
    has_capability,
    is_super_admin,
)

OWNERS = ["owner@fitsense.test"]


def _principal(email, is_admin=True):
    return SimpleNamespace(email=email, is_admin=is_admin)


def test_configured_admin_holds_all_capabilities():
    owner = _principal("owner@fitsense.test")

    assert has_capability(owner, BULK_DESTRUCTIVE_ACTIONS, OWNERS)
    assert has_capability(owner, LEDGER_CORRECTIONS, OWNERS)


def test_email_match_is_case_insensitive():
    assert is_super_admin(_principal("Owner@FitSense.test"), OWNERS)


def test_plain_admin_has_none():
    assert capabilities_for(_principal("staff@fitsense.test"), OWNERS) == frozenset()
    assert not has_capability(_principal("staff@fitsense.test"), BULK_DESTRUCTIVE_ACTIONS, OWNERS)


def test_role_still_required():
    assert not has_capability(_principal("owner@fitsense.test", is_admin=False), LEDGER_CORRECTIONS, OWNERS)


def test_empty_configuration_grants_nothing():
    assert not has_capability(_principal("owner@fitsense.test"), BULK_DESTRUCTIVE_ACTIONS, [])


def test_unknown_capability():
    assert not has_capability(_principal("owner@fitsense.test"), "launch-missiles", OWNERS)


def test_defaults_to_settings():
    from app.core.config import settings

    assert "owner@fitsense.test" in settings.SUPER_ADMIN_EMAILS
    assert has_capability(_principal("owner@fitsense.test"), BULK_DESTRUCTIVE_ACTIONS)
