"""
Capability checks for privileged operations

Super admins are configured through SUPER_ADMIN_EMAILS. Routes ask for a
capability by name rather than comparing emails themselves.
"""
from typing import FrozenSet, Optional

from app.core.config import settings

BULK_DESTRUCTIVE_ACTIONS = "bulk-destructive-actions"
LEDGER_CORRECTIONS = "ledger-corrections"

SUPER_ADMIN_CAPABILITIES: FrozenSet[str] = frozenset({
    BULK_DESTRUCTIVE_ACTIONS,
    LEDGER_CORRECTIONS,
})


def is_super_admin(principal, super_admin_emails: Optional[list] = None) -> bool:
    emails = settings.SUPER_ADMIN_EMAILS if super_admin_emails is None else super_admin_emails
    email = (getattr(principal, "email", None) or "").strip().lower()
    return bool(email) and getattr(principal, "is_admin", False) and email in emails


def capabilities_for(principal, super_admin_emails: Optional[list] = None) -> FrozenSet[str]:
    if is_super_admin(principal, super_admin_emails):
        return SUPER_ADMIN_CAPABILITIES
    return frozenset()


def has_capability(principal, capability: str, super_admin_emails: Optional[list] = None) -> bool:
    """
    Check whether a principal holds a named capability.

    Args:
        principal: Authenticated user (needs ``email`` and ``is_admin``)
        capability: Capability name, e.g. BULK_DESTRUCTIVE_ACTIONS
        super_admin_emails: Override for the configured super-admin set
    """
    return capability in capabilities_for(principal, super_admin_emails)
