"""Account provisioning after an identity sign-up is confirmed.

Makes sure every confirmed identity has an account record bound to it.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..repo.client import error_messages


LOG = logging.getLogger(__name__)


def ensure_account_for_identity(
    client: Any,
    email: str,
    sub: str,
    username: str,
    name: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """Return the account registered for `email`, creating it if needed.

    New accounts get ``name or email`` as name, empty organization line and
    residence, and ``"{sub}::{username}"`` as owner. Returns None when the
    lookup or the create fails.
    """
    found = client.list_account_by_email(email)
    if found.errors:
        LOG.error("Error listing accounts for %s: %s", email, error_messages(found.errors))
        return None
    if found.data:
        LOG.info("Account already exists for %s", email)
        return found.data[0]

    created = client.accounts.create(
        email=email,
        name=name or email,
        organizationLine="",
        residence="",
        owner=f"{sub}::{username}",
    )
    if created.errors:
        LOG.error("Error creating account for %s: %s", email, error_messages(created.errors))
        return None
    LOG.info("Created account %s for %s", created.data["id"], email)
    return created.data


__all__ = ["ensure_account_for_identity"]
