"""
Maps identities asserted by the OpenID Connect provider onto local users.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from workbench.db import DbClient, UserRecord
from workbench.errors import IdentityResolutionError, StoreError

logger = logging.getLogger(__name__)


@dataclass
class IdentityAssertion:
    """What the provider told us about the person who just signed in."""

    subject_id: str
    display_name: Optional[str] = None
    emails: list[str] = field(default_factory=list)

    @property
    def primary_email(self) -> Optional[str]:
        return self.emails[0] if self.emails else None

    @classmethod
    def from_userinfo(cls, userinfo: dict) -> "IdentityAssertion":
        """Build an assertion from OIDC userinfo or ID token claims."""
        emails = []
        if userinfo.get("email"):
            emails.append(userinfo["email"])
        return cls(
            subject_id=str(userinfo.get("sub") or ""),
            display_name=userinfo.get("name"),
            emails=emails,
        )


def resolve_identity(db: DbClient, assertion: IdentityAssertion) -> UserRecord:
    """
    Return the local user for ``assertion``, creating it on first sight.

    The subject id is the only lookup key. An existing user is returned as
    stored: display name and email are not refreshed on later logins.
    """
    if not assertion.subject_id:
        raise IdentityResolutionError("Identity assertion has no subject id")

    try:
        user = db.find_user_by_subject(assertion.subject_id)
        if user:
            return user
        user = db.create_user(
            assertion.subject_id,
            assertion.display_name,
            assertion.primary_email,
        )
    except StoreError as exc:
        raise IdentityResolutionError("Could not resolve identity") from exc

    logger.info("Created user %s for subject %s", user.user_id, assertion.subject_id)
    return user
