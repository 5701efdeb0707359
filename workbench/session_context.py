"""
Per-request view of who is signed in.

Only the user's id lives in the cookie session. The full user record is read
from the store again on every request and handed to handlers as a
``SessionContext`` parameter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import MutableMapping, Optional

from workbench.db import DbClient, UserRecord
from workbench.errors import AuthenticationRequired

SESSION_USER_KEY = "user_id"


@dataclass(frozen=True)
class SessionContext:
    user: Optional[UserRecord] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def require_user(self) -> UserRecord:
        if self.user is None:
            raise AuthenticationRequired()
        return self.user


def bind_session(session: MutableMapping, user: UserRecord) -> None:
    session[SESSION_USER_KEY] = user.user_id


def unbind_session(session: MutableMapping) -> None:
    session.pop(SESSION_USER_KEY, None)


def load_session_context(db: DbClient, session: MutableMapping) -> SessionContext:
    user_id = session.get(SESSION_USER_KEY)
    if not user_id:
        return SessionContext()
    # A bound id whose user is gone reads as signed out.
    return SessionContext(user=db.get_user(user_id))
