"""
Session Manager
===============
Authenticated sessions handed out after login or registration.
"""

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Protocol

from .models import Account
from .clock import Clock, SystemClock


@dataclass
class Session:
    """An authenticated session bound to one account."""
    id: str
    token: str
    account_id: str
    created_at: datetime
    is_active: bool = True


class SessionManager(Protocol):
    def start(self, account: Account) -> Session:
        ...

    def invalidate(self, session: Session) -> None:
        ...

    def regenerate_token(self, session: Session) -> Session:
        ...

    def get(self, token: str) -> Optional[Session]:
        ...


class InMemorySessionManager:
    """
    Sessions indexed by token.

    Every start() issues a fresh id and token, so a pre-login token can
    never be reused as an authenticated one.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self._sessions: Dict[str, Session] = {}

    def start(self, account: Account) -> Session:
        session = Session(
            id=str(uuid.uuid4()),
            token=secrets.token_urlsafe(32),
            account_id=account.id,
            created_at=self.clock.now(),
        )
        self._sessions[session.token] = session
        return session

    def get(self, token: str) -> Optional[Session]:
        session = self._sessions.get(token)
        if session is None or not session.is_active:
            return None
        return session

    def invalidate(self, session: Session) -> None:
        session.is_active = False
        self._sessions.pop(session.token, None)

    def regenerate_token(self, session: Session) -> Session:
        """Rotate the token of an active session in place."""
        self._sessions.pop(session.token, None)
        session.token = secrets.token_urlsafe(32)
        if session.is_active:
            self._sessions[session.token] = session
        return session
