"""
Credential Authenticator
========================
Identifier + secret verification behind the login rate limiter.
"""

import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Optional
import structlog

from .accounts.base import AccountStore
from .errors import StoreError
from .logs import mask_identifier
from .models import Account
from .password.hasher import SecretHasher
from .rate_limit.limiter import RateLimiter
from .rate_limit.models import throttle_key
from .sessions import Session, SessionManager

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "invalid credentials"


class AuthOutcome(str, Enum):
    ALLOWED = "allowed"
    BLOCKED = "blocked"
    REJECTED = "rejected"


@dataclass
class AuthDecision:
    """Result of one authentication attempt."""
    outcome: AuthOutcome
    account: Optional[Account] = None
    session: Optional[Session] = None
    retry_after: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def allow(cls, account: Account, session: Session) -> "AuthDecision":
        return cls(AuthOutcome.ALLOWED, account=account, session=session)

    @classmethod
    def block(cls, retry_after: int) -> "AuthDecision":
        return cls(AuthOutcome.BLOCKED, retry_after=retry_after)

    @classmethod
    def reject(cls, reason: str = INVALID_CREDENTIALS) -> "AuthDecision":
        return cls(AuthOutcome.REJECTED, reason=reason)

    @property
    def allowed(self) -> bool:
        return self.outcome == AuthOutcome.ALLOWED


class CredentialAuthenticator:
    """
    Checks credentials in a fixed order:

    1. the limiter, so a blocked key never reaches a secret comparison;
    2. the secret, with the same hashing cost for unknown identifiers;
    3. on success, clear the key and start a session.
    """

    def __init__(
        self,
        store: AccountStore,
        hasher: SecretHasher,
        limiter: RateLimiter,
        sessions: SessionManager,
        max_attempts: Optional[int] = None,
        decay_seconds: Optional[int] = None,
    ):
        self.store = store
        self.hasher = hasher
        self.limiter = limiter
        self.sessions = sessions
        self.max_attempts = max_attempts
        self.decay_seconds = decay_seconds
        self._dummy_hash: Optional[str] = None

    async def _dummy(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = await self.hasher.hash(secrets.token_urlsafe(16))
        return self._dummy_hash

    async def authenticate(self, identifier: str, secret: str, origin: str) -> AuthDecision:
        """
        Authenticate identifier + secret coming from origin.

        Raises:
            StoreError: The account store failed
        """
        key = throttle_key(identifier, origin)

        if await self.limiter.too_many_attempts(key, self.max_attempts):
            retry_after = await self.limiter.available_in(key)
            logger.warning("Login blocked", key=mask_identifier(key), retry_after=retry_after)
            return AuthDecision.block(retry_after)

        account = await self.store.find_by_identifier(identifier)
        if account is None:
            await self.hasher.verify(secret, await self._dummy())
            matched = False
        else:
            matched = await self.hasher.verify(secret, account.secret_hash)

        if not matched:
            attempts = await self.limiter.hit(key, self.decay_seconds, self.max_attempts)
            logger.info("Login rejected", key=mask_identifier(key), attempts=attempts)
            return AuthDecision.reject()

        await self.limiter.clear(key)
        account = await self._upgrade_hash(account, secret)
        session = self.sessions.start(account)
        logger.info("Login succeeded", account_id=account.id, role=account.role)
        return AuthDecision.allow(account, session)

    async def _upgrade_hash(self, account: Account, secret: str) -> Account:
        """Re-hash legacy or outdated secret hashes after a successful verify."""
        if not self.hasher.needs_rehash(account.secret_hash):
            return account
        try:
            new_hash = await self.hasher.hash(secret)
            account = await self.store.update(account.id, {"secret_hash": new_hash})
        except StoreError as e:
            logger.warning("Secret hash upgrade failed", account_id=account.id, error=str(e))
            return account
        logger.info("Secret hash upgraded", account_id=account.id)
        return account
