"""
Rate Limiter
============
Policy wrapper over an attempt ledger.
"""

from typing import Optional
import structlog

from ..logs import mask_identifier
from .ledger import AttemptLedger
from .models import ThrottlePolicy

logger = structlog.get_logger(__name__)


class RateLimiter:
    """
    Decides block/allow for throttle keys.

    Holds no state of its own beyond the policy, so different call sites
    (e.g. admin logins) can share a ledger with stricter limits:

        admin_limiter = RateLimiter(ledger, ThrottlePolicy(max_attempts=2))
    """

    def __init__(self, ledger: AttemptLedger, policy: Optional[ThrottlePolicy] = None):
        self.ledger = ledger
        self.policy = policy or ThrottlePolicy()

    async def too_many_attempts(self, key: str, max_attempts: Optional[int] = None) -> bool:
        threshold = self.policy.max_attempts if max_attempts is None else max_attempts
        blocked = await self.ledger.is_blocked(key, threshold)
        if blocked:
            logger.info("Throttle key over limit", key=mask_identifier(key), threshold=threshold)
        return blocked

    async def hit(
        self,
        key: str,
        decay_seconds: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ) -> int:
        """Record a failed attempt. Returns the attempt count in the current window."""
        return await self.ledger.record_failure(
            key,
            self.policy.max_attempts if max_attempts is None else max_attempts,
            self.policy.decay_seconds if decay_seconds is None else decay_seconds,
        )

    async def clear(self, key: str) -> None:
        await self.ledger.reset(key)

    async def attempts(self, key: str) -> int:
        return await self.ledger.attempts(key)

    async def available_in(self, key: str) -> int:
        """Seconds until the key may try again."""
        return await self.ledger.retry_after(key)
