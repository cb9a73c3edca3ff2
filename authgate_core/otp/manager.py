"""
OTP Lifecycle Manager
=====================
Issues, delivers, verifies and regenerates email verification codes.

Per account the lifecycle is

    UNVERIFIED_NO_CHALLENGE -> UNVERIFIED_PENDING -> VERIFIED

and VERIFIED is final. Issue-and-send runs under a per-account lock that
spans generate, delivery and commit/rollback, so concurrent resends never
interleave and a cancelled call never leaves an undelivered challenge behind.
"""

import asyncio
import weakref
from datetime import datetime
from typing import Optional, Tuple
import structlog

from ..accounts.base import AccountStore
from ..clock import Clock, SystemClock
from ..delivery.base import OtpSender
from ..errors import AlreadyVerified, DeliveryFailed, OtpExpired, OtpMismatch, StoreError
from ..logs import mask_identifier
from ..models import Account, OtpChallenge
from .challenge import challenge_matches, new_challenge
from .models import OtpConfig, OtpIssue, VerificationState

logger = structlog.get_logger(__name__)


class OtpLifecycleManager:
    """
    Owns the `otp` and `email_verified_at` fields of accounts.

    Example:
        manager = OtpLifecycleManager(store, clock=SystemClock())
        issue = await manager.issue_and_send(account, sender)
        await manager.verify(account.id, "123456")
    """

    def __init__(
        self,
        store: AccountStore,
        clock: Optional[Clock] = None,
        config: Optional[OtpConfig] = None,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.config = config or OtpConfig()
        # Entries vanish once no caller holds or waits on the lock.
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, account_id: str) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_id] = lock
        return lock

    async def _load(self, account_id: str) -> Account:
        account = await self.store.find_by_id(account_id)
        if account is None:
            raise StoreError(f"Account {account_id} not found")
        return account

    @staticmethod
    def state_of(account: Account) -> VerificationState:
        if account.is_verified:
            return VerificationState.VERIFIED
        if account.otp is not None:
            return VerificationState.UNVERIFIED_PENDING
        return VerificationState.UNVERIFIED_NO_CHALLENGE

    @staticmethod
    def pending_expiry(account: Account) -> Optional[datetime]:
        """Expiry of the pending challenge, if any."""
        if account.is_verified or account.otp is None:
            return None
        return account.otp.expires_at

    async def _generate(self, account: Account) -> Tuple[str, OtpChallenge]:
        if account.is_verified:
            raise AlreadyVerified()

        code, challenge = new_challenge(
            account.id,
            self.config.length,
            self.config.ttl_seconds,
            self.clock.now(),
        )
        await self.store.update(account.id, {"otp": challenge})
        account.otp = challenge
        return code, challenge

    async def generate(self, account: Account) -> str:
        """
        Store a fresh challenge for the account, replacing any pending one.

        Returns:
            The plaintext code. It cannot be recovered later, so deliver it now.
        """
        async with self._lock_for(account.id):
            code, _ = await self._generate(account)
        return code

    async def issue_and_send(
        self,
        account: Account,
        sender: OtpSender,
        strict: bool = True,
    ) -> OtpIssue:
        """
        Generate a code and deliver it as one unit.

        Args:
            account: Target account (reloaded from the store under the lock)
            sender: Delivery collaborator
            strict: On delivery failure, restore the previous challenge and
                raise DeliveryFailed. When False the new challenge is kept
                and the failure is only reported in the result.

        Returns:
            OtpIssue with the expiry and whether delivery succeeded

        Raises:
            AlreadyVerified: Account is already verified
            DeliveryFailed: Strict delivery failed or timed out
        """
        async with self._lock_for(account.id):
            current = await self._load(account.id)
            previous = current.otp

            try:
                code, challenge = await self._generate(current)
                try:
                    await asyncio.wait_for(
                        sender.send(current.email, code),
                        timeout=self.config.send_timeout,
                    )
                except Exception as e:
                    if strict:
                        await self._rollback(current.id, previous)
                        logger.warning(
                            "OTP delivery failed, challenge rolled back",
                            account_id=current.id,
                            destination=mask_identifier(current.email),
                            error_type=type(e).__name__,
                            error=str(e),
                        )
                        raise DeliveryFailed() from e

                    logger.warning(
                        "OTP delivery failed, challenge kept",
                        account_id=current.id,
                        destination=mask_identifier(current.email),
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    return OtpIssue(expires_at=challenge.expires_at, delivered=False)
            except asyncio.CancelledError:
                # The store write may have committed before the cancel landed.
                await self._rollback(current.id, previous)
                logger.warning("OTP issue cancelled, challenge rolled back", account_id=current.id)
                raise

        account.otp = challenge
        logger.info(
            "OTP issued",
            account_id=current.id,
            destination=mask_identifier(current.email),
            expires_in=self.config.ttl_seconds,
        )
        return OtpIssue(expires_at=challenge.expires_at, delivered=True)

    async def _rollback(self, account_id: str, previous: Optional[OtpChallenge]) -> None:
        await asyncio.shield(self.store.update(account_id, {"otp": previous}))

    async def verify(self, account_id: str, submitted_code: str) -> Account:
        """
        Check a submitted code against the stored challenge.

        The account is always reloaded from the store; nothing the caller
        holds is trusted.

        Raises:
            AlreadyVerified: Account is already verified
            OtpMismatch: No pending challenge, or the code differs
            OtpExpired: Code matches but the challenge has expired

        Returns:
            The verified account
        """
        async with self._lock_for(account_id):
            account = await self._load(account_id)
            if account.is_verified:
                raise AlreadyVerified()

            challenge = account.otp
            if challenge is None or not challenge_matches(challenge, account_id, str(submitted_code)):
                logger.warning("OTP mismatch", account_id=account_id)
                raise OtpMismatch()

            now = self.clock.now()
            if challenge.is_expired(now):
                logger.warning("OTP expired", account_id=account_id)
                raise OtpExpired()

            verified = await self.store.update(
                account_id, {"otp": None, "email_verified_at": now}
            )

        logger.info("OTP verified", account_id=account_id)
        return verified

    async def resend(self, account_id: str, sender: OtpSender) -> OtpIssue:
        """Replace the pending challenge with a new, delivered one (strict)."""
        account = await self._load(account_id)
        if account.is_verified:
            raise AlreadyVerified()
        return await self.issue_and_send(account, sender, strict=True)
