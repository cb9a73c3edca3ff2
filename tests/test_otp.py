"""
Tests for OTP generation, delivery and verification.
"""

import asyncio

import pytest

from fakes import FailingSender, RecordingSender, SlowCommitStore, SlowSender


class TestChallenge:
    def test_generate_code_numeric(self):
        """Should generate a zero-padded numeric code."""
        from authgate_core.otp import generate_code

        code = generate_code(length=6)

        assert len(code) == 6
        assert code.isdigit()

    def test_new_challenge(self):
        from authgate_core.otp import challenge_matches, new_challenge
        from fakes import T0

        code, challenge = new_challenge("u1", 6, 300, T0)

        assert challenge.issued_at == T0
        assert (challenge.expires_at - T0).total_seconds() == 300
        assert len(challenge.code_hash) == 64
        assert challenge_matches(challenge, "u1", code) is True

    def test_exact_string_comparison(self):
        from authgate_core.otp import challenge_matches, new_challenge
        from fakes import T0

        code, challenge = new_challenge("u1", 6, 300, T0)

        assert challenge_matches(challenge, "u1", code[1:]) is False
        assert challenge_matches(challenge, "u1", " " + code) is False
        assert challenge_matches(challenge, "u1", code + "0") is False

    def test_digest_bound_to_account(self):
        """A challenge copied onto another account does not verify there."""
        from authgate_core.otp import challenge_matches, new_challenge
        from fakes import T0

        code, challenge = new_challenge("u1", 6, 300, T0)

        assert challenge_matches(challenge, "u2", code) is False

    def test_same_code_different_salt(self):
        from authgate_core.otp import code_digest

        assert code_digest("u1", "123456", "a") != code_digest("u1", "123456", "b")


@pytest.fixture
def manager(store, clock, config):
    from authgate_core.otp import OtpLifecycleManager

    return OtpLifecycleManager(store, clock, config.otp)


class TestIssueAndSend:
    """Tests for generating and delivering codes."""

    @pytest.mark.asyncio
    async def test_delivers_and_stores_hash(self, manager, make_account, store, clock):
        from authgate_core.otp import VerificationState

        account = await make_account()
        sender = RecordingSender()

        issue = await manager.issue_and_send(account, sender)

        stored = await store.find_by_id(account.id)
        assert issue.delivered is True
        assert issue.expires_at == stored.otp.expires_at
        assert (stored.otp.expires_at - clock.now()).total_seconds() == 300
        assert sender.sent == [(account.email, sender.last_code)]
        assert len(stored.otp.code_hash) == 64
        assert manager.state_of(stored) == VerificationState.UNVERIFIED_PENDING

    @pytest.mark.asyncio
    async def test_strict_failure_restores_previous(self, manager, make_account, store):
        """A failed resend leaves the earlier code usable."""
        from authgate_core.errors import DeliveryFailed

        account = await make_account()
        good = RecordingSender()
        await manager.issue_and_send(account, good)
        before = (await store.find_by_id(account.id)).otp

        with pytest.raises(DeliveryFailed):
            await manager.issue_and_send(account, FailingSender(), strict=True)

        assert (await store.find_by_id(account.id)).otp == before
        verified = await manager.verify(account.id, good.last_code)
        assert verified.is_verified

    @pytest.mark.asyncio
    async def test_strict_failure_without_previous(self, manager, make_account, store):
        from authgate_core.errors import DeliveryFailed
        from authgate_core.otp import VerificationState

        account = await make_account()
        with pytest.raises(DeliveryFailed):
            await manager.issue_and_send(account, FailingSender())

        stored = await store.find_by_id(account.id)
        assert stored.otp is None
        assert manager.state_of(stored) == VerificationState.UNVERIFIED_NO_CHALLENGE

    @pytest.mark.asyncio
    async def test_best_effort_keeps_challenge(self, manager, make_account, store):
        account = await make_account()

        issue = await manager.issue_and_send(account, FailingSender(), strict=False)

        assert issue.delivered is False
        assert (await store.find_by_id(account.id)).otp is not None

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, manager, make_account, store):
        from authgate_core.errors import DeliveryFailed

        account = await make_account()
        with pytest.raises(DeliveryFailed):
            await manager.issue_and_send(account, SlowSender())

        assert (await store.find_by_id(account.id)).otp is None

    @pytest.mark.asyncio
    async def test_cancellation_rolls_back(self, manager, make_account, store):
        """A cancelled caller never leaves an undelivered code behind."""
        account = await make_account()
        first = RecordingSender()
        await manager.issue_and_send(account, first)
        before = (await store.find_by_id(account.id)).otp

        slow = SlowSender()
        task = asyncio.create_task(manager.issue_and_send(account, slow))
        await slow.started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert (await store.find_by_id(account.id)).otp == before

    @pytest.mark.asyncio
    async def test_cancellation_after_commit_rolls_back(self, make_account, store, clock, config):
        """Cancelling while the new challenge is being written still restores the old one."""
        from authgate_core.otp import OtpLifecycleManager

        slow_store = SlowCommitStore(store)
        manager = OtpLifecycleManager(slow_store, clock, config.otp)
        account = await make_account()
        first = RecordingSender()
        await manager.issue_and_send(account, first)
        before = (await store.find_by_id(account.id)).otp

        slow_store.hold_next_write = True
        sender = RecordingSender()
        task = asyncio.create_task(manager.issue_and_send(account, sender))
        await slow_store.committed.wait()
        assert (await store.find_by_id(account.id)).otp != before
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert sender.sent == []
        assert (await store.find_by_id(account.id)).otp == before
        assert (await manager.verify(account.id, first.last_code)).is_verified

    @pytest.mark.asyncio
    async def test_refuses_verified_account(self, manager, make_account, clock):
        from authgate_core.errors import AlreadyVerified

        account = await make_account(email_verified_at=clock.now())
        sender = RecordingSender()

        with pytest.raises(AlreadyVerified):
            await manager.issue_and_send(account, sender)
        assert sender.sent == []

    @pytest.mark.asyncio
    async def test_concurrent_resends_leave_one_delivered_code(self, manager, make_account, store):
        """Whatever code is stored at the end is one that was delivered."""
        from authgate_core.otp import challenge_matches

        account = await make_account()
        sender = RecordingSender()

        await asyncio.gather(*(manager.resend(account.id, sender) for _ in range(5)))

        stored = (await store.find_by_id(account.id)).otp
        assert len(sender.sent) == 5
        assert challenge_matches(stored, account.id, sender.last_code)


class TestVerify:
    """Tests for checking submitted codes."""

    async def _issue(self, manager, make_account):
        account = await make_account()
        sender = RecordingSender()
        await manager.issue_and_send(account, sender)
        return account, sender.last_code

    @pytest.mark.asyncio
    async def test_valid_just_before_expiry(self, manager, make_account, clock):
        account, code = await self._issue(manager, make_account)
        clock.advance(299)

        verified = await manager.verify(account.id, code)

        assert verified.is_verified
        assert verified.otp is None
        assert verified.email_verified_at == clock.now()

    @pytest.mark.asyncio
    async def test_valid_at_expiry_instant(self, manager, make_account, clock):
        account, code = await self._issue(manager, make_account)
        clock.advance(300)

        assert (await manager.verify(account.id, code)).is_verified

    @pytest.mark.asyncio
    async def test_expired_after_ttl(self, manager, make_account, clock, store):
        from authgate_core.errors import OtpExpired

        account, code = await self._issue(manager, make_account)
        clock.advance(301)

        with pytest.raises(OtpExpired):
            await manager.verify(account.id, code)
        assert not (await store.find_by_id(account.id)).is_verified

    @pytest.mark.asyncio
    async def test_mismatch_checked_before_expiry(self, manager, make_account, clock):
        """A wrong code reports mismatch even when the challenge has expired."""
        from authgate_core.errors import OtpMismatch

        account, code = await self._issue(manager, make_account)
        clock.advance(1000)
        wrong = "000000" if code != "000000" else "111111"

        with pytest.raises(OtpMismatch):
            await manager.verify(account.id, wrong)

    @pytest.mark.asyncio
    async def test_mismatch_keeps_challenge(self, manager, make_account, store):
        from authgate_core.errors import OtpMismatch

        account, code = await self._issue(manager, make_account)
        wrong = "000000" if code != "000000" else "111111"

        with pytest.raises(OtpMismatch):
            await manager.verify(account.id, wrong)
        assert (await manager.verify(account.id, code)).is_verified

    @pytest.mark.asyncio
    async def test_no_challenge_is_mismatch(self, manager, make_account):
        from authgate_core.errors import OtpMismatch

        account = await make_account()
        with pytest.raises(OtpMismatch):
            await manager.verify(account.id, "123456")

    @pytest.mark.asyncio
    async def test_second_verify_is_already_verified(self, manager, make_account):
        from authgate_core.errors import AlreadyVerified

        account, code = await self._issue(manager, make_account)
        await manager.verify(account.id, code)

        with pytest.raises(AlreadyVerified):
            await manager.verify(account.id, code)

    @pytest.mark.asyncio
    async def test_resend_invalidates_old_code(self, manager, make_account):
        from authgate_core.errors import OtpMismatch

        account, old_code = await self._issue(manager, make_account)
        sender = RecordingSender()
        await manager.resend(account.id, sender)

        if old_code != sender.last_code:
            with pytest.raises(OtpMismatch):
                await manager.verify(account.id, old_code)
        assert (await manager.verify(account.id, sender.last_code)).is_verified

    @pytest.mark.asyncio
    async def test_resend_refused_when_verified(self, manager, make_account):
        from authgate_core.errors import AlreadyVerified

        account, code = await self._issue(manager, make_account)
        await manager.verify(account.id, code)

        with pytest.raises(AlreadyVerified):
            await manager.resend(account.id, RecordingSender())

    @pytest.mark.asyncio
    async def test_pending_expiry(self, manager, make_account, store):
        from authgate_core.otp import OtpLifecycleManager

        account, code = await self._issue(manager, make_account)
        stored = await store.find_by_id(account.id)
        assert OtpLifecycleManager.pending_expiry(stored) == stored.otp.expires_at

        verified = await manager.verify(account.id, code)
        assert OtpLifecycleManager.pending_expiry(verified) is None

    @pytest.mark.asyncio
    async def test_unknown_accounts_leave_no_locks_behind(self, manager):
        import gc
        from authgate_core.errors import StoreError

        for i in range(50):
            with pytest.raises(StoreError):
                await manager.verify(f"missing-{i}", "123456")
        gc.collect()

        assert len(manager._locks) == 0
