"""
Tests for credential checks behind the login limiter.
"""

import pytest


@pytest.fixture
def authenticator(store, hasher, clock, config):
    from authgate_core.authenticator import CredentialAuthenticator
    from authgate_core.rate_limit import InMemoryAttemptLedger, RateLimiter
    from authgate_core.sessions import InMemorySessionManager

    limiter = RateLimiter(InMemoryAttemptLedger(clock), config.throttle)
    return CredentialAuthenticator(store, hasher, limiter, InMemorySessionManager(clock))


class TestCredentialAuthenticator:
    """Tests for the allow / reject / block decision."""

    @pytest.mark.asyncio
    async def test_correct_credentials(self, authenticator, make_account):
        from authgate_core.authenticator import AuthOutcome

        account = await make_account()

        decision = await authenticator.authenticate("alice@example.com", "correct-horse", "10.0.0.1")

        assert decision.outcome == AuthOutcome.ALLOWED
        assert decision.allowed
        assert decision.account.id == account.id
        assert decision.session.account_id == account.id

    @pytest.mark.asyncio
    async def test_identifier_case_insensitive(self, authenticator, make_account):
        await make_account()

        decision = await authenticator.authenticate("ALICE@example.com", "correct-horse", "10.0.0.1")

        assert decision.allowed

    @pytest.mark.asyncio
    async def test_wrong_password_counts_failure(self, authenticator, make_account):
        from authgate_core.authenticator import AuthOutcome

        await make_account()

        decision = await authenticator.authenticate("alice@example.com", "wrong", "10.0.0.1")

        assert decision.outcome == AuthOutcome.REJECTED
        assert await authenticator.limiter.attempts("alice@example.com|10.0.0.1") == 1

    @pytest.mark.asyncio
    async def test_unknown_identifier_looks_like_wrong_password(self, authenticator):
        decision = await authenticator.authenticate("nobody@example.com", "whatever", "10.0.0.1")

        assert decision.outcome.value == "rejected"
        assert decision.reason == "invalid credentials"
        assert await authenticator.limiter.attempts("nobody@example.com|10.0.0.1") == 1

    @pytest.mark.asyncio
    async def test_blocked_even_with_correct_password(self, authenticator, make_account, clock):
        """Three failures block the fourth try until the decay period passes."""
        from authgate_core.authenticator import AuthOutcome

        await make_account()
        for _ in range(3):
            await authenticator.authenticate("alice@example.com", "wrong", "10.0.0.1")

        decision = await authenticator.authenticate("alice@example.com", "correct-horse", "10.0.0.1")
        assert decision.outcome == AuthOutcome.BLOCKED
        assert decision.retry_after == 600

        clock.advance(600)
        decision = await authenticator.authenticate("alice@example.com", "correct-horse", "10.0.0.1")
        assert decision.allowed

    @pytest.mark.asyncio
    async def test_block_is_per_origin(self, authenticator, make_account):
        await make_account()
        for _ in range(3):
            await authenticator.authenticate("alice@example.com", "wrong", "10.0.0.1")

        decision = await authenticator.authenticate("alice@example.com", "correct-horse", "10.0.0.2")

        assert decision.allowed

    @pytest.mark.asyncio
    async def test_blocked_attempt_does_not_extend_block(self, authenticator, make_account, clock):
        await make_account()
        for _ in range(3):
            await authenticator.authenticate("alice@example.com", "wrong", "10.0.0.1")

        clock.advance(300)
        await authenticator.authenticate("alice@example.com", "wrong", "10.0.0.1")

        assert await authenticator.limiter.available_in("alice@example.com|10.0.0.1") == 300
        assert await authenticator.limiter.attempts("alice@example.com|10.0.0.1") == 3

    @pytest.mark.asyncio
    async def test_success_clears_failures(self, authenticator, make_account):
        await make_account()
        await authenticator.authenticate("alice@example.com", "wrong", "10.0.0.1")
        await authenticator.authenticate("alice@example.com", "wrong", "10.0.0.1")

        await authenticator.authenticate("alice@example.com", "correct-horse", "10.0.0.1")

        assert await authenticator.limiter.attempts("alice@example.com|10.0.0.1") == 0

    @pytest.mark.asyncio
    async def test_each_login_gets_fresh_session(self, authenticator, make_account):
        await make_account()

        first = await authenticator.authenticate("alice@example.com", "correct-horse", "10.0.0.1")
        second = await authenticator.authenticate("alice@example.com", "correct-horse", "10.0.0.1")

        assert first.session.token != second.session.token

    @pytest.mark.asyncio
    async def test_legacy_bcrypt_hash_upgraded(self, authenticator, store):
        """A $2y$ hash verifies and is replaced with Argon2id."""
        import bcrypt

        legacy = bcrypt.hashpw(b"correct-horse", bcrypt.gensalt(rounds=4)).decode()
        legacy = legacy.replace("$2b$", "$2y$", 1)
        account = await store.create({"email": "old@example.com", "secret_hash": legacy})

        decision = await authenticator.authenticate("old@example.com", "correct-horse", "10.0.0.1")

        assert decision.allowed
        assert (await store.find_by_id(account.id)).secret_hash.startswith("$argon2id$")

    @pytest.mark.asyncio
    async def test_store_error_propagates(self, hasher, clock):
        from unittest.mock import AsyncMock
        from authgate_core.authenticator import CredentialAuthenticator
        from authgate_core.errors import StoreError
        from authgate_core.rate_limit import InMemoryAttemptLedger, RateLimiter
        from authgate_core.sessions import InMemorySessionManager

        store = AsyncMock()
        store.find_by_identifier.side_effect = StoreError("db down")
        limiter = RateLimiter(InMemoryAttemptLedger(clock))
        authenticator = CredentialAuthenticator(store, hasher, limiter, InMemorySessionManager(clock))

        with pytest.raises(StoreError):
            await authenticator.authenticate("alice@example.com", "pw", "10.0.0.1")
        assert await limiter.attempts("alice@example.com|10.0.0.1") == 0
