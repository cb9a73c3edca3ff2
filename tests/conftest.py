"""
Shared fixtures: fast hashing, an in-memory store and wired flows.
"""

import pytest

from fakes import FakeClock, RecordingSender


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def hasher():
    from authgate_core.password import Argon2SecretHasher, build_password_hasher

    return Argon2SecretHasher(build_password_hasher(time_cost=1, memory_cost=8, parallelism=1))


@pytest.fixture
def store():
    from authgate_core.accounts import InMemoryAccountStore

    return InMemoryAccountStore()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def config():
    from authgate_core.config import AuthGateConfig
    from authgate_core.otp import OtpConfig
    from authgate_core.rate_limit import ThrottlePolicy

    return AuthGateConfig(
        throttle=ThrottlePolicy(max_attempts=3, decay_seconds=600),
        otp=OtpConfig(length=6, ttl_seconds=300, send_timeout=0.2),
        secure_cookies=False,
    )


@pytest.fixture
def flows(store, sender, hasher, config, clock):
    from authgate_core.flows import build_orchestrator

    return build_orchestrator(store, sender, hasher=hasher, config=config, clock=clock)


@pytest.fixture
def make_account(store, hasher):
    """Create an account directly in the store with a known password."""

    async def _make(email="alice@example.com", password="correct-horse", **fields):
        secret_hash = await hasher.hash(password)
        return await store.create({"email": email, "secret_hash": secret_hash, **fields})

    return _make
