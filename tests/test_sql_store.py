"""
Tests for the SQLAlchemy account store on in-memory SQLite.
"""

from datetime import timedelta

import pytest

from fakes import RecordingSender, T0


@pytest.fixture
async def sql_store():
    from authgate_core.accounts import SqlAccountStore
    from authgate_core.database import (
        close_engine,
        create_engine,
        create_schema,
        create_session_factory,
    )

    engine = create_engine("sqlite+aiosqlite:///:memory:")
    await create_schema(engine)
    yield SqlAccountStore(create_session_factory(engine))
    await close_engine(engine)


class TestSqlAccountStore:
    """Tests for mapping accounts and OTP challenges onto rows."""

    @pytest.mark.asyncio
    async def test_create_and_find(self, sql_store):
        from authgate_core.models import ROLE_PATIENT

        created = await sql_store.create({"email": "Alice@Example.com", "secret_hash": "h", "name": "Alice"})

        found = await sql_store.find_by_identifier("alice@example.com")
        assert found.id == created.id
        assert found.role == ROLE_PATIENT
        assert found.name == "Alice"
        assert found.otp is None
        assert found.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_duplicate_email(self, sql_store):
        from authgate_core.errors import DuplicateAccount

        await sql_store.create({"email": "a@example.com", "secret_hash": "h"})

        with pytest.raises(DuplicateAccount):
            await sql_store.create({"email": "A@example.com", "secret_hash": "h"})

    @pytest.mark.asyncio
    async def test_otp_round_trips_through_columns(self, sql_store):
        from authgate_core.models import OtpChallenge

        account = await sql_store.create({"email": "a@example.com", "secret_hash": "h"})
        challenge = OtpChallenge(
            code_hash="f" * 64,
            salt="0" * 32,
            expires_at=T0 + timedelta(seconds=300),
            issued_at=T0,
        )

        await sql_store.update(account.id, {"otp": challenge})
        assert (await sql_store.find_by_id(account.id)).otp == challenge

        await sql_store.update(account.id, {"otp": None, "email_verified_at": T0})
        stored = await sql_store.find_by_id(account.id)
        assert stored.otp is None
        assert stored.email_verified_at == T0

    @pytest.mark.asyncio
    async def test_update_unknown_account(self, sql_store):
        from authgate_core.errors import StoreError

        with pytest.raises(StoreError):
            await sql_store.update("missing", {"name": "x"})

    @pytest.mark.asyncio
    async def test_update_unknown_field(self, sql_store):
        from authgate_core.errors import StoreError

        account = await sql_store.create({"email": "a@example.com", "secret_hash": "h"})

        with pytest.raises(StoreError):
            await sql_store.update(account.id, {"favourite_colour": "blue"})

    @pytest.mark.asyncio
    async def test_otp_lifecycle_on_sql(self, sql_store, clock):
        """The lifecycle manager works unchanged against the SQL store."""
        from authgate_core.otp import OtpConfig, OtpLifecycleManager

        manager = OtpLifecycleManager(sql_store, clock, OtpConfig(length=6, ttl_seconds=300, send_timeout=1))
        account = await sql_store.create({"email": "a@example.com", "secret_hash": "h"})
        sender = RecordingSender()

        await manager.issue_and_send(account, sender)
        clock.advance(299)
        verified = await manager.verify(account.id, sender.last_code)

        assert verified.is_verified
        assert (await sql_store.find_by_id(account.id)).otp is None
