"""
SQL Account Store
=================
SQLAlchemy-backed account store. The OTP challenge is flattened into
nullable otp_* columns on the account row.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import Date, DateTime, String, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column
import structlog

from ..database import Base
from ..errors import DuplicateAccount, StoreError
from ..logs import mask_identifier
from ..models import Account, OtpChallenge, ROLE_PATIENT

logger = structlog.get_logger(__name__)


class AccountRow(Base):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    secret_hash: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(32), default=ROLE_PATIENT)
    sub_role: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    gender: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    birth_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    email_verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    otp_code_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    otp_salt: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    otp_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    otp_issued_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


_PLAIN_COLUMNS = {
    "email", "secret_hash", "role", "sub_role", "name",
    "gender", "birth_date", "email_verified_at", "created_at",
}


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; every stored timestamp is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_account(row: AccountRow) -> Account:
    otp = None
    if row.otp_code_hash is not None:
        otp = OtpChallenge(
            code_hash=row.otp_code_hash,
            salt=row.otp_salt,
            expires_at=_utc(row.otp_expires_at),
            issued_at=_utc(row.otp_issued_at),
        )
    return Account(
        id=row.id,
        email=row.email,
        secret_hash=row.secret_hash,
        role=row.role,
        sub_role=row.sub_role,
        name=row.name,
        gender=row.gender,
        birth_date=row.birth_date,
        email_verified_at=_utc(row.email_verified_at),
        otp=otp,
        created_at=_utc(row.created_at),
    )


def _apply(row: AccountRow, fields: Dict[str, Any]) -> None:
    for name, value in fields.items():
        if name == "otp":
            row.otp_code_hash = value.code_hash if value else None
            row.otp_salt = value.salt if value else None
            row.otp_expires_at = value.expires_at if value else None
            row.otp_issued_at = value.issued_at if value else None
        elif name in _PLAIN_COLUMNS:
            setattr(row, name, value)
        else:
            raise StoreError(f"Unknown account field: {name}")


class SqlAccountStore:
    """
    Account store over an async SQLAlchemy session factory.

    Each call runs in its own transaction; SQLAlchemy errors surface as StoreError.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def find_by_identifier(self, identifier: str) -> Optional[Account]:
        stmt = select(AccountRow).where(func.lower(AccountRow.email) == identifier.lower())
        try:
            async with self.session_factory() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Account lookup failed", error=str(e))
            raise StoreError("Account lookup failed") from e
        return _to_account(row) if row else None

    async def find_by_id(self, account_id: str) -> Optional[Account]:
        try:
            async with self.session_factory() as session:
                row = await session.get(AccountRow, account_id)
        except SQLAlchemyError as e:
            logger.error("Account lookup failed", account_id=account_id, error=str(e))
            raise StoreError("Account lookup failed") from e
        return _to_account(row) if row else None

    async def create(self, fields: Dict[str, Any]) -> Account:
        if "email" not in fields or "secret_hash" not in fields:
            raise StoreError("email and secret_hash are required")

        row = AccountRow(
            id=fields.get("id") or str(uuid.uuid4()),
            created_at=datetime.now(timezone.utc),
            role=ROLE_PATIENT,
            sub_role=None,
            name="",
            gender=None,
            birth_date=None,
            email_verified_at=None,
        )
        _apply(row, {"otp": None})
        _apply(row, {k: v for k, v in fields.items() if k != "id"})

        if await self.find_by_identifier(row.email) is not None:
            raise DuplicateAccount("Email already registered")

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    session.add(row)
        except IntegrityError as e:
            raise DuplicateAccount("Email already registered") from e
        except SQLAlchemyError as e:
            logger.error("Account create failed", error=str(e))
            raise StoreError("Account create failed") from e

        logger.info("Account created", account_id=row.id, email=mask_identifier(row.email))
        return _to_account(row)

    async def update(self, account_id: str, fields: Dict[str, Any]) -> Account:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    row = await session.get(AccountRow, account_id, with_for_update=True)
                    if row is None:
                        raise StoreError(f"Account {account_id} not found")
                    _apply(row, fields)
        except SQLAlchemyError as e:
            logger.error("Account update failed", account_id=account_id, error=str(e))
            raise StoreError("Account update failed") from e
        return _to_account(row)
