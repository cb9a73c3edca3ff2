"""
In-Memory Account Store
=======================
Dictionary-backed account store for development and testing.
"""

import asyncio
import dataclasses
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import structlog

from ..errors import DuplicateAccount, StoreError
from ..logs import mask_identifier
from ..models import Account

logger = structlog.get_logger(__name__)

_ACCOUNT_FIELDS = {f.name for f in dataclasses.fields(Account)}


class InMemoryAccountStore:
    """
    Keeps accounts in a dict keyed by id.

    Returned accounts are copies; mutate them through update().
    """

    def __init__(self):
        self._accounts: Dict[str, Account] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _check_fields(fields: Dict[str, Any]) -> None:
        unknown = set(fields) - _ACCOUNT_FIELDS
        if unknown:
            raise StoreError(f"Unknown account fields: {', '.join(sorted(unknown))}")

    async def find_by_identifier(self, identifier: str) -> Optional[Account]:
        wanted = identifier.lower()
        for account in self._accounts.values():
            if account.email.lower() == wanted:
                return dataclasses.replace(account)
        return None

    async def find_by_id(self, account_id: str) -> Optional[Account]:
        account = self._accounts.get(account_id)
        return dataclasses.replace(account) if account else None

    async def create(self, fields: Dict[str, Any]) -> Account:
        self._check_fields(fields)
        if "email" not in fields or "secret_hash" not in fields:
            raise StoreError("email and secret_hash are required")

        async with self._lock:
            if await self.find_by_identifier(fields["email"]) is not None:
                raise DuplicateAccount("Email already registered")

            values = {"created_at": datetime.now(timezone.utc), **fields}
            values["id"] = fields.get("id") or str(uuid.uuid4())
            account = Account(**values)
            self._accounts[account.id] = account

        logger.info("Account created", account_id=account.id, email=mask_identifier(account.email))
        return dataclasses.replace(account)

    async def update(self, account_id: str, fields: Dict[str, Any]) -> Account:
        self._check_fields(fields)
        if "id" in fields:
            raise StoreError("Account id cannot be changed")

        async with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                raise StoreError(f"Account {account_id} not found")
            updated = dataclasses.replace(account, **fields)
            self._accounts[account_id] = updated

        return dataclasses.replace(updated)
