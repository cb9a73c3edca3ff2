"""
Account Store Contract
======================
Persistence interface the auth core consumes.
"""

from typing import Any, Dict, Optional, Protocol

from ..models import Account


class AccountStore(Protocol):
    """
    Persistence for accounts. Every method may raise StoreError.

    update() applies all given fields in one atomic write.
    """

    async def find_by_identifier(self, identifier: str) -> Optional[Account]:
        ...

    async def find_by_id(self, account_id: str) -> Optional[Account]:
        ...

    async def create(self, fields: Dict[str, Any]) -> Account:
        ...

    async def update(self, account_id: str, fields: Dict[str, Any]) -> Account:
        ...
