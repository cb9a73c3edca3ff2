"""
Account Stores
==============
Store contract with in-memory and SQLAlchemy implementations.
"""

from .base import AccountStore
from .memory import InMemoryAccountStore
from .sql import SqlAccountStore, AccountRow

__all__ = [
    "AccountStore",
    "InMemoryAccountStore",
    "SqlAccountStore",
    "AccountRow",
]
