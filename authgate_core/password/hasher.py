"""
Password Hasher
===============
Argon2id secret hasher with legacy bcrypt verification.

New secrets are hashed with Argon2id. bcrypt hashes ($2a$/$2b$/$2y$, as
written by older PHP and Django stacks) still verify and are reported as
needing a rehash, so they upgrade transparently on the next login.
"""

import asyncio
from typing import Optional, Protocol

import bcrypt
from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


class SecretHasher(Protocol):
    async def hash(self, plain: str) -> str:
        ...

    async def verify(self, plain: str, hashed: str) -> bool:
        ...

    def needs_rehash(self, hashed: str) -> bool:
        ...


def build_password_hasher(
    time_cost: int = 3,
    memory_cost: int = 65536,
    parallelism: int = 4,
) -> PasswordHasher:
    """Argon2id hasher; defaults take roughly 300ms on a typical server."""
    return PasswordHasher(
        time_cost=time_cost,
        memory_cost=memory_cost,  # KiB
        parallelism=parallelism,
        hash_len=32,
        salt_len=16,
        type=Type.ID,
    )


class Argon2SecretHasher:
    """Runs hashing in the default executor so the event loop never blocks."""

    def __init__(self, password_hasher: Optional[PasswordHasher] = None):
        self.password_hasher = password_hasher or build_password_hasher()

    async def hash(self, plain: str) -> str:
        if not plain:
            raise ValueError("Password cannot be empty")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.password_hasher.hash, plain)

    async def verify(self, plain: str, hashed: str) -> bool:
        if not plain or not hashed:
            return False
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.verify_sync, plain, hashed)

    def verify_sync(self, plain: str, hashed: str) -> bool:
        if hashed.startswith("$argon2"):
            try:
                return self.password_hasher.verify(hashed, plain)
            except (VerifyMismatchError, VerificationError, InvalidHashError):
                return False
        if hashed.startswith(BCRYPT_PREFIXES):
            try:
                # PHP writes $2y$, which the bcrypt package reads as $2b$.
                return bcrypt.checkpw(
                    plain.encode("utf-8"),
                    hashed.replace("$2y$", "$2b$", 1).encode("utf-8"),
                )
            except ValueError:
                return False
        return False

    def needs_rehash(self, hashed: str) -> bool:
        """
        Whether a hash should be recomputed after a successful verify.

        True for bcrypt, for Argon2 hashes with outdated parameters and for
        unknown formats.
        """
        if not hashed or not hashed.startswith("$argon2"):
            return True
        try:
            return self.password_hasher.check_needs_rehash(hashed)
        except InvalidHashError:
            return True
