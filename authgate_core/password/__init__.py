"""
Password Hashing
================
Async-safe secret hashing using Argon2id, with bcrypt hashes accepted for
migration and upgraded on login.
"""

from .hasher import (
    Argon2SecretHasher,
    SecretHasher,
    build_password_hasher,
    BCRYPT_PREFIXES,
)

__all__ = [
    "Argon2SecretHasher",
    "SecretHasher",
    "build_password_hasher",
    "BCRYPT_PREFIXES",
]
