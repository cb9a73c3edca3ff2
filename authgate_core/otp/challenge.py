"""
OTP Challenges
==============
Builds and checks verification challenges.

The digest is an HMAC keyed by a per-challenge salt over the account id and
the code, so a digest copied onto another account row never verifies.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta
from typing import Tuple

from ..models import OtpChallenge


def generate_code(length: int = 6) -> str:
    """Random numeric code, zero-padded to `length` digits."""
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def code_digest(account_id: str, code: str, salt: str) -> str:
    return hmac.new(
        salt.encode("utf-8"),
        f"{account_id}\x00{code}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def new_challenge(
    account_id: str,
    length: int,
    ttl_seconds: int,
    now: datetime,
) -> Tuple[str, OtpChallenge]:
    """
    Create a challenge for an account.

    Returns:
        (plaintext code, challenge). Only the challenge is persisted.
    """
    code = generate_code(length)
    salt = secrets.token_hex(16)
    challenge = OtpChallenge(
        code_hash=code_digest(account_id, code, salt),
        salt=salt,
        expires_at=now + timedelta(seconds=ttl_seconds),
        issued_at=now,
    )
    return code, challenge


def challenge_matches(challenge: OtpChallenge, account_id: str, submitted: str) -> bool:
    """
    Constant-time check of a submitted code.

    The submitted string is used as-is: " 123456" never matches "123456".
    """
    expected = code_digest(account_id, submitted, challenge.salt)
    return hmac.compare_digest(expected, challenge.code_hash)
