"""
Core Models
===========
Account and OTP challenge records shared by every component.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

# Roles
ROLE_PATIENT = "pasien"
ROLE_EXPERT = "tenaga ahli"
ROLE_ADMIN = "admin"

# Admin sub-roles
ADMIN_SUPERADMIN = "superadmin"
ADMIN_CONTENT = "content admin"


@dataclass(frozen=True)
class OtpChallenge:
    """
    A pending verification code.

    Only the salted digest is kept; the plaintext exists once, when issued.
    """
    code_hash: str
    salt: str
    expires_at: datetime
    issued_at: datetime

    def is_expired(self, now: datetime) -> bool:
        # Valid through the exact expiry instant.
        return now > self.expires_at


@dataclass
class Account:
    """A user account as seen by the auth core."""
    id: str
    email: str
    secret_hash: str
    role: str = ROLE_PATIENT
    sub_role: Optional[str] = None
    name: str = ""
    gender: Optional[str] = None
    birth_date: Optional[date] = None
    email_verified_at: Optional[datetime] = None
    otp: Optional[OtpChallenge] = None
    created_at: Optional[datetime] = None

    @property
    def is_verified(self) -> bool:
        return self.email_verified_at is not None
