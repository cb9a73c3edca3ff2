"""
OTP Models
==========
Configuration, state and result types for email verification codes.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class VerificationState(str, Enum):
    """Where an account stands in the verification lifecycle."""
    UNVERIFIED_NO_CHALLENGE = "unverified_no_challenge"
    UNVERIFIED_PENDING = "unverified_pending"
    VERIFIED = "verified"


@dataclass
class OtpConfig:
    """Configuration for OTP generation and delivery."""
    length: int = int(os.environ.get("AUTHGATE_OTP_LENGTH", "6"))
    ttl_seconds: int = int(os.environ.get("AUTHGATE_OTP_TTL_SECONDS", "300"))  # 5 minutes
    send_timeout: float = float(os.environ.get("AUTHGATE_OTP_SEND_TIMEOUT", "10"))


@dataclass(frozen=True)
class OtpIssue:
    """Outcome of issuing a code: when it expires and whether it was delivered."""
    expires_at: datetime
    delivered: bool
