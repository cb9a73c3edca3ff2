"""
OTP Generation and Verification
================================
Time-boxed email verification codes with transactional delivery.
"""

from ..models import OtpChallenge
from .models import OtpConfig, OtpIssue, VerificationState
from .challenge import challenge_matches, code_digest, generate_code, new_challenge
from .manager import OtpLifecycleManager

__all__ = [
    # Models
    "OtpConfig",
    "OtpChallenge",
    "OtpIssue",
    "VerificationState",
    # Challenges
    "generate_code",
    "code_digest",
    "new_challenge",
    "challenge_matches",
    # Manager
    "OtpLifecycleManager",
]
