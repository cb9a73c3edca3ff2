"""
Login Rate Limiting
===================
Failed-attempt ledgers (in-memory and Redis) and the policy limiter on top.
"""

from .models import AttemptRecord, ThrottlePolicy, throttle_key
from .ledger import AttemptLedger, InMemoryAttemptLedger
from .redis_ledger import RedisAttemptLedger, RECORD_FAILURE_SCRIPT
from .limiter import RateLimiter

__all__ = [
    # Models
    "AttemptRecord",
    "ThrottlePolicy",
    "throttle_key",
    # Ledgers
    "AttemptLedger",
    "InMemoryAttemptLedger",
    "RedisAttemptLedger",
    # Limiter
    "RateLimiter",
    # Scripts
    "RECORD_FAILURE_SCRIPT",
]
