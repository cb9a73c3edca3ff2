"""
Rate Limit Models
=================
Throttle keys, attempt records and limiter policy.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


def throttle_key(identifier: str, origin: str) -> str:
    """Build the throttle key for a login identifier and caller address."""
    return f"{identifier.lower()}|{origin}"


@dataclass
class ThrottlePolicy:
    """How many failures a key may accumulate and how long a block lasts."""
    max_attempts: int = int(os.environ.get("AUTHGATE_LOGIN_MAX_ATTEMPTS", "3"))
    decay_seconds: int = int(os.environ.get("AUTHGATE_LOGIN_DECAY_SECONDS", "600"))


@dataclass
class AttemptRecord:
    """Failed-attempt bookkeeping for one throttle key."""
    key: str
    count: int = 0
    blocked_until: Optional[datetime] = None
    expires_at: Optional[datetime] = None  # end of the current decay window

    def is_blocked(self, now: datetime) -> bool:
        return self.blocked_until is not None and now < self.blocked_until

    def is_stale(self, now: datetime) -> bool:
        """True once neither the block nor the counting window applies."""
        if self.blocked_until is not None:
            return now >= self.blocked_until
        return self.expires_at is None or now >= self.expires_at
