"""
Attempt Ledger
==============
In-memory failed-attempt ledger with per-key locking and decay.

For a single process. Use RedisAttemptLedger when several workers
share the same throttle keys.
"""

import asyncio
import math
import weakref
from datetime import datetime, timedelta
from typing import Dict, Optional, Protocol
import structlog

from ..clock import Clock, SystemClock
from ..logs import mask_identifier
from .models import AttemptRecord

logger = structlog.get_logger(__name__)


class AttemptLedger(Protocol):
    """Contract shared by all ledger backends."""

    async def record_failure(self, key: str, threshold: int, decay_seconds: int) -> int:
        ...

    async def reset(self, key: str) -> None:
        ...

    async def is_blocked(self, key: str, threshold: int) -> bool:
        ...

    async def retry_after(self, key: str) -> int:
        ...

    async def attempts(self, key: str) -> int:
        ...


def seconds_until(moment: Optional[datetime], now: datetime) -> int:
    """Whole seconds from now until moment, rounded up, never negative."""
    if moment is None or moment <= now:
        return 0
    return math.ceil((moment - now).total_seconds())


class InMemoryAttemptLedger:
    """
    Keeps one AttemptRecord per throttle key.

    Every read-modify-write runs under that key's lock, so concurrent
    failures for the same key are never lost.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self._records: Dict[str, AttemptRecord] = {}
        # Entries vanish once no caller holds or waits on the lock.
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _current(self, key: str, now: datetime) -> Optional[AttemptRecord]:
        """Return the live record for key, dropping it if it has decayed."""
        record = self._records.get(key)
        if record is not None and record.is_stale(now):
            del self._records[key]
            return None
        return record

    async def record_failure(self, key: str, threshold: int, decay_seconds: int) -> int:
        """
        Count one failure against key.

        Args:
            key: Throttle key
            threshold: Failure count at which the key becomes blocked
            decay_seconds: Length of the counting window and of the block

        Returns:
            The failure count after this push
        """
        async with self._lock_for(key):
            now = self.clock.now()
            record = self._current(key, now)
            if record is None:
                record = AttemptRecord(
                    key=key,
                    expires_at=now + timedelta(seconds=decay_seconds),
                )
                self._records[key] = record

            record.count += 1
            if record.count >= threshold and record.blocked_until is None:
                record.blocked_until = now + timedelta(seconds=decay_seconds)
                logger.warning(
                    "Throttle key blocked",
                    key=mask_identifier(key),
                    attempts=record.count,
                    decay_seconds=decay_seconds,
                )
            return record.count

    async def reset(self, key: str) -> None:
        async with self._lock_for(key):
            self._records.pop(key, None)

    async def is_blocked(self, key: str, threshold: int) -> bool:
        """True while the key is inside a block, or has reached threshold in its window."""
        async with self._lock_for(key):
            now = self.clock.now()
            record = self._current(key, now)
            if record is None:
                return False
            if record.is_blocked(now):
                return True
            return record.count >= threshold

    async def retry_after(self, key: str) -> int:
        async with self._lock_for(key):
            now = self.clock.now()
            record = self._current(key, now)
            if record is None:
                return 0
            return seconds_until(record.blocked_until or record.expires_at, now)

    async def attempts(self, key: str) -> int:
        async with self._lock_for(key):
            record = self._current(key, self.clock.now())
            return record.count if record else 0

    def purge_expired(self) -> int:
        """Drop decayed records. Returns the number dropped."""
        now = self.clock.now()
        stale = [key for key, record in self._records.items() if record.is_stale(now)]
        for key in stale:
            del self._records[key]
        return len(stale)
