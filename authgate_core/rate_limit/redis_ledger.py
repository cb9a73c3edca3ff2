"""
Redis Attempt Ledger
====================
Redis-backed attempt ledger. The failure push is a Lua script so the
read-modify-write stays atomic across workers.
"""

from datetime import datetime, timezone
from typing import Optional
import structlog
from redis.exceptions import RedisError

from ..clock import Clock, SystemClock
from ..logs import mask_identifier
from .ledger import seconds_until

logger = structlog.get_logger(__name__)

# Timestamps are unix seconds taken from the injected clock, passed as ARGV.
RECORD_FAILURE_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local threshold = tonumber(ARGV[2])
local decay = tonumber(ARGV[3])

local count = tonumber(redis.call('HGET', key, 'count') or '0')
local expires_at = tonumber(redis.call('HGET', key, 'expires_at') or '0')
local blocked_until = tonumber(redis.call('HGET', key, 'blocked_until') or '0')

local stale
if blocked_until > 0 then
    stale = now >= blocked_until
else
    stale = now >= expires_at
end

if stale then
    count = 0
    blocked_until = 0
    expires_at = now + decay
end

count = count + 1
if count >= threshold and blocked_until == 0 then
    blocked_until = now + decay
end

redis.call('HSET', key, 'count', count, 'expires_at', tostring(expires_at), 'blocked_until', tostring(blocked_until))
redis.call('EXPIRE', key, math.ceil(math.max(blocked_until, expires_at) - now) + 1)

return {count, tostring(blocked_until)}
"""


def _as_float(value) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bytes):
        value = value.decode()
    return float(value)


def _as_datetime(timestamp: float) -> Optional[datetime]:
    if timestamp <= 0:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


class RedisAttemptLedger:
    """
    Attempt ledger stored in Redis hashes (count, expires_at, blocked_until).

    Backend errors are logged and treated as "not blocked" so an outage
    never locks every user out.
    """

    def __init__(self, redis_client, clock: Optional[Clock] = None, prefix: str = "authgate:throttle"):
        """
        Args:
            redis_client: Async Redis client
            clock: Time source
            prefix: Key namespace
        """
        self.redis = redis_client
        self.clock = clock or SystemClock()
        self.prefix = prefix
        self._script_sha: Optional[str] = None

    def get_key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def _ensure_script(self) -> str:
        """Load Lua script into Redis if needed."""
        if self._script_sha is None:
            self._script_sha = await self.redis.script_load(RECORD_FAILURE_SCRIPT)
        return self._script_sha

    async def _read(self, key: str):
        count, expires_at, blocked_until = await self.redis.hmget(
            self.get_key(key), "count", "expires_at", "blocked_until"
        )
        return (
            int(_as_float(count)),
            _as_datetime(_as_float(expires_at)),
            _as_datetime(_as_float(blocked_until)),
        )

    async def record_failure(self, key: str, threshold: int, decay_seconds: int) -> int:
        now = self.clock.now()
        try:
            script_sha = await self._ensure_script()
            count, blocked_until = await self.redis.evalsha(
                script_sha,
                1,
                self.get_key(key),
                now.timestamp(),
                threshold,
                decay_seconds,
            )
        except RedisError as e:
            logger.error("Attempt ledger write failed", key=mask_identifier(key), error=str(e))
            return 0

        count = int(count)
        if count == threshold:
            logger.warning(
                "Throttle key blocked",
                key=mask_identifier(key),
                attempts=count,
                blocked_until=_as_float(blocked_until),
            )
        return count

    async def reset(self, key: str) -> None:
        try:
            await self.redis.delete(self.get_key(key))
        except RedisError as e:
            logger.error("Attempt ledger reset failed", key=mask_identifier(key), error=str(e))

    async def is_blocked(self, key: str, threshold: int) -> bool:
        now = self.clock.now()
        try:
            count, expires_at, blocked_until = await self._read(key)
        except RedisError as e:
            logger.error("Attempt ledger read failed", key=mask_identifier(key), error=str(e))
            return False

        if blocked_until is not None:
            return now < blocked_until
        return expires_at is not None and now < expires_at and count >= threshold

    async def retry_after(self, key: str) -> int:
        now = self.clock.now()
        try:
            _, expires_at, blocked_until = await self._read(key)
        except RedisError as e:
            logger.error("Attempt ledger read failed", key=mask_identifier(key), error=str(e))
            return 0
        return seconds_until(blocked_until or expires_at, now)

    async def attempts(self, key: str) -> int:
        now = self.clock.now()
        try:
            count, expires_at, blocked_until = await self._read(key)
        except RedisError as e:
            logger.error("Attempt ledger read failed", key=mask_identifier(key), error=str(e))
            return 0
        live_until = blocked_until or expires_at
        if live_until is None or now >= live_until:
            return 0
        return count
