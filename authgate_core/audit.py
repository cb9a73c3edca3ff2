"""
Auth Audit Trail
================
Append-only, hash-chained record of authentication events.

Each event's hash covers the previous event's hash, so any edit or
deletion inside a flushed batch is detectable with verify_chain().
"""

import hashlib
import json
import uuid
from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import structlog

from .clock import Clock, SystemClock

logger = structlog.get_logger(__name__)


class AuthEventType(str, Enum):
    """Authentication events recorded by the flows."""
    LOGIN = "auth.login"
    LOGIN_FAILED = "auth.failed"
    LOGOUT = "auth.logout"
    RATE_LIMIT_HIT = "security.rate_limit"
    ACCOUNT_CREATED = "user.created"
    VERIFY_STARTED = "verify.started"
    VERIFY_COMPLETED = "verify.completed"
    VERIFY_FAILED = "verify.failed"


@dataclass
class AuditEvent:
    """One link of the audit chain."""
    id: str
    timestamp: datetime
    event_type: str
    outcome: str  # "success", "failure", "blocked"
    actor_id: Optional[str]
    ip_address: Optional[str]
    hash: str
    previous_hash: Optional[str]
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["timestamp"] = self.timestamp.isoformat()
        return d


def event_hash(
    previous_hash: Optional[str],
    timestamp: datetime,
    event_type: str,
    outcome: str,
    actor_id: Optional[str],
    payload: Dict[str, Any],
) -> str:
    """SHA-256 over the canonical JSON of the event and its predecessor's hash."""
    hash_input = json.dumps({
        "previous_hash": previous_hash,
        "timestamp": timestamp.isoformat(),
        "event_type": event_type,
        "outcome": outcome,
        "actor_id": actor_id,
        "payload": payload,
    }, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(hash_input.encode()).hexdigest()


def verify_chain(events: List[AuditEvent]) -> Tuple[bool, Optional[int]]:
    """
    Check hashes and linkage of a batch of events in order.

    Returns:
        (is_valid, index of the first bad event or None)
    """
    previous: Optional[str] = events[0].previous_hash if events else None
    for i, event in enumerate(events):
        if event.previous_hash != previous:
            logger.warning("Audit chain linkage broken", event_id=event.id, index=i)
            return False, i
        expected = event_hash(
            event.previous_hash,
            event.timestamp,
            event.event_type,
            event.outcome,
            event.actor_id,
            event.payload,
        )
        if event.hash != expected:
            logger.warning("Audit chain integrity violation", event_id=event.id, index=i)
            return False, i
        previous = event.hash
    return True, None


class AuditTrail:
    """Buffers hash-chained events until the embedding service flushes them."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self._previous_hash: Optional[str] = None
        self._buffer: List[AuditEvent] = []

    def record(
        self,
        event_type: AuthEventType,
        outcome: str = "success",
        actor_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        **payload: Any,
    ) -> AuditEvent:
        timestamp = self.clock.now()
        digest = event_hash(
            self._previous_hash, timestamp, event_type.value, outcome, actor_id, payload
        )
        event = AuditEvent(
            id=str(uuid.uuid4()),
            timestamp=timestamp,
            event_type=event_type.value,
            outcome=outcome,
            actor_id=actor_id,
            ip_address=ip_address,
            hash=digest,
            previous_hash=self._previous_hash,
            payload=payload,
        )
        self._previous_hash = digest
        self._buffer.append(event)

        logger.info(
            "Audit event recorded",
            event_type=event.event_type,
            outcome=outcome,
            actor_id=actor_id,
        )
        return event

    @property
    def events(self) -> List[AuditEvent]:
        return list(self._buffer)

    def flush(self) -> List[AuditEvent]:
        """Return and clear buffered events. The chain continues across flushes."""
        events = self._buffer
        self._buffer = []
        return events
