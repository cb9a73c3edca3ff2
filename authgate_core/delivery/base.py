"""
OTP Delivery Contract
=====================
Anything that can put a code in front of the user.
"""

from typing import List, Protocol, Tuple
import structlog

from ..logs import mask_identifier

logger = structlog.get_logger(__name__)


class OtpSender(Protocol):
    """
    Delivers a verification code to a destination (email, phone, ...).

    Raises DeliveryError on failure. Callers bound each call with a timeout.
    """

    async def send(self, destination: str, code: str) -> None:
        ...


class LoggingOtpSender:
    """
    Development sender: logs that a code went out and keeps it in memory.

    The code itself is only kept in `outbox`, never written to the log.
    """

    def __init__(self):
        self.outbox: List[Tuple[str, str]] = []

    async def send(self, destination: str, code: str) -> None:
        self.outbox.append((destination, code))
        logger.info("OTP delivered (dev sender)", destination=mask_identifier(destination))

    def last_code_for(self, destination: str) -> str:
        for sent_to, code in reversed(self.outbox):
            if sent_to == destination:
                return code
        raise KeyError(destination)
