"""
HTTP OTP Sender
===============
Posts verification codes to a mail/SMS relay service over HTTP.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type, before_sleep_log

from ..errors import DeliveryError
from ..logs import mask_identifier

logger = logging.getLogger(__name__)


@dataclass
class HttpSenderConfig:
    """Connection settings for the delivery relay."""
    url: str = os.environ.get("AUTHGATE_OTP_SENDER_URL", "http://localhost:8025/api/send")
    api_key: str = os.environ.get("AUTHGATE_OTP_SENDER_API_KEY", "")
    subject: str = os.environ.get("AUTHGATE_OTP_SUBJECT", "Your verification code")
    timeout: float = 5.0


class HttpOtpSender:
    """
    Delivery through an HTTP relay.

    Transport errors are retried once; HTTP error statuses are not. The
    caller's overall timeout still bounds the whole call.
    """

    def __init__(
        self,
        config: Optional[HttpSenderConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or HttpSenderConfig()

        self.headers = {
            "User-Agent": "AuthGate-OTP-Sender",
            "Accept": "application/json",
        }
        if self.config.api_key:
            self.headers["Authorization"] = f"Bearer {self.config.api_key}"

        self.client = client or httpx.AsyncClient(timeout=self.config.timeout)

    async def aclose(self):
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def send(self, destination: str, code: str) -> None:
        payload = {
            "to": destination,
            "subject": self.config.subject,
            "code": code,
        }
        try:
            await self._post(payload)
        except httpx.HTTPStatusError as e:
            logger.warning(
                "OTP relay rejected delivery to %s: HTTP %s",
                mask_identifier(destination),
                e.response.status_code,
            )
            raise DeliveryError(f"Relay returned HTTP {e.response.status_code}", destination) from e
        except httpx.HTTPError as e:
            logger.warning("OTP relay unreachable for %s: %s", mask_identifier(destination), e)
            raise DeliveryError(f"Relay unreachable: {e}", destination) from e

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _post(self, payload: Dict[str, Any]) -> None:
        response = await self.client.post(self.config.url, json=payload, headers=self.headers)
        response.raise_for_status()
