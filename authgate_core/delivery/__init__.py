"""
OTP Delivery
============
Sender contract plus development and HTTP relay senders.
"""

from .base import OtpSender, LoggingOtpSender
from .http_sender import HttpOtpSender, HttpSenderConfig

__all__ = [
    "OtpSender",
    "LoggingOtpSender",
    "HttpOtpSender",
    "HttpSenderConfig",
]
