"""
AuthGate Errors
===============
Error kinds raised across the authentication core.

User-visible messages are generic: they never reveal attempt
counts or whether an identifier exists.
"""

from typing import Optional


class AuthGateError(Exception):
    """Base exception for all authentication flow errors."""

    code = "AUTH_ERROR"
    message = "Authentication error"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        self.message = message or self.message
        self.code = code or self.code
        super().__init__(self.message)


class RateLimited(AuthGateError):
    """Too many failed attempts for a throttle key."""

    code = "RATE_LIMITED"
    message = "Too many login attempts. Please try again later."

    def __init__(self, retry_after: int = 0, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(message)


class InvalidCredentials(AuthGateError):
    code = "INVALID_CREDENTIALS"
    message = "Invalid credentials."


class OtpMismatch(AuthGateError):
    code = "OTP_MISMATCH"
    message = "The verification code does not match."


class OtpExpired(AuthGateError):
    code = "OTP_EXPIRED"
    message = "The verification code has expired. Request a new code."


class AlreadyVerified(AuthGateError):
    code = "ALREADY_VERIFIED"
    message = "This account is already verified."


class DeliveryFailed(AuthGateError):
    code = "DELIVERY_FAILED"
    message = "Failed to send the verification code. Please try again."


class StoreUnavailable(AuthGateError):
    code = "STORE_UNAVAILABLE"
    message = "Service temporarily unavailable. Please try again later."


class SessionRequired(AuthGateError):
    code = "SESSION_REQUIRED"
    message = "Authentication required."


class InvalidInput(AuthGateError):
    code = "INVALID_INPUT"
    message = "Invalid input."

    def __init__(self, message: Optional[str] = None, errors: Optional[list] = None):
        self.errors = errors or []
        super().__init__(message)


# Collaborator errors

class StoreError(Exception):
    """Raised by account stores on any backend failure."""
    pass


class DuplicateAccount(StoreError):
    """Raised when creating an account whose email is already taken."""
    pass


class DeliveryError(Exception):
    """Raised by OTP senders when a code could not be delivered."""

    def __init__(self, message: str, destination: Optional[str] = None):
        self.destination = destination
        super().__init__(message)
