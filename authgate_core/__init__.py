"""
AuthGate Core Library
=====================
Login rate limiting, credential checks and email OTP verification for
account-based web services.
"""

__version__ = "0.1.0"

# Errors
from authgate_core.errors import (
    AuthGateError,
    RateLimited,
    InvalidCredentials,
    OtpMismatch,
    OtpExpired,
    AlreadyVerified,
    DeliveryFailed,
    StoreUnavailable,
    SessionRequired,
    InvalidInput,
    StoreError,
    DuplicateAccount,
    DeliveryError,
)

# Models
from authgate_core.models import (
    Account,
    OtpChallenge,
    ROLE_PATIENT,
    ROLE_EXPERT,
    ROLE_ADMIN,
    ADMIN_SUPERADMIN,
    ADMIN_CONTENT,
)

# Clock
from authgate_core.clock import Clock, SystemClock

# Logging
from authgate_core.logs import setup_logging, mask_identifier

# Rate Limiting
from authgate_core.rate_limit import (
    AttemptLedger,
    InMemoryAttemptLedger,
    RedisAttemptLedger,
    RateLimiter,
    ThrottlePolicy,
    throttle_key,
)

# OTP
from authgate_core.otp import (
    OtpConfig,
    OtpIssue,
    OtpLifecycleManager,
    VerificationState,
    generate_code,
)

# Accounts
from authgate_core.accounts import AccountStore, InMemoryAccountStore, SqlAccountStore

# Password Hashing
from authgate_core.password import Argon2SecretHasher, SecretHasher, build_password_hasher

# Delivery
from authgate_core.delivery import OtpSender, LoggingOtpSender, HttpOtpSender, HttpSenderConfig

# Sessions
from authgate_core.sessions import Session, SessionManager, InMemorySessionManager

# Audit
from authgate_core.audit import AuditTrail, AuditEvent, AuthEventType, verify_chain

# Authenticator
from authgate_core.authenticator import CredentialAuthenticator, AuthDecision, AuthOutcome

# Flows
from authgate_core.config import AuthGateConfig, RoleRoutes
from authgate_core.flows import (
    AuthFlowOrchestrator,
    LoginResult,
    RegistrationOutcome,
    build_orchestrator,
)

__all__ = [
    # Errors
    "AuthGateError",
    "RateLimited",
    "InvalidCredentials",
    "OtpMismatch",
    "OtpExpired",
    "AlreadyVerified",
    "DeliveryFailed",
    "StoreUnavailable",
    "SessionRequired",
    "InvalidInput",
    "StoreError",
    "DuplicateAccount",
    "DeliveryError",
    # Models
    "Account",
    "OtpChallenge",
    "ROLE_PATIENT",
    "ROLE_EXPERT",
    "ROLE_ADMIN",
    "ADMIN_SUPERADMIN",
    "ADMIN_CONTENT",
    # Clock
    "Clock",
    "SystemClock",
    # Logging
    "setup_logging",
    "mask_identifier",
    # Rate Limiting
    "AttemptLedger",
    "InMemoryAttemptLedger",
    "RedisAttemptLedger",
    "RateLimiter",
    "ThrottlePolicy",
    "throttle_key",
    # OTP
    "OtpConfig",
    "OtpIssue",
    "OtpLifecycleManager",
    "VerificationState",
    "generate_code",
    # Accounts
    "AccountStore",
    "InMemoryAccountStore",
    "SqlAccountStore",
    # Password Hashing
    "Argon2SecretHasher",
    "SecretHasher",
    "build_password_hasher",
    # Delivery
    "OtpSender",
    "LoggingOtpSender",
    "HttpOtpSender",
    "HttpSenderConfig",
    # Sessions
    "Session",
    "SessionManager",
    "InMemorySessionManager",
    # Audit
    "AuditTrail",
    "AuditEvent",
    "AuthEventType",
    "verify_chain",
    # Authenticator
    "CredentialAuthenticator",
    "AuthDecision",
    "AuthOutcome",
    # Flows
    "AuthGateConfig",
    "RoleRoutes",
    "AuthFlowOrchestrator",
    "LoginResult",
    "RegistrationOutcome",
    "build_orchestrator",
]
