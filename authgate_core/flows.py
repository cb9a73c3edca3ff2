"""
Auth Flow Orchestrator
======================
Login, registration bootstrap, OTP verification, resend and logout,
composed from the authenticator and the OTP lifecycle manager.

Collaborators are passed in explicitly; nothing here reads global state.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
import structlog
from pydantic import ValidationError

from .accounts.base import AccountStore
from .audit import AuditTrail, AuthEventType
from .authenticator import AuthOutcome, CredentialAuthenticator
from .clock import Clock, SystemClock
from .config import AuthGateConfig
from .delivery.base import OtpSender
from .errors import (
    DeliveryFailed,
    DuplicateAccount,
    InvalidCredentials,
    InvalidInput,
    OtpExpired,
    OtpMismatch,
    RateLimited,
    SessionRequired,
    StoreError,
    StoreUnavailable,
)
from .logs import mask_identifier
from .models import Account, ROLE_PATIENT
from .otp.manager import OtpLifecycleManager
from .otp.models import OtpIssue
from .password.hasher import Argon2SecretHasher, SecretHasher
from .rate_limit.ledger import AttemptLedger, InMemoryAttemptLedger
from .rate_limit.limiter import RateLimiter
from .schemas import LoginRequest, RegistrationRequest, describe_errors
from .sessions import InMemorySessionManager, Session, SessionManager

logger = structlog.get_logger(__name__)

OTP_SENT_MESSAGE = "A verification code has been sent to your email."
OTP_NOT_SENT_MESSAGE = (
    "We could not send the verification code, but your account has been "
    "created and you are signed in. Use resend to get a new code."
)


@dataclass
class LoginResult:
    account: Account
    session: Session
    destination: str


@dataclass
class RegistrationOutcome:
    account: Account
    session: Session
    delivered: bool
    message: str
    otp_expires_at: datetime


class AuthFlowOrchestrator:
    """
    The observable auth flows.

    Example:
        flows = AuthFlowOrchestrator(
            authenticator=authenticator,
            otp_manager=otp_manager,
            store=store,
            hasher=hasher,
            sessions=sessions,
            sender=sender,
        )
        result = await flows.login("alice@example.com", "s3cret!", origin="203.0.113.5")
    """

    def __init__(
        self,
        authenticator: CredentialAuthenticator,
        otp_manager: OtpLifecycleManager,
        store: AccountStore,
        hasher: SecretHasher,
        sessions: SessionManager,
        sender: OtpSender,
        config: Optional[AuthGateConfig] = None,
        audit: Optional[AuditTrail] = None,
        clock: Optional[Clock] = None,
    ):
        self.authenticator = authenticator
        self.otp_manager = otp_manager
        self.store = store
        self.hasher = hasher
        self.sessions = sessions
        self.sender = sender
        self.config = config or AuthGateConfig()
        self.clock = clock or SystemClock()
        self.audit = audit or AuditTrail(self.clock)

    def _require_session(self, session: Optional[Session]) -> str:
        """Account id bound to a live session, or SessionRequired."""
        stored = self.sessions.get(session.token) if session is not None else None
        if stored is None:
            raise SessionRequired()
        return stored.account_id

    async def login(self, email: str, password: str, origin: str) -> LoginResult:
        """
        Raises:
            InvalidInput: Malformed email or empty password
            RateLimited: Too many failures for this email and origin
            InvalidCredentials: Unknown email or wrong password
            StoreUnavailable: Account store failed
        """
        try:
            request = LoginRequest(email=email, password=password)
        except ValidationError as e:
            raise InvalidInput(errors=describe_errors(e)) from e

        try:
            decision = await self.authenticator.authenticate(
                request.email, request.password, origin
            )
        except StoreError as e:
            logger.error("Login failed on account store", error=str(e))
            raise StoreUnavailable() from e

        if decision.outcome == AuthOutcome.BLOCKED:
            self.audit.record(
                AuthEventType.RATE_LIMIT_HIT,
                outcome="blocked",
                ip_address=origin,
                identifier=mask_identifier(request.email),
            )
            raise RateLimited(retry_after=decision.retry_after or 0)

        if decision.outcome == AuthOutcome.REJECTED:
            self.audit.record(
                AuthEventType.LOGIN_FAILED,
                outcome="failure",
                ip_address=origin,
                identifier=mask_identifier(request.email),
            )
            raise InvalidCredentials()

        account = decision.account
        destination = self.config.routes.destination_for(account.role, account.sub_role)
        self.audit.record(AuthEventType.LOGIN, actor_id=account.id, ip_address=origin)
        return LoginResult(account=account, session=decision.session, destination=destination)

    async def register(self, fields: Dict[str, Any], origin: Optional[str] = None) -> RegistrationOutcome:
        """
        Create a patient account, send the first code best-effort and sign in.

        A failed delivery does not fail registration; the outcome says so.

        Raises:
            InvalidInput: Invalid fields or email already registered
            StoreUnavailable: Account store failed
        """
        try:
            request = RegistrationRequest(**fields)
        except ValidationError as e:
            raise InvalidInput(errors=describe_errors(e)) from e

        secret_hash = await self.hasher.hash(request.password)
        try:
            account = await self.store.create({
                "email": request.email,
                "secret_hash": secret_hash,
                "role": ROLE_PATIENT,
                "name": request.name,
                "gender": request.gender,
                "birth_date": request.birth_date,
            })
        except DuplicateAccount as e:
            raise InvalidInput(
                "This email is already registered.",
                errors=[{"field": "email", "message": "already registered"}],
            ) from e
        except StoreError as e:
            logger.error("Registration failed on account store", error=str(e))
            raise StoreUnavailable() from e

        self.audit.record(AuthEventType.ACCOUNT_CREATED, actor_id=account.id, ip_address=origin)

        try:
            issue = await self.otp_manager.issue_and_send(account, self.sender, strict=False)
        except StoreError as e:
            logger.error("Storing first OTP failed", account_id=account.id, error=str(e))
            raise StoreUnavailable() from e

        self.audit.record(
            AuthEventType.VERIFY_STARTED,
            outcome="success" if issue.delivered else "failure",
            actor_id=account.id,
            ip_address=origin,
        )

        session = self.sessions.start(account)
        return RegistrationOutcome(
            account=account,
            session=session,
            delivered=issue.delivered,
            message=OTP_SENT_MESSAGE if issue.delivered else OTP_NOT_SENT_MESSAGE,
            otp_expires_at=issue.expires_at,
        )

    async def verify_otp(self, session: Optional[Session], code: str) -> Account:
        """
        Raises:
            SessionRequired: No live session
            InvalidInput: Code of the wrong length
            OtpMismatch, OtpExpired, AlreadyVerified: From the lifecycle manager
            StoreUnavailable: Account store failed
        """
        account_id = self._require_session(session)
        if not isinstance(code, str) or len(code) != self.otp_manager.config.length:
            raise InvalidInput(
                f"The verification code must be {self.otp_manager.config.length} characters."
            )

        try:
            account = await self.otp_manager.verify(account_id, code)
        except (OtpMismatch, OtpExpired) as e:
            self.audit.record(
                AuthEventType.VERIFY_FAILED, outcome="failure", actor_id=account_id, reason=e.code
            )
            raise
        except StoreError as e:
            logger.error("OTP verification failed on account store", account_id=account_id, error=str(e))
            raise StoreUnavailable() from e

        self.audit.record(AuthEventType.VERIFY_COMPLETED, actor_id=account_id)
        return account

    async def resend_otp(self, session: Optional[Session]) -> OtpIssue:
        """
        Raises:
            SessionRequired: No live session
            AlreadyVerified: Nothing left to verify
            DeliveryFailed: Code not delivered; previous code still valid
            StoreUnavailable: Account store failed
        """
        account_id = self._require_session(session)
        try:
            issue = await self.otp_manager.resend(account_id, self.sender)
        except DeliveryFailed:
            self.audit.record(
                AuthEventType.VERIFY_STARTED, outcome="failure", actor_id=account_id
            )
            raise
        except StoreError as e:
            logger.error("OTP resend failed on account store", account_id=account_id, error=str(e))
            raise StoreUnavailable() from e

        self.audit.record(AuthEventType.VERIFY_STARTED, actor_id=account_id)
        return issue

    async def logout(self, session: Optional[Session]) -> None:
        if session is None:
            return
        account_id = session.account_id
        self.sessions.invalidate(session)
        self.sessions.regenerate_token(session)
        self.audit.record(AuthEventType.LOGOUT, actor_id=account_id)

    async def verification_notice(self, session: Optional[Session]) -> Optional[datetime]:
        """Expiry of the pending code for the signed-in account, if one is pending."""
        account_id = self._require_session(session)
        try:
            account = await self.store.find_by_id(account_id)
        except StoreError as e:
            raise StoreUnavailable() from e
        if account is None:
            raise SessionRequired()
        return self.otp_manager.pending_expiry(account)


def build_orchestrator(
    store: AccountStore,
    sender: OtpSender,
    ledger: Optional[AttemptLedger] = None,
    hasher: Optional[SecretHasher] = None,
    sessions: Optional[SessionManager] = None,
    config: Optional[AuthGateConfig] = None,
    clock: Optional[Clock] = None,
) -> AuthFlowOrchestrator:
    """
    Wire the default collaborators around a store and a sender.

    Usage:
        flows = build_orchestrator(InMemoryAccountStore(), LoggingOtpSender())
    """
    config = config or AuthGateConfig()
    clock = clock or SystemClock()
    hasher = hasher or Argon2SecretHasher()
    sessions = sessions or InMemorySessionManager(clock)
    limiter = RateLimiter(ledger or InMemoryAttemptLedger(clock), config.throttle)

    return AuthFlowOrchestrator(
        authenticator=CredentialAuthenticator(store, hasher, limiter, sessions),
        otp_manager=OtpLifecycleManager(store, clock, config.otp),
        store=store,
        hasher=hasher,
        sessions=sessions,
        sender=sender,
        config=config,
        audit=AuditTrail(clock),
        clock=clock,
    )
