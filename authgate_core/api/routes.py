"""
Auth Router
===========
FastAPI endpoints over the auth flows.

Responses:
    POST /login          303 -> role destination | 429 | 401 | 422
    POST /register       303 -> verification notice (X-Otp-Delivery: sent|failed)
    POST /verify-otp     303 -> post-verification page | 400 | 410 | 409
    POST /resend-otp     200 | 502
    POST /logout         303 -> login page
    GET  /verification-notice  {"otp_expires_at": unix seconds | null}
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from ..errors import (
    AlreadyVerified,
    AuthGateError,
    DeliveryFailed,
    InvalidCredentials,
    InvalidInput,
    OtpExpired,
    OtpMismatch,
    RateLimited,
    SessionRequired,
    StoreUnavailable,
)
from ..flows import AuthFlowOrchestrator
from ..sessions import Session


STATUS_BY_ERROR = {
    RateLimited: 429,
    InvalidCredentials: 401,
    SessionRequired: 401,
    OtpMismatch: 400,
    OtpExpired: 410,
    AlreadyVerified: 409,
    InvalidInput: 422,
    DeliveryFailed: 502,
    StoreUnavailable: 503,
}


class LoginBody(BaseModel):
    email: str = ""
    password: str = ""


class RegisterBody(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""
    gender: Optional[str] = None
    birth_date: Optional[date] = None


class VerifyBody(BaseModel):
    otp_code: str = ""


def error_response(exc: AuthGateError) -> JSONResponse:
    """Map an auth error to a JSON response with a stable code."""
    status_code = STATUS_BY_ERROR.get(type(exc), 400)
    content = {"error": exc.code, "message": exc.message}
    headers = {}

    if isinstance(exc, InvalidInput) and exc.errors:
        content["errors"] = exc.errors
    if isinstance(exc, RateLimited) and exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)

    return JSONResponse(status_code=status_code, content=content, headers=headers)


def create_auth_router(flows: AuthFlowOrchestrator, prefix: str = "") -> APIRouter:
    """
    Build the auth router for an orchestrator.

    Usage:
        app.include_router(create_auth_router(flows))
    """
    router = APIRouter(prefix=prefix, tags=["auth"])
    config = flows.config

    def current_session(request: Request) -> Optional[Session]:
        token = request.cookies.get(config.session_cookie)
        return flows.sessions.get(token) if token else None

    def with_session_cookie(response, session: Session):
        response.set_cookie(
            key=config.session_cookie,
            value=session.token,
            httponly=True,
            samesite="lax",
            secure=config.secure_cookies,
        )
        return response

    @router.post("/login")
    async def login(request: Request, body: LoginBody):
        origin = request.client.host if request.client else "unknown"
        try:
            result = await flows.login(body.email, body.password, origin)
        except AuthGateError as e:
            return error_response(e)

        response = RedirectResponse(result.destination, status_code=303)
        return with_session_cookie(response, result.session)

    @router.post("/register")
    async def register(request: Request, body: RegisterBody):
        origin = request.client.host if request.client else None
        try:
            outcome = await flows.register(body.model_dump(), origin=origin)
        except AuthGateError as e:
            return error_response(e)

        response = RedirectResponse(config.verification_notice_path, status_code=303)
        response.headers["X-Otp-Delivery"] = "sent" if outcome.delivered else "failed"
        return with_session_cookie(response, outcome.session)

    @router.post("/verify-otp")
    async def verify_otp(request: Request, body: VerifyBody):
        try:
            await flows.verify_otp(current_session(request), body.otp_code)
        except AuthGateError as e:
            return error_response(e)
        return RedirectResponse(config.post_verification_path, status_code=303)

    @router.post("/resend-otp")
    async def resend_otp(request: Request):
        try:
            issue = await flows.resend_otp(current_session(request))
        except AuthGateError as e:
            return error_response(e)
        return JSONResponse({
            "message": "A new verification code has been sent to your email.",
            "otp_expires_at": int(issue.expires_at.timestamp()),
        })

    @router.post("/logout")
    async def logout(request: Request):
        await flows.logout(current_session(request))
        response = RedirectResponse(config.login_path, status_code=303)
        response.delete_cookie(config.session_cookie)
        return response

    @router.get("/verification-notice")
    async def verification_notice(request: Request):
        try:
            expires_at = await flows.verification_notice(current_session(request))
        except AuthGateError as e:
            return error_response(e)
        return {"otp_expires_at": int(expires_at.timestamp()) if expires_at else None}

    return router
