"""
cush/api/auth.py

Purpose: Account and session endpoints

- Registration, login (sets the session cookie and returns the token), logout
- Current-session lookup and a liveness check for the auth API
- Email verification and resend
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from cush.api.deps import client_ip, optional_session, user_agent
from cush.core.config import settings
from cush.core.logging import get_logger
from cush.core.security import SessionClaims, create_session_token, parse_role
from cush.schemas.auth import LoginRequest, RegisterRequest, ResendVerificationRequest
from cush.services import auth_service, user_service, verification_service
from utils.time_utils import utc_now_iso

logger = get_logger(__name__)
router = APIRouter()


def set_session_cookie(response: Response, token: str):
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_MAX_AGE_DAYS * 24 * 60 * 60,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
        path="/",
    )


@router.post("/register", status_code=201)
async def register(payload: RegisterRequest, request: Request):
    """
    Creates an account. Emails (welcome + verification) never block registration.
    """
    user = await user_service.register_user(
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        country=payload.country,
        phone_number=payload.phone_number,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    email_skipped = user.pop("emailSkipped", False)
    return {
        "success": True,
        "message": "Registration successful",
        "user": user,
        "emailSkipped": email_skipped,
    }


@router.post("/login")
async def login(payload: LoginRequest, request: Request):
    """
    Verifies credentials and issues a session token (cookie + body).
    """
    identity = await auth_service.authenticate(payload.email, payload.password)
    await user_service.record_login(identity.id, client_ip(request), user_agent(request))

    token = create_session_token(identity.to_claims())
    expires_at = datetime.now(timezone.utc) + timedelta(days=settings.SESSION_MAX_AGE_DAYS)

    logger.info("User signed in", extra={"user_id": identity.id, "role": identity.role.value})

    response = JSONResponse(content={
        "success": True,
        "user": identity.to_dict(),
        "token": token,
        "expiresAt": expires_at.isoformat(),
    })
    set_session_cookie(response, token)
    return response


@router.post("/logout")
async def logout():
    response = JSONResponse(content={"success": True})
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return response


@router.get("/session")
async def get_session(session: Optional[SessionClaims] = Depends(optional_session)):
    """
    The caller's session claims, or {"user": null}.
    """
    return {"user": session.to_dict() if session else None}


@router.get("/check")
async def check():
    return {
        "status": "ok",
        "message": "Auth API is working",
        "timestamp": utc_now_iso(),
    }


@router.get("/verify")
async def verify_email(
    token: str,
    session: Optional[SessionClaims] = Depends(optional_session)
):
    """
    Consumes a verification token.

    When the caller is signed in as the verified user, a refreshed session
    token (with emailVerified=true) is issued.
    """
    user = await verification_service.verify_email_token(token)

    response = JSONResponse(content={"success": True, "message": "Email verified successfully"})
    if session and session.id == user["id"]:
        refreshed = create_session_token(SessionClaims(
            id=user["id"],
            email=user["email"],
            role=parse_role(user.get("role")),
            email_verified=True,
        ))
        set_session_cookie(response, refreshed)
    return response


@router.post("/resend-verification")
async def resend_verification(payload: ResendVerificationRequest):
    await verification_service.resend_verification_email(payload.email)
    return {"success": True, "message": "Verification email sent"}
