"""
cush/core/access.py

Purpose: Session/role gate applied to every request

- Classifies the request path (public, admin-only, authenticated)
- Resolves the session token (bearer header or cookie) into claims
- Decides: continue, redirect to login/dashboard/verification, or reject with 401
- Attaches resolved claims to request.state.session for route handlers
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional
from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.requests import HTTPConnection

from cush.core.config import settings
from cush.core.logging import get_logger
from cush.core.security import Capability, SessionClaims, decode_session_token, has_capability
from cush.schemas.response import ErrorResponse

logger = get_logger(__name__)

LOGIN_PATH = "/login"
REGISTER_PATH = "/register"
DASHBOARD_PATH = "/dashboard"
UNVERIFIED_EMAIL_PATH = "/unverified-email"

PUBLIC_PATHS = (
    "/",
    LOGIN_PATH,
    REGISTER_PATH,
    "/forgot-password",
    "/auth/error",
    "/verify-email",
    "/resend-verification",
    UNVERIFIED_EMAIL_PATH,
    "/api/auth",
    "/api/admin/check",
    "/api/admin/setup",
    "/api/webhook",
    "/api/imisi",
    # Booking is anonymous; the listing checks its own session
    "/api/consultations",
    "/health",
    "/ready",
    "/live",
    "/docs",
    "/redoc",
    "/openapi.json",
)

ADMIN_PATHS = ("/admin",)

STATIC_PREFIXES = ("/static/", "/_next/")
STATIC_FILES = ("/favicon.ico", "/robots.txt")


class AccessOutcome(str, Enum):
    CONTINUE = "continue"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_DASHBOARD = "redirect_dashboard"
    REDIRECT_VERIFICATION = "redirect_verification"
    REJECT = "reject"


@dataclass(frozen=True)
class AccessDecision:
    outcome: AccessOutcome
    location: Optional[str] = None


def matches_path(path: str, rules: Iterable[str]) -> bool:
    """
    Prefix match a path against a set of rules.

    A rule matches when it equals the path, when it ends in "/" and the
    path starts with it, or when the path starts with rule + "/". The root
    rule "/" only matches "/" itself.
    """
    for rule in rules:
        if path == rule:
            return True
        if rule == "/":
            continue
        if rule.endswith("/") and path.startswith(rule):
            return True
        if path.startswith(f"{rule}/"):
            return True
    return False


def is_static_asset(path: str) -> bool:
    return path.startswith(STATIC_PREFIXES) or path in STATIC_FILES


def is_api_path(path: str) -> bool:
    return path == "/api" or path.startswith("/api/")


def evaluate_access(path: str, claims: Optional[SessionClaims]) -> AccessDecision:
    """
    Decide what to do with a request.

    Args:
        path: Request path
        claims: Decoded session, or None when absent/invalid

    Returns:
        AccessDecision with the outcome and, for redirects, the target URL
    """
    if is_static_asset(path):
        return AccessDecision(AccessOutcome.CONTINUE)

    is_public = matches_path(path, PUBLIC_PATHS)
    is_admin_path = matches_path(path, ADMIN_PATHS)
    is_api = is_api_path(path)

    if claims is None:
        if is_public:
            return AccessDecision(AccessOutcome.CONTINUE)
        if is_api:
            return AccessDecision(AccessOutcome.REJECT)
        return AccessDecision(
            AccessOutcome.REDIRECT_LOGIN,
            f"{LOGIN_PATH}?{urlencode({'callbackUrl': path})}",
        )

    if path in (LOGIN_PATH, REGISTER_PATH):
        return AccessDecision(AccessOutcome.REDIRECT_DASHBOARD, DASHBOARD_PATH)

    if is_admin_path and not has_capability(claims.role, Capability.ACCESS_ADMIN_PANEL):
        return AccessDecision(AccessOutcome.REDIRECT_DASHBOARD, DASHBOARD_PATH)

    if (
        not claims.email_verified
        and not is_public
        and path != UNVERIFIED_EMAIL_PATH
        and not is_api
    ):
        return AccessDecision(AccessOutcome.REDIRECT_VERIFICATION, UNVERIFIED_EMAIL_PATH)

    return AccessDecision(AccessOutcome.CONTINUE)


def extract_token(connection: HTTPConnection) -> Optional[str]:
    """Read the session token from the Authorization header or the session cookie."""
    authorization = connection.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return connection.cookies.get(settings.SESSION_COOKIE_NAME)


async def session_gate(request: Request, call_next):
    """
    HTTP middleware enforcing evaluate_access() on every request.
    """
    path = request.url.path
    if is_static_asset(path):
        return await call_next(request)

    claims = decode_session_token(extract_token(request))
    request.state.session = claims

    decision = evaluate_access(path, claims)

    if decision.outcome == AccessOutcome.CONTINUE:
        return await call_next(request)

    if decision.outcome == AccessOutcome.REJECT:
        logger.info("Rejected unauthenticated API request", extra={"path": path})
        return JSONResponse(
            status_code=401,
            content=ErrorResponse(
                error="Authentication required",
                code="AUTHENTICATION_FAILED",
            ).model_dump(),
        )

    logger.debug(
        f"Redirecting request: {decision.outcome.value}",
        extra={"path": path, "user_id": claims.id if claims else None},
    )
    return RedirectResponse(url=decision.location, status_code=307)
