"""
cush/api/deps.py

Purpose: Route dependencies for session and capability checks

- current_session: claims attached by the session gate (401 when absent)
- require_capability: 403 unless the session's role grants the capability
- client metadata helpers (IP, user agent)
"""

from typing import Optional

from fastapi import Depends, Request

from cush.core.exceptions import AuthenticationError, AuthorizationError
from cush.core.security import Capability, SessionClaims


def optional_session(request: Request) -> Optional[SessionClaims]:
    return getattr(request.state, "session", None)


def current_session(session: Optional[SessionClaims] = Depends(optional_session)) -> SessionClaims:
    """
    The authenticated session.

    Raises:
        AuthenticationError: If the request carries no valid session
    """
    if session is None:
        raise AuthenticationError("Authentication required", reason=AuthenticationError.MISSING_SESSION)
    return session


def require_capability(capability: Capability):
    """
    Dependency factory: the session must hold the given capability.

    Usage:
        @router.get("/stats")
        async def stats(session: SessionClaims = Depends(require_capability(Capability.VIEW_STATS))):
            ...
    """
    def dependency(session: SessionClaims = Depends(current_session)) -> SessionClaims:
        if not session.can(capability):
            raise AuthorizationError()
        return session

    return dependency


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def user_agent(request: Request) -> Optional[str]:
    return request.headers.get("user-agent")
