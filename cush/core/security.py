"""
cush/core/security.py

Purpose: Roles, password hashing and session tokens

- Closed set of roles and the capabilities each role grants
- bcrypt password hashing and constant-time verification
- Stateless signed session tokens (HS256 JWT) carrying id, email, role, emailVerified
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Dict, FrozenSet, Any

import bcrypt
import jwt

from cush.core.config import settings
from cush.core.logging import get_logger

logger = get_logger(__name__)

TOKEN_ALGORITHM = "HS256"


class Role(str, Enum):
    """Account roles. Anything unrecognised is treated as USER."""

    USER = "user"
    SUPPORT = "support"
    ADMIN = "admin"


class Capability(str, Enum):
    """Actions gated by role rather than by ownership."""

    ACCESS_ADMIN_PANEL = "access_admin_panel"
    VIEW_STATS = "view_stats"
    MANAGE_USERS = "manage_users"
    MANAGE_EMAIL_TEMPLATES = "manage_email_templates"
    REVIEW_DOCUMENTS = "review_documents"
    ACCESS_ANY_RECORD = "access_any_record"


ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.USER: frozenset(),
    Role.SUPPORT: frozenset({Capability.REVIEW_DOCUMENTS}),
    Role.ADMIN: frozenset(Capability),
}


def parse_role(value: Any) -> Role:
    """Coerce a stored role string into a Role, defaulting to USER."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return Role.USER


def has_capability(role: Any, capability: Capability) -> bool:
    """Check whether a role grants a capability."""
    return capability in ROLE_CAPABILITIES[parse_role(role)]


# ============================================================================
# Passwords
# ============================================================================

def hash_password(password: str) -> str:
    """Hash a password with bcrypt using the configured cost factor."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: Optional[str]) -> bool:
    """
    Compare a plaintext password with a stored bcrypt hash.

    A missing or malformed hash never matches.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


# Used when the account does not exist so both branches pay the bcrypt cost
_DUMMY_HASH = bcrypt.hashpw(b"cush-dummy-password", bcrypt.gensalt(rounds=4)).decode("utf-8")


def burn_password_check(password: str) -> None:
    """Run a throwaway bcrypt comparison."""
    verify_password(password, _DUMMY_HASH)


# ============================================================================
# Session tokens
# ============================================================================

@dataclass(frozen=True)
class SessionClaims:
    """Identity carried by a session token."""

    id: str
    email: str
    role: Role
    email_verified: bool

    @property
    def is_admin(self) -> bool:
        return has_capability(self.role, Capability.ACCESS_ADMIN_PANEL)

    def can(self, capability: Capability) -> bool:
        return has_capability(self.role, capability)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role.value,
            "emailVerified": self.email_verified,
        }


def create_session_token(claims: SessionClaims, expires_in: Optional[timedelta] = None) -> str:
    """
    Mint a signed session token.

    Args:
        claims: Identity to embed
        expires_in: Lifetime override (defaults to SESSION_MAX_AGE_DAYS)

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else timedelta(days=settings.SESSION_MAX_AGE_DAYS)
    payload = {
        "sub": claims.id,
        "email": claims.email,
        "role": claims.role.value,
        "emailVerified": claims.email_verified,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=TOKEN_ALGORITHM)


def decode_session_token(token: Optional[str]) -> Optional[SessionClaims]:
    """
    Decode and verify a session token.

    Returns None for a missing, malformed, tampered or expired token, so
    callers treat every failure the same as "no session".
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[TOKEN_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.debug("Session token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug(f"Session token rejected: {e}")
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None

    return SessionClaims(
        id=str(user_id),
        email=str(payload.get("email") or ""),
        role=parse_role(payload.get("role")),
        email_verified=payload.get("emailVerified") is True,
    )
