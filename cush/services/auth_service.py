"""
cush/services/auth_service.py

Purpose: Credential verification

- Normalizes the email and resolves the account through the email pointer
- Constant-time bcrypt comparison (a throwaway check runs for unknown emails)
- Optional email-verification gate
- Read-only: login bookkeeping happens in the caller
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from cush.core.config import settings
from cush.core.exceptions import AuthenticationError
from cush.core.logging import get_logger
from cush.core.security import Role, SessionClaims, burn_password_check, parse_role, verify_password
from cush.services.user_service import display_name, get_user_record_by_email
from utils.validation_utils import normalize_email

logger = get_logger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


@dataclass(frozen=True)
class UserIdentity:
    """The authenticated user as returned to the session layer."""

    id: str
    email: str
    name: str
    role: Role
    email_verified: bool

    def to_claims(self) -> SessionClaims:
        return SessionClaims(
            id=self.id,
            email=self.email,
            role=self.role,
            email_verified=self.email_verified,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
            "emailVerified": self.email_verified,
        }


async def authenticate(email: Optional[str], password: Optional[str]) -> UserIdentity:
    """
    Verifies an email/password pair.

    Args:
        email: Email in any case, surrounding whitespace ignored
        password: Plaintext password

    Returns:
        UserIdentity for the matching account

    Raises:
        AuthenticationError: reason "invalid_credentials" for any unknown
            email or wrong password, "verification_required" when
            REQUIRE_EMAIL_VERIFICATION is on and the account is unverified
    """
    normalized = normalize_email(email)
    if not normalized or not password:
        raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

    record = await get_user_record_by_email(normalized)
    if record is None:
        burn_password_check(password)
        logger.info("Login failed: unknown account")
        raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

    if not verify_password(password, record.get("password")):
        logger.info("Login failed: wrong password", extra={"user_id": record.get("id")})
        raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

    email_verified = record.get("emailVerified") is True
    if settings.REQUIRE_EMAIL_VERIFICATION and not email_verified:
        logger.info("Login refused: email not verified", extra={"user_id": record.get("id")})
        raise AuthenticationError(
            "Please verify your email before signing in",
            reason=AuthenticationError.VERIFICATION_REQUIRED,
        )

    return UserIdentity(
        id=record["id"],
        email=record["email"],
        name=display_name(record),
        role=parse_role(record.get("role")),
        email_verified=email_verified,
    )
