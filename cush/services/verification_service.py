"""
cush/services/verification_service.py

Purpose: Email verification tokens

- Issues single-use verification tokens (24h expiry by default)
- One live token per user; issuing a new one revokes the previous
- Consumes a token and marks the account verified
"""

import secrets
from typing import Any, Dict

from cush.core.config import settings
from cush.core.exceptions import ResourceNotFoundError, ValidationError
from cush.core.logging import get_logger
from cush.db import keys
from cush.db.redis_client import get_store

logger = get_logger(__name__)


async def create_verification_token(user_id: str) -> str:
    """
    Issues a verification token for a user.

    Args:
        user_id: Account to verify

    Returns:
        URL-safe token string
    """
    store = get_store()
    ttl = settings.VERIFICATION_TOKEN_TTL_SECONDS

    previous = await store.get(keys.user_verification_key(user_id))
    if previous:
        await store.delete(keys.verification_key(previous))

    token = secrets.token_urlsafe(32)
    await store.set(keys.verification_key(token), user_id, ex=ttl)
    await store.set(keys.user_verification_key(user_id), token, ex=ttl)

    logger.info("Verification token issued", extra={"user_id": user_id})
    return token


async def verify_email_token(token: str) -> Dict[str, Any]:
    """
    Consumes a verification token.

    Returns:
        The updated user record (without password)

    Raises:
        ValidationError: If the token is unknown or expired
        ResourceNotFoundError: If the user behind the token no longer exists
    """
    store = get_store()
    user_id = await store.get(keys.verification_key(token)) if token else None
    if not user_id:
        raise ValidationError("Invalid or expired verification token")

    user = await store.get_json(keys.user_key(user_id))
    if not user:
        await store.delete(keys.verification_key(token))
        raise ResourceNotFoundError("User not found")

    user["emailVerified"] = True
    await store.set_json(keys.user_key(user_id), user)
    await store.delete(keys.verification_key(token), keys.user_verification_key(user_id))

    logger.info("Email verified", extra={"user_id": user_id})
    user.pop("password", None)
    return user


async def resend_verification_email(email: str) -> None:
    """
    Issues a fresh token and emails it.

    Raises:
        ResourceNotFoundError: If no account uses the email
        ValidationError: If the account is already verified
    """
    # Imported here: user_service imports this module for registration
    from cush.services.email_service import get_email_service
    from cush.services.user_service import display_name, get_user_record_by_email

    user = await get_user_record_by_email(email)
    if not user:
        raise ResourceNotFoundError("User not found")
    if user.get("emailVerified"):
        raise ValidationError("Email is already verified")

    token = await create_verification_token(user["id"])
    result = await get_email_service().send_verification_email(user["email"], display_name(user), token)
    if not result.get("success"):
        logger.warning("Verification email could not be delivered", extra={"user_id": user["id"]})
