"""
cush/services/user_service.py

Purpose: User account management

- Registration with an atomic email reservation
- User retrieval (password hash never leaves this module)
- Paginated listing for the back office
- Role changes, login bookkeeping and the activity log
- First-admin bootstrap
"""

import uuid
from typing import Any, Dict, List, Optional, Tuple

from cush.core.exceptions import ConflictError, ResourceNotFoundError
from cush.core.logging import get_logger, LogContext
from cush.core.security import Role, hash_password, parse_role
from cush.db import keys
from cush.db.redis_client import get_store
from cush.services.email_service import get_email_service
from cush.services import verification_service
from utils.constants import MAX_ACTIVITIES_PER_USER
from utils.time_utils import utc_now_iso
from utils.validation_utils import normalize_email

logger = get_logger(__name__)


def public_user(record: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a user record without the password hash."""
    user = dict(record)
    user.pop("password", None)
    return user


def display_name(record: Dict[str, Any]) -> str:
    return f"{record.get('firstName', '')} {record.get('lastName', '')}".strip()


async def get_user_record(user_id: str) -> Optional[Dict[str, Any]]:
    """
    Raw user record, including the password hash. Internal use only.
    """
    return await get_store().get_json(keys.user_key(user_id))


async def get_user_record_by_email(email: str) -> Optional[Dict[str, Any]]:
    """
    Raw user record resolved through the email pointer.

    Args:
        email: Any-case email; normalized before lookup

    Returns:
        User record or None when the pointer or the record is missing
    """
    store = get_store()
    user_id = await store.get(keys.user_email_key(normalize_email(email)))
    if not user_id:
        return None
    return await store.get_json(keys.user_key(user_id))


async def get_user_by_id(user_id: str) -> Optional[Dict[str, Any]]:
    record = await get_user_record(user_id)
    return public_user(record) if record else None


async def get_user_by_email(email: str) -> Optional[Dict[str, Any]]:
    record = await get_user_record_by_email(email)
    return public_user(record) if record else None


async def save_user_record(record: Dict[str, Any]) -> None:
    await get_store().set_json(keys.user_key(record["id"]), record)


async def register_user(
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    country: Optional[str] = None,
    phone_number: Optional[str] = None,
    role: Role = Role.USER,
    email_verified: bool = False,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    send_emails: bool = True,
) -> Dict[str, Any]:
    """
    Creates a user account.

    The email pointer is reserved with SET NX before the record is written,
    so two concurrent registrations for the same email cannot both succeed.

    Args:
        email: Account email (normalized to lowercase)
        password: Plaintext password, hashed with bcrypt
        first_name / last_name / country / phone_number: Profile fields
        role: Initial role
        email_verified: Mark the address as verified up front
        ip_address / user_agent: Request metadata
        send_emails: Send the welcome and verification emails

    Returns:
        Public user dict plus "emailSkipped"

    Raises:
        ConflictError: If the email is already registered
    """
    store = get_store()
    email = normalize_email(email)
    user_id = str(uuid.uuid4())

    with LogContext(user_id=user_id):
        reserved = await store.set_if_absent(keys.user_email_key(email), user_id)
        if not reserved:
            logger.info("Registration rejected: email already registered")
            raise ConflictError("An account with this email already exists")

        now = utc_now_iso()
        record = {
            "id": user_id,
            "email": email,
            "password": hash_password(password),
            "firstName": first_name,
            "lastName": last_name,
            "country": country,
            "phoneNumber": phone_number,
            "role": parse_role(role).value,
            "emailVerified": email_verified,
            "createdAt": now,
            "lastLoginAt": None,
            "lastActiveAt": now,
            "ipAddress": ip_address,
            "userAgent": user_agent,
            "loginCount": 0,
        }

        try:
            await save_user_record(record)
        except Exception:
            # Release the reservation so the email can be used again
            await store.delete(keys.user_email_key(email))
            raise

        logger.info(f"New user registered ({record['role']})")

    email_skipped = True
    if send_emails:
        email_skipped = await _send_registration_emails(record)

    user = public_user(record)
    user["emailSkipped"] = email_skipped
    return user


async def _send_registration_emails(record: Dict[str, Any]) -> bool:
    """Welcome + verification emails. Returns True when nothing was delivered."""
    email_service = get_email_service()
    name = display_name(record)
    try:
        result = await email_service.send_welcome_email(record["email"], name)
        if not record["emailVerified"]:
            token = await verification_service.create_verification_token(record["id"])
            await email_service.send_verification_email(record["email"], name, token)
    except Exception as e:
        logger.error(f"Failed to send registration emails: {e}", exc_info=True)
        return True

    return not result.get("success") or bool(result.get("skipped"))


async def list_users(page: int = 1, limit: int = 10) -> Dict[str, Any]:
    """
    Paginated user listing, newest first.

    Returns:
        {"users": [...], "pagination": {"total", "page", "limit", "totalPages"}}
    """
    store = get_store()
    user_keys = [k for k in await store.scan_keys(keys.user_scan_pattern()) if keys.is_user_record_key(k)]

    records = []
    for key in user_keys:
        record = await store.get_json(key)
        if record:
            records.append(public_user(record))

    records.sort(key=lambda u: u.get("createdAt") or "", reverse=True)

    total = len(records)
    start = (page - 1) * limit
    return {
        "users": records[start:start + limit],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": (total + limit - 1) // limit if limit else 0,
        },
    }


async def update_user_role(user_id: str, role: Role) -> Dict[str, Any]:
    """
    Changes a user's role.

    Raises:
        ResourceNotFoundError: If the user does not exist
    """
    record = await get_user_record(user_id)
    if not record:
        raise ResourceNotFoundError("User not found")

    record["role"] = parse_role(role).value
    await save_user_record(record)
    logger.info(f"Role updated to {record['role']}", extra={"user_id": user_id})
    return public_user(record)


async def record_login(
    user_id: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None
) -> None:
    """
    Login bookkeeping: lastLoginAt, loginCount and request metadata.
    """
    record = await get_user_record(user_id)
    if not record:
        return

    now = utc_now_iso()
    record["lastLoginAt"] = now
    record["lastActiveAt"] = now
    record["loginCount"] = int(record.get("loginCount") or 0) + 1
    if ip_address:
        record["ipAddress"] = ip_address
    if user_agent:
        record["userAgent"] = user_agent
    await save_user_record(record)
    await _append_activity(user_id, "login", ip_address or record.get("ipAddress"))


async def update_user_activity(
    user_id: str,
    ip_address: Optional[str] = None,
    activity_type: str = "activity"
) -> Dict[str, Any]:
    """
    Marks the user active and appends to their activity log (last 100 kept).

    Raises:
        ResourceNotFoundError: If the user does not exist
    """
    record = await get_user_record(user_id)
    if not record:
        raise ResourceNotFoundError("User not found")

    record["lastActiveAt"] = utc_now_iso()
    if ip_address:
        record["ipAddress"] = ip_address
    await save_user_record(record)

    return await _append_activity(user_id, activity_type, ip_address or record.get("ipAddress"))


async def _append_activity(user_id: str, activity_type: str, ip_address: Optional[str]) -> Dict[str, Any]:
    store = get_store()
    activity = {
        "id": str(uuid.uuid4()),
        "userId": user_id,
        "timestamp": utc_now_iso(),
        "type": activity_type,
        "ipAddress": ip_address,
    }
    await store.set_json(keys.activity_key(activity["id"]), activity)
    await store.lpush(keys.user_activities_key(user_id), activity["id"])
    await store.ltrim(keys.user_activities_key(user_id), 0, MAX_ACTIVITIES_PER_USER - 1)
    return activity


async def get_user_activities(user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
    """
    Most recent activities for a user, newest first.
    """
    store = get_store()
    activity_ids = await store.lrange(keys.user_activities_key(user_id), 0, limit - 1)

    activities = []
    for activity_id in activity_ids:
        activity = await store.get_json(keys.activity_key(activity_id))
        if activity:
            activities.append(activity)
    return activities


async def admin_exists() -> bool:
    """
    True when at least one user holds the admin role.
    """
    store = get_store()
    for key in await store.scan_keys(keys.user_scan_pattern()):
        if not keys.is_user_record_key(key):
            continue
        record = await store.get_json(key)
        if record and parse_role(record.get("role")) == Role.ADMIN:
            return True
    return False


async def create_admin_user(
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    country: Optional[str] = None,
    phone_number: Optional[str] = None,
) -> Tuple[Dict[str, Any], bool]:
    """
    Promotes an existing account to admin, or creates a verified admin.

    Returns:
        (public user, created) where created is False for a promotion
    """
    existing = await get_user_record_by_email(email)
    if existing:
        existing["role"] = Role.ADMIN.value
        await save_user_record(existing)
        logger.info("Existing user promoted to admin", extra={"user_id": existing["id"]})
        return public_user(existing), False

    user = await register_user(
        email=email,
        password=password,
        first_name=first_name,
        last_name=last_name,
        country=country,
        phone_number=phone_number,
        role=Role.ADMIN,
        email_verified=True,
        send_emails=False,
    )
    logger.info("Admin user created", extra={"user_id": user["id"]})
    return user, True
