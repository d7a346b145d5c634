"""
cush/services/consultation_service.py

Purpose: Clarity-session consultation bookings

- Anyone can book; the booking records the user when a session is present
- Signed-in users list their own bookings, newest first
"""

import uuid
from typing import Any, Dict, List, Optional

from cush.core.exceptions import ValidationError
from cush.core.logging import get_logger
from cush.db import keys
from cush.db.redis_client import get_store
from utils.constants import CONSULTATION_TYPES, CONSULTATION_UPCOMING
from utils.time_utils import utc_now_iso

logger = get_logger(__name__)


async def book_consultation(details: Dict[str, Any], user_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Stores a consultation booking.

    Args:
        details: name, email, phone, date, timeSlot, consultationType and an optional message
        user_id: Session user, or None for an anonymous booking

    Returns:
        The stored booking

    Raises:
        ValidationError: Unknown consultation type
    """
    consultation_type = details["consultationType"]
    if consultation_type not in CONSULTATION_TYPES:
        raise ValidationError(
            f"Unknown consultation type: {consultation_type}",
            details={"allowed": list(CONSULTATION_TYPES)},
        )

    now = utc_now_iso()
    booking = {
        **details,
        "id": str(uuid.uuid4()),
        "title": CONSULTATION_TYPES[consultation_type],
        "userId": user_id,
        "status": CONSULTATION_UPCOMING,
        "createdAt": now,
        "updatedAt": now,
    }

    store = get_store()
    await store.set_json(keys.consultation_key(booking["id"]), booking)
    if user_id:
        await store.lpush(keys.user_consultations_key(user_id), booking["id"])

    logger.info(
        f"📅 Consultation booked: {consultation_type}",
        extra={"consultation_id": booking["id"], "user_id": user_id},
    )
    return booking


async def get_user_consultations(user_id: str) -> List[Dict[str, Any]]:
    store = get_store()
    consultations = []
    for consultation_id in await store.lrange(keys.user_consultations_key(user_id), 0, -1):
        consultation = await store.get_json(keys.consultation_key(consultation_id))
        if consultation:
            consultations.append(consultation)
    consultations.sort(key=lambda c: c.get("createdAt") or "", reverse=True)
    return consultations
