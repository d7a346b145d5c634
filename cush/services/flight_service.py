"""
cush/services/flight_service.py

Purpose: Flight search and bookings

- Static airport catalogue with text search
- Deterministic offer list per (route, date, cabin)
- Booking lifecycle: pending → confirmed (with payment) or cancelled
- Owner-or-admin access to bookings
"""

import random
import secrets
import string
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from cush.core.config import settings
from cush.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from cush.core.logging import get_logger
from cush.core.security import Capability, SessionClaims
from cush.db import keys
from cush.db.redis_client import get_store
from cush.services import notification_service
from cush.services.email_service import get_email_service
from utils.constants import (
    BOOKING_CANCELLED,
    BOOKING_CONFIRMED,
    BOOKING_CONFIRMED_MESSAGE,
    BOOKING_CONFIRMED_TITLE,
    BOOKING_PENDING,
    CABIN_MULTIPLIERS,
    NOTIFICATION_SUCCESS,
)
from utils.time_utils import utc_now_iso
from utils.validation_utils import is_valid_airport_code

logger = get_logger(__name__)

AIRPORTS: List[Dict[str, str]] = [
    {"code": "LOS", "name": "Murtala Muhammed International Airport", "city": "Lagos", "country": "Nigeria"},
    {"code": "ABV", "name": "Nnamdi Azikiwe International Airport", "city": "Abuja", "country": "Nigeria"},
    {"code": "PHC", "name": "Port Harcourt International Airport", "city": "Port Harcourt", "country": "Nigeria"},
    {"code": "LHR", "name": "Heathrow Airport", "city": "London", "country": "United Kingdom"},
    {"code": "JFK", "name": "John F. Kennedy International Airport", "city": "New York", "country": "United States"},
    {"code": "YYZ", "name": "Toronto Pearson International Airport", "city": "Toronto", "country": "Canada"},
    {"code": "DXB", "name": "Dubai International Airport", "city": "Dubai", "country": "United Arab Emirates"},
    {"code": "CDG", "name": "Charles de Gaulle Airport", "city": "Paris", "country": "France"},
    {"code": "AMS", "name": "Amsterdam Airport Schiphol", "city": "Amsterdam", "country": "Netherlands"},
    {"code": "FRA", "name": "Frankfurt Airport", "city": "Frankfurt", "country": "Germany"},
]

AIRLINES = ["Cush Airways", "Nigeria Air", "British Airways", "Emirates", "Air France", "KLM", "Lufthansa"]

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


def find_airport(code: str) -> Optional[Dict[str, str]]:
    code = (code or "").upper()
    return next((a for a in AIRPORTS if a["code"] == code), None)


def search_airports(query: Optional[str]) -> List[Dict[str, str]]:
    """
    Airports whose code, name, city or country contains the query.

    Queries shorter than two characters return the full catalogue.
    """
    if not query or len(query.strip()) < 2:
        return list(AIRPORTS)
    needle = query.strip().lower()
    return [
        airport for airport in AIRPORTS
        if any(needle in airport[field].lower() for field in ("code", "name", "city", "country"))
    ]


def search_flights(
    origin: str,
    destination: str,
    departure_date: str,
    cabin_class: str = "economy",
    passengers: int = 1
) -> List[Dict[str, Any]]:
    """
    Offer list for a route and date.

    The same inputs always produce the same offers.

    Raises:
        ValidationError: Unknown airport, same origin and destination,
            bad date or unknown cabin class
    """
    if not is_valid_airport_code(origin) or not is_valid_airport_code(destination):
        raise ValidationError("Airport codes must be three letters")

    from_airport = find_airport(origin)
    to_airport = find_airport(destination)
    if not from_airport or not to_airport:
        raise ValidationError("Unknown airport code")
    if from_airport["code"] == to_airport["code"]:
        raise ValidationError("Origin and destination must differ")
    if cabin_class not in CABIN_MULTIPLIERS:
        raise ValidationError(f"Unknown cabin class: {cabin_class}", details={"allowed": list(CABIN_MULTIPLIERS)})
    try:
        day = datetime.strptime(departure_date, "%Y-%m-%d")
    except ValueError:
        raise ValidationError("departureDate must be YYYY-MM-DD")

    rng = random.Random(f"{from_airport['code']}|{to_airport['code']}|{departure_date}|{cabin_class}")
    flights = []
    for i in range(rng.randint(3, 5)):
        airline = rng.choice(AIRLINES)
        departure = day.replace(hour=rng.randint(6, 21), minute=rng.randint(0, 3) * 15)
        duration = timedelta(hours=rng.randint(1, 13), minutes=rng.randint(0, 3) * 15)
        arrival = departure + duration
        hours, remainder = divmod(int(duration.total_seconds()), 3600)
        base_price = rng.randint(200, 499)

        flights.append({
            "id": f"{from_airport['code']}-{to_airport['code']}-{departure_date}-{cabin_class}-{i}",
            "airline": airline,
            "flightNumber": f"{airline[:2].upper()}{rng.randint(100, 1099)}",
            "departureAirport": from_airport["name"],
            "departureCode": from_airport["code"],
            "arrivalAirport": to_airport["name"],
            "arrivalCode": to_airport["code"],
            "departureDate": departure_date,
            "departureTime": departure.strftime("%H:%M"),
            "arrivalTime": arrival.strftime("%H:%M"),
            "duration": f"{hours}h {remainder // 60}m",
            "price": round(base_price * CABIN_MULTIPLIERS[cabin_class] * passengers, 2),
            "currency": "USD",
            "seatsAvailable": rng.randint(1, 50),
            "cabinClass": cabin_class,
        })

    flights.sort(key=lambda f: f["departureTime"])
    return flights


def generate_booking_reference() -> str:
    return "CU" + "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(6))


# ============================================================================
# Bookings
# ============================================================================

async def create_booking(user_id: str, details: Dict[str, Any]) -> Dict[str, Any]:
    """
    Stores a pending booking.

    Args:
        user_id: Booking owner
        details: Passenger and flight details

    Returns:
        The stored booking
    """
    now = utc_now_iso()
    booking = {
        **details,
        "id": str(uuid.uuid4()),
        "userId": user_id,
        "bookingReference": generate_booking_reference(),
        "status": BOOKING_PENDING,
        "paymentId": None,
        "paymentMethod": None,
        "createdAt": now,
        "updatedAt": now,
    }

    store = get_store()
    await store.set_json(keys.flight_booking_key(booking["id"]), booking)
    await store.lpush(keys.user_flight_bookings_key(user_id), booking["id"])

    logger.info(f"Flight booking created: {booking['bookingReference']}", extra={"user_id": user_id})
    return booking


async def get_booking(claims: SessionClaims, booking_id: str) -> Dict[str, Any]:
    """
    Fetches a booking the caller owns (or any booking for admins).

    Raises:
        ResourceNotFoundError / AuthorizationError
    """
    booking = await get_store().get_json(keys.flight_booking_key(booking_id))
    if not booking:
        raise ResourceNotFoundError("Booking not found")
    if booking["userId"] != claims.id and not claims.can(Capability.ACCESS_ANY_RECORD):
        raise AuthorizationError("Not allowed to access this booking")
    return booking


async def get_user_bookings(user_id: str) -> List[Dict[str, Any]]:
    store = get_store()
    bookings = []
    for booking_id in await store.lrange(keys.user_flight_bookings_key(user_id), 0, -1):
        booking = await store.get_json(keys.flight_booking_key(booking_id))
        if booking:
            bookings.append(booking)
    bookings.sort(key=lambda b: b.get("createdAt") or "", reverse=True)
    return bookings


async def _save(booking: Dict[str, Any]) -> Dict[str, Any]:
    booking["updatedAt"] = utc_now_iso()
    await get_store().set_json(keys.flight_booking_key(booking["id"]), booking)
    return booking


async def update_booking(claims: SessionClaims, booking_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Applies passenger-detail updates. Identity and lifecycle fields are not editable here.
    """
    booking = await get_booking(claims, booking_id)
    protected = {"id", "userId", "bookingReference", "status", "paymentId", "paymentMethod", "createdAt", "updatedAt"}
    booking.update({k: v for k, v in updates.items() if k not in protected})
    return await _save(booking)


async def confirm_booking(
    claims: SessionClaims,
    booking_id: str,
    payment_id: str,
    payment_method: str
) -> Dict[str, Any]:
    """
    Confirms a pending booking, then notifies and emails the passenger.

    Raises:
        ValidationError: If the booking is not pending
    """
    booking = await get_booking(claims, booking_id)
    if booking["status"] != BOOKING_PENDING:
        raise ValidationError(f"Cannot confirm a {booking['status']} booking")

    booking["status"] = BOOKING_CONFIRMED
    booking["paymentId"] = payment_id
    booking["paymentMethod"] = payment_method
    await _save(booking)

    origin = booking.get("departureCode", "")
    destination = booking.get("arrivalCode", "")
    await notification_service.create_notification(
        user_id=booking["userId"],
        title=BOOKING_CONFIRMED_TITLE,
        message=BOOKING_CONFIRMED_MESSAGE.format(
            origin=origin, destination=destination, reference=booking["bookingReference"]
        ),
        notification_type=NOTIFICATION_SUCCESS,
        link=f"/dashboard/flights/{booking['id']}",
    )

    if booking.get("passengerEmail"):
        await get_email_service().send_template_email(
            booking["passengerEmail"],
            "flightConfirmation",
            {
                "name": booking.get("passengerName", ""),
                "origin": origin,
                "destination": destination,
                "departureDate": booking.get("departureDate", ""),
                "reference": booking["bookingReference"],
                "bookingUrl": f"{settings.APP_URL}/dashboard/flights/{booking['id']}",
            },
        )

    logger.info(f"Flight booking confirmed: {booking['bookingReference']}", extra={"user_id": booking["userId"]})
    return booking


async def cancel_booking(claims: SessionClaims, booking_id: str) -> Dict[str, Any]:
    """
    Cancels a booking. Cancelling twice is a no-op.
    """
    booking = await get_booking(claims, booking_id)
    if booking["status"] == BOOKING_CANCELLED:
        return booking
    booking["status"] = BOOKING_CANCELLED
    logger.info(f"Flight booking cancelled: {booking['bookingReference']}", extra={"user_id": booking["userId"]})
    return await _save(booking)
