"""
cush/api/flights.py

Purpose: Flight endpoints

- Airport lookup and flight search
- Booking creation, listing, detail and updates (confirm / cancel / edit)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from cush.api.deps import current_session
from cush.core.exceptions import ValidationError
from cush.core.security import SessionClaims
from cush.schemas.flights import FlightBookingRequest, FlightBookingUpdateRequest
from cush.services import flight_service

router = APIRouter()


@router.get("")
async def search_or_list(
    type: Optional[str] = None,
    origin: Optional[str] = Query(None, alias="from"),
    destination: Optional[str] = Query(None, alias="to"),
    departure_date: Optional[str] = Query(None, alias="departureDate"),
    passengers: int = Query(1, ge=1, le=9),
    cabin_class: str = Query("economy", alias="cabinClass"),
    session: SessionClaims = Depends(current_session)
):
    """
    ?type=bookings lists the caller's bookings; otherwise searches flights.
    """
    if type == "bookings":
        return {"bookings": await flight_service.get_user_bookings(session.id)}

    if not origin or not destination or not departure_date:
        raise ValidationError("from, to and departureDate are required")

    flights = flight_service.search_flights(origin, destination, departure_date, cabin_class, passengers)
    return {"flights": flights}


@router.get("/airports")
async def airports(q: Optional[str] = None):
    return {"airports": flight_service.search_airports(q)}


@router.post("", status_code=201)
async def create_booking(payload: FlightBookingRequest, session: SessionClaims = Depends(current_session)):
    booking = await flight_service.create_booking(session.id, payload.model_dump(by_alias=True, mode="json"))
    return {"booking": booking}


@router.get("/{booking_id}")
async def get_booking(booking_id: str, session: SessionClaims = Depends(current_session)):
    return {"booking": await flight_service.get_booking(session, booking_id)}


@router.patch("/{booking_id}")
async def update_booking(
    booking_id: str,
    payload: FlightBookingUpdateRequest,
    session: SessionClaims = Depends(current_session)
):
    if payload.action == "confirm":
        if not payload.payment_id or not payload.payment_method:
            raise ValidationError("paymentId and paymentMethod are required to confirm")
        booking = await flight_service.confirm_booking(
            session, booking_id, payload.payment_id, payload.payment_method
        )
    elif payload.action == "cancel":
        booking = await flight_service.cancel_booking(session, booking_id)
    else:
        updates = payload.model_dump(
            by_alias=True,
            mode="json",
            exclude_none=True,
            exclude={"action", "payment_id", "payment_method"},
        )
        booking = await flight_service.update_booking(session, booking_id, updates)

    return {"booking": booking}
