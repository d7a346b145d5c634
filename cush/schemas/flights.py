"""
cush/schemas/flights.py

Purpose: Flight booking request schemas
"""

from typing import Literal, Optional

from pydantic import EmailStr, Field

from cush.schemas.base import CamelModel


class FlightBookingRequest(CamelModel):
    passenger_name: str = Field(..., min_length=2)
    passenger_email: EmailStr
    passenger_phone: Optional[str] = None
    outbound_flight: str
    departure_airport: str
    departure_code: str = Field(..., min_length=3, max_length=3)
    arrival_airport: str
    arrival_code: str = Field(..., min_length=3, max_length=3)
    departure_date: str
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    return_flight: Optional[str] = None
    return_date: Optional[str] = None
    price: float = Field(..., gt=0)
    currency: str = "USD"


class FlightBookingUpdateRequest(CamelModel):
    """
    action=confirm needs paymentId and paymentMethod; action=cancel needs nothing;
    no action applies passenger-detail updates.
    """
    action: Optional[Literal["confirm", "cancel"]] = None
    payment_id: Optional[str] = None
    payment_method: Optional[str] = None
    passenger_name: Optional[str] = None
    passenger_email: Optional[EmailStr] = None
    passenger_phone: Optional[str] = None
