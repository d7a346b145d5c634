"""
cush/api/consultations.py

Purpose: Consultation booking endpoints

- POST books a session, signed in or not
- GET lists the caller's bookings
"""

from typing import Optional

from fastapi import APIRouter, Depends

from cush.api.deps import current_session, optional_session
from cush.core.security import SessionClaims
from cush.schemas.consultations import ConsultationRequest
from cush.services import consultation_service

router = APIRouter()


@router.post("")
async def book_consultation(
    payload: ConsultationRequest,
    session: Optional[SessionClaims] = Depends(optional_session)
):
    booking = await consultation_service.book_consultation(
        payload.model_dump(by_alias=True, mode="json"),
        user_id=session.id if session else None,
    )
    return {
        "success": True,
        "message": "Consultation booked successfully",
        "bookingId": booking["id"],
        "details": booking,
    }


@router.get("")
async def list_consultations(session: SessionClaims = Depends(current_session)):
    return {"consultations": await consultation_service.get_user_consultations(session.id)}
