"""
cush/schemas/consultations.py

Purpose: Consultation booking request schema
"""

from typing import Optional

from pydantic import EmailStr, Field

from cush.schemas.base import CamelModel


class ConsultationRequest(CamelModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1)
    date: str = Field(..., min_length=1)
    time_slot: str = Field(..., min_length=1)
    consultation_type: str = Field(..., min_length=1)
    message: Optional[str] = None
