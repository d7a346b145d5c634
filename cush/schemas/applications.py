"""
cush/schemas/applications.py

Purpose: Application and payment request schemas

- Loan and police certificate applications
- Direct payment intent creation
- Document review decisions
"""

from typing import Literal, Optional

from pydantic import EmailStr, Field

from cush.schemas.base import CamelModel


class LoanApplicationRequest(CamelModel):
    loan_type: str
    amount: float = Field(..., gt=0)
    purpose: str
    duration: str
    employment_status: str
    monthly_income: float = Field(..., ge=0)


class PoliceCertificateRequest(CamelModel):
    full_name: str = Field(..., min_length=2)
    date_of_birth: str
    place_of_birth: str
    nationality: str
    passport_number: str
    gender: Optional[str] = None
    address: str
    email: EmailStr
    phone: str
    purpose: str
    delivery_method: Literal["email", "courier", "pickup"] = "email"
    processing_time: Literal["standard", "express", "urgent"] = "standard"


class CreatePaymentRequest(CamelModel):
    amount: float = Field(..., gt=0, description="Whole currency units; charged in cents")
    application_id: str
    application_type: str


class DocumentReviewRequest(CamelModel):
    status: Literal["pending", "approved", "rejected"]
    notes: Optional[str] = Field(default=None, max_length=2000)
