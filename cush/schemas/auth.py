"""
cush/schemas/auth.py

Purpose: Account and session request schemas

- Registration, login and verification payloads
- Admin bootstrap payload (setup key + account fields)
- Role change payload
"""

from typing import Optional

from pydantic import EmailStr, Field

from cush.core.security import Role
from cush.schemas.base import CamelModel


class RegisterRequest(CamelModel):
    """
    New account registration.
    """
    email: EmailStr
    password: str = Field(..., min_length=8, description="At least 8 characters")
    first_name: str = Field(..., min_length=2)
    last_name: str = Field(..., min_length=2)
    country: Optional[str] = None
    phone_number: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "email": "ada@example.com",
                "password": "correct-horse",
                "firstName": "Ada",
                "lastName": "Obi",
                "country": "Nigeria",
                "phoneNumber": "+2348012345678",
            }
        }
    }


class LoginRequest(CamelModel):
    email: str
    password: str


class ResendVerificationRequest(CamelModel):
    email: EmailStr


class AdminSetupRequest(RegisterRequest):
    """
    First-admin bootstrap. Requires the configured setup key.
    """
    setup_key: str = Field(..., min_length=1)


class RoleUpdateRequest(CamelModel):
    role: Role


class ActivityRequest(CamelModel):
    type: str = Field(default="activity", max_length=50)
