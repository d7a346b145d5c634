"""
cush/schemas/partners.py

Purpose: Request schemas for partner-backed features

- AstroPay virtual cards and transfers
- Imisi assistant chat
"""

from typing import List, Literal, Optional

from pydantic import Field

from cush.schemas.base import CamelModel


class VirtualCardRequest(CamelModel):
    amount: float = Field(..., gt=0)
    currency: str = Field(..., min_length=3, max_length=3)
    card_type: Literal["virtual", "physical"] = "virtual"


class TransferRequest(CamelModel):
    amount: float = Field(..., gt=0)
    currency: str = Field(..., min_length=3, max_length=3)
    recipient_id: str = Field(..., min_length=1)


class ChatTurn(CamelModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(CamelModel):
    message: str = Field(..., min_length=1, max_length=4000)
    history: Optional[List[ChatTurn]] = None
