"""
cush/api/partners.py

Purpose: Partner-backed endpoints

- AstroPay virtual cards and transfers (proxied for the signed-in user)
- Imisi assistant chat (public; the session, if any, is echoed back)
"""

from typing import Optional

from fastapi import APIRouter, Depends

from cush.api.deps import current_session, optional_session
from cush.core.security import SessionClaims
from cush.schemas.partners import ChatRequest, TransferRequest, VirtualCardRequest
from cush.services.astropay_service import AstroPayService, get_astropay_service
from cush.services.chat_service import ChatService, get_chat_service

router = APIRouter()


@router.get("/astropay/cards")
async def list_cards(
    session: SessionClaims = Depends(current_session),
    astropay: AstroPayService = Depends(get_astropay_service)
):
    return await astropay.get_user_cards(session.id)


@router.post("/astropay/cards")
async def create_card(
    payload: VirtualCardRequest,
    session: SessionClaims = Depends(current_session),
    astropay: AstroPayService = Depends(get_astropay_service)
):
    return await astropay.create_virtual_card(session.id, payload.amount, payload.currency)


@router.get("/astropay/transfers")
async def list_transactions(
    session: SessionClaims = Depends(current_session),
    astropay: AstroPayService = Depends(get_astropay_service)
):
    return await astropay.get_user_transactions(session.id)


@router.post("/astropay/transfers")
async def transfer(
    payload: TransferRequest,
    session: SessionClaims = Depends(current_session),
    astropay: AstroPayService = Depends(get_astropay_service)
):
    return await astropay.transfer_money(session.id, payload.amount, payload.currency, payload.recipient_id)


@router.post("/imisi")
async def imisi_chat(
    payload: ChatRequest,
    session: Optional[SessionClaims] = Depends(optional_session),
    chat: ChatService = Depends(get_chat_service)
):
    history = [turn.model_dump() for turn in payload.history or []]
    reply = await chat.reply(payload.message, history)
    return {"response": reply, "userId": session.id if session else None}
