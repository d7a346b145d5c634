"""
cush/api/applications.py

Purpose: Application and payment endpoints

- Loan and police certificate submission
- Per-user application listing by type
- Direct payment intent creation
- Stripe webhook (signature-verified, raw body)
"""

from fastapi import APIRouter, Depends, Request

from cush.api.deps import current_session
from cush.core.exceptions import ValidationError, WebhookSignatureError
from cush.core.logging import get_logger
from cush.core.security import SessionClaims
from cush.db import keys
from cush.schemas.applications import (
    CreatePaymentRequest,
    LoanApplicationRequest,
    PoliceCertificateRequest,
)
from cush.services import application_service, payment_service
from cush.services.payment_service import StripeService, get_stripe_service

logger = get_logger(__name__)
router = APIRouter()


@router.post("/applications/loan", status_code=201)
async def submit_loan(payload: LoanApplicationRequest, session: SessionClaims = Depends(current_session)):
    application = await application_service.submit_loan_application(
        session.id, payload.model_dump(by_alias=True)
    )
    return {"success": True, "applicationId": application["id"], "application": application}


@router.post("/applications/police-certificate", status_code=201)
async def submit_police_certificate(
    payload: PoliceCertificateRequest,
    session: SessionClaims = Depends(current_session),
    stripe_service: StripeService = Depends(get_stripe_service)
):
    result = await application_service.submit_police_certificate_application(
        stripe_service, session.id, payload.model_dump(by_alias=True)
    )
    return {"success": True, **result}


@router.get("/applications/{application_type}")
async def list_applications(application_type: str, session: SessionClaims = Depends(current_session)):
    if application_type not in keys.APPLICATION_TYPES:
        raise ValidationError(f"Unknown application type: {application_type}")
    return {"applications": await application_service.get_user_applications(application_type, session.id)}


@router.get("/applications/{application_type}/{application_id}")
async def get_application(
    application_type: str,
    application_id: str,
    session: SessionClaims = Depends(current_session)
):
    return {"application": await application_service.get_application(session, application_type, application_id)}


@router.post("/create-payment")
async def create_payment(
    payload: CreatePaymentRequest,
    session: SessionClaims = Depends(current_session),
    stripe_service: StripeService = Depends(get_stripe_service)
):
    if payload.application_type not in keys.APPLICATION_TYPES:
        raise ValidationError(f"Unknown application type: {payload.application_type}")

    # Only the applicant (or an admin) may open a payment for an application
    await application_service.get_application(session, payload.application_type, payload.application_id)

    return await payment_service.create_payment(
        stripe_service,
        amount=payload.amount,
        application_id=payload.application_id,
        application_type=payload.application_type,
        user_id=session.id,
    )


@router.post("/webhook")
async def stripe_webhook(request: Request, stripe_service: StripeService = Depends(get_stripe_service)):
    """
    Stripe webhook receiver.

    The signature is checked against the raw body; any failure is a 400.
    """
    body = await request.body()
    try:
        event = stripe_service.construct_event(body, request.headers.get("stripe-signature"))
    except WebhookSignatureError as e:
        logger.warning(f"Webhook signature verification failed: {e.message}")
        raise

    await payment_service.handle_webhook_event(event)
    return {"received": True}
