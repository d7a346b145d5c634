"""
cush/services/payment_service.py

Purpose: Stripe payments

- Creates payment intents with the stripe SDK
- Verifies webhook signatures with stripe.Webhook.construct_event
- Payment records keyed by payment intent id
- payment_intent.succeeded: payment pending → completed, application → processing
- Replayed webhooks are no-ops (transition only from pending)
"""

from typing import Any, Dict, Optional

import stripe
from starlette.concurrency import run_in_threadpool

from cush.core.config import settings
from cush.core.exceptions import ExternalServiceError, ValidationError, WebhookSignatureError
from cush.core.logging import get_logger
from cush.db import keys
from cush.db.redis_client import get_store
from cush.services import notification_service
from utils.constants import (
    APPLICATION_PROCESSING,
    NOTIFICATION_ERROR,
    NOTIFICATION_SUCCESS,
    PAYMENT_COMPLETED,
    PAYMENT_CURRENCY,
    PAYMENT_FAILED,
    PAYMENT_PENDING,
    PAYMENT_RECEIVED_MESSAGE,
    PAYMENT_RECEIVED_TITLE,
)
from utils.time_utils import utc_now_iso

logger = get_logger(__name__)


class StripeService:
    """
    Service class for the Stripe API.
    Handles payment intent creation and webhook verification.
    """

    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET

    async def create_payment_intent(
        self,
        amount_cents: int,
        currency: str = PAYMENT_CURRENCY,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Creates a payment intent.

        Args:
            amount_cents: Amount in the smallest currency unit
            currency: ISO currency code
            metadata: String key/values attached to the intent

        Returns:
            {"id": "pi_...", "clientSecret": "..."}

        Raises:
            ExternalServiceError: If Stripe is not configured or the call fails
        """
        if not self.api_key:
            raise ExternalServiceError("Payment provider is not configured")

        try:
            # The SDK is blocking; keep it off the event loop
            intent = await run_in_threadpool(
                stripe.PaymentIntent.create,
                api_key=self.api_key,
                amount=amount_cents,
                currency=currency,
                metadata=metadata or {},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe rejected payment intent: {e.http_status} {e.user_message or e}")
            raise ExternalServiceError("Failed to create payment intent", details={"status": e.http_status})

        logger.info(f"💳 Payment intent created: {intent['id']}", extra={"payment_id": intent["id"]})
        return {"id": intent["id"], "clientSecret": intent["client_secret"]}

    def construct_event(self, payload: bytes, signature_header: Optional[str]) -> Dict[str, Any]:
        """
        Verifies a webhook signature and parses the event.

        Args:
            payload: Raw request body, exactly as received
            signature_header: Value of the Stripe-Signature header

        Returns:
            The verified event

        Raises:
            WebhookSignatureError: Missing secret/header, bad or stale
                signature, or unparseable body
        """
        if not self.webhook_secret:
            raise WebhookSignatureError("Webhook secret is not configured")
        if not signature_header:
            raise WebhookSignatureError("Missing signature header")

        try:
            return stripe.Webhook.construct_event(
                payload,
                signature_header,
                self.webhook_secret,
                tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(details={"reason": str(e)})
        except ValueError:
            raise WebhookSignatureError("Webhook payload is not valid JSON")


# Singleton instance
_stripe_service: Optional[StripeService] = None


def get_stripe_service() -> StripeService:
    """Get or create the global Stripe service instance."""
    global _stripe_service
    if _stripe_service is None:
        _stripe_service = StripeService()
    return _stripe_service


# ============================================================================
# Payment records
# ============================================================================

async def get_payment(payment_id: str) -> Optional[Dict[str, Any]]:
    return await get_store().get_json(keys.payment_key(payment_id))


async def create_payment(
    stripe_service: StripeService,
    amount: float,
    application_id: str,
    application_type: str,
    user_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Creates a payment intent and its pending payment record.

    Args:
        stripe_service: Stripe client
        amount: Amount in whole currency units (converted to cents)
        application_id / application_type: Application being paid for
        user_id: Paying user

    Returns:
        {"id": payment intent id, "clientSecret": ...}
    """
    if amount <= 0:
        raise ValidationError("Amount must be positive")

    intent = await stripe_service.create_payment_intent(
        amount_cents=int(round(amount * 100)),
        metadata={"applicationId": application_id, "applicationType": application_type},
    )

    payment = {
        "id": intent["id"],
        "applicationId": application_id,
        "applicationType": application_type,
        "userId": user_id,
        "amount": amount,
        "currency": PAYMENT_CURRENCY,
        "status": PAYMENT_PENDING,
        "createdAt": utc_now_iso(),
    }
    await get_store().set_json(keys.payment_key(intent["id"]), payment)

    return intent


async def _set_application_status(application_type: str, application_id: str, status: str) -> Optional[Dict[str, Any]]:
    store = get_store()
    key = keys.application_key(application_type, application_id)
    application = await store.get_json(key)
    if not application:
        logger.warning(f"Payment references missing application {application_type}:{application_id}")
        return None
    application["status"] = status
    application["updatedAt"] = utc_now_iso()
    await store.set_json(key, application)
    return application


async def handle_payment_succeeded(payment_intent_id: str) -> bool:
    """
    Marks a payment completed and moves its application to processing.

    Returns:
        True if a transition happened; False for unknown payments and replays
    """
    store = get_store()
    payment = await get_payment(payment_intent_id)
    if not payment:
        logger.warning("Webhook for unknown payment", extra={"payment_id": payment_intent_id})
        return False

    if payment.get("status") != PAYMENT_PENDING:
        logger.info(
            f"Ignoring replayed webhook (payment already {payment.get('status')})",
            extra={"payment_id": payment_intent_id},
        )
        return False

    payment["status"] = PAYMENT_COMPLETED
    payment["completedAt"] = utc_now_iso()
    await store.set_json(keys.payment_key(payment_intent_id), payment)

    application = await _set_application_status(
        payment["applicationType"], payment["applicationId"], APPLICATION_PROCESSING
    )

    owner = payment.get("userId") or (application or {}).get("userId")
    if owner:
        await notification_service.create_notification(
            user_id=owner,
            title=PAYMENT_RECEIVED_TITLE,
            message=PAYMENT_RECEIVED_MESSAGE.format(amount=payment["amount"]),
            notification_type=NOTIFICATION_SUCCESS,
            link="/dashboard/migration/status-tracker",
        )

    logger.info("✅ Payment completed", extra={"payment_id": payment_intent_id})
    return True


async def handle_payment_failed(payment_intent_id: str) -> bool:
    """
    Marks a pending payment failed. Same replay rules as handle_payment_succeeded.
    """
    payment = await get_payment(payment_intent_id)
    if not payment or payment.get("status") != PAYMENT_PENDING:
        return False

    payment["status"] = PAYMENT_FAILED
    await get_store().set_json(keys.payment_key(payment_intent_id), payment)

    if payment.get("userId"):
        await notification_service.create_notification(
            user_id=payment["userId"],
            title="Payment Failed",
            message="Your payment could not be completed. Please try again.",
            notification_type=NOTIFICATION_ERROR,
        )

    logger.warning("Payment failed", extra={"payment_id": payment_intent_id})
    return True


async def handle_webhook_event(event: Dict[str, Any]) -> bool:
    """
    Dispatches a verified webhook event.

    Returns:
        True if the event changed any record
    """
    event_type = event.get("type")
    intent = (event.get("data") or {}).get("object") or {}
    intent_id = intent.get("id")

    logger.info(f"Webhook received: {event_type}", extra={"payment_id": intent_id})

    if not intent_id:
        return False
    if event_type == "payment_intent.succeeded":
        return await handle_payment_succeeded(intent_id)
    if event_type == "payment_intent.payment_failed":
        return await handle_payment_failed(intent_id)
    return False
