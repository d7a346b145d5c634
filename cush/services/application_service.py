"""
cush/services/application_service.py

Purpose: Loan and police-certificate applications

- Loan applications are stored as pending
- Police certificate applications are priced, stored as pending_payment
  and paired with a Stripe payment intent
- Per-user application listing by type
"""

import uuid
from typing import Any, Dict, List, Optional

from cush.core.exceptions import AuthorizationError, ResourceNotFoundError
from cush.core.logging import get_logger
from cush.core.security import Capability, SessionClaims
from cush.db import keys
from cush.db.redis_client import get_store
from cush.services.payment_service import StripeService, create_payment
from utils.constants import (
    APPLICATION_PENDING,
    APPLICATION_PENDING_PAYMENT,
    COURIER_DELIVERY_FEE,
    POLICE_CERTIFICATE_PRICES,
)
from utils.time_utils import utc_now_iso

logger = get_logger(__name__)


def police_certificate_price(processing_time: str, delivery_method: Optional[str]) -> int:
    """
    Price in whole USD.

    Unknown processing times are charged at the standard rate.
    """
    price = POLICE_CERTIFICATE_PRICES.get(processing_time, POLICE_CERTIFICATE_PRICES["standard"])
    if delivery_method == "courier":
        price += COURIER_DELIVERY_FEE
    return price


async def _save(application_type: str, application: Dict[str, Any]):
    await get_store().set_json(keys.application_key(application_type, application["id"]), application)


async def submit_loan_application(user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Stores a loan application in the pending state.

    Args:
        user_id: Applicant
        fields: Loan details (loanType, amount, purpose, duration, ...)

    Returns:
        The stored application
    """
    now = utc_now_iso()
    application = {
        **fields,
        "id": str(uuid.uuid4()),
        "userId": user_id,
        "status": APPLICATION_PENDING,
        "createdAt": now,
        "updatedAt": now,
    }
    await _save(keys.LOAN, application)

    logger.info("Loan application submitted", extra={"user_id": user_id, "application_id": application["id"]})
    return application


async def submit_police_certificate_application(
    stripe_service: StripeService,
    user_id: str,
    fields: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Opens the payment for a police certificate application, then stores it.

    The application is only written once the payment intent exists, so a
    provider failure leaves nothing behind.

    Args:
        stripe_service: Stripe client for the payment intent
        user_id: Applicant
        fields: Applicant details, including processingTime and deliveryMethod

    Returns:
        {"applicationId", "price", "paymentIntentId", "clientSecret"}

    Raises:
        ExternalServiceError: If the payment intent cannot be created
    """
    price = police_certificate_price(fields.get("processingTime"), fields.get("deliveryMethod"))
    application_id = str(uuid.uuid4())

    intent = await create_payment(
        stripe_service,
        amount=price,
        application_id=application_id,
        application_type=keys.POLICE_CERTIFICATE,
        user_id=user_id,
    )

    now = utc_now_iso()
    application = {
        **fields,
        "id": application_id,
        "userId": user_id,
        "status": APPLICATION_PENDING_PAYMENT,
        "price": price,
        "paymentIntentId": intent["id"],
        "createdAt": now,
        "updatedAt": now,
    }
    await _save(keys.POLICE_CERTIFICATE, application)

    logger.info(
        f"Police certificate application submitted (${price})",
        extra={"user_id": user_id, "application_id": application_id},
    )

    return {
        "applicationId": application_id,
        "price": price,
        "paymentIntentId": intent["id"],
        "clientSecret": intent["clientSecret"],
    }


async def get_application(claims: SessionClaims, application_type: str, application_id: str) -> Dict[str, Any]:
    """
    Fetches an application the caller may read.

    Raises:
        ResourceNotFoundError / AuthorizationError
    """
    application = await get_store().get_json(keys.application_key(application_type, application_id))
    if not application:
        raise ResourceNotFoundError("Application not found")
    if application.get("userId") != claims.id and not claims.can(Capability.ACCESS_ANY_RECORD):
        raise AuthorizationError("Not allowed to access this application")
    return application


async def get_user_applications(application_type: str, user_id: str) -> List[Dict[str, Any]]:
    """
    A user's applications of one type, newest first.
    """
    store = get_store()
    applications = []
    for key in await store.scan_keys(keys.application_scan_pattern(application_type)):
        if not keys.is_application_record_key(key, application_type):
            continue
        application = await store.get_json(key)
        if application and application.get("userId") == user_id:
            applications.append(application)

    applications.sort(key=lambda a: a.get("createdAt") or "", reverse=True)
    return applications
