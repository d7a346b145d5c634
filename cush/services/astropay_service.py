"""
cush/services/astropay_service.py

Purpose: AstroPay virtual card and transfer API client

- Virtual card creation, lookup and funding
- Money transfers and transaction history
- Bearer + X-Merchant-ID authentication
- Upstream failures surface as ExternalServiceError
"""

from typing import Any, Dict, Optional

import httpx

from cush.core.config import settings
from cush.core.exceptions import ExternalServiceError
from cush.core.logging import get_logger

logger = get_logger(__name__)


class AstroPayService:
    """Service for the AstroPay partner API"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        merchant_id: Optional[str] = None,
        api_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key if api_key is not None else settings.ASTROPAY_API_KEY
        self.merchant_id = merchant_id if merchant_id is not None else settings.ASTROPAY_MERCHANT_ID
        self.api_url = (api_url or settings.ASTROPAY_API_URL).rstrip("/")
        self._transport = transport
        self._timeout = settings.HTTP_TIMEOUT_SECONDS

    async def _request(self, method: str, endpoint: str, data: Optional[Dict[str, Any]] = None) -> Any:
        if not self.api_key:
            raise ExternalServiceError("Card provider is not configured")

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "X-Merchant-ID": self.merchant_id or "",
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(method, f"{self.api_url}{endpoint}", json=data, headers=headers)
        except httpx.TimeoutException:
            logger.error(f"AstroPay timeout: {method} {endpoint}")
            raise ExternalServiceError("Card provider is taking too long to respond")
        except httpx.RequestError as e:
            logger.error(f"Network error contacting AstroPay: {e}")
            raise ExternalServiceError("Unable to reach card provider")

        if response.status_code >= 400:
            logger.error(f"AstroPay API error: {response.status_code} on {method} {endpoint}")
            raise ExternalServiceError(
                "Card provider request failed",
                details={"status": response.status_code},
            )

        return response.json()

    async def create_virtual_card(self, user_id: str, amount: float, currency: str) -> Any:
        logger.info(f"Creating virtual card ({amount} {currency})", extra={"user_id": user_id})
        return await self._request("POST", "/cards/virtual", {
            "user_id": user_id,
            "amount": amount,
            "currency": currency,
        })

    async def get_card_details(self, card_id: str) -> Any:
        return await self._request("GET", f"/cards/{card_id}")

    async def fund_card(self, card_id: str, amount: float, currency: str) -> Any:
        return await self._request("POST", f"/cards/{card_id}/fund", {"amount": amount, "currency": currency})

    async def transfer_money(self, user_id: str, amount: float, currency: str, recipient_id: str) -> Any:
        logger.info(f"Transferring {amount} {currency}", extra={"user_id": user_id})
        return await self._request("POST", "/transfers", {
            "user_id": user_id,
            "amount": amount,
            "currency": currency,
            "recipient_id": recipient_id,
        })

    async def get_user_transactions(self, user_id: str) -> Any:
        return await self._request("GET", f"/users/{user_id}/transactions")

    async def get_user_cards(self, user_id: str) -> Any:
        return await self._request("GET", f"/users/{user_id}/cards")


# Singleton instance
_astropay_service: Optional[AstroPayService] = None


def get_astropay_service() -> AstroPayService:
    """Get or create the global AstroPay service instance."""
    global _astropay_service
    if _astropay_service is None:
        _astropay_service = AstroPayService()
    return _astropay_service
