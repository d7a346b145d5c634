"""
Sends a signed payment_intent.succeeded event to a running server

    python scripts/send_test_webhook.py pi_123 [http://localhost:8000]

Uses STRIPE_WEBHOOK_SECRET from the environment (.env), so the server
accepts the signature exactly as it would a real Stripe delivery.
"""

import asyncio
import hashlib
import hmac
import json
import sys
import time
from pathlib import Path
from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables
load_dotenv()

import httpx

from cush.core.config import settings


def sign(body: bytes, timestamp: int, secret: str) -> str:
    """v1 signature as Stripe computes it: HMAC-SHA256 over "{timestamp}.{body}"."""
    return hmac.new(secret.encode("utf-8"), f"{timestamp}.".encode("utf-8") + body, hashlib.sha256).hexdigest()


async def send_webhook(payment_intent_id: str, base_url: str):
    """Simulate what Stripe sends to our webhook"""

    if not settings.STRIPE_WEBHOOK_SECRET:
        print("❌ STRIPE_WEBHOOK_SECRET must be set in .env file")
        return

    url = f"{base_url.rstrip('/')}/api/webhook"
    event = {
        "id": f"evt_test_{int(time.time())}",
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": payment_intent_id, "object": "payment_intent"}},
    }
    body = json.dumps(event).encode("utf-8")
    timestamp = int(time.time())
    signature = sign(body, timestamp, settings.STRIPE_WEBHOOK_SECRET)

    print(f"🧪 Testing webhook: {url}")
    print(f"📤 Sending event for {payment_intent_id}\n")

    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                url,
                content=body,
                headers={
                    "Content-Type": "application/json",
                    "Stripe-Signature": f"t={timestamp},v1={signature}",
                },
                timeout=10.0
            )

            print(f"✅ Status: {response.status_code}")
            print(f"📥 Response: {response.text[:200]}")

            if response.status_code == 200:
                print("\n✅ Webhook accepted!")
            else:
                print(f"\n❌ Webhook returned {response.status_code}")

    except httpx.HTTPError as e:
        print(f"❌ Error: {e}")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts/send_test_webhook.py <payment-intent-id> [base-url]")
        sys.exit(1)

    asyncio.run(send_webhook(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else "http://localhost:8000"))
