# services/payment_service.py
import hashlib
import hmac
import logging
from typing import Dict, Optional

import requests

from config import (
    RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET, RAZORPAY_WEBHOOK_SECRET,
    RAZORPAY_API_URL, GATEWAY_TIMEOUT_SECONDS
)
from exceptions import GatewayError

logger = logging.getLogger(__name__)


def to_minor_units(amount: float) -> int:
    """Convert a major-unit amount (e.g. rupees) to the gateway's minor unit (paise)."""
    return int(round(amount * 100))


def sign(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def signature_matches(secret: str, message: bytes, signature: Optional[str]) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(sign(secret, message), signature)


class RazorpayService:
    def __init__(
        self,
        key_id: str,
        key_secret: str,
        webhook_secret: str,
        base_url: str = RAZORPAY_API_URL,
        timeout: float = GATEWAY_TIMEOUT_SECONDS,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.orders_url = f"{base_url.rstrip('/')}/orders"
        self.timeout = timeout

    def create_order(self, amount: int, currency: str, receipt: str, notes: Dict[str, str]) -> Dict:
        """Create a gateway order; ``amount`` is already in minor units."""
        payload = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
        }
        try:
            response = requests.post(
                self.orders_url,
                json=payload,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Razorpay request failed: {e}")
            raise GatewayError(f"Razorpay error: {e}")

        if response.status_code == 401:
            logger.error("Razorpay rejected the configured API keys")
            raise GatewayError("Razorpay authentication failed. Please check API keys.")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            description = data.get("error", {}).get("description") or response.reason or "Unknown error"
            logger.error(f"Razorpay API error ({response.status_code}): {description}")
            raise GatewayError(f"Razorpay error: {description}")

        if not data.get("id"):
            raise GatewayError("Razorpay error: response did not include an order id")

        return data

    def verify_payment_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:
        message = f"{gateway_order_id}|{payment_id}".encode()
        return signature_matches(self.key_secret, message, signature)

    def verify_webhook_signature(self, body: bytes, signature: Optional[str]) -> bool:
        return signature_matches(self.webhook_secret, body, signature)


razorpay = RazorpayService(RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET, RAZORPAY_WEBHOOK_SECRET)


def get_payment_gateway() -> RazorpayService:
    return razorpay
