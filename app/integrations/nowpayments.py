"""
NOWPayments REST client (legacy provider).

IPN auth: HMAC-SHA512 of the key-sorted JSON body, sent in the
x-nowpayments-sig header.
"""
import hashlib
import hmac
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from app.services.errors import PaymentProviderError

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.nowpayments.io/v1"
SANDBOX_API_URL = "https://api-sandbox.nowpayments.io/v1"

SIGNATURE_HEADER = "x-nowpayments-sig"

# Provider payment status -> internal pending/transaction status
STATUS_MAP = {
    "finished": "completed",
    "confirmed": "completed",
    "failed": "failed",
    "expired": "failed",
    "refunded": "failed",
    "sending": "confirming",
    "confirming": "confirming",
    "partially_paid": "confirming",
}


def map_status(provider_status: Optional[str]) -> str:
    return STATUS_MAP.get((provider_status or "").lower(), "waiting")


def sign_payload(payload: Dict[str, Any], ipn_secret: str) -> str:
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hmac.new(ipn_secret.encode(), body.encode(), hashlib.sha512).hexdigest()


def verify_ipn_signature(payload: Dict[str, Any], signature: Optional[str], ipn_secret: str) -> bool:
    """Validate the x-nowpayments-sig header against the configured IPN secret"""
    if not signature or not ipn_secret:
        return False
    expected = sign_payload(payload, ipn_secret)
    is_valid = hmac.compare_digest(signature, expected)
    if not is_valid:
        logger.warning("Invalid NOWPayments IPN signature")
    return is_valid


class NowPaymentsClient:
    def __init__(self, api_key: str, ipn_secret: str = "", sandbox: bool = False, timeout: int = 30):
        self.api_key = api_key
        self.ipn_secret = ipn_secret
        self.sandbox = sandbox
        self.timeout = timeout
        self.base_url = SANDBOX_API_URL if sandbox else API_BASE_URL

    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self.api_key, "Content-Type": "application/json"}

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.request(method, f"{self.base_url}{path}", headers=self._headers(), **kwargs)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("NOWPayments %s %s failed: %s", method, path, e)
            raise PaymentProviderError(f"NOWPayments error: {e}") from e

    def status(self) -> Dict[str, Any]:
        return self._request("GET", "/status")

    def currencies(self) -> List[str]:
        return self._request("GET", "/currencies").get("currencies", [])

    def min_amount(self, currency_from: str, currency_to: str) -> Dict[str, Any]:
        return self._request(
            "GET", "/min-amount", params={"currency_from": currency_from, "currency_to": currency_to}
        )

    def create_payment(
        self,
        price_amount,
        price_currency: str,
        pay_currency: str,
        order_id: str,
        order_description: str = "",
        ipn_callback_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = {
            "price_amount": float(price_amount),
            "price_currency": price_currency,
            "pay_currency": pay_currency,
            "order_id": order_id,
            "order_description": order_description,
        }
        if ipn_callback_url:
            body["ipn_callback_url"] = ipn_callback_url
        data = self._request("POST", "/payment", json=body)
        logger.info("Created NOWPayments payment %s for order %s", data.get("payment_id"), order_id)
        return data

    def get_payment(self, payment_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/payment/{payment_id}")

    def create_payout(self, address: str, currency: str, amount) -> Dict[str, Any]:
        body = {"withdrawals": [{"address": address, "currency": currency, "amount": float(amount)}]}
        return self._request("POST", "/payout", json=body)

    def verify_ipn_signature(self, payload: Dict[str, Any], signature: Optional[str]) -> bool:
        return verify_ipn_signature(payload, signature, self.ipn_secret)
