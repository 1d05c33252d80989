"""
3pay crypto payment gateway client.

Webhooks are never trusted on their own: verify_callback re-fetches the
transaction from the provider and only reports it paid when the status is
final and the received balance covers the expected amount.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from app.integrations.gateway import PaymentGatewayConfig
from app.services.errors import PaymentProviderError

logger = logging.getLogger(__name__)

PRODUCTION_URL = "https://pay.3pa-y.com/api/v1"
SANDBOX_URL = "https://sandbox.pay.3pa-y.com/api/v1"

CURRENCY_TRC20 = "USDT-TRC20"
CURRENCY_ERC20 = "USDT-ERC20"

PAID_STATUSES = {"completed", "success", "paid", "confirmed"}


@dataclass
class ThreePayTransaction:
    transaction_id: str
    payment_url: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CallbackVerification:
    is_valid: bool
    is_paid: bool
    transaction_data: Optional[Dict[str, Any]] = None


def currency_type_for(currency: Optional[str]) -> str:
    """Map a free-form currency label to the 3pay network name."""
    if currency and "erc" in currency.lower():
        return CURRENCY_ERC20
    return CURRENCY_TRC20


def _first(data: Dict[str, Any], *keys: str):
    for key in keys:
        if data.get(key):
            return data[key]
    return None


class ThreePayClient:
    def __init__(self, config: PaymentGatewayConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return SANDBOX_URL if self.config.sandbox else PRODUCTION_URL

    def _headers(self) -> Dict[str, str]:
        return {
            "accept": "application/json",
            "x-api-secret": self.config.api_secret,
            "apiKey": self.config.api_key,
        }

    def create_transaction(self, amount, currency_type: str, callback_url: str) -> ThreePayTransaction:
        """Create a payment and return its id and hosted payment URL."""
        if self.config.is_test:
            transaction_id = f"test_{uuid.uuid4().hex[:16]}"
            logger.info("Test-mode 3pay transaction %s for %s %s", transaction_id, amount, currency_type)
            return ThreePayTransaction(transaction_id=transaction_id, payment_url=None, raw={"testMode": True})

        headers = self._headers()
        headers["callbackUrl"] = callback_url
        try:
            response = self.session.post(
                f"{self.base_url}/transaction/create",
                params={"amount": str(amount), "currencyType": currency_type, "callbackUrl": callback_url},
                headers=headers,
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("3pay transaction creation failed: %s", e)
            raise PaymentProviderError(f"Payment provider error: {e}") from e

        payload = data.get("data") if isinstance(data.get("data"), dict) else data
        transaction_id = _first(payload, "transactionId", "transaction_id", "id")
        payment_url = _first(payload, "paymentUrl", "payment_url", "url")
        if not transaction_id or not payment_url:
            logger.error("3pay response missing transaction id or payment url: %s", data)
            raise PaymentProviderError("Payment provider returned an incomplete transaction")

        logger.info("Created 3pay transaction %s", transaction_id)
        return ThreePayTransaction(transaction_id=str(transaction_id), payment_url=payment_url, raw=data)

    def get_transaction(self, transaction_id: str) -> Dict[str, Any]:
        try:
            response = self.session.get(
                f"{self.base_url}/transaction/get",
                params={"transactionId": transaction_id},
                headers=self._headers(),
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("3pay transaction lookup failed for %s: %s", transaction_id, e)
            raise PaymentProviderError(f"Payment provider error: {e}") from e

    def verify_callback(self, transaction_id: str) -> CallbackVerification:
        """Re-fetch a transaction from 3pay and decide whether it is paid."""
        if self.config.is_test:
            return CallbackVerification(
                is_valid=True,
                is_paid=True,
                transaction_data={"transactionId": transaction_id, "status": "completed", "testMode": True},
            )

        try:
            response = self.get_transaction(transaction_id)
        except PaymentProviderError:
            return CallbackVerification(is_valid=False, is_paid=False)

        # The provider nests the transaction under "date" on some endpoints
        data = response.get("date") or response.get("data")
        if not isinstance(data, dict):
            logger.error("3pay transaction %s has no data in response", transaction_id)
            return CallbackVerification(is_valid=False, is_paid=False)

        status = str(data.get("status") or "").lower()
        try:
            actual_balance = float(data.get("actualBalance") or 0)
            amount = float(data.get("amount") or 0)
        except (TypeError, ValueError):
            logger.warning("3pay transaction %s has non-numeric amounts: %s", transaction_id, data)
            return CallbackVerification(is_valid=False, is_paid=False, transaction_data=data)

        is_paid = status in PAID_STATUSES and actual_balance >= amount
        if not is_paid:
            logger.warning(
                "3pay transaction %s not paid: status=%s received=%s expected=%s",
                transaction_id, status, actual_balance, amount,
            )
        return CallbackVerification(is_valid=True, is_paid=is_paid, transaction_data=data)
