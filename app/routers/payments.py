"""
Payment settings, legacy NOWPayments invoices, provider webhooks and stats.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.integrations.nowpayments import SIGNATURE_HEADER
from app.integrations.threepay import ThreePayClient
from app.models.payment import PaymentSettings
from app.models.user import User
from app.auth.dependencies import get_current_user, require_admin, is_admin
from app.schemas.payments import (
    PaymentSettingsUpdate,
    PaymentSettingsResponse,
    ConnectionTestResponse,
    CreatePaymentRequest,
    PaymentTransactionResponse,
    PaymentStatsResponse,
    WebhookResponse,
    ThreePayVerifyResponse,
)
from app.services import payments
from app.services.encryption import masked_credential
from app.services.settings import get_or_create_payment_settings, update_payment_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def _settings_response(row: PaymentSettings) -> PaymentSettingsResponse:
    return PaymentSettingsResponse(
        provider=row.provider,
        api_key_masked=masked_credential(row.api_key_encrypted),
        ipn_secret_configured=bool(row.ipn_secret_encrypted),
        is_test_mode=row.is_test_mode,
        is_active=row.is_active,
        accepted_currencies=row.accepted_currencies or [],
        crypto_enabled=row.crypto_enabled,
        card_enabled=row.card_enabled,
        last_tested_at=row.last_tested_at,
        test_status=row.test_status,
        test_message=row.test_message,
        updated_at=row.updated_at,
    )


@router.get("/settings", response_model=PaymentSettingsResponse)
def get_payment_settings(
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    row = get_or_create_payment_settings(db)
    db.commit()
    return _settings_response(row)


@router.put("/settings", response_model=PaymentSettingsResponse)
def put_payment_settings(
    data: PaymentSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    row = update_payment_settings(db, data.model_dump(exclude_unset=True), updated_by=current_user.id)
    return _settings_response(row)


@router.post("/test-connection", response_model=ConnectionTestResponse)
def test_connection(
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return payments.test_connection(db)


@router.post("/create", response_model=PaymentTransactionResponse, status_code=status.HTTP_201_CREATED)
def create_payment(
    data: CreatePaymentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create a NOWPayments invoice, optionally paying for a new subscription"""
    if data.strategy_id is None and data.amount is None:
        raise HTTPException(status_code=400, detail="amount or strategy_id is required")
    return payments.create_payment(
        db,
        current_user,
        data.amount,
        data.pay_currency,
        price_currency=data.price_currency,
        description=data.description,
        strategy_id=data.strategy_id,
    )


@router.get("/transactions", response_model=List[PaymentTransactionResponse])
def list_transactions(
    user_id: Optional[int] = None,
    payment_status: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Admins see everything; other users only their own transactions"""
    if not is_admin(current_user):
        user_id = current_user.id
    return payments.list_transactions(db, user_id, payment_status, limit)


@router.get("/stats", response_model=PaymentStatsResponse)
def get_stats(
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return payments.get_payment_stats(db)


@router.post("/webhook", response_model=WebhookResponse)
async def nowpayments_webhook(
    request: Request,
    db: Session = Depends(get_db),
):
    """
    NOWPayments IPN receiver.
    Validates the HMAC signature, then re-reads the payment from the API.
    """
    payload = await request.json()
    client = payments.nowpayments_client(db)
    if not client.verify_ipn_signature(payload, request.headers.get(SIGNATURE_HEADER)):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")

    return payments.handle_nowpayments_ipn(db, payload, client)


@router.post("/webhook/3pay", response_model=WebhookResponse)
async def threepay_webhook(
    request: Request,
    db: Session = Depends(get_db),
    client: ThreePayClient = Depends(payments.threepay_client),
):
    """
    3pay callback receiver.
    The payload only identifies the transaction; payment state is re-fetched from 3pay.
    """
    payload = await request.json()
    logger.info("3pay webhook received: %s", payload)
    return payments.handle_threepay_webhook(db, payload, client)


@router.get("/verify/3pay", response_model=ThreePayVerifyResponse)
def verify_threepay(
    transaction_id: str = Query(..., alias="transactionId", min_length=1),
    _: User = Depends(get_current_user),
    client: ThreePayClient = Depends(payments.threepay_client),
):
    return payments.verify_threepay_transaction(transaction_id, client)
