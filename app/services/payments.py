"""
Payment provider orchestration: client construction, payment verification,
webhook processing and reporting.

Webhook payloads only tell us which transaction to look at. Whether it is
paid is always decided by re-fetching the transaction from the provider.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import settings
from app.integrations.gateway import PaymentGatewayConfig
from app.integrations.nowpayments import NowPaymentsClient, map_status
from app.integrations.threepay import ThreePayClient
from app.models.payment import PaymentTransaction
from app.models.subscription import PendingPayment, PendingPaymentStatus, PaymentType, Subscription
from app.models.user import User, UserRole
from app.models.wallet import WalletTransaction
from app.services import subscriptions
from app.services.errors import BadRequestError, NotFoundError, PaymentProviderError
from app.services.money import to_money
from app.services.settings import (
    get_nowpayments_credentials,
    get_or_create_payment_settings,
    get_payment_settings_row,
)
from app.services.wallets import REFERENCE_CASHOUT

logger = logging.getLogger(__name__)

PROVIDER_THREEPAY = "3pay"
PROVIDER_NOWPAYMENTS = "nowpayments"


def threepay_client() -> ThreePayClient:
    return ThreePayClient(PaymentGatewayConfig.from_settings())


def nowpayments_client(db: Session) -> NowPaymentsClient:
    creds = get_nowpayments_credentials(db)
    return NowPaymentsClient(creds["api_key"], creds["ipn_secret"], sandbox=creds["is_test_mode"])


def payout_gateway(db: Session) -> Tuple[PaymentGatewayConfig, Optional[NowPaymentsClient]]:
    """Gateway config and payout client for cashouts, driven by payment settings."""
    row = get_payment_settings_row(db)
    if row is None or row.is_test_mode:
        return PaymentGatewayConfig(mode="test"), None
    return PaymentGatewayConfig(mode="production"), nowpayments_client(db)


def test_connection(db: Session) -> Dict[str, Any]:
    """Check the NOWPayments API connection and record the outcome on the settings row."""
    row = get_or_create_payment_settings(db)
    try:
        client = nowpayments_client(db)
        api_status = client.status()
        currencies = client.currencies()
        target = (row.accepted_currencies or ["usdttrc20"])[0]
        min_amount = client.min_amount("usd", target)
        result = {
            "success": True,
            "message": f"Connected to NOWPayments ({len(currencies)} currencies available)",
            "api_status": api_status.get("message"),
            "currencies_count": len(currencies),
            "min_amount": min_amount.get("min_amount"),
        }
        row.test_status = "success"
    except (BadRequestError, PaymentProviderError) as e:
        logger.warning("NOWPayments connection test failed: %s", e)
        result = {"success": False, "message": str(e)}
        row.test_status = "failed"

    row.test_message = result["message"]
    row.last_tested_at = datetime.now(timezone.utc)
    db.commit()
    return result


def create_payment(
    db: Session,
    user: User,
    amount,
    pay_currency: str,
    price_currency: str = "usd",
    description: Optional[str] = None,
    strategy_id: Optional[int] = None,
) -> PaymentTransaction:
    """
    Create a NOWPayments invoice. With a strategy_id the invoice pays for a
    new subscription and is linked to a PendingPayment through its order id.
    """
    client = nowpayments_client(db)
    order_id = f"order_{user.id}_{int(datetime.now(timezone.utc).timestamp() * 1000)}"
    pending = None

    if strategy_id is not None:
        if subscriptions.get_live_subscription(db, user.id):
            raise BadRequestError("You already have an active or pending subscription")
        if subscriptions.get_open_payment(db, user.id, PaymentType.SUBSCRIPTION):
            raise BadRequestError("A subscription payment is already in progress")
        strategy = subscriptions.get_strategy(db, strategy_id)
        coach_id, coach_name, pct = subscriptions.resolve_commission(db, user)
        amount = strategy.price
        order_id = f"pending_np_{order_id}"
        pending = PendingPayment(
            payment_id=order_id,
            provider=PROVIDER_NOWPAYMENTS,
            user_id=user.id,
            strategy_id=strategy.id,
            type=PaymentType.SUBSCRIPTION,
            amount=to_money(amount),
            currency=pay_currency,
            coach_id=coach_id,
            coach_name=coach_name,
            commission_percentage=pct,
            status=PendingPaymentStatus.WAITING,
        )

    if amount is None or to_money(amount) <= 0:
        raise BadRequestError("Amount must be positive")

    data = client.create_payment(
        to_money(amount), price_currency, pay_currency, order_id, order_description=description or ""
    )
    provider_status = data.get("payment_status")
    transaction = PaymentTransaction(
        payment_id=str(data.get("payment_id")),
        order_id=order_id,
        user_id=user.id,
        amount=to_money(amount),
        currency=price_currency,
        pay_currency=data.get("pay_currency", pay_currency),
        pay_address=data.get("pay_address"),
        pay_amount=data.get("pay_amount"),
        status=map_status(provider_status),
        provider_status=provider_status,
        description=description,
    )
    db.add(transaction)
    if pending is not None:
        pending.provider_transaction_id = transaction.payment_id
        pending.payment_url = data.get("invoice_url")
        db.add(pending)
    db.commit()
    db.refresh(transaction)
    return transaction


def list_transactions(
    db: Session, user_id: Optional[int] = None, status: Optional[str] = None, limit: int = 100
) -> List[PaymentTransaction]:
    query = db.query(PaymentTransaction)
    if user_id is not None:
        query = query.filter(PaymentTransaction.user_id == user_id)
    if status:
        query = query.filter(PaymentTransaction.status == status)
    return query.order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc()).limit(limit).all()


def _provider_reports_paid(db: Session, pending: PendingPayment, client: Optional[ThreePayClient] = None) -> bool:
    if pending.provider == PROVIDER_NOWPAYMENTS:
        remote = nowpayments_client(db).get_payment(pending.provider_transaction_id)
        return map_status(remote.get("payment_status")) == "completed"

    verification = (client or threepay_client()).verify_callback(pending.provider_transaction_id)
    if not verification.is_valid:
        raise BadRequestError("Could not verify payment with provider")
    return verification.is_paid


def _apply_paid(db: Session, payment_id: str) -> Tuple[Subscription, bool]:
    """
    Apply a payment the provider reports as paid. One that can no longer be
    applied (the user went live through another payment meanwhile) is closed
    as failed so it stops being retried, then the error is re-raised.
    """
    try:
        return subscriptions.confirm_payment(db, payment_id)
    except BadRequestError as e:
        db.rollback()
        logger.error("Paid payment %s cannot be applied, closing it as failed: %s", payment_id, e)
        subscriptions.mark_payment_failed(db, payment_id)
        raise


def confirm_verified_payment(
    db: Session,
    payment_id: str,
    user: Optional[User] = None,
    client: Optional[ThreePayClient] = None,
) -> Tuple[Subscription, bool]:
    """Confirm a pending payment after the provider reports it paid."""
    pending = subscriptions.find_pending_payment(db, payment_id)
    if user is not None and user.role != UserRole.ADMIN and pending.user_id != user.id:
        raise NotFoundError("Pending payment not found")

    if pending.status in subscriptions.OPEN_PAYMENT_STATUSES and not pending.test_mode:
        if not _provider_reports_paid(db, pending, client):
            raise BadRequestError("Payment has not been completed yet")
        return _apply_paid(db, pending.payment_id)

    return subscriptions.confirm_payment(db, pending.payment_id)


def _webhook_transaction_id(payload: Dict[str, Any]) -> Optional[str]:
    for source in (payload, payload.get("data") or {}, payload.get("date") or {}):
        if not isinstance(source, dict):
            continue
        for key in ("transactionId", "transaction_id", "id"):
            if source.get(key):
                return str(source[key])
    return None


def handle_threepay_webhook(
    db: Session, payload: Dict[str, Any], client: Optional[ThreePayClient] = None
) -> Dict[str, Any]:
    """Process a 3pay callback. Only the transaction id is read from the payload."""
    transaction_id = _webhook_transaction_id(payload)
    if not transaction_id:
        raise BadRequestError("Missing transaction id")

    pending = subscriptions.find_pending_payment(db, transaction_id)
    if pending.status == PendingPaymentStatus.COMPLETED:
        subscription, _ = subscriptions.confirm_payment(db, pending.payment_id)
        return {"received": True, "processed": True, "already_processed": True, "subscription_id": subscription.id}

    verification = (client or threepay_client()).verify_callback(pending.provider_transaction_id)
    if not verification.is_valid:
        logger.warning("3pay webhook for %s could not be verified", transaction_id)
        return {"received": True, "processed": False, "reason": "verification_failed"}
    if not verification.is_paid:
        logger.info("3pay webhook for %s: transaction not paid yet", transaction_id)
        return {"received": True, "processed": False, "reason": "not_paid"}

    try:
        subscription, already = _apply_paid(db, pending.payment_id)
    except BadRequestError:
        return {"received": True, "processed": False, "reason": "not_applicable"}
    return {
        "received": True,
        "processed": True,
        "already_processed": already,
        "subscription_id": subscription.id,
    }


def handle_nowpayments_ipn(db: Session, payload: Dict[str, Any], client: NowPaymentsClient) -> Dict[str, Any]:
    """
    Process a signature-checked NOWPayments IPN.

    The payment is re-read from the API; its status there, not the IPN body,
    drives the local transaction and any linked PendingPayment.
    """
    payment_id = payload.get("payment_id")
    if not payment_id:
        raise BadRequestError("Missing payment_id")
    payment_id = str(payment_id)

    remote = client.get_payment(payment_id)
    provider_status = remote.get("payment_status")
    status = map_status(provider_status)

    transaction = db.query(PaymentTransaction).filter(PaymentTransaction.payment_id == payment_id).first()
    if transaction:
        transaction.status = status
        transaction.provider_status = provider_status
    else:
        logger.warning("NOWPayments IPN for unknown payment %s", payment_id)

    order_id = remote.get("order_id") or payload.get("order_id")
    pending = None
    if order_id:
        pending = db.query(PendingPayment).filter(PendingPayment.payment_id == str(order_id)).first()
    db.commit()

    result: Dict[str, Any] = {"received": True, "payment_id": payment_id, "status": status}
    if pending is None:
        return result

    if status == "completed":
        try:
            subscription, already = _apply_paid(db, pending.payment_id)
        except BadRequestError:
            result.update({"processed": False, "reason": "not_applicable"})
            return result
        result.update({"subscription_id": subscription.id, "already_processed": already})
    elif status == "failed":
        subscriptions.mark_payment_failed(db, pending.payment_id)
    elif status == "confirming":
        subscriptions.update_pending_status(db, pending.payment_id, PendingPaymentStatus.CONFIRMING)
    return result


def _is_stale(created_at: Optional[datetime], cutoff: datetime) -> bool:
    if created_at is None:
        return False
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return created_at < cutoff


def reconcile_pending_payments(db: Session, client: Optional[ThreePayClient] = None) -> Dict[str, int]:
    """
    Poll 3pay for every open pending payment and confirm the paid ones.
    Covers callbacks that never arrived. Payments the provider still reports
    unpaid after pending_payment_expiry_hours are closed as failed, which
    also frees the user to start a new one.
    """
    client = client or threepay_client()
    cutoff = datetime.now(timezone.utc) - timedelta(hours=settings.pending_payment_expiry_hours)
    open_payments = [
        (p.payment_id, p.provider_transaction_id, p.created_at)
        for p in db.query(PendingPayment)
        .filter(
            PendingPayment.provider == PROVIDER_THREEPAY,
            PendingPayment.test_mode == False,
            PendingPayment.status.in_(subscriptions.OPEN_PAYMENT_STATUSES),
        )
        .order_by(PendingPayment.id)
        .all()
    ]

    stats = {"checked": 0, "confirmed": 0, "failed": 0, "expired": 0}
    for payment_id, transaction_id, created_at in open_payments:
        stats["checked"] += 1
        verification = client.verify_callback(transaction_id)
        if not verification.is_valid:
            continue
        if not verification.is_paid:
            if _is_stale(created_at, cutoff):
                logger.info("Closing unpaid payment %s opened at %s", payment_id, created_at)
                subscriptions.mark_payment_failed(db, payment_id)
                stats["expired"] += 1
            continue
        try:
            _apply_paid(db, payment_id)
            stats["confirmed"] += 1
        except BadRequestError:
            stats["failed"] += 1
    return stats


def verify_threepay_transaction(transaction_id: str, client: Optional[ThreePayClient] = None) -> Dict[str, Any]:
    verification = (client or threepay_client()).verify_callback(transaction_id)
    return {
        "transaction_id": transaction_id,
        "is_valid": verification.is_valid,
        "is_paid": verification.is_paid,
        "transaction": verification.transaction_data,
    }


def _total(query) -> Any:
    return to_money(query.scalar() or 0)


def get_payment_stats(db: Session) -> Dict[str, Any]:
    """
    Income, payment counts by status and cashout expenses.

    NOWPayments pending payments are already counted through their invoice
    (PaymentTransaction), so only 3pay pending payments add to gateway income.
    """
    invoice_income = _total(
        db.query(func.sum(PaymentTransaction.amount)).filter(PaymentTransaction.status == "completed")
    )
    gateway_income = _total(
        db.query(func.sum(PendingPayment.amount)).filter(
            PendingPayment.provider != PROVIDER_NOWPAYMENTS,
            PendingPayment.status == PendingPaymentStatus.COMPLETED,
        )
    )
    cashouts = _total(
        db.query(func.sum(WalletTransaction.amount)).filter(WalletTransaction.reference_type == REFERENCE_CASHOUT)
    )

    counts = {}
    for status in PendingPaymentStatus:
        invoices = db.query(PaymentTransaction).filter(PaymentTransaction.status == status.value).count()
        pendings = db.query(PendingPayment).filter(
            PendingPayment.provider != PROVIDER_NOWPAYMENTS,
            PendingPayment.status == status,
        ).count()
        counts[status.value] = invoices + pendings

    total_income = invoice_income + gateway_income
    return {
        "total_income": total_income,
        "gateway_income": gateway_income,
        "invoice_income": invoice_income,
        "total_cashouts": cashouts,
        "net": total_income - cashouts,
        "counts": counts,
        "total_payments": sum(counts.values()),
    }
