"""
Wallet ledger: per-party balances with an append-only transaction log.

Every balance change goes through add_transaction, which writes the
transaction row and updates the wallet in the same database transaction.
Callers own the commit so a subscription change and its wallet credits land
together.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.integrations.gateway import PaymentGatewayConfig
from app.models.wallet import (
    Wallet,
    WalletTransaction,
    CoachCommission,
    WalletOwnerType,
    TransactionType,
    SYSTEM_WALLET_OWNER_ID,
)
from app.services.errors import BadRequestError, NotFoundError
from app.services.money import to_money, format_money, ZERO

logger = logging.getLogger(__name__)

REFERENCE_SUBSCRIPTION = "subscription"
REFERENCE_COMMISSION = "commission"
REFERENCE_CASHOUT = "cashout"


def get_or_create_wallet(
    db: Session,
    owner_id: str,
    owner_type: WalletOwnerType,
    owner_name: Optional[str] = None,
) -> Wallet:
    """Return the wallet for (owner_id, owner_type), creating an empty one if absent."""
    owner_id = str(owner_id)
    wallet = db.query(Wallet).filter(
        Wallet.owner_id == owner_id,
        Wallet.owner_type == owner_type,
    ).first()
    if wallet:
        return wallet

    wallet = Wallet(
        owner_id=owner_id,
        owner_type=owner_type,
        owner_name=owner_name,
        balance=ZERO,
        total_earned=ZERO,
    )
    try:
        with db.begin_nested():
            db.add(wallet)
    except IntegrityError:
        # Lost a creation race; the unique (owner_id, owner_type) row exists now
        logger.info("Wallet for %s %s created concurrently, reusing", owner_type.value, owner_id)
        wallet = db.query(Wallet).filter(
            Wallet.owner_id == owner_id,
            Wallet.owner_type == owner_type,
        ).one()
        return wallet

    logger.info("Created %s wallet %s for owner %s", owner_type.value, wallet.id, owner_id)
    return wallet


def get_system_wallet(db: Session) -> Wallet:
    return get_or_create_wallet(db, SYSTEM_WALLET_OWNER_ID, WalletOwnerType.SYSTEM, "System Wallet")


def add_transaction(
    db: Session,
    wallet_id: int,
    transaction_type: TransactionType,
    amount,
    description: str,
    reference_id: Optional[str] = None,
    reference_type: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> WalletTransaction:
    """
    Append a CREDIT or DEBIT to a wallet and move its balance.

    The wallet row is locked for the duration of the surrounding transaction.
    Flushes but does not commit.
    """
    amount = to_money(amount)
    if amount <= ZERO:
        raise BadRequestError("Transaction amount must be positive")

    wallet = (
        db.query(Wallet)
        .filter(Wallet.id == wallet_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not wallet:
        raise NotFoundError("Wallet not found")

    balance_before = to_money(wallet.balance)
    if transaction_type == TransactionType.CREDIT:
        balance_after = balance_before + amount
        wallet.total_earned = to_money(wallet.total_earned) + amount
    else:
        if amount > balance_before:
            raise BadRequestError(
                f"Insufficient balance. Available: {format_money(balance_before)}, "
                f"Requested: {format_money(amount)}"
            )
        balance_after = balance_before - amount

    transaction = WalletTransaction(
        wallet_id=wallet.id,
        type=transaction_type,
        amount=amount,
        balance_before=balance_before,
        balance_after=balance_after,
        description=description,
        reference_id=str(reference_id) if reference_id is not None else None,
        reference_type=reference_type,
        meta=metadata,
    )
    wallet.balance = balance_after
    db.add(transaction)
    db.flush()

    logger.info(
        "Wallet %s %s %s (%s -> %s): %s",
        wallet.id, transaction_type.value, amount, balance_before, balance_after, description,
    )
    return transaction


def calculate_commission_split(total_amount, commission_percentage) -> Tuple[Decimal, Decimal]:
    """
    Split a payment into (coach_amount, system_amount).

    Only the coach share is rounded; the system share is the remainder so the
    two always add up to the total.
    """
    total = to_money(total_amount)
    pct = Decimal(str(commission_percentage or 0))
    if pct < 0 or pct > 100:
        raise BadRequestError("Commission percentage must be between 0 and 100")
    coach_amount = to_money(total * pct / Decimal(100))
    system_amount = total - coach_amount
    return coach_amount, system_amount


def _pct_label(pct: Decimal) -> str:
    return f"{pct.normalize():f}%"


def process_subscription_payment(
    db: Session,
    subscription_id: int,
    user_id: int,
    user_name: str,
    strategy_name: str,
    total_amount,
    coach_id: Optional[int] = None,
    coach_name: Optional[str] = None,
    commission_percentage=0,
    payment_method: str = "manual",
) -> Optional[CoachCommission]:
    """
    Record the revenue of one subscription payment event.

    Without a coach (or with a 0% commission) the whole amount goes to the
    system wallet and None is returned. Otherwise the payment is split between
    the coach and system wallets and a CoachCommission row is written.
    """
    total = to_money(total_amount)
    if total <= ZERO:
        logger.info("Subscription %s payment of %s, nothing to record", subscription_id, total)
        return None

    pct = Decimal(str(commission_percentage or 0))
    system_wallet = get_system_wallet(db)

    if not coach_id or pct == 0:
        add_transaction(
            db,
            system_wallet.id,
            TransactionType.CREDIT,
            total,
            f"Subscription payment from {user_name} - {strategy_name}",
            reference_id=subscription_id,
            reference_type=REFERENCE_SUBSCRIPTION,
            metadata={
                "user_id": user_id,
                "user_name": user_name,
                "strategy_name": strategy_name,
                "payment_method": payment_method,
            },
        )
        return None

    coach_amount, system_amount = calculate_commission_split(total, pct)
    coach_wallet = get_or_create_wallet(db, str(coach_id), WalletOwnerType.COACH, coach_name)

    if coach_amount > ZERO:
        add_transaction(
            db,
            coach_wallet.id,
            TransactionType.CREDIT,
            coach_amount,
            f"Commission ({_pct_label(pct)}) from {user_name} - {strategy_name}",
            reference_id=subscription_id,
            reference_type=REFERENCE_COMMISSION,
            metadata={
                "user_id": user_id,
                "user_name": user_name,
                "strategy_name": strategy_name,
                "total_amount": str(total),
                "commission_percentage": str(pct),
            },
        )
    if system_amount > ZERO:
        add_transaction(
            db,
            system_wallet.id,
            TransactionType.CREDIT,
            system_amount,
            f"Subscription payment from {user_name} - {strategy_name} (after {_pct_label(pct)} commission)",
            reference_id=subscription_id,
            reference_type=REFERENCE_SUBSCRIPTION,
            metadata={
                "user_id": user_id,
                "user_name": user_name,
                "strategy_name": strategy_name,
                "coach_id": coach_id,
                "coach_name": coach_name,
                "total_amount": str(total),
                "commission_amount": str(coach_amount),
                "payment_method": payment_method,
            },
        )

    commission = CoachCommission(
        subscription_id=subscription_id,
        user_id=user_id,
        user_name=user_name,
        coach_id=coach_id,
        coach_name=coach_name,
        strategy_name=strategy_name,
        total_amount=total,
        commission_percentage=pct,
        commission_amount=coach_amount,
        system_amount=system_amount,
        payment_method=payment_method,
    )
    db.add(commission)
    db.flush()

    logger.info(
        "Subscription %s: %s split %s to coach %s, %s to system",
        subscription_id, total, coach_amount, coach_id, system_amount,
    )
    return commission


def get_wallet(db: Session, wallet_id: int) -> Wallet:
    wallet = db.query(Wallet).filter(Wallet.id == wallet_id).first()
    if not wallet:
        raise NotFoundError("Wallet not found")
    return wallet


def list_wallets(db: Session, owner_type: Optional[WalletOwnerType] = None) -> List[Wallet]:
    query = db.query(Wallet)
    if owner_type is not None:
        query = query.filter(Wallet.owner_type == owner_type)
    return query.order_by(Wallet.id).all()


def get_wallet_by_owner(
    db: Session, owner_id: str, owner_type: Optional[WalletOwnerType] = None
) -> Wallet:
    query = db.query(Wallet).filter(Wallet.owner_id == str(owner_id))
    if owner_type is not None:
        query = query.filter(Wallet.owner_type == owner_type)
    wallet = query.first()
    if not wallet:
        raise NotFoundError("Wallet not found")
    return wallet


def list_transactions(db: Session, wallet_id: int, limit: int = 50) -> List[WalletTransaction]:
    """Transactions of a wallet, newest first."""
    get_wallet(db, wallet_id)
    return (
        db.query(WalletTransaction)
        .filter(WalletTransaction.wallet_id == wallet_id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .limit(limit)
        .all()
    )


def list_commissions(db: Session, coach_id: Optional[int] = None) -> List[CoachCommission]:
    query = db.query(CoachCommission)
    if coach_id is not None:
        query = query.filter(CoachCommission.coach_id == coach_id)
    return query.order_by(CoachCommission.created_at.desc(), CoachCommission.id.desc()).all()


def process_cashout(
    db: Session,
    wallet_id: int,
    amount,
    destination_address: str,
    currency: str,
    gateway: PaymentGatewayConfig,
    payout_client=None,
) -> Dict[str, Any]:
    """
    Withdraw funds from a wallet to an external crypto address.

    The DEBIT is flushed under the wallet row lock before any payout is
    requested, so concurrent cashouts serialize on the balance check. A
    failed provider call rolls the DEBIT back. Commits.
    """
    amount = to_money(amount)
    if amount <= ZERO:
        raise BadRequestError("Cashout amount must be positive")
    if not destination_address:
        raise BadRequestError("Destination address is required")
    if not gateway.is_test and payout_client is None:
        raise BadRequestError("Payout provider is not configured")

    wallet = get_wallet(db, wallet_id)
    metadata = {
        "destination_address": destination_address,
        "currency": currency,
        "test_mode": gateway.is_test,
    }
    transaction = add_transaction(
        db,
        wallet.id,
        TransactionType.DEBIT,
        amount,
        f"Cashout to {destination_address} ({currency})",
        reference_type=REFERENCE_CASHOUT,
        metadata=metadata,
    )

    if gateway.is_test:
        payout_id = f"test_payout_{int(datetime.now(timezone.utc).timestamp() * 1000)}"
        logger.info("Test-mode cashout %s from wallet %s", payout_id, wallet.id)
    else:
        try:
            payout = payout_client.create_payout(destination_address, currency, amount)
        except Exception:
            db.rollback()
            logger.error("Payout of %s from wallet %s failed, cashout rolled back", amount, wallet_id)
            raise
        payout_id = str(payout.get("id") or payout.get("batch_withdrawal_id") or "")
        logger.info("Requested payout %s from wallet %s", payout_id, wallet_id)

    transaction.reference_id = payout_id
    transaction.meta = {**metadata, "payout_id": payout_id}
    db.commit()

    return {
        "success": True,
        "amount": amount,
        "new_balance": transaction.balance_after,
        "payout_id": payout_id,
        "test_mode": gateway.is_test,
    }
