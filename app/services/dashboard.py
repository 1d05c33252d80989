"""Aggregate counts and revenue figures for the admin dashboard."""
from typing import Any, Dict

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.coach import Coach, CoachStatus
from app.models.strategy import Strategy
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.user import User, UserRole, UserStatus
from app.models.wallet import (
    Wallet,
    WalletTransaction,
    CoachCommission,
    WalletOwnerType,
    TransactionType,
    SYSTEM_WALLET_OWNER_ID,
)
from app.services.money import to_money
from app.services.wallets import REFERENCE_CASHOUT, REFERENCE_COMMISSION, REFERENCE_SUBSCRIPTION


def _sum(db: Session, column, *criteria):
    return to_money(db.query(func.sum(column)).filter(*criteria).scalar() or 0)


def get_dashboard_stats(db: Session) -> Dict[str, Any]:
    users_total = db.query(User).filter(User.role == UserRole.USER).count()
    users_banned = db.query(User).filter(User.role == UserRole.USER, User.status == UserStatus.BANNED).count()

    coaches = {status.value: db.query(Coach).filter(Coach.status == status).count() for status in CoachStatus}
    subscriptions = {
        status.value: db.query(Subscription).filter(Subscription.status == status).count()
        for status in SubscriptionStatus
    }

    system_wallet = db.query(Wallet).filter(
        Wallet.owner_id == SYSTEM_WALLET_OWNER_ID,
        Wallet.owner_type == WalletOwnerType.SYSTEM,
    ).first()

    gross_revenue = _sum(
        db, WalletTransaction.amount,
        WalletTransaction.type == TransactionType.CREDIT,
        WalletTransaction.reference_type.in_((REFERENCE_SUBSCRIPTION, REFERENCE_COMMISSION)),
    )

    return {
        "users": {"total": users_total, "banned": users_banned},
        "coaches": {"total": sum(coaches.values()), **coaches},
        "strategies": {
            "total": db.query(Strategy).count(),
            "active": db.query(Strategy).filter(Strategy.is_active == True).count(),
        },
        "subscriptions": {"total": sum(subscriptions.values()), **subscriptions},
        "revenue": {
            "gross": gross_revenue,
            "system_balance": to_money(system_wallet.balance if system_wallet else 0),
            "system_total_earned": to_money(system_wallet.total_earned if system_wallet else 0),
            "coach_commissions": _sum(db, CoachCommission.commission_amount),
            "cashouts": _sum(db, WalletTransaction.amount, WalletTransaction.reference_type == REFERENCE_CASHOUT),
        },
    }
