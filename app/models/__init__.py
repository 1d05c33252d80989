# Database models
from .base import Base
from .user import User, UserRole, UserStatus
from .coach import Coach, CoachStatus
from .strategy import Strategy, StrategyVideo
from .subscription import (
    Subscription,
    SubscriptionStatus,
    PendingPayment,
    PendingPaymentStatus,
    PaymentType,
    LIVE_STATUSES,
)
from .wallet import (
    Wallet,
    WalletTransaction,
    CoachCommission,
    WalletOwnerType,
    WalletStatus,
    TransactionType,
    SYSTEM_WALLET_OWNER_ID,
)
from .payment import PaymentSettings, PaymentTransaction
from .app_settings import AppSettings

__all__ = [
    "Base",
    "User",
    "UserRole",
    "UserStatus",
    "Coach",
    "CoachStatus",
    "Strategy",
    "StrategyVideo",
    "Subscription",
    "SubscriptionStatus",
    "PendingPayment",
    "PendingPaymentStatus",
    "PaymentType",
    "LIVE_STATUSES",
    "Wallet",
    "WalletTransaction",
    "CoachCommission",
    "WalletOwnerType",
    "WalletStatus",
    "TransactionType",
    "SYSTEM_WALLET_OWNER_ID",
    "PaymentSettings",
    "PaymentTransaction",
    "AppSettings",
]
