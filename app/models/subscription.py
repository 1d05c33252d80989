from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, Numeric, Text, Float, JSON, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from .base import Base


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    PENDING = "pending"
    # Reserved: expiry only ever produces PENDING
    EXPIRED = "expired"
    CANCELLED = "cancelled"


LIVE_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.PENDING)


class PaymentType(str, enum.Enum):
    SUBSCRIPTION = "subscription"
    RENEWAL = "renewal"
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"


class PendingPaymentStatus(str, enum.Enum):
    WAITING = "waiting"
    CONFIRMING = "confirming"
    COMPLETED = "completed"
    FAILED = "failed"


class Subscription(Base):
    """A user's time-boxed access to one strategy"""
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Equals user_id while ACTIVE/PENDING, NULL otherwise; the unique index
    # allows at most one live subscription per user.
    live_user_id = Column(Integer, unique=True, nullable=True)
    user_name = Column(String(255), nullable=True)
    user_email = Column(String(255), nullable=True)

    strategy_id = Column(Integer, ForeignKey("strategies.id"), nullable=False, index=True)
    strategy_name = Column(String(255), nullable=False)
    strategy_number = Column(Integer, nullable=True)

    status = Column(Enum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.ACTIVE, index=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False, index=True)
    duration_days = Column(Float, nullable=False, default=30)
    renewal_count = Column(Integer, nullable=False, default=0)

    # Ordered video ids captured when the strategy was (re)assigned
    video_ids = Column(JSON, nullable=False, default=list)
    completed_videos = Column(JSON, nullable=False, default=list)

    strategy_price = Column(Numeric(12, 2), nullable=False)
    amount_paid = Column(Numeric(12, 2), nullable=False)
    # Not a foreign key; coach_name carries the snapshot
    coach_id = Column(Integer, nullable=True, index=True)
    coach_name = Column(String(255), nullable=True)
    coach_commission_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    payment_method = Column(String(50), nullable=False, default="manual")

    previous_strategy_id = Column(Integer, nullable=True)
    previous_strategy_price = Column(Numeric(12, 2), nullable=True)

    expired_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", foreign_keys=[user_id])
    strategy = relationship("Strategy")

    @property
    def completed_video_ids(self) -> list:
        """Completed video ids; legacy rows stored a bare count here."""
        value = self.completed_videos
        if not isinstance(value, list):
            return []
        return list(value)

    @property
    def snapshot_video_ids(self) -> list:
        """Video order captured at strategy assignment; empty on legacy rows."""
        return list(self.video_ids) if isinstance(self.video_ids, list) else []


class PendingPayment(Base):
    """Bridges a provider transaction to the subscription change it pays for"""
    __tablename__ = "pending_payments"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(String(255), unique=True, nullable=False, index=True)
    provider = Column(String(50), nullable=False, default="3pay")
    provider_transaction_id = Column(String(255), nullable=True, index=True)
    payment_url = Column(String(1024), nullable=True)
    test_mode = Column(Boolean, nullable=False, default=False)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    strategy_id = Column(Integer, ForeignKey("strategies.id"), nullable=False)
    # Target subscription for renewals and strategy changes, result for new ones
    subscription_id = Column(Integer, nullable=True, index=True)

    type = Column(Enum(PaymentType), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(20), nullable=False, default="USDT-TRC20")
    coach_id = Column(Integer, nullable=True)
    coach_name = Column(String(255), nullable=True)
    commission_percentage = Column(Numeric(5, 2), nullable=False, default=0)

    status = Column(Enum(PendingPaymentStatus), nullable=False, default=PendingPaymentStatus.WAITING, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
