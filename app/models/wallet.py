from sqlalchemy import (
    Column, Integer, String, DateTime, Enum, ForeignKey, Numeric, Text, JSON, UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from .base import Base


SYSTEM_WALLET_OWNER_ID = "system"


class WalletOwnerType(str, enum.Enum):
    SYSTEM = "system"
    COACH = "coach"
    USER = "user"


class WalletStatus(str, enum.Enum):
    ACTIVE = "active"
    FROZEN = "frozen"


class TransactionType(str, enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (
        UniqueConstraint("owner_id", "owner_type", name="uq_wallets_owner"),
    )

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(64), nullable=False, index=True)
    owner_type = Column(Enum(WalletOwnerType), nullable=False)
    owner_name = Column(String(255), nullable=True)
    balance = Column(Numeric(12, 2), nullable=False, default=0)
    total_earned = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(Enum(WalletStatus), nullable=False, default=WalletStatus.ACTIVE)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    transactions = relationship("WalletTransaction", back_populates="wallet")


class WalletTransaction(Base):
    """Append-only balance movement with a before/after snapshot"""
    __tablename__ = "wallet_transactions"

    id = Column(Integer, primary_key=True, index=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id"), nullable=False, index=True)
    type = Column(Enum(TransactionType), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    balance_before = Column(Numeric(12, 2), nullable=False)
    balance_after = Column(Numeric(12, 2), nullable=False)
    description = Column(Text, nullable=False)
    reference_id = Column(String(64), nullable=True, index=True)
    reference_type = Column(String(32), nullable=True)
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    wallet = relationship("Wallet", back_populates="transactions")


class CoachCommission(Base):
    """Reporting record of one payment split; balances live in wallet_transactions"""
    __tablename__ = "coach_commissions"

    id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, nullable=False)
    user_name = Column(String(255), nullable=True)
    coach_id = Column(Integer, nullable=False, index=True)
    coach_name = Column(String(255), nullable=True)
    strategy_name = Column(String(255), nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    commission_percentage = Column(Numeric(5, 2), nullable=False)
    commission_amount = Column(Numeric(12, 2), nullable=False)
    system_amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
