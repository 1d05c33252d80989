from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, Text, Boolean, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base


class PaymentSettings(Base):
    """Singleton row holding payment provider configuration"""
    __tablename__ = "payment_settings"

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String(50), nullable=False, default="nowpayments")
    api_key_encrypted = Column(Text, nullable=True)
    ipn_secret_encrypted = Column(Text, nullable=True)
    is_test_mode = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=False)
    accepted_currencies = Column(JSON, nullable=False, default=lambda: ["usdttrc20"])
    crypto_enabled = Column(Boolean, nullable=False, default=True)
    card_enabled = Column(Boolean, nullable=False, default=False)
    last_tested_at = Column(DateTime(timezone=True), nullable=True)
    test_status = Column(String(20), nullable=True)
    test_message = Column(Text, nullable=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    updater = relationship("User", foreign_keys=[updated_by])


class PaymentTransaction(Base):
    """Invoice created through the legacy NOWPayments integration"""
    __tablename__ = "payment_transactions"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(String(255), unique=True, nullable=False, index=True)
    order_id = Column(String(255), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    subscription_id = Column(Integer, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(20), nullable=False, default="usd")
    pay_currency = Column(String(20), nullable=True)
    pay_address = Column(String(255), nullable=True)
    pay_amount = Column(Numeric(18, 8), nullable=True)
    status = Column(String(20), nullable=False, default="waiting", index=True)
    provider_status = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
