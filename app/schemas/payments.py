from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, List, Optional


class PaymentSettingsUpdate(BaseModel):
    """Partial update; secrets are write-only and stored encrypted"""
    provider: Optional[str] = Field(None, max_length=50)
    api_key: Optional[str] = None
    ipn_secret: Optional[str] = None
    is_test_mode: Optional[bool] = None
    is_active: Optional[bool] = None
    accepted_currencies: Optional[List[str]] = None
    crypto_enabled: Optional[bool] = None
    card_enabled: Optional[bool] = None


class PaymentSettingsResponse(BaseModel):
    provider: str
    api_key_masked: Optional[str] = None
    ipn_secret_configured: bool = False
    is_test_mode: bool
    is_active: bool
    accepted_currencies: List[str] = []
    crypto_enabled: bool
    card_enabled: bool
    last_tested_at: Optional[datetime] = None
    test_status: Optional[str] = None
    test_message: Optional[str] = None
    updated_at: Optional[datetime] = None


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str
    api_status: Optional[str] = None
    currencies_count: Optional[int] = None
    min_amount: Optional[float] = None


class CreatePaymentRequest(BaseModel):
    amount: Optional[float] = Field(None, gt=0, description="Ignored when strategy_id is given")
    pay_currency: str = Field("usdttrc20", min_length=1, max_length=20)
    price_currency: str = Field("usd", min_length=1, max_length=10)
    description: Optional[str] = Field(None, max_length=500)
    strategy_id: Optional[int] = None


class PaymentTransactionResponse(BaseModel):
    id: int
    payment_id: str
    order_id: Optional[str] = None
    user_id: Optional[int] = None
    subscription_id: Optional[int] = None
    amount: float
    currency: str
    pay_currency: Optional[str] = None
    pay_address: Optional[str] = None
    pay_amount: Optional[float] = None
    status: str
    provider_status: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentStatsResponse(BaseModel):
    total_income: float
    gateway_income: float
    invoice_income: float
    total_cashouts: float
    net: float
    counts: Dict[str, int]
    total_payments: int


class WebhookResponse(BaseModel):
    received: bool
    processed: Optional[bool] = None
    reason: Optional[str] = None
    already_processed: Optional[bool] = None
    subscription_id: Optional[int] = None
    payment_id: Optional[str] = None
    status: Optional[str] = None


class ThreePayVerifyResponse(BaseModel):
    transaction_id: str
    is_valid: bool
    is_paid: bool
    transaction: Optional[Dict[str, Any]] = None
