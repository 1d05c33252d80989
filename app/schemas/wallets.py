from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, Optional
from app.models.wallet import WalletOwnerType, WalletStatus, TransactionType


class WalletResponse(BaseModel):
    id: int
    owner_id: str
    owner_type: WalletOwnerType
    owner_name: Optional[str] = None
    balance: float
    total_earned: float
    status: WalletStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WalletTransactionResponse(BaseModel):
    id: int
    wallet_id: int
    type: TransactionType
    amount: float
    balance_before: float
    balance_after: float
    description: str
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="meta")
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CoachCommissionResponse(BaseModel):
    id: int
    subscription_id: int
    user_id: int
    user_name: Optional[str] = None
    coach_id: int
    coach_name: Optional[str] = None
    strategy_name: Optional[str] = None
    total_amount: float
    commission_percentage: float
    commission_amount: float
    system_amount: float
    payment_method: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CashoutRequest(BaseModel):
    amount: float = Field(..., gt=0)
    destination_address: str = Field(..., min_length=1, max_length=255)
    currency: str = Field("usdttrc20", min_length=1, max_length=20)


class CashoutResponse(BaseModel):
    success: bool
    amount: float
    new_balance: float
    payout_id: str
    test_mode: bool
