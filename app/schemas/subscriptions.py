from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import List, Optional
from app.models.subscription import SubscriptionStatus, PaymentType


class SubscriptionCreate(BaseModel):
    """Admin: create a subscription without going through a payment provider"""
    user_id: int
    strategy_id: int
    duration_days: Optional[float] = Field(None, gt=0, description="Defaults to 30; fractions allowed")
    amount_paid: Optional[float] = Field(None, ge=0, description="Defaults to the strategy price")
    coach_commission_percentage: Optional[float] = Field(None, ge=0, le=100)
    payment_method: str = Field("manual", max_length=50)
    notes: Optional[str] = None


class SubscriptionRenew(BaseModel):
    """Admin renewal; a different strategy_id turns it into a strategy change"""
    strategy_id: Optional[int] = None
    custom_amount: Optional[float] = Field(None, ge=0)
    duration_days: Optional[float] = Field(None, gt=0)
    payment_method: str = Field("manual", max_length=50)
    notes: Optional[str] = None


class VideoProgressUpdate(BaseModel):
    video_id: int
    completed: bool = True


class CompleteVideoRequest(BaseModel):
    video_id: int


class InitiateSubscriptionRequest(BaseModel):
    strategy_id: int
    currency: Optional[str] = Field(None, description="e.g. usdttrc20 or usdterc20")


class UpgradeRequest(BaseModel):
    strategy_id: int
    currency: Optional[str] = None


class RenewRequest(BaseModel):
    currency: Optional[str] = None


class ConfirmPaymentRequest(BaseModel):
    payment_id: str = Field(..., min_length=1, description="Pending payment id or provider transaction id")


class SubscriptionResponse(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    strategy_id: int
    strategy_name: str
    strategy_number: Optional[int] = None
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime
    duration_days: float
    renewal_count: int = 0
    completed_videos: List[int] = []
    total_videos: int = 0
    progress_percentage: int = 0
    current_video_id: Optional[int] = None
    strategy_price: float
    amount_paid: float
    coach_id: Optional[int] = None
    coach_name: Optional[str] = None
    coach_commission_percentage: float = 0
    payment_method: str
    previous_strategy_id: Optional[int] = None
    previous_strategy_price: Optional[float] = None
    expired_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("completed_videos", mode="before")
    @classmethod
    def normalize_completed_videos(cls, value):
        # Older rows stored a count instead of the id list
        if isinstance(value, (list, tuple)):
            return list(value)
        return []


class PaymentInitiationResponse(BaseModel):
    payment_type: PaymentType
    amount: float
    payment_id: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_url: Optional[str] = None
    currency: Optional[str] = None
    test_mode: bool = False
    auto_confirmed: bool = False
    subscription: Optional[SubscriptionResponse] = None


class ConfirmPaymentResponse(BaseModel):
    already_processed: bool
    subscription: SubscriptionResponse


class ExpirySweepResponse(BaseModel):
    expired_count: int


class VideoProgressItem(BaseModel):
    video_id: int
    title: str
    description: Optional[str] = None
    video_url: Optional[str] = None
    order: int
    is_completed: bool
    is_current: bool
    is_locked: bool
    can_access: bool


class VideoProgressResponse(BaseModel):
    subscription_id: int
    strategy_id: int
    strategy_name: str
    completed_count: int
    total_videos: int
    progress_percentage: int
    current_video_id: Optional[int] = None
    videos: List[VideoProgressItem] = []


class VideoAccessResponse(BaseModel):
    can_access: bool
    reason: str
