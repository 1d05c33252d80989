"""
Subscription lifecycle endpoints.

Admin routes apply changes directly (payment_method "manual"); user routes
under /my-subscription go through the payment gateway and are applied on
payment confirmation.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.integrations.threepay import ThreePayClient
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.user import User
from app.auth.dependencies import get_current_user, require_admin, is_admin
from app.schemas.subscriptions import (
    SubscriptionCreate,
    SubscriptionRenew,
    SubscriptionResponse,
    VideoProgressUpdate,
    CompleteVideoRequest,
    InitiateSubscriptionRequest,
    UpgradeRequest,
    RenewRequest,
    ConfirmPaymentRequest,
    PaymentInitiationResponse,
    ConfirmPaymentResponse,
    ExpirySweepResponse,
    VideoProgressResponse,
    VideoAccessResponse,
)
from app.services import payments, subscriptions, video_progress
from app.services.subscriptions import ChangeContext, PaymentInitiation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


def to_response(db: Session, subscription: Subscription) -> SubscriptionResponse:
    response = SubscriptionResponse.model_validate(subscription)
    return response.model_copy(update=video_progress.summarize(db, subscription))


def _initiation_response(db: Session, result: PaymentInitiation) -> PaymentInitiationResponse:
    return PaymentInitiationResponse(
        payment_type=result.payment_type,
        amount=result.amount,
        payment_id=result.payment_id,
        transaction_id=result.transaction_id,
        payment_url=result.payment_url,
        currency=result.currency,
        test_mode=result.test_mode,
        auto_confirmed=result.auto_confirmed,
        subscription=to_response(db, result.subscription) if result.subscription is not None else None,
    )


def _my_subscription(db: Session, user: User) -> Subscription:
    subscription = subscriptions.get_live_subscription(db, user.id)
    if not subscription:
        raise HTTPException(status_code=404, detail="No active subscription found")
    return subscription


def _get_owned_or_404(db: Session, subscription_id: int, user: User) -> Subscription:
    subscription = subscriptions.get_subscription(db, subscription_id)
    if not is_admin(user) and subscription.user_id != user.id:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return subscription


# --- Admin ---

@router.get("", response_model=List[SubscriptionResponse])
def list_subscriptions(
    subscription_status: Optional[SubscriptionStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return [to_response(db, s) for s in subscriptions.list_subscriptions(db, subscription_status)]


@router.post("", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
def create_subscription(
    data: SubscriptionCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    subscription = subscriptions.create_subscription(
        db,
        data.user_id,
        data.strategy_id,
        ChangeContext(initiated_by="admin", payment_method=data.payment_method, notes=data.notes),
        duration_days=data.duration_days,
        amount_paid=data.amount_paid,
        coach_commission_percentage=data.coach_commission_percentage,
    )
    return to_response(db, subscription)


@router.post("/check-expired", response_model=ExpirySweepResponse)
def check_expired(
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    """Run the expiry sweep now instead of waiting for the scheduled task"""
    return ExpirySweepResponse(expired_count=subscriptions.check_expired_subscriptions(db))


# --- User, gateway-paid ---

@router.post("/initiate", response_model=PaymentInitiationResponse)
def initiate_subscription(
    data: InitiateSubscriptionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: ThreePayClient = Depends(payments.threepay_client),
):
    """Start paying for a new subscription; returns the provider payment URL"""
    result = subscriptions.initiate_user_subscription(db, current_user, data.strategy_id, client, data.currency)
    return _initiation_response(db, result)


@router.post("/confirm-payment", response_model=ConfirmPaymentResponse)
def confirm_payment(
    data: ConfirmPaymentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: ThreePayClient = Depends(payments.threepay_client),
):
    subscription, already = payments.confirm_verified_payment(db, data.payment_id, current_user, client)
    return ConfirmPaymentResponse(already_processed=already, subscription=to_response(db, subscription))


@router.get("/my-subscription", response_model=SubscriptionResponse)
def get_my_subscription(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return to_response(db, _my_subscription(db, current_user))


@router.get("/my-subscription/video-progress", response_model=VideoProgressResponse)
def get_my_video_progress(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    subscription = _my_subscription(db, current_user)
    return video_progress.get_video_progress(db, subscription, is_admin=is_admin(current_user))


@router.post("/my-subscription/validate-video-access", response_model=VideoAccessResponse)
def validate_video_access(
    data: CompleteVideoRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    subscription = subscriptions.get_live_subscription(db, current_user.id)
    return video_progress.validate_video_access(db, subscription, data.video_id, is_admin(current_user))


@router.post("/my-subscription/complete-video", response_model=SubscriptionResponse)
def complete_video(
    data: CompleteVideoRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    subscription = _my_subscription(db, current_user)
    subscription = video_progress.mark_video_complete(
        db, subscription, data.video_id, is_admin=is_admin(current_user)
    )
    return to_response(db, subscription)


@router.post("/my-subscription/renew", response_model=PaymentInitiationResponse)
def renew_my_subscription(
    data: RenewRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: ThreePayClient = Depends(payments.threepay_client),
):
    result = subscriptions.renew_user_subscription(db, current_user, client, data.currency)
    return _initiation_response(db, result)


@router.post("/my-subscription/upgrade", response_model=PaymentInitiationResponse)
def upgrade_my_subscription(
    data: UpgradeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: ThreePayClient = Depends(payments.threepay_client),
):
    """Move to another strategy: upgrades pay the difference, downgrades the full new price"""
    result = subscriptions.upgrade_user_subscription(db, current_user, data.strategy_id, client, data.currency)
    return _initiation_response(db, result)


@router.post("/my-subscription/cancel", response_model=SubscriptionResponse)
def cancel_my_subscription(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return to_response(db, subscriptions.cancel_user_subscription(db, current_user))


# --- By id ---

@router.get("/user/{user_id}", response_model=List[SubscriptionResponse])
def list_user_subscriptions(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not is_admin(current_user) and current_user.id != user_id:
        raise HTTPException(status_code=403, detail="Access denied")
    return [to_response(db, s) for s in subscriptions.list_user_subscriptions(db, user_id)]


@router.get("/{subscription_id}", response_model=SubscriptionResponse)
def get_subscription(
    subscription_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return to_response(db, _get_owned_or_404(db, subscription_id, current_user))


@router.post("/{subscription_id}/renew", response_model=SubscriptionResponse)
def renew_subscription(
    subscription_id: int,
    data: SubscriptionRenew,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    subscription = subscriptions.renew_subscription(
        db,
        subscription_id,
        ChangeContext(initiated_by="admin", payment_method=data.payment_method, notes=data.notes),
        strategy_id=data.strategy_id,
        custom_amount=data.custom_amount,
        duration_days=data.duration_days,
    )
    return to_response(db, subscription)


@router.patch("/{subscription_id}/cancel", response_model=SubscriptionResponse)
def cancel_subscription(
    subscription_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return to_response(db, subscriptions.cancel_subscription(db, subscription_id))


@router.patch("/{subscription_id}/set-pending", response_model=SubscriptionResponse)
def set_pending(
    subscription_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return to_response(db, subscriptions.set_pending(db, subscription_id))


@router.get("/{subscription_id}/video-progress", response_model=VideoProgressResponse)
def get_video_progress(
    subscription_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    subscription = _get_owned_or_404(db, subscription_id, current_user)
    return video_progress.get_video_progress(db, subscription, is_admin=is_admin(current_user))


@router.patch("/{subscription_id}/video-progress", response_model=SubscriptionResponse)
def update_video_progress(
    subscription_id: int,
    data: VideoProgressUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    subscription = subscriptions.get_subscription(db, subscription_id)
    subscription = video_progress.update_video_progress(db, subscription, data.video_id, data.completed)
    return to_response(db, subscription)


@router.delete("/{subscription_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_subscription(
    subscription_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    subscriptions.delete_subscription(db, subscription_id)
