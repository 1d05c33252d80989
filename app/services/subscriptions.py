"""
Subscription state machine.

States: active → pending (expiry) → active (renewal / strategy change)
        active | pending → cancelled (terminal)

Admin (manual) and user (gateway-paid) flows share the same mutation
helpers; they differ only in the ChangeContext they pass. Every payment
event credits the wallet ledger exactly once through
wallets.process_subscription_payment, inside the same database transaction
as the subscription change.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.integrations.threepay import ThreePayClient, currency_type_for
from app.models.coach import Coach
from app.models.strategy import Strategy
from app.models.subscription import (
    Subscription,
    SubscriptionStatus,
    PendingPayment,
    PendingPaymentStatus,
    PaymentType,
    LIVE_STATUSES,
)
from app.models.user import User
from app.services import wallets
from app.services.errors import BadRequestError, NotFoundError
from app.services.money import to_money, ZERO
from app.services.video_progress import visible_videos

logger = logging.getLogger(__name__)

ALREADY_LIVE = "User already has an active or pending subscription"
OPEN_PAYMENT_STATUSES = (PendingPaymentStatus.WAITING, PendingPaymentStatus.CONFIRMING)
PLACEHOLDER_CALLBACK_URL = "https://3pa-y.com/callback"

# Events
CREATE = "create"
EXPIRE = "expire"
RENEW = "renew"
CHANGE_STRATEGY = "change_strategy"
SWITCH_STRATEGY = "switch_strategy"
CANCEL = "cancel"

# State machine: maps (from_state, event) → to_state
# None from_state means "create new"
TRANSITIONS: Dict[Tuple[Optional[SubscriptionStatus], str], SubscriptionStatus] = {
    (None, CREATE): SubscriptionStatus.ACTIVE,
    (SubscriptionStatus.ACTIVE, EXPIRE): SubscriptionStatus.PENDING,
    (SubscriptionStatus.ACTIVE, RENEW): SubscriptionStatus.ACTIVE,
    (SubscriptionStatus.PENDING, RENEW): SubscriptionStatus.ACTIVE,
    (SubscriptionStatus.ACTIVE, CHANGE_STRATEGY): SubscriptionStatus.ACTIVE,
    (SubscriptionStatus.PENDING, CHANGE_STRATEGY): SubscriptionStatus.ACTIVE,
    # Free same-price switch keeps the current period and status
    (SubscriptionStatus.ACTIVE, SWITCH_STRATEGY): SubscriptionStatus.ACTIVE,
    (SubscriptionStatus.PENDING, SWITCH_STRATEGY): SubscriptionStatus.PENDING,
    (SubscriptionStatus.ACTIVE, CANCEL): SubscriptionStatus.CANCELLED,
    (SubscriptionStatus.PENDING, CANCEL): SubscriptionStatus.CANCELLED,
    (SubscriptionStatus.EXPIRED, CANCEL): SubscriptionStatus.CANCELLED,
}


@dataclass
class ChangeContext:
    """Who initiated a subscription change and how it was paid."""
    initiated_by: str = "admin"
    payment_method: str = "manual"
    notes: Optional[str] = None


ADMIN_CONTEXT = ChangeContext()
GATEWAY_CONTEXT = ChangeContext(initiated_by="user", payment_method="automatic")


class ChangeKind(str, enum.Enum):
    SAME_PRICE = "same_price"
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"


@dataclass(frozen=True)
class ChangeQuote:
    kind: ChangeKind
    amount: Decimal


@dataclass
class PaymentInitiation:
    """Result of a user-initiated payment: a provider handle or an immediate change."""
    payment_type: PaymentType
    amount: Decimal
    payment_id: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_url: Optional[str] = None
    currency: Optional[str] = None
    test_mode: bool = False
    auto_confirmed: bool = False
    subscription: Optional[Subscription] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _transition(subscription: Subscription, event: str) -> SubscriptionStatus:
    from_state = subscription.status
    to_state = TRANSITIONS.get((from_state, event))
    if to_state is None:
        raise BadRequestError(
            f"Cannot {event.replace('_', ' ')} a {state_label_of(from_state)} subscription"
        )

    subscription.status = to_state
    subscription.live_user_id = subscription.user_id if to_state in LIVE_STATUSES else None
    logger.info(
        "Subscription %s for user %s: %s --%s--> %s",
        subscription.id, subscription.user_id, state_label_of(from_state), event, to_state.value,
    )
    return to_state


def state_label_of(status: Optional[SubscriptionStatus]) -> str:
    return status.value if status else "new"


def _flush_live(db: Session) -> None:
    """Flush, turning a second live subscription for the same user into a 400."""
    try:
        db.flush()
    except IntegrityError as e:
        db.rollback()
        logger.warning("Rejected concurrent live subscription: %s", e.orig)
        raise BadRequestError(ALREADY_LIVE) from e


def _duration(duration_days) -> float:
    duration = float(duration_days if duration_days is not None else settings.default_subscription_days)
    if duration <= 0:
        raise BadRequestError("Duration must be positive")
    return duration


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def get_strategy(db: Session, strategy_id: int) -> Strategy:
    strategy = db.query(Strategy).filter(Strategy.id == strategy_id).first()
    if not strategy:
        raise NotFoundError("Strategy not found")
    return strategy


def get_subscription(db: Session, subscription_id: int) -> Subscription:
    subscription = db.query(Subscription).filter(Subscription.id == subscription_id).first()
    if not subscription:
        raise NotFoundError("Subscription not found")
    return subscription


def list_subscriptions(db: Session, status: Optional[SubscriptionStatus] = None) -> List[Subscription]:
    query = db.query(Subscription)
    if status is not None:
        query = query.filter(Subscription.status == status)
    return query.order_by(Subscription.created_at.desc(), Subscription.id.desc()).all()


def list_user_subscriptions(db: Session, user_id: int) -> List[Subscription]:
    return (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .all()
    )


def get_live_subscription(db: Session, user_id: int) -> Optional[Subscription]:
    """The user's ACTIVE subscription, else their PENDING one."""
    for status in LIVE_STATUSES:
        subscription = db.query(Subscription).filter(
            Subscription.user_id == user_id,
            Subscription.status == status,
        ).first()
        if subscription:
            return subscription
    return None


def resolve_commission(
    db: Session, user: User, explicit_percentage=None
) -> Tuple[Optional[int], Optional[str], Decimal]:
    """
    Coach and commission percentage for a user's payments.

    Precedence: explicit value, user override, coach default, global default.
    Users without a coach pay no commission.
    """
    if not user.assigned_coach_id:
        return None, None, Decimal(0)

    coach = db.query(Coach).filter(Coach.id == user.assigned_coach_id).first()
    if explicit_percentage is not None:
        pct = explicit_percentage
    elif user.coach_commission_override is not None:
        pct = user.coach_commission_override
    elif coach and coach.default_commission_percentage is not None:
        pct = coach.default_commission_percentage
    else:
        pct = settings.default_coach_commission

    pct = Decimal(str(pct))
    if pct < 0 or pct > 100:
        raise BadRequestError("Commission percentage must be between 0 and 100")
    coach_name = user.assigned_coach_name or (coach.full_name if coach else None)
    return user.assigned_coach_id, coach_name, pct


def quote_change(current_price, new_price) -> ChangeQuote:
    """
    Price a strategy change.

    Upgrades pay the difference. Downgrades pay the full price of the new
    strategy, so downgrade-then-upgrade never costs less than a straight
    purchase.
    """
    current = to_money(current_price)
    new = to_money(new_price)
    if new == current:
        return ChangeQuote(ChangeKind.SAME_PRICE, ZERO)
    if new > current:
        return ChangeQuote(ChangeKind.UPGRADE, new - current)
    return ChangeQuote(ChangeKind.DOWNGRADE, new)


def _snapshot_strategy(db: Session, subscription: Subscription, strategy: Strategy) -> None:
    subscription.strategy_id = strategy.id
    subscription.strategy_name = strategy.name
    subscription.strategy_number = strategy.number
    subscription.strategy_price = to_money(strategy.price)
    subscription.video_ids = [v.id for v in visible_videos(db, strategy.id)]


def _credit(db: Session, subscription: Subscription, amount, ctx: ChangeContext):
    if to_money(amount) <= ZERO:
        return None
    return wallets.process_subscription_payment(
        db,
        subscription_id=subscription.id,
        user_id=subscription.user_id,
        user_name=subscription.user_name or subscription.user_email or str(subscription.user_id),
        strategy_name=subscription.strategy_name,
        total_amount=amount,
        coach_id=subscription.coach_id,
        coach_name=subscription.coach_name,
        commission_percentage=subscription.coach_commission_percentage,
        payment_method=ctx.payment_method,
    )


def _open_subscription(
    db: Session,
    user: User,
    strategy: Strategy,
    ctx: ChangeContext,
    amount_paid=None,
    duration_days=None,
    coach_id: Optional[int] = None,
    coach_name: Optional[str] = None,
    commission_percentage=0,
    start_date: Optional[datetime] = None,
) -> Subscription:
    if get_live_subscription(db, user.id):
        raise BadRequestError(ALREADY_LIVE)

    duration = _duration(duration_days)
    start = start_date or _utcnow()
    subscription = Subscription(
        user_id=user.id,
        user_name=user.name,
        user_email=user.email,
        start_date=start,
        end_date=start + timedelta(days=duration),
        duration_days=duration,
        renewal_count=0,
        completed_videos=[],
        coach_id=coach_id,
        coach_name=coach_name,
        coach_commission_percentage=Decimal(str(commission_percentage or 0)),
        payment_method=ctx.payment_method,
        notes=ctx.notes,
    )
    _snapshot_strategy(db, subscription, strategy)
    subscription.amount_paid = to_money(amount_paid if amount_paid is not None else strategy.price)
    _transition(subscription, CREATE)
    db.add(subscription)
    _flush_live(db)

    _credit(db, subscription, subscription.amount_paid, ctx)
    return subscription


def _renew_period(db: Session, subscription: Subscription, ctx: ChangeContext, amount, duration_days=None) -> None:
    _transition(subscription, RENEW)
    duration = _duration(duration_days if duration_days is not None else subscription.duration_days)
    now = _utcnow()
    subscription.start_date = now
    subscription.end_date = now + timedelta(days=duration)
    subscription.duration_days = duration
    subscription.renewal_count = (subscription.renewal_count or 0) + 1
    subscription.amount_paid = to_money(amount)
    subscription.payment_method = ctx.payment_method
    subscription.expired_at = None
    _flush_live(db)
    _credit(db, subscription, amount, ctx)


def change_strategy(
    db: Session,
    subscription: Subscription,
    strategy: Strategy,
    ctx: ChangeContext,
    amount,
    duration_days=None,
    paid: bool = True,
) -> None:
    """Move a subscription to another strategy, resetting video progress."""
    _transition(subscription, CHANGE_STRATEGY if paid else SWITCH_STRATEGY)
    subscription.previous_strategy_id = subscription.strategy_id
    subscription.previous_strategy_price = subscription.strategy_price
    _snapshot_strategy(db, subscription, strategy)
    subscription.completed_videos = []
    subscription.renewal_count = (subscription.renewal_count or 0) + 1

    if paid:
        duration = _duration(duration_days if duration_days is not None else subscription.duration_days)
        now = _utcnow()
        subscription.start_date = now
        subscription.end_date = now + timedelta(days=duration)
        subscription.duration_days = duration
        subscription.amount_paid = to_money(amount)
        subscription.payment_method = ctx.payment_method
        subscription.expired_at = None

    _flush_live(db)
    _credit(db, subscription, amount, ctx)


# --- Admin (manual) operations ---

def create_subscription(
    db: Session,
    user_id: int,
    strategy_id: int,
    ctx: Optional[ChangeContext] = None,
    duration_days=None,
    amount_paid=None,
    coach_commission_percentage=None,
    start_date: Optional[datetime] = None,
) -> Subscription:
    """Create an ACTIVE subscription and record its payment in the ledger."""
    ctx = ctx or ADMIN_CONTEXT
    user = get_user(db, user_id)
    strategy = get_strategy(db, strategy_id)
    coach_id, coach_name, pct = resolve_commission(db, user, coach_commission_percentage)

    subscription = _open_subscription(
        db, user, strategy, ctx,
        amount_paid=amount_paid,
        duration_days=duration_days,
        coach_id=coach_id,
        coach_name=coach_name,
        commission_percentage=pct,
        start_date=start_date,
    )
    db.commit()
    db.refresh(subscription)
    logger.info("Subscription %s created for user %s on strategy %s", subscription.id, user.id, strategy.id)
    return subscription


def renew_subscription(
    db: Session,
    subscription_id: int,
    ctx: Optional[ChangeContext] = None,
    strategy_id: Optional[int] = None,
    custom_amount=None,
    duration_days=None,
) -> Subscription:
    """
    Start a new paid period. With a different strategy_id this becomes a
    strategy change priced by quote_change unless custom_amount is given.
    """
    ctx = ctx or ADMIN_CONTEXT
    subscription = get_subscription(db, subscription_id)
    if subscription.status == SubscriptionStatus.CANCELLED:
        raise BadRequestError("Cannot renew a cancelled subscription")

    if strategy_id is not None and strategy_id != subscription.strategy_id:
        strategy = get_strategy(db, strategy_id)
        quote = quote_change(subscription.strategy_price, strategy.price)
        amount = custom_amount if custom_amount is not None else quote.amount
        change_strategy(db, subscription, strategy, ctx, amount, duration_days)
    else:
        amount = custom_amount if custom_amount is not None else settings.renewal_fee
        _renew_period(db, subscription, ctx, amount, duration_days)

    db.commit()
    db.refresh(subscription)
    return subscription


def set_pending(db: Session, subscription_id: int) -> Subscription:
    """Force an ACTIVE subscription into PENDING as if it had expired."""
    subscription = get_subscription(db, subscription_id)
    _transition(subscription, EXPIRE)
    subscription.expired_at = _utcnow()
    db.commit()
    db.refresh(subscription)
    return subscription


def cancel_subscription(db: Session, subscription_id: int) -> Subscription:
    subscription = get_subscription(db, subscription_id)
    return _cancel(db, subscription)


def _cancel(db: Session, subscription: Subscription) -> Subscription:
    _transition(subscription, CANCEL)
    subscription.cancelled_at = _utcnow()
    db.commit()
    db.refresh(subscription)
    return subscription


def delete_subscription(db: Session, subscription_id: int) -> None:
    subscription = get_subscription(db, subscription_id)
    db.delete(subscription)
    db.commit()
    logger.info("Subscription %s deleted", subscription_id)


# --- User (gateway-paid) operations ---

def callback_url() -> str:
    base = settings.frontend_url.rstrip("/")
    if "localhost" in base or "127.0.0.1" in base:
        return PLACEHOLDER_CALLBACK_URL
    return f"{base}/dashboard/track"


def _start_payment(
    db: Session,
    client: ThreePayClient,
    user: User,
    strategy: Strategy,
    payment_type: PaymentType,
    amount,
    currency: Optional[str],
    subscription: Optional[Subscription] = None,
    coach_id: Optional[int] = None,
    coach_name: Optional[str] = None,
    commission_percentage=0,
) -> PaymentInitiation:
    amount = to_money(amount)
    currency_type = currency_type_for(currency)
    transaction = client.create_transaction(amount, currency_type, callback_url())

    pending = PendingPayment(
        payment_id=f"pending_3pay_{transaction.transaction_id}",
        provider="3pay",
        provider_transaction_id=transaction.transaction_id,
        payment_url=transaction.payment_url,
        test_mode=client.config.is_test,
        user_id=user.id,
        strategy_id=strategy.id,
        subscription_id=subscription.id if subscription else None,
        type=payment_type,
        amount=amount,
        currency=currency_type,
        coach_id=coach_id,
        coach_name=coach_name,
        commission_percentage=Decimal(str(commission_percentage or 0)),
        status=PendingPaymentStatus.WAITING,
    )
    db.add(pending)
    db.flush()
    logger.info(
        "Pending %s payment %s for user %s: %s %s",
        payment_type.value, pending.payment_id, user.id, amount, currency_type,
    )

    result = PaymentInitiation(
        payment_type=payment_type,
        amount=amount,
        payment_id=pending.payment_id,
        transaction_id=transaction.transaction_id,
        payment_url=transaction.payment_url,
        currency=currency_type,
        test_mode=client.config.is_test,
    )

    if client.config.is_test:
        # No provider round-trip in test mode: confirm right away
        result.subscription = _apply_confirmation(db, pending)
        result.auto_confirmed = True

    db.commit()
    if result.subscription is not None:
        db.refresh(result.subscription)
    return result


def initiate_user_subscription(
    db: Session, user: User, strategy_id: int, client: ThreePayClient, currency: Optional[str] = None
) -> PaymentInitiation:
    """Begin paying for a first subscription; returns the provider payment URL."""
    if get_live_subscription(db, user.id):
        raise BadRequestError("You already have an active or pending subscription")
    if get_open_payment(db, user.id, PaymentType.SUBSCRIPTION):
        raise BadRequestError("A subscription payment is already in progress")
    strategy = get_strategy(db, strategy_id)
    if not strategy.is_active:
        raise BadRequestError("Strategy is not available")

    coach_id, coach_name, pct = resolve_commission(db, user)
    return _start_payment(
        db, client, user, strategy, PaymentType.SUBSCRIPTION, strategy.price, currency,
        coach_id=coach_id, coach_name=coach_name, commission_percentage=pct,
    )


def renew_user_subscription(
    db: Session, user: User, client: ThreePayClient, currency: Optional[str] = None
) -> PaymentInitiation:
    subscription = get_live_subscription(db, user.id)
    if not subscription or subscription.status != SubscriptionStatus.PENDING:
        raise BadRequestError("No pending subscription to renew")

    strategy = get_strategy(db, subscription.strategy_id)
    return _start_payment(
        db, client, user, strategy, PaymentType.RENEWAL, settings.renewal_fee, currency,
        subscription=subscription,
        coach_id=subscription.coach_id,
        coach_name=subscription.coach_name,
        commission_percentage=subscription.coach_commission_percentage,
    )


def upgrade_user_subscription(
    db: Session, user: User, strategy_id: int, client: ThreePayClient, currency: Optional[str] = None
) -> PaymentInitiation:
    """Switch the live subscription to another strategy (upgrade or downgrade)."""
    subscription = get_live_subscription(db, user.id)
    if not subscription:
        raise BadRequestError("No active or pending subscription found")
    if strategy_id == subscription.strategy_id:
        raise BadRequestError("You are already subscribed to this strategy")

    strategy = get_strategy(db, strategy_id)
    if not strategy.is_active:
        raise BadRequestError("Strategy is not available")

    quote = quote_change(subscription.strategy_price, strategy.price)
    if quote.kind == ChangeKind.SAME_PRICE:
        change_strategy(db, subscription, strategy, GATEWAY_CONTEXT, ZERO, paid=False)
        db.commit()
        db.refresh(subscription)
        return PaymentInitiation(
            payment_type=PaymentType.UPGRADE,
            amount=ZERO,
            auto_confirmed=True,
            subscription=subscription,
        )

    payment_type = PaymentType.UPGRADE if quote.kind == ChangeKind.UPGRADE else PaymentType.DOWNGRADE
    return _start_payment(
        db, client, user, strategy, payment_type, quote.amount, currency,
        subscription=subscription,
        coach_id=subscription.coach_id,
        coach_name=subscription.coach_name,
        commission_percentage=subscription.coach_commission_percentage,
    )


def cancel_user_subscription(db: Session, user: User) -> Subscription:
    subscription = get_live_subscription(db, user.id)
    if not subscription:
        raise BadRequestError("No active or pending subscription found")
    return _cancel(db, subscription)


# --- Payment confirmation ---

def find_pending_payment(db: Session, payment_id: str, lock: bool = False) -> PendingPayment:
    """Look up a pending payment by its id or by the provider transaction id."""
    query = db.query(PendingPayment).filter(
        or_(PendingPayment.payment_id == payment_id, PendingPayment.provider_transaction_id == payment_id)
    )
    if lock:
        query = query.with_for_update().populate_existing()
    pending = query.first()
    if not pending:
        raise NotFoundError("Pending payment not found")
    return pending


def get_open_payment(db: Session, user_id: int, payment_type: PaymentType) -> Optional[PendingPayment]:
    """Latest pending payment of this type still awaiting the provider."""
    return (
        db.query(PendingPayment)
        .filter(
            PendingPayment.user_id == user_id,
            PendingPayment.type == payment_type,
            PendingPayment.status.in_(OPEN_PAYMENT_STATUSES),
        )
        .order_by(PendingPayment.id.desc())
        .first()
    )


def _target_subscription(db: Session, pending: PendingPayment) -> Subscription:
    if pending.subscription_id:
        return get_subscription(db, pending.subscription_id)
    subscription = get_live_subscription(db, pending.user_id)
    if not subscription:
        raise BadRequestError("No subscription found for this payment")
    return subscription


def _apply_confirmation(db: Session, pending: PendingPayment) -> Subscription:
    user = get_user(db, pending.user_id)

    if pending.type == PaymentType.SUBSCRIPTION:
        strategy = get_strategy(db, pending.strategy_id)
        subscription = _open_subscription(
            db, user, strategy, GATEWAY_CONTEXT,
            amount_paid=pending.amount,
            coach_id=pending.coach_id,
            coach_name=pending.coach_name,
            commission_percentage=pending.commission_percentage,
        )
    elif pending.type == PaymentType.RENEWAL:
        subscription = _target_subscription(db, pending)
        _renew_period(db, subscription, GATEWAY_CONTEXT, pending.amount)
    else:
        subscription = _target_subscription(db, pending)
        strategy = get_strategy(db, pending.strategy_id)
        change_strategy(db, subscription, strategy, GATEWAY_CONTEXT, pending.amount)

    pending.status = PendingPaymentStatus.COMPLETED
    pending.subscription_id = subscription.id
    pending.completed_at = _utcnow()
    db.flush()
    logger.info(
        "Payment %s (%s) applied to subscription %s",
        pending.payment_id, pending.type.value, subscription.id,
    )
    return subscription


def confirm_payment(db: Session, payment_id: str) -> Tuple[Subscription, bool]:
    """
    Apply a paid PendingPayment to its subscription.

    Returns (subscription, already_processed). Replays of a completed payment
    return the subscription it produced without touching state or wallets.
    """
    pending = find_pending_payment(db, payment_id, lock=True)

    if pending.status == PendingPaymentStatus.COMPLETED:
        logger.info("Payment %s already processed, skipping", pending.payment_id)
        return get_subscription(db, pending.subscription_id), True
    if pending.status == PendingPaymentStatus.FAILED:
        raise BadRequestError("Payment has failed and cannot be confirmed")

    subscription = _apply_confirmation(db, pending)
    db.commit()
    db.refresh(subscription)
    return subscription, False


def update_pending_status(db: Session, payment_id: str, status: PendingPaymentStatus) -> PendingPayment:
    """Record a non-final provider status; completed payments are never downgraded."""
    pending = find_pending_payment(db, payment_id, lock=True)
    if pending.status == PendingPaymentStatus.COMPLETED:
        return pending
    if status == PendingPaymentStatus.COMPLETED:
        raise BadRequestError("Use confirm_payment to complete a payment")
    pending.status = status
    db.commit()
    return pending


def mark_payment_failed(
    db: Session, payment_id: str, status: PendingPaymentStatus = PendingPaymentStatus.FAILED
) -> PendingPayment:
    logger.warning("Payment %s marked %s", payment_id, status.value)
    return update_pending_status(db, payment_id, status)


# --- Expiry sweep ---

def check_expired_subscriptions(db: Session, now: Optional[datetime] = None) -> int:
    """
    Move every ACTIVE subscription whose end_date has passed to PENDING.

    Single UPDATE statement so a failure leaves no row half-transitioned.
    Video progress is left untouched.
    """
    now = now or _utcnow()
    expired = (
        db.query(Subscription)
        .filter(
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.end_date < now,
        )
        .update(
            {
                Subscription.status: SubscriptionStatus.PENDING,
                Subscription.expired_at: now,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    if expired:
        logger.info("Expiry sweep moved %d subscriptions to pending", expired)
    return expired
