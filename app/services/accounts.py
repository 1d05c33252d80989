"""
Account administration shared by the /users and /admins routes.

Disabling and banning both lock the account out (get_current_user and login
only admit ACTIVE users); an administrator can never disable or delete their
own account. Deleting a user removes their subscriptions and pending payments
but leaves wallet history in place.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.models.coach import Coach
from app.models.payment import PaymentSettings, PaymentTransaction
from app.models.subscription import PendingPayment, Subscription, SubscriptionStatus
from app.models.user import User, UserRole, UserStatus
from app.services.errors import BadRequestError, NotFoundError

logger = logging.getLogger(__name__)


def get_account(db: Session, user_id: int, role: Optional[UserRole] = None) -> User:
    query = db.query(User).filter(User.id == user_id)
    if role is not None:
        query = query.filter(User.role == role)
    user = query.first()
    if not user:
        raise NotFoundError("Admin not found" if role == UserRole.ADMIN else "User not found")
    return user


def list_admins(db: Session) -> List[User]:
    return db.query(User).filter(User.role == UserRole.ADMIN).order_by(User.created_at.desc(), User.id.desc()).all()


def update_account(db: Session, user: User, changes: Dict[str, Any]) -> User:
    """Apply display_name / email changes; omitted fields are left untouched."""
    email = changes.get("email")
    if email is not None and email != user.email:
        taken = db.query(User).filter(User.email == email, User.id != user.id).first()
        if taken:
            raise BadRequestError("Email already registered")
        user.email = email
    if "display_name" in changes:
        user.display_name = changes["display_name"]

    db.commit()
    db.refresh(user)
    logger.info("Account %s updated: %s", user.id, sorted(changes))
    return user


def disable_account(db: Session, user: User, actor: User, reason: Optional[str] = None) -> User:
    if user.id == actor.id:
        raise BadRequestError("You cannot disable your own account")

    user.status = UserStatus.DISABLED
    user.ban_reason = reason
    user.banned_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    logger.info("Account %s disabled by %s", user.id, actor.id)
    return user


def enable_account(db: Session, user: User, actor: User) -> User:
    user.status = UserStatus.ACTIVE
    user.ban_reason = None
    user.banned_at = None
    db.commit()
    db.refresh(user)
    logger.info("Account %s enabled by %s", user.id, actor.id)
    return user


def delete_account(db: Session, user: User, actor: User) -> None:
    if user.id == actor.id:
        raise BadRequestError("You cannot delete your own account")

    user_id = user.id
    removed = db.query(Subscription).filter(Subscription.user_id == user_id).delete()
    db.query(PendingPayment).filter(PendingPayment.user_id == user_id).delete()
    # Nullable references keep their rows
    db.query(PaymentTransaction).filter(PaymentTransaction.user_id == user_id).update(
        {PaymentTransaction.user_id: None}
    )
    db.query(PaymentSettings).filter(PaymentSettings.updated_by == user_id).update(
        {PaymentSettings.updated_by: None}
    )
    db.query(Coach).filter(Coach.user_id == user_id).update({Coach.user_id: None})

    db.delete(user)
    db.commit()
    logger.info("Account %s deleted by %s (%d subscriptions removed)", user_id, actor.id, removed)


def active_subscriptions(db: Session, user_id: int) -> List[Subscription]:
    get_account(db, user_id)
    return (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id, Subscription.status == SubscriptionStatus.ACTIVE)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .all()
    )
