"""
User profile and admin user management.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.coach import Coach
from app.models.user import User, UserRole, UserStatus
from app.auth.dependencies import get_current_user, require_admin
from app.routers.subscriptions import to_response
from app.schemas.subscriptions import SubscriptionResponse
from app.services import accounts
from app.schemas.users import (
    UserResponse,
    AssignCoachRequest,
    CommissionOverrideRequest,
    BanRequest,
    UserUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(current_user: User = Depends(get_current_user)):
    """Get current user profile"""
    return current_user


@router.get("", response_model=List[UserResponse])
def list_users(
    role: Optional[UserRole] = None,
    user_status: Optional[UserStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role)
    if user_status is not None:
        query = query.filter(User.status == user_status)
    return query.order_by(User.created_at.desc()).all()


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return _get_user_or_404(db, user_id)


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    data: UserUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    user = _get_user_or_404(db, user_id)
    return accounts.update_account(db, user, data.model_dump(exclude_unset=True))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Delete the account together with its subscriptions and pending payments"""
    accounts.delete_account(db, _get_user_or_404(db, user_id), current_user)


@router.get("/{user_id}/active-subscriptions", response_model=List[SubscriptionResponse])
def list_active_subscriptions(
    user_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return [to_response(db, s) for s in accounts.active_subscriptions(db, user_id)]


@router.patch("/{user_id}/assign-coach", response_model=UserResponse)
def assign_coach(
    user_id: int,
    data: AssignCoachRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    """Assign (or with coach_id=null, remove) the coach credited for this user's payments"""
    user = _get_user_or_404(db, user_id)

    if data.coach_id is None:
        user.assigned_coach_id = None
        user.assigned_coach_name = None
    else:
        coach = db.query(Coach).filter(Coach.id == data.coach_id).first()
        if not coach:
            raise HTTPException(status_code=404, detail="Coach not found")
        user.assigned_coach_id = coach.id
        user.assigned_coach_name = coach.full_name

    db.commit()
    db.refresh(user)
    logger.info("User %s assigned to coach %s", user_id, data.coach_id)
    return user


@router.patch("/{user_id}/commission-override", response_model=UserResponse)
def set_commission_override(
    user_id: int,
    data: CommissionOverrideRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    user = _get_user_or_404(db, user_id)
    user.coach_commission_override = data.percentage
    db.commit()
    db.refresh(user)
    return user


@router.post("/{user_id}/ban", response_model=UserResponse)
def ban_user(
    user_id: int,
    data: BanRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user = _get_user_or_404(db, user_id)
    if user.id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot ban yourself")

    user.status = UserStatus.BANNED
    user.ban_reason = data.reason
    user.banned_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    logger.info("User %s banned by %s", user_id, current_user.id)
    return user


@router.post("/{user_id}/unban", response_model=UserResponse)
def unban_user(
    user_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    user = _get_user_or_404(db, user_id)
    user.status = UserStatus.ACTIVE
    user.ban_reason = None
    user.banned_at = None
    db.commit()
    db.refresh(user)
    return user
