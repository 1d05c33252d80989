"""
Coach applications, review and commission management.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.coach import Coach, CoachStatus
from app.models.user import User, UserRole
from app.models.wallet import WalletOwnerType
from app.auth.dependencies import get_current_user, require_admin
from app.schemas.coaches import CoachApply, CoachCreate, CoachUpdate, CoachReview, CoachResponse
from app.schemas.users import BanRequest, CommissionOverrideRequest
from app.services import wallets

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coaches", tags=["Coaches"])


def _get_coach_or_404(db: Session, coach_id: int) -> Coach:
    coach = db.query(Coach).filter(Coach.id == coach_id).first()
    if not coach:
        raise HTTPException(status_code=404, detail="Coach not found")
    return coach


def _promote(db: Session, coach: Coach) -> None:
    """Approved coaches get the coach role and a wallet."""
    if coach.user_id:
        user = db.query(User).filter(User.id == coach.user_id).first()
        if user and user.role == UserRole.USER:
            user.role = UserRole.COACH
    wallets.get_or_create_wallet(db, str(coach.id), WalletOwnerType.COACH, coach.full_name)


@router.post("/apply", response_model=CoachResponse, status_code=status.HTTP_201_CREATED)
def apply_as_coach(
    data: CoachApply,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Submit (or resubmit after a rejection) a coach application"""
    coach = db.query(Coach).filter(Coach.user_id == current_user.id).first()
    if coach:
        if coach.status != CoachStatus.REJECTED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Application already exists with status {coach.status.value}",
            )
        coach.status = CoachStatus.PENDING
        coach.rejection_reason = None
        coach.rejected_fields = None
    else:
        coach = Coach(user_id=current_user.id, email=current_user.email, status=CoachStatus.PENDING)
        db.add(coach)

    coach.full_name = data.full_name
    coach.phone = data.phone
    coach.bio = data.bio
    coach.wallet_address = data.wallet_address
    db.commit()
    db.refresh(coach)
    logger.info("Coach application %s submitted by user %s", coach.id, current_user.id)
    return coach


@router.get("/me", response_model=CoachResponse)
def get_my_coach_profile(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    coach = db.query(Coach).filter(Coach.user_id == current_user.id).first()
    if not coach:
        raise HTTPException(status_code=404, detail="Coach profile not found")
    return coach


@router.post("", response_model=CoachResponse, status_code=status.HTTP_201_CREATED)
def create_coach(
    data: CoachCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Admin-created coaches are approved immediately"""
    if data.user_id is not None:
        if db.query(Coach).filter(Coach.user_id == data.user_id).first():
            raise HTTPException(status_code=400, detail="User already has a coach profile")

    coach = Coach(
        user_id=data.user_id,
        full_name=data.full_name,
        email=data.email,
        phone=data.phone,
        bio=data.bio,
        wallet_address=data.wallet_address,
        default_commission_percentage=data.default_commission_percentage,
        status=CoachStatus.APPROVED,
        reviewed_by=current_user.id,
        reviewed_at=datetime.now(timezone.utc),
    )
    db.add(coach)
    db.flush()
    _promote(db, coach)
    db.commit()
    db.refresh(coach)
    return coach


@router.get("", response_model=List[CoachResponse])
def list_coaches(
    coach_status: Optional[CoachStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    query = db.query(Coach)
    if coach_status is not None:
        query = query.filter(Coach.status == coach_status)
    return query.order_by(Coach.created_at.desc()).all()


@router.get("/{coach_id}", response_model=CoachResponse)
def get_coach(
    coach_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return _get_coach_or_404(db, coach_id)


@router.patch("/{coach_id}", response_model=CoachResponse)
def update_coach(
    coach_id: int,
    data: CoachUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    coach = _get_coach_or_404(db, coach_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(coach, field, value)
    db.commit()
    db.refresh(coach)
    return coach


@router.patch("/{coach_id}/review", response_model=CoachResponse)
def review_coach(
    coach_id: int,
    data: CoachReview,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    coach = _get_coach_or_404(db, coach_id)
    if data.status == CoachStatus.BANNED:
        raise HTTPException(status_code=400, detail="Use the ban endpoint to ban a coach")

    coach.status = data.status
    if data.status == CoachStatus.PENDING:
        # Back to the queue: previous review no longer applies
        coach.rejection_reason = None
        coach.rejected_fields = None
        coach.reviewed_by = None
        coach.reviewed_at = None
    else:
        coach.reviewed_by = current_user.id
        coach.reviewed_at = datetime.now(timezone.utc)
        if data.status == CoachStatus.APPROVED:
            coach.rejection_reason = None
            coach.rejected_fields = None
            _promote(db, coach)
        else:
            coach.rejection_reason = data.rejection_reason
            coach.rejected_fields = data.rejected_fields

    db.commit()
    db.refresh(coach)
    logger.info("Coach %s reviewed by %s: %s", coach_id, current_user.id, data.status.value)
    return coach


@router.post("/{coach_id}/ban", response_model=CoachResponse)
def ban_coach(
    coach_id: int,
    data: BanRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    coach = _get_coach_or_404(db, coach_id)
    coach.status = CoachStatus.BANNED
    coach.ban_reason = data.reason
    coach.banned_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(coach)
    return coach


@router.patch("/{coach_id}/commission", response_model=CoachResponse)
def update_coach_commission(
    coach_id: int,
    data: CommissionOverrideRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    """Set the default commission applied to this coach's assigned users"""
    if data.percentage is None:
        raise HTTPException(status_code=400, detail="percentage is required")
    coach = _get_coach_or_404(db, coach_id)
    coach.default_commission_percentage = data.percentage
    db.commit()
    db.refresh(coach)
    return coach
