"""
Strategy catalog and strategy videos. Admins manage, everyone can browse.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.strategy import Strategy, StrategyVideo
from app.models.subscription import Subscription
from app.models.user import User
from app.auth.dependencies import get_current_user, require_admin, is_admin
from app.schemas.strategies import (
    StrategyCreate,
    StrategyUpdate,
    StrategyResponse,
    VideoCreate,
    VideoUpdate,
    VideoResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/strategies", tags=["Strategies"])


def _get_strategy_or_404(db: Session, strategy_id: int) -> Strategy:
    strategy = db.query(Strategy).filter(Strategy.id == strategy_id).first()
    if not strategy:
        raise HTTPException(status_code=404, detail="Strategy not found")
    return strategy


def _get_video_or_404(db: Session, strategy_id: int, video_id: int) -> StrategyVideo:
    video = db.query(StrategyVideo).filter(
        StrategyVideo.id == video_id,
        StrategyVideo.strategy_id == strategy_id,
    ).first()
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")
    return video


@router.get("", response_model=List[StrategyResponse])
def list_strategies(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Admins see every strategy, everyone else only active ones"""
    query = db.query(Strategy)
    if not is_admin(current_user):
        query = query.filter(Strategy.is_active == True)
    return query.order_by(Strategy.number, Strategy.id).all()


@router.post("", response_model=StrategyResponse, status_code=status.HTTP_201_CREATED)
def create_strategy(
    data: StrategyCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    strategy = Strategy(**data.model_dump(), is_active=True)
    db.add(strategy)
    db.commit()
    db.refresh(strategy)
    logger.info("Strategy %s created", strategy.id)
    return strategy


@router.get("/{strategy_id}", response_model=StrategyResponse)
def get_strategy(
    strategy_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    strategy = _get_strategy_or_404(db, strategy_id)
    if not strategy.is_active and not is_admin(current_user):
        raise HTTPException(status_code=404, detail="Strategy not found")
    return strategy


@router.patch("/{strategy_id}", response_model=StrategyResponse)
def update_strategy(
    strategy_id: int,
    data: StrategyUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    strategy = _get_strategy_or_404(db, strategy_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(strategy, field, value)
    db.commit()
    db.refresh(strategy)
    return strategy


@router.delete("/{strategy_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_strategy(
    strategy_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    strategy = _get_strategy_or_404(db, strategy_id)
    in_use = db.query(Subscription).filter(Subscription.strategy_id == strategy_id).count()
    if in_use:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Strategy has subscriptions; deactivate it instead",
        )
    db.delete(strategy)
    db.commit()


@router.get("/{strategy_id}/videos", response_model=List[VideoResponse])
def list_videos(
    strategy_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    _get_strategy_or_404(db, strategy_id)
    query = db.query(StrategyVideo).filter(StrategyVideo.strategy_id == strategy_id)
    if not is_admin(current_user):
        query = query.filter(StrategyVideo.is_visible == True)
    return query.order_by(StrategyVideo.order, StrategyVideo.id).all()


@router.post("/{strategy_id}/videos", response_model=VideoResponse, status_code=status.HTTP_201_CREATED)
def create_video(
    strategy_id: int,
    data: VideoCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    _get_strategy_or_404(db, strategy_id)
    video = StrategyVideo(strategy_id=strategy_id, **data.model_dump())
    db.add(video)
    db.commit()
    db.refresh(video)
    return video


@router.patch("/{strategy_id}/videos/{video_id}", response_model=VideoResponse)
def update_video(
    strategy_id: int,
    video_id: int,
    data: VideoUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    video = _get_video_or_404(db, strategy_id, video_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(video, field, value)
    db.commit()
    db.refresh(video)
    return video


@router.delete("/{strategy_id}/videos/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_video(
    strategy_id: int,
    video_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    video = _get_video_or_404(db, strategy_id, video_id)
    db.delete(video)
    db.commit()
