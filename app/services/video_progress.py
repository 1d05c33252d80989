"""
Sequential video unlocking within a subscription.

Video i of a subscription (its snapshot order, see ordered_video_ids) is
accessible when i == 0 or video i-1 is completed. Admins bypass gating.
Progress percentage and the current video are derived on every read and
never stored.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from app.models.strategy import StrategyVideo
from app.models.subscription import Subscription, SubscriptionStatus
from app.services.errors import BadRequestError, NotFoundError

logger = logging.getLogger(__name__)


def progress_percentage(completed: Sequence[int], order: Sequence[int]) -> int:
    if not order:
        return 0
    done = len(set(completed) & set(order))
    return round(done * 100 / len(order))


def current_video_id(completed: Sequence[int], order: Sequence[int]) -> Optional[int]:
    """First video in order that is not completed, None when all are done."""
    done = set(completed)
    for video_id in order:
        if video_id not in done:
            return video_id
    return None


def can_access_video(order: Sequence[int], completed: Sequence[int], video_id: int) -> Tuple[bool, str]:
    if video_id not in order:
        return False, "Video not found in strategy"
    index = list(order).index(video_id)
    if index == 0:
        return True, "First video"
    if order[index - 1] in set(completed):
        return True, "Previous video completed"
    return False, "You must complete previous videos first"


def visible_videos(db: Session, strategy_id: int) -> List[StrategyVideo]:
    return (
        db.query(StrategyVideo)
        .filter(StrategyVideo.strategy_id == strategy_id, StrategyVideo.is_visible == True)
        .order_by(StrategyVideo.order, StrategyVideo.id)
        .all()
    )


def ordered_video_ids(db: Session, subscription: Subscription) -> List[int]:
    """
    Snapshot order taken when the strategy was assigned, minus videos since
    deleted or hidden. Visible videos added after the snapshot follow in
    strategy order.
    """
    live = [v.id for v in visible_videos(db, subscription.strategy_id)]
    visible = set(live)
    order = [video_id for video_id in subscription.snapshot_video_ids if video_id in visible]
    snapped = set(order)
    return order + [video_id for video_id in live if video_id not in snapped]


def summarize(db: Session, subscription: Subscription) -> Dict[str, Any]:
    """Derived progress fields for a subscription response."""
    order = ordered_video_ids(db, subscription)
    completed = subscription.completed_video_ids
    return {
        "total_videos": len(order),
        "progress_percentage": progress_percentage(completed, order),
        "current_video_id": current_video_id(completed, order),
    }


def get_video_progress(db: Session, subscription: Subscription, is_admin: bool = False) -> Dict[str, Any]:
    order = ordered_video_ids(db, subscription)
    by_id = {v.id: v for v in visible_videos(db, subscription.strategy_id)}
    videos = [by_id[video_id] for video_id in order]
    completed = subscription.completed_video_ids
    current = current_video_id(completed, order)

    items = []
    for video in videos:
        accessible = is_admin or can_access_video(order, completed, video.id)[0]
        items.append({
            "video_id": video.id,
            "title": video.title,
            "description": video.description,
            "video_url": video.video_url if accessible else None,
            "order": video.order,
            "is_completed": video.id in completed,
            "is_current": video.id == current,
            "is_locked": not accessible,
            "can_access": accessible,
        })

    return {
        "subscription_id": subscription.id,
        "strategy_id": subscription.strategy_id,
        "strategy_name": subscription.strategy_name,
        "completed_count": len(set(completed) & set(order)),
        "total_videos": len(order),
        "progress_percentage": progress_percentage(completed, order),
        "current_video_id": current,
        "videos": items,
    }


def mark_video_complete(
    db: Session, subscription: Subscription, video_id: int, is_admin: bool = False
) -> Subscription:
    """Add a video to the completed set, enforcing sequential order for non-admins."""
    if not is_admin and subscription.status != SubscriptionStatus.ACTIVE:
        raise BadRequestError("No active subscription found")

    order = ordered_video_ids(db, subscription)
    if video_id not in order:
        raise NotFoundError("Video not found in this subscription")

    completed = subscription.completed_video_ids
    if video_id in completed:
        return subscription

    if not is_admin:
        allowed, reason = can_access_video(order, completed, video_id)
        if not allowed:
            raise BadRequestError(reason)

    subscription.completed_videos = completed + [video_id]
    db.commit()
    db.refresh(subscription)
    logger.info(
        "Subscription %s completed video %s (%d/%d)",
        subscription.id, video_id, len(subscription.completed_video_ids), len(order),
    )
    return subscription


def update_video_progress(
    db: Session, subscription: Subscription, video_id: int, completed: bool
) -> Subscription:
    """Admin override: mark or unmark a video without gating."""
    if completed:
        return mark_video_complete(db, subscription, video_id, is_admin=True)

    current = subscription.completed_video_ids
    if video_id not in current:
        order = ordered_video_ids(db, subscription)
        if video_id not in order:
            raise NotFoundError("Video not found in this subscription")
        return subscription

    subscription.completed_videos = [v for v in current if v != video_id]
    db.commit()
    db.refresh(subscription)
    logger.info("Subscription %s video %s marked incomplete", subscription.id, video_id)
    return subscription


def validate_video_access(
    db: Session, subscription: Optional[Subscription], video_id: int, is_admin: bool = False
) -> Dict[str, Any]:
    if is_admin:
        return {"can_access": True, "reason": "Admin access"}
    if not subscription or subscription.status != SubscriptionStatus.ACTIVE:
        return {"can_access": False, "reason": "No active subscription"}

    video = db.query(StrategyVideo).filter(StrategyVideo.id == video_id).first()
    if not video:
        return {"can_access": False, "reason": "Video not found"}
    if video.strategy_id != subscription.strategy_id:
        return {"can_access": False, "reason": "Video does not belong to your subscribed strategy"}
    if not video.is_visible:
        return {"can_access": False, "reason": "Video is not available"}

    allowed, reason = can_access_video(
        ordered_video_ids(db, subscription), subscription.completed_video_ids, video_id
    )
    return {"can_access": allowed, "reason": reason}
