from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, Text, Boolean, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base


class Strategy(Base):
    """A purchasable course made of an ordered sequence of videos"""
    __tablename__ = "strategies"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(Integer, nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    tags = Column(JSON, nullable=True)
    cover_photo_url = Column(String(1024), nullable=True)
    expected_weeks = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    videos = relationship(
        "StrategyVideo",
        back_populates="strategy",
        cascade="all, delete-orphan",
        order_by="StrategyVideo.order",
    )


class StrategyVideo(Base):
    __tablename__ = "strategy_videos"

    id = Column(Integer, primary_key=True, index=True)
    strategy_id = Column(Integer, ForeignKey("strategies.id", ondelete="CASCADE"), nullable=False, index=True)
    order = Column(Integer, nullable=False, default=0)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    video_url = Column(String(1024), nullable=True)
    is_visible = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    strategy = relationship("Strategy", back_populates="videos")
