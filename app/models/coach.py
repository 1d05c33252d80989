from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, Numeric, Text, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from .base import Base


class CoachStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETELY_REJECTED = "completely_rejected"
    BANNED = "banned"


class Coach(Base):
    __tablename__ = "coaches"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    bio = Column(Text, nullable=True)
    wallet_address = Column(String(255), nullable=True)
    status = Column(Enum(CoachStatus), nullable=False, default=CoachStatus.PENDING)
    default_commission_percentage = Column(Numeric(5, 2), nullable=False, default=30)

    # Review
    rejection_reason = Column(Text, nullable=True)
    rejected_fields = Column(JSON, nullable=True)
    reviewed_by = Column(Integer, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    ban_reason = Column(Text, nullable=True)
    banned_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", foreign_keys=[user_id])
