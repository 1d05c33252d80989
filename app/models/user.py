from sqlalchemy import Column, Integer, String, DateTime, Enum, Numeric, Text
from sqlalchemy.sql import func
import enum

from .base import Base


class UserRole(str, enum.Enum):
    """User role enumeration"""
    ADMIN = "admin"
    COACH = "coach"
    USER = "user"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    BANNED = "banned"
    DISABLED = "disabled"


class User(Base):
    """Platform account: subscribers, coaches and administrators"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=True)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.USER)
    status = Column(Enum(UserStatus), nullable=False, default=UserStatus.ACTIVE)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Coach assignment; commission override wins over the coach's default
    assigned_coach_id = Column(Integer, nullable=True, index=True)
    assigned_coach_name = Column(String(255), nullable=True)
    coach_commission_override = Column(Numeric(5, 2), nullable=True)

    ban_reason = Column(Text, nullable=True)
    banned_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def name(self) -> str:
        return self.display_name or self.email
