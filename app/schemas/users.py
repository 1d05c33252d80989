from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional
from app.models.user import UserRole, UserStatus


class UserResponse(BaseModel):
    id: int
    email: str
    display_name: Optional[str] = None
    role: UserRole
    status: UserStatus
    assigned_coach_id: Optional[int] = None
    assigned_coach_name: Optional[str] = None
    coach_commission_override: Optional[float] = None
    ban_reason: Optional[str] = None
    banned_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssignCoachRequest(BaseModel):
    """coach_id=None removes the assignment"""
    coach_id: Optional[int] = None


class CommissionOverrideRequest(BaseModel):
    """percentage=None falls back to the coach's default"""
    percentage: Optional[float] = Field(None, ge=0, le=100)


class BanRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class UserUpdate(BaseModel):
    """Omitted fields are left unchanged"""
    display_name: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None


class DisableRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class MessageResponse(BaseModel):
    message: str
