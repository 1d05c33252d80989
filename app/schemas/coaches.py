from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import List, Optional
from app.models.coach import CoachStatus


class CoachApply(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = None
    wallet_address: Optional[str] = Field(None, max_length=255)


class CoachCreate(CoachApply):
    """Admin-created coach, optionally linked to an existing account"""
    email: EmailStr
    user_id: Optional[int] = None
    default_commission_percentage: float = Field(30, ge=0, le=100)


class CoachUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = None
    wallet_address: Optional[str] = Field(None, max_length=255)
    default_commission_percentage: Optional[float] = Field(None, ge=0, le=100)


class CoachReview(BaseModel):
    status: CoachStatus
    rejection_reason: Optional[str] = None
    rejected_fields: Optional[List[str]] = None


class CoachResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    full_name: str
    email: str
    phone: Optional[str] = None
    bio: Optional[str] = None
    wallet_address: Optional[str] = None
    status: CoachStatus
    default_commission_percentage: float
    rejection_reason: Optional[str] = None
    rejected_fields: Optional[List[str]] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    ban_reason: Optional[str] = None
    banned_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
