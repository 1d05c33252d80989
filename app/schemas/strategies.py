from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional


class StrategyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    number: Optional[int] = None
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    tags: List[str] = []
    cover_photo_url: Optional[str] = Field(None, max_length=1024)
    expected_weeks: Optional[int] = Field(None, ge=0)


class StrategyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    number: Optional[int] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    tags: Optional[List[str]] = None
    cover_photo_url: Optional[str] = Field(None, max_length=1024)
    expected_weeks: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class StrategyResponse(BaseModel):
    id: int
    number: Optional[int] = None
    name: str
    description: Optional[str] = None
    price: float
    tags: Optional[List[str]] = None
    cover_photo_url: Optional[str] = None
    expected_weeks: Optional[int] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VideoCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    order: int = Field(..., ge=0)
    description: Optional[str] = None
    video_url: Optional[str] = Field(None, max_length=1024)
    is_visible: bool = True


class VideoUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    order: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    video_url: Optional[str] = Field(None, max_length=1024)
    is_visible: Optional[bool] = None


class VideoResponse(BaseModel):
    id: int
    strategy_id: int
    order: int
    title: str
    description: Optional[str] = None
    video_url: Optional[str] = None
    is_visible: bool

    class Config:
        from_attributes = True
