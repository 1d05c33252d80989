from pydantic import BaseModel, Field
from typing import Literal, Optional


class TelegramSettings(BaseModel):
    enabled: bool = False
    type: Literal["group", "channel"] = "group"
    link: str = ""
    label: str = "Join our Telegram"


class BannerSettings(BaseModel):
    image_url: str = ""
    text: str = "Welcome to Our Platform"
    text_color: str = "#ffffff"
    font_size: int = Field(48, ge=8, le=200)
    font_family: str = "Inter, sans-serif"
    overlay_enabled: bool = True
    overlay_color: str = "#000000"
    overlay_opacity: float = Field(0.4, ge=0, le=1)


class AppSettingsResponse(BaseModel):
    telegram: TelegramSettings
    banner: BannerSettings


class TelegramSettingsUpdate(BaseModel):
    enabled: Optional[bool] = None
    type: Optional[Literal["group", "channel"]] = None
    link: Optional[str] = None
    label: Optional[str] = None


class BannerSettingsUpdate(BaseModel):
    image_url: Optional[str] = None
    text: Optional[str] = None
    text_color: Optional[str] = None
    font_size: Optional[int] = Field(None, ge=8, le=200)
    font_family: Optional[str] = None
    overlay_enabled: Optional[bool] = None
    overlay_color: Optional[str] = None
    overlay_opacity: Optional[float] = Field(None, ge=0, le=1)


class AppSettingsUpdate(BaseModel):
    telegram: Optional[TelegramSettingsUpdate] = None
    banner: Optional[BannerSettingsUpdate] = None
