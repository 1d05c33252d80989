from sqlalchemy import Column, Integer, DateTime, JSON
from sqlalchemy.sql import func

from .base import Base


DEFAULT_TELEGRAM = {
    "enabled": False,
    "type": "group",
    "link": "",
    "label": "Join our Telegram",
}

DEFAULT_BANNER = {
    "image_url": "",
    "text": "Welcome to Our Platform",
    "text_color": "#ffffff",
    "font_size": 48,
    "font_family": "Inter, sans-serif",
    "overlay_enabled": True,
    "overlay_color": "#000000",
    "overlay_opacity": 0.4,
}


class AppSettings(Base):
    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True, index=True)
    telegram = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_TELEGRAM))
    banner = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_BANNER))
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
