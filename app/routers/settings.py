from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.auth.dependencies import require_admin
from app.schemas.settings import AppSettingsResponse, AppSettingsUpdate
from app.services.settings import get_app_settings, update_app_settings

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("", response_model=AppSettingsResponse)
def read_settings(db: Session = Depends(get_db)):
    """Public: the frontend reads the banner and Telegram link before login"""
    return get_app_settings(db)


@router.put("", response_model=AppSettingsResponse)
def write_settings(
    data: AppSettingsUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return update_app_settings(db, data.model_dump(exclude_none=True))
