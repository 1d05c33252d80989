"""
Administrator account management.

Admins are users with role ADMIN; disabling sets their status to DISABLED,
which locks them out of every authenticated route.
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User, UserRole
from app.auth.dependencies import require_admin
from app.schemas.users import DisableRequest, MessageResponse, UserResponse, UserUpdate
from app.services import accounts

router = APIRouter(prefix="/admins", tags=["Admins"])


@router.get("", response_model=List[UserResponse])
def list_admins(
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return accounts.list_admins(db)


@router.get("/{admin_id}", response_model=UserResponse)
def get_admin(
    admin_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return accounts.get_account(db, admin_id, role=UserRole.ADMIN)


@router.put("/{admin_id}", response_model=UserResponse)
def update_admin(
    admin_id: int,
    data: UserUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    admin = accounts.get_account(db, admin_id, role=UserRole.ADMIN)
    return accounts.update_account(db, admin, data.model_dump(exclude_unset=True))


@router.patch("/{admin_id}/disable", response_model=UserResponse)
def disable_admin(
    admin_id: int,
    data: DisableRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    admin = accounts.get_account(db, admin_id, role=UserRole.ADMIN)
    return accounts.disable_account(db, admin, current_user, data.reason)


@router.patch("/{admin_id}/enable", response_model=UserResponse)
def enable_admin(
    admin_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    admin = accounts.get_account(db, admin_id, role=UserRole.ADMIN)
    return accounts.enable_account(db, admin, current_user)


@router.delete("/{admin_id}", response_model=MessageResponse)
def delete_admin(
    admin_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    admin = accounts.get_account(db, admin_id, role=UserRole.ADMIN)
    accounts.delete_account(db, admin, current_user)
    return MessageResponse(message="Admin deleted successfully")
