"""
Wallet balances, ledger history, commissions and cashouts.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.coach import Coach
from app.models.user import User, UserRole
from app.models.wallet import Wallet, WalletOwnerType
from app.auth.dependencies import get_current_user, require_admin, require_coach, is_admin
from app.schemas.wallets import (
    WalletResponse,
    WalletTransactionResponse,
    CoachCommissionResponse,
    CashoutRequest,
    CashoutResponse,
)
from app.services import payments, wallets

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wallets", tags=["Wallets"])


def _coach_for(db: Session, user: User) -> Optional[Coach]:
    return db.query(Coach).filter(Coach.user_id == user.id).first()


def _owns_wallet(db: Session, user: User, wallet: Wallet) -> bool:
    if wallet.owner_type == WalletOwnerType.USER:
        return wallet.owner_id == str(user.id)
    if wallet.owner_type == WalletOwnerType.COACH:
        coach = _coach_for(db, user)
        return coach is not None and wallet.owner_id == str(coach.id)
    return False


def _get_accessible_wallet(db: Session, wallet_id: int, user: User) -> Wallet:
    wallet = wallets.get_wallet(db, wallet_id)
    if not is_admin(user) and not _owns_wallet(db, user, wallet):
        raise HTTPException(status_code=404, detail="Wallet not found")
    return wallet


@router.get("", response_model=List[WalletResponse])
def list_wallets(
    owner_type: Optional[WalletOwnerType] = None,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return wallets.list_wallets(db, owner_type)


@router.get("/system", response_model=WalletResponse)
def get_system_wallet(
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    wallet = wallets.get_system_wallet(db)
    db.commit()
    return wallet


@router.get("/commissions", response_model=List[CoachCommissionResponse])
def list_commissions(
    coach_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_coach),
):
    """Admins may filter by coach; coaches only ever see their own commissions"""
    if current_user.role != UserRole.ADMIN:
        coach = _coach_for(db, current_user)
        if not coach:
            raise HTTPException(status_code=404, detail="Coach profile not found")
        coach_id = coach.id
    return wallets.list_commissions(db, coach_id)


@router.get("/me", response_model=WalletResponse)
def get_my_wallet(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    coach = _coach_for(db, current_user) if current_user.role == UserRole.COACH else None
    if coach:
        wallet = wallets.get_or_create_wallet(db, str(coach.id), WalletOwnerType.COACH, coach.full_name)
    else:
        wallet = wallets.get_or_create_wallet(db, str(current_user.id), WalletOwnerType.USER, current_user.name)
    db.commit()
    return wallet


@router.get("/owner/{owner_id}", response_model=WalletResponse)
def get_wallet_by_owner(
    owner_id: str,
    owner_type: Optional[WalletOwnerType] = None,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return wallets.get_wallet_by_owner(db, owner_id, owner_type)


@router.get("/{wallet_id}", response_model=WalletResponse)
def get_wallet(
    wallet_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _get_accessible_wallet(db, wallet_id, current_user)


@router.get("/{wallet_id}/transactions", response_model=List[WalletTransactionResponse])
def list_wallet_transactions(
    wallet_id: int,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    _get_accessible_wallet(db, wallet_id, current_user)
    return wallets.list_transactions(db, wallet_id, limit)


@router.post("/{wallet_id}/cashout", response_model=CashoutResponse)
def cashout(
    wallet_id: int,
    data: CashoutRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_coach),
):
    wallet = _get_accessible_wallet(db, wallet_id, current_user)
    gateway, payout_client = payments.payout_gateway(db)
    result = wallets.process_cashout(
        db,
        wallet.id,
        data.amount,
        data.destination_address,
        data.currency,
        gateway,
        payout_client,
    )
    logger.info("Cashout of %s from wallet %s by user %s", data.amount, wallet.id, current_user.id)
    return result
