"""Resolve platform and payment settings with a DB-first, env-fallback strategy."""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.models.app_settings import AppSettings, DEFAULT_TELEGRAM, DEFAULT_BANNER
from app.models.payment import PaymentSettings
from app.services.encryption import decrypt_value, encrypt_value
from app.services.errors import BadRequestError

logger = logging.getLogger(__name__)


def get_payment_settings_row(db: Session) -> Optional[PaymentSettings]:
    return db.query(PaymentSettings).first()


def get_or_create_payment_settings(db: Session) -> PaymentSettings:
    row = get_payment_settings_row(db)
    if not row:
        row = PaymentSettings(
            provider="nowpayments",
            is_test_mode=True,
            is_active=False,
            accepted_currencies=["usdttrc20"],
            crypto_enabled=True,
            card_enabled=False,
        )
        db.add(row)
        db.flush()
    return row


def update_payment_settings(db: Session, changes: Dict[str, Any], updated_by: Optional[int] = None) -> PaymentSettings:
    """Apply a partial update; secrets are encrypted, empty strings clear them."""
    row = get_or_create_payment_settings(db)

    if "api_key" in changes and changes["api_key"] is not None:
        row.api_key_encrypted = encrypt_value(changes["api_key"])
    if "ipn_secret" in changes and changes["ipn_secret"] is not None:
        row.ipn_secret_encrypted = encrypt_value(changes["ipn_secret"])

    for field in ("provider", "is_test_mode", "is_active", "accepted_currencies", "crypto_enabled", "card_enabled"):
        if changes.get(field) is not None:
            setattr(row, field, changes[field])

    row.updated_by = updated_by
    db.commit()
    db.refresh(row)
    logger.info("Payment settings updated by user %s", updated_by)
    return row


def get_nowpayments_credentials(db: Session) -> Dict[str, Any]:
    """
    Resolve NOWPayments api key, IPN secret and test mode.

    Raises BadRequestError if no api key is configured anywhere.
    """
    row = get_payment_settings_row(db)
    api_key = ""
    ipn_secret = ""
    is_test_mode = True

    if row:
        api_key = decrypt_value(row.api_key_encrypted)
        ipn_secret = decrypt_value(row.ipn_secret_encrypted)
        is_test_mode = bool(row.is_test_mode)

    # Fallback to environment
    api_key = api_key or settings.nowpayments_api_key
    ipn_secret = ipn_secret or settings.nowpayments_ipn_secret

    if not api_key:
        raise BadRequestError(
            "No NOWPayments API key configured. "
            "Set it via the payment settings page or the environment variable."
        )
    return {"api_key": api_key, "ipn_secret": ipn_secret, "is_test_mode": is_test_mode}


def get_app_settings(db: Session) -> Dict[str, Any]:
    row = db.query(AppSettings).first()
    if not row:
        return {"telegram": dict(DEFAULT_TELEGRAM), "banner": dict(DEFAULT_BANNER)}
    return {
        "telegram": {**DEFAULT_TELEGRAM, **(row.telegram or {})},
        "banner": {**DEFAULT_BANNER, **(row.banner or {})},
    }


def update_app_settings(db: Session, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Merge the provided sections over the stored (or default) settings."""
    row = db.query(AppSettings).first()
    current = get_app_settings(db)
    if not row:
        row = AppSettings()
        db.add(row)

    for section in ("telegram", "banner"):
        if changes.get(section):
            current[section] = {**current[section], **changes[section]}
    row.telegram = current["telegram"]
    row.banner = current["banner"]
    db.commit()
    logger.info("App settings updated")
    return current
