"""
At-rest protection for the NOWPayments API key and IPN secret stored on the
payment settings row.

Credentials are sealed with Fernet under ``credentials_encryption_key``; when
that is unset the JWT signing secret keys the cipher instead. Rotating the
key makes old ciphertext unreadable, which reads back as "not configured" so
the environment fallback in get_nowpayments_credentials takes over.
"""
import base64
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from app.config import settings

logger = logging.getLogger(__name__)

MASK = "****"
MASK_VISIBLE_CHARS = 10


def _fernet() -> Fernet:
    secret = settings.credentials_encryption_key or settings.jwt_secret_key
    return Fernet(base64.urlsafe_b64encode(hashlib.sha256(secret.encode()).digest()))


def encrypt_value(plaintext: Optional[str]) -> Optional[str]:
    """Seal a credential for storage; empty input clears the column (None)."""
    if not plaintext:
        return None
    return _fernet().encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: Optional[str]) -> str:
    if not ciphertext:
        return ""
    try:
        return _fernet().decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        logger.warning("Stored provider credential could not be decrypted; treating it as unset")
        return ""


def mask_secret(value: str) -> str:
    if not value:
        return ""
    if len(value) < MASK_VISIBLE_CHARS:
        return MASK
    return value[:MASK_VISIBLE_CHARS] + MASK


def masked_credential(ciphertext: Optional[str]) -> Optional[str]:
    """Masked plaintext of a stored credential for admin views, None when unset or unreadable."""
    plain = decrypt_value(ciphertext)
    return mask_secret(plain) if plain else None
