"""Provider credentials are sealed at rest and read back through the settings service."""
from unittest.mock import patch

import pytest

from app.services.encryption import masked_credential
from app.services.settings import get_nowpayments_credentials, update_payment_settings

API_KEY = "NP-API-KEY-0123456789"
IPN_SECRET = "ipn-s3cret"


@pytest.fixture
def cipher_settings():
    with patch("app.services.encryption.settings") as mock_settings:
        mock_settings.credentials_encryption_key = "credentials-key-one"
        mock_settings.jwt_secret_key = "jwt-secret"
        yield mock_settings


@pytest.fixture
def env_credentials():
    with patch("app.services.settings.settings") as mock_settings:
        mock_settings.nowpayments_api_key = "env-key"
        mock_settings.nowpayments_ipn_secret = "env-ipn"
        yield mock_settings


class TestStoredCredentials:
    def test_secrets_never_stored_in_plaintext(self, db_session, cipher_settings):
        row = update_payment_settings(db_session, {"api_key": API_KEY, "ipn_secret": IPN_SECRET})

        assert row.api_key_encrypted
        assert API_KEY not in row.api_key_encrypted
        assert row.ipn_secret_encrypted
        assert IPN_SECRET not in row.ipn_secret_encrypted

    def test_credentials_resolve_from_database(self, db_session, cipher_settings, env_credentials):
        update_payment_settings(db_session, {"api_key": API_KEY, "ipn_secret": IPN_SECRET, "is_test_mode": False})

        assert get_nowpayments_credentials(db_session) == {
            "api_key": API_KEY, "ipn_secret": IPN_SECRET, "is_test_mode": False,
        }

    def test_empty_string_clears_key(self, db_session, cipher_settings, env_credentials):
        update_payment_settings(db_session, {"api_key": API_KEY})
        row = update_payment_settings(db_session, {"api_key": ""})

        assert row.api_key_encrypted is None
        assert get_nowpayments_credentials(db_session)["api_key"] == "env-key"

    def test_omitted_secret_is_kept(self, db_session, cipher_settings, env_credentials):
        update_payment_settings(db_session, {"api_key": API_KEY, "ipn_secret": IPN_SECRET})
        update_payment_settings(db_session, {"api_key": "NP-OTHER-KEY-999", "ipn_secret": None})

        creds = get_nowpayments_credentials(db_session)
        assert creds["api_key"] == "NP-OTHER-KEY-999"
        assert creds["ipn_secret"] == IPN_SECRET


class TestKeyRotation:
    def test_rotated_key_falls_back_to_environment(self, db_session, cipher_settings, env_credentials):
        update_payment_settings(db_session, {"api_key": API_KEY, "ipn_secret": IPN_SECRET})
        cipher_settings.credentials_encryption_key = "credentials-key-two"

        with patch("app.services.encryption.logger") as mock_logger:
            creds = get_nowpayments_credentials(db_session)

        assert creds["api_key"] == "env-key"
        assert creds["ipn_secret"] == "env-ipn"
        assert mock_logger.warning.call_count == 2

    def test_jwt_secret_keys_cipher_without_dedicated_key(self, db_session, cipher_settings, env_credentials):
        cipher_settings.credentials_encryption_key = ""
        update_payment_settings(db_session, {"api_key": API_KEY})

        assert get_nowpayments_credentials(db_session)["api_key"] == API_KEY

        cipher_settings.jwt_secret_key = "rotated-jwt-secret"
        assert get_nowpayments_credentials(db_session)["api_key"] == "env-key"


class TestMaskedCredential:
    def test_long_key_shows_prefix(self, db_session, cipher_settings):
        row = update_payment_settings(db_session, {"api_key": API_KEY})

        assert masked_credential(row.api_key_encrypted) == "NP-API-KEY****"

    def test_short_key_fully_masked(self, db_session, cipher_settings):
        row = update_payment_settings(db_session, {"api_key": "short"})

        assert masked_credential(row.api_key_encrypted) == "****"

    def test_unset_key_is_none(self):
        assert masked_credential(None) is None

    def test_unreadable_key_is_none(self, db_session, cipher_settings):
        row = update_payment_settings(db_session, {"api_key": API_KEY})
        cipher_settings.credentials_encryption_key = "credentials-key-two"

        assert masked_credential(row.api_key_encrypted) is None
