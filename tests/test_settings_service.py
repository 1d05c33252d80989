"""Tests for app.services.settings module."""
import pytest
from unittest.mock import patch, MagicMock, Mock
from app.services.settings import (
    get_nowpayments_credentials,
    get_app_settings,
    update_app_settings,
)
from app.services.errors import BadRequestError
from app.models.payment import PaymentSettings


def test_credentials_from_database():
    db = MagicMock()
    row = Mock(spec=PaymentSettings)
    row.api_key_encrypted = "enc-key"
    row.ipn_secret_encrypted = "enc-secret"
    row.is_test_mode = False
    db.query.return_value.first.return_value = row

    with patch("app.services.settings.decrypt_value", side_effect=lambda v: f"plain-{v}"):
        result = get_nowpayments_credentials(db)

    assert result == {"api_key": "plain-enc-key", "ipn_secret": "plain-enc-secret", "is_test_mode": False}


def test_credentials_fallback_to_env_when_db_empty():
    db = MagicMock()
    db.query.return_value.first.return_value = None

    with patch("app.services.settings.settings") as mock_settings:
        mock_settings.nowpayments_api_key = "env-key"
        mock_settings.nowpayments_ipn_secret = "env-secret"
        result = get_nowpayments_credentials(db)

    assert result["api_key"] == "env-key"
    assert result["ipn_secret"] == "env-secret"
    assert result["is_test_mode"] is True


def test_credentials_db_takes_precedence_over_env():
    db = MagicMock()
    row = Mock(spec=PaymentSettings)
    row.api_key_encrypted = "encrypted"
    row.ipn_secret_encrypted = None
    row.is_test_mode = True
    db.query.return_value.first.return_value = row

    with patch("app.services.settings.decrypt_value", side_effect=lambda v: "db-key" if v else ""), \
         patch("app.services.settings.settings") as mock_settings:
        mock_settings.nowpayments_api_key = "env-key"
        mock_settings.nowpayments_ipn_secret = "env-secret"
        result = get_nowpayments_credentials(db)

    assert result["api_key"] == "db-key"
    assert result["ipn_secret"] == "env-secret"


def test_credentials_raise_when_no_key_anywhere():
    db = MagicMock()
    db.query.return_value.first.return_value = None

    with patch("app.services.settings.settings") as mock_settings:
        mock_settings.nowpayments_api_key = ""
        mock_settings.nowpayments_ipn_secret = ""
        with pytest.raises(BadRequestError, match="No NOWPayments API key configured"):
            get_nowpayments_credentials(db)


def test_app_settings_defaults(db_session):
    result = get_app_settings(db_session)

    assert result["telegram"]["enabled"] is False
    assert result["banner"]["font_family"] == "Inter, sans-serif"
    assert result["banner"]["overlay_opacity"] == 0.4


def test_app_settings_partial_update_merges(db_session):
    update_app_settings(db_session, {"telegram": {"enabled": True, "link": "https://t.me/x"}})
    result = update_app_settings(db_session, {"banner": {"text": "Trade smarter"}})

    assert result["telegram"]["enabled"] is True
    assert result["telegram"]["link"] == "https://t.me/x"
    assert result["telegram"]["label"] == "Join our Telegram"
    assert result["banner"]["text"] == "Trade smarter"
    assert get_app_settings(db_session) == result
