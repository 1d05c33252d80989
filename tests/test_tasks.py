"""Tests for scheduled Celery tasks (app/tasks.py)."""
import pytest
from unittest.mock import patch, MagicMock

from app.celery_app import celery_app
from app.services.errors import PaymentProviderError
from app.tasks import check_expired_subscriptions, reconcile_pending_payments, health_check


def test_beat_schedule_registers_sweeps():
    schedule = celery_app.conf.beat_schedule
    assert schedule["subscriptions-expiry-sweep"]["task"] == "app.tasks.check_expired_subscriptions"
    assert schedule["payments-reconcile-pending"]["task"] == "app.tasks.reconcile_pending_payments"


def test_health_check():
    assert health_check()["status"] == "ok"


@patch("app.tasks.SessionLocal")
def test_expiry_sweep_returns_count_and_closes_session(mock_session_local):
    db = MagicMock()
    mock_session_local.return_value = db

    with patch("app.tasks.subscriptions.check_expired_subscriptions", return_value=4) as mock_sweep:
        result = check_expired_subscriptions()

    assert result == {"expired_count": 4}
    mock_sweep.assert_called_once_with(db)
    db.close.assert_called_once()


@patch("app.tasks.SessionLocal")
def test_expiry_sweep_failure_rolls_back(mock_session_local):
    db = MagicMock()
    mock_session_local.return_value = db

    with patch("app.tasks.subscriptions.check_expired_subscriptions", side_effect=RuntimeError("db down")):
        with pytest.raises(RuntimeError):
            check_expired_subscriptions()

    db.rollback.assert_called_once()
    db.close.assert_called_once()


@patch("app.tasks.SessionLocal")
def test_reconcile_returns_stats(mock_session_local):
    db = MagicMock()
    mock_session_local.return_value = db
    stats = {"checked": 3, "confirmed": 1, "failed": 0}

    with patch("app.tasks.payments.reconcile_pending_payments", return_value=stats):
        assert reconcile_pending_payments() == stats

    db.close.assert_called_once()


@patch("app.tasks.SessionLocal")
def test_reconcile_provider_outage_is_reported(mock_session_local):
    db = MagicMock()
    mock_session_local.return_value = db

    with patch("app.tasks.payments.reconcile_pending_payments", side_effect=PaymentProviderError("timeout")):
        result = reconcile_pending_payments()

    assert result == {"error": "timeout"}
    db.rollback.assert_called_once()
