"""Tests for app.services.subscriptions (state machine, payments, ledger integration)."""
import pytest
from datetime import timedelta
from decimal import Decimal
from unittest.mock import Mock, patch

from app.integrations.gateway import PaymentGatewayConfig
from app.integrations.threepay import ThreePayClient, ThreePayTransaction
from app.models.subscription import (
    Subscription,
    SubscriptionStatus,
    PendingPayment,
    PendingPaymentStatus,
    PaymentType,
)
from app.models.wallet import CoachCommission, WalletOwnerType
from app.services import subscriptions, wallets
from app.services.errors import BadRequestError, NotFoundError
from app.services.subscriptions import ChangeContext, ChangeKind


def _test_client():
    return ThreePayClient(PaymentGatewayConfig(mode="test"))


def _production_client(transaction_id="tx-123"):
    client = Mock()
    client.config = PaymentGatewayConfig(mode="production")
    client.create_transaction.return_value = ThreePayTransaction(
        transaction_id=transaction_id, payment_url=f"https://pay.3pa-y.com/pay/{transaction_id}",
    )
    return client


def _system_balance(db):
    return wallets.get_system_wallet(db).balance


def _video_ids(strategy):
    return [v.id for v in strategy.videos]


class TestQuoteChange:
    def test_same_price_is_free(self):
        quote = subscriptions.quote_change(Decimal("100"), 100)
        assert quote.kind == ChangeKind.SAME_PRICE
        assert quote.amount == Decimal("0")

    def test_upgrade_pays_difference(self):
        quote = subscriptions.quote_change(50, 150)
        assert quote.kind == ChangeKind.UPGRADE
        assert quote.amount == Decimal("100.00")

    def test_downgrade_pays_full_new_price(self):
        quote = subscriptions.quote_change(150, 50)
        assert quote.kind == ChangeKind.DOWNGRADE
        assert quote.amount == Decimal("50.00")


class TestCreateSubscription:
    def test_coach_commission_scenario(self, db_session, make_user, make_coach, make_strategy):
        coach = make_coach(commission=30)
        user = make_user(coach=coach)
        strategy = make_strategy(price=100)

        sub = subscriptions.create_subscription(db_session, user.id, strategy.id)

        assert sub.status == SubscriptionStatus.ACTIVE
        assert sub.live_user_id == user.id
        assert sub.amount_paid == Decimal("100.00")
        assert sub.strategy_price == Decimal("100.00")
        assert sub.strategy_name == strategy.name
        assert sub.video_ids == _video_ids(strategy)
        assert sub.completed_videos == []
        assert sub.coach_id == coach.id
        assert sub.coach_commission_percentage == Decimal("30")
        assert sub.payment_method == "manual"

        coach_wallet = wallets.get_wallet_by_owner(db_session, str(coach.id), WalletOwnerType.COACH)
        assert coach_wallet.balance == Decimal("30.00")
        assert _system_balance(db_session) == Decimal("70.00")
        commission = db_session.query(CoachCommission).one()
        assert commission.commission_amount == Decimal("30.00")
        assert commission.system_amount == Decimal("70.00")
        assert commission.subscription_id == sub.id

    def test_default_duration_is_thirty_days(self, db_session, make_user, make_strategy):
        sub = subscriptions.create_subscription(db_session, make_user().id, make_strategy().id)

        assert sub.duration_days == 30
        assert sub.end_date - sub.start_date == timedelta(days=30)

    def test_fractional_duration(self, db_session, make_user, make_strategy):
        sub = subscriptions.create_subscription(
            db_session, make_user().id, make_strategy().id, duration_days=0.5,
        )

        assert sub.end_date - sub.start_date == timedelta(hours=12)

    def test_amount_paid_override_and_context(self, db_session, make_user, make_strategy):
        ctx = ChangeContext(initiated_by="admin", payment_method="bank_transfer", notes="Paid offline")

        sub = subscriptions.create_subscription(
            db_session, make_user().id, make_strategy(price=100).id, ctx, amount_paid=80,
        )

        assert sub.amount_paid == Decimal("80.00")
        assert sub.strategy_price == Decimal("100.00")
        assert sub.payment_method == "bank_transfer"
        assert sub.notes == "Paid offline"
        assert _system_balance(db_session) == Decimal("80.00")

    def test_commission_precedence(self, db_session, make_user, make_coach, make_strategy):
        coach = make_coach(commission=30)
        with_override = make_user(coach=coach, override=10)
        strategy = make_strategy(price=100)

        sub = subscriptions.create_subscription(db_session, with_override.id, strategy.id)
        assert sub.coach_commission_percentage == Decimal("10")

        explicit = make_user(coach=coach, override=10)
        sub = subscriptions.create_subscription(
            db_session, explicit.id, strategy.id, coach_commission_percentage=50,
        )
        assert sub.coach_commission_percentage == Decimal("50")

    def test_no_coach_means_no_commission(self, db_session, make_user, make_strategy):
        sub = subscriptions.create_subscription(db_session, make_user().id, make_strategy(price=100).id)

        assert sub.coach_id is None
        assert sub.coach_commission_percentage == Decimal("0")
        assert _system_balance(db_session) == Decimal("100.00")

    def test_rejects_second_live_subscription(self, db_session, make_user, make_strategy):
        user = make_user()
        subscriptions.create_subscription(db_session, user.id, make_strategy().id)

        with pytest.raises(BadRequestError, match="already has an active or pending subscription"):
            subscriptions.create_subscription(db_session, user.id, make_strategy().id)

        assert db_session.query(Subscription).filter(Subscription.user_id == user.id).count() == 1

    def test_unique_live_column_closes_race(self, db_session, make_user, make_strategy):
        user = make_user()
        strategy = make_strategy()
        subscriptions.create_subscription(db_session, user.id, strategy.id)

        # Both requests passed the read check before either committed
        with patch("app.services.subscriptions.get_live_subscription", return_value=None):
            with pytest.raises(BadRequestError, match="already has an active or pending subscription"):
                subscriptions.create_subscription(db_session, user.id, strategy.id)

        assert db_session.query(Subscription).count() == 1
        assert _system_balance(db_session) == Decimal("100.00")

    def test_unknown_user_or_strategy(self, db_session, make_user, make_strategy):
        with pytest.raises(NotFoundError, match="User not found"):
            subscriptions.create_subscription(db_session, 999, make_strategy().id)
        with pytest.raises(NotFoundError, match="Strategy not found"):
            subscriptions.create_subscription(db_session, make_user().id, 999)

    def test_new_subscription_allowed_after_cancel(self, db_session, make_user, make_strategy):
        user = make_user()
        first = subscriptions.create_subscription(db_session, user.id, make_strategy().id)
        subscriptions.cancel_subscription(db_session, first.id)

        second = subscriptions.create_subscription(db_session, user.id, make_strategy().id)

        assert second.status == SubscriptionStatus.ACTIVE
        db_session.refresh(first)
        assert first.live_user_id is None


class TestAdminTransitions:
    def test_set_pending_keeps_progress(self, db_session, make_user, make_strategy):
        strategy = make_strategy()
        sub = subscriptions.create_subscription(db_session, make_user().id, strategy.id)
        sub.completed_videos = _video_ids(strategy)[:1]
        db_session.commit()

        sub = subscriptions.set_pending(db_session, sub.id)

        assert sub.status == SubscriptionStatus.PENDING
        assert sub.expired_at is not None
        assert sub.completed_videos == _video_ids(strategy)[:1]

    def test_set_pending_twice_rejected(self, db_session, make_user, make_strategy):
        sub = subscriptions.create_subscription(db_session, make_user().id, make_strategy().id)
        subscriptions.set_pending(db_session, sub.id)

        with pytest.raises(BadRequestError, match="Cannot expire a pending subscription"):
            subscriptions.set_pending(db_session, sub.id)

    def test_renew_same_strategy(self, db_session, make_user, make_strategy):
        strategy = make_strategy()
        sub = subscriptions.create_subscription(db_session, make_user().id, strategy.id)
        sub.completed_videos = _video_ids(strategy)[:2]
        db_session.commit()
        subscriptions.set_pending(db_session, sub.id)

        sub = subscriptions.renew_subscription(db_session, sub.id, duration_days=10)

        assert sub.status == SubscriptionStatus.ACTIVE
        assert sub.renewal_count == 1
        assert sub.amount_paid == Decimal("100.00")
        assert sub.expired_at is None
        assert sub.end_date - sub.start_date == timedelta(days=10)
        assert sub.completed_videos == _video_ids(strategy)[:2]
        assert _system_balance(db_session) == Decimal("200.00")

    def test_renew_with_custom_amount(self, db_session, make_user, make_strategy):
        sub = subscriptions.create_subscription(db_session, make_user().id, make_strategy().id)

        sub = subscriptions.renew_subscription(db_session, sub.id, custom_amount=25)

        assert sub.amount_paid == Decimal("25.00")
        assert _system_balance(db_session) == Decimal("125.00")

    def test_renew_into_new_strategy_uses_quote(self, db_session, make_user, make_strategy):
        expensive = make_strategy(price=150)
        cheap = make_strategy(price=50)
        sub = subscriptions.create_subscription(db_session, make_user().id, expensive.id)
        sub.completed_videos = _video_ids(expensive)[:1]
        db_session.commit()

        sub = subscriptions.renew_subscription(db_session, sub.id, strategy_id=cheap.id)

        assert sub.strategy_id == cheap.id
        assert sub.previous_strategy_id == expensive.id
        assert sub.previous_strategy_price == Decimal("150.00")
        assert sub.amount_paid == Decimal("50.00")
        assert sub.completed_videos == []
        assert sub.video_ids == _video_ids(cheap)
        assert _system_balance(db_session) == Decimal("200.00")

    def test_renew_cancelled_rejected(self, db_session, make_user, make_strategy):
        sub = subscriptions.create_subscription(db_session, make_user().id, make_strategy().id)
        subscriptions.cancel_subscription(db_session, sub.id)

        with pytest.raises(BadRequestError, match="Cannot renew a cancelled subscription"):
            subscriptions.renew_subscription(db_session, sub.id)

    def test_cancel_is_terminal(self, db_session, make_user, make_strategy):
        sub = subscriptions.create_subscription(db_session, make_user().id, make_strategy().id)

        sub = subscriptions.cancel_subscription(db_session, sub.id)
        assert sub.status == SubscriptionStatus.CANCELLED
        assert sub.cancelled_at is not None

        with pytest.raises(BadRequestError, match="Cannot cancel a cancelled subscription"):
            subscriptions.cancel_subscription(db_session, sub.id)
        with pytest.raises(BadRequestError):
            subscriptions.set_pending(db_session, sub.id)

    def test_delete(self, db_session, make_user, make_strategy):
        sub = subscriptions.create_subscription(db_session, make_user().id, make_strategy().id)

        subscriptions.delete_subscription(db_session, sub.id)

        with pytest.raises(NotFoundError):
            subscriptions.get_subscription(db_session, sub.id)

    def test_get_live_prefers_active(self, db_session, make_user, make_strategy):
        user = make_user()
        sub = subscriptions.create_subscription(db_session, user.id, make_strategy().id)

        assert subscriptions.get_live_subscription(db_session, user.id).id == sub.id
        subscriptions.cancel_subscription(db_session, sub.id)
        assert subscriptions.get_live_subscription(db_session, user.id) is None


class TestUserPaymentFlows:
    def test_initiate_in_test_mode_auto_confirms(self, db_session, make_user, make_strategy):
        user = make_user()
        strategy = make_strategy(price=100)

        result = subscriptions.initiate_user_subscription(db_session, user, strategy.id, _test_client())

        assert result.auto_confirmed is True
        assert result.test_mode is True
        assert result.payment_type == PaymentType.SUBSCRIPTION
        assert result.subscription.status == SubscriptionStatus.ACTIVE
        assert result.subscription.payment_method == "automatic"
        pending = db_session.query(PendingPayment).one()
        assert pending.payment_id == f"pending_3pay_{result.transaction_id}"
        assert pending.status == PendingPaymentStatus.COMPLETED
        assert pending.subscription_id == result.subscription.id

    def test_initiate_in_production_waits_for_confirmation(self, db_session, make_user, make_strategy):
        user = make_user()
        strategy = make_strategy(price=100)
        client = _production_client("tx-1")

        result = subscriptions.initiate_user_subscription(db_session, user, strategy.id, client, "usdterc20")

        client.create_transaction.assert_called_once()
        assert client.create_transaction.call_args[0][1] == "USDT-ERC20"
        assert result.auto_confirmed is False
        assert result.payment_url == "https://pay.3pa-y.com/pay/tx-1"
        assert result.payment_id == "pending_3pay_tx-1"
        assert subscriptions.get_live_subscription(db_session, user.id) is None

        sub, already = subscriptions.confirm_payment(db_session, "pending_3pay_tx-1")

        assert already is False
        assert sub.status == SubscriptionStatus.ACTIVE
        assert sub.amount_paid == Decimal("100.00")
        assert _system_balance(db_session) == Decimal("100.00")

    def test_confirm_payment_is_idempotent(self, db_session, make_user, make_coach, make_strategy):
        coach = make_coach(commission=30)
        user = make_user(coach=coach)
        strategy = make_strategy(price=100)
        subscriptions.initiate_user_subscription(db_session, user, strategy.id, _production_client("tx-2"))

        first, first_already = subscriptions.confirm_payment(db_session, "tx-2")
        second, second_already = subscriptions.confirm_payment(db_session, "pending_3pay_tx-2")

        assert first_already is False
        assert second_already is True
        assert first.id == second.id
        assert db_session.query(Subscription).count() == 1
        assert db_session.query(CoachCommission).count() == 1
        assert _system_balance(db_session) == Decimal("70.00")

    def test_initiate_rejected_with_live_subscription(self, db_session, make_user, make_strategy):
        user = make_user()
        subscriptions.create_subscription(db_session, user.id, make_strategy().id)

        with pytest.raises(BadRequestError, match="already have an active or pending subscription"):
            subscriptions.initiate_user_subscription(db_session, user, make_strategy().id, _test_client())

    def test_second_initiation_rejected_while_first_is_open(self, db_session, make_user, make_strategy):
        user = make_user()
        subscriptions.initiate_user_subscription(db_session, user, make_strategy().id, _production_client("tx-a"))

        with pytest.raises(BadRequestError, match="already in progress"):
            subscriptions.initiate_user_subscription(
                db_session, user, make_strategy().id, _production_client("tx-b"),
            )
        assert db_session.query(PendingPayment).count() == 1

    def test_initiation_allowed_after_open_payment_failed(self, db_session, make_user, make_strategy):
        user = make_user()
        subscriptions.initiate_user_subscription(db_session, user, make_strategy().id, _production_client("tx-c"))
        subscriptions.mark_payment_failed(db_session, "tx-c")

        result = subscriptions.initiate_user_subscription(
            db_session, user, make_strategy().id, _production_client("tx-d"),
        )

        assert result.payment_id == "pending_3pay_tx-d"

    def test_initiate_inactive_strategy_rejected(self, db_session, make_user, make_strategy):
        with pytest.raises(BadRequestError, match="not available"):
            subscriptions.initiate_user_subscription(
                db_session, make_user(), make_strategy(is_active=False).id, _test_client(),
            )

    def test_renew_requires_pending(self, db_session, make_user, make_strategy):
        user = make_user()
        subscriptions.create_subscription(db_session, user.id, make_strategy().id)

        with pytest.raises(BadRequestError, match="No pending subscription to renew"):
            subscriptions.renew_user_subscription(db_session, user, _test_client())

    def test_renew_pending_subscription(self, db_session, make_user, make_strategy):
        user = make_user()
        sub = subscriptions.create_subscription(db_session, user.id, make_strategy().id)
        subscriptions.set_pending(db_session, sub.id)

        result = subscriptions.renew_user_subscription(db_session, user, _test_client())

        assert result.payment_type == PaymentType.RENEWAL
        assert result.amount == Decimal("100.00")
        assert result.subscription.id == sub.id
        assert result.subscription.status == SubscriptionStatus.ACTIVE
        assert result.subscription.renewal_count == 1

    def test_downgrade_charges_full_new_price(self, db_session, make_user, make_strategy):
        user = make_user()
        expensive = make_strategy(price=150)
        cheap = make_strategy(price=50)
        sub = subscriptions.create_subscription(db_session, user.id, expensive.id)
        sub.completed_videos = _video_ids(expensive)[:2]
        db_session.commit()

        result = subscriptions.upgrade_user_subscription(db_session, user, cheap.id, _production_client("tx-3"))

        assert result.payment_type == PaymentType.DOWNGRADE
        assert result.amount == Decimal("50.00")

        sub, _ = subscriptions.confirm_payment(db_session, "tx-3")

        assert sub.strategy_id == cheap.id
        assert sub.amount_paid == Decimal("50.00")
        assert sub.completed_videos == []
        assert sub.previous_strategy_id == expensive.id
        assert sub.payment_method == "automatic"
        assert _system_balance(db_session) == Decimal("200.00")

    def test_upgrade_charges_difference(self, db_session, make_user, make_strategy):
        user = make_user()
        cheap = make_strategy(price=50)
        expensive = make_strategy(price=150)
        subscriptions.create_subscription(db_session, user.id, cheap.id)

        result = subscriptions.upgrade_user_subscription(db_session, user, expensive.id, _test_client())

        assert result.payment_type == PaymentType.UPGRADE
        assert result.amount == Decimal("100.00")
        assert result.subscription.strategy_id == expensive.id
        assert result.subscription.renewal_count == 1

    def test_same_price_switch_is_immediate_and_free(self, db_session, make_user, make_strategy):
        user = make_user()
        first = make_strategy(price=100)
        second = make_strategy(price=100)
        sub = subscriptions.create_subscription(db_session, user.id, first.id)
        original_end = sub.end_date
        client = _production_client()

        result = subscriptions.upgrade_user_subscription(db_session, user, second.id, client)

        client.create_transaction.assert_not_called()
        assert result.auto_confirmed is True
        assert result.amount == Decimal("0")
        assert result.subscription.strategy_id == second.id
        assert result.subscription.end_date == original_end
        assert db_session.query(PendingPayment).count() == 0
        assert _system_balance(db_session) == Decimal("100.00")

    def test_upgrade_to_same_strategy_rejected(self, db_session, make_user, make_strategy):
        user = make_user()
        strategy = make_strategy()
        subscriptions.create_subscription(db_session, user.id, strategy.id)

        with pytest.raises(BadRequestError, match="already subscribed to this strategy"):
            subscriptions.upgrade_user_subscription(db_session, user, strategy.id, _test_client())

    def test_cancel_user_subscription(self, db_session, make_user, make_strategy):
        user = make_user()
        subscriptions.create_subscription(db_session, user.id, make_strategy().id)

        sub = subscriptions.cancel_user_subscription(db_session, user)

        assert sub.status == SubscriptionStatus.CANCELLED
        with pytest.raises(BadRequestError, match="No active or pending subscription"):
            subscriptions.cancel_user_subscription(db_session, user)

    def test_failed_payment_cannot_be_confirmed(self, db_session, make_user, make_strategy):
        user = make_user()
        subscriptions.initiate_user_subscription(db_session, user, make_strategy().id, _production_client("tx-4"))

        subscriptions.mark_payment_failed(db_session, "tx-4")

        with pytest.raises(BadRequestError, match="failed"):
            subscriptions.confirm_payment(db_session, "tx-4")
        assert db_session.query(Subscription).count() == 0

    def test_completed_payment_status_not_downgraded(self, db_session, make_user, make_strategy):
        user = make_user()
        subscriptions.initiate_user_subscription(db_session, user, make_strategy().id, _production_client("tx-5"))
        subscriptions.confirm_payment(db_session, "tx-5")

        pending = subscriptions.mark_payment_failed(db_session, "tx-5")

        assert pending.status == PendingPaymentStatus.COMPLETED

    def test_unknown_payment(self, db_session):
        with pytest.raises(NotFoundError, match="Pending payment not found"):
            subscriptions.confirm_payment(db_session, "nope")


class TestCoachHistory:
    def test_coach_id_is_not_a_foreign_key(self):
        assert Subscription.__table__.c.coach_id.foreign_keys == set()

    def test_snapshot_outlives_coach_row(self, db_session, make_user, make_coach, make_strategy):
        coach = make_coach(full_name="Gone Coach")
        coach_id = coach.id
        sub = subscriptions.create_subscription(db_session, make_user(coach=coach).id, make_strategy().id)
        db_session.delete(coach)
        db_session.commit()

        sub = subscriptions.get_subscription(db_session, sub.id)
        assert sub.coach_id == coach_id
        assert sub.coach_name == "Gone Coach"


class TestSingleLiveSubscription:
    def test_sequence_never_leaves_two_live(self, db_session, make_user, make_strategy):
        user = make_user()
        a = make_strategy(price=100)
        b = make_strategy(price=150)
        client = _test_client()

        subscriptions.initiate_user_subscription(db_session, user, a.id, client)
        with pytest.raises(BadRequestError):
            subscriptions.initiate_user_subscription(db_session, user, b.id, client)
        subscriptions.upgrade_user_subscription(db_session, user, b.id, client)
        sub = subscriptions.get_live_subscription(db_session, user.id)
        subscriptions.set_pending(db_session, sub.id)
        subscriptions.renew_user_subscription(db_session, user, client)
        subscriptions.cancel_user_subscription(db_session, user)
        subscriptions.initiate_user_subscription(db_session, user, a.id, client)

        live = db_session.query(Subscription).filter(
            Subscription.user_id == user.id,
            Subscription.status.in_((SubscriptionStatus.ACTIVE, SubscriptionStatus.PENDING)),
        ).count()
        assert live == 1
