"""
Payment-gated subscription activation: the pure reducer and the payment services feeding it.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from streamboost.errors import InvalidStateTransition, NotFound, ValidationFailed
from streamboost.models import Payment, PaymentStatus, Subscription, SubscriptionStatus
from streamboost.services.activation import SubscriptionState, reduce_completed_payment
from streamboost.services.payments import complete_payment, record_payment
from streamboost.services.plans import create_plan
from streamboost.services.subscriptions import create_pending_subscription, get_active_subscription

PENDING = SubscriptionState(
    status=SubscriptionStatus.PENDING,
    start_date=datetime(2025, 11, 2),
    end_date=datetime(2025, 12, 2),
)


class TestReducer:

    def test_partial_payment_changes_nothing(self):
        now = datetime(2025, 11, 5, 12)
        after = reduce_completed_payment(
            PENDING, plan_price=Decimal("200"), plan_duration_days=30,
            completed_amounts=[Decimal("100")], now=now,
        )
        assert after == PENDING

    def test_full_payment_activates_from_now(self):
        now = datetime(2025, 11, 5, 12)
        after = reduce_completed_payment(
            PENDING, plan_price=Decimal("200"), plan_duration_days=30,
            completed_amounts=[Decimal("100"), Decimal("100")], now=now,
        )
        assert after.status == SubscriptionStatus.ACTIVE
        assert after.start_date == now
        assert after.end_date == now + timedelta(days=30)

    def test_overpayment_activates(self):
        after = reduce_completed_payment(
            PENDING, plan_price=Decimal("9.99"), plan_duration_days=30,
            completed_amounts=[Decimal("10.00")], now=datetime(2025, 11, 5),
        )
        assert after.status == SubscriptionStatus.ACTIVE

    def test_already_active_is_untouched(self):
        active = SubscriptionState(SubscriptionStatus.ACTIVE, datetime(2025, 11, 1), datetime(2025, 12, 1))
        after = reduce_completed_payment(
            active, plan_price=Decimal("10"), plan_duration_days=30,
            completed_amounts=[Decimal("10"), Decimal("10")], now=datetime(2025, 11, 20),
        )
        assert after is active

    def test_free_plan_activates_on_zero_payment(self):
        after = reduce_completed_payment(
            PENDING, plan_price=Decimal("0"), plan_duration_days=7,
            completed_amounts=[Decimal("0")], now=datetime(2025, 11, 5),
        )
        assert after.end_date == datetime(2025, 11, 12)


@pytest.fixture
def pending_subscription(db, make_streamer, now):
    plan = create_plan(
        db, name="Agency", price=Decimal("200.00"), duration_days=30, duration_hours=8,
        views_delivered=10000, chat_messages_delivered=5000,
    )
    streamer = make_streamer()
    sub = create_pending_subscription(db, streamer.id, plan, now)
    db.commit()
    return sub


class TestPaymentActivation:

    def test_second_payment_activates(self, db, pending_subscription, now):
        sub = pending_subscription
        first_at = now + timedelta(hours=1)
        second_at = now + timedelta(days=2)

        record_payment(db, sub.streamer_id, Decimal("100"), subscription_id=sub.id, now=first_at)
        db.refresh(sub)
        assert sub.status == SubscriptionStatus.PENDING
        assert get_active_subscription(db, sub.streamer_id, first_at) is None

        record_payment(db, sub.streamer_id, Decimal("100"), subscription_id=sub.id, now=second_at)
        db.refresh(sub)
        assert sub.status == SubscriptionStatus.ACTIVE
        assert sub.start_date == second_at
        assert sub.end_date == second_at + timedelta(days=30)
        assert get_active_subscription(db, sub.streamer_id, second_at).id == sub.id

    def test_pending_payments_do_not_count_until_completed(self, db, pending_subscription, now):
        sub = pending_subscription
        payment = record_payment(
            db, sub.streamer_id, Decimal("200"), subscription_id=sub.id,
            status=PaymentStatus.PENDING, now=now,
        )
        db.refresh(sub)
        assert sub.status == SubscriptionStatus.PENDING
        assert payment.completed_at is None

        later = now + timedelta(days=1)
        completed = complete_payment(db, payment.id, now=later)
        assert completed.status == PaymentStatus.COMPLETED
        assert completed.completed_at == later
        db.refresh(sub)
        assert sub.status == SubscriptionStatus.ACTIVE
        assert sub.start_date == later

    def test_refunded_and_failed_payments_never_count(self, db, pending_subscription, now):
        sub = pending_subscription
        record_payment(db, sub.streamer_id, Decimal("150"), subscription_id=sub.id, status=PaymentStatus.REFUNDED, now=now)
        record_payment(db, sub.streamer_id, Decimal("150"), subscription_id=sub.id, status=PaymentStatus.FAILED, now=now)
        record_payment(db, sub.streamer_id, Decimal("100"), subscription_id=sub.id, now=now)
        db.refresh(sub)
        assert sub.status == SubscriptionStatus.PENDING

    def test_later_payments_do_not_move_the_window(self, db, pending_subscription, now):
        sub = pending_subscription
        record_payment(db, sub.streamer_id, Decimal("200"), subscription_id=sub.id, now=now)
        record_payment(db, sub.streamer_id, Decimal("200"), subscription_id=sub.id, now=now + timedelta(days=5))
        db.refresh(sub)
        assert sub.start_date == now

    def test_only_pending_payments_complete(self, db, pending_subscription, now):
        sub = pending_subscription
        payment = record_payment(db, sub.streamer_id, Decimal("5"), subscription_id=sub.id, now=now)
        with pytest.raises(InvalidStateTransition):
            complete_payment(db, payment.id, now=now)

    def test_payment_without_subscription(self, db, make_streamer, now):
        streamer = make_streamer()
        payment = record_payment(db, streamer.id, Decimal("20"), now=now, transaction_id="tx-1")
        assert payment.is_completed()
        assert db.query(Subscription).count() == 0

    def test_duplicate_transaction_id(self, db, make_streamer, now):
        streamer = make_streamer()
        record_payment(db, streamer.id, Decimal("20"), now=now, transaction_id="tx-1")
        with pytest.raises(ValidationFailed):
            record_payment(db, streamer.id, Decimal("20"), now=now, transaction_id="tx-1")
        assert db.query(Payment).count() == 1

    def test_subscription_must_belong_to_payee(self, db, pending_subscription, make_streamer, now):
        other = make_streamer()
        with pytest.raises(NotFound):
            record_payment(db, other.id, Decimal("200"), subscription_id=pending_subscription.id, now=now)

    def test_negative_amount(self, db, make_streamer, now):
        with pytest.raises(ValidationFailed):
            record_payment(db, make_streamer().id, Decimal("-1"), now=now)
