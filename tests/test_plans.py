from datetime import timedelta
from decimal import Decimal

import pytest

from streamboost.errors import InvalidStateTransition, NotFound, ValidationFailed
from streamboost.models import Subscription, SubscriptionPlan, SubscriptionStatus
from streamboost.services import plans as plan_service


def _popular(db):
    return [p.name for p in db.query(SubscriptionPlan).filter(SubscriptionPlan.is_most_popular == True).all()]


class TestSeed:

    def test_seeds_three_plans_once(self, db):
        assert plan_service.seed_default_plans(db) == 3
        assert plan_service.seed_default_plans(db) == 0
        assert db.query(SubscriptionPlan).count() == 3

    def test_seeded_terms(self, db, plans):
        assert plans["Basic"].price == Decimal("9.99")
        assert plans["Pro"].daily_hours == 5
        assert plans["Premium"].total_hours == 360
        assert _popular(db) == ["Pro"]

    def test_active_plans_ordered_by_price(self, db, plans):
        plans["Premium"].is_active = False
        db.commit()
        assert [p.name for p in plan_service.list_active_plans(db)] == ["Basic", "Pro"]


class TestMostPopular:

    def test_create_takes_the_flag(self, db, plans):
        plan_service.create_plan(
            db, name="Studio", price=Decimal("59.99"), duration_days=30, duration_hours=16, is_most_popular=True,
        )
        assert _popular(db) == ["Studio"]

    def test_update_takes_the_flag(self, db, plans):
        plan_service.update_plan(db, plans["Basic"].id, {"is_most_popular": True})
        assert _popular(db) == ["Basic"]

    def test_unsetting_leaves_none(self, db, plans):
        plan_service.update_plan(db, plans["Pro"].id, {"is_most_popular": False})
        assert _popular(db) == []


class TestValidation:

    @pytest.mark.parametrize("fields", [
        {"name": "", "price": 1, "duration_hours": 1},
        {"name": "x", "price": -1, "duration_hours": 1},
        {"name": "x", "price": 1, "duration_hours": -1},
        {"name": "x", "price": 1, "duration_hours": 1, "duration_days": 0},
        {"name": "x", "price": 1, "duration_hours": 1, "rooms": 3},
    ])
    def test_rejects_bad_fields(self, db, fields):
        with pytest.raises(ValidationFailed):
            plan_service.create_plan(db, **fields)
        assert db.query(SubscriptionPlan).count() == 0

    def test_unknown_plan(self, db):
        with pytest.raises(NotFound):
            plan_service.update_plan(db, 404, {"name": "x"})


class TestDeleteAndToggle:

    def test_cannot_delete_with_active_subscription(self, db, pro_streamer, plans, now):
        with pytest.raises(InvalidStateTransition):
            plan_service.delete_plan(db, plans["Pro"].id, now=now)
        assert db.get(SubscriptionPlan, plans["Pro"].id) is not None

    def test_delete_keeps_lapsed_subscriptions(self, db, make_streamer, make_subscription, plans, now):
        streamer = make_streamer()
        start = now - timedelta(days=60)
        sub = make_subscription(streamer, plans["Basic"], start=start, end=start + timedelta(days=30))
        plan_id = plans["Basic"].id
        plan_service.delete_plan(db, plan_id, now=now)
        assert db.get(SubscriptionPlan, plan_id) is None
        db.expire_all()
        kept = db.get(Subscription, sub.id)
        assert kept is not None
        assert kept.plan_id is None

    def test_expired_active_row_does_not_block_delete(self, db, make_streamer, make_subscription, plans, now):
        streamer = make_streamer()
        make_subscription(streamer, plans["Premium"], start=now - timedelta(days=31), end=now - timedelta(days=1))
        plan_service.delete_plan(db, plans["Premium"].id, now=now)

    def test_toggle(self, db, plans):
        plan = plan_service.toggle_plan_status(db, plans["Basic"].id)
        assert plan.is_active is False
        assert [p.name for p in plan_service.list_plans(db, "inactive")] == ["Basic"]
        assert plan_service.toggle_plan_status(db, plans["Basic"].id).is_active is True


class TestCustomPlan:

    def test_custom_plan_is_private(self, db, custom_plan_terms):
        plan = plan_service.create_custom_plan(db, "alice", custom_plan_terms)
        db.commit()
        assert plan.name == "Custom Plan for alice"
        assert plan.is_active is False
        assert plan.is_most_popular is False
        assert plan not in plan_service.list_active_plans(db)
