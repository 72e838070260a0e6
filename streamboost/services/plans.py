import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ..errors import InvalidStateTransition, NotFound, ValidationFailed
from ..models import SubscriptionPlan, Subscription, SubscriptionStatus
from .clock import utcnow

logger = logging.getLogger(__name__)

PLAN_FIELDS = {
    "name", "description", "price", "duration_days", "duration_hours",
    "views_delivered", "chat_messages_delivered", "features", "is_active", "is_most_popular",
}

DEFAULT_PLANS = [
    {
        "name": "Basic",
        "description": "Perfect for getting started with streaming",
        "price": Decimal("9.99"),
        "duration_days": 30,
        "duration_hours": 2,
        "views_delivered": 1000,
        "chat_messages_delivered": 500,
        "is_active": True,
        "features": ["2 hours streaming per day", "Basic analytics", "Standard support"],
        "is_most_popular": False,
    },
    {
        "name": "Pro",
        "description": "For serious streamers who need more time",
        "price": Decimal("19.99"),
        "duration_days": 30,
        "duration_hours": 5,
        "views_delivered": 5000,
        "chat_messages_delivered": 2500,
        "is_active": True,
        "features": ["5 hours streaming per day", "Advanced analytics", "Priority support", "Custom overlays"],
        "is_most_popular": True,
    },
    {
        "name": "Premium",
        "description": "Unlimited streaming for professional streamers",
        "price": Decimal("39.99"),
        "duration_days": 30,
        "duration_hours": 12,
        "views_delivered": 20000,
        "chat_messages_delivered": 10000,
        "is_active": True,
        "features": [
            "12 hours streaming per day", "Premium analytics", "24/7 support",
            "Custom branding", "Multi-platform streaming",
        ],
        "is_most_popular": False,
    },
]


def _validate(fields: dict):
    unknown = set(fields) - PLAN_FIELDS
    if unknown:
        raise ValidationFailed(f"Unknown plan field(s): {', '.join(sorted(unknown))}", field=sorted(unknown)[0])
    if "name" in fields and not (fields["name"] or "").strip():
        raise ValidationFailed("name must not be empty", field="name")
    if fields.get("price") is not None and Decimal(str(fields["price"])) < 0:
        raise ValidationFailed("price must not be negative", field="price")
    if fields.get("duration_days") is not None and int(fields["duration_days"]) < 1:
        raise ValidationFailed("duration_days must be at least 1", field="duration_days")
    if fields.get("duration_hours") is not None and Decimal(str(fields["duration_hours"])) < 0:
        raise ValidationFailed("duration_hours must not be negative", field="duration_hours")
    for key in ("views_delivered", "chat_messages_delivered"):
        if fields.get(key) is not None and int(fields[key]) < 0:
            raise ValidationFailed(f"{key} must not be negative", field=key)


def _clear_most_popular(db: Session, keep_id: Optional[int] = None):
    q = db.query(SubscriptionPlan).filter(SubscriptionPlan.is_most_popular == True)
    if keep_id is not None:
        q = q.filter(SubscriptionPlan.id != keep_id)
    q.update({SubscriptionPlan.is_most_popular: False}, synchronize_session="fetch")


def get_plan(db: Session, plan_id: int) -> SubscriptionPlan:
    plan = db.get(SubscriptionPlan, plan_id)
    if not plan:
        raise NotFound("Plan not found")
    return plan


def list_plans(db: Session, status: Optional[str] = None) -> list[SubscriptionPlan]:
    q = db.query(SubscriptionPlan)
    if status == "active":
        q = q.filter(SubscriptionPlan.is_active == True)
    elif status == "inactive":
        q = q.filter(SubscriptionPlan.is_active == False)
    return q.order_by(SubscriptionPlan.created_at.desc(), SubscriptionPlan.id.desc()).all()


def list_active_plans(db: Session) -> list[SubscriptionPlan]:
    return db.query(SubscriptionPlan).filter(SubscriptionPlan.is_active == True).order_by(SubscriptionPlan.price.asc()).all()


def create_plan(db: Session, commit: bool = True, **fields) -> SubscriptionPlan:
    """Create a plan. Marking it most popular clears the flag on every other plan in the same transaction."""
    _validate(fields)
    if fields.get("is_most_popular"):
        _clear_most_popular(db)
    fields.setdefault("features", [])
    plan = SubscriptionPlan(**fields)
    db.add(plan)
    if commit:
        db.commit()
        db.refresh(plan)
        logger.info("Plan %s (%s) created", plan.id, plan.name)
    else:
        db.flush()
    return plan


def update_plan(db: Session, plan_id: int, changes: dict) -> SubscriptionPlan:
    _validate(changes)
    plan = get_plan(db, plan_id)
    if changes.get("is_most_popular") and not plan.is_most_popular:
        _clear_most_popular(db, keep_id=plan.id)
    for field, value in changes.items():
        setattr(plan, field, value)
    db.commit()
    db.refresh(plan)
    logger.info("Plan %s updated (%s)", plan.id, ", ".join(sorted(changes)))
    return plan


def delete_plan(db: Session, plan_id: int, now: Optional[datetime] = None) -> None:
    now = now or utcnow()
    plan = get_plan(db, plan_id)
    active = (
        db.query(Subscription)
        .filter(
            Subscription.plan_id == plan.id,
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.end_date > now,
        )
        .count()
    )
    if active > 0:
        raise InvalidStateTransition("Cannot delete plan with active subscriptions")
    # Lapsed or unpaid subscriptions keep their history with plan_id cleared
    db.delete(plan)
    db.commit()
    logger.info("Plan %s deleted", plan_id)


def toggle_plan_status(db: Session, plan_id: int) -> SubscriptionPlan:
    plan = get_plan(db, plan_id)
    plan.is_active = not plan.is_active
    db.commit()
    db.refresh(plan)
    return plan


def create_custom_plan(db: Session, username: str, custom: dict) -> SubscriptionPlan:
    """Inactive, private plan built from registration-time terms. Does not commit."""
    return create_plan(
        db,
        commit=False,
        name=f"Custom Plan for {username}",
        description="Custom plan created during registration",
        price=custom["price"],
        duration_days=custom["duration_days"],
        duration_hours=custom["duration_hours"],
        views_delivered=custom["views_delivered"],
        chat_messages_delivered=custom["chat_messages_delivered"],
        features=[],
        is_active=False,
        is_most_popular=False,
    )


def seed_default_plans(db: Session) -> int:
    """Insert the stock plans when the table is empty. Returns how many were added."""
    if db.query(SubscriptionPlan).first():
        return 0
    for data in DEFAULT_PLANS:
        db.add(SubscriptionPlan(**data))
    db.commit()
    logger.info("Seeded %d default plans", len(DEFAULT_PLANS))
    return len(DEFAULT_PLANS)
