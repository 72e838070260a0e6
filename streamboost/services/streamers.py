import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..errors import NotFound, ValidationFailed
from ..models import Streamer, Subscription, SubscriptionPlan, User, UserRole
from .clock import utcnow
from .plans import create_custom_plan
from .subscriptions import create_pending_subscription

logger = logging.getLogger(__name__)

CUSTOM_PLAN_FIELDS = ("views_delivered", "chat_messages_delivered", "duration_hours", "duration_days", "price")


@dataclass
class Registration:
    streamer: Streamer
    subscription: Optional[Subscription]
    custom_plan_created: bool

    @property
    def plan_selected(self) -> bool:
        return self.subscription is not None


def get_streamer(db: Session, streamer_id: int) -> Streamer:
    streamer = db.get(Streamer, streamer_id)
    if not streamer:
        raise NotFound("Streamer profile not found")
    return streamer


def register_streamer(
    db: Session,
    *,
    email: str,
    username: str,
    full_name: str,
    plan_id: Optional[int] = None,
    custom_plan: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> Registration:
    """
    Create the account, the streamer profile and, when a plan is chosen, a
    pending subscription that payments will later activate. A custom plan
    takes precedence over ``plan_id``.
    """
    now = now or utcnow()
    email = email.strip().lower()
    username = username.strip()
    if not email or not username or not full_name.strip():
        raise ValidationFailed("email, username and full_name are required")
    if db.query(User).filter(User.email == email).first():
        raise ValidationFailed("The email has already been taken.", field="email")
    if db.query(Streamer).filter(Streamer.username == username).first():
        raise ValidationFailed("The username has already been taken.", field="username")

    plan: Optional[SubscriptionPlan] = None
    if custom_plan is not None:
        missing = [k for k in CUSTOM_PLAN_FIELDS if custom_plan.get(k) is None]
        if missing:
            raise ValidationFailed(f"custom_plan.{missing[0]} is required", field=f"custom_plan.{missing[0]}")
        for key in ("views_delivered", "chat_messages_delivered", "duration_hours", "duration_days"):
            if int(custom_plan[key]) < 1:
                raise ValidationFailed(f"custom_plan.{key} must be at least 1", field=f"custom_plan.{key}")
    elif plan_id is not None:
        plan = db.get(SubscriptionPlan, plan_id)
        if not plan:
            raise ValidationFailed("The selected plan is invalid.", field="plan_id")

    user = User(email=email, role=UserRole.STREAMER.value)
    db.add(user)
    db.flush()
    streamer = Streamer(user_id=user.id, username=username, full_name=full_name.strip())
    db.add(streamer)
    db.flush()

    if custom_plan is not None:
        plan = create_custom_plan(db, username, custom_plan)

    subscription = None
    if plan is not None:
        subscription = create_pending_subscription(db, streamer.id, plan, now)

    db.commit()
    db.refresh(streamer)
    logger.info(
        "Registered streamer %s (%s), plan=%s",
        streamer.id, streamer.username, plan.id if plan else None,
    )
    return Registration(streamer=streamer, subscription=subscription, custom_plan_created=custom_plan is not None)
