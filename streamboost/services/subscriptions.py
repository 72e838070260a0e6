import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import NotFound, ValidationFailed
from ..models import Subscription, SubscriptionStatus, SubscriptionPlan
from .clock import utcnow

logger = logging.getLogger(__name__)


def get_active_subscription(db: Session, streamer_id: int, now: Optional[datetime] = None) -> Optional[Subscription]:
    """
    The streamer's active subscription: status active and not yet past end_date.
    Expiry is evaluated here, at read time. If several rows qualify the one
    with the latest end_date wins.
    """
    now = now or utcnow()
    return (
        db.query(Subscription)
        .filter(
            Subscription.streamer_id == streamer_id,
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.end_date > now,
        )
        .order_by(Subscription.end_date.desc(), Subscription.id.desc())
        .first()
    )


def has_active_subscription(db: Session, streamer_id: int, now: Optional[datetime] = None) -> bool:
    return get_active_subscription(db, streamer_id, now) is not None


def create_pending_subscription(db: Session, streamer_id: int, plan: SubscriptionPlan, now: Optional[datetime] = None) -> Subscription:
    """
    Create a pending subscription with a provisional window starting tomorrow.
    The real window is set when payments activate it. Does not commit.
    """
    now = now or utcnow()
    duration_days = plan.duration_days or settings.DEFAULT_PLAN_DURATION_DAYS
    start = now + timedelta(days=1)
    sub = Subscription(
        streamer_id=streamer_id,
        plan_id=plan.id,
        amount=plan.price,
        start_date=start,
        end_date=start + timedelta(days=duration_days),
        status=SubscriptionStatus.PENDING,
    )
    db.add(sub)
    return sub


def update_subscription(
    db: Session,
    streamer_id: int,
    subscription_id: int,
    *,
    status: SubscriptionStatus,
    start_date: datetime,
    end_date: datetime,
) -> Subscription:
    """Admin override of a streamer's subscription status and window."""
    sub = (
        db.query(Subscription)
        .filter(Subscription.id == subscription_id, Subscription.streamer_id == streamer_id)
        .first()
    )
    if not sub:
        raise NotFound("Subscription not found")
    if end_date <= start_date:
        raise ValidationFailed("end_date must be after start_date", field="end_date")
    sub.status = SubscriptionStatus(status)
    sub.start_date = start_date
    sub.end_date = end_date
    db.commit()
    db.refresh(sub)
    logger.info("Subscription %s of streamer %s set to %s", sub.id, streamer_id, sub.status.value)
    return sub
