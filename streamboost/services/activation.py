"""
Payment-gated subscription activation.

A subscription becomes active the first time the sum of its completed
payments reaches the plan price. The window is then reset to
[now, now + plan.duration_days), measured from the activation moment and
not from any payment's timestamp. Once active, further payments change
nothing.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ..models import Payment, PaymentStatus, Subscription, SubscriptionStatus
from .clock import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionState:
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime


def reduce_completed_payment(
    state: SubscriptionState,
    *,
    plan_price: Decimal,
    plan_duration_days: int,
    completed_amounts: Iterable[Decimal],
    now: datetime,
) -> SubscriptionState:
    """Pure transition for a payment-completed event."""
    if state.status == SubscriptionStatus.ACTIVE:
        return state
    total_paid = sum((Decimal(a) for a in completed_amounts), Decimal("0"))
    if total_paid < Decimal(plan_price):
        return state
    return replace(
        state,
        status=SubscriptionStatus.ACTIVE,
        start_date=now,
        end_date=now + timedelta(days=int(plan_duration_days)),
    )


def activate_if_paid(db: Session, subscription: Subscription, *, now: Optional[datetime] = None) -> bool:
    """
    Run the reducer against the stored payment history and persist the result.
    Returns True when this call activated the subscription. Does not commit.
    """
    now = now or utcnow()
    plan = subscription.plan
    if not plan:
        return False
    completed = (
        db.query(Payment.amount)
        .filter(Payment.subscription_id == subscription.id, Payment.status == PaymentStatus.COMPLETED)
        .all()
    )
    before = SubscriptionState(subscription.status, subscription.start_date, subscription.end_date)
    after = reduce_completed_payment(
        before,
        plan_price=plan.price,
        plan_duration_days=plan.duration_days,
        completed_amounts=[row.amount for row in completed],
        now=now,
    )
    if after == before:
        return False
    subscription.status = after.status
    subscription.start_date = after.start_date
    subscription.end_date = after.end_date
    logger.info("Subscription %s activated for streamer %s", subscription.id, subscription.streamer_id)
    return True
