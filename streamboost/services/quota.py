"""
Streaming quota accounting.

Two accounting policies are supported and selected by ``QUOTA_POLICY``:

- ``daily``: the plan's ``duration_hours`` is a per-calendar-day allowance.
  Streams scheduled on the same date share it; it resets the next day.
- ``period``: the allowance is pooled over the whole subscription,
  ``duration_days * duration_hours``, and streams anywhere inside the
  subscription window draw from it.

Cancelled streams never count. Admissibility is decided on exact minutes
(plan hours are ``Decimal``); hours are derived from them for display and
reported rounded to 2 decimals by callers.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..models import PlannedStream, Subscription, SubscriptionPlan, SubscriptionStatus, COUNTED_STATUSES
from .clock import utcnow
from .subscriptions import get_active_subscription

logger = logging.getLogger(__name__)

ZERO = Decimal(0)


class QuotaPolicy(str, Enum):
    DAILY = "daily"
    PERIOD = "period"


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


def _to_hours(minutes) -> float:
    return float(Decimal(minutes) / 60)


def _plan_daily_minutes(plan: Optional[SubscriptionPlan]) -> Decimal:
    if plan is None or plan.duration_hours is None:
        return ZERO
    return Decimal(str(plan.duration_hours)) * 60


def _counted_streams(db: Session, streamer_id: int, start: datetime, end: datetime, exclude_stream_id: Optional[int] = None) -> list[PlannedStream]:
    q = db.query(PlannedStream).filter(
        PlannedStream.streamer_id == streamer_id,
        PlannedStream.scheduled_start >= start,
        PlannedStream.scheduled_start <= end,
        PlannedStream.status.in_(COUNTED_STATUSES),
    )
    if exclude_stream_id is not None:
        q = q.filter(PlannedStream.id != exclude_stream_id)
    return q.all()


# ---- Daily-reset accounting ----

def get_daily_streaming_limit(db: Session, streamer_id: int, now: Optional[datetime] = None) -> float:
    """Daily allowance in hours; 0 means the streamer has no active subscription."""
    sub = get_active_subscription(db, streamer_id, now)
    if not sub or not sub.plan:
        return 0.0
    return sub.plan.daily_hours


def total_stream_minutes_for_date(db: Session, streamer_id: int, day: date, exclude_stream_id: Optional[int] = None) -> int:
    start, end = _day_bounds(day)
    streams = _counted_streams(db, streamer_id, start, end, exclude_stream_id)
    return sum(s.estimated_duration for s in streams)


def total_stream_hours_for_date(db: Session, streamer_id: int, day: date, exclude_stream_id: Optional[int] = None) -> float:
    return _to_hours(total_stream_minutes_for_date(db, streamer_id, day, exclude_stream_id))


def remaining_stream_hours_for_date(db: Session, streamer_id: int, day: date, now: Optional[datetime] = None) -> float:
    sub = get_active_subscription(db, streamer_id, now)
    limit = _plan_daily_minutes(sub.plan if sub else None)
    return _to_hours(max(ZERO, limit - total_stream_minutes_for_date(db, streamer_id, day)))


def can_add_stream_for_date(db: Session, streamer_id: int, day: date, duration_minutes: int, now: Optional[datetime] = None) -> bool:
    sub = get_active_subscription(db, streamer_id, now)
    limit = _plan_daily_minutes(sub.plan if sub else None)
    if limit <= 0:
        return False
    return total_stream_minutes_for_date(db, streamer_id, day) + duration_minutes <= limit


# ---- Whole-period pool accounting ----

def total_available_minutes(subscription: Optional[Subscription]) -> Decimal:
    if not subscription or not subscription.plan:
        return ZERO
    return (subscription.plan.duration_days or 0) * _plan_daily_minutes(subscription.plan)


def total_used_minutes(db: Session, subscription: Optional[Subscription], exclude_stream_id: Optional[int] = None) -> int:
    if not subscription:
        return 0
    streams = _counted_streams(
        db, subscription.streamer_id, subscription.start_date, subscription.end_date, exclude_stream_id
    )
    total_minutes = sum(s.estimated_duration for s in streams)
    logger.debug(
        "Streamer %s: %d counted streams in subscription %s, %d minutes used",
        subscription.streamer_id, len(streams), subscription.id, total_minutes,
    )
    for s in streams:
        logger.debug("Stream %s: %s, %s min", s.id, s.scheduled_start, s.estimated_duration)
    return total_minutes


def remaining_total_minutes(db: Session, subscription: Optional[Subscription], exclude_stream_id: Optional[int] = None) -> Decimal:
    return max(ZERO, total_available_minutes(subscription) - total_used_minutes(db, subscription, exclude_stream_id))


def total_available_hours(subscription: Optional[Subscription]) -> float:
    return _to_hours(total_available_minutes(subscription))


def total_used_hours(db: Session, subscription: Optional[Subscription], exclude_stream_id: Optional[int] = None) -> float:
    return _to_hours(total_used_minutes(db, subscription, exclude_stream_id))


def remaining_total_hours(db: Session, subscription: Optional[Subscription], exclude_stream_id: Optional[int] = None) -> float:
    return _to_hours(remaining_total_minutes(db, subscription, exclude_stream_id))


def can_add_stream_with_total_hours(db: Session, subscription: Optional[Subscription], duration_minutes: int) -> bool:
    return duration_minutes <= remaining_total_minutes(db, subscription)


# ---- Policy objects used by the scheduler ----

@dataclass(frozen=True)
class QuotaCheck:
    """Outcome of one admissibility check, held in minutes."""

    policy: QuotaPolicy
    limit_minutes: Decimal
    used_minutes: int
    requested_minutes: int

    @property
    def remaining_minutes(self) -> Decimal:
        return max(ZERO, self.limit_minutes - self.used_minutes)

    @property
    def allowed(self) -> bool:
        return self.requested_minutes <= self.remaining_minutes

    @property
    def limit_hours(self) -> float:
        return _to_hours(self.limit_minutes)

    @property
    def used_hours(self) -> float:
        return _to_hours(self.used_minutes)

    @property
    def requested_hours(self) -> float:
        return _to_hours(self.requested_minutes)

    @property
    def remaining_hours(self) -> float:
        return _to_hours(self.remaining_minutes)

    @property
    def remaining_after_hours(self) -> float:
        """Allowance left once the requested stream is booked."""
        return _to_hours(max(ZERO, self.remaining_minutes - self.requested_minutes))


class DailyResetQuota:
    policy = QuotaPolicy.DAILY

    def check(self, db: Session, subscription: Optional[Subscription], streamer_id: int, scheduled_start: datetime, duration_minutes: int, exclude_stream_id: Optional[int] = None) -> QuotaCheck:
        return QuotaCheck(
            policy=self.policy,
            limit_minutes=_plan_daily_minutes(subscription.plan if subscription else None),
            used_minutes=total_stream_minutes_for_date(db, streamer_id, scheduled_start.date(), exclude_stream_id),
            requested_minutes=duration_minutes,
        )


class PeriodPoolQuota:
    policy = QuotaPolicy.PERIOD

    def check(self, db: Session, subscription: Optional[Subscription], streamer_id: int, scheduled_start: datetime, duration_minutes: int, exclude_stream_id: Optional[int] = None) -> QuotaCheck:
        return QuotaCheck(
            policy=self.policy,
            limit_minutes=total_available_minutes(subscription),
            used_minutes=total_used_minutes(db, subscription, exclude_stream_id),
            requested_minutes=duration_minutes,
        )


_POLICIES = {
    QuotaPolicy.DAILY: DailyResetQuota,
    QuotaPolicy.PERIOD: PeriodPoolQuota,
}


def get_quota_policy(name: Optional[str] = None):
    """Resolve a policy by name, defaulting to the configured one."""
    key = (name or settings.QUOTA_POLICY).lower()
    try:
        return _POLICIES[QuotaPolicy(key)]()
    except ValueError:
        raise ValueError(f"Unknown quota policy {key!r}; expected one of: daily, period") from None


# ---- Lapsed subscriptions ----

def _latest_lapsed_subscription(db: Session, streamer_id: int, now: datetime) -> Optional[Subscription]:
    return (
        db.query(Subscription)
        .filter(
            Subscription.streamer_id == streamer_id,
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.end_date <= now,
        )
        .order_by(Subscription.end_date.desc())
        .first()
    )


def has_expired_with_unused_hours(db: Session, streamer_id: int, now: Optional[datetime] = None) -> bool:
    """True when the streamer's most recent paid subscription ran out with pool hours left."""
    now = now or utcnow()
    if get_active_subscription(db, streamer_id, now):
        return False
    lapsed = _latest_lapsed_subscription(db, streamer_id, now)
    return lapsed is not None and remaining_total_hours(db, lapsed) > 0


def unused_hours_on_expiration(db: Session, streamer_id: int, now: Optional[datetime] = None) -> float:
    now = now or utcnow()
    if not has_expired_with_unused_hours(db, streamer_id, now):
        return 0.0
    return remaining_total_hours(db, _latest_lapsed_subscription(db, streamer_id, now))
