from collections import Counter
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..models import PlannedStream
from .clock import utcnow
from .quota import (
    get_daily_streaming_limit,
    remaining_stream_hours_for_date,
    remaining_total_hours,
    total_available_hours,
    total_stream_hours_for_date,
    total_used_hours,
)
from .subscriptions import get_active_subscription


def _month_bounds(today: date) -> tuple[date, date]:
    first = today.replace(day=1)
    next_month = (first + timedelta(days=32)).replace(day=1)
    return first, next_month - timedelta(days=1)


def stats_for_date(db: Session, streamer_id: int, day: date, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    streams = (
        db.query(PlannedStream)
        .filter(
            PlannedStream.streamer_id == streamer_id,
            PlannedStream.scheduled_start >= datetime.combine(day, time.min),
            PlannedStream.scheduled_start <= datetime.combine(day, time.max),
        )
        .order_by(PlannedStream.scheduled_start.asc())
        .all()
    )
    return {
        "date": day,
        "daily_limit_hours": get_daily_streaming_limit(db, streamer_id, now),
        "used_hours": round(total_stream_hours_for_date(db, streamer_id, day), 2),
        "remaining_hours": round(remaining_stream_hours_for_date(db, streamer_id, day, now), 2),
        "streams": streams,
    }


def stats_for_range(
    db: Session,
    streamer_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Totals over [start_date, end_date], defaulting to the current calendar month. All statuses are included."""
    now = now or utcnow()
    month_start, month_end = _month_bounds(now.date())
    start_date = start_date or month_start
    end_date = end_date or month_end
    streams = (
        db.query(PlannedStream)
        .filter(
            PlannedStream.streamer_id == streamer_id,
            PlannedStream.scheduled_start >= datetime.combine(start_date, time.min),
            PlannedStream.scheduled_start <= datetime.combine(end_date, time.max),
        )
        .order_by(PlannedStream.scheduled_start.asc())
        .all()
    )
    by_status = Counter(s.status.value for s in streams)
    sub = get_active_subscription(db, streamer_id, now)
    return {
        "start_date": start_date,
        "end_date": end_date,
        "total_streams": len(streams),
        "total_hours": round(sum(s.duration_hours for s in streams), 2),
        "streams_by_status": dict(by_status),
        "daily_limit_hours": sub.plan.daily_hours if sub and sub.plan else 0.0,
        "has_active_subscription": sub is not None,
    }


def period_summary(db: Session, streamer_id: int, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    sub = get_active_subscription(db, streamer_id, now)
    return {
        "has_active_subscription": sub is not None,
        "subscription_id": sub.id if sub else None,
        "start_date": sub.start_date if sub else None,
        "end_date": sub.end_date if sub else None,
        "remaining_days": sub.remaining_days(now) if sub else 0,
        "daily_limit_hours": sub.plan.daily_hours if sub and sub.plan else 0.0,
        "total_available_hours": round(total_available_hours(sub), 2),
        "total_used_hours": round(total_used_hours(db, sub), 2),
        "remaining_total_hours": round(remaining_total_hours(db, sub), 2),
    }
