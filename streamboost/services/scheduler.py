"""
Planned stream lifecycle: scheduled -> live -> completed, or scheduled -> cancelled.

Every operation runs as one read-modify-write against the session: the
streamer row is locked first (SELECT ... FOR UPDATE, or the write lock that
BEGIN IMMEDIATE takes on SQLite), all checks run before anything is written,
and a single commit ends the operation. A rejection leaves the store untouched.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import (
    InvalidStateTransition,
    NoActiveSubscription,
    NotFound,
    QuotaExceeded,
    ValidationFailed,
)
from ..models import PlannedStream, StreamStatus, Streamer, SubscriptionPlan
from .clock import utcnow
from .conflicts import ensure_no_conflict
from .notifications import notify_plan_and_schedule
from .quota import QuotaCheck, QuotaPolicy, get_quota_policy, get_daily_streaming_limit
from .subscriptions import get_active_subscription, has_active_subscription

logger = logging.getLogger(__name__)

Notifier = Callable[[dict, dict, list], Any]

UPDATABLE_FIELDS = {"title", "description", "scheduled_start", "estimated_duration", "wordlist_id", "status"}


@dataclass
class ScheduledStream:
    stream: PlannedStream
    policy: QuotaPolicy
    remaining_hours: float


def _get_streamer_for_update(db: Session, streamer_id: int) -> Streamer:
    streamer = db.query(Streamer).filter(Streamer.id == streamer_id).with_for_update().first()
    if not streamer:
        raise NotFound("Streamer profile not found")
    return streamer


def _get_stream(db: Session, streamer: Streamer, stream_id: int) -> PlannedStream:
    stream = (
        db.query(PlannedStream)
        .filter(PlannedStream.id == stream_id, PlannedStream.streamer_id == streamer.id)
        .first()
    )
    if not stream:
        raise NotFound("Stream not found")
    return stream


def _validate_duration(minutes: int):
    if not isinstance(minutes, int) or isinstance(minutes, bool):
        raise ValidationFailed("estimated_duration must be a whole number of minutes", field="estimated_duration")
    if not settings.STREAM_MIN_DURATION_MINUTES <= minutes <= settings.STREAM_MAX_DURATION_MINUTES:
        raise ValidationFailed(
            f"estimated_duration must be between {settings.STREAM_MIN_DURATION_MINUTES} "
            f"and {settings.STREAM_MAX_DURATION_MINUTES} minutes",
            field="estimated_duration",
        )


def _validate_start(start: datetime, now: datetime):
    if start <= now:
        raise ValidationFailed("scheduled_start must be in the future", field="scheduled_start")


def _quota_error(check: QuotaCheck, action: str) -> QuotaExceeded:
    scope = "daily streaming limit" if check.policy == QuotaPolicy.DAILY else "remaining streaming hours"
    return QuotaExceeded(
        f"{action} this stream would exceed your {scope}",
        policy=check.policy.value,
        limit=check.limit_hours,
        used=check.used_hours,
        remaining=check.remaining_hours,
        requested=check.requested_hours,
    )


def _notification_payload(streamer: Streamer, plan: SubscriptionPlan, stream: PlannedStream) -> tuple[dict, dict, list]:
    streamer_info = {"name": streamer.full_name, "username": streamer.username}
    plan_info = {
        "views": plan.views_delivered or "Unlimited",
        "chats": plan.chat_messages_delivered or "Unlimited",
        "hours": plan.daily_hours or "Unlimited",
    }
    stream_info = [{
        "name": stream.title,
        "start_date": stream.scheduled_start.isoformat(),
        "duration": round(stream.duration_hours, 1),
    }]
    return streamer_info, plan_info, stream_info


def add_stream(
    db: Session,
    streamer_id: int,
    *,
    title: str,
    scheduled_start: datetime,
    estimated_duration: int,
    description: Optional[str] = None,
    wordlist_id: Optional[int] = None,
    now: Optional[datetime] = None,
    policy=None,
    notifier: Optional[Notifier] = None,
) -> ScheduledStream:
    now = now or utcnow()
    policy = policy or get_quota_policy()
    streamer = _get_streamer_for_update(db, streamer_id)

    subscription = get_active_subscription(db, streamer.id, now)
    if not subscription:
        raise NoActiveSubscription()

    if not title or not title.strip():
        raise ValidationFailed("title must not be empty", field="title")
    _validate_duration(estimated_duration)
    _validate_start(scheduled_start, now)

    check = policy.check(db, subscription, streamer.id, scheduled_start, estimated_duration)
    if not check.allowed:
        logger.info(
            "Streamer %s over quota (%s): used %.2fh of %.2fh, requested %.2fh",
            streamer.id, check.policy.value, check.used_hours, check.limit_hours, check.requested_hours,
        )
        raise _quota_error(check, "Adding")

    ensure_no_conflict(db, streamer.id, scheduled_start, estimated_duration)

    stream = PlannedStream(
        streamer_id=streamer.id,
        title=title.strip(),
        description=(description or None),
        scheduled_start=scheduled_start,
        estimated_duration=estimated_duration,
        wordlist_id=wordlist_id,
        status=StreamStatus.SCHEDULED,
    )
    db.add(stream)
    db.flush()
    payload = _notification_payload(streamer, subscription.plan, stream)
    db.commit()
    db.refresh(stream)
    logger.info(
        "Stream %s scheduled for streamer %s from %s to %s",
        stream.id, streamer.id, stream.scheduled_start, stream.scheduled_end,
    )

    # Best-effort: a failed notification never undoes the scheduled stream
    try:
        (notifier or notify_plan_and_schedule)(*payload)
    except Exception:
        logger.exception("Stream notification failed for streamer %s", streamer.id)

    return ScheduledStream(stream=stream, policy=policy.policy, remaining_hours=round(check.remaining_after_hours, 2))


def update_stream(
    db: Session,
    streamer_id: int,
    stream_id: int,
    patch: dict,
    *,
    now: Optional[datetime] = None,
    policy=None,
) -> PlannedStream:
    """
    Apply a partial update. Fields missing from ``patch`` keep their stored
    values. When the start or duration changes, quota is re-checked without
    this stream's own prior usage and conflicts are re-checked against the
    other streams.
    """
    now = now or utcnow()
    policy = policy or get_quota_policy()
    unknown = set(patch) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationFailed(f"Unknown field(s): {', '.join(sorted(unknown))}", field=sorted(unknown)[0])

    streamer = _get_streamer_for_update(db, streamer_id)
    stream = _get_stream(db, streamer, stream_id)

    if stream.status in (StreamStatus.LIVE, StreamStatus.COMPLETED):
        raise InvalidStateTransition("Cannot update a stream that is live or completed", current_status=stream.status.value)

    changes = dict(patch)
    if changes.get("status") is not None:
        try:
            new_status = StreamStatus(changes["status"])
        except ValueError:
            raise ValidationFailed("status must be scheduled or cancelled", field="status") from None
        if new_status not in (StreamStatus.SCHEDULED, StreamStatus.CANCELLED):
            raise InvalidStateTransition(f"Cannot set a stream to {new_status.value} by editing it", current_status=stream.status.value)
        if stream.status == StreamStatus.CANCELLED and new_status == StreamStatus.SCHEDULED:
            raise InvalidStateTransition("A cancelled stream cannot be rescheduled", current_status=stream.status.value)
        changes["status"] = new_status

    if changes.get("title") is not None:
        changes["title"] = changes["title"].strip()
        if not changes["title"]:
            raise ValidationFailed("title must not be empty", field="title")

    new_start = changes.get("scheduled_start")
    new_duration = changes.get("estimated_duration")
    if new_start is not None or new_duration is not None:
        if new_duration is not None:
            _validate_duration(new_duration)
        if new_start is not None:
            _validate_start(new_start, now)
        start = new_start if new_start is not None else stream.scheduled_start
        duration = new_duration if new_duration is not None else stream.estimated_duration

        subscription = get_active_subscription(db, streamer.id, now)
        check = policy.check(db, subscription, streamer.id, start, duration, exclude_stream_id=stream.id)
        if not check.allowed:
            raise _quota_error(check, "Updating")

        ensure_no_conflict(
            db, streamer.id, start, duration,
            exclude_stream_id=stream.id,
            message="This update would create a conflict with another scheduled stream",
        )

    for field, value in changes.items():
        if field in ("title", "scheduled_start", "estimated_duration", "status") and value is None:
            continue
        setattr(stream, field, value)
    db.commit()
    db.refresh(stream)
    logger.info("Stream %s of streamer %s updated (%s)", stream.id, streamer.id, ", ".join(sorted(changes)))
    return stream


def start_stream(db: Session, streamer_id: int, stream_id: int, *, now: Optional[datetime] = None) -> PlannedStream:
    now = now or utcnow()
    streamer = _get_streamer_for_update(db, streamer_id)
    stream = _get_stream(db, streamer, stream_id)

    if not stream.can_be_started(now, settings.STREAM_EARLY_START_MINUTES):
        raise InvalidStateTransition(
            "Stream cannot be started yet or is not in scheduled status",
            current_status=stream.status.value,
        )

    other_live = (
        db.query(PlannedStream)
        .filter(
            PlannedStream.streamer_id == streamer.id,
            PlannedStream.status == StreamStatus.LIVE,
            PlannedStream.id != stream.id,
        )
        .first()
    )
    if other_live or streamer.is_currently_streaming:
        raise InvalidStateTransition("You are already streaming. End your current stream first.")

    stream.status = StreamStatus.LIVE
    streamer.current_stream_id = stream.id
    db.commit()
    db.refresh(stream)
    logger.info("Streamer %s went live with stream %s", streamer.id, stream.id)
    return stream


def end_stream(db: Session, streamer_id: int, stream_id: int) -> PlannedStream:
    streamer = _get_streamer_for_update(db, streamer_id)
    stream = _get_stream(db, streamer, stream_id)

    if stream.status != StreamStatus.LIVE:
        raise InvalidStateTransition("Stream is not currently live", current_status=stream.status.value)

    stream.status = StreamStatus.COMPLETED
    if streamer.current_stream_id == stream.id:
        streamer.current_stream_id = None
    db.commit()
    db.refresh(stream)
    logger.info("Streamer %s ended stream %s", streamer.id, stream.id)
    return stream


def cancel_stream(db: Session, streamer_id: int, stream_id: int) -> PlannedStream:
    streamer = _get_streamer_for_update(db, streamer_id)
    stream = _get_stream(db, streamer, stream_id)

    if stream.status != StreamStatus.SCHEDULED:
        raise InvalidStateTransition("Only scheduled streams can be cancelled", current_status=stream.status.value)

    stream.status = StreamStatus.CANCELLED
    db.commit()
    db.refresh(stream)
    logger.info("Streamer %s cancelled stream %s", streamer.id, stream.id)
    return stream


def delete_stream(db: Session, streamer_id: int, stream_id: int) -> None:
    streamer = _get_streamer_for_update(db, streamer_id)
    stream = _get_stream(db, streamer, stream_id)

    if stream.status == StreamStatus.LIVE:
        raise InvalidStateTransition("Cannot delete a live stream", current_status=stream.status.value)

    if streamer.current_stream_id == stream.id:
        streamer.current_stream_id = None
    db.delete(stream)
    db.commit()
    logger.info("Streamer %s deleted stream %s", streamer.id, stream_id)


def list_streams(db: Session, streamer_id: int, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    streamer = db.get(Streamer, streamer_id)
    if not streamer:
        raise NotFound("Streamer profile not found")
    streams = (
        db.query(PlannedStream)
        .filter(PlannedStream.streamer_id == streamer.id)
        .order_by(PlannedStream.scheduled_start.desc())
        .all()
    )
    return {
        "streams": streams,
        "daily_limit_hours": get_daily_streaming_limit(db, streamer.id, now),
        "has_active_subscription": has_active_subscription(db, streamer.id, now),
    }
