from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import SchedulingConflict
from ..models import PlannedStream, StreamStatus


def padded_window(start: datetime, duration_minutes: int, buffer_minutes: int) -> tuple[datetime, datetime]:
    """Return the inclusive window [start - buffer, start + duration + buffer]."""
    end = start + timedelta(minutes=duration_minutes)
    return start - timedelta(minutes=buffer_minutes), end + timedelta(minutes=buffer_minutes)


def starts_within(other_start: datetime, start: datetime, duration_minutes: int, buffer_minutes: int) -> bool:
    """
    True if another stream's *start* falls inside the candidate's padded window.
    Only the other stream's start is tested, not its whole interval, so a long
    stream that began before the window is not a conflict.
    """
    lo, hi = padded_window(start, duration_minutes, buffer_minutes)
    return lo <= other_start <= hi


def find_conflicting_stream(
    db: Session,
    streamer_id: int,
    start: datetime,
    duration_minutes: int,
    exclude_stream_id: Optional[int] = None,
    buffer_minutes: Optional[int] = None,
) -> Optional[PlannedStream]:
    """First scheduled stream of this streamer starting inside the candidate's padded window."""
    if buffer_minutes is None:
        buffer_minutes = settings.STREAM_CONFLICT_BUFFER_MINUTES
    lo, hi = padded_window(start, duration_minutes, buffer_minutes)
    q = db.query(PlannedStream).filter(
        PlannedStream.streamer_id == streamer_id,
        PlannedStream.status == StreamStatus.SCHEDULED,
        PlannedStream.scheduled_start >= lo,
        PlannedStream.scheduled_start <= hi,
    )
    if exclude_stream_id is not None:
        q = q.filter(PlannedStream.id != exclude_stream_id)
    return q.order_by(PlannedStream.scheduled_start.asc(), PlannedStream.id.asc()).first()


def ensure_no_conflict(
    db: Session,
    streamer_id: int,
    start: datetime,
    duration_minutes: int,
    exclude_stream_id: Optional[int] = None,
    message: str = "This stream conflicts with another scheduled stream",
) -> None:
    other = find_conflicting_stream(db, streamer_id, start, duration_minutes, exclude_stream_id)
    if other:
        raise SchedulingConflict(
            message,
            stream_id=other.id,
            title=other.title,
            scheduled_start=other.scheduled_start,
        )
