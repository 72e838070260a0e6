"""Scheduling and subscription rejections.

Every error here is an expected, user-facing outcome: services raise them
before anything is committed, and the API renders them as JSON with the
class status code.
"""

from datetime import datetime
from typing import Any, Optional


class SchedulingError(Exception):
    code = "scheduling_error"
    status_code = 422

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"message": self.message, "code": self.code}
        payload.update(self.details)
        return payload


class NoActiveSubscription(SchedulingError):
    code = "no_active_subscription"

    def __init__(self, message: str = "You need an active subscription to schedule streams"):
        super().__init__(message)


class QuotaExceeded(SchedulingError):
    """Raised when a stream would exceed the remaining streaming allowance.

    ``limit``, ``used``, ``remaining`` and ``requested`` are in hours and kept
    unrounded on the instance; the payload rounds them to 2 decimals.
    """
    code = "quota_exceeded"

    def __init__(self, message: str, *, policy: str, limit: float, used: float, remaining: float, requested: float):
        limit_key = "daily_limit_hours" if policy == "daily" else "limit_hours"
        super().__init__(
            message,
            policy=policy,
            **{limit_key: round(limit, 2)},
            used_hours=round(used, 2),
            remaining_hours=round(remaining, 2),
            requested_hours=round(requested, 2),
        )
        self.policy = policy
        self.limit = limit
        self.used = used
        self.remaining = remaining
        self.requested = requested


class SchedulingConflict(SchedulingError):
    code = "scheduling_conflict"

    def __init__(self, message: str, *, stream_id: int, title: str, scheduled_start: datetime):
        super().__init__(
            message,
            conflicting_stream={
                "id": stream_id,
                "title": title,
                "scheduled_start": scheduled_start.isoformat(),
            },
        )
        self.stream_id = stream_id
        self.title = title
        self.scheduled_start = scheduled_start


class InvalidStateTransition(SchedulingError):
    code = "invalid_state_transition"

    def __init__(self, message: str, *, current_status: Optional[str] = None):
        details = {}
        if current_status is not None:
            details["current_status"] = current_status
        super().__init__(message, **details)
        self.current_status = current_status


class NotFound(SchedulingError):
    code = "not_found"
    status_code = 404


class ValidationFailed(SchedulingError):
    code = "validation_error"

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message, **({"field": field} if field else {}))
        self.field = field
