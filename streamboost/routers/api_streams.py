from datetime import date, datetime, timezone
from typing import Optional, List
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import StreamStatus, SubscriptionStatus
from ..services import scheduler
from ..services.notifications import notify_plan_and_schedule
from ..services.plans import list_active_plans
from ..services.quota import (
    get_quota_policy,
    has_expired_with_unused_hours,
    remaining_stream_hours_for_date,
    unused_hours_on_expiration,
)
from ..services.clock import utcnow
from ..services.stats import period_summary, stats_for_date, stats_for_range
from ..services.streamers import get_streamer, register_streamer

router = APIRouter(prefix="/api/v1", tags=["streams-api"])

# ==== Schemas ====

class PlanOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    duration_days: int
    duration_hours: float
    views_delivered: int
    chat_messages_delivered: int
    features: List[str] = []
    is_active: bool
    is_most_popular: bool

    class Config:
        from_attributes = True

class SubscriptionOut(BaseModel):
    id: int
    plan_id: Optional[int] = None
    amount: Optional[float] = None
    start_date: datetime
    end_date: datetime
    status: SubscriptionStatus

    class Config:
        use_enum_values = True
        from_attributes = True

class StreamerOut(BaseModel):
    id: int
    username: str
    full_name: str
    current_stream_id: Optional[int] = None

    class Config:
        from_attributes = True

class StreamOut(BaseModel):
    id: int
    streamer_id: int
    title: str
    description: Optional[str] = None
    scheduled_start: datetime
    estimated_duration: int
    status: StreamStatus
    wordlist_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        use_enum_values = True
        from_attributes = True

class CustomPlanIn(BaseModel):
    views_delivered: int = Field(ge=1)
    chat_messages_delivered: int = Field(ge=1)
    duration_hours: int = Field(ge=1)
    duration_days: int = Field(ge=1)
    price: float = Field(ge=0)

class RegisterIn(BaseModel):
    email: str
    username: str
    full_name: str
    plan_id: Optional[int] = None
    custom_plan: Optional[CustomPlanIn] = None

class RegistrationOut(BaseModel):
    streamer: StreamerOut
    subscription: Optional[SubscriptionOut] = None
    custom_plan_created: bool
    plan_selected: bool

class StreamCreateIn(BaseModel):
    title: str
    scheduled_start: datetime
    estimated_duration: int
    description: Optional[str] = None
    wordlist_id: Optional[int] = None

class StreamUpdateIn(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    scheduled_start: Optional[datetime] = None
    estimated_duration: Optional[int] = None
    wordlist_id: Optional[int] = None
    status: Optional[StreamStatus] = None

class ScheduledStreamOut(BaseModel):
    stream: StreamOut
    policy: str
    remaining_hours: float

class StreamListOut(BaseModel):
    streams: List[StreamOut]
    daily_limit_hours: float
    has_active_subscription: bool

# ==== Helpers ====

def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Stored timestamps are naive UTC
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)

# ==== Plans & Registration ====

@router.get("/plans", response_model=List[PlanOut])
def api_get_plans(db: Session = Depends(get_db)):
    return list_active_plans(db)

@router.post("/streamers/register", response_model=RegistrationOut, status_code=201)
def api_register(payload: RegisterIn, db: Session = Depends(get_db)):
    reg = register_streamer(
        db,
        email=payload.email,
        username=payload.username,
        full_name=payload.full_name,
        plan_id=payload.plan_id,
        custom_plan=payload.custom_plan.model_dump() if payload.custom_plan else None,
    )
    return {
        "streamer": reg.streamer,
        "subscription": reg.subscription,
        "custom_plan_created": reg.custom_plan_created,
        "plan_selected": reg.plan_selected,
    }

# ==== Planned streams ====

@router.get("/streamers/{streamer_id}/streams", response_model=StreamListOut)
def api_list_streams(streamer_id: int, db: Session = Depends(get_db)):
    return scheduler.list_streams(db, streamer_id)

@router.post("/streamers/{streamer_id}/streams", response_model=ScheduledStreamOut, status_code=201)
def api_add_stream(streamer_id: int, payload: StreamCreateIn, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    result = scheduler.add_stream(
        db,
        streamer_id,
        title=payload.title,
        scheduled_start=_naive_utc(payload.scheduled_start),
        estimated_duration=payload.estimated_duration,
        description=payload.description,
        wordlist_id=payload.wordlist_id,
        # Delivered after the response is sent
        notifier=lambda *args: background_tasks.add_task(notify_plan_and_schedule, *args),
    )
    return {"stream": result.stream, "policy": result.policy.value, "remaining_hours": result.remaining_hours}

@router.patch("/streamers/{streamer_id}/streams/{stream_id}", response_model=StreamOut)
def api_update_stream(streamer_id: int, stream_id: int, payload: StreamUpdateIn, db: Session = Depends(get_db)):
    patch = payload.model_dump(exclude_unset=True)
    if patch.get("scheduled_start") is not None:
        patch["scheduled_start"] = _naive_utc(patch["scheduled_start"])
    return scheduler.update_stream(db, streamer_id, stream_id, patch)

@router.delete("/streamers/{streamer_id}/streams/{stream_id}", status_code=204)
def api_delete_stream(streamer_id: int, stream_id: int, db: Session = Depends(get_db)):
    scheduler.delete_stream(db, streamer_id, stream_id)
    return Response(status_code=204)

@router.post("/streamers/{streamer_id}/streams/{stream_id}/start", response_model=StreamOut)
def api_start_stream(streamer_id: int, stream_id: int, db: Session = Depends(get_db)):
    return scheduler.start_stream(db, streamer_id, stream_id)

@router.post("/streamers/{streamer_id}/streams/{stream_id}/end", response_model=StreamOut)
def api_end_stream(streamer_id: int, stream_id: int, db: Session = Depends(get_db)):
    return scheduler.end_stream(db, streamer_id, stream_id)

@router.post("/streamers/{streamer_id}/streams/{stream_id}/cancel", response_model=StreamOut)
def api_cancel_stream(streamer_id: int, stream_id: int, db: Session = Depends(get_db)):
    return scheduler.cancel_stream(db, streamer_id, stream_id)

# ==== Stats & quota ====

@router.get("/streamers/{streamer_id}/stats")
def api_stats(
    streamer_id: int,
    db: Session = Depends(get_db),
    day: Optional[date] = Query(None, alias="date"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    get_streamer(db, streamer_id)
    if day is not None:
        stats = stats_for_date(db, streamer_id, day)
        stats["streams"] = [StreamOut.model_validate(s).model_dump(mode="json") for s in stats["streams"]]
        stats["date"] = stats["date"].isoformat()
        return stats
    stats = stats_for_range(db, streamer_id, start_date, end_date)
    stats["start_date"] = stats["start_date"].isoformat()
    stats["end_date"] = stats["end_date"].isoformat()
    return stats

@router.get("/streamers/{streamer_id}/quota")
def api_quota(streamer_id: int, db: Session = Depends(get_db)):
    get_streamer(db, streamer_id)
    now = utcnow()
    summary = period_summary(db, streamer_id, now)
    for key in ("start_date", "end_date"):
        if summary[key] is not None:
            summary[key] = summary[key].isoformat()
    summary.update(
        policy=get_quota_policy().policy.value,
        remaining_hours_today=round(remaining_stream_hours_for_date(db, streamer_id, now.date(), now), 2),
        has_expired_with_unused_hours=has_expired_with_unused_hours(db, streamer_id, now),
        unused_hours_on_expiration=round(unused_hours_on_expiration(db, streamer_id, now), 2),
    )
    return summary
