from __future__ import annotations
from datetime import datetime, timedelta
from typing import TYPE_CHECKING
from enum import Enum as PyEnum
from sqlalchemy import Integer, String, ForeignKey, Text, Enum, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..db import Base

if TYPE_CHECKING:
    from .streamer import Streamer

class StreamStatus(str, PyEnum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

# Statuses that consume quota
COUNTED_STATUSES = (StreamStatus.SCHEDULED, StreamStatus.LIVE, StreamStatus.COMPLETED)

class PlannedStream(Base):
    __tablename__ = "planned_streams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    streamer_id: Mapped[int] = mapped_column(ForeignKey("streamers.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    scheduled_start: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    # Minutes
    estimated_duration: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[StreamStatus] = mapped_column(Enum(StreamStatus), default=StreamStatus.SCHEDULED, nullable=False)
    # Opaque reference to a streamer wordlist
    wordlist_id: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    streamer: Mapped[Streamer] = relationship(back_populates="planned_streams")

    @property
    def duration_hours(self) -> float:
        return self.estimated_duration / 60

    @property
    def scheduled_end(self) -> datetime:
        return self.scheduled_start + timedelta(minutes=self.estimated_duration)

    def is_live(self) -> bool:
        return self.status == StreamStatus.LIVE

    def is_scheduled(self) -> bool:
        return self.status == StreamStatus.SCHEDULED

    def can_be_started(self, now: datetime, early_minutes: int = 15) -> bool:
        # No lower bound: overdue streams may still be started
        return self.is_scheduled() and self.scheduled_start <= now + timedelta(minutes=early_minutes)
