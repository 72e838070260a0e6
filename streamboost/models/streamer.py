from __future__ import annotations
from datetime import datetime
from typing import TYPE_CHECKING, Optional
from sqlalchemy import Integer, String, ForeignKey, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..db import Base

if TYPE_CHECKING:
    from .user import User
    from .subscription import Subscription
    from .planned_stream import PlannedStream
    from .payment import Payment

class Streamer(Base):
    __tablename__ = "streamers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Weak pointer to the live stream; deliberately not a foreign key
    current_stream_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user: Mapped[User] = relationship(back_populates="streamer")
    subscriptions: Mapped[list[Subscription]] = relationship(back_populates="streamer", cascade="all, delete-orphan")
    planned_streams: Mapped[list[PlannedStream]] = relationship(back_populates="streamer", cascade="all, delete-orphan")
    payments: Mapped[list[Payment]] = relationship(back_populates="payee")

    current_stream: Mapped[Optional[PlannedStream]] = relationship(
        "PlannedStream",
        primaryjoin="foreign(Streamer.current_stream_id) == PlannedStream.id",
        viewonly=True,
        uselist=False,
    )

    @property
    def is_currently_streaming(self) -> bool:
        return (
            self.current_stream_id is not None
            and self.current_stream is not None
            and self.current_stream.is_live()
        )
