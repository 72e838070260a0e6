from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from enum import Enum as PyEnum
from sqlalchemy import Integer, ForeignKey, DateTime, Enum, Numeric, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..db import Base

if TYPE_CHECKING:
    from .streamer import Streamer
    from .plan import SubscriptionPlan
    from .payment import Payment

class SubscriptionStatus(str, PyEnum):
    PENDING = "pending"
    ACTIVE = "active"
    CANCELED = "canceled"
    EXPIRED = "expired"

class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    streamer_id: Mapped[int] = mapped_column(ForeignKey("streamers.id"), nullable=False, index=True)
    plan_id: Mapped[int | None] = mapped_column(ForeignKey("subscription_plans.id", ondelete="SET NULL"), nullable=True)
    # Plan price at the time of purchase
    amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    status: Mapped[SubscriptionStatus] = mapped_column(Enum(SubscriptionStatus), default=SubscriptionStatus.PENDING, nullable=False)
    auto_renew: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    streamer: Mapped[Streamer] = relationship(back_populates="subscriptions")
    plan: Mapped[SubscriptionPlan | None] = relationship(back_populates="subscriptions")
    payments: Mapped[list[Payment]] = relationship(back_populates="subscription")

    def is_active(self, now: datetime) -> bool:
        return self.status == SubscriptionStatus.ACTIVE and self.end_date > now

    def is_expired(self, now: datetime) -> bool:
        return self.end_date <= now

    def remaining_days(self, now: datetime) -> int:
        if self.is_expired(now):
            return 0
        return (self.end_date - now).days
