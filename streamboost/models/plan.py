from datetime import datetime
from decimal import Decimal
from sqlalchemy import Integer, String, Numeric, Boolean, Text, JSON, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..db import Base

class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    # Total validity window of a subscription on this plan
    duration_days: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    # Daily streaming allowance, in hours
    duration_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=0, nullable=False)
    views_delivered: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    chat_messages_delivered: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    features: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_most_popular: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationship to subscriptions
    subscriptions: Mapped[list["Subscription"]] = relationship(back_populates="plan")

    @property
    def daily_hours(self) -> float:
        return float(self.duration_hours or 0)

    @property
    def total_hours(self) -> float:
        """Whole-period allowance: validity days times the daily allowance."""
        return (self.duration_days or 0) * self.daily_hours
