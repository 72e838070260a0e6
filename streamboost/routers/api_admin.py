from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import PaymentStatus, SubscriptionStatus
from ..services import plans
from ..services.payments import complete_payment, record_payment
from ..services.subscriptions import update_subscription
from .api_streams import PlanOut, SubscriptionOut

router = APIRouter(prefix="/api/v1/admin", tags=["admin-api"])

# ==== Schemas ====

class PlanCreateIn(BaseModel):
    name: str
    description: Optional[str] = None
    price: Decimal = Field(ge=0)
    duration_days: int = Field(default=30, ge=1)
    duration_hours: Decimal = Field(ge=0)
    views_delivered: int = Field(default=0, ge=0)
    chat_messages_delivered: int = Field(default=0, ge=0)
    features: List[str] = []
    is_active: bool = True
    is_most_popular: bool = False

class PlanUpdateIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    duration_days: Optional[int] = None
    duration_hours: Optional[Decimal] = None
    views_delivered: Optional[int] = None
    chat_messages_delivered: Optional[int] = None
    features: Optional[List[str]] = None
    is_active: Optional[bool] = None
    is_most_popular: Optional[bool] = None

class SubscriptionUpdateIn(BaseModel):
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime

class PaymentIn(BaseModel):
    payee_id: int
    amount: Decimal
    subscription_id: Optional[int] = None
    status: PaymentStatus = Field(default=PaymentStatus.COMPLETED)
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    currency: str = "USD"
    description: Optional[str] = None

class PaymentOut(BaseModel):
    id: int
    payee_id: int
    subscription_id: Optional[int] = None
    amount: float
    currency: str
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    status: PaymentStatus
    completed_at: Optional[datetime] = None
    subscription_status: Optional[SubscriptionStatus] = None

    class Config:
        use_enum_values = True
        from_attributes = True

# ==== Plans ====

@router.get("/plans", response_model=List[PlanOut])
def admin_list_plans(status: Optional[str] = None, db: Session = Depends(get_db)):
    return plans.list_plans(db, status)

@router.post("/plans", response_model=PlanOut, status_code=201)
def admin_create_plan(payload: PlanCreateIn, db: Session = Depends(get_db)):
    return plans.create_plan(db, **payload.model_dump())

@router.patch("/plans/{plan_id}", response_model=PlanOut)
def admin_update_plan(plan_id: int, payload: PlanUpdateIn, db: Session = Depends(get_db)):
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    return plans.update_plan(db, plan_id, changes)

@router.delete("/plans/{plan_id}", status_code=204)
def admin_delete_plan(plan_id: int, db: Session = Depends(get_db)):
    plans.delete_plan(db, plan_id)
    return Response(status_code=204)

@router.post("/plans/{plan_id}/toggle", response_model=PlanOut)
def admin_toggle_plan(plan_id: int, db: Session = Depends(get_db)):
    return plans.toggle_plan_status(db, plan_id)

# ==== Subscriptions ====

@router.patch("/streamers/{streamer_id}/subscriptions/{subscription_id}", response_model=SubscriptionOut)
def admin_update_subscription(streamer_id: int, subscription_id: int, payload: SubscriptionUpdateIn, db: Session = Depends(get_db)):
    return update_subscription(
        db,
        streamer_id,
        subscription_id,
        status=payload.status,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )

# ==== Payments ====

def _payment_out(payment) -> PaymentOut:
    out = PaymentOut.model_validate(payment)
    if payment.subscription is not None:
        out.subscription_status = payment.subscription.status
    return out

@router.post("/payments", response_model=PaymentOut, status_code=201)
def admin_record_payment(payload: PaymentIn, db: Session = Depends(get_db)):
    payment = record_payment(
        db,
        payload.payee_id,
        payload.amount,
        subscription_id=payload.subscription_id,
        status=payload.status,
        payment_method=payload.payment_method,
        transaction_id=payload.transaction_id,
        currency=payload.currency,
        description=payload.description,
    )
    return _payment_out(payment)

@router.post("/payments/{payment_id}/complete", response_model=PaymentOut)
def admin_complete_payment(payment_id: int, db: Session = Depends(get_db)):
    return _payment_out(complete_payment(db, payment_id))
