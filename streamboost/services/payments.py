import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ..errors import InvalidStateTransition, NotFound, ValidationFailed
from ..models import Payment, PaymentStatus, Streamer, Subscription
from .activation import activate_if_paid
from .clock import utcnow

logger = logging.getLogger(__name__)


def _on_completed(db: Session, payment: Payment, now: datetime):
    payment.completed_at = payment.completed_at or now
    if payment.subscription_id is None:
        return
    subscription = db.get(Subscription, payment.subscription_id)
    if subscription:
        db.flush()
        activate_if_paid(db, subscription, now=now)


def record_payment(
    db: Session,
    payee_id: int,
    amount: Decimal,
    *,
    subscription_id: Optional[int] = None,
    status: PaymentStatus = PaymentStatus.COMPLETED,
    payment_method: Optional[str] = None,
    transaction_id: Optional[str] = None,
    currency: str = "USD",
    description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Payment:
    """Store a payment; a completed one is fed to subscription activation in the same commit."""
    now = now or utcnow()
    amount = Decimal(str(amount))
    if amount < 0:
        raise ValidationFailed("amount must not be negative", field="amount")
    if not db.get(Streamer, payee_id):
        raise NotFound("Streamer not found")
    if subscription_id is not None:
        sub = db.get(Subscription, subscription_id)
        if not sub or sub.streamer_id != payee_id:
            raise NotFound("Subscription not found")
    if transaction_id and db.query(Payment).filter(Payment.transaction_id == transaction_id).first():
        raise ValidationFailed("transaction_id has already been recorded", field="transaction_id")

    payment = Payment(
        payee_id=payee_id,
        subscription_id=subscription_id,
        amount=amount,
        currency=currency,
        payment_method=payment_method,
        transaction_id=transaction_id,
        status=PaymentStatus(status),
        description=description,
    )
    db.add(payment)
    if payment.status == PaymentStatus.COMPLETED:
        _on_completed(db, payment, now)
    db.commit()
    db.refresh(payment)
    logger.info("Payment %s of %s %s recorded for streamer %s (%s)", payment.id, payment.amount, payment.currency, payee_id, payment.status.value)
    return payment


def complete_payment(db: Session, payment_id: int, *, now: Optional[datetime] = None) -> Payment:
    now = now or utcnow()
    payment = db.get(Payment, payment_id)
    if not payment:
        raise NotFound("Payment not found")
    if payment.status != PaymentStatus.PENDING:
        raise InvalidStateTransition("Only pending payments can be completed", current_status=payment.status.value)
    payment.status = PaymentStatus.COMPLETED
    _on_completed(db, payment, now)
    db.commit()
    db.refresh(payment)
    logger.info("Payment %s completed", payment.id)
    return payment
