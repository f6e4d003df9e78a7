"""Payment capture and the payment update gate.

Capture is two-phase: the payment is recorded as SUCCESS tentatively, then
settled (invoice reference issued). A failed settlement comes back as a
``PaymentOutcome`` with an error, and the compensation path persists the
payment as FAILED before ``DownstreamFailure`` is raised.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from foodorder.config import settings
from foodorder.errors import (
    NotFound, InvalidInput, Unauthorized, DownstreamFailure,
    UnauthorizedPaymentUpdate, FieldNotPermitted, PaymentAlreadyExists,
)
from foodorder.models.common import utcnow
from foodorder.models.core import Order, Payment, PaymentMethod, PaymentStatus, UserRole
from foodorder.schemas.orders import PaymentUpdateIn
from foodorder.services.actor import Actor
from foodorder.util.tx import commit

logger = logging.getLogger(__name__)

GUARDED_FIELDS = frozenset({"amount", "method", "transaction_id"})


# ── Update gate ─────────────────────────────────────────────────────────────
def authorize_update(payment: Payment, requested_fields: set[str], actor_role: UserRole) -> None:
    if actor_role == UserRole.DELIVERY_PERSON:
        if payment.method != PaymentMethod.CASH_ON_DELIVERY:
            raise UnauthorizedPaymentUpdate("Delivery personnel can only update COD payments.")
        if requested_fields & GUARDED_FIELDS:
            raise FieldNotPermitted("Delivery personnel can only update payment status.")
        if "status" not in requested_fields:
            raise InvalidInput("Payment status is required.")
        return

    guarded = requested_fields & GUARDED_FIELDS
    if guarded and actor_role != UserRole.ADMIN:
        if settings.RESTRICT_PAYMENT_EDITS:
            raise FieldNotPermitted("Only an admin can change payment amount, method or transaction id.")
        logger.warning("Non-admin role %s editing payment %s fields %s",
                       actor_role.value, payment.id, sorted(guarded))


def _check_access(db: Session, payment: Payment, actor: Actor) -> None:
    if actor.role == UserRole.ADMIN or actor.id == payment.user_id:
        return
    if actor.role == UserRole.DELIVERY_PERSON:
        order = db.get(Order, payment.order_id)
        if order and order.delivery_person_id == actor.id:
            return
    raise Unauthorized("You are not allowed to access this payment.")


def _load(db: Session, payment_id: str, lock: bool = False) -> Payment:
    q = db.query(Payment).filter(Payment.id == payment_id)
    if lock:
        q = q.with_for_update()
    payment = q.one_or_none()
    if not payment:
        raise NotFound(f"Payment not found with ID: {payment_id}")
    return payment


def get_payment(db: Session, payment_id: str, actor: Actor) -> Payment:
    payment = _load(db, payment_id)
    _check_access(db, payment, actor)
    return payment


def update_payment(db: Session, payment_id: str, body: PaymentUpdateIn, actor: Actor) -> Payment:
    payment = _load(db, payment_id, lock=True)
    _check_access(db, payment, actor)
    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    authorize_update(payment, set(changes), actor.role)

    if "status" in changes:
        payment.status = PaymentStatus(changes["status"])
    if "amount" in changes:
        payment.amount = changes["amount"]
    if "method" in changes:
        payment.method = PaymentMethod(changes["method"])
    if "transaction_id" in changes:
        payment.transaction_id = changes["transaction_id"]

    commit(db)
    db.refresh(payment)
    logger.info("Payment %s updated by %s (%s)", payment_id, actor.id, ", ".join(sorted(changes)))
    return payment


def update_payment_status(db: Session, payment_id: str, status: PaymentStatus, actor: Actor) -> Payment:
    return update_payment(db, payment_id, PaymentUpdateIn(status=status.value), actor)


# ── Capture ─────────────────────────────────────────────────────────────────
@dataclass
class PaymentOutcome:
    payment: Payment
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def issue_invoice(order: Order, payment: Payment) -> str:
    """Invoice reference: INV-YYYYMMDD-<first 8 of the transaction id>."""
    day = (payment.paid_at or utcnow()).strftime("%Y%m%d")
    return f"INV-{day}-{payment.transaction_id[:8].upper()}"


def settle(order: Order, payment: Payment, invoice_issuer: Callable[[Order, Payment], str]) -> PaymentOutcome:
    try:
        ref = invoice_issuer(order, payment)
    except Exception as exc:
        logger.exception("Invoice generation failed for order %s", order.id)
        return PaymentOutcome(payment, error=str(exc) or type(exc).__name__)
    payment.invoice_ref = ref
    return PaymentOutcome(payment)


def process_payment(db: Session, order_id: str, amount, method: PaymentMethod, actor: Actor,
                    invoice_issuer: Callable[[Order, Payment], str] = issue_invoice) -> Payment:
    order = db.query(Order).filter(Order.id == order_id).with_for_update().one_or_none()
    if not order:
        raise NotFound(f"Order not found with ID: {order_id}")
    if actor.role != UserRole.ADMIN and actor.id != order.customer_id:
        raise Unauthorized("Only the customer who placed the order can pay for it.")
    if amount is None or amount <= 0:
        raise InvalidInput("Payment amount must be positive.")
    if order.payment_id or db.query(Payment.id).filter(Payment.order_id == order_id).first():
        raise PaymentAlreadyExists("A payment already exists for this order.")

    logger.info("Processing payment for order %s", order_id)
    payment = Payment(
        order_id=order.id,
        user_id=order.customer_id,
        amount=amount,
        method=method,
        status=PaymentStatus.SUCCESS,  # tentative
        transaction_id=str(uuid.uuid4()),
        paid_at=utcnow(),
    )
    db.add(payment)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise PaymentAlreadyExists("A payment already exists for this order.")
    order.payment_id = payment.id

    outcome = settle(order, payment, invoice_issuer)
    if not outcome.ok:
        # compensation: the payment row survives as FAILED
        payment.status = PaymentStatus.FAILED
        commit(db)
        logger.error("Payment failed for order %s: %s", order_id, outcome.error)
        raise DownstreamFailure("Payment failed; invoice could not be generated.")

    commit(db)
    db.refresh(payment)
    logger.info("Payment successful. Transaction ID: %s", payment.transaction_id)
    return payment
