from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from foodorder.db import get_db
from foodorder.deps import current_actor
from foodorder.models.core import PaymentMethod, PaymentStatus
from foodorder.schemas.orders import PaymentIn, PaymentOut, PaymentUpdateIn, PaymentStatusIn
from foodorder.services import payments as svc
from foodorder.services.actor import Actor

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/", response_model=PaymentOut)
def process(body: PaymentIn, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    p = svc.process_payment(db, body.order_id, body.amount, PaymentMethod(body.method), actor)
    return PaymentOut.from_payment(p)


@router.get("/{payment_id}", response_model=PaymentOut)
def get_payment(payment_id: str, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return PaymentOut.from_payment(svc.get_payment(db, payment_id, actor))


@router.patch("/{payment_id}", response_model=PaymentOut)
def update_payment(payment_id: str, body: PaymentUpdateIn,
                   db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return PaymentOut.from_payment(svc.update_payment(db, payment_id, body, actor))


@router.put("/{payment_id}/status", response_model=PaymentOut)
def update_status(payment_id: str, body: PaymentStatusIn,
                  db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    p = svc.update_payment_status(db, payment_id, PaymentStatus(body.status), actor)
    return PaymentOut.from_payment(p)
