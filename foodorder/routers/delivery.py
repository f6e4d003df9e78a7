from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from foodorder.db import get_db
from foodorder.deps import current_actor
from foodorder.schemas.orders import AssignIn, OrderOut
from foodorder.services import delivery as svc
from foodorder.services.actor import Actor

router = APIRouter(prefix="/delivery", tags=["delivery"])


@router.post("/orders/{order_id}/assign", response_model=OrderOut)
def assign(order_id: str, body: AssignIn, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return OrderOut.from_order(svc.assign_delivery_person(db, order_id, body.delivery_person_id, actor))


@router.post("/orders/{order_id}/out-for-delivery", response_model=OrderOut)
def out_for_delivery(order_id: str, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return OrderOut.from_order(svc.mark_out_for_delivery(db, order_id, actor))


@router.post("/orders/{order_id}/delivered", response_model=OrderOut)
def delivered(order_id: str, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return OrderOut.from_order(svc.mark_delivered(db, order_id, actor))


@router.get("/assigned", response_model=List[OrderOut])
def assigned(db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return [OrderOut.from_order(o) for o in svc.list_assigned_orders(db, actor.id)]
