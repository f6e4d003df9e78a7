from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from foodorder.db import get_db
from foodorder.deps import current_actor
from foodorder.models.core import OrderStatus
from foodorder.schemas.orders import PlaceOrderIn, OrderOut, OrderStatusIn, CouponApplyIn
from foodorder.services import orders as svc
from foodorder.services.actor import Actor

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/", response_model=OrderOut)
def place_order(body: PlaceOrderIn, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return OrderOut.from_order(svc.place_order(db, actor, body))


@router.get("/mine", response_model=List[OrderOut])
def my_orders(db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return [OrderOut.from_order(o) for o in svc.list_orders_for_user(db, actor.id)]


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: str, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return OrderOut.from_order(svc.get_order(db, order_id, actor))


@router.put("/{order_id}/status", response_model=OrderOut)
def update_status(order_id: str, body: OrderStatusIn,
                  db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    order = svc.update_order_status(db, order_id, OrderStatus(body.status), actor)
    return OrderOut.from_order(order)


@router.post("/{order_id}/coupon", response_model=OrderOut)
def apply_coupon(order_id: str, body: CouponApplyIn,
                 db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return OrderOut.from_order(svc.apply_coupon(db, order_id, body.coupon_code, actor))


@router.delete("/{order_id}/coupon", response_model=OrderOut)
def remove_coupon(order_id: str, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return OrderOut.from_order(svc.remove_coupon(db, order_id, actor))
