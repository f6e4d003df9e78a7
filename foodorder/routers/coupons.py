from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from foodorder.db import get_db
from foodorder.deps import current_actor
from foodorder.schemas.common import Msg
from foodorder.schemas.coupons import CouponIn, CouponOut
from foodorder.services import coupons as svc
from foodorder.services.actor import Actor

router = APIRouter(prefix="/coupons", tags=["coupons"])


def _out(c) -> CouponOut:
    return CouponOut(
        id=c.id, code=c.code, restaurant_id=c.restaurant_id,
        discount_type=c.discount_type.value, discount_value=c.discount_value,
        max_discount=c.max_discount, min_order_value=c.min_order_value,
        usage_limit=c.usage_limit, per_user_limit=c.per_user_limit,
        valid_from=c.valid_from, valid_to=c.valid_to, active=c.active,
    )


# ── Admin: global coupons ───────────────────────────────────────────────────
@router.post("/global", response_model=CouponOut)
def create_global(body: CouponIn, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return _out(svc.create_global_coupon(db, body, actor))

@router.put("/global/{coupon_id}", response_model=CouponOut)
def update_global(coupon_id: str, body: CouponIn,
                  db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return _out(svc.update_global_coupon(db, coupon_id, body, actor))

@router.delete("/global/{coupon_id}", response_model=Msg)
def delete_global(coupon_id: str, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    svc.delete_global_coupon(db, coupon_id, actor)
    return Msg(message="Coupon deleted")


# ── Restaurant owner: restaurant coupons ────────────────────────────────────
@router.post("/restaurant/{restaurant_id}", response_model=CouponOut)
def create_for_restaurant(restaurant_id: str, body: CouponIn,
                          db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return _out(svc.create_restaurant_coupon(db, restaurant_id, body, actor))

@router.put("/restaurant/{coupon_id}", response_model=CouponOut)
def update_for_restaurant(coupon_id: str, body: CouponIn,
                          db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return _out(svc.update_restaurant_coupon(db, coupon_id, body, actor))

@router.delete("/restaurant/{coupon_id}", response_model=Msg)
def delete_for_restaurant(coupon_id: str, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    svc.delete_restaurant_coupon(db, coupon_id, actor)
    return Msg(message="Coupon deleted")


# ── Public lookup ───────────────────────────────────────────────────────────
@router.get("/{code}", response_model=CouponOut)
def get_by_code(code: str, db: Session = Depends(get_db)):
    return _out(svc.get_coupon_by_code(db, code))
