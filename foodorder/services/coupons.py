"""Coupon eligibility and coupon management.

Eligibility (``validate_for_application``) is a pure check against an order,
a coupon and the usage counts the caller already queried. Management
operations enforce who may touch which class of coupon: admins own global
coupons, restaurant owners own their restaurant's coupons.
"""
import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from foodorder.errors import (
    NotFound, Unauthorized, Conflict,
    CouponInactive, CouponExpired, CouponNotApplicable, BelowMinimumOrder,
    UsageLimitExceeded, CouponAlreadyApplied,
    DuplicateActiveCouponType, DuplicateCouponCode,
)
from foodorder.models.common import utcnow, as_utc
from foodorder.models.core import Coupon, DiscountType, Order, Restaurant, UserRole
from foodorder.schemas.coupons import CouponIn
from foodorder.services.actor import Actor, require_role
from foodorder.util.tx import commit

logger = logging.getLogger(__name__)


# ── Eligibility ─────────────────────────────────────────────────────────────
def validate_for_application(order, coupon: Coupon, usage_count: int, now: datetime,
                             total_usage: int = 0) -> None:
    # an order carries one coupon; checked first so a second coupon always conflicts
    if order.coupon_id is not None:
        raise CouponAlreadyApplied("A coupon is already applied to this order.")
    if not coupon.active:
        raise CouponInactive("This coupon is not active.")
    if not (as_utc(coupon.valid_from) <= as_utc(now) <= as_utc(coupon.valid_to)):
        raise CouponExpired("This coupon is not valid at this time.")
    if coupon.restaurant_id is not None and coupon.restaurant_id != order.restaurant_id:
        raise CouponNotApplicable("This coupon is not valid for the selected restaurant.")
    if order.subtotal < coupon.min_order_value:
        raise BelowMinimumOrder("Order total is less than the minimum required to use this coupon.")
    if usage_count >= coupon.per_user_limit:
        raise UsageLimitExceeded("You have already used this coupon the maximum allowed times.")
    if coupon.usage_limit is not None and total_usage >= coupon.usage_limit:
        raise UsageLimitExceeded("This coupon has reached its usage limit.")


def count_coupon_usage_by_user(db: Session, user_id: str, coupon_id: str) -> int:
    return int(
        db.query(func.count(Order.id))
          .filter(Order.customer_id == user_id, Order.coupon_id == coupon_id)
          .scalar() or 0
    )


def count_coupon_usage(db: Session, coupon_id: str) -> int:
    return int(db.query(func.count(Order.id)).filter(Order.coupon_id == coupon_id).scalar() or 0)


def find_coupon_by_code(db: Session, code: str) -> Coupon:
    coupon = db.query(Coupon).filter(Coupon.code == code).first()
    if not coupon:
        raise NotFound("Invalid coupon code")
    return coupon


# ── Creation-time rules ─────────────────────────────────────────────────────
def validate_new_coupon(db: Session, code: str, restaurant_id: str | None,
                        discount_type: DiscountType, active: bool,
                        exclude_id: str | None = None) -> None:
    q = db.query(Coupon.id).filter(Coupon.code == code)
    if exclude_id:
        q = q.filter(Coupon.id != exclude_id)
    if q.first():
        raise DuplicateCouponCode("A coupon with this code already exists.")

    if restaurant_id is not None and active:
        q = db.query(Coupon.id).filter(
            Coupon.restaurant_id == restaurant_id,
            Coupon.discount_type == discount_type,
            Coupon.active.is_(True),
        )
        if exclude_id:
            q = q.filter(Coupon.id != exclude_id)
        if q.first():
            raise DuplicateActiveCouponType("Only one active coupon of this type is allowed per restaurant.")


def _save(db: Session, coupon: Coupon) -> Coupon:
    # the unique constraints are the last word when two creators race
    try:
        commit(db)
    except IntegrityError as exc:
        db.rollback()
        msg = str(exc.orig)
        if "uq_coupon_active_type" in msg or "discount_type" in msg:
            raise DuplicateActiveCouponType("Only one active coupon of this type is allowed per restaurant.")
        raise DuplicateCouponCode("A coupon with this code already exists.")
    db.refresh(coupon)
    return coupon


def _fields(body: CouponIn) -> dict:
    data = body.model_dump()
    data["discount_type"] = DiscountType(data["discount_type"])
    return data


def _owned_restaurant(db: Session, restaurant_id: str, actor: Actor) -> Restaurant:
    restaurant = db.get(Restaurant, restaurant_id)
    if not restaurant:
        raise NotFound("Restaurant not found")
    if actor.role != UserRole.RESTAURANT_OWNER or restaurant.owner_id != actor.id:
        logger.warning("User %s denied coupon access to restaurant %s", actor.id, restaurant_id)
        raise Unauthorized("You can only manage coupons for your own restaurant.")
    return restaurant


def _locked(db: Session, coupon_id: str) -> Coupon:
    coupon = db.query(Coupon).filter(Coupon.id == coupon_id).with_for_update().one_or_none()
    if not coupon:
        raise NotFound("Coupon not found")
    return coupon


# ── Management ──────────────────────────────────────────────────────────────
def create_global_coupon(db: Session, body: CouponIn, actor: Actor) -> Coupon:
    require_role(actor, UserRole.ADMIN, message="Only admin can create global coupons.")
    data = _fields(body)
    validate_new_coupon(db, data["code"], None, data["discount_type"], data["active"])
    coupon = Coupon(**data, restaurant_id=None)
    db.add(coupon)
    _save(db, coupon)
    logger.info("Global coupon '%s' created by %s", coupon.code, actor.id)
    return coupon


def create_restaurant_coupon(db: Session, restaurant_id: str, body: CouponIn, actor: Actor) -> Coupon:
    _owned_restaurant(db, restaurant_id, actor)
    data = _fields(body)
    validate_new_coupon(db, data["code"], restaurant_id, data["discount_type"], data["active"])
    coupon = Coupon(**data, restaurant_id=restaurant_id)
    db.add(coupon)
    _save(db, coupon)
    logger.info("Coupon '%s' created for restaurant %s by %s", coupon.code, restaurant_id, actor.id)
    return coupon


def get_coupon_by_code(db: Session, code: str, now: datetime | None = None) -> Coupon:
    coupon = find_coupon_by_code(db, code)
    now = now or utcnow()
    if as_utc(coupon.valid_to) < as_utc(now):
        raise CouponExpired("This coupon has expired.")
    return coupon


def update_global_coupon(db: Session, coupon_id: str, body: CouponIn, actor: Actor) -> Coupon:
    require_role(actor, UserRole.ADMIN, message="Only admin can update global coupons.")
    coupon = _locked(db, coupon_id)
    if coupon.restaurant_id is not None:
        raise Unauthorized("Admins can only update global coupons.")
    data = _fields(body)
    validate_new_coupon(db, data["code"], None, data["discount_type"], data["active"], exclude_id=coupon.id)
    for k, v in data.items():
        setattr(coupon, k, v)
    _save(db, coupon)
    logger.info("Global coupon %s updated by %s", coupon_id, actor.id)
    return coupon


def update_restaurant_coupon(db: Session, coupon_id: str, body: CouponIn, actor: Actor) -> Coupon:
    coupon = _locked(db, coupon_id)
    if coupon.restaurant_id is None:
        raise Unauthorized("You can only update coupons for your own restaurant.")
    _owned_restaurant(db, coupon.restaurant_id, actor)
    data = _fields(body)
    validate_new_coupon(db, data["code"], coupon.restaurant_id, data["discount_type"], data["active"],
                        exclude_id=coupon.id)
    for k, v in data.items():
        setattr(coupon, k, v)
    _save(db, coupon)
    logger.info("Coupon %s updated by owner %s", coupon_id, actor.id)
    return coupon


def _delete(db: Session, coupon: Coupon) -> None:
    if count_coupon_usage(db, coupon.id):
        raise Conflict("Coupon has been used by orders; deactivate it instead.")
    db.delete(coupon)
    commit(db)


def delete_global_coupon(db: Session, coupon_id: str, actor: Actor) -> None:
    require_role(actor, UserRole.ADMIN, message="Only admin can delete global coupons.")
    coupon = _locked(db, coupon_id)
    if coupon.restaurant_id is not None:
        raise Unauthorized("Admins can only delete global coupons.")
    _delete(db, coupon)
    logger.info("Global coupon %s deleted by %s", coupon_id, actor.id)


def delete_restaurant_coupon(db: Session, coupon_id: str, actor: Actor) -> None:
    coupon = _locked(db, coupon_id)
    if coupon.restaurant_id is None:
        raise Unauthorized("You can only delete coupons for your own restaurant.")
    _owned_restaurant(db, coupon.restaurant_id, actor)
    _delete(db, coupon)
    logger.info("Coupon %s deleted by owner %s", coupon_id, actor.id)
