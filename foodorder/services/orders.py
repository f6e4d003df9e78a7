"""Order lifecycle: placement, status transitions and coupon side-mutations.

``TRANSITIONS`` is the only place that says who may move an order where.
Every status change, including the ones driven by the delivery
coordinator, goes through ``authorize_transition`` / ``apply_transition``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from foodorder.config import settings
from foodorder.errors import (
    NotFound, InvalidInput, Unauthorized, InvalidStateTransition,
    UnauthorizedTransition, NoCouponApplied,
)
from foodorder.models.common import utcnow
from foodorder.models.core import (
    Order, OrderItem, OrderStatus, MenuItem, Restaurant, CustomerAddress, UserRole,
)
from foodorder.schemas.orders import PlaceOrderIn
from foodorder.services.actor import Actor
from foodorder.services.coupons import (
    find_coupon_by_code, validate_for_application,
    count_coupon_usage_by_user, count_coupon_usage,
)
from foodorder.services.pricing import compute_order_totals, compute_discount, ZERO
from foodorder.util.tx import commit

logger = logging.getLogger(__name__)

ETA_MINUTES = 30


# ── Transition table ────────────────────────────────────────────────────────
@dataclass(frozen=True)
class OrderContext:
    order: Order
    restaurant_owner_id: str | None


def _restaurant_owner(ctx: OrderContext, actor: Actor) -> bool:
    return actor.role == UserRole.RESTAURANT_OWNER and actor.id == ctx.restaurant_owner_id

def _assigned_delivery_person(ctx: OrderContext, actor: Actor) -> bool:
    return (actor.role == UserRole.DELIVERY_PERSON
            and ctx.order.delivery_person_id is not None
            and actor.id == ctx.order.delivery_person_id)

def _admin(ctx: OrderContext, actor: Actor) -> bool:
    return actor.role == UserRole.ADMIN

def _order_customer(ctx: OrderContext, actor: Actor) -> bool:
    return actor.role == UserRole.CUSTOMER and actor.id == ctx.order.customer_id


@dataclass(frozen=True)
class TransitionRule:
    sources: frozenset[OrderStatus]
    allowed: Callable[[OrderContext, Actor], bool]
    denied: str


TRANSITIONS: dict[OrderStatus, TransitionRule] = {
    # CONFIRMED/PENDING are only ever entered at placement
    OrderStatus.PENDING: TransitionRule(
        frozenset(), _order_customer, "Orders enter PENDING only when placed."),
    OrderStatus.CONFIRMED: TransitionRule(
        frozenset(), _order_customer, "Orders are confirmed only when placed."),
    OrderStatus.PREPARING: TransitionRule(
        frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.READY_FOR_PICKUP}),
        _restaurant_owner, "Only the restaurant owner can update this status."),
    OrderStatus.READY_FOR_PICKUP: TransitionRule(
        frozenset({OrderStatus.PREPARING}),
        _restaurant_owner, "Only the restaurant owner can update this status."),
    OrderStatus.ASSIGNED: TransitionRule(
        frozenset({OrderStatus.PENDING, OrderStatus.PREPARING}),
        _admin, "Only an admin can assign an order for delivery."),
    OrderStatus.OUT_FOR_DELIVERY: TransitionRule(
        frozenset({OrderStatus.ASSIGNED}),
        _assigned_delivery_person, "Only the assigned delivery person can update this status."),
    OrderStatus.DELIVERED: TransitionRule(
        frozenset({OrderStatus.OUT_FOR_DELIVERY}),
        _assigned_delivery_person, "Only the assigned delivery person can update this status."),
}

TERMINAL = frozenset({OrderStatus.DELIVERED})


def authorize_transition(ctx: OrderContext, target: OrderStatus, actor: Actor) -> None:
    rule = TRANSITIONS[target]
    if not rule.allowed(ctx, actor):
        logger.warning("User %s (%s) denied %s -> %s on order %s",
                       actor.id, actor.role.value, ctx.order.status.value, target.value, ctx.order.id)
        raise UnauthorizedTransition(rule.denied)
    if ctx.order.status not in rule.sources:
        raise InvalidStateTransition(
            f"Cannot move order from {ctx.order.status.value} to {target.value}.")
    if target == OrderStatus.ASSIGNED and ctx.order.delivery_person_id is None:
        raise InvalidStateTransition("Assign a delivery person to move the order to ASSIGNED.")


def apply_transition(ctx: OrderContext, target: OrderStatus, actor: Actor) -> Order:
    authorize_transition(ctx, target, actor)
    order = ctx.order
    previous = order.status
    order.status = target
    order.updated_at = utcnow()
    logger.info("Order %s %s -> %s by %s", order.id, previous.value, target.value, actor.id)
    return order


# ── Loading ─────────────────────────────────────────────────────────────────
def load_order(db: Session, order_id: str, lock: bool = False) -> Order:
    q = db.query(Order).filter(Order.id == order_id)
    if lock:
        q = q.with_for_update()
    order = q.one_or_none()
    if not order:
        raise NotFound(f"Order not found with ID: {order_id}")
    return order


def order_context(db: Session, order: Order) -> OrderContext:
    restaurant = db.get(Restaurant, order.restaurant_id)
    return OrderContext(order=order, restaurant_owner_id=restaurant.owner_id if restaurant else None)


def _can_view(db: Session, order: Order, actor: Actor) -> bool:
    if actor.role == UserRole.ADMIN or actor.id in (order.customer_id, order.delivery_person_id):
        return True
    return actor.role == UserRole.RESTAURANT_OWNER and order_context(db, order).restaurant_owner_id == actor.id


def get_order(db: Session, order_id: str, actor: Actor) -> Order:
    order = load_order(db, order_id)
    if not _can_view(db, order, actor):
        raise Unauthorized("You are not allowed to view this order.")
    return order


def list_orders_for_user(db: Session, user_id: str) -> list[Order]:
    return (db.query(Order)
              .filter(Order.customer_id == user_id)
              .order_by(Order.created_at.desc())
              .all())


# ── Coupon side-mutations ───────────────────────────────────────────────────
def _attach_coupon(db: Session, order: Order, code: str, now: datetime) -> None:
    coupon = find_coupon_by_code(db, code)
    validate_for_application(
        order, coupon,
        usage_count=count_coupon_usage_by_user(db, order.customer_id, coupon.id),
        total_usage=count_coupon_usage(db, coupon.id),
        now=now,
    )
    discount = compute_discount(order.subtotal, coupon)
    order.coupon_id = coupon.id
    order.coupon = coupon
    order.discount_amount = discount
    order.total_amount = order.subtotal - discount


def _check_coupon_access(order: Order, actor: Actor) -> None:
    if actor.role != UserRole.ADMIN and actor.id != order.customer_id:
        raise Unauthorized("Only the customer who placed the order can change its coupon.")
    if order.status in TERMINAL:
        raise InvalidStateTransition("Coupons cannot be changed on a delivered order.")


def apply_coupon(db: Session, order_id: str, code: str, actor: Actor, now: datetime | None = None) -> Order:
    logger.info("Applying coupon '%s' to order %s", code, order_id)
    # re-validated on the locked row so two racing applies cannot both discount
    order = load_order(db, order_id, lock=True)
    _check_coupon_access(order, actor)
    _attach_coupon(db, order, code, now or utcnow())
    order.updated_at = utcnow()
    commit(db)
    db.refresh(order)
    logger.info("Coupon '%s' applied to order %s, discount %s", code, order_id, order.discount_amount)
    return order


def remove_coupon(db: Session, order_id: str, actor: Actor) -> Order:
    order = load_order(db, order_id, lock=True)
    _check_coupon_access(order, actor)
    if order.coupon_id is None:
        logger.warning("No coupon found for order %s", order_id)
        raise NoCouponApplied("No coupon applied to this order.")
    order.total_amount = order.total_amount + order.discount_amount
    order.coupon_id = None
    order.coupon = None
    order.discount_amount = ZERO
    order.updated_at = utcnow()
    commit(db)
    db.refresh(order)
    logger.info("Coupon removed from order %s", order_id)
    return order


# ── Placement ───────────────────────────────────────────────────────────────
def place_order(db: Session, actor: Actor, body: PlaceOrderIn, now: datetime | None = None) -> Order:
    if actor.role != UserRole.CUSTOMER:
        raise UnauthorizedTransition("Only customers can place orders.")
    now = now or utcnow()

    restaurant = db.get(Restaurant, body.restaurant_id)
    if not restaurant:
        raise NotFound("Restaurant not found")
    address = db.get(CustomerAddress, body.delivery_address_id)
    if not address:
        raise NotFound("Delivery address not found")
    if address.user_id != actor.id:
        raise Unauthorized("Delivery address does not belong to you.")

    lines: list[OrderItem] = []
    for item in body.items:
        menu_item = db.get(MenuItem, item.menu_item_id)
        if not menu_item:
            raise NotFound("Menu item not found")
        if menu_item.restaurant_id != restaurant.id:
            raise InvalidInput(f"Menu item {menu_item.id} does not belong to the selected restaurant")
        if not menu_item.available:
            raise InvalidInput(f"Menu item {menu_item.id} is not available")
        lines.append(OrderItem(
            menu_item_id=menu_item.id,
            quantity=item.quantity,
            unit_price=menu_item.price,
            special_request=item.special_request,
        ))

    totals = compute_order_totals(lines, settings.TAX_RATE, settings.DELIVERY_FEE)
    order = Order(
        customer_id=actor.id,
        restaurant_id=restaurant.id,
        delivery_address_id=address.id,
        status=OrderStatus.CONFIRMED,
        subtotal=totals.subtotal,
        tax_amount=totals.tax,
        delivery_fee=totals.delivery_fee,
        discount_amount=ZERO,
        total_amount=totals.subtotal,
        special_instructions=body.special_instructions,
        estimated_delivery_at=now + timedelta(minutes=ETA_MINUTES),
        created_at=now,
        updated_at=now,
        items=lines,
    )
    # coupon failures abort before the order touches the session
    if body.coupon_code:
        _attach_coupon(db, order, body.coupon_code, now)

    db.add(order)
    commit(db)
    db.refresh(order)
    logger.info("Order %s placed by %s at restaurant %s (total %s)",
                order.id, actor.id, restaurant.id, order.total_amount)
    return order


def update_order_status(db: Session, order_id: str, target: OrderStatus, actor: Actor) -> Order:
    logger.info("User %s updating order %s to %s", actor.id, order_id, target.value)
    order = load_order(db, order_id, lock=True)
    apply_transition(order_context(db, order), target, actor)
    commit(db)
    db.refresh(order)
    return order
