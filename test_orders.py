# test_orders.py
from decimal import Decimal
import itertools

import pytest

from foodorder.errors import (
    NotFound, InvalidInput, Unauthorized, InvalidStateTransition, UnauthorizedTransition,
    CouponAlreadyApplied, CouponNotApplicable, NoCouponApplied, UsageLimitExceeded,
    ConcurrentModification, BelowMinimumOrder,
)
from foodorder.models.core import Order, OrderStatus, UserRole, DiscountType
from foodorder.schemas.orders import PlaceOrderIn, OrderLineIn
from foodorder.services import orders as svc
from foodorder.services.actor import Actor


def place(db, seed, qty=2, coupon_code=None, actor=None, items=None):
    body = PlaceOrderIn(
        restaurant_id=seed.restaurant_id,
        delivery_address_id=seed.address_id,
        items=items or [OrderLineIn(menu_item_id=seed.curry_id, quantity=qty)],
        coupon_code=coupon_code,
    )
    return svc.place_order(db, actor or seed.customer, body)


def force_status(db, order, status, delivery_person_id=None):
    order.status = status
    if delivery_person_id:
        order.delivery_person_id = delivery_person_id
    db.commit()
    db.refresh(order)
    return order


# ── Placement ───────────────────────────────────────────────────────────────
def test_place_order_prices_from_catalog(db, seed):
    o = place(db, seed, items=[
        OrderLineIn(menu_item_id=seed.curry_id, quantity=2),
        OrderLineIn(menu_item_id=seed.naan_id, quantity=2),
    ])
    assert o.status == OrderStatus.CONFIRMED
    assert o.subtotal == Decimal("251.00")
    assert o.tax_amount == Decimal("12.55")
    assert o.delivery_fee == Decimal("50.00")
    assert o.discount_amount == Decimal("0")
    assert o.total_amount == Decimal("251.00")
    assert {line.unit_price for line in o.items} == {Decimal("100.00"), Decimal("25.50")}
    assert o.estimated_delivery_at is not None

def test_place_order_with_coupon(db, seed, make_coupon):
    make_coupon(code="SAVE20", restaurant_id=seed.restaurant_id)
    o = place(db, seed, qty=2, coupon_code="SAVE20")
    assert o.discount_amount == Decimal("30.00")
    assert o.total_amount == Decimal("170.00")
    assert o.coupon.code == "SAVE20"

def test_invalid_coupon_persists_nothing(db, seed, make_coupon):
    make_coupon(code="ELSEWHERE", restaurant_id=seed.other_restaurant_id)
    with pytest.raises(CouponNotApplicable):
        place(db, seed, coupon_code="ELSEWHERE")
    assert db.query(Order).count() == 0

def test_unknown_coupon_persists_nothing(db, seed):
    with pytest.raises(NotFound):
        place(db, seed, coupon_code="GHOST")
    assert db.query(Order).count() == 0

def test_only_customers_place_orders(db, seed):
    with pytest.raises(Unauthorized):
        place(db, seed, actor=seed.owner)

def test_menu_item_must_belong_to_restaurant(db, seed):
    with pytest.raises(InvalidInput):
        place(db, seed, items=[OrderLineIn(menu_item_id=seed.noodles_id, quantity=1)])

def test_unavailable_item_rejected(db, seed):
    with pytest.raises(InvalidInput):
        place(db, seed, items=[OrderLineIn(menu_item_id=seed.sold_out_id, quantity=1)])

def test_address_must_belong_to_customer(db, seed):
    body = PlaceOrderIn(restaurant_id=seed.restaurant_id, delivery_address_id=seed.other_address_id,
                        items=[OrderLineIn(menu_item_id=seed.curry_id, quantity=1)])
    with pytest.raises(Unauthorized):
        svc.place_order(db, seed.customer, body)

def test_missing_restaurant(db, seed):
    body = PlaceOrderIn(restaurant_id="nope", delivery_address_id=seed.address_id,
                        items=[OrderLineIn(menu_item_id=seed.curry_id, quantity=1)])
    with pytest.raises(NotFound):
        svc.place_order(db, seed.customer, body)


# ── Coupons on existing orders ──────────────────────────────────────────────
def test_apply_then_remove_restores_totals(db, seed, make_coupon):
    make_coupon(code="SAVE20")
    o = place(db, seed, qty=2)
    before_total, before_discount = o.total_amount, o.discount_amount

    o = svc.apply_coupon(db, o.id, "SAVE20", seed.customer)
    assert o.discount_amount == Decimal("30.00")
    assert o.total_amount == Decimal("170.00")

    o = svc.remove_coupon(db, o.id, seed.customer)
    assert o.total_amount == before_total
    assert o.discount_amount == before_discount
    assert o.coupon_id is None

def test_second_coupon_always_conflicts(db, seed, make_coupon):
    make_coupon(code="FIRST")
    make_coupon(code="BOGUS", active=False, restaurant_id=seed.other_restaurant_id)
    o = place(db, seed, qty=2, coupon_code="FIRST")
    with pytest.raises(CouponAlreadyApplied):
        svc.apply_coupon(db, o.id, "BOGUS", seed.customer)

def test_remove_without_coupon(db, seed):
    o = place(db, seed)
    with pytest.raises(NoCouponApplied):
        svc.remove_coupon(db, o.id, seed.customer)

def test_per_user_limit_counts_prior_orders(db, seed, make_coupon):
    make_coupon(code="ONCE", per_user_limit=1)
    place(db, seed, qty=2, coupon_code="ONCE")
    o2 = place(db, seed, qty=2)
    with pytest.raises(UsageLimitExceeded):
        svc.apply_coupon(db, o2.id, "ONCE", seed.customer)

def test_below_minimum_order(db, seed, make_coupon):
    make_coupon(code="BIG", min_order_value="500.00")
    o = place(db, seed, qty=1)
    with pytest.raises(BelowMinimumOrder):
        svc.apply_coupon(db, o.id, "BIG", seed.customer)

def test_only_order_owner_changes_coupon(db, seed, make_coupon):
    make_coupon(code="SAVE20")
    o = place(db, seed, qty=2)
    with pytest.raises(Unauthorized):
        svc.apply_coupon(db, o.id, "SAVE20", seed.other_customer)

def test_coupon_frozen_after_delivery(db, seed, make_coupon):
    make_coupon(code="SAVE20")
    o = force_status(db, place(db, seed, qty=2), OrderStatus.DELIVERED)
    with pytest.raises(InvalidStateTransition):
        svc.apply_coupon(db, o.id, "SAVE20", seed.customer)

def test_racing_applies_cannot_both_discount(db, session_factory, seed, make_coupon):
    make_coupon(code="A", max_discount=None)
    make_coupon(code="B", discount_type=DiscountType.FIXED, value="10.00", max_discount=None)
    o = place(db, seed, qty=2)

    other = session_factory()
    try:
        stale = other.get(Order, o.id)  # loaded before the first apply commits
        assert stale.coupon_id is None
        svc.apply_coupon(db, o.id, "A", seed.customer)
        with pytest.raises((ConcurrentModification, CouponAlreadyApplied)):
            svc.apply_coupon(other, o.id, "B", seed.customer)
    finally:
        other.close()

    db.expire_all()
    fresh = db.get(Order, o.id)
    assert fresh.coupon.code == "A"
    assert fresh.discount_amount == Decimal("40.00")


# ── Status transitions ──────────────────────────────────────────────────────
def test_owner_moves_pending_to_preparing(db, seed):
    o = force_status(db, place(db, seed), OrderStatus.PENDING)
    before = o.updated_at
    o = svc.update_order_status(db, o.id, OrderStatus.PREPARING, seed.owner)
    assert o.status == OrderStatus.PREPARING
    assert o.updated_at > before

def test_confirmed_to_preparing_to_ready(db, seed):
    o = place(db, seed)
    o = svc.update_order_status(db, o.id, OrderStatus.PREPARING, seed.owner)
    o = svc.update_order_status(db, o.id, OrderStatus.READY_FOR_PICKUP, seed.owner)
    assert o.status == OrderStatus.READY_FOR_PICKUP

def test_other_owner_cannot_prepare(db, seed):
    o = place(db, seed)
    with pytest.raises(UnauthorizedTransition):
        svc.update_order_status(db, o.id, OrderStatus.PREPARING, seed.other_owner)

def test_owner_cannot_mark_delivered(db, seed):
    o = place(db, seed)
    with pytest.raises(UnauthorizedTransition):
        svc.update_order_status(db, o.id, OrderStatus.DELIVERED, seed.owner)

def test_ready_requires_preparing(db, seed):
    o = place(db, seed)
    with pytest.raises(InvalidStateTransition):
        svc.update_order_status(db, o.id, OrderStatus.READY_FOR_PICKUP, seed.owner)

def test_admin_status_update_to_assigned_needs_a_rider(db, seed):
    o = force_status(db, place(db, seed), OrderStatus.PREPARING)
    with pytest.raises(InvalidStateTransition):
        svc.update_order_status(db, o.id, OrderStatus.ASSIGNED, seed.admin)

def test_unknown_order(db, seed):
    with pytest.raises(NotFound):
        svc.update_order_status(db, "missing", OrderStatus.PREPARING, seed.owner)


ALLOWED = {
    (OrderStatus.PENDING, OrderStatus.PREPARING, "owner"),
    (OrderStatus.CONFIRMED, OrderStatus.PREPARING, "owner"),
    (OrderStatus.READY_FOR_PICKUP, OrderStatus.PREPARING, "owner"),
    (OrderStatus.PREPARING, OrderStatus.READY_FOR_PICKUP, "owner"),
    (OrderStatus.ASSIGNED, OrderStatus.OUT_FOR_DELIVERY, "rider"),
    (OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED, "rider"),
    # admin may move an order that already carries a rider into ASSIGNED
    (OrderStatus.PENDING, OrderStatus.ASSIGNED, "admin"),
    (OrderStatus.PREPARING, OrderStatus.ASSIGNED, "admin"),
}
ACTORS = {
    "admin": Actor("a1", UserRole.ADMIN),
    "owner": Actor("w1", UserRole.RESTAURANT_OWNER),
    "other_owner": Actor("w2", UserRole.RESTAURANT_OWNER),
    "customer": Actor("c1", UserRole.CUSTOMER),
    "rider": Actor("d1", UserRole.DELIVERY_PERSON),
    "rider2": Actor("d2", UserRole.DELIVERY_PERSON),
}


@pytest.mark.parametrize("source,target,who", list(itertools.product(OrderStatus, OrderStatus, ACTORS)))
def test_transition_table(source, target, who):
    ctx = svc.OrderContext(
        order=Order(id="o1", customer_id="c1", restaurant_id="r1", delivery_person_id="d1", status=source),
        restaurant_owner_id="w1",
    )
    actor = ACTORS[who]
    if (source, target, who) in ALLOWED:
        svc.apply_transition(ctx, target, actor)
        assert ctx.order.status == target
        assert ctx.order.updated_at is not None
    else:
        with pytest.raises((UnauthorizedTransition, InvalidStateTransition)):
            svc.apply_transition(ctx, target, actor)
        assert ctx.order.status == source


def test_role_without_ownership_is_unauthorized():
    ctx = svc.OrderContext(
        order=Order(id="o1", customer_id="c", restaurant_id="r", delivery_person_id="d1",
                    status=OrderStatus.ASSIGNED),
        restaurant_owner_id="owner",
    )
    with pytest.raises(UnauthorizedTransition):
        svc.authorize_transition(ctx, OrderStatus.OUT_FOR_DELIVERY, Actor("d2", UserRole.DELIVERY_PERSON))
