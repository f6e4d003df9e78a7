from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Protocol

from foodorder.errors import InvalidOrderAmount
from foodorder.models.core import DiscountType

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def _money(x) -> Decimal:
    return Decimal(str(x)).quantize(CENT, rounding=ROUND_HALF_UP)


class PricedLine(Protocol):
    unit_price: Decimal
    quantity: int


class DiscountRule(Protocol):
    discount_type: DiscountType
    discount_value: Decimal
    max_discount: Decimal | None


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax: Decimal
    delivery_fee: Decimal


def compute_order_totals(line_items: Iterable[PricedLine], tax_rate, flat_delivery_fee) -> OrderTotals:
    subtotal = sum((Decimal(str(line.unit_price)) * line.quantity for line in line_items), ZERO)
    if subtotal <= 0:
        raise InvalidOrderAmount("Total amount must be greater than zero")
    tax_rate = Decimal(str(tax_rate))
    fee = Decimal(str(flat_delivery_fee))
    if tax_rate < 0:
        raise InvalidOrderAmount("Tax cannot be negative")
    if fee < 0:
        raise InvalidOrderAmount("Delivery fee cannot be negative")
    return OrderTotals(
        subtotal=_money(subtotal),
        tax=_money(subtotal * tax_rate),
        delivery_fee=_money(fee),
    )


def compute_discount(subtotal, coupon: DiscountRule) -> Decimal:
    """Discount a coupon grants on ``subtotal``.

    Percentage coupons round the rate half-up to two places (12.50% is
    applied as 0.13) before multiplying, and are capped by
    ``max_discount`` when one is set; fixed coupons grant their
    value, capped the same way. Never more than the subtotal, never negative.
    """
    subtotal = Decimal(str(subtotal))
    value = Decimal(str(coupon.discount_value))
    cap = Decimal(str(coupon.max_discount)) if coupon.max_discount is not None else None

    if coupon.discount_type == DiscountType.PERCENTAGE:
        rate = (value / 100).quantize(CENT, rounding=ROUND_HALF_UP)
        discount = subtotal * rate
    elif coupon.discount_type == DiscountType.FIXED:
        discount = value
    else:
        raise ValueError(f"unsupported discount type: {coupon.discount_type}")

    if cap is not None:
        discount = min(discount, cap)
    discount = max(min(discount, subtotal), ZERO)
    return _money(discount)
