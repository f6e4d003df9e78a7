from pydantic import BaseModel, Field
from typing import Optional, Literal, List
from datetime import datetime
from decimal import Decimal

OrderStatusLiteral = Literal[
    "PENDING", "CONFIRMED", "PREPARING", "READY_FOR_PICKUP",
    "ASSIGNED", "OUT_FOR_DELIVERY", "DELIVERED",
]
PaymentMethodLiteral = Literal["CREDIT_CARD", "DEBIT_CARD", "UPI", "CASH_ON_DELIVERY"]
PaymentStatusLiteral = Literal["PENDING", "SUCCESS", "FAILED", "REFUNDED"]

class OrderLineIn(BaseModel):
    menu_item_id: str
    quantity: int = Field(gt=0)
    special_request: Optional[str] = None

class PlaceOrderIn(BaseModel):
    restaurant_id: str
    delivery_address_id: str
    items: List[OrderLineIn] = Field(min_length=1)
    coupon_code: Optional[str] = None
    special_instructions: Optional[str] = None

class OrderStatusIn(BaseModel):
    status: OrderStatusLiteral

class CouponApplyIn(BaseModel):
    coupon_code: str

class OrderLineOut(BaseModel):
    id: str
    menu_item_id: str
    quantity: int
    unit_price: Decimal
    special_request: Optional[str] = None

class OrderOut(BaseModel):
    id: str
    customer_id: str
    restaurant_id: str
    delivery_address_id: str
    delivery_person_id: Optional[str] = None
    status: OrderStatusLiteral
    items: List[OrderLineOut]
    subtotal: Decimal
    tax_amount: Decimal
    delivery_fee: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    payable_amount: Decimal
    coupon_code: Optional[str] = None
    payment_id: Optional[str] = None
    special_instructions: Optional[str] = None
    estimated_delivery_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, o) -> "OrderOut":
        return cls(
            id=o.id,
            customer_id=o.customer_id,
            restaurant_id=o.restaurant_id,
            delivery_address_id=o.delivery_address_id,
            delivery_person_id=o.delivery_person_id,
            status=o.status.value,
            items=[
                OrderLineOut(id=line.id, menu_item_id=line.menu_item_id, quantity=line.quantity,
                             unit_price=line.unit_price, special_request=line.special_request)
                for line in o.items
            ],
            subtotal=o.subtotal,
            tax_amount=o.tax_amount,
            delivery_fee=o.delivery_fee,
            discount_amount=o.discount_amount,
            total_amount=o.total_amount,
            payable_amount=o.total_amount + o.tax_amount + o.delivery_fee,
            coupon_code=o.coupon.code if o.coupon else None,
            payment_id=o.payment_id,
            special_instructions=o.special_instructions,
            estimated_delivery_at=o.estimated_delivery_at,
            created_at=o.created_at,
            updated_at=o.updated_at,
        )

class AssignIn(BaseModel):
    delivery_person_id: str

class PaymentIn(BaseModel):
    order_id: str
    amount: Decimal = Field(gt=0)
    method: PaymentMethodLiteral

class PaymentUpdateIn(BaseModel):
    # only the fields a caller actually sends count as requested
    status: Optional[PaymentStatusLiteral] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    method: Optional[PaymentMethodLiteral] = None
    transaction_id: Optional[str] = None

class PaymentStatusIn(BaseModel):
    status: PaymentStatusLiteral

class PaymentOut(BaseModel):
    id: str
    order_id: str
    user_id: str
    amount: Decimal
    method: PaymentMethodLiteral
    status: PaymentStatusLiteral
    transaction_id: Optional[str] = None
    invoice_ref: Optional[str] = None
    paid_at: Optional[datetime] = None

    @classmethod
    def from_payment(cls, p) -> "PaymentOut":
        return cls(
            id=p.id, order_id=p.order_id, user_id=p.user_id, amount=p.amount,
            method=p.method.value, status=p.status.value,
            transaction_id=p.transaction_id, invoice_ref=p.invoice_ref, paid_at=p.paid_at,
        )
