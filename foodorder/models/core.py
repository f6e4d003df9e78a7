from sqlalchemy import (
    String, ForeignKey, Boolean, Numeric, Enum, Text, DateTime, Integer, Index, text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from enum import Enum as PyEnum
from datetime import datetime
from decimal import Decimal
from foodorder.db import Base
from foodorder.models.common import IdMixin, TSMMixin

# ── Enums ───────────────────────────────────────────────────────────────────
class UserRole(PyEnum):
    CUSTOMER = "CUSTOMER"
    DELIVERY_PERSON = "DELIVERY_PERSON"
    ADMIN = "ADMIN"
    RESTAURANT_OWNER = "RESTAURANT_OWNER"

class ApprovalStatus(PyEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

class OrderStatus(PyEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    ASSIGNED = "ASSIGNED"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"  # terminal

class DiscountType(PyEnum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"

class PaymentStatus(PyEnum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"

class PaymentMethod(PyEnum):
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    UPI = "UPI"
    CASH_ON_DELIVERY = "CASH_ON_DELIVERY"

# ── Identity ────────────────────────────────────────────────────────────────
class User(Base, IdMixin, TSMMixin):
    __tablename__ = "user"
    name: Mapped[str] = mapped_column(String(160))
    email: Mapped[str] = mapped_column(String(160), unique=True)
    phone: Mapped[str | None] = mapped_column(String(20))
    pass_hash: Mapped[str] = mapped_column(String(200))
    role: Mapped[UserRole] = mapped_column(Enum(UserRole))
    approval_status: Mapped[ApprovalStatus] = mapped_column(Enum(ApprovalStatus), default=ApprovalStatus.APPROVED)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

class CustomerAddress(Base, IdMixin, TSMMixin):
    __tablename__ = "customer_address"
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"))
    line1: Mapped[str] = mapped_column(String(200))
    city: Mapped[str] = mapped_column(String(80))
    postal_code: Mapped[str | None] = mapped_column(String(12))

# ── Catalog ─────────────────────────────────────────────────────────────────
class Restaurant(Base, IdMixin, TSMMixin):
    __tablename__ = "restaurant"
    owner_id: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"))
    name: Mapped[str] = mapped_column(String(160))
    address: Mapped[str | None] = mapped_column(Text)

class MenuItem(Base, IdMixin, TSMMixin):
    __tablename__ = "menu_item"
    restaurant_id: Mapped[str] = mapped_column(String(36), ForeignKey("restaurant.id"))
    name: Mapped[str] = mapped_column(String(160))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    available: Mapped[bool] = mapped_column(Boolean, default=True)

# ── Coupons ─────────────────────────────────────────────────────────────────
class Coupon(Base, IdMixin, TSMMixin):
    __tablename__ = "coupon"
    code: Mapped[str] = mapped_column(String(40), unique=True)
    restaurant_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("restaurant.id"))  # NULL = global
    discount_type: Mapped[DiscountType] = mapped_column(Enum(DiscountType))
    discount_value: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    max_discount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    min_order_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    usage_limit: Mapped[int | None] = mapped_column(Integer)
    per_user_limit: Mapped[int] = mapped_column(Integer, default=1)
    valid_from: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    valid_to: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        # one active coupon per discount type per restaurant
        Index(
            "uq_coupon_active_type", "restaurant_id", "discount_type", unique=True,
            sqlite_where=text("active = 1"), postgresql_where=text("active"),
        ),
    )

# ── Orders / Payments ───────────────────────────────────────────────────────
class Order(Base, IdMixin, TSMMixin):
    __tablename__ = "order"
    customer_id: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"))
    restaurant_id: Mapped[str] = mapped_column(String(36), ForeignKey("restaurant.id"))
    delivery_address_id: Mapped[str] = mapped_column(String(36), ForeignKey("customer_address.id"))
    delivery_person_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))
    status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), default=OrderStatus.PENDING)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))  # subtotal - discount
    coupon_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("coupon.id"))
    payment_id: Mapped[str | None] = mapped_column(String(36))
    special_instructions: Mapped[str | None] = mapped_column(Text)
    estimated_delivery_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", lazy="selectin"
    )
    coupon: Mapped[Coupon | None] = relationship()

    __mapper_args__ = {"version_id_col": version}

class OrderItem(Base, IdMixin, TSMMixin):
    __tablename__ = "order_item"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id"))
    menu_item_id: Mapped[str] = mapped_column(String(36), ForeignKey("menu_item.id"))
    quantity: Mapped[int] = mapped_column(Integer)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))  # captured at placement
    special_request: Mapped[str | None] = mapped_column(Text)

    order: Mapped[Order] = relationship(back_populates="items")

class Payment(Base, IdMixin, TSMMixin):
    __tablename__ = "payment"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id"), unique=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"))
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod))
    status: Mapped[PaymentStatus] = mapped_column(Enum(PaymentStatus), default=PaymentStatus.PENDING)
    transaction_id: Mapped[str | None] = mapped_column(String(64))
    invoice_ref: Mapped[str | None] = mapped_column(String(60), unique=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
