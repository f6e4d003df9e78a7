# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    UserRole, ApprovalStatus, OrderStatus, DiscountType, PaymentStatus, PaymentMethod,

    # Identity
    User, CustomerAddress,

    # Catalog
    Restaurant, MenuItem,

    # Coupons / orders / payments
    Coupon, Order, OrderItem, Payment,
)

# Optional: make star-imports predictable
__all__ = [
    # Enums
    "UserRole", "ApprovalStatus", "OrderStatus", "DiscountType", "PaymentStatus", "PaymentMethod",

    # Identity
    "User", "CustomerAddress",

    # Catalog
    "Restaurant", "MenuItem",

    # Coupons / orders / payments
    "Coupon", "Order", "OrderItem", "Payment",
]
