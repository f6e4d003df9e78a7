from pydantic import BaseModel, Field, model_validator
from typing import Optional, Literal
from datetime import datetime
from decimal import Decimal

from foodorder.models.common import as_utc

DiscountTypeLiteral = Literal["PERCENTAGE", "FIXED"]

class CouponIn(BaseModel):
    code: str = Field(min_length=1, max_length=40)
    discount_type: DiscountTypeLiteral
    discount_value: Decimal = Field(gt=0)
    max_discount: Optional[Decimal] = Field(default=None, gt=0)
    min_order_value: Decimal = Field(default=Decimal("0"), ge=0)
    usage_limit: Optional[int] = Field(default=None, ge=1)
    per_user_limit: int = Field(default=1, ge=1)
    valid_from: datetime
    valid_to: datetime
    active: bool = True

    @model_validator(mode="after")
    def _check_window(self):
        # naive bounds are taken as UTC so mixed inputs compare
        self.valid_from = as_utc(self.valid_from)
        self.valid_to = as_utc(self.valid_to)
        if self.valid_to < self.valid_from:
            raise ValueError("valid_to must not be before valid_from")
        if self.discount_type == "PERCENTAGE" and self.discount_value > 100:
            raise ValueError("percentage discount cannot exceed 100")
        return self

class CouponOut(CouponIn):
    id: str
    restaurant_id: Optional[str] = None
