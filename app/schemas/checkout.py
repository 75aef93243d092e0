import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel

from app.schemas.discount import DiscountResult

ShippingMethod = Literal["standard", "express", "overnight"]


class ShippingOptionRead(SQLModel):
    method: ShippingMethod
    name: str
    price: float
    time: str


class PriceBreakdown(SQLModel):
    """
    Checkout totals.

    total = subtotal + shipping_cost - lucky_discount - coupon_discount,
    floored at zero; total_clamped tells the floor was hit.
    """

    subtotal: float
    total_items: int
    shipping_method: ShippingMethod
    shipping_cost: float
    lucky_discount: float
    coupon_discount: float
    total_discount: float
    total: float
    total_clamped: bool = False
    applied_discount: DiscountResult | None = None


class CheckoutSessionCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    shipping_method: ShippingMethod = "standard"


class CheckoutSessionUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    shipping_method: ShippingMethod


class CouponApply(SQLModel):
    model_config = ConfigDict(extra="forbid")

    code: str

    @field_validator("code")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Please enter a coupon code")
        return v


class CheckoutSessionRead(SQLModel):
    id: uuid.UUID
    shipping_method: ShippingMethod
    coupon_code: str | None = None
    order_id: uuid.UUID | None = None
    created_at: datetime
    quote: PriceBreakdown
