import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict
from sqlmodel import SQLModel

DiscountType = Literal["percentage", "fixed_amount", "cart_value"]
DiscountScope = Literal["all", "products", "combos", "variants"]


class DiscountRead(SQLModel):
    """
    Public view of an active discount (offers list).
    """

    id: uuid.UUID
    name: str
    description: str | None = None
    code: str | None = None
    type: DiscountType
    value: float
    min_cart_value: float | None = None
    max_discount_amount: float | None = None
    applicable_to: DiscountScope
    start_date: datetime | None = None
    end_date: datetime | None = None
    display_text: str | None = None


class DiscountResult(SQLModel):
    """
    Outcome of evaluating a discount against a cart.

    Callers must check is_applicable: a result is also returned when the
    chosen discount is exhausted (amount 0, reason set).
    """

    model_config = ConfigDict(extra="ignore")

    discount_id: uuid.UUID
    discount_name: str
    discount_code: str | None = None
    discount_type: DiscountType
    discount_value: float
    discount_amount: float
    original_amount: float
    final_amount: float
    is_applicable: bool
    reason: str | None = None


class CouponValidation(SQLModel):
    """
    Result of a coupon pre-check; message explains rejections.
    """

    is_valid: bool
    discount: DiscountRead | None = None
    message: str | None = None


class CartWithDiscount(SQLModel):
    subtotal: float
    total_items: int
    discount: DiscountResult | None = None
    total: float
