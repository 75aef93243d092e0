import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class Discount(SQLModel, table=True):
    """
    Coupon or automatic discount.

    - code is None            => automatic discount (applied without a coupon)
    - type: percentage | fixed_amount | cart_value
    - applicable_to: all | products | combos | variants, with matching id lists
    - usage_count <= usage_limit whenever usage_limit is set

    Created by administrators; the storefront only reads it and bumps
    usage_count on redemption.
    """

    __tablename__ = "discounts"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(max_length=255)
    description: str | None = None

    # Unique, compared case-insensitively
    code: str | None = Field(default=None, unique=True, index=True)

    type: str = Field(description="percentage | fixed_amount | cart_value")
    value: float = Field(ge=0)

    min_cart_value: float | None = None
    max_discount_amount: float | None = None

    applicable_to: str = Field(default="all")
    product_ids: list[str] | None = Field(default=None, sa_column=Column(JSON))
    combo_ids: list[str] | None = Field(default=None, sa_column=Column(JSON))
    variant_ids: list[str] | None = Field(default=None, sa_column=Column(JSON))

    start_date: datetime | None = None
    end_date: datetime | None = None

    usage_limit: int | None = None
    usage_count: int = Field(default=0, ge=0)

    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
