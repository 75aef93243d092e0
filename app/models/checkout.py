import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class CheckoutSession(SQLModel, table=True):
    """
    Per-checkout pricing context for one user.

    Holds what the price quote depends on besides the cart itself:
      - shipping_method chosen by the customer
      - lucky_discount, drawn once when the session starts
      - the coupon code currently applied
    """

    __tablename__ = "checkout_sessions"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    shipping_method: str = Field(default="standard")

    lucky_discount: float = Field(default=0.0, ge=0)

    coupon_code: str | None = None

    # Set once an order has been placed from this session
    order_id: uuid.UUID | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
