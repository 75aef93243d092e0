import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    Customer order placed from a checkout session.

    Amounts are stored in INR with two decimals:
      total = subtotal + shipping - lucky_discount - coupon_discount

    Payment lifecycle (payment_stage):
      idle -> processing -> verifying -> confirmed | pending

    Fulfilment lifecycle (status):
      placed -> processing -> shipped -> delivered, or -> cancelled
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    status: str = Field(default="placed", index=True)

    # Pricing snapshot
    subtotal: float
    shipping_method: str
    shipping: float = Field(default=0.0)
    lucky_discount: float = Field(default=0.0)
    coupon_discount: float = Field(default=0.0)
    discount: float = Field(
        default=0.0,
        description="lucky_discount + coupon_discount",
    )
    discount_id: uuid.UUID | None = None
    discount_code: str | None = None
    total: float

    # Payment
    payment_method: str = Field(default="UPI")
    transaction_id: str = Field(unique=True, index=True)
    payment_stage: str = Field(default="idle", index=True)
    payment_confirmed: bool = Field(default=False)
    payment_confirmed_at: datetime | None = None
    payment_verified: str = Field(default="NO", description="NO | YES")
    payment_link_email: str | None = None
    payment_link_phone: str | None = None

    # Shipping address snapshot
    shipping_name: str
    shipping_phone: str
    shipping_address: str
    shipping_city: str
    shipping_state: str
    shipping_zip_code: str
    shipping_country: str = Field(default="India")

    estimated_delivery: datetime | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )


class OrderItem(SQLModel, table=True):
    """
    Snapshot of one cart line inside an order.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    product_name: str | None = None
    product_brand: str | None = None
    product_image: str | None = None

    variant_id: uuid.UUID | None = None
    variant_name: str | None = None
    combo_id: uuid.UUID | None = None
    combo_name: str | None = None

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    product_price: float = Field(
        description="Effective unit price at time of order",
    )
