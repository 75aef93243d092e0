import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, EmailStr, field_validator, model_validator
from sqlmodel import SQLModel

from app.schemas.address import AddressCreate
from app.schemas.checkout import PriceBreakdown, ShippingMethod

OrderStatus = Literal["placed", "processing", "shipped", "delivered", "cancelled"]
PaymentStage = Literal["idle", "processing", "verifying", "confirmed", "pending"]


class OrderCreate(SQLModel):
    """
    Payload for placing an order from a checkout session.

    The shipping address is either a saved address (address_id) or typed
    inline (address). An inline address is saved to the user's address
    book after the order is placed unless an identical one exists.

    Backend derives:
      - items from the cart
      - totals from the checkout session (shipping, lucky, coupon)
      - transaction_id and the UPI payment link
    """

    model_config = ConfigDict(extra="forbid")

    address_id: uuid.UUID | None = None
    address: AddressCreate | None = None
    payment_link_email: EmailStr | None = None
    payment_link_phone: str | None = None

    @model_validator(mode="after")
    def one_address_source(self):
        if (self.address_id is None) == (self.address is None):
            raise ValueError("provide exactly one of address_id or address")
        return self

    @field_validator("payment_link_phone")
    @classmethod
    def normalize_phone(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    user_id: uuid.UUID
    status: OrderStatus
    subtotal: float
    shipping_method: ShippingMethod
    shipping: float
    lucky_discount: float
    coupon_discount: float
    discount: float
    discount_code: str | None
    total: float
    payment_method: str
    transaction_id: str
    payment_stage: PaymentStage
    payment_confirmed: bool
    payment_verified: str
    shipping_name: str
    shipping_phone: str
    shipping_address: str
    shipping_city: str
    shipping_state: str
    shipping_zip_code: str
    shipping_country: str
    estimated_delivery: datetime | None
    created_at: datetime


class OrderItemRead(SQLModel):
    """
    Representation of a single order line item.
    """

    id: uuid.UUID
    order_id: uuid.UUID
    product_id: uuid.UUID
    product_name: str | None
    variant_id: uuid.UUID | None
    variant_name: str | None
    combo_id: uuid.UUID | None
    combo_name: str | None
    quantity: int
    product_price: float
    line_total: float


class OrderWithItemsRead(OrderRead):
    """
    Full order view including items.
    """

    items: list[OrderItemRead]


class PaymentArtifact(SQLModel):
    """
    What the client needs to hand off to a UPI app.
    qr_payload is the same URI, to be rendered as a QR code.
    """

    transaction_id: str
    amount: float
    payee_vpa: str
    payee_name: str
    note: str
    upi_link: str
    qr_payload: str


class PlacedOrderRead(SQLModel):
    order: OrderWithItemsRead
    pricing: PriceBreakdown
    payment: PaymentArtifact


class PaymentStatusRead(SQLModel):
    order_id: uuid.UUID
    transaction_id: str
    payment_stage: PaymentStage
    status: OrderStatus
    payment_verified: str
    # Where the client should go once the stage is terminal
    redirect_to: str | None = None


class PaymentLinkEmail(SQLModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class OrderStatusUpdate(SQLModel):
    """
    Admin payload to change order status.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
