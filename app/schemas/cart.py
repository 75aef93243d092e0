import uuid
from datetime import datetime

from pydantic import ConfigDict, model_validator
from sqlmodel import SQLModel, Field


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart.

    At most one of variant_id / combo_id may be given.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    variant_id: uuid.UUID | None = None
    combo_id: uuid.UUID | None = None
    quantity: int = Field(default=1, gt=0)

    @model_validator(mode="after")
    def one_option_only(self):
        if self.variant_id is not None and self.combo_id is not None:
            raise ValueError("choose either a variant or a combo, not both")
        return self


class CartItemUpdate(SQLModel):
    """
    Payload for updating quantity of a cart line.
    """

    quantity: int = Field(gt=0)


class CartItemRead(SQLModel):
    """
    Read model for a single cart line, including the effective unit price.
    """

    id: uuid.UUID
    product_id: uuid.UUID
    variant_id: uuid.UUID | None = None
    combo_id: uuid.UUID | None = None
    quantity: int
    price: float
    variant_price: float | None = None
    combo_price: float | None = None
    unit_price: float
    line_total: float
    product_name: str | None = None
    variant_name: str | None = None
    combo_name: str | None = None
    created_at: datetime


class CartSummary(SQLModel):
    """
    Full cart response model with totals.
    """

    items: list[CartItemRead]
    total_quantity: int
    total_price: float
