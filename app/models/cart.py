import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class CartItem(SQLModel, table=True):
    """
    Shopping cart line for a user.

    A line is identified by (user, product, variant, combo): the same
    product in two variants is two lines.
    """

    __tablename__ = "cart_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    variant_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="product_variants.id",
    )

    combo_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="product_combos.id",
    )

    quantity: int = Field(
        gt=0,
        description="Must be >= 1",
    )

    # Price snapshots taken when the line was added
    price: float = Field(description="Base product price")
    variant_price: float | None = None
    combo_price: float | None = None

    product_name: str | None = None
    variant_name: str | None = None
    combo_name: str | None = None
    product_brand: str | None = None
    product_image_url: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def unit_price(self) -> float:
        """Variant price wins over combo price, combo over base price."""
        return self.variant_price or self.combo_price or self.price
