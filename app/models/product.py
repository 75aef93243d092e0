import uuid

from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """
    Catalog product, reduced to what cart pricing needs.

    Catalog browsing and admin editing live elsewhere; this service only
    reads products when a line is added to the cart.
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(max_length=255, index=True)
    brand: str | None = Field(default=None, max_length=100)

    price: float = Field(
        gt=0,
        description="Base unit price (INR)",
    )

    image_url: str | None = None

    is_active: bool = Field(default=True, index=True)


class ProductVariant(SQLModel, table=True):
    """
    Pack size / flavour variant. Its price overrides the product price.
    """

    __tablename__ = "product_variants"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    product_id: uuid.UUID = Field(foreign_key="products.id", index=True)
    variant_name: str = Field(max_length=100)
    variant_price: float = Field(gt=0)
    is_active: bool = Field(default=True)


class Combo(SQLModel, table=True):
    """
    Bundle of products sold at a single combo price.
    """

    __tablename__ = "product_combos"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(max_length=255)
    combo_price: float = Field(gt=0)
    is_active: bool = Field(default=True)
