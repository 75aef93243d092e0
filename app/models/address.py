import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class SavedAddress(SQLModel, table=True):
    """
    Shipping address saved by a customer.

    At most one row per user has is_default = True.
    """

    __tablename__ = "saved_addresses"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    full_name: str = Field(max_length=100)

    # Stored with country code, e.g. "+91 9876543210"
    phone: str = Field(max_length=25)

    address: str = Field(max_length=500)
    pincode: str = Field(max_length=6, index=True)
    city: str = Field(max_length=100)
    state: str = Field(max_length=100)
    country: str = Field(default="India", max_length=100)

    # Home | Work | PG | Hotel | Hostel | <custom>
    label: str = Field(default="Home", max_length=50)

    is_default: bool = Field(default=False)

    latitude: float | None = None
    longitude: float | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class PincodeLookup(SQLModel, table=True):
    """
    Reference table mapping Indian PIN codes to city/state.

    Seeded by upload_pincodes.py from the India Post CSV.
    """

    __tablename__ = "pincode_lookup"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )

    pincode: str = Field(max_length=6, unique=True, index=True)
    city: str = Field(max_length=100)
    state: str = Field(max_length=100)
    country: str = Field(default="India", max_length=100)
    district: str | None = None
    region: str | None = None
    is_serviceable: bool = Field(default=True)
