import uuid
from datetime import datetime

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

# Preset labels offered by the address form, keyed by form id
LABEL_PRESETS: dict[str, str] = {
    "home": "Home",
    "work": "Work",
    "pg": "PG",
    "hotel": "Hotel",
    "hostel": "Hostel",
}


class AddressCreate(SQLModel):
    """
    Payload for saving a shipping address.

    label is a preset id (home, work, pg, hotel, hostel), "other" together
    with custom_label, or any free-text label.

    Field rules (name, phone, pincode, address, city, state) are checked by
    the service so that all field errors come back together.
    """

    model_config = ConfigDict(extra="forbid")

    full_name: str
    phone: str
    country_code: str = "+91"
    address: str
    pincode: str
    city: str
    state: str
    country: str = "India"
    label: str = "home"
    custom_label: str | None = None
    is_default: bool = False
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @field_validator(
        "full_name", "phone", "address", "pincode", "city", "state", "country", "label",
        mode="before",
    )
    @classmethod
    def strip(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class AddressUpdate(SQLModel):
    """
    Partial update payload; omitted fields keep their saved value.
    """

    model_config = ConfigDict(extra="forbid")

    full_name: str | None = None
    phone: str | None = None
    country_code: str | None = None
    address: str | None = None
    pincode: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    label: str | None = None
    custom_label: str | None = None


class AddressRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    full_name: str
    phone: str
    address: str
    pincode: str
    city: str
    state: str
    country: str
    label: str
    is_default: bool
    latitude: float | None = None
    longitude: float | None = None
    created_at: datetime


class AddressFormState(SQLModel):
    """
    Snapshot of the address form as the client currently holds it.
    Autofill endpoints return an updated copy.
    """

    full_name: str = ""
    phone: str = ""
    address: str = ""
    pincode: str = ""
    city: str = ""
    state: str = ""
    country: str = "India"
    errors: dict[str, str] = Field(default_factory=dict)


class LocationAutofillRequest(SQLModel):
    """
    Result of the browser geolocation request.

    Either coordinates, or the GeolocationPositionError code
    (1 permission denied, 2 position unavailable, 3 timeout).
    """

    form: AddressFormState = Field(default_factory=AddressFormState)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    error_code: int | None = None

    @model_validator(mode="after")
    def coordinates_or_error(self):
        has_coords = self.latitude is not None and self.longitude is not None
        if not has_coords and self.error_code is None:
            raise ValueError("provide latitude/longitude or error_code")
        return self


class LocationAutofillResult(SQLModel):
    ok: bool
    form: AddressFormState
    message: str
    description: str | None = None
    latitude: float | None = None
    longitude: float | None = None
