import logging
import re
import uuid

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.geocoding_client import GeocodingError, ReverseGeocoder
from app.core.validation import (
    validate_address,
    validate_name,
    validate_phone,
    validate_pincode,
    validate_required,
)
from app.models.address import SavedAddress
from app.repositories.address_repo import AddressRepository
from app.schemas.address import (
    LABEL_PRESETS,
    AddressCreate,
    AddressFormState,
    AddressUpdate,
    LocationAutofillRequest,
    LocationAutofillResult,
)

logger = logging.getLogger(__name__)

NOT_SERVICEABLE = "This PIN code is not serviceable"

# GeolocationPositionError codes -> (message, hint)
LOCATION_ERRORS: dict[int, tuple[str, str]] = {
    1: ("Location access needed", "Enable location in browser settings for auto-fill"),
    2: ("Location unavailable", "Check your connection and try again"),
    3: ("Location timeout", "Request took too long - try again"),
}
LOCATION_ERROR_FALLBACK = ("Unable to access location", "Please try again or fill manually")


def describe_location_error(code: int | None) -> tuple[str, str]:
    return LOCATION_ERRORS.get(code, LOCATION_ERROR_FALLBACK)


def resolve_label(label: str, custom_label: str | None) -> str:
    """
    Preset ids map to their display name; "other" takes the custom label;
    anything else is kept as typed.
    """
    key = label.strip().lower()
    if key == "other":
        return (custom_label or "").strip()
    return LABEL_PRESETS.get(key, label.strip())


def _local_digits(phone: str, country_code: str) -> str:
    """
    Strip a repeated country code, e.g. "+91 98765 43210" -> "9876543210".
    """
    digits = re.sub(r"\D", "", phone or "")
    prefix = re.sub(r"\D", "", country_code)
    if prefix and digits.startswith(prefix) and len(digits) > 10:
        digits = digits[len(prefix):]
    return digits


def validate_address_fields(data: dict) -> tuple[dict[str, str], dict[str, str]]:
    """
    Validate every address field.

    Returns:
        (cleaned values, {field: error}); errors is empty when valid.
    """
    country_code = data.get("country_code") or "+91"
    checks = {
        "full_name": validate_name(data.get("full_name"), "Full name"),
        "phone": validate_phone(_local_digits(data.get("phone", ""), country_code), country_code),
        "address": validate_address(data.get("address")),
        "pincode": validate_pincode(data.get("pincode")),
        "city": validate_required(data.get("city"), "City"),
        "state": validate_required(data.get("state"), "State"),
    }

    errors = {field: r.error for field, r in checks.items() if not r.is_valid}
    cleaned = {field: r.sanitized_value for field, r in checks.items() if r.is_valid}

    label = resolve_label(data.get("label") or "home", data.get("custom_label"))
    if not label:
        errors["label"] = "Custom label is required"
    cleaned["label"] = label

    return cleaned, errors


class AddressService:
    """
    Saved addresses plus pincode / geolocation autofill.

    Responsibilities:
      - field validation (all errors at once, never raised past the form)
      - duplicate prevention on (address line, pincode)
      - single-statement default switching
      - autofill from pincode_lookup and reverse geocoding
    """

    def __init__(self, repo: AddressRepository, geocoder: ReverseGeocoder | None = None):
        self.repo = repo
        self.geocoder = geocoder or ReverseGeocoder()

    # ---- helpers ----

    def _get_owned(
        self,
        session: Session,
        user_id: uuid.UUID,
        address_id: uuid.UUID,
    ) -> SavedAddress:
        address = self.repo.get_for_user(session, user_id, address_id)
        if not address:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Address not found",
            )
        return address

    @staticmethod
    def raise_field_errors(errors: dict[str, str]) -> None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Address validation failed", "fields": errors},
        )

    # ---- saved addresses ----

    def list_addresses(self, session: Session, user_id: uuid.UUID) -> list[SavedAddress]:
        """
        Default address first, then newest. A failed read returns an empty
        list so checkout can continue with a typed address.
        """
        try:
            return self.repo.list_for_user(session, user_id)
        except SQLAlchemyError:
            logger.exception("Error loading addresses for user %s", user_id)
            return []

    def get_address(
        self,
        session: Session,
        user_id: uuid.UUID,
        address_id: uuid.UUID,
    ) -> SavedAddress:
        return self._get_owned(session, user_id, address_id)

    def create_address(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: AddressCreate,
    ) -> tuple[SavedAddress, bool]:
        """
        Save a new address unless the user already has the same
        (address line, pincode).

        Returns:
            (address, created); created is False when an existing
            duplicate was returned instead.
        """
        cleaned, errors = validate_address_fields(payload.model_dump())
        if errors:
            self.raise_field_errors(errors)

        duplicate = self.repo.find_duplicate(
            session, user_id, cleaned["address"], cleaned["pincode"]
        )
        if duplicate:
            logger.info("Address already exists for user %s, skipping save", user_id)
            return duplicate, False

        address = SavedAddress(
            user_id=user_id,
            full_name=cleaned["full_name"],
            phone=cleaned["phone"],
            address=cleaned["address"],
            pincode=cleaned["pincode"],
            city=cleaned["city"],
            state=cleaned["state"],
            country=payload.country or "India",
            label=cleaned["label"],
            latitude=payload.latitude,
            longitude=payload.longitude,
        )
        address = self.repo.create(session, address)

        if payload.is_default:
            self.repo.set_default(session, user_id, address.id)
            session.refresh(address)

        return address, True

    def update_address(
        self,
        session: Session,
        user_id: uuid.UUID,
        address_id: uuid.UUID,
        payload: AddressUpdate,
    ) -> SavedAddress:
        address = self._get_owned(session, user_id, address_id)

        changes = payload.model_dump(exclude_unset=True)
        country_code = changes.pop("country_code", None) or address.phone.split(" ", 1)[0]
        if not country_code.startswith("+"):
            country_code = "+91"

        merged = {
            "full_name": address.full_name,
            "phone": address.phone,
            "address": address.address,
            "pincode": address.pincode,
            "city": address.city,
            "state": address.state,
            "label": address.label,
            **changes,
            "country_code": country_code,
        }
        cleaned, errors = validate_address_fields(merged)
        if errors:
            self.raise_field_errors(errors)

        duplicate = self.repo.find_duplicate(
            session, user_id, cleaned["address"], cleaned["pincode"], exclude_id=address.id
        )
        if duplicate:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"This address is already saved as '{duplicate.label}'",
            )

        for field, value in cleaned.items():
            setattr(address, field, value)
        if changes.get("country"):
            address.country = changes["country"]

        return self.repo.update(session, address)

    def delete_address(
        self,
        session: Session,
        user_id: uuid.UUID,
        address_id: uuid.UUID,
    ) -> None:
        address = self._get_owned(session, user_id, address_id)
        self.repo.delete(session, address)

    def set_default_address(
        self,
        session: Session,
        user_id: uuid.UUID,
        address_id: uuid.UUID,
    ) -> list[SavedAddress]:
        """
        Make one address the default and clear the flag on all others in
        the same UPDATE.
        """
        self._get_owned(session, user_id, address_id)
        self.repo.set_default(session, user_id, address_id)
        return self.repo.list_for_user(session, user_id)

    # ---- autofill ----

    def autofill_from_pincode(
        self,
        session: Session,
        form: AddressFormState,
    ) -> AddressFormState:
        """
        Fill city/state/country from pincode_lookup.

        Hit  -> fields filled, pincode/city/state errors cleared.
        Miss -> pincode error set, city/state left as they were.
        """
        result = form.model_copy(deep=True)
        check = validate_pincode(form.pincode)
        if not check.is_valid:
            result.errors["pincode"] = check.error
            return result

        try:
            row = self.repo.get_pincode(session, check.sanitized_value)
        except SQLAlchemyError:
            logger.exception("Pincode lookup error for %s", check.sanitized_value)
            return result

        if row is None or not row.is_serviceable:
            result.errors["pincode"] = NOT_SERVICEABLE
            return result

        result.pincode = row.pincode
        result.city = row.city
        result.state = row.state
        result.country = row.country
        for field in ("pincode", "city", "state"):
            result.errors.pop(field, None)
        return result

    async def autofill_from_location(
        self,
        session: Session,
        request: LocationAutofillRequest,
    ) -> LocationAutofillResult:
        """
        Fill the form from the device position.

        - geolocation failure code -> specific message, form untouched
        - geocoding failure        -> address becomes "lat, lon"
        - success                  -> address line, city, state, pincode;
                                      a 6-digit postcode also runs the
                                      pincode lookup
        """
        form = request.form.model_copy(deep=True)

        if request.latitude is None or request.longitude is None:
            message, hint = describe_location_error(request.error_code)
            logger.info("Geolocation error code %s", request.error_code)
            return LocationAutofillResult(ok=False, form=form, message=message, description=hint)

        lat, lon = request.latitude, request.longitude

        try:
            geocoded = await self.geocoder.reverse(lat, lon)
        except GeocodingError:
            logger.warning("Reverse geocoding failed for %s,%s", lat, lon, exc_info=True)
            geocoded = None

        if geocoded is None:
            form.address = f"{lat:.6f}, {lon:.6f}"
            return LocationAutofillResult(
                ok=False,
                form=form,
                message="Location detected, but address details need manual entry",
                description="Please complete the form",
                latitude=lat,
                longitude=lon,
            )

        form.address = geocoded.address
        form.city = geocoded.city or form.city
        form.state = geocoded.state or form.state
        form.pincode = geocoded.pincode or form.pincode
        form.country = geocoded.country
        form.errors.pop("address", None)
        for field in ("city", "state", "pincode"):
            if getattr(geocoded, field):
                form.errors.pop(field, None)

        if validate_pincode(geocoded.pincode).is_valid:
            form = self.autofill_from_pincode(session, form)

        return LocationAutofillResult(
            ok=True,
            form=form,
            message="Location detected and address filled!",
            latitude=lat,
            longitude=lon,
        )
