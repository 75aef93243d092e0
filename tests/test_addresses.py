import asyncio

import httpx
import pytest
from sqlmodel import select

from app.core.geocoding_client import ReverseGeocoder, parse_address
from app.models.address import SavedAddress
from app.repositories.address_repo import AddressRepository
from app.schemas.address import AddressFormState, LocationAutofillRequest
from app.services.address_service import (
    NOT_SERVICEABLE,
    AddressService,
    resolve_label,
    validate_address_fields,
)

API = "/api/v1/addresses"


def geocoder(payload=None, status_code=200, error=None) -> ReverseGeocoder:
    def handler(request: httpx.Request) -> httpx.Response:
        if error is not None:
            raise error
        return httpx.Response(status_code, json=payload)

    return ReverseGeocoder(url="http://geo.test/reverse", transport=httpx.MockTransport(handler))


# ---- field validation ----


def test_all_field_errors_are_reported_together():
    _, errors = validate_address_fields(
        {"full_name": "R", "phone": "123", "address": "short", "pincode": "012345"}
    )

    assert set(errors) == {"full_name", "phone", "address", "pincode", "city", "state"}
    assert errors["pincode"] == "Please enter a valid 6-digit PIN code"


def test_valid_fields_are_cleaned(address_payload):
    cleaned, errors = validate_address_fields({**address_payload, "phone": "+91 98765 43210"})

    assert errors == {}
    assert cleaned["phone"] == "+91 9876543210"
    assert cleaned["label"] == "Home"


def test_labels():
    assert resolve_label("pg", None) == "PG"
    assert resolve_label("other", " Grandma's ") == "Grandma's"
    assert resolve_label("Office 2", None) == "Office 2"


# ---- pincode autofill ----


def test_pincode_autofill_fills_city_and_state(session, mumbai_pincode):
    service = AddressService(AddressRepository())
    form = AddressFormState(pincode="400001", errors={"pincode": "old", "city": "City is required"})

    result = service.autofill_from_pincode(session, form)

    assert (result.city, result.state, result.country) == ("Mumbai", "Maharashtra", "India")
    assert result.errors == {}


def test_unknown_pincode_sets_error_and_keeps_fields(session):
    service = AddressService(AddressRepository())
    form = AddressFormState(pincode="999999", city="Typed City", state="Typed State")

    result = service.autofill_from_pincode(session, form)

    assert result.errors["pincode"] == NOT_SERVICEABLE
    assert (result.city, result.state) == ("Typed City", "Typed State")


# ---- reverse geocoding ----


def test_parse_address_walks_fallbacks():
    parsed = parse_address(
        {
            "address": {
                "building": "Sea View",
                "pedestrian": "Marine Drive",
                "neighbourhood": "Churchgate",
                "town": "Mumbai",
                "province": "Maharashtra",
                "postcode": "400 001",
            }
        }
    )

    assert parsed.address == "Sea View, Marine Drive, Churchgate"
    assert (parsed.city, parsed.state, parsed.pincode) == ("Mumbai", "Maharashtra", "400001")


def test_parse_address_uses_display_name_when_no_parts():
    parsed = parse_address(
        {"display_name": "Gateway of India, Apollo Bandar", "address": {"city": "Mumbai", "suburb": "Mumbai"}}
    )
    assert parsed.address == "Gateway of India"

    assert parse_address({"address": {"village": "Kasol"}}).address == "Current Location"
    assert parse_address({"error": "Unable to geocode"}) is None


@pytest.mark.parametrize(
    "code, message",
    [
        (1, "Location access needed"),
        (2, "Location unavailable"),
        (3, "Location timeout"),
        (99, "Unable to access location"),
    ],
)
def test_geolocation_error_codes(session, code, message):
    service = AddressService(AddressRepository(), geocoder())
    request = LocationAutofillRequest(error_code=code, form=AddressFormState(address="kept"))

    result = asyncio.run(service.autofill_from_location(session, request))

    assert result.ok is False
    assert result.message == message
    assert result.form.address == "kept"


def test_geocoding_failure_falls_back_to_coordinates(session):
    service = AddressService(AddressRepository(), geocoder(status_code=503))
    request = LocationAutofillRequest(latitude=18.9322, longitude=72.8264)

    result = asyncio.run(service.autofill_from_location(session, request))

    assert result.ok is False
    assert result.form.address == "18.932200, 72.826400"


def test_network_error_falls_back_to_coordinates(session):
    service = AddressService(AddressRepository(), geocoder(error=httpx.ConnectError("down")))
    request = LocationAutofillRequest(latitude=18.9322, longitude=72.8264)

    result = asyncio.run(service.autofill_from_location(session, request))

    assert result.form.address == "18.932200, 72.826400"


def test_location_autofill_runs_pincode_lookup(session, mumbai_pincode):
    payload = {
        "display_name": "Marine Drive, Mumbai",
        "address": {"road": "Marine Drive", "city": "Bombay", "state": "MH", "postcode": "400001"},
    }
    service = AddressService(AddressRepository(), geocoder(payload))
    request = LocationAutofillRequest(latitude=18.9322, longitude=72.8264)

    result = asyncio.run(service.autofill_from_location(session, request))

    assert result.ok is True
    assert result.form.address == "Marine Drive"
    assert (result.form.city, result.form.state) == ("Mumbai", "Maharashtra")


# ---- API ----


def test_create_returns_existing_duplicate(client, auth_headers, address_payload):
    first = client.post(API, json=address_payload, headers=auth_headers)
    second = client.post(API, json={**address_payload, "label": "work"}, headers=auth_headers)

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["id"] == first.json()["id"]
    assert len(client.get(API, headers=auth_headers).json()) == 1


def test_create_reports_field_errors(client, auth_headers, address_payload):
    res = client.post(API, json={**address_payload, "pincode": "12"}, headers=auth_headers)

    assert res.status_code == 400
    assert res.json()["detail"]["fields"] == {"pincode": "Please enter a valid 6-digit PIN code"}


def test_exactly_one_default(client, session, auth_headers, address_payload):
    a = client.post(API, json={**address_payload, "is_default": True}, headers=auth_headers).json()
    b = client.post(
        API,
        json={**address_payload, "address": "44 Linking Road, Bandra West"},
        headers=auth_headers,
    ).json()

    listed = client.post(f"{API}/{b['id']}/default", headers=auth_headers).json()

    assert [row["id"] for row in listed if row["is_default"]] == [b["id"]]
    assert listed[0]["id"] == b["id"]

    session.expire_all()
    defaults = session.exec(select(SavedAddress).where(SavedAddress.is_default == True)).all()  # noqa: E712
    assert [str(d.id) for d in defaults] == [b["id"]]
    assert a["id"] != b["id"]


def test_update_into_duplicate_conflicts(client, auth_headers, address_payload):
    client.post(API, json=address_payload, headers=auth_headers)
    other = client.post(
        API,
        json={**address_payload, "address": "44 Linking Road, Bandra West"},
        headers=auth_headers,
    ).json()

    res = client.patch(
        f"{API}/{other['id']}",
        json={"address": address_payload["address"]},
        headers=auth_headers,
    )

    assert res.status_code == 409


def test_delete_and_not_found(client, auth_headers, address_payload):
    created = client.post(API, json=address_payload, headers=auth_headers).json()

    assert client.delete(f"{API}/{created['id']}", headers=auth_headers).status_code == 204
    assert client.get(f"{API}/{created['id']}", headers=auth_headers).status_code == 404


def test_pincode_endpoint(client, auth_headers, mumbai_pincode):
    res = client.post(f"{API}/autofill/pincode", json={"pincode": "400001"}, headers=auth_headers)

    assert res.status_code == 200
    assert res.json()["city"] == "Mumbai"


def test_addresses_require_sign_in(client):
    res = client.get(API)
    assert res.status_code == 401
    assert res.json()["detail"] == "Please sign in to continue"
