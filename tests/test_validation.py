import pytest

from app.core.validation import (
    sanitize_string,
    validate_address,
    validate_email,
    validate_name,
    validate_phone,
    validate_pincode,
)


@pytest.mark.parametrize(
    "phone, code, expected",
    [
        ("98765 43210", "+91", "+91 9876543210"),
        ("(415) 555-2671", "+1", "+1 4155552671"),
        ("02079460958", "+44", "+44 02079460958"),
        ("1234567", "+971", "+971 1234567"),
    ],
)
def test_phone_accepts_per_country(phone, code, expected):
    result = validate_phone(phone, code)
    assert result.is_valid
    assert result.sanitized_value == expected


@pytest.mark.parametrize("phone, code", [("98765", "+91"), ("", "+91"), ("123456", "+971")])
def test_phone_rejects(phone, code):
    assert not validate_phone(phone, code).is_valid


def test_pincode_rules():
    assert validate_pincode(" 560001 ").sanitized_value == "560001"
    assert not validate_pincode("060001").is_valid
    assert not validate_pincode("56001").is_valid


def test_name_rules():
    assert validate_name("Anne-Marie O'Neil").is_valid
    assert validate_name("J", "Full name").error == "Full name must be at least 2 characters long"
    assert not validate_name("R2D2").is_valid


def test_address_and_email():
    assert validate_address("Flat 4, MG Road").is_valid
    assert not validate_address("MG Road").is_valid
    assert validate_email(" Ravi@Example.com ").sanitized_value == "ravi@example.com"
    assert not validate_email("ravi@").is_valid


def test_sanitize_strips_markup_and_whitespace():
    assert sanitize_string("  <b>Hello</b>\n  world ") == "bHello/b world"
