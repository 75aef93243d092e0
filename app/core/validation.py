"""
Field validation for customer-entered checkout data.

Each validator returns a ValidationResult instead of raising, so a form
can collect every field error at once and show them inline.
"""

import re
from dataclasses import dataclass

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PINCODE_RE = re.compile(r"^[1-9][0-9]{5}$")
NAME_RE = re.compile(r"^[a-zA-Z\s\-']+$")

MIN_ADDRESS_LENGTH = 10


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error: str | None = None
    sanitized_value: str | None = None


def sanitize_string(value: str | None, max_length: int = 255) -> str:
    """
    Trim, truncate, drop HTML-significant characters and collapse whitespace.
    """
    if not isinstance(value, str):
        return ""
    value = value.strip()[:max_length]
    value = re.sub(r"[<>\"'&]", "", value)
    return re.sub(r"\s+", " ", value)


def validate_email(email: str | None) -> ValidationResult:
    sanitized = sanitize_string(email, 254)
    if not sanitized:
        return ValidationResult(False, "Email is required")
    if not EMAIL_RE.match(sanitized):
        return ValidationResult(False, "Please enter a valid email address")
    return ValidationResult(True, sanitized_value=sanitized.lower())


def validate_phone(phone: str | None, country_code: str = "+91") -> ValidationResult:
    """
    Validate a local number for the given country code.

    Returns the stored form "<country code> <digits>".
    """
    sanitized = sanitize_string(phone, 20)
    if not sanitized:
        return ValidationResult(False, "Phone number is required")

    digits = re.sub(r"\D", "", sanitized)

    if country_code == "+91":
        if not re.fullmatch(r"\d{10}", digits):
            return ValidationResult(False, "Please enter a valid 10-digit Indian phone number")
    elif country_code == "+1":
        if not re.fullmatch(r"\d{10}", digits):
            return ValidationResult(False, "Please enter a valid 10-digit phone number")
    elif country_code == "+44":
        if not re.fullmatch(r"\d{10,11}", digits):
            return ValidationResult(False, "Please enter a valid UK phone number")
    elif not re.fullmatch(r"\d{7,15}", digits):
        return ValidationResult(False, "Please enter a valid phone number")

    return ValidationResult(True, sanitized_value=f"{country_code} {digits}")


def validate_name(name: str | None, field_name: str = "Name") -> ValidationResult:
    sanitized = sanitize_string(name, 100)
    if not sanitized:
        return ValidationResult(False, f"{field_name} is required")
    if len(sanitized) < 2:
        return ValidationResult(False, f"{field_name} must be at least 2 characters long")
    if not NAME_RE.match(sanitized):
        return ValidationResult(
            False,
            f"{field_name} can only contain letters, spaces, hyphens, and apostrophes",
        )
    return ValidationResult(True, sanitized_value=sanitized)


def validate_pincode(pincode: str | None) -> ValidationResult:
    sanitized = sanitize_string(pincode, 10)
    if not sanitized:
        return ValidationResult(False, "PIN code is required")
    if not PINCODE_RE.match(sanitized):
        return ValidationResult(False, "Please enter a valid 6-digit PIN code")
    return ValidationResult(True, sanitized_value=sanitized)


def validate_address(address: str | None) -> ValidationResult:
    sanitized = sanitize_string(address, 500)
    if not sanitized:
        return ValidationResult(False, "Address is required")
    if len(sanitized) < MIN_ADDRESS_LENGTH:
        return ValidationResult(
            False,
            f"Address must be at least {MIN_ADDRESS_LENGTH} characters long",
        )
    return ValidationResult(True, sanitized_value=sanitized)


def validate_required(value: str | None, field_name: str, max_length: int = 100) -> ValidationResult:
    sanitized = sanitize_string(value, max_length)
    if not sanitized:
        return ValidationResult(False, f"{field_name} is required")
    return ValidationResult(True, sanitized_value=sanitized)
