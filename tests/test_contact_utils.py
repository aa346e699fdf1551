from pupper.contact_utils import (
    is_valid_email,
    sanitize_email,
    sanitize_phone,
)


def test_sanitize_email_normalizes_value():
    assert sanitize_email("  USER+one@Example.com ") == "user+one@example.com"


def test_sanitize_email_rejects_invalid_and_injected_values():
    assert sanitize_email("Name <user@example.com>") is None
    assert sanitize_email("user@example.com\r\nbcc:bad@example.com") is None
    assert sanitize_email("bad@@example.com") is None
    assert is_valid_email("user@example.com") is True
    assert is_valid_email("invalid") is False


def test_sanitize_phone_formats_north_american_numbers():
    assert sanitize_phone("(555) 123-4567") == "+15551234567"
    assert sanitize_phone("555.123.4567") == "+15551234567"


def test_sanitize_phone_keeps_international_numbers():
    assert sanitize_phone("+44 20 7946 0958") == "+442079460958"
    assert sanitize_phone("15551234567") == "+15551234567"


def test_sanitize_phone_rejects_short_or_injected_values():
    assert sanitize_phone("12345") is None
    assert sanitize_phone("") is None
    assert sanitize_phone(None) is None
    assert sanitize_phone("5551234567\nBody: hi") is None
    assert sanitize_phone("1" * 16) is None
