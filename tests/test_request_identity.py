"""Tests for rate limit identity helpers."""

from unittest.mock import MagicMock

import pytest
from starlette.requests import Request

from contractor_crm.helpers.request_identity import (
    UNKNOWN_IP,
    build_request_identity,
    get_client_ip,
    get_contact_bucket,
    get_fingerprint,
    normalize_email,
    normalize_phone,
)


def make_request(headers: dict[str, str] | None = None, client_host: str | None = "10.0.0.1") -> MagicMock:
    """Build a mock request with the given headers and peer address."""
    request = MagicMock(spec=Request)
    request.headers = headers or {}
    if client_host is None:
        request.client = None
    else:
        request.client = MagicMock()
        request.client.host = client_host
    return request


class TestGetClientIp:
    """Tests for client IP resolution."""

    def test_prefers_cloudflare_header(self) -> None:
        """Test that cf-connecting-ip wins over every other source."""
        request = make_request(
            {
                "cf-connecting-ip": "203.0.113.9",
                "x-forwarded-for": "198.51.100.1, 10.0.0.2",
                "x-real-ip": "198.51.100.2",
            }
        )
        assert get_client_ip(request) == "203.0.113.9"

    def test_uses_first_forwarded_hop(self) -> None:
        """Test that the first X-Forwarded-For entry is the client."""
        request = make_request({"x-forwarded-for": " 198.51.100.1 , 10.0.0.2"})
        assert get_client_ip(request) == "198.51.100.1"

    def test_falls_back_to_real_ip(self) -> None:
        """Test that X-Real-IP is used when no forwarded-for header exists."""
        request = make_request({"x-real-ip": "198.51.100.2"})
        assert get_client_ip(request) == "198.51.100.2"

    def test_falls_back_to_peer(self) -> None:
        """Test that the socket peer is used without proxy headers."""
        assert get_client_ip(make_request()) == "10.0.0.1"

    def test_unknown_without_any_source(self) -> None:
        """Test that a request with no headers and no peer is 'unknown'."""
        assert get_client_ip(make_request(client_host=None)) == UNKNOWN_IP


class TestGetFingerprint:
    """Tests for the device fingerprint bucket."""

    def test_stable_for_same_headers(self) -> None:
        """Test that identical user agent and language give the same bucket."""
        headers = {"user-agent": "Mozilla/5.0", "accept-language": "en-US"}
        assert get_fingerprint(make_request(headers)) == get_fingerprint(make_request(headers))

    def test_differs_by_language(self) -> None:
        """Test that a different accept-language changes the bucket."""
        first = get_fingerprint(make_request({"user-agent": "Mozilla/5.0", "accept-language": "en-US"}))
        second = get_fingerprint(make_request({"user-agent": "Mozilla/5.0", "accept-language": "fr-FR"}))
        assert first != second

    def test_is_short_hex(self) -> None:
        """Test that the bucket is a 16-character hex string even without headers."""
        fingerprint = get_fingerprint(make_request())
        assert len(fingerprint) == 16
        int(fingerprint, 16)


class TestContactNormalization:
    """Tests for email and phone normalization."""

    def test_email_lowercased_and_trimmed(self) -> None:
        """Test that email case and whitespace do not split buckets."""
        assert normalize_email("  Jane@Example.COM ") == "jane@example.com"

    @pytest.mark.parametrize("value", [None, ""])
    def test_email_absent(self, value: str | None) -> None:
        """Test that a missing email normalizes to an empty string."""
        assert normalize_email(value) == ""

    @pytest.mark.parametrize(
        "value",
        ["(415) 555-2671", "+1 415 555 2671", "415.555.2671", "+14155552671"],
    )
    def test_phone_formats_share_e164(self, value: str) -> None:
        """Test that common formats of one US number normalize to E.164."""
        assert normalize_phone(value) == "+14155552671"

    def test_unparseable_phone_keeps_digits(self) -> None:
        """Test that a number phonenumbers rejects falls back to its digits."""
        assert normalize_phone("call 12-34") == "1234"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_phone_absent(self, value: str | None) -> None:
        """Test that a missing phone normalizes to an empty string."""
        assert normalize_phone(value) == ""


class TestContactBucket:
    """Tests for the contact dimension key."""

    def test_combines_email_and_phone(self) -> None:
        """Test that the bucket holds both normalized values."""
        assert get_contact_bucket("Jane@Example.com", "(415) 555-2671") == "contact:jane@example.com:+14155552671"

    def test_email_only(self) -> None:
        """Test that an email alone still yields a bucket."""
        assert get_contact_bucket("jane@example.com", None) == "contact:jane@example.com:"

    def test_empty_without_contact(self) -> None:
        """Test that no email and no phone give an empty bucket."""
        assert get_contact_bucket(None, "  ") == ""


class TestBuildRequestIdentity:
    """Tests for assembling the full identity."""

    def test_collects_all_dimensions(self) -> None:
        """Test that ip, fingerprint and contact are populated."""
        request = make_request({"x-forwarded-for": "198.51.100.1", "user-agent": "curl/8"})

        identity = build_request_identity(request, email="a@example.com", phone=None)

        assert identity.ip == "198.51.100.1"
        assert identity.fingerprint == get_fingerprint(request)
        assert identity.contact == "contact:a@example.com:"
