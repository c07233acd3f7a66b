"""Helpers for deriving rate limit identifiers from an incoming request."""

import hashlib
import re
from dataclasses import dataclass

import phonenumbers
from starlette.requests import Request

UNKNOWN_IP = "unknown"
DEFAULT_PHONE_REGION = "US"

_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class RequestIdentity:
    """
    Identifiers a single request is counted against.

    Attributes:
        ip: Client IP address, or "unknown"
        fingerprint: Bucket derived from user agent and accept-language
        contact: Normalized email/phone bucket, empty when neither was supplied
    """

    ip: str
    fingerprint: str
    contact: str = ""


def get_client_ip(request: Request) -> str:
    """
    Get the client IP address, preferring proxy-supplied headers.

    Order: Cloudflare's cf-connecting-ip, the first hop of X-Forwarded-For,
    X-Real-IP, then the socket peer.

    Args:
        request: Incoming request

    Returns:
        IP address string, or "unknown" if none can be determined
    """
    if cf_ip := request.headers.get("cf-connecting-ip"):
        return cf_ip.strip()

    if forwarded := request.headers.get("x-forwarded-for"):
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    if real_ip := request.headers.get("x-real-ip"):
        return real_ip.strip()

    return request.client.host if request.client else UNKNOWN_IP


def get_fingerprint(request: Request) -> str:
    """
    Derive a lightweight device bucket from request headers.

    This is not a tracking identifier: it only groups requests that share a
    user agent and language so a single scripted client rotating IPs still
    lands in one rate limit bucket.

    Args:
        request: Incoming request

    Returns:
        16-character hex bucket id
    """
    user_agent = request.headers.get("user-agent") or "none"
    language = request.headers.get("accept-language") or "none"
    combined = f"{user_agent}:{language}"
    return hashlib.blake2b(combined.encode(), digest_size=8).hexdigest()


def normalize_email(email: str | None) -> str:
    """Lowercase and trim an email for bucketing; empty string when absent."""
    if not email:
        return ""
    return email.strip().lower()


def normalize_phone(phone: str | None) -> str:
    """
    Normalize a phone number for bucketing.

    Valid numbers are formatted as E.164 so "(415) 555-2671" and
    "+1 415 555 2671" share a bucket. Anything phonenumbers cannot parse
    falls back to its digits.

    Args:
        phone: Phone number in any format

    Returns:
        E.164 string, digits-only fallback, or empty string when absent
    """
    if not phone or not phone.strip():
        return ""
    candidate = phone.strip()
    try:
        parsed = phonenumbers.parse(candidate, None if candidate.startswith("+") else DEFAULT_PHONE_REGION)
    except phonenumbers.NumberParseException:
        return _NON_DIGITS.sub("", candidate)
    if phonenumbers.is_valid_number(parsed):
        return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
    return _NON_DIGITS.sub("", candidate)


def get_contact_bucket(email: str | None = None, phone: str | None = None) -> str:
    """
    Build the contact dimension key from a submitted email and phone.

    Returns:
        "contact:<email>:<phone>" or empty string when neither is usable
    """
    norm_email = normalize_email(email)
    norm_phone = normalize_phone(phone)
    if not norm_email and not norm_phone:
        return ""
    return f"contact:{norm_email}:{norm_phone}"


def build_request_identity(request: Request, email: str | None = None, phone: str | None = None) -> RequestIdentity:
    """Collect IP, fingerprint and contact bucket for a request."""
    return RequestIdentity(
        ip=get_client_ip(request),
        fingerprint=get_fingerprint(request),
        contact=get_contact_bucket(email, phone),
    )
