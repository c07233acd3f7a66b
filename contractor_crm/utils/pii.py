"""Keyed hashing of contact details written to logs and spans."""

import hashlib
import hmac

from contractor_crm.core.config import settings


def hash_pii(value: str) -> str:
    """
    HMAC-SHA256 of ``value`` under ``PII_HASH_SECRET``, as 64 hex characters.

    Deterministic for a given secret, so a contact that keeps tripping the
    rate limiter can be followed through the logs without the address or
    number ever being written out.

    Raises:
        ValueError: If PII_HASH_SECRET is empty
    """
    secret = settings.PII_HASH_SECRET
    if not secret:
        msg = "PII_HASH_SECRET must be configured and non-empty"
        raise ValueError(msg)
    return hmac.new(secret.encode(), value.encode(), hashlib.sha256).hexdigest()
