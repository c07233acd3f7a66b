"""RS256 tokens and a matching key set for admin API tests."""

import base64
from datetime import UTC, datetime, timedelta
from typing import Any

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt

from contractor_crm.core.config import settings


def _b64url_uint(value: int) -> str:
    """Unpadded base64url encoding of an unsigned integer, as used in JWKs."""
    raw = value.to_bytes((value.bit_length() + 7) // 8, byteorder="big")
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


class MockJWTGenerator:
    """
    Sign tokens shaped like the ones Auth0 issues for the admin console.

    One key pair is generated per test session; ``get_mock_jwks`` publishes
    its public half for ``set_mock_jwks``.
    """

    KID = "test-key-1"
    _private_pem: str | None = None
    _jwks: dict[str, Any] | None = None

    @classmethod
    def _ensure_keys(cls) -> tuple[str, dict[str, Any]]:
        if cls._private_pem is None or cls._jwks is None:
            key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
            cls._private_pem = key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            ).decode()
            numbers = key.public_key().public_numbers()
            cls._jwks = {
                "keys": [
                    {
                        "kty": "RSA",
                        "kid": cls.KID,
                        "use": "sig",
                        "n": _b64url_uint(numbers.n),
                        "e": _b64url_uint(numbers.e),
                    }
                ]
            }
        return cls._private_pem, cls._jwks

    @classmethod
    def generate(
        cls,
        subject: str,
        email: str | None = None,
        expires_in: timedelta = timedelta(days=1),
        audience: str | None = None,
    ) -> str:
        """
        Sign a token for ``subject``.

        Args:
            subject: ``sub`` claim, e.g. "auth0|owner"
            email: ``email`` claim; omitted when None
            expires_in: Lifetime; pass a negative delta for an expired token
            audience: Overrides the configured API audience
        """
        private_pem, _ = cls._ensure_keys()
        issued_at = datetime.now(UTC)
        claims: dict[str, Any] = {
            "sub": subject,
            "aud": audience or settings.AUTH0_API_AUDIENCE,
            "iss": f"https://{settings.AUTH0_DOMAIN}/",
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + expires_in).timestamp()),
        }
        if email is not None:
            claims["email"] = email
        return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": cls.KID})

    @classmethod
    def get_mock_jwks(cls) -> dict[str, Any]:
        """Public key set matching the signing key."""
        return cls._ensure_keys()[1]
