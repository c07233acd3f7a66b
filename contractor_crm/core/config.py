"""Application configuration.

Settings are read from the environment (and ``.env``). Secrets use a
``SECRET_`` prefixed variable name and are exposed under a plain attribute
name, e.g. ``SECRET_DATABASE_URL`` becomes ``settings.DATABASE_URL``.
"""

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PRODUCTION_ENVIRONMENT = "production"
PII_SECRET_MIN_LENGTH = 32
PII_SECRET_PLACEHOLDER = "REPLACE_ME_WITH_RANDOM_SECRET"  # noqa: S105


def _split_csv(value: str | list[str]) -> list[str]:
    """Split a comma-separated value into trimmed, non-empty items."""
    items = value if isinstance(value, list) else value.split(",")
    return [item.strip() for item in items if item and item.strip()]


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # API
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Contractor CRM"
    DEBUG: bool = False
    ENVIRONMENT: str = PRODUCTION_ENVIRONMENT
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    # Database
    DATABASE_URL: str = Field(validation_alias="SECRET_DATABASE_URL")
    DATABASE_ECHO: bool = False
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    ALEMBIC_INI_PATH: str = "alembic.ini"

    # Auth0 (admin console sign-in); only ADMIN_EMAILS may use the admin API
    AUTH0_DOMAIN: str
    AUTH0_API_AUDIENCE: str
    AUTH0_ALGORITHMS: str = "RS256"
    ADMIN_EMAILS: str = ""

    # Cloudflare Turnstile
    TURNSTILE_SECRET_KEY: str | None = Field(default=None, validation_alias="SECRET_TURNSTILE_SECRET_KEY")
    TURNSTILE_SITE_KEY: str | None = None
    TURNSTILE_TEST_BYPASS: bool = False  # Honoured only outside production
    TURNSTILE_VERIFY_URL: str = "https://challenges.cloudflare.com/turnstile/v0/siteverify"
    TURNSTILE_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)

    # Public lead form rate limits
    PUBLIC_LEAD_IP_LIMIT: int = Field(default=5, gt=0)
    PUBLIC_LEAD_IP_WINDOW_SECONDS: int = Field(default=60, gt=0)
    PUBLIC_LEAD_FINGERPRINT_LIMIT: int = Field(default=10, gt=0)
    PUBLIC_LEAD_FINGERPRINT_WINDOW_SECONDS: int = Field(default=60, gt=0)
    PUBLIC_LEAD_CONTACT_LIMIT: int = Field(default=3, gt=0)
    PUBLIC_LEAD_CONTACT_WINDOW_SECONDS: int = Field(default=300, gt=0)

    # Admin API rate limit, per IP per route
    ADMIN_API_LIMIT: int = Field(default=120, gt=0)
    ADMIN_API_WINDOW_SECONDS: int = Field(default=60, gt=0)

    RATE_LIMIT_PRUNE_INTERVAL_SECONDS: int = Field(default=300, gt=0)

    # HMAC key for contact details written to logs
    PII_HASH_SECRET: str = Field(validation_alias="SECRET_PII_HASH")

    # OpenTelemetry
    OTEL_ENABLED: bool = True
    OTEL_SERVICE_NAME: str = "contractor-crm-backend"
    OTEL_ENVIRONMENT: str = "production"
    OTEL_EXPORTER_OTLP_TRACES_ENDPOINT: str | None = None
    OTEL_EXPORTER_OTLP_HEADERS: str | None = Field(default=None, validation_alias="SECRET_OTEL_HEADERS")
    OTEL_EXCLUDED_URLS: str = "/health,/ready"

    LOG_LEVEL: str = "INFO"

    @field_validator("ALLOWED_ORIGINS", mode="after")
    @classmethod
    def parse_cors(cls, v: str | list[str]) -> list[str]:
        """Parse comma-separated CORS origins."""
        return _split_csv(v)

    @field_validator("AUTH0_ALGORITHMS", mode="after")
    @classmethod
    def parse_auth0_algorithms(cls, v: str | list[str]) -> list[str]:
        """Parse comma-separated JWT algorithms."""
        return _split_csv(v)

    @field_validator("OTEL_EXCLUDED_URLS", mode="after")
    @classmethod
    def parse_otel_excluded_urls(cls, v: str | list[str]) -> list[str]:
        """Parse comma-separated paths that are not traced."""
        return _split_csv(v)

    @field_validator("ADMIN_EMAILS", mode="after")
    @classmethod
    def parse_admin_emails(cls, v: str | list[str]) -> list[str]:
        """Parse the admin allowlist, lowercased for case-insensitive matching."""
        return [email.lower() for email in _split_csv(v)]

    @field_validator("ENVIRONMENT", mode="after")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        """Trim and lowercase so "Production" still disables the Turnstile bypass."""
        return v.strip().lower()

    @field_validator("PII_HASH_SECRET", mode="after")
    @classmethod
    def validate_pii_hash_secret(cls, v: str) -> str:
        """Reject the placeholder value and secrets that are too short."""
        if v == PII_SECRET_PLACEHOLDER:
            msg = (
                "SECRET_PII_HASH is set to the placeholder value. "
                'Generate one with: python3 -c "import secrets; print(secrets.token_urlsafe(32))"'
            )
            raise ValueError(msg)
        if len(v) < PII_SECRET_MIN_LENGTH:
            msg = f"SECRET_PII_HASH must be at least {PII_SECRET_MIN_LENGTH} characters long"
            raise ValueError(msg)
        return v

    @field_validator("LOG_LEVEL", mode="after")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Uppercase the level and reject names the logging module does not know."""
        level = v.strip().upper()
        known = logging.getLevelNamesMapping()
        if level not in known:
            msg = f"Invalid LOG_LEVEL '{v}'. Must be one of: {', '.join(sorted(known))}"
            raise ValueError(msg)
        return level


settings = Settings()


def require_config(*field_names: str) -> None:
    """
    Fail fast when settings a module depends on are unset or blank.

    Called at import time by modules that cannot work without them.

    Raises:
        ValueError: Naming every missing field
    """
    missing = [
        name
        for name in field_names
        if (value := getattr(settings, name, None)) is None or (isinstance(value, str) and not value.strip())
    ]
    if missing:
        msg = f"Required configuration missing: {', '.join(missing)}"
        raise ValueError(msg)
