"""Structured abuse-prevention events for operator visibility."""

import enum
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

logger = structlog.get_logger(__name__)


class AbuseEventType(str, enum.Enum):
    """Kinds of abuse-prevention events."""

    RATE_LIMIT_BLOCKED = "rate_limit_blocked"
    BOT_VERIFICATION_FAILED = "bot_verification_failed"
    SUSPICIOUS_PATTERN = "suspicious_pattern"
    LIMITER_ERROR = "limiter_error"


@dataclass(frozen=True)
class AbuseEvent:
    """A single denied or suspicious request. Never carries secrets, tokens or request bodies."""

    event: AbuseEventType
    timestamp: datetime
    ip: str
    path: str
    dimension: str | None = None
    reason: str | None = None


def log_abuse_event(
    event: AbuseEventType,
    *,
    ip: str,
    path: str,
    dimension: str | None = None,
    reason: str | None = None,
) -> AbuseEvent:
    """
    Emit an abuse-prevention event as a structured warning.

    Args:
        event: Event type
        ip: Client IP address
        path: Request path the event relates to
        dimension: Rate limit dimension or verifier condition, if any
        reason: Human-readable reason, safe for logs

    Returns:
        The event that was logged
    """
    abuse_event = AbuseEvent(
        event=event,
        timestamp=datetime.now(UTC),
        ip=ip,
        path=path,
        dimension=dimension,
        reason=reason,
    )

    log_kwargs: dict[str, str] = {
        "type": "abuse_prevention",
        "event_type": abuse_event.event.value,
        "occurred_at": abuse_event.timestamp.isoformat(),
        "ip": abuse_event.ip,
        "path": abuse_event.path,
    }
    if dimension is not None:
        log_kwargs["dimension"] = dimension
    if reason is not None:
        log_kwargs["reason"] = reason

    logger.warning("abuse_prevention", **log_kwargs)
    return abuse_event
