"""In-memory multi-dimensional rate limiter for public and admin endpoints.

Counters are fixed windows keyed by (dimension, path, value). A request is
admitted only when every dimension it is counted against is within its limit,
and any internal error denies the request (fail closed) because the public
lead endpoint is unauthenticated.

Counters live in process memory: each uvicorn worker or instance keeps its
own budget, so the effective limit scales with the number of processes.
"""

import enum
import math
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog
from pydantic import BaseModel, ConfigDict, Field

from contractor_crm.helpers.request_identity import RequestIdentity
from contractor_crm.services.abuse_logger import AbuseEventType, log_abuse_event

logger = structlog.get_logger(__name__)

# Retry hint returned when the limiter itself fails
LIMITER_ERROR_RETRY_SECONDS = 60
DEFAULT_PRUNE_INTERVAL_SECONDS = 300


class RateLimitDimension(str, enum.Enum):
    """Independent identifiers a request is counted against."""

    IP = "ip"
    FINGERPRINT = "fingerprint"
    CONTACT = "contact"
    ADMIN_IP = "admin-ip"
    ERROR = "error"


class RateLimitConfig(BaseModel):
    """Maximum requests allowed per window for one dimension."""

    model_config = ConfigDict(frozen=True)

    limit: int = Field(..., gt=0, description="Maximum requests allowed in the window")
    window_seconds: int = Field(..., gt=0, description="Window size in seconds")


class MultiDimensionConfig(BaseModel):
    """Per-dimension limits for an endpoint. The contact dimension is optional."""

    model_config = ConfigDict(frozen=True)

    ip: RateLimitConfig
    fingerprint: RateLimitConfig
    contact: RateLimitConfig | None = None


@dataclass
class RateLimitCounter:
    """Hit count for one key within its current window."""

    count: int
    window_start: datetime
    window_seconds: int

    def is_expired(self, now: datetime) -> bool:
        """Whether the window has fully elapsed."""
        return (now - self.window_start).total_seconds() > self.window_seconds

    @property
    def reset_at(self) -> datetime:
        """When the current window ends."""
        return self.window_start + timedelta(seconds=self.window_seconds)


@dataclass(frozen=True)
class RateLimitAllowed:
    """Every dimension admitted the request."""

    remaining: int
    reset_at: datetime


@dataclass(frozen=True)
class RateLimitDenied:
    """At least one dimension refused the request (or the limiter failed)."""

    dimension: str
    retry_after_seconds: int
    reset_at: datetime
    reason: str


RateLimitDecision = RateLimitAllowed | RateLimitDenied

CounterKey = tuple[str, str, str]


def _retry_after(reset_at: datetime, now: datetime) -> int:
    """Whole seconds until the window resets, never less than one."""
    return max(1, math.ceil((reset_at - now).total_seconds()))


class RateLimiter:
    """
    Thread-safe map of fixed-window counters.

    One instance is shared by all requests handled in a process; it is
    created by the API dependency layer and can be replaced in tests.
    """

    def __init__(
        self,
        prune_interval_seconds: int = DEFAULT_PRUNE_INTERVAL_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize an empty limiter.

        Args:
            prune_interval_seconds: Minimum time between sweeps of expired counters
            clock: Returns the current UTC time; defaults to datetime.now(UTC)
        """
        self._counters: dict[CounterKey, RateLimitCounter] = {}
        self._lock = threading.Lock()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._prune_interval = timedelta(seconds=prune_interval_seconds)
        self._last_prune = self._clock()

    def __len__(self) -> int:
        """Number of live counters."""
        return len(self._counters)

    def _hit(self, key: CounterKey, config: RateLimitConfig, now: datetime) -> RateLimitCounter:
        """Count one request against a key, starting a new window when the old one expired."""
        dimension, scope, value = key
        if not isinstance(value, str) or not isinstance(scope, str) or not value:
            msg = f"Malformed rate limit key for dimension {dimension!r}"
            raise ValueError(msg)

        with self._lock:
            counter = self._counters.get(key)
            if counter is None or counter.is_expired(now):
                counter = RateLimitCounter(count=1, window_start=now, window_seconds=config.window_seconds)
                self._counters[key] = counter
            else:
                counter.count += 1
            return RateLimitCounter(
                count=counter.count,
                window_start=counter.window_start,
                window_seconds=counter.window_seconds,
            )

    def _maybe_prune(self, now: datetime) -> None:
        if now - self._last_prune >= self._prune_interval:
            self.prune(now)

    def prune(self, now: datetime | None = None) -> int:
        """
        Drop counters whose window has ended.

        Args:
            now: Reference time; defaults to the limiter clock

        Returns:
            Number of counters removed
        """
        now = now or self._clock()
        with self._lock:
            expired = [key for key, counter in self._counters.items() if counter.is_expired(now)]
            for key in expired:
                del self._counters[key]
            self._last_prune = now
        if expired:
            logger.debug("rate_limit_counters_pruned", removed=len(expired), remaining=len(self._counters))
        return len(expired)

    def reset(self) -> None:
        """Forget every counter."""
        with self._lock:
            self._counters.clear()

    def check(
        self,
        identity: RequestIdentity,
        path: str,
        config: MultiDimensionConfig,
    ) -> RateLimitDecision:
        """
        Count a request against every configured dimension and decide.

        Each dimension with a usable key is incremented, including on the
        request that gets denied. The first dimension over its limit
        (ip, then fingerprint, then contact) is reported.

        Args:
            identity: IP, fingerprint and contact bucket of the request
            path: Route path; counters are scoped per path
            config: Limits for each dimension

        Returns:
            RateLimitAllowed or RateLimitDenied
        """
        try:
            now = self._clock()
            self._maybe_prune(now)

            dimensions: list[tuple[RateLimitDimension, str, RateLimitConfig]] = [
                (RateLimitDimension.IP, identity.ip, config.ip),
                (RateLimitDimension.FINGERPRINT, identity.fingerprint, config.fingerprint),
            ]
            if config.contact is not None and identity.contact:
                dimensions.append((RateLimitDimension.CONTACT, identity.contact, config.contact))

            denied: tuple[RateLimitDimension, RateLimitCounter, RateLimitConfig] | None = None
            remaining: list[int] = []
            reset_times: list[datetime] = []

            for dimension, value, dimension_config in dimensions:
                counter = self._hit((dimension.value, path, value), dimension_config, now)
                remaining.append(max(0, dimension_config.limit - counter.count))
                reset_times.append(counter.reset_at)
                if counter.count > dimension_config.limit and denied is None:
                    denied = (dimension, counter, dimension_config)

            if denied is not None:
                dimension, counter, dimension_config = denied
                reason = f"Exceeded {dimension_config.limit} requests in {dimension_config.window_seconds}s"
                if dimension is RateLimitDimension.CONTACT:
                    reason += " for contact"
                log_abuse_event(
                    AbuseEventType.RATE_LIMIT_BLOCKED,
                    ip=identity.ip,
                    path=path,
                    dimension=dimension.value,
                    reason=reason,
                )
                return RateLimitDenied(
                    dimension=dimension.value,
                    retry_after_seconds=_retry_after(counter.reset_at, now),
                    reset_at=counter.reset_at,
                    reason=reason,
                )

            return RateLimitAllowed(remaining=min(remaining), reset_at=max(reset_times))
        except Exception as e:
            return self._fail_closed(identity.ip if isinstance(identity, RequestIdentity) else "unknown", path, e)

    def check_single(
        self,
        ip: str,
        path: str,
        config: RateLimitConfig,
        dimension: RateLimitDimension = RateLimitDimension.ADMIN_IP,
    ) -> RateLimitDecision:
        """
        Count a request against a single IP-keyed dimension (admin routes).

        Args:
            ip: Client IP address
            path: Route path
            config: Limit for the dimension
            dimension: Dimension tag used in the key and in abuse events

        Returns:
            RateLimitAllowed or RateLimitDenied
        """
        try:
            now = self._clock()
            self._maybe_prune(now)

            counter = self._hit((dimension.value, path, ip), config, now)
            if counter.count > config.limit:
                prefix = "Admin API: exceeded" if dimension is RateLimitDimension.ADMIN_IP else "Exceeded"
                reason = f"{prefix} {config.limit} requests in {config.window_seconds}s"
                log_abuse_event(
                    AbuseEventType.RATE_LIMIT_BLOCKED,
                    ip=ip,
                    path=path,
                    dimension=dimension.value,
                    reason=reason,
                )
                return RateLimitDenied(
                    dimension=dimension.value,
                    retry_after_seconds=_retry_after(counter.reset_at, now),
                    reset_at=counter.reset_at,
                    reason=reason,
                )
            return RateLimitAllowed(remaining=config.limit - counter.count, reset_at=counter.reset_at)
        except Exception as e:
            return self._fail_closed(ip if isinstance(ip, str) else "unknown", path, e)

    def _fail_closed(self, ip: str, path: str, error: Exception) -> RateLimitDenied:
        """Turn an internal limiter error into a denial."""
        log_abuse_event(
            AbuseEventType.LIMITER_ERROR,
            ip=ip,
            path=path,
            dimension=RateLimitDimension.ERROR.value,
            reason=str(error) or type(error).__name__,
        )
        now = datetime.now(UTC)
        return RateLimitDenied(
            dimension=RateLimitDimension.ERROR.value,
            retry_after_seconds=LIMITER_ERROR_RETRY_SECONDS,
            reset_at=now + timedelta(seconds=LIMITER_ERROR_RETRY_SECONDS),
            reason="Rate limiter error",
        )
