"""Shared configuration and utilities for ADOLens."""

import functools
import json
import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from dotenv import load_dotenv

from errors import (
    CircuitOpenError,
    RemoteServiceError,
    RequestTimeoutError,
    TransportError,
    ValidationError,
)

# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------
load_dotenv()

AZURE_DEVOPS_ORG: str = os.getenv("AZURE_DEVOPS_ORG", "")
AZURE_DEVOPS_PAT: str = os.getenv("AZURE_DEVOPS_PAT", "")
AZURE_DEVOPS_API_VERSION: str = os.getenv("AZURE_DEVOPS_API_VERSION", "7.0")
REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "30"))
WEBHOOK_SECRET: str = os.getenv("WEBHOOK_SECRET", "")
REPORT_FORMAT: str = os.getenv("REPORT_FORMAT", "markdown")
POST_COMMENTS: bool = os.getenv("POST_COMMENTS", "true").lower() == "true"
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv("LOG_FORMAT", "text")

_TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


# ---------------------------------------------------------------------------
# Logging (initialised once on first import)
# ---------------------------------------------------------------------------
class JsonFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure the root logger from arguments or LOG_LEVEL / LOG_FORMAT."""
    level_name = (level or LOG_LEVEL).upper()
    handler = logging.StreamHandler()
    if (fmt or LOG_FORMAT).lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        handlers=[handler],
        force=True,
    )


setup_logging()
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------
def validate_required(data: dict, required_fields: list[str]) -> None:
    """Raise ``ValidationError`` naming every field of *data* that is missing.

    ``None`` and the empty string both count as missing; ``0`` does not.
    """
    missing = [name for name in required_fields if data.get(name) in (None, "")]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            details={"missing_fields": missing},
        )


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------
def is_server_error(exc: Exception) -> bool:
    """Retry predicate: 5xx responses and requests that got no response."""
    if isinstance(exc, TransportError):
        return True
    return isinstance(exc, RemoteServiceError) and exc.status_code >= 500


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently to retry an operation."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0
    retry_if: Callable[[Exception], bool] = is_server_error


GET_POLICY = RetryPolicy(max_attempts=3)
POST_POLICY = RetryPolicy(max_attempts=2)


def retry_call(fn: Callable[[], Any], policy: RetryPolicy) -> Any:
    """Call *fn* until it succeeds, the error is not retryable, or attempts run out.

    The last error is re-raised unchanged.
    """
    delay = policy.initial_delay
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return fn()
        except Exception as exc:
            if attempt == policy.max_attempts or not policy.retry_if(exc):
                raise
            logger.warning(
                "Attempt %d/%d failed: %s. Retrying in %.1fs…",
                attempt,
                policy.max_attempts,
                exc,
                delay,
            )
            time.sleep(delay)
            delay = min(delay * policy.backoff_factor, policy.max_delay)


def with_retry(policy: RetryPolicy):
    """Decorator: run the wrapped function through :func:`retry_call`."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return retry_call(lambda: func(*args, **kwargs), policy)

        return wrapper

    return decorator


# ---------------------------------------------------------------------------
# Circuit breaker
# ---------------------------------------------------------------------------
def is_breaker_failure(exc: Exception) -> bool:
    """Errors that say the dependency is unhealthy, not that the request was wrong."""
    return is_server_error(exc) or isinstance(exc, RequestTimeoutError)


class CircuitBreaker:
    """Stop calling a failing dependency for a while.

    CLOSED: calls pass through; ``failure_threshold`` consecutive failures open
    the circuit. OPEN: calls fail fast with ``CircuitOpenError`` until
    ``recovery_timeout`` seconds have passed. HALF_OPEN: calls pass through;
    ``success_threshold`` successes close the circuit, one failure re-opens it.

    Only errors accepted by ``trip_if`` count as failures; anything else (a
    404, a validation error) propagates and leaves the state alone. State
    changes hold a lock, so one breaker may be shared across threads.
    """

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        success_threshold: int = 3,
        clock: Callable[[], float] = time.monotonic,
        trip_if: Callable[[Exception], bool] = is_breaker_failure,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold
        self._clock = clock
        self.trip_if = trip_if
        self._lock = threading.Lock()
        self.state = self.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self._opened_at = 0.0

    def call(self, fn: Callable[[], Any]) -> Any:
        with self._lock:
            if self.state == self.OPEN:
                if self._clock() - self._opened_at < self.recovery_timeout:
                    raise CircuitOpenError("Circuit breaker is OPEN")
                logger.info("Circuit breaker transitioning to HALF_OPEN")
                self.state = self.HALF_OPEN
                self.success_count = 0

        try:
            result = fn()
        except Exception as exc:
            if self.trip_if(exc):
                with self._lock:
                    self._record_failure()
            raise

        with self._lock:
            self._record_success()
        return result

    def _record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.success_threshold:
                logger.info("Circuit breaker transitioning to CLOSED")
                self.state = self.CLOSED
                self.failure_count = 0
        else:
            self.failure_count = 0

    def _record_failure(self) -> None:
        self.failure_count += 1
        if self.state == self.HALF_OPEN or self.failure_count >= self.failure_threshold:
            if self.state != self.OPEN:
                logger.warning(
                    "Circuit breaker transitioning to OPEN after %d failure(s)",
                    self.failure_count,
                )
            self.state = self.OPEN
            self._opened_at = self._clock()
