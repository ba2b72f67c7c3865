"""Resilient execution layer: per-attempt timeout, classification, and backoff.

Architectural role:
    Every language-model call and every catalog call goes through
    `execute_with_retry`. Nothing in the orchestrator talks to an external service
    without a policy and a label.

Control-flow model:
    1. Run the operation under `asyncio.wait_for(timeout)`.
    2. On failure, classify the exception (`mediabot.core.errors.classify_error`).
    3. Retry only transient or auth failures while attempts remain; auth failures
       are additionally capped at `MAX_AUTH_RETRIES`.
    4. Sleep `min(base_delay * 2 ** (attempt - 1), max_delay)` between attempts.
       Rate-limited responses wait at least their `Retry-After`, still capped.
    5. Raise the final error mapped onto the taxonomy and tagged with `label`.

Configuration:
    Per-service defaults live in `RETRY_CONFIGS`. Each value can be overridden with
    `<SERVICE>_RETRY_MAX_ATTEMPTS`, `_BASE_DELAY`, `_MAX_DELAY`, `_TIMEOUT`
    (milliseconds).

Circuit breaking:
    `CircuitBreaker` wraps `execute_with_retry` for one service. After
    `failure_threshold` consecutive failed operations it opens and rejects calls with
    `CircuitOpenError` for `reset_seconds`; the next call is a half-open trial that
    closes the breaker on success and reopens it on failure. Only service-health
    failures (retryable types) count; a validation rejection proves the service is up.

Determinism:
    Delays are deterministic (no jitter). `execute_with_retry` holds no state;
    breakers hold only their own counters.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from mediabot.core.errors import (
    MAX_AUTH_RETRIES,
    CircuitOpenError,
    ErrorCategory,
    OrchestratorError,
    ErrorType,
    classify_error,
    to_orchestrator_error,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry limits for one service family. All durations are in milliseconds."""

    max_attempts: int = 3
    base_delay: int = 1000
    max_delay: int = 10000
    timeout: int = 30000

    def delay_for(self, attempt: int) -> int:
        """Backoff before the attempt following `attempt` (1-based)."""
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)


# =========================================================
# PER-SERVICE CONFIGURATION
# =========================================================

RETRY_CONFIGS: dict[str, RetryPolicy] = {
    "llm": RetryPolicy(max_attempts=3, base_delay=1000, max_delay=30000, timeout=30000),
    "equation": RetryPolicy(max_attempts=3, base_delay=1000, max_delay=10000, timeout=10000),
    "image": RetryPolicy(max_attempts=3, base_delay=2000, max_delay=60000, timeout=60000),
    "catalog": RetryPolicy(max_attempts=3, base_delay=1000, max_delay=10000, timeout=15000),
    # Composite catalog operations run once; their clients retry each request.
    "catalog_operation": RetryPolicy(max_attempts=1, base_delay=1000, max_delay=10000, timeout=120000),
    "default": RetryPolicy(max_attempts=3, base_delay=1000, max_delay=10000, timeout=30000),
}

_ENV_FIELDS = {
    "max_attempts": "MAX_ATTEMPTS",
    "base_delay": "BASE_DELAY",
    "max_delay": "MAX_DELAY",
    "timeout": "TIMEOUT",
}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r, using %d", name, raw, default)
        return default
    return value


def load_retry_policy(service: str) -> RetryPolicy:
    """Return the policy for `service` with environment overrides applied.

    Args:
        service: Key in `RETRY_CONFIGS`. Unknown keys use `default`.

    Returns:
        Frozen `RetryPolicy`.

    Edge cases:
        - Invalid or non-positive override values keep the built-in default.
    """
    base = RETRY_CONFIGS.get(service, RETRY_CONFIGS["default"])
    prefix = service.upper()
    overrides = {
        field: _env_int(f"{prefix}_RETRY_{suffix}", getattr(base, field))
        for field, suffix in _ENV_FIELDS.items()
    }
    return replace(base, **overrides)


# =========================================================
# EXECUTION
# =========================================================

async def _sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    label: str,
    category: ErrorCategory = ErrorCategory.SYSTEM,
) -> T:
    """Run `operation` with timeout, classification, and exponential backoff.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt.
        policy: Attempt and delay limits.
        label: Operation label used for logging and attached to raised errors.
        category: Service family used during classification.

    Returns:
        The operation result from the first successful attempt.

    Raises:
        OrchestratorError: Mapped final failure, chained to the original exception.

    Important behavior:
        - Non-retryable failures are raised immediately.
        - Auth failures are retried at most `MAX_AUTH_RETRIES` times.
    """
    auth_failures = 0
    attempt = 0

    while True:
        attempt += 1
        logger.debug("[%s] attempt %d/%d", label, attempt, policy.max_attempts)

        try:
            result = await asyncio.wait_for(operation(), timeout=policy.timeout / 1000)
        except Exception as exc:
            classification = classify_error(exc, category)

            if classification.error_type is ErrorType.AUTH:
                auth_failures += 1

            can_retry = (
                classification.is_retryable
                and attempt < policy.max_attempts
                and not (
                    classification.error_type is ErrorType.AUTH
                    and auth_failures > MAX_AUTH_RETRIES
                )
            )

            if not can_retry:
                level = logging.ERROR if classification.is_retryable else logging.WARNING
                logger.log(
                    level,
                    "[%s] failed after %d attempt(s): %s (%s)",
                    label,
                    attempt,
                    type(exc).__name__,
                    classification.error_type.value,
                )
                mapped = to_orchestrator_error(exc, label, classification)
                if mapped is exc:
                    raise
                raise mapped from exc

            delay = policy.delay_for(attempt)
            if classification.retry_after is not None:
                delay = min(max(delay, int(classification.retry_after * 1000)), policy.max_delay)

            logger.warning(
                "[%s] attempt %d failed with %s (%s); retrying in %dms",
                label,
                attempt,
                type(exc).__name__,
                classification.error_type.value,
                delay,
            )
            await _sleep(delay / 1000)
            continue

        if attempt > 1:
            logger.info("[%s] succeeded on attempt %d", label, attempt)
        return result


# =========================================================
# CIRCUIT BREAKER
# =========================================================

CIRCUIT_FAILURE_THRESHOLD = int(os.getenv("CIRCUIT_FAILURE_THRESHOLD", "5"))
CIRCUIT_RESET_SECONDS = float(os.getenv("CIRCUIT_RESET_SECONDS", "30"))


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class CircuitBreaker:
    """Closed/open/half-open breaker for one service.

    Args:
        key: Service name used in logs and in `CircuitOpenError`.
        failure_threshold: Consecutive failed operations that open the breaker.
        reset_seconds: Time an open breaker rejects calls before a trial call.
        clock: Monotonic time source in seconds. Injected by tests.
    """

    def __init__(
        self,
        key: str,
        failure_threshold: int = CIRCUIT_FAILURE_THRESHOLD,
        reset_seconds: float = CIRCUIT_RESET_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.key = key
        self.failure_threshold = failure_threshold
        self.reset_seconds = reset_seconds
        self._clock = clock
        self.state = CircuitState.CLOSED
        self.failures = 0
        self._opened_at = 0.0

    def _admit(self, label: str, category: ErrorCategory) -> None:
        if self.state is not CircuitState.OPEN:
            return
        if self._clock() - self._opened_at < self.reset_seconds:
            raise CircuitOpenError(
                f"{self.key} is unavailable, try again later",
                label=label,
                category=category,
            )
        self.state = CircuitState.HALF_OPEN
        logger.info("Circuit breaker %s half-open, allowing a trial call", self.key)

    def _record_success(self) -> None:
        if self.state is CircuitState.HALF_OPEN:
            logger.info("Circuit breaker %s closed", self.key)
        self.state = CircuitState.CLOSED
        self.failures = 0

    def _record_failure(self) -> None:
        self.failures += 1
        if self.state is CircuitState.HALF_OPEN or self.failures >= self.failure_threshold:
            if self.state is not CircuitState.OPEN:
                logger.warning("Circuit breaker %s opened after %d failure(s)", self.key, self.failures)
            self.state = CircuitState.OPEN
            self._opened_at = self._clock()

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy,
        label: str,
        category: ErrorCategory = ErrorCategory.SYSTEM,
    ) -> T:
        """Run `operation` through `execute_with_retry` unless the breaker is open.

        Raises:
            CircuitOpenError: The breaker is open and the reset time has not passed.
            OrchestratorError: The operation failed after its retries.
        """
        self._admit(label, category)
        try:
            result = await execute_with_retry(operation, policy, label, category)
        except OrchestratorError as exc:
            if classify_error(exc, category).is_retryable:
                self._record_failure()
            else:
                self._record_success()
            raise
        self._record_success()
        return result
