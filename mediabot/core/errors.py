"""Error taxonomy and failure classification for external calls.

Architectural role:
    Gives every layer one vocabulary for failures raised by model providers, catalog
    services, and renderers. Handler code never inspects raw HTTP exceptions; it
    asks `classify_error` whether a failure is worth retrying and how to describe it.

Taxonomy:
    - `TransientServiceError`: network, 5xx, or timeout failures. Retryable.
    - `AuthError`: credential rejection. Retryable a bounded number of times.
    - `ValidationError`: malformed or off-schema model output. Never retried here.
    - `NotFoundError`: zero search results. Callers treat it as a normal branch.
    - `UnhandledMessageResponseError`: unknown response category. Fatal for the turn.
    - `CircuitOpenError`: a service breaker is open. Raised without calling out.

Classification rules:
    HTTP 429 is a rate limit and honours `Retry-After`; 408 and 500/502/503/504 are
    transient; 401 is auth; 403 is permission; 400/404/422 are validation. Any other
    status is retryable only when it is 5xx.

Determinism:
    Pure functions over exception objects. No I/O, no logging.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

import httpx
import pydantic
import requests


class ErrorType(str, Enum):
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    SERVER = "server"
    CLIENT = "client"
    AUTH = "auth"
    PERMISSION = "permission"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ErrorCategory(str, Enum):
    LLM_API = "llm_api"
    EQUATION_SERVICE = "equation_service"
    IMAGE_SERVICE = "image_service"
    MEDIA_API = "media_api"
    HTTP_CLIENT = "http_client"
    SYSTEM = "system"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Maximum number of retries spent on credential rejections before giving up.
MAX_AUTH_RETRIES = 2

VALIDATION_STATUS_CODES = {400, 404, 422}


# =========================================================
# EXCEPTIONS
# =========================================================

class OrchestratorError(Exception):
    """Base class for all classified failures.

    Attributes:
        label: Operation label attached by the retry layer (for example
            `llm-check-response-type`). Empty until a label is known.
        error_type: Classified `ErrorType`.
        category: Service family that produced the failure.
        severity: Operator-facing severity.
    """

    error_type = ErrorType.UNKNOWN
    severity = Severity.MEDIUM

    def __init__(
        self,
        message: str,
        *,
        label: str = "",
        category: ErrorCategory = ErrorCategory.SYSTEM,
        error_type: ErrorType | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.label = label
        self.category = category
        if error_type is not None:
            self.error_type = error_type

    def __str__(self) -> str:
        if self.label:
            return f"[{self.label}] {self.message}"
        return self.message


class TransientServiceError(OrchestratorError):
    error_type = ErrorType.NETWORK
    severity = Severity.MEDIUM


class AuthError(OrchestratorError):
    error_type = ErrorType.AUTH
    severity = Severity.HIGH


class ValidationError(OrchestratorError):
    error_type = ErrorType.VALIDATION
    severity = Severity.LOW


class NotFoundError(OrchestratorError):
    error_type = ErrorType.VALIDATION
    severity = Severity.LOW


class UnhandledMessageResponseError(OrchestratorError):
    error_type = ErrorType.VALIDATION
    severity = Severity.HIGH


class CircuitOpenError(OrchestratorError):
    """Raised without contacting a service whose circuit breaker is open."""

    error_type = ErrorType.SERVER
    severity = Severity.HIGH


class ServiceHTTPError(Exception):
    """Raised by HTTP clients for non-success responses.

    Carries only the status code and an optional `Retry-After` value in seconds so
    that classification does not depend on a particular HTTP library.
    """

    def __init__(self, service: str, status_code: int, retry_after: float | None = None) -> None:
        super().__init__(f"{service} responded with HTTP {status_code}")
        self.service = service
        self.status_code = status_code
        self.retry_after = retry_after


# =========================================================
# CLASSIFICATION
# =========================================================

@dataclass(frozen=True)
class ErrorClassification:
    error_type: ErrorType
    category: ErrorCategory
    severity: Severity
    is_retryable: bool
    retry_after: float | None = None
    user_message: str = "Something went wrong. Please try again."


_USER_MESSAGES = {
    ErrorType.NETWORK: "A service could not be reached. Please try again in a moment.",
    ErrorType.RATE_LIMIT: "A service is rate limiting requests. Please try again shortly.",
    ErrorType.TIMEOUT: "A service took too long to respond. Please try again.",
    ErrorType.SERVER: "A service is having trouble right now. Please try again later.",
    ErrorType.CLIENT: "The request was rejected by a service.",
    ErrorType.AUTH: "A service rejected our credentials.",
    ErrorType.PERMISSION: "A service refused access to that operation.",
    ErrorType.VALIDATION: "I could not understand the response from a service.",
    ErrorType.UNKNOWN: "Something went wrong. Please try again.",
}

_SEVERITIES = {
    ErrorType.NETWORK: Severity.MEDIUM,
    ErrorType.RATE_LIMIT: Severity.MEDIUM,
    ErrorType.TIMEOUT: Severity.MEDIUM,
    ErrorType.SERVER: Severity.HIGH,
    ErrorType.CLIENT: Severity.MEDIUM,
    ErrorType.AUTH: Severity.CRITICAL,
    ErrorType.PERMISSION: Severity.HIGH,
    ErrorType.VALIDATION: Severity.LOW,
    ErrorType.UNKNOWN: Severity.MEDIUM,
}

_RETRYABLE_TYPES = {
    ErrorType.NETWORK,
    ErrorType.RATE_LIMIT,
    ErrorType.TIMEOUT,
    ErrorType.SERVER,
    ErrorType.AUTH,
}


def _status_code_of(exc: BaseException) -> int | None:
    if isinstance(exc, ServiceHTTPError):
        return exc.status_code
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return exc.response.status_code
    return None


def _retry_after_of(exc: BaseException) -> float | None:
    if isinstance(exc, ServiceHTTPError):
        return exc.retry_after
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    return parse_retry_after(headers.get("Retry-After"))


def parse_retry_after(value: str | None) -> float | None:
    """Parse a `Retry-After` header given in seconds. HTTP-date values are ignored."""
    if not value:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


def _type_for_status(status: int) -> ErrorType:
    if status == 429:
        return ErrorType.RATE_LIMIT
    if status == 408:
        return ErrorType.TIMEOUT
    if status == 401:
        return ErrorType.AUTH
    if status == 403:
        return ErrorType.PERMISSION
    if status in VALIDATION_STATUS_CODES:
        return ErrorType.VALIDATION
    if status >= 500:
        return ErrorType.SERVER
    return ErrorType.CLIENT


def _type_for_exception(exc: BaseException) -> ErrorType:
    if isinstance(exc, OrchestratorError):
        return exc.error_type

    status = _status_code_of(exc)
    if status is not None:
        return _type_for_status(status)

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException, requests.Timeout)):
        return ErrorType.TIMEOUT
    if isinstance(exc, (ConnectionError, httpx.TransportError, requests.ConnectionError)):
        return ErrorType.NETWORK
    if isinstance(exc, pydantic.ValidationError):
        return ErrorType.VALIDATION
    return ErrorType.UNKNOWN


def classify_error(
    exc: BaseException,
    category: ErrorCategory = ErrorCategory.SYSTEM,
) -> ErrorClassification:
    """Classify an exception into type, severity, and retryability.

    Args:
        exc: Raised exception.
        category: Service family used when the exception does not carry its own.

    Returns:
        Frozen `ErrorClassification`.

    Edge cases:
        - `OrchestratorError` instances keep their own type and category.
        - Status codes outside the known tables are retryable only when >= 500.
        - `CircuitOpenError` is never retryable; the breaker decides when to try again.
    """
    if isinstance(exc, OrchestratorError) and exc.category is not ErrorCategory.SYSTEM:
        category = exc.category

    error_type = _type_for_exception(exc)
    retry_after = _retry_after_of(exc) if error_type is ErrorType.RATE_LIMIT else None

    return ErrorClassification(
        error_type=error_type,
        category=category,
        severity=_SEVERITIES[error_type],
        is_retryable=error_type in _RETRYABLE_TYPES and not isinstance(exc, CircuitOpenError),
        retry_after=retry_after,
        user_message=_USER_MESSAGES[error_type],
    )


def to_orchestrator_error(
    exc: BaseException,
    label: str,
    classification: ErrorClassification,
) -> OrchestratorError:
    """Map a raw exception onto the taxonomy, preserving existing taxonomy errors."""
    if isinstance(exc, OrchestratorError):
        if not exc.label:
            exc.label = label
        return exc

    message = str(exc) or type(exc).__name__
    error_type = classification.error_type
    kwargs = {"label": label, "category": classification.category, "error_type": error_type}

    if error_type is ErrorType.AUTH:
        return AuthError(message, **kwargs)
    if error_type in (ErrorType.NETWORK, ErrorType.RATE_LIMIT, ErrorType.TIMEOUT, ErrorType.SERVER):
        return TransientServiceError(message, **kwargs)
    if error_type is ErrorType.VALIDATION:
        return ValidationError(message, **kwargs)
    return OrchestratorError(message, **kwargs)


def summarize_error(exc: BaseException) -> str:
    """Return a one-line, user-safe summary of an exception."""
    if isinstance(exc, OrchestratorError):
        return exc.message.splitlines()[0] if exc.message else exc.error_type.value
    text = str(exc).strip()
    if not text:
        return type(exc).__name__
    return text.splitlines()[0][:200]
