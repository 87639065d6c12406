"""
Error taxonomy and response classifier for the Allscreenshots client.

Every failed request surfaces as a single ``AllscreenshotsError`` tagged with
an ``ErrorKind``. Callers branch on ``error.kind`` (and the optional status
code, machine error code, retry-after hint and validation map) rather than on
exception subclasses.

Each error includes:
- Human-readable message
- Optional HTTP status code and machine error code
- retry_after for rate-limited responses
- validation_errors for rejected request bodies
- is_retryable flag derived from the kind
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Union


# =============================================================================
# ERROR KINDS
# =============================================================================

class ErrorKind(str, Enum):
    """Closed set of failure categories a request can end in."""
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    QUOTA_EXCEEDED = "quota_exceeded"
    SERVER = "server"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"

    @property
    def is_retryable(self) -> bool:
        return self in _RETRYABLE_KINDS

    @property
    def default_code(self) -> Optional[str]:
        return _DEFAULT_CODES.get(self)


_RETRYABLE_KINDS = frozenset({
    ErrorKind.RATE_LIMITED,
    ErrorKind.SERVER,
    ErrorKind.NETWORK,
    ErrorKind.TIMEOUT,
})

_DEFAULT_CODES: dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: "VALIDATION_ERROR",
    ErrorKind.AUTHENTICATION: "AUTHENTICATION_ERROR",
    ErrorKind.NOT_FOUND: "NOT_FOUND",
    ErrorKind.RATE_LIMITED: "RATE_LIMIT_EXCEEDED",
    ErrorKind.QUOTA_EXCEEDED: "QUOTA_EXCEEDED",
    ErrorKind.SERVER: "SERVER_ERROR",
    ErrorKind.NETWORK: "NETWORK_ERROR",
    ErrorKind.TIMEOUT: "TIMEOUT_ERROR",
}

SERVER_ERROR_STATUSES = frozenset({500, 502, 503, 504})


# =============================================================================
# EXCEPTIONS
# =============================================================================

@dataclass(eq=False)
class AllscreenshotsError(Exception):
    """
    A classified request failure.

    Attributes:
        message: Human-readable error description
        kind: Failure category
        status_code: HTTP status, absent for transport failures
        error_code: Machine error code from the API or the kind's default
        retry_after: Seconds the server asked us to wait (rate_limited only)
        validation_errors: Field-level messages (validation only)
        timestamp: When the error was classified
    """
    message: str
    kind: ErrorKind = ErrorKind.UNKNOWN
    status_code: Optional[int] = None
    error_code: Optional[str] = None
    retry_after: Optional[int] = None
    validation_errors: Optional[dict[str, str]] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.error_code is None:
            self.error_code = self.kind.default_code
        super().__init__(self.message)

    @property
    def is_retryable(self) -> bool:
        return self.kind.is_retryable

    def format_message(self) -> str:
        """Format the error message with kind, status and code."""
        parts = [self.kind.value]
        if self.status_code is not None:
            parts.append(str(self.status_code))
        if self.error_code:
            parts.append(self.error_code)
        return f"[{' '.join(parts)}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "status_code": self.status_code,
            "error_code": self.error_code,
            "retry_after": self.retry_after,
            "validation_errors": self.validation_errors,
            "is_retryable": self.is_retryable,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"kind={self.kind.value!r}, "
            f"message={self.message!r}, "
            f"status_code={self.status_code!r})"
        )


@dataclass(eq=False)
class ConfigurationError(Exception):
    """Client could not be constructed from the supplied configuration."""
    message: str
    setting: Optional[str] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# CLASSIFICATION
# =============================================================================

ErrorBody = Union[Mapping[str, Any], str, None]


def _extract_message(status: int, body: ErrorBody) -> str:
    if isinstance(body, str):
        return body or f"HTTP {status} error"
    if isinstance(body, Mapping):
        return body.get("message") or body.get("error") or f"HTTP {status} error"
    return f"HTTP {status} error"


def classify_response(
    status: int,
    body: ErrorBody,
    retry_after: Optional[int] = None,
) -> AllscreenshotsError:
    """Map an HTTP error status and its body to a classified error."""
    message = _extract_message(status, body)
    fields = body if isinstance(body, Mapping) else {}

    if status == 400:
        validation_errors = fields.get("validationErrors")
        return AllscreenshotsError(
            message,
            kind=ErrorKind.VALIDATION,
            status_code=status,
            validation_errors=(
                dict(validation_errors) if isinstance(validation_errors, Mapping) else None
            ),
        )
    if status in (401, 403):
        return AllscreenshotsError(message, kind=ErrorKind.AUTHENTICATION, status_code=status)
    if status == 402:
        return AllscreenshotsError(message, kind=ErrorKind.QUOTA_EXCEEDED, status_code=status)
    if status == 404:
        return AllscreenshotsError(message, kind=ErrorKind.NOT_FOUND, status_code=status)
    if status == 429:
        return AllscreenshotsError(
            message,
            kind=ErrorKind.RATE_LIMITED,
            status_code=status,
            retry_after=retry_after,
        )
    if status in SERVER_ERROR_STATUSES:
        return AllscreenshotsError(message, kind=ErrorKind.SERVER, status_code=status)

    return AllscreenshotsError(
        message,
        kind=ErrorKind.UNKNOWN,
        status_code=status,
        error_code=fields.get("errorCode"),
    )


def classify_transport_error(
    error: BaseException,
    timeout_ms: Optional[float] = None,
) -> AllscreenshotsError:
    """Map a failure that happened before any HTTP status was received."""
    if isinstance(error, asyncio.TimeoutError):
        if timeout_ms is not None:
            message = f"Request timed out after {timeout_ms:g}ms"
        else:
            message = "Request timed out"
        return AllscreenshotsError(message, kind=ErrorKind.TIMEOUT)

    detail = str(error) or type(error).__name__
    return AllscreenshotsError(f"Network error: {detail}", kind=ErrorKind.NETWORK)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, AllscreenshotsError):
        return error.is_retryable
    return False


def get_retry_after(error: BaseException) -> Optional[int]:
    """Server-supplied retry hint in seconds, if the error carries one."""
    if isinstance(error, AllscreenshotsError) and error.kind is ErrorKind.RATE_LIMITED:
        return error.retry_after
    return None


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Parse a Retry-After header given in whole, non-negative seconds."""
    if value is None:
        return None
    try:
        seconds = int(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


__all__ = [
    "ErrorKind",
    "AllscreenshotsError",
    "ConfigurationError",
    "SERVER_ERROR_STATUSES",
    "classify_response",
    "classify_transport_error",
    "is_retryable",
    "get_retry_after",
    "parse_retry_after",
]
