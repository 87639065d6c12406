"""
Request executor: performs exactly one HTTP attempt against the API.

The executor builds the target URL, attaches the API key and content
negotiation headers, arms a per-attempt timeout, dispatches the call over a
shared ``aiohttp.ClientSession`` and decodes either a JSON payload or raw
bytes. Failures come back classified; the executor keeps no state between
attempts apart from optional metrics counters.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Mapping, Optional, TypeVar, Union
from urllib.parse import urlencode

import aiohttp

from . import __version__
from .exceptions import (
    AllscreenshotsError,
    ErrorKind,
    classify_response,
    classify_transport_error,
    parse_retry_after,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

API_KEY_HEADER = "X-API-Key"
JSON_CONTENT_TYPE = "application/json"
BINARY_ACCEPT = "image/*,application/pdf"
USER_AGENT = f"allscreenshots-python/{__version__}"

QueryValue = Union[str, int, float, bool, None]


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass(frozen=True)
class RequestDescriptor:
    """Everything needed to perform one logical API call."""
    method: str
    path: str
    query: Optional[Mapping[str, QueryValue]] = None
    body: Any = None
    binary: bool = False

    @property
    def accept(self) -> str:
        return BINARY_ACCEPT if self.binary else JSON_CONTENT_TYPE


@dataclass(frozen=True)
class Success(Generic[T]):
    """Attempt produced a payload: decoded JSON or raw bytes."""
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    """Attempt ended in a classified error."""
    error: AllscreenshotsError

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        raise self.error


AttemptOutcome = Union[Success[T], Failure]


@dataclass
class ClientMetrics:
    """Counters for monitoring the client."""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    rate_limited_requests: int = 0
    timed_out_requests: int = 0
    total_latency_ms: float = 0.0
    failures_by_kind: Dict[str, int] = field(default_factory=dict)

    def record(self, outcome: "AttemptOutcome[Any]", latency_ms: float) -> None:
        self.total_requests += 1
        self.total_latency_ms += latency_ms
        if isinstance(outcome, Success):
            self.successful_requests += 1
            return

        self.failed_requests += 1
        kind = outcome.error.kind
        self.failures_by_kind[kind.value] = self.failures_by_kind.get(kind.value, 0) + 1
        if kind is ErrorKind.RATE_LIMITED:
            self.rate_limited_requests += 1
        elif kind is ErrorKind.TIMEOUT:
            self.timed_out_requests += 1

    @property
    def avg_latency_ms(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.total_latency_ms / self.total_requests

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests

    def reset(self) -> None:
        """Reset all counters."""
        self.total_requests = 0
        self.successful_requests = 0
        self.failed_requests = 0
        self.rate_limited_requests = 0
        self.timed_out_requests = 0
        self.total_latency_ms = 0.0
        self.failures_by_kind.clear()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "rate_limited_requests": self.rate_limited_requests,
            "timed_out_requests": self.timed_out_requests,
            "avg_latency_ms": self.avg_latency_ms,
            "success_rate": self.success_rate,
            "failures_by_kind": dict(self.failures_by_kind),
        }


# ============================================================================
# HELPERS
# ============================================================================

def _format_query_value(value: QueryValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _decode_json(text: Optional[str]) -> Any:
    """Decode JSON text, returning None for empty or malformed input."""
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


# ============================================================================
# EXECUTOR
# ============================================================================

class RequestExecutor:
    """
    Performs single attempts of API requests.

    Example:
        executor = RequestExecutor(session, "https://api.allscreenshots.com", key)
        usage = await executor.execute(RequestDescriptor("GET", "/v1/usage"))
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str,
        api_key: str,
        timeout_ms: float = 60000,
        metrics: Optional[ClientMetrics] = None,
    ):
        self._session = session
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self.timeout_ms = timeout_ms
        self.metrics = metrics

    def build_url(self, descriptor: RequestDescriptor) -> str:
        """Compose base URL, path and every query parameter that has a value."""
        url = f"{self.base_url}{descriptor.path}"
        if descriptor.query:
            pairs = [
                (key, _format_query_value(value))
                for key, value in descriptor.query.items()
                if value is not None
            ]
            if pairs:
                url = f"{url}?{urlencode(pairs)}"
        return url

    def build_headers(self, descriptor: RequestDescriptor) -> Dict[str, str]:
        headers = {
            API_KEY_HEADER: self._api_key,
            "Accept": descriptor.accept,
            "User-Agent": USER_AGENT,
        }
        if descriptor.body is not None:
            headers["Content-Type"] = JSON_CONTENT_TYPE
        return headers

    async def attempt(
        self, descriptor: RequestDescriptor, attempt: int = 1
    ) -> AttemptOutcome[Any]:
        """Perform one attempt. Classified failures are returned, never raised."""
        url = self.build_url(descriptor)
        data = json.dumps(descriptor.body) if descriptor.body is not None else None
        timeout = aiohttp.ClientTimeout(total=self.timeout_ms / 1000.0)

        logger.debug(
            "Request %s %s attempt=%d binary=%s",
            descriptor.method,
            url,
            attempt,
            descriptor.binary,
        )
        start_time = time.monotonic()

        try:
            async with self._session.request(
                descriptor.method,
                url,
                data=data,
                headers=self.build_headers(descriptor),
                timeout=timeout,
            ) as response:
                if descriptor.binary:
                    outcome = await self._read_binary(response)
                else:
                    outcome = await self._read_structured(response)
        except asyncio.TimeoutError as e:
            outcome = Failure(classify_transport_error(e, self.timeout_ms))
        except (aiohttp.ClientError, OSError) as e:
            outcome = Failure(classify_transport_error(e))

        latency_ms = (time.monotonic() - start_time) * 1000
        if self.metrics is not None:
            self.metrics.record(outcome, latency_ms)

        if isinstance(outcome, Failure):
            logger.debug(
                "Request %s %s attempt=%d failed in %.1fms: %s",
                descriptor.method,
                url,
                attempt,
                latency_ms,
                outcome.error.format_message(),
            )
        else:
            logger.debug(
                "Request %s %s attempt=%d completed in %.1fms",
                descriptor.method,
                url,
                attempt,
                latency_ms,
            )
        return outcome

    async def execute(self, descriptor: RequestDescriptor, attempt: int = 1) -> Any:
        """Perform one attempt and return its payload, raising the classified error."""
        outcome = await self.attempt(descriptor, attempt)
        return outcome.unwrap()

    async def _read_binary(self, response: aiohttp.ClientResponse) -> AttemptOutcome[bytes]:
        if 200 <= response.status < 300:
            return Success(await response.read())

        try:
            text: Optional[str] = await response.text()
        except (aiohttp.ClientError, UnicodeDecodeError):
            text = None

        parsed = _decode_json(text)
        body = parsed if parsed is not None else (text or None)
        retry_after = parse_retry_after(response.headers.get("Retry-After"))
        return Failure(classify_response(response.status, body, retry_after))

    async def _read_structured(self, response: aiohttp.ClientResponse) -> AttemptOutcome[Any]:
        text = await response.text(errors="replace")
        body = _decode_json(text)

        if 200 <= response.status < 300:
            return Success(body)

        retry_after = parse_retry_after(response.headers.get("Retry-After"))
        error_body = body if body is not None else (text or None)
        return Failure(classify_response(response.status, error_body, retry_after))


__all__ = [
    "API_KEY_HEADER",
    "BINARY_ACCEPT",
    "JSON_CONTENT_TYPE",
    "RequestDescriptor",
    "Success",
    "Failure",
    "AttemptOutcome",
    "ClientMetrics",
    "RequestExecutor",
]
