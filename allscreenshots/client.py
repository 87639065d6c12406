"""
Allscreenshots Async Client

Main client for the Allscreenshots API: screenshot capture, bulk jobs,
compose, schedules and usage tracking. Every endpoint goes through one
request pipeline (``RequestExecutor`` wrapped in ``RetryContext``).
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, TypeVar, Union
from urllib.parse import quote

import aiohttp

from .config import API_KEY_ENV_VAR, ClientSettings, load_settings
from .exceptions import ConfigurationError
from .models import (
    ApiModel,
    AsyncJobCreatedResponse,
    BulkJobSummary,
    BulkRequest,
    BulkResponse,
    BulkStatusResponse,
    ComposeJobStatusResponse,
    ComposeJobSummaryResponse,
    ComposeRequest,
    ComposeResponse,
    CreateScheduleRequest,
    JobResponse,
    LayoutPreviewResponse,
    QuotaStatusResponse,
    ScheduleHistoryResponse,
    ScheduleListResponse,
    ScheduleResponse,
    ScreenshotRequest,
    UpdateScheduleRequest,
    UsageResponse,
)
from .retry import RetryConfig, RetryContext, RetryStatistics
from .transport import ClientMetrics, QueryValue, RequestDescriptor, RequestExecutor

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=ApiModel)

RetryOverrides = Union[RetryConfig, Mapping[str, Any]]

MISSING_API_KEY_MESSAGE = (
    "API key is required. Provide it via config or set "
    f"{API_KEY_ENV_VAR} environment variable."
)


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def _body(model: Any) -> Any:
    if isinstance(model, ApiModel):
        return model.to_dict()
    return model


# ============================================================================
# BUILDER
# ============================================================================

class AllscreenshotsClientBuilder:
    """
    Builder for configuring an Allscreenshots client.

    Example:
        client = (
            AllscreenshotsClientBuilder()
            .with_api_key("your-api-key")
            .with_timeout(30000)
            .build()
        )
    """

    def __init__(self):
        self._options: Dict[str, Any] = {}

    def with_api_key(self, api_key: str) -> "AllscreenshotsClientBuilder":
        self._options["api_key"] = api_key
        return self

    def with_base_url(self, base_url: str) -> "AllscreenshotsClientBuilder":
        self._options["base_url"] = base_url.rstrip("/")
        return self

    def with_timeout(self, timeout_ms: float) -> "AllscreenshotsClientBuilder":
        self._options["timeout_ms"] = timeout_ms
        return self

    def with_retry(self, retry: RetryOverrides) -> "AllscreenshotsClientBuilder":
        self._options["retry"] = retry
        return self

    def with_auto_retry(self, enabled: bool) -> "AllscreenshotsClientBuilder":
        self._options["auto_retry"] = enabled
        return self

    def with_session(self, session: aiohttp.ClientSession) -> "AllscreenshotsClientBuilder":
        self._options["session"] = session
        return self

    def build(self) -> "AllscreenshotsClient":
        return AllscreenshotsClient(**self._options)


# ============================================================================
# CLIENT
# ============================================================================

class AllscreenshotsClient:
    """
    Async Allscreenshots API client.

    Each call gets a fresh per-attempt timeout; there is no deadline across
    retries. A single logical call can take up to
    ``retry_config.worst_case_duration_ms(timeout_ms)`` milliseconds.

    Example:
        async with AllscreenshotsClient(api_key="your-api-key") as client:
            image = await client.screenshot(
                ScreenshotRequest(url="https://github.com", device="Desktop HD", full_page=True)
            )
            Path("github.png").write_bytes(image)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_ms: Optional[float] = None,
        retry: Optional[RetryOverrides] = None,
        auto_retry: Optional[bool] = None,
        session: Optional[aiohttp.ClientSession] = None,
        settings: Optional[ClientSettings] = None,
        on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: API key; falls back to ALLSCREENSHOTS_API_KEY
            base_url: API base URL (trailing slashes stripped)
            timeout_ms: Per-attempt request timeout in milliseconds
            retry: RetryConfig or partial mapping of retry overrides
            auto_retry: Retry transient failures automatically
            session: Externally owned aiohttp session to reuse
            settings: Settings to fall back on instead of reading the environment
            on_retry: Called with (retry number, error, delay in ms) before each wait

        Raises:
            ConfigurationError: If no API key can be resolved, the environment
                holds an invalid setting, or the timeout or retry policy is invalid
        """
        if settings is None:
            settings = load_settings()

        resolved_key = api_key.strip() if api_key else None
        if not resolved_key and settings.api_key is not None:
            resolved_key = settings.api_key.get_secret_value().strip()
        if not resolved_key:
            raise ConfigurationError(MISSING_API_KEY_MESSAGE, setting="api_key")

        self._api_key = resolved_key
        self.base_url = (base_url or settings.base_url).rstrip("/")
        self.timeout_ms = timeout_ms if timeout_ms is not None else settings.timeout_ms
        if self.timeout_ms <= 0:
            raise ConfigurationError(
                f"timeout_ms must be > 0, got {self.timeout_ms}", setting="timeout_ms"
            )
        self.auto_retry = auto_retry if auto_retry is not None else settings.auto_retry
        try:
            self.retry_config = RetryConfig.from_overrides(retry, base=settings.retry.to_config())
        except ValueError as e:
            raise ConfigurationError(str(e), setting="retry") from e
        self.on_retry = on_retry

        self._session = session
        self._owns_session = session is None
        self._session_lock = asyncio.Lock()
        self._closed = False

        self.metrics = ClientMetrics()
        self.retry_statistics = RetryStatistics()

    @staticmethod
    def builder() -> AllscreenshotsClientBuilder:
        return AllscreenshotsClientBuilder()

    async def __aenter__(self) -> "AllscreenshotsClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session exists."""
        async with self._session_lock:
            if self._session is None or self._session.closed:
                if self._closed:
                    raise RuntimeError("AllscreenshotsClient is closed")
                connector = aiohttp.TCPConnector(
                    limit=100,
                    limit_per_host=30,
                    ttl_dns_cache=300,
                    enable_cleanup_closed=True,
                )
                self._session = aiohttp.ClientSession(connector=connector)
                self._owns_session = True
            return self._session

    async def close(self) -> None:
        """Close the client and cleanup resources."""
        if self._closed:
            return

        self._closed = True

        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

        logger.info("AllscreenshotsClient closed")

    # ========================================================================
    # REQUEST PIPELINE
    # ========================================================================

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        query: Optional[Mapping[str, QueryValue]] = None,
        binary: bool = False,
    ) -> Any:
        """
        Make an API request through the retry pipeline.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: Path below the base URL, starting with "/"
            body: JSON-serializable body or request model
            query: Query parameters; None values are omitted
            binary: Return raw bytes instead of decoded JSON

        Returns:
            Decoded JSON (None for an empty body) or bytes

        Raises:
            AllscreenshotsError: The final classified failure
        """
        session = await self._ensure_session()
        executor = RequestExecutor(
            session,
            self.base_url,
            self._api_key,
            timeout_ms=self.timeout_ms,
            metrics=self.metrics,
        )
        descriptor = RequestDescriptor(
            method=method.upper(),
            path=path,
            query=query,
            body=_body(body),
            binary=binary,
        )

        if not self.auto_retry:
            return await executor.execute(descriptor)

        ctx: RetryContext[Any] = RetryContext(
            config=self.retry_config,
            on_retry=self.on_retry,
            statistics=self.retry_statistics,
        )

        async def perform() -> Any:
            return await executor.execute(descriptor, attempt=ctx.attempts)

        return await ctx.execute(perform)

    async def _get_model(self, model: Type[M], method: str, path: str, **kwargs) -> M:
        data = await self.request(method, path, **kwargs)
        return model.from_dict(data or {})

    async def _get_models(self, model: Type[M], method: str, path: str, **kwargs) -> List[M]:
        data = await self.request(method, path, **kwargs)
        return [model.from_dict(item) for item in data or []]

    # ========================================================================
    # SCREENSHOTS
    # ========================================================================

    async def screenshot(self, request: ScreenshotRequest) -> bytes:
        """
        Take a screenshot synchronously.

        Returns:
            Binary image (or PDF) data exactly as served
        """
        return await self.request("POST", "/v1/screenshots", body=request, binary=True)

    async def screenshot_async(self, request: ScreenshotRequest) -> AsyncJobCreatedResponse:
        """Queue a screenshot job and return its identifier and status URL."""
        return await self._get_model(
            AsyncJobCreatedResponse, "POST", "/v1/screenshots/async", body=request
        )

    async def list_jobs(self) -> List[JobResponse]:
        return await self._get_models(JobResponse, "GET", "/v1/screenshots/jobs")

    async def get_job(self, job_id: str) -> JobResponse:
        return await self._get_model(
            JobResponse, "GET", f"/v1/screenshots/jobs/{_segment(job_id)}"
        )

    async def get_job_result(self, job_id: str) -> bytes:
        """Download the image produced by a completed job."""
        return await self.request(
            "GET", f"/v1/screenshots/jobs/{_segment(job_id)}/result", binary=True
        )

    async def cancel_job(self, job_id: str) -> JobResponse:
        return await self._get_model(
            JobResponse, "POST", f"/v1/screenshots/jobs/{_segment(job_id)}/cancel"
        )

    # ========================================================================
    # BULK
    # ========================================================================

    async def create_bulk_job(self, request: BulkRequest) -> BulkResponse:
        return await self._get_model(BulkResponse, "POST", "/v1/screenshots/bulk", body=request)

    async def list_bulk_jobs(self) -> List[BulkJobSummary]:
        return await self._get_models(BulkJobSummary, "GET", "/v1/screenshots/bulk")

    async def get_bulk_job(self, bulk_id: str) -> BulkStatusResponse:
        return await self._get_model(
            BulkStatusResponse, "GET", f"/v1/screenshots/bulk/{_segment(bulk_id)}"
        )

    async def cancel_bulk_job(self, bulk_id: str) -> BulkJobSummary:
        return await self._get_model(
            BulkJobSummary, "POST", f"/v1/screenshots/bulk/{_segment(bulk_id)}/cancel"
        )

    # ========================================================================
    # COMPOSE
    # ========================================================================

    async def compose(
        self, request: ComposeRequest
    ) -> Union[ComposeResponse, ComposeJobStatusResponse]:
        """
        Compose several captures into one image.

        Async requests come back as a job status (identified by ``jobId``);
        synchronous ones as the finished composition.
        """
        data = await self.request("POST", "/v1/screenshots/compose", body=request) or {}
        if "jobId" in data:
            return ComposeJobStatusResponse.from_dict(data)
        return ComposeResponse.from_dict(data)

    async def preview_layout(
        self,
        layout: str,
        image_count: int,
        canvas_width: Optional[int] = None,
        canvas_height: Optional[int] = None,
        aspect_ratios: Optional[str] = None,
    ) -> LayoutPreviewResponse:
        """Preview image placement for a layout without capturing anything."""
        return await self._get_model(
            LayoutPreviewResponse,
            "GET",
            "/v1/screenshots/compose/preview",
            query={
                "layout": getattr(layout, "value", layout),
                "image_count": image_count,
                "canvas_width": canvas_width,
                "canvas_height": canvas_height,
                "aspect_ratios": aspect_ratios,
            },
        )

    async def list_compose_jobs(self) -> List[ComposeJobSummaryResponse]:
        return await self._get_models(
            ComposeJobSummaryResponse, "GET", "/v1/screenshots/compose/jobs"
        )

    async def get_compose_job(self, job_id: str) -> ComposeJobStatusResponse:
        return await self._get_model(
            ComposeJobStatusResponse, "GET", f"/v1/screenshots/compose/jobs/{_segment(job_id)}"
        )

    # ========================================================================
    # SCHEDULES
    # ========================================================================

    async def create_schedule(self, request: CreateScheduleRequest) -> ScheduleResponse:
        return await self._get_model(ScheduleResponse, "POST", "/v1/schedules", body=request)

    async def list_schedules(self) -> ScheduleListResponse:
        return await self._get_model(ScheduleListResponse, "GET", "/v1/schedules")

    async def get_schedule(self, schedule_id: str) -> ScheduleResponse:
        return await self._get_model(
            ScheduleResponse, "GET", f"/v1/schedules/{_segment(schedule_id)}"
        )

    async def update_schedule(
        self, schedule_id: str, request: UpdateScheduleRequest
    ) -> ScheduleResponse:
        return await self._get_model(
            ScheduleResponse, "PUT", f"/v1/schedules/{_segment(schedule_id)}", body=request
        )

    async def delete_schedule(self, schedule_id: str) -> None:
        await self.request("DELETE", f"/v1/schedules/{_segment(schedule_id)}")

    async def pause_schedule(self, schedule_id: str) -> ScheduleResponse:
        return await self._get_model(
            ScheduleResponse, "POST", f"/v1/schedules/{_segment(schedule_id)}/pause"
        )

    async def resume_schedule(self, schedule_id: str) -> ScheduleResponse:
        return await self._get_model(
            ScheduleResponse, "POST", f"/v1/schedules/{_segment(schedule_id)}/resume"
        )

    async def trigger_schedule(self, schedule_id: str) -> ScheduleResponse:
        return await self._get_model(
            ScheduleResponse, "POST", f"/v1/schedules/{_segment(schedule_id)}/trigger"
        )

    async def get_schedule_history(
        self, schedule_id: str, limit: Optional[int] = None
    ) -> ScheduleHistoryResponse:
        return await self._get_model(
            ScheduleHistoryResponse,
            "GET",
            f"/v1/schedules/{_segment(schedule_id)}/history",
            query={"limit": limit},
        )

    # ========================================================================
    # USAGE
    # ========================================================================

    async def get_usage(self) -> UsageResponse:
        return await self._get_model(UsageResponse, "GET", "/v1/usage")

    async def get_quota_status(self) -> QuotaStatusResponse:
        return await self._get_model(QuotaStatusResponse, "GET", "/v1/usage/quota")

    # ========================================================================
    # MONITORING
    # ========================================================================

    def get_metrics(self) -> Dict[str, Any]:
        data = self.metrics.to_dict()
        data["retries"] = self.retry_statistics.total_retries
        data["retry_delay_ms"] = self.retry_statistics.total_delay_ms
        return data

    def reset_metrics(self) -> None:
        self.metrics.reset()
        self.retry_statistics.reset()


__all__ = [
    "AllscreenshotsClient",
    "AllscreenshotsClientBuilder",
    "MISSING_API_KEY_MESSAGE",
]
