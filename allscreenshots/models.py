"""
Request and response models for the Allscreenshots API.

Requests are dataclasses serialized to the API's camelCase JSON with unset
(``None``) fields omitted. Responses are built with ``from_dict`` and keep
the raw payload so fields added server-side are never lost.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type, TypeVar, Union

M = TypeVar("M", bound="ApiModel")


# ============================================================================
# ENUMS
# ============================================================================

class ImageFormat(str, Enum):
    PNG = "png"
    JPEG = "jpeg"
    JPG = "jpg"
    WEBP = "webp"
    PDF = "pdf"


class WaitUntil(str, Enum):
    LOAD = "load"
    DOM_CONTENT_LOADED = "domcontentloaded"
    NETWORK_IDLE = "networkidle"
    COMMIT = "commit"


class BlockLevel(str, Enum):
    NONE = "none"
    LIGHT = "light"
    NORMAL = "normal"
    PRO = "pro"
    PRO_PLUS = "pro_plus"
    ULTIMATE = "ultimate"


class ResponseType(str, Enum):
    BINARY = "BINARY"
    JSON = "JSON"


class JobStatus(str, Enum):
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class LayoutType(str, Enum):
    GRID = "GRID"
    HORIZONTAL = "HORIZONTAL"
    VERTICAL = "VERTICAL"
    MASONRY = "MASONRY"
    MONDRIAN = "MONDRIAN"
    PARTITIONING = "PARTITIONING"
    AUTO = "AUTO"


class Alignment(str, Enum):
    TOP = "top"
    CENTER = "center"
    BOTTOM = "bottom"


# ============================================================================
# SERIALIZATION
# ============================================================================

def to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _serialize(value: Any) -> Any:
    if isinstance(value, ApiModel):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items() if v is not None}
    return value


class ApiModel:
    """
    Mixin for API dataclasses.

    ``_nested`` maps a field name to the model class of its value and whether
    the value is a list of that model.
    """

    _nested: ClassVar[Dict[str, Tuple[Type["ApiModel"], bool]]] = {}
    _aliases: ClassVar[Dict[str, str]] = {}

    @classmethod
    def _wire_name(cls, name: str) -> str:
        return cls._aliases.get(name, to_camel(name))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            if f.name == "raw":
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            data[self._wire_name(f.name)] = _serialize(value)
        return data

    @classmethod
    def from_dict(cls: Type[M], data: Dict[str, Any]) -> M:
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):  # type: ignore[arg-type]
            if f.name == "raw":
                kwargs["raw"] = data
                continue
            key = cls._wire_name(f.name)
            if key not in data:
                continue
            value = data[key]
            nested = cls._nested.get(f.name)
            if nested is not None and value is not None:
                model, many = nested
                value = [model.from_dict(v) for v in value] if many else model.from_dict(value)
            kwargs[f.name] = value
        return cls(**kwargs)


# ============================================================================
# SHARED TYPES
# ============================================================================

@dataclass
class ViewportConfig(ApiModel):
    """Viewport size in pixels (100-4096) and device scale factor (1-3)."""
    width: Optional[int] = None
    height: Optional[int] = None
    device_scale_factor: Optional[float] = None


@dataclass
class LabelConfig(ApiModel):
    show: Optional[bool] = None
    position: Optional[str] = None
    font_size: Optional[int] = None
    font_color: Optional[str] = None
    background_color: Optional[str] = None
    padding: Optional[int] = None


@dataclass
class BorderConfig(ApiModel):
    width: Optional[int] = None
    color: Optional[str] = None
    radius: Optional[int] = None


@dataclass
class ShadowConfig(ApiModel):
    enabled: Optional[bool] = None
    color: Optional[str] = None
    blur: Optional[int] = None
    offset_x: Optional[int] = None
    offset_y: Optional[int] = None


@dataclass
class CaptureOptions(ApiModel):
    """Capture options shared by bulk defaults, per-URL options and schedules."""
    viewport: Optional[ViewportConfig] = None
    device: Optional[str] = None
    format: Optional[Union[ImageFormat, str]] = None
    full_page: Optional[bool] = None
    quality: Optional[int] = None
    delay: Optional[int] = None
    wait_for: Optional[str] = None
    wait_until: Optional[Union[WaitUntil, str]] = None
    timeout: Optional[int] = None
    dark_mode: Optional[bool] = None
    custom_css: Optional[str] = None
    hide_selectors: Optional[List[str]] = None
    selector: Optional[str] = None
    block_ads: Optional[bool] = None
    block_cookie_banners: Optional[bool] = None
    block_level: Optional[Union[BlockLevel, str]] = None


# ============================================================================
# SCREENSHOTS
# ============================================================================

@dataclass
class ScreenshotRequest(ApiModel):
    """
    Parameters for a single capture.

    Example:
        ScreenshotRequest(url="https://github.com", device="Desktop HD", full_page=True)
    """
    url: str
    viewport: Optional[ViewportConfig] = None
    device: Optional[str] = None
    format: Optional[Union[ImageFormat, str]] = None
    full_page: Optional[bool] = None
    quality: Optional[int] = None
    delay: Optional[int] = None
    wait_for: Optional[str] = None
    wait_until: Optional[Union[WaitUntil, str]] = None
    timeout: Optional[int] = None
    dark_mode: Optional[bool] = None
    custom_css: Optional[str] = None
    hide_selectors: Optional[List[str]] = None
    selector: Optional[str] = None
    block_ads: Optional[bool] = None
    block_cookie_banners: Optional[bool] = None
    block_level: Optional[Union[BlockLevel, str]] = None
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = None
    response_type: Optional[Union[ResponseType, str]] = None


@dataclass
class AsyncJobCreatedResponse(ApiModel):
    id: str = ""
    status: str = ""
    status_url: str = ""
    created_at: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class JobResponse(ApiModel):
    id: str = ""
    status: str = ""
    url: str = ""
    result_url: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    created_at: str = ""
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    expires_at: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_finished(self) -> bool:
        return self.status in (
            JobStatus.COMPLETED.value,
            JobStatus.FAILED.value,
            JobStatus.CANCELLED.value,
        )


# ============================================================================
# BULK
# ============================================================================

@dataclass
class BulkUrlRequest(ApiModel):
    url: str
    options: Optional[CaptureOptions] = None


@dataclass
class BulkRequest(ApiModel):
    urls: List[BulkUrlRequest]
    defaults: Optional[CaptureOptions] = None
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = None


@dataclass
class BulkJobInfo(ApiModel):
    id: str = ""
    url: str = ""
    status: str = ""
    result_url: Optional[str] = None
    storage_url: Optional[str] = None
    format: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    file_size: Optional[int] = None
    render_time_ms: Optional[int] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None


@dataclass
class BulkJobSummary(ApiModel):
    id: str = ""
    status: str = ""
    total_jobs: int = 0
    completed_jobs: int = 0
    failed_jobs: int = 0
    progress: float = 0
    created_at: str = ""
    completed_at: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class BulkResponse(BulkJobSummary):
    jobs: List[BulkJobInfo] = field(default_factory=list)

    _nested = {"jobs": (BulkJobInfo, True)}


@dataclass
class BulkStatusResponse(BulkResponse):
    """Bulk job with per-URL result details."""


# ============================================================================
# COMPOSE
# ============================================================================

@dataclass
class CaptureItem(ApiModel):
    url: str
    id: Optional[str] = None
    label: Optional[str] = None
    viewport: Optional[ViewportConfig] = None
    device: Optional[str] = None
    full_page: Optional[bool] = None
    dark_mode: Optional[bool] = None
    delay: Optional[int] = None


@dataclass
class VariantConfig(ApiModel):
    id: Optional[str] = None
    label: Optional[str] = None
    viewport: Optional[ViewportConfig] = None
    device: Optional[str] = None
    full_page: Optional[bool] = None
    dark_mode: Optional[bool] = None
    delay: Optional[int] = None
    custom_css: Optional[str] = None


@dataclass
class ComposeOutputConfig(ApiModel):
    layout: Optional[Union[LayoutType, str]] = None
    format: Optional[Union[ImageFormat, str]] = None
    quality: Optional[int] = None
    columns: Optional[int] = None
    spacing: Optional[int] = None
    padding: Optional[int] = None
    background: Optional[str] = None
    alignment: Optional[Union[Alignment, str]] = None
    max_width: Optional[int] = None
    max_height: Optional[int] = None
    thumbnail_width: Optional[int] = None
    labels: Optional[LabelConfig] = None
    border: Optional[BorderConfig] = None
    shadow: Optional[ShadowConfig] = None


@dataclass
class ComposeRequest(ApiModel):
    """Either ``captures`` (distinct URLs) or ``url`` plus ``variants``."""
    captures: Optional[List[CaptureItem]] = None
    url: Optional[str] = None
    variants: Optional[List[VariantConfig]] = None
    defaults: Optional[CaptureOptions] = None
    output: Optional[ComposeOutputConfig] = None
    run_async: Optional[bool] = None
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = None
    captures_mode: Optional[bool] = None
    variants_mode: Optional[bool] = None

    _aliases = {"run_async": "async"}


@dataclass
class CaptureMetadata(ApiModel):
    url: str = ""
    id: Optional[str] = None
    label: Optional[str] = None
    width: int = 0
    height: int = 0


@dataclass
class ComposeMetadata(ApiModel):
    captures: List[CaptureMetadata] = field(default_factory=list)
    total_captures: int = 0

    _nested = {"captures": (CaptureMetadata, True)}


@dataclass
class ComposeResponse(ApiModel):
    url: str = ""
    storage_url: Optional[str] = None
    expires_at: Optional[str] = None
    width: int = 0
    height: int = 0
    format: str = ""
    file_size: int = 0
    render_time_ms: int = 0
    layout: str = ""
    metadata: Optional[ComposeMetadata] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    _nested = {"metadata": (ComposeMetadata, False)}


@dataclass
class ComposeJobStatusResponse(ApiModel):
    job_id: str = ""
    status: str = ""
    progress: float = 0
    total_captures: int = 0
    completed_captures: int = 0
    result: Optional[ComposeResponse] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    created_at: str = ""
    completed_at: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    _nested = {"result": (ComposeResponse, False)}


@dataclass
class ComposeJobSummaryResponse(ApiModel):
    job_id: str = ""
    status: str = ""
    total_captures: int = 0
    completed_captures: int = 0
    failed_captures: int = 0
    progress: float = 0
    layout_type: Optional[str] = None
    created_at: str = ""
    completed_at: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class PlacementPreview(ApiModel):
    index: int = 0
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0
    label: Optional[str] = None


@dataclass
class LayoutPreviewResponse(ApiModel):
    layout: str = ""
    resolved_layout: str = ""
    canvas_width: int = 0
    canvas_height: int = 0
    placements: List[PlacementPreview] = field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    _nested = {"placements": (PlacementPreview, True)}


# ============================================================================
# SCHEDULES
# ============================================================================

@dataclass
class CreateScheduleRequest(ApiModel):
    """``schedule`` is a cron expression evaluated server-side in ``timezone``."""
    name: str
    url: str
    schedule: str
    timezone: Optional[str] = None
    options: Optional[CaptureOptions] = None
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = None
    retention_days: Optional[int] = None
    starts_at: Optional[str] = None
    ends_at: Optional[str] = None


@dataclass
class UpdateScheduleRequest(ApiModel):
    name: Optional[str] = None
    url: Optional[str] = None
    schedule: Optional[str] = None
    timezone: Optional[str] = None
    options: Optional[CaptureOptions] = None
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = None
    retention_days: Optional[int] = None
    starts_at: Optional[str] = None
    ends_at: Optional[str] = None


@dataclass
class ScheduleResponse(ApiModel):
    id: str = ""
    name: str = ""
    url: str = ""
    schedule: str = ""
    schedule_description: Optional[str] = None
    timezone: str = ""
    status: str = ""
    options: Optional[Dict[str, Any]] = None
    webhook_url: Optional[str] = None
    retention_days: Optional[int] = None
    starts_at: Optional[str] = None
    ends_at: Optional[str] = None
    last_executed_at: Optional[str] = None
    next_execution_at: Optional[str] = None
    execution_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    created_at: str = ""
    updated_at: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class ScheduleListResponse(ApiModel):
    schedules: List[ScheduleResponse] = field(default_factory=list)
    total: int = 0
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    _nested = {"schedules": (ScheduleResponse, True)}


@dataclass
class ScheduleExecutionResponse(ApiModel):
    id: str = ""
    executed_at: str = ""
    status: str = ""
    result_url: Optional[str] = None
    storage_url: Optional[str] = None
    file_size: Optional[int] = None
    render_time_ms: Optional[int] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    expires_at: Optional[str] = None


@dataclass
class ScheduleHistoryResponse(ApiModel):
    schedule_id: str = ""
    total_executions: int = 0
    executions: List[ScheduleExecutionResponse] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    _nested = {"executions": (ScheduleExecutionResponse, True)}


# ============================================================================
# USAGE
# ============================================================================

@dataclass
class QuotaDetailResponse(ApiModel):
    limit: int = 0
    used: int = 0
    remaining: int = 0
    percent_used: float = 0.0


@dataclass
class BandwidthQuotaResponse(ApiModel):
    limit_bytes: int = 0
    limit_formatted: str = ""
    used_bytes: int = 0
    used_formatted: str = ""
    remaining_bytes: int = 0
    remaining_formatted: str = ""
    percent_used: float = 0.0


@dataclass
class QuotaResponse(ApiModel):
    screenshots: QuotaDetailResponse = field(default_factory=QuotaDetailResponse)
    bandwidth: Optional[BandwidthQuotaResponse] = None

    _nested = {
        "screenshots": (QuotaDetailResponse, False),
        "bandwidth": (BandwidthQuotaResponse, False),
    }


@dataclass
class PeriodUsageResponse(ApiModel):
    period_start: str = ""
    period_end: str = ""
    screenshots_count: int = 0
    bandwidth_bytes: int = 0
    bandwidth_formatted: str = ""


@dataclass
class TotalsResponse(ApiModel):
    screenshots_count: int = 0
    bandwidth_bytes: int = 0
    bandwidth_formatted: str = ""


@dataclass
class UsageResponse(ApiModel):
    tier: str = ""
    current_period: PeriodUsageResponse = field(default_factory=PeriodUsageResponse)
    quota: QuotaResponse = field(default_factory=QuotaResponse)
    history: List[PeriodUsageResponse] = field(default_factory=list)
    totals: TotalsResponse = field(default_factory=TotalsResponse)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    _nested = {
        "current_period": (PeriodUsageResponse, False),
        "quota": (QuotaResponse, False),
        "history": (PeriodUsageResponse, True),
        "totals": (TotalsResponse, False),
    }


@dataclass
class QuotaStatusResponse(ApiModel):
    tier: str = ""
    screenshots: QuotaDetailResponse = field(default_factory=QuotaDetailResponse)
    bandwidth: BandwidthQuotaResponse = field(default_factory=BandwidthQuotaResponse)
    period_ends: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    _nested = {
        "screenshots": (QuotaDetailResponse, False),
        "bandwidth": (BandwidthQuotaResponse, False),
    }
