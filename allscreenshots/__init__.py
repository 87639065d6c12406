"""
Allscreenshots

Async Python client for the Allscreenshots screenshot capture API.
"""

__version__ = "1.0.0"

from .client import AllscreenshotsClient, AllscreenshotsClientBuilder
from .config import ClientSettings, get_settings
from .exceptions import (
    AllscreenshotsError,
    ConfigurationError,
    ErrorKind,
    classify_response,
    is_retryable,
)
from .models import (
    BulkRequest,
    BulkUrlRequest,
    CaptureItem,
    CaptureOptions,
    ComposeOutputConfig,
    ComposeRequest,
    CreateScheduleRequest,
    ScreenshotRequest,
    UpdateScheduleRequest,
    VariantConfig,
    ViewportConfig,
)
from .retry import DEFAULT_RETRY_CONFIG, RetryConfig, async_retry, with_retry

__all__ = [
    "AllscreenshotsClient",
    "AllscreenshotsClientBuilder",
    "ClientSettings",
    "get_settings",
    "AllscreenshotsError",
    "ConfigurationError",
    "ErrorKind",
    "classify_response",
    "is_retryable",
    "BulkRequest",
    "BulkUrlRequest",
    "CaptureItem",
    "CaptureOptions",
    "ComposeOutputConfig",
    "ComposeRequest",
    "CreateScheduleRequest",
    "ScreenshotRequest",
    "UpdateScheduleRequest",
    "VariantConfig",
    "ViewportConfig",
    "DEFAULT_RETRY_CONFIG",
    "RetryConfig",
    "async_retry",
    "with_retry",
]
