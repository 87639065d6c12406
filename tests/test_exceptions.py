import asyncio

import aiohttp
import pytest

from allscreenshots.exceptions import (
    AllscreenshotsError,
    ConfigurationError,
    ErrorKind,
    classify_response,
    classify_transport_error,
    get_retry_after,
    is_retryable,
    parse_retry_after,
)


class TestClassifyResponse:
    def test_400_is_validation_with_message(self):
        error = classify_response(400, {"message": "Invalid URL"})
        assert error.kind is ErrorKind.VALIDATION
        assert error.message == "Invalid URL"
        assert error.status_code == 400
        assert error.error_code == "VALIDATION_ERROR"

    def test_400_extracts_validation_errors(self):
        error = classify_response(
            400,
            {"message": "Validation failed", "validationErrors": {"url": "Invalid format"}},
        )
        assert error.validation_errors == {"url": "Invalid format"}

    @pytest.mark.parametrize("payload", [["url is required"], "url is required", 42])
    def test_400_ignores_malformed_validation_errors(self, payload):
        error = classify_response(400, {"message": "bad", "validationErrors": payload})
        assert error.kind is ErrorKind.VALIDATION
        assert error.message == "bad"
        assert error.validation_errors is None

    def test_400_falls_back_to_error_field(self):
        error = classify_response(400, {"error": "Bad Request"})
        assert error.message == "Bad Request"

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_statuses(self, status):
        error = classify_response(status, {"message": "Invalid API key"})
        assert error.kind is ErrorKind.AUTHENTICATION
        assert error.status_code == status

    def test_402_is_quota_exceeded(self):
        error = classify_response(402, {"message": "Quota exceeded"})
        assert error.kind is ErrorKind.QUOTA_EXCEEDED
        assert error.error_code == "QUOTA_EXCEEDED"

    def test_404_is_not_found(self):
        assert classify_response(404, {"message": "Not found"}).kind is ErrorKind.NOT_FOUND

    def test_429_carries_retry_after(self):
        error = classify_response(429, {"message": "Rate limited"}, retry_after=60)
        assert error.kind is ErrorKind.RATE_LIMITED
        assert error.retry_after == 60

    def test_429_without_hint(self):
        error = classify_response(429, None)
        assert error.retry_after is None
        assert error.message == "HTTP 429 error"

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    def test_server_statuses_preserve_code(self, status):
        error = classify_response(status, {"message": "Server error"})
        assert error.kind is ErrorKind.SERVER
        assert error.status_code == status

    def test_unknown_status(self):
        error = classify_response(418, {"message": "I'm a teapot", "errorCode": "TEAPOT"})
        assert error.kind is ErrorKind.UNKNOWN
        assert error.message == "I'm a teapot"
        assert error.status_code == 418
        assert error.error_code == "TEAPOT"

    def test_string_body_is_message(self):
        error = classify_response(400, "Plain text error")
        assert error.message == "Plain text error"
        assert error.validation_errors is None

    def test_null_body_message(self):
        assert classify_response(500, None).message == "HTTP 500 error"

    def test_retry_after_ignored_for_other_kinds(self):
        error = classify_response(503, None, retry_after=10)
        assert error.retry_after is None
        assert get_retry_after(error) is None


class TestTransportErrors:
    def test_timeout(self):
        error = classify_transport_error(asyncio.TimeoutError(), 5000)
        assert error.kind is ErrorKind.TIMEOUT
        assert error.status_code is None
        assert "5000ms" in error.message

    def test_aiohttp_server_timeout_is_timeout(self):
        error = classify_transport_error(aiohttp.ServerTimeoutError("read timeout"))
        assert error.kind is ErrorKind.TIMEOUT

    def test_connection_failure_is_network(self):
        error = classify_transport_error(aiohttp.ClientConnectionError("refused"))
        assert error.kind is ErrorKind.NETWORK
        assert error.status_code is None
        assert error.error_code == "NETWORK_ERROR"


class TestRetryability:
    @pytest.mark.parametrize(
        "kind", [ErrorKind.RATE_LIMITED, ErrorKind.SERVER, ErrorKind.NETWORK, ErrorKind.TIMEOUT]
    )
    def test_retryable_kinds(self, kind):
        assert is_retryable(AllscreenshotsError("x", kind=kind))

    @pytest.mark.parametrize(
        "kind",
        [
            ErrorKind.VALIDATION,
            ErrorKind.AUTHENTICATION,
            ErrorKind.NOT_FOUND,
            ErrorKind.QUOTA_EXCEEDED,
            ErrorKind.UNKNOWN,
        ],
    )
    def test_terminal_kinds(self, kind):
        assert not is_retryable(AllscreenshotsError("x", kind=kind))

    def test_foreign_exceptions_are_not_retryable(self):
        assert not is_retryable(ValueError("boom"))

    def test_configuration_error_is_separate(self):
        error = ConfigurationError("API key is required.")
        assert not isinstance(error, AllscreenshotsError)
        assert not is_retryable(error)


def test_error_to_dict_and_str():
    error = classify_response(502, {"message": "Bad gateway"})
    data = error.to_dict()
    assert data["kind"] == "server"
    assert data["status_code"] == 502
    assert data["is_retryable"] is True
    assert str(error) == "Bad gateway"
    assert error.format_message() == "[server 502 SERVER_ERROR] Bad gateway"


@pytest.mark.parametrize(
    "header, expected",
    [
        ("5", 5),
        (" 60 ", 60),
        ("0", 0),
        ("-5", None),
        (None, None),
        ("Wed, 21 Oct 2015 07:28:00 GMT", None),
    ],
)
def test_parse_retry_after(header, expected):
    assert parse_retry_after(header) == expected
