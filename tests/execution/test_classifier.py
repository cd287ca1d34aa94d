"""Tests for failure classification and error enhancement."""

from datetime import UTC, datetime

import pytest

from callguard.core.errors import (
    ApiError,
    BurstLimitError,
    CallguardError,
    CircuitOpenError,
    ErrorKind,
    InvalidConfigError,
    OperationTimeoutError,
)
from callguard.execution.classifier import classify, enhance, extract_status, is_retryable
from tests._support import HttpError, ResponseError


class TestExtractStatus:
    def test_reads_status_attribute(self):
        assert extract_status(HttpError(503)) == 503

    def test_reads_response_status_code(self):
        assert extract_status(ResponseError(429)) == 429

    def test_missing_status(self):
        assert extract_status(RuntimeError("boom")) is None

    def test_ignores_non_integer_status(self):
        error = RuntimeError("boom")
        error.status = "bad"
        assert extract_status(error) is None

        error.status = True
        assert extract_status(error) is None


class TestClassifyByStatus:
    @pytest.mark.parametrize(
        "status, kind, retryable",
        [
            (400, ErrorKind.CLIENT_ERROR, False),
            (401, ErrorKind.CLIENT_ERROR, False),
            (404, ErrorKind.CLIENT_ERROR, False),
            (408, ErrorKind.TIMEOUT, True),
            (429, ErrorKind.RATE_LIMITED, True),
            (500, ErrorKind.SERVER_ERROR, True),
            (503, ErrorKind.SERVER_ERROR, True),
        ],
    )
    def test_status_rules(self, status, kind, retryable):
        assert classify(HttpError(status)) == (kind, retryable)

    def test_status_beats_message(self):
        # "timeout" in the text would otherwise be retryable
        assert classify(HttpError(400, "gateway timeout upstream")) == (ErrorKind.CLIENT_ERROR, False)

    def test_status_on_api_error(self):
        error = ApiError("boom", status=502)
        assert classify(error) == (ErrorKind.SERVER_ERROR, True)


class TestClassifyByMessage:
    @pytest.mark.parametrize(
        "message",
        ["Network error", "ECONNRESET by peer", "getaddrinfo ENOTFOUND api.example.com", "Connection refused"],
    )
    def test_network_messages_retryable(self, message):
        assert classify(RuntimeError(message)) == (ErrorKind.NETWORK, True)

    def test_timeout_message(self):
        assert classify(RuntimeError("Request Timeout")) == (ErrorKind.TIMEOUT, True)

    @pytest.mark.parametrize("message", ["Unauthorized", "403 Forbidden", "Invalid API key provided"])
    def test_auth_messages_not_retryable(self, message):
        assert classify(RuntimeError(message)) == (ErrorKind.CLIENT_ERROR, False)

    def test_unknown_defaults_to_retryable(self):
        assert classify(ValueError("something odd")) == (ErrorKind.UNKNOWN, True)

    def test_builtin_exception_types(self):
        assert classify(TimeoutError()) == (ErrorKind.TIMEOUT, True)
        assert classify(ConnectionResetError()) == (ErrorKind.NETWORK, True)


class TestClassifyTypedErrors:
    def test_circuit_open(self):
        assert classify(CircuitOpenError()) == (ErrorKind.CIRCUIT_OPEN, True)

    def test_burst_limit(self):
        assert classify(BurstLimitError()) == (ErrorKind.BURST_LIMIT, True)

    def test_operation_timeout(self):
        assert classify(OperationTimeoutError(500, "x")) == (ErrorKind.TIMEOUT, True)

    def test_api_error_keeps_explicit_kind(self):
        error = ApiError("nope", kind=ErrorKind.CLIENT_ERROR, retryable=False)
        assert classify(error) == (ErrorKind.CLIENT_ERROR, False)
        assert is_retryable(error) is False

    def test_other_callguard_errors_fall_through_to_message_rules(self):
        assert classify(InvalidConfigError("retry.max_retries", -1)) == (ErrorKind.UNKNOWN, True)
        assert classify(CallguardError("Connection refused")) == (ErrorKind.NETWORK, True)
        assert classify(CallguardError("Forbidden")) == (ErrorKind.CLIENT_ERROR, False)


class TestEnhance:
    def test_wraps_plain_exception(self):
        cause = HttpError(503, "Service unavailable")
        when = datetime(2026, 3, 1, tzinfo=UTC)

        error = enhance(cause, "voice", "create_call", timestamp=when)

        assert isinstance(error, ApiError)
        assert error.message == "Service unavailable"
        assert error.kind == ErrorKind.SERVER_ERROR
        assert error.status == 503
        assert error.retryable is True
        assert error.service == "voice"
        assert error.operation == "create_call"
        assert error.timestamp == when
        assert error.attempt is None
        assert error.__cause__ is cause

    def test_appends_one_based_attempt(self):
        error = enhance(RuntimeError("Network error"), "llm", "summarize", attempt=2)

        assert error.attempt == 2
        assert error.message == "Network error (attempt 3)"
        assert str(error) == "Network error (attempt 3)"

    def test_updates_existing_api_error_in_place(self):
        original = ApiError("bad", status=400)

        error = enhance(original, "database", "query", attempt=0)

        assert error is original
        assert error.kind == ErrorKind.CLIENT_ERROR
        assert error.retryable is False
        assert error.service == "database"
        assert error.message == "bad (attempt 1)"

    def test_empty_message_falls_back_to_type_name(self):
        error = enhance(ConnectionError(), "voice", "dial")

        assert error.message == "ConnectionError"
        assert error.kind == ErrorKind.NETWORK

    def test_preserves_typed_error_context(self):
        error = enhance(CircuitOpenError(context={"circuit": "voice"}), "voice", "dial")

        assert error.kind == ErrorKind.CIRCUIT_OPEN
        assert error.context == {"circuit": "voice"}
