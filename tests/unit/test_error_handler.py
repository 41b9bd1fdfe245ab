"""Unit tests for error classification"""
import asyncio

import pytest
from agentrelay.exceptions import ProviderError, RoutingError
from agentrelay.models.enums import ErrorKind
from agentrelay.utils.error_handler import classify_error, classify_status_code, to_provider_error


class HTTPStatusError(Exception):
    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class TestClassifyError:
    """Test classification by type, status code and message"""

    def test_relay_errors_keep_their_kind(self):
        assert classify_error(RoutingError("x", source_agent="A", target_agent="B")) == ErrorKind.ROUTING

    def test_exception_types(self):
        assert classify_error(asyncio.TimeoutError()) == ErrorKind.TIMEOUT
        assert classify_error(ConnectionResetError()) == ErrorKind.NETWORK

    @pytest.mark.parametrize(
        "status_code,kind",
        [
            (429, ErrorKind.RATE_LIMIT),
            (401, ErrorKind.AUTHENTICATION),
            (403, ErrorKind.AUTHENTICATION),
            (400, ErrorKind.INVALID_REQUEST),
            (500, ErrorKind.SERVER_ERROR),
            (503, ErrorKind.SERVER_ERROR),
        ],
    )
    def test_status_codes(self, status_code, kind):
        assert classify_error(HTTPStatusError("failed", status_code)) == kind

    @pytest.mark.parametrize(
        "message,kind",
        [
            ("Rate limit reached for requests", ErrorKind.RATE_LIMIT),
            ("Too Many Requests", ErrorKind.RATE_LIMIT),
            ("This model's maximum context length is 8192 tokens", ErrorKind.CONTEXT_TOO_LARGE),
            ("Request timed out", ErrorKind.TIMEOUT),
            ("The model is overloaded", ErrorKind.SERVER_ERROR),
            ("Invalid API key provided", ErrorKind.AUTHENTICATION),
            ("Connection refused", ErrorKind.NETWORK),
            ("malformed payload", ErrorKind.INVALID_REQUEST),
        ],
    )
    def test_message_patterns(self, message, kind):
        assert classify_error(Exception(message)) == kind

    def test_unknown_is_internal(self):
        assert classify_error(KeyError("missing")) == ErrorKind.INTERNAL

    def test_classify_status_code_ignores_non_int(self):
        assert classify_status_code(None) is None
        assert classify_status_code("500") is None


class TestToProviderError:
    """Unknown backend exceptions are wrapped with their classification"""

    def test_wraps_with_kind(self):
        error = to_provider_error(HTTPStatusError("bad gateway", 502))

        assert isinstance(error, ProviderError)
        assert error.kind == ErrorKind.SERVER_ERROR
        assert error.status_code == 502
        assert error.details["error_type"] == "HTTPStatusError"

    def test_provider_errors_pass_through(self):
        original = ProviderError("x", kind=ErrorKind.NETWORK)
        assert to_provider_error(original) is original
