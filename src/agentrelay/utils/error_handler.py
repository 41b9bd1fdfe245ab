"""Centralized error classification for provider and tool failures"""
import asyncio
import re
from typing import Optional

from ..exceptions import ProviderError, RelayError
from ..models.enums import ErrorKind
from ..utils.logging import get_logger

logger = get_logger(__name__)

# Checked in order; the first matching kind wins.
ERROR_PATTERNS: list[tuple[ErrorKind, list[re.Pattern[str]]]] = [
    (
        ErrorKind.RATE_LIMIT,
        [
            re.compile(p, re.IGNORECASE)
            for p in (r"rate limit", r"too many requests", r"quota exceeded", r"throttl", r"\b429\b")
        ],
    ),
    (
        ErrorKind.CONTEXT_TOO_LARGE,
        [
            re.compile(p, re.IGNORECASE)
            for p in (
                r"context.*too large",
                r"maximum context length",
                r"context size.*exceed",
                r"token limit",
                r"input.*too long",
            )
        ],
    ),
    (
        ErrorKind.TIMEOUT,
        [re.compile(p, re.IGNORECASE) for p in (r"timeout", r"timed out")],
    ),
    (
        ErrorKind.SERVER_ERROR,
        [
            re.compile(p, re.IGNORECASE)
            for p in (
                r"model.*overloaded",
                r"service unavailable",
                r"temporarily unavailable",
                r"internal server error",
                r"\b50[0234]\b",
            )
        ],
    ),
    (
        ErrorKind.AUTHENTICATION,
        [
            re.compile(p, re.IGNORECASE)
            for p in (r"unauthori[sz]ed", r"authentication", r"invalid.*key", r"forbidden", r"\b40[13]\b")
        ],
    ),
    (
        ErrorKind.INVALID_REQUEST,
        [
            re.compile(p, re.IGNORECASE)
            for p in (r"invalid request", r"malformed", r"bad request", r"validation error", r"\b4(00|22)\b")
        ],
    ),
    (
        ErrorKind.NETWORK,
        [
            re.compile(p, re.IGNORECASE)
            for p in (r"network", r"connection", r"\bdns\b", r"socket", r"unreachable")
        ],
    ),
]


def classify_status_code(status_code: Optional[int]) -> Optional[ErrorKind]:
    """Map an HTTP status code to an error kind, None when it says nothing."""
    if not isinstance(status_code, int):
        return None
    if status_code == 429:
        return ErrorKind.RATE_LIMIT
    if status_code in (401, 403):
        return ErrorKind.AUTHENTICATION
    if status_code == 408:
        return ErrorKind.TIMEOUT
    if status_code == 413:
        return ErrorKind.CONTEXT_TOO_LARGE
    if 400 <= status_code < 500:
        return ErrorKind.INVALID_REQUEST
    if status_code >= 500:
        return ErrorKind.SERVER_ERROR
    return None


def classify_error(exc: BaseException) -> ErrorKind:
    """
    Decide the ErrorKind of an arbitrary exception.

    Order of evidence: the kind carried by a RelayError, the exception
    type, an HTTP status code attribute, then message patterns. Anything
    unrecognized is INTERNAL and therefore never retried.

    Example:
        classify_error(TimeoutError())                     # TIMEOUT
        classify_error(Exception("Rate limit reached"))    # RATE_LIMIT
    """
    if isinstance(exc, RelayError):
        return exc.kind

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, ConnectionError):
        return ErrorKind.NETWORK

    status_kind = classify_status_code(
        getattr(exc, "status_code", None) or getattr(exc, "status", None)
    )
    if status_kind is not None:
        return status_kind

    text = f"{type(exc).__name__}: {exc}"
    for kind, patterns in ERROR_PATTERNS:
        if any(pattern.search(text) for pattern in patterns):
            return kind
    return ErrorKind.INTERNAL


def to_provider_error(exc: BaseException) -> ProviderError:
    """Wrap an unknown backend exception into a classified ProviderError."""
    if isinstance(exc, ProviderError):
        return exc
    kind = classify_error(exc)
    status_code = getattr(exc, "status_code", None)
    logger.debug("provider_error_classified", error_type=type(exc).__name__, kind=kind.value)
    return ProviderError(
        str(exc) or type(exc).__name__,
        kind=kind,
        status_code=status_code if isinstance(status_code, int) else None,
        details={"error_type": type(exc).__name__},
    )
