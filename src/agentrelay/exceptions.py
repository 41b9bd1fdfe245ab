"""Exception hierarchy with structured context for the agent runtime."""

from datetime import datetime
from typing import Any

from .models.enums import ErrorKind


class RelayError(Exception):
    """Base exception with structured context and metadata"""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
        user_message: str | None = None,
    ):
        """
        Initialize exception with context.

        Args:
            message: Technical error message for logs
            details: Additional context (dict for structured logging)
            recoverable: Whether the failure may succeed on retry
            user_message: User-friendly error message
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable
        self.user_message = user_message or message
        self.timestamp = datetime.now()

    def __str__(self) -> str:
        parts = [self.message]

        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({details_str})")

        if self.recoverable:
            parts.append("[recoverable]")

        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging"""
        return {
            "error_type": self.__class__.__name__,
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "user_message": self.user_message,
            "timestamp": self.timestamp.isoformat(),
        }


class ConfigurationError(RelayError):
    """Invalid agent, registry or runtime configuration"""

    kind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value

        super().__init__(
            message=message,
            details=details,
            recoverable=False,
            user_message=f"Configuration error: {message}",
        )
        self.field = field
        self.value = value


class ProviderError(RelayError):
    """Model backend failure, classified by kind"""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.SERVER_ERROR,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
        retry_after: float | None = None,
    ):
        if kind == ErrorKind.RATE_LIMIT:
            user_message = "API rate limit exceeded. Please try again in a moment."
        elif kind == ErrorKind.AUTHENTICATION:
            user_message = "API authentication failed. Please check your API key."
        elif kind == ErrorKind.SERVER_ERROR:
            user_message = "Service temporarily unavailable. Please try again."
        else:
            user_message = "An error occurred while calling the model backend."

        details = dict(details or {})
        if status_code is not None:
            details["status_code"] = status_code

        super().__init__(
            message=message,
            details=details,
            recoverable=kind.is_transient,
            user_message=user_message,
        )
        self.kind = kind
        self.status_code = status_code
        self.retry_after = retry_after


class ProviderTimeoutError(ProviderError):
    """Model call exceeded its deadline"""

    def __init__(self, message: str, timeout: float, details: dict[str, Any] | None = None):
        details = dict(details or {})
        details["timeout"] = timeout
        super().__init__(message, kind=ErrorKind.TIMEOUT, details=details)
        self.timeout = timeout


class RateLimitError(ProviderError):
    def __init__(self, message: str, retry_after: float | None = None, details: dict[str, Any] | None = None):
        super().__init__(
            message,
            kind=ErrorKind.RATE_LIMIT,
            status_code=429,
            details=details,
            retry_after=retry_after,
        )


class ProviderFatalError(ProviderError):
    """Authentication or malformed-request failure; never retried"""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.INVALID_REQUEST,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, kind=kind, status_code=status_code, details=details)


class RetriesExhaustedError(ProviderError):
    """Transient failures persisted past the retry budget"""

    def __init__(self, message: str, attempts: list[dict[str, Any]], last_error: ProviderError):
        super().__init__(
            message,
            kind=ErrorKind.RETRIES_EXHAUSTED,
            status_code=last_error.status_code,
            details={"attempts": attempts, "last_kind": last_error.kind.value},
        )
        self.attempts = attempts
        self.last_error = last_error
        self.recoverable = False


class CircuitOpenError(RelayError):
    """Breaker is open; the call was rejected without reaching the backend"""

    kind = ErrorKind.CIRCUIT_OPEN

    def __init__(self, message: str, retry_after: float | None = None, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            details=details,
            recoverable=False,
            user_message="The model backend is temporarily disabled after repeated failures.",
        )
        self.retry_after = retry_after


class RoutingError(RelayError):
    """Handoff target is unknown or not permitted for the current agent"""

    kind = ErrorKind.ROUTING

    def __init__(self, message: str, source_agent: str, target_agent: str, details: dict[str, Any] | None = None):
        details = dict(details or {})
        details.update({"source_agent": source_agent, "target_agent": target_agent})
        super().__init__(
            message=message,
            details=details,
            recoverable=False,
            user_message=f"Agent '{source_agent}' cannot hand off to '{target_agent}'.",
        )
        self.source_agent = source_agent
        self.target_agent = target_agent


class ToolExecutionError(RelayError):
    """Tool failure; captured into a failed ToolResult by the invoker"""

    kind = ErrorKind.TOOL

    def __init__(self, message: str, tool_name: str, details: dict[str, Any] | None = None):
        details = dict(details or {})
        details["tool_name"] = tool_name

        super().__init__(
            message=message,
            details=details,
            recoverable=True,
            user_message=f"Tool '{tool_name}' execution failed.",
        )
        self.tool_name = tool_name


class GuardrailError(RelayError):
    """A guardrail raised or timed out during evaluation"""

    kind = ErrorKind.GUARDRAIL

    def __init__(self, message: str, guardrail: str, details: dict[str, Any] | None = None):
        details = dict(details or {})
        details["guardrail"] = guardrail
        super().__init__(message=message, details=details, recoverable=False)
        self.guardrail = guardrail


class EmptyResponseError(RelayError):
    """Model returned neither content nor tool calls"""

    kind = ErrorKind.EMPTY_RESPONSE

    def __init__(self, agent: str, details: dict[str, Any] | None = None):
        details = dict(details or {})
        details["agent"] = agent
        super().__init__(
            message=f"Model returned an empty response for agent '{agent}'",
            details=details,
            recoverable=False,
        )


class MaxTurnsExceeded(RelayError):
    kind = ErrorKind.MAX_TURNS

    def __init__(self, max_turns: int, agent: str):
        super().__init__(
            message=f"Maximum turns ({max_turns}) exceeded",
            details={"max_turns": max_turns, "agent": agent},
            recoverable=False,
            user_message="The conversation did not converge within the allowed number of turns.",
        )
        self.max_turns = max_turns


class OutputValidationError(RelayError):
    """Final assistant content did not match the agent's output type"""

    kind = ErrorKind.OUTPUT_VALIDATION

    def __init__(self, agent: str, output_type: str, errors: list[dict[str, Any]]):
        super().__init__(
            message=f"Output of agent '{agent}' does not match {output_type}",
            details={"agent": agent, "output_type": output_type, "errors": errors},
            recoverable=False,
            user_message="The model's answer did not have the expected structure.",
        )
        self.errors = errors
