"""Enumerations shared across the runtime.

Every enum is a ``str`` subclass so values serialize cleanly into logs,
JSONL audit records and pydantic models.
"""

from enum import Enum


class Role(str, Enum):
    """Conversation message roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"

    def __str__(self) -> str:
        return self.value


class Direction(str, Enum):
    """Which side of the model call a guardrail inspects."""

    INPUT = "input"
    OUTPUT = "output"

    def __str__(self) -> str:
        return self.value


class Verdict(str, Enum):
    """Guardrail verdicts, declared from highest to lowest precedence.

    Attributes:
        BLOCK: Content must not proceed
        REDACT: Content proceeds with sensitive spans replaced
        FLAG: Content proceeds unchanged; a review record is kept
        LOG: Content proceeds unchanged; an audit record is kept
        ALLOW: Nothing to report
    """

    BLOCK = "block"
    REDACT = "redact"
    FLAG = "flag"
    LOG = "log"
    ALLOW = "allow"

    @property
    def precedence(self) -> int:
        """Lower number wins during aggregation."""
        return _VERDICT_ORDER.index(self)

    def __str__(self) -> str:
        return self.value


_VERDICT_ORDER = [Verdict.BLOCK, Verdict.REDACT, Verdict.FLAG, Verdict.LOG, Verdict.ALLOW]


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value


class BreakerState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __str__(self) -> str:
        return self.value


class RunStatus(str, Enum):
    """Terminal outcome of a Runner invocation."""

    COMPLETED = "completed"
    BLOCKED = "blocked"
    MAX_TURNS_EXCEEDED = "max_turns_exceeded"
    STOPPED = "stopped"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


class RunState(str, Enum):
    """Runner state machine positions, used for logging and hooks."""

    START = "start"
    AWAITING_MODEL = "awaiting_model"
    PROCESSING = "processing"
    TOOL_DISPATCH = "tool_dispatch"
    HANDOFF_PENDING = "handoff_pending"
    TERMINAL = "terminal"

    def __str__(self) -> str:
        return self.value


class ErrorKind(str, Enum):
    """Named failure kinds. Transient kinds are eligible for retry."""

    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    INVALID_REQUEST = "invalid_request"
    CONTEXT_TOO_LARGE = "context_too_large"
    RETRIES_EXHAUSTED = "retries_exhausted"
    CIRCUIT_OPEN = "circuit_open"
    ROUTING = "routing"
    TOOL = "tool"
    GUARDRAIL = "guardrail"
    EMPTY_RESPONSE = "empty_response"
    OUTPUT_VALIDATION = "output_validation"
    MAX_TURNS = "max_turns"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"

    @property
    def is_transient(self) -> bool:
        return self in TRANSIENT_KINDS

    def __str__(self) -> str:
        return self.value


TRANSIENT_KINDS = frozenset(
    {ErrorKind.TIMEOUT, ErrorKind.RATE_LIMIT, ErrorKind.SERVER_ERROR, ErrorKind.NETWORK}
)


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def __str__(self) -> str:
        return self.value


__all__ = [
    "Role",
    "Direction",
    "Verdict",
    "Severity",
    "BreakerState",
    "RunStatus",
    "RunState",
    "ErrorKind",
    "TRANSIENT_KINDS",
    "LogLevel",
]
