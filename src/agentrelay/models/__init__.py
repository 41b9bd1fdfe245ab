"""
Pydantic models, enums and value types shared across the runtime.
"""

from .context import ContextVariables, Lazy
from .contracts import (
    GuardrailResult,
    HandoffRecord,
    HandoffRequest,
    Message,
    ModelResponse,
    PipelineDecision,
    RunError,
    RunResult,
    RunUsage,
    ToolCallRequest,
    ToolResult,
    Usage,
    Violation,
)
from .enums import (
    BreakerState,
    Direction,
    ErrorKind,
    LogLevel,
    Role,
    RunState,
    RunStatus,
    Severity,
    Verdict,
)
from .result import Result
from .schemas import ParameterSpec, ToolSchema

__all__ = [
    "ContextVariables",
    "Lazy",
    "Message",
    "ToolCallRequest",
    "ToolResult",
    "HandoffRequest",
    "HandoffRecord",
    "Violation",
    "GuardrailResult",
    "PipelineDecision",
    "Usage",
    "ModelResponse",
    "RunError",
    "RunUsage",
    "RunResult",
    "Role",
    "Direction",
    "Verdict",
    "Severity",
    "BreakerState",
    "RunStatus",
    "RunState",
    "ErrorKind",
    "LogLevel",
    "Result",
    "ParameterSpec",
    "ToolSchema",
]
