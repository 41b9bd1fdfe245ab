"""
Pydantic models defining the data contracts between runtime components.

All contracts are frozen: a Conversation only ever grows by appending new
Message values, and results are handed to callers as immutable records.
"""

import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .context import ContextVariables
from .enums import Direction, ErrorKind, Role, RunStatus, Severity, Verdict

# ============================================================================
# Conversation
# ============================================================================


class ToolCallRequest(BaseModel):
    """A tool invocation requested by the model. Consumed exactly once."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Provider-assigned call id, echoed on the tool message")
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    argument_error: Optional[str] = Field(
        default=None, description="Set when the model's arguments could not be decoded"
    )


class Message(BaseModel):
    """Single conversation message."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: Optional[str | dict[str, Any]] = None
    tool_calls: tuple[ToolCallRequest, ...] = Field(default_factory=tuple)
    tool_call_id: Optional[str] = None
    name: Optional[str] = Field(
        default=None, description="Producing agent (assistant) or tool name (tool)"
    )

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str | dict[str, Any]) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(
        cls,
        content: Optional[str | dict[str, Any]],
        agent: Optional[str] = None,
        tool_calls: tuple[ToolCallRequest, ...] = (),
    ) -> "Message":
        return cls(role=Role.ASSISTANT, content=content, name=agent, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, call_id: str, tool_name: str, content: str) -> "Message":
        return cls(role=Role.TOOL, content=content, tool_call_id=call_id, name=tool_name)

    @property
    def text(self) -> str:
        """Content as text; structured payloads are JSON-encoded."""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        return json.dumps(self.content, sort_keys=True, default=str)

    def with_content(self, content: str | dict[str, Any]) -> "Message":
        return self.model_copy(update={"content": content})

    def to_provider_dict(self) -> dict[str, Any]:
        """Chat-completions wire format understood by LiteLLM."""
        payload: dict[str, Any] = {"role": self.role.value, "content": self.text or None}
        if self.role == Role.ASSISTANT and self.tool_calls:
            payload["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.tool_name,
                        "arguments": json.dumps(call.arguments, default=str),
                    },
                }
                for call in self.tool_calls
            ]
        if self.role == Role.TOOL:
            payload["tool_call_id"] = self.tool_call_id
            payload["content"] = self.text
        if payload["content"] is None and self.role != Role.ASSISTANT:
            payload["content"] = ""
        return payload


# ============================================================================
# Tools and handoffs
# ============================================================================


class ToolResult(BaseModel):
    """Outcome of a single tool call, successful or not."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    call_id: str
    tool_name: str
    success: bool
    value: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    elapsed_ms: float = 0.0
    context_updates: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def failure(
        cls,
        call_id: str,
        tool_name: str,
        error: str,
        error_type: str = "ToolExecutionError",
        elapsed_ms: float = 0.0,
    ) -> "ToolResult":
        return cls(
            call_id=call_id,
            tool_name=tool_name,
            success=False,
            error=error,
            error_type=error_type,
            elapsed_ms=elapsed_ms,
        )

    def to_text(self) -> str:
        """Text shown to the model on the tool message."""
        if not self.success:
            return json.dumps({"error": self.error, "error_type": self.error_type})
        if isinstance(self.value, str):
            return self.value
        if isinstance(self.value, (dict, list, tuple, int, float, bool)) or self.value is None:
            return json.dumps(self.value, default=str)
        return str(self.value)


class HandoffRequest(BaseModel):
    """Structured transfer request decoded from a transfer_to_<Agent> call."""

    model_config = ConfigDict(frozen=True)

    target_agent_name: str
    reason: str = ""
    call_id: str = ""
    tool_name: str = ""


class HandoffRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_agent: str
    target_agent: str
    reason: str = ""
    turn: int


# ============================================================================
# Guardrails
# ============================================================================


class Violation(BaseModel):
    model_config = ConfigDict(frozen=True)

    rule: str
    severity: Severity = Severity.MEDIUM
    detail: str = ""
    guardrail: Optional[str] = None


class GuardrailResult(BaseModel):
    """Verdict of one guardrail on one piece of content."""

    model_config = ConfigDict(frozen=True)

    guardrail: str
    verdict: Verdict = Verdict.ALLOW
    direction: Direction = Direction.INPUT
    filtered_content: Optional[str] = None
    violations: tuple[Violation, ...] = Field(default_factory=tuple)
    elapsed_ms: float = 0.0


class PipelineDecision(BaseModel):
    """
    Aggregated verdict of every guardrail for one direction.

    ``content`` is what flows downstream: the redacted text for a REDACT
    decision, the original text otherwise.
    """

    model_config = ConfigDict(frozen=True)

    verdict: Verdict
    direction: Direction
    content: str
    original_content: str
    results: tuple[GuardrailResult, ...] = Field(default_factory=tuple)

    @property
    def blocked(self) -> bool:
        return self.verdict == Verdict.BLOCK

    @property
    def redacted(self) -> bool:
        return self.verdict == Verdict.REDACT

    @property
    def violations(self) -> list[Violation]:
        return [violation for result in self.results for violation in result.violations]

    @property
    def blocking_guardrails(self) -> list[str]:
        return [r.guardrail for r in self.results if r.verdict == Verdict.BLOCK]


# ============================================================================
# Model calls
# ============================================================================


class Usage(BaseModel):
    """Token usage reported by the backend for a single call."""

    model_config = ConfigDict(frozen=True)

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


class ModelResponse(BaseModel):
    """Normalized response from a model backend."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    content: Optional[str] = None
    tool_calls: tuple[ToolCallRequest, ...] = Field(default_factory=tuple)
    usage: Usage = Field(default_factory=Usage)
    model: str = ""
    finish_reason: Optional[str] = None
    latency_ms: float = 0.0
    raw_response: Any = Field(default=None, exclude=True)

    @property
    def is_empty(self) -> bool:
        return not (self.content and self.content.strip()) and not self.tool_calls


# ============================================================================
# Run outcome
# ============================================================================


class RunError(BaseModel):
    """Typed terminal error attached to a RunResult."""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "RunError":
        kind = getattr(exc, "kind", ErrorKind.INTERNAL)
        details = dict(getattr(exc, "details", {}) or {})
        if kind == ErrorKind.INTERNAL:
            details.setdefault("error_type", type(exc).__name__)
        return cls(kind=kind, message=getattr(exc, "message", str(exc)), details=details)


class RunUsage(BaseModel):
    """Counters aggregated over a whole run."""

    model_config = ConfigDict(frozen=True)

    turns: int = 0
    model_calls: int = 0
    tool_calls: int = 0
    failed_tool_calls: int = 0
    handoffs: int = 0
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class RunResult(BaseModel):
    """Terminal artifact of one Runner invocation, owned by the caller."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    run_id: str
    status: RunStatus
    conversation: tuple[Message, ...]
    last_agent: str
    error: Optional[RunError] = None
    usage: RunUsage = Field(default_factory=RunUsage)
    guardrail_decisions: tuple[PipelineDecision, ...] = Field(default_factory=tuple)
    handoffs: tuple[HandoffRecord, ...] = Field(default_factory=tuple)
    context: ContextVariables = Field(default_factory=ContextVariables)
    structured_output: Any = Field(
        default=None, description="Final answer parsed into the last agent's output_type"
    )

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def blocked(self) -> bool:
        return self.status == RunStatus.BLOCKED

    @property
    def final_output(self) -> Optional[str]:
        """Content of the last assistant message without tool calls."""
        for message in reversed(self.conversation):
            if message.role == Role.ASSISTANT and not message.tool_calls:
                return message.text
        return None

    @property
    def violations(self) -> list[Violation]:
        return [v for decision in self.guardrail_decisions for v in decision.violations]
