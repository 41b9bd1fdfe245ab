"""
Agent records and the agent registry.

An Agent is plain, immutable data: specialization means constructing a
different value, never subclassing. The registry is an immutable snapshot;
adding an agent produces a new registry so concurrent runners keep a
consistent view without locks.
"""

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..exceptions import ConfigurationError, OutputValidationError
from ..guardrails.base import Guardrail
from ..models.schemas import ToolSchema
from ..tools.base import Tool
from ..tools.handoff import (
    HandoffTool,
    is_handoff_tool,
    prompt_with_handoff_instructions,
)
from ..utils.logging import get_logger

logger = get_logger(__name__)


class Agent(BaseModel):
    """
    Identity and policy of one LLM-backed actor.

    Example:
        researcher = Agent(
            name="Researcher",
            instructions="Research the topic and hand off to Writer.",
            model="openai/gpt-4o-mini",
            tools=[search_tool],
            handoff_targets=["Writer"],
        )
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(..., min_length=1, description="Unique within a registry")
    instructions: str = Field(default="", description="System prompt text")
    model: str = Field(default="openai/gpt-4o-mini", description="Model identifier (LiteLLM format)")
    tools: tuple[Tool, ...] = Field(default_factory=tuple)
    handoff_targets: tuple[str, ...] = Field(default_factory=tuple)
    max_turns: int | None = Field(default=None, ge=1, description="Falls back to config.default_max_turns")
    parallel_tool_calls: bool = Field(default=True)
    input_guardrails: tuple[Guardrail, ...] = Field(default_factory=tuple)
    output_guardrails: tuple[Guardrail, ...] = Field(default_factory=tuple)
    model_settings: Mapping[str, Any] = Field(
        default_factory=lambda: MappingProxyType({}),
        description="Extra completion parameters (temperature, max_tokens, ...)",
    )
    output_type: type[BaseModel] | None = Field(
        default=None, description="Structured final answer, validated from the model's JSON output"
    )
    handoff_description: str = Field(
        default="", description="Shown to other agents on the transfer tool"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if any(ch.isspace() for ch in v):
            raise ValueError(f"Agent name '{v}' must not contain whitespace")
        return v

    @field_validator("handoff_targets")
    @classmethod
    def dedupe_targets(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Keep first occurrence order so synthesized tools are deterministic"""
        return tuple(dict.fromkeys(v))

    @field_validator("model_settings")
    @classmethod
    def freeze_settings(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        """Store as a read-only view"""
        return MappingProxyType(dict(v))

    @model_validator(mode="after")
    def validate_tools(self) -> "Agent":
        names = [tool.name for tool in self.tools]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Agent '{self.name}' has duplicate tool names: {duplicates}")

        reserved = [n for n in names if is_handoff_tool(n)]
        if reserved:
            raise ValueError(
                f"Agent '{self.name}' declares tools with the reserved handoff prefix: {reserved}"
            )
        return self

    def get_tool(self, name: str) -> Tool | None:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None

    def can_hand_off_to(self, agent_name: str) -> bool:
        return agent_name in self.handoff_targets

    def effective_max_turns(self, default: int) -> int:
        return self.max_turns if self.max_turns is not None else default

    def system_prompt(self) -> str:
        """Instructions sent as the system message for this agent's turns."""
        if self.handoff_targets:
            return prompt_with_handoff_instructions(self.instructions)
        return self.instructions

    def response_format(self) -> dict[str, Any] | None:
        """JSON-schema response format requesting ``output_type``, None for plain text."""
        if self.output_type is None:
            return None
        return {
            "type": "json_schema",
            "json_schema": {
                "name": self.output_type.__name__,
                "schema": self.output_type.model_json_schema(),
            },
        }

    def parse_output(self, content: str) -> BaseModel | None:
        """
        Validate final assistant content against ``output_type``.

        Raises:
            OutputValidationError: Content is not JSON matching the type
        """
        if self.output_type is None:
            return None
        try:
            return self.output_type.model_validate_json(content)
        except ValidationError as e:
            errors = [
                {"loc": [str(part) for part in err["loc"]], "msg": err["msg"], "type": err["type"]}
                for err in e.errors()
            ]
            raise OutputValidationError(self.name, self.output_type.__name__, errors) from e

    def handoff_tools(self, registry: "AgentRegistry | None" = None) -> list[HandoffTool]:
        tools = []
        for target in self.handoff_targets:
            target_agent = registry.get(target) if registry else None
            description = target_agent.handoff_description if target_agent else None
            tools.append(HandoffTool(target, description=description or None))
        return tools

    def tool_schemas(self, registry: "AgentRegistry | None" = None) -> list[ToolSchema]:
        """Ordinary tools first, then one transfer tool per handoff target."""
        return [tool.schema() for tool in self.tools] + [
            tool.schema() for tool in self.handoff_tools(registry)
        ]

    def clone(self, **changes: Any) -> "Agent":
        """Return a validated copy with some fields replaced."""
        data = {name: getattr(self, name) for name in type(self).model_fields}
        data.update(changes)
        return type(self)(**data)

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:
        return f"Agent(name={self.name!r}, model={self.model!r}, handoff_targets={list(self.handoff_targets)})"


class AgentRegistry(Mapping):
    """
    Read-only set of agents available to a run, keyed by name.

    Example:
        registry = AgentRegistry([researcher, writer])
        registry = registry.with_agent(editor)   # new snapshot
    """

    def __init__(self, agents: Iterable[Agent] = ()):
        agents_by_name: dict[str, Agent] = {}
        for agent in agents:
            if agent.name in agents_by_name:
                raise ConfigurationError(
                    f"Duplicate agent name '{agent.name}' in registry",
                    field="name",
                    value=agent.name,
                )
            agents_by_name[agent.name] = agent
        self._agents = MappingProxyType(agents_by_name)

        missing = self.missing_targets()
        if missing:
            logger.warning("registry_unknown_handoff_targets", missing=missing)

    def __getitem__(self, name: str) -> Agent:
        return self._agents[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._agents)

    def __len__(self) -> int:
        return len(self._agents)

    def with_agent(self, agent: Agent) -> "AgentRegistry":
        """New registry containing ``agent``, replacing any same-named entry."""
        agents = {**self._agents, agent.name: agent}
        return AgentRegistry(agents.values())

    def without_agent(self, name: str) -> "AgentRegistry":
        return AgentRegistry(a for n, a in self._agents.items() if n != name)

    def missing_targets(self) -> dict[str, list[str]]:
        """Handoff targets referenced by agents but absent from the registry."""
        missing: dict[str, list[str]] = {}
        for agent in self._agents.values():
            unknown = [t for t in agent.handoff_targets if t not in self._agents]
            if unknown:
                missing[agent.name] = unknown
        return missing

    def __repr__(self) -> str:
        return f"AgentRegistry({list(self._agents)})"
