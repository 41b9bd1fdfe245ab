"""
Synthetic handoff tools.

Each configured handoff target is exposed to the model as a parameterless
tool named ``transfer_to_<AgentName>``. Calling it is the only way an agent
can hand control to another; free-form text is never interpreted as a
handoff.
"""

import re
from typing import Any

from ..models.context import ContextVariables
from ..models.schemas import ParameterSpec, ToolSchema
from .base import Tool

HANDOFF_PREFIX = "transfer_to_"

HANDOFF_PROMPT_PREFIX = (
    "# System context\n"
    "You are part of a multi-agent system designed to make agent coordination "
    "and execution easy. Agents use two primary abstractions: **Agents** and "
    "**Handoffs**. An agent encompasses instructions and tools and can hand off "
    "a conversation to another agent when appropriate. Handoffs are achieved by "
    "calling a handoff function, named `transfer_to_<agent_name>`. Transfers "
    "between agents are handled seamlessly in the background; do not mention or "
    "draw attention to these transfers in your conversation with the user."
)


def handoff_tool_name(agent_name: str) -> str:
    return f"{HANDOFF_PREFIX}{agent_name}"


def is_handoff_tool(tool_name: str) -> bool:
    return tool_name.startswith(HANDOFF_PREFIX) and len(tool_name) > len(HANDOFF_PREFIX)


def target_from_tool_name(tool_name: str) -> str:
    """Strip the transfer prefix; the remainder is the requested agent name."""
    return tool_name[len(HANDOFF_PREFIX):] if is_handoff_tool(tool_name) else ""


def normalize_agent_name(name: str) -> str:
    """
    Canonical form used for lenient matching.

    "WriterAgent", "writer_agent" and "writer-agent" all normalize to
    "writeragent".
    """
    return re.sub(r"[^a-z0-9]", "", name.lower())


def prompt_with_handoff_instructions(instructions: str) -> str:
    return f"{HANDOFF_PROMPT_PREFIX}\n\n{instructions}" if instructions else HANDOFF_PROMPT_PREFIX


class HandoffTool(Tool):
    """Schema-only tool advertising a handoff target to the model."""

    def __init__(self, target_agent: str, description: str | None = None):
        self.target_agent = target_agent
        self._schema = ToolSchema(
            name=handoff_tool_name(target_agent),
            description=description or f"Hand off the conversation to the {target_agent} agent.",
            parameters=(
                ParameterSpec(
                    name="reason",
                    type="string",
                    description="Why the conversation is being transferred",
                    required=False,
                ),
            ),
        )

    @property
    def name(self) -> str:
        return self._schema.name

    def schema(self) -> ToolSchema:
        return self._schema

    async def invoke(self, arguments: dict[str, Any], context: ContextVariables) -> Any:
        return {"assistant": self.target_agent}
