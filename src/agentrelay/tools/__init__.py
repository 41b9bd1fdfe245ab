"""
Tool interface, callable adapters and synthetic handoff tools.
"""

from .base import ContextUpdate, FunctionTool, Tool, function_tool
from .handoff import (
    HANDOFF_PREFIX,
    HANDOFF_PROMPT_PREFIX,
    HandoffTool,
    handoff_tool_name,
    is_handoff_tool,
    prompt_with_handoff_instructions,
)

__all__ = [
    "Tool",
    "FunctionTool",
    "ContextUpdate",
    "function_tool",
    "HandoffTool",
    "HANDOFF_PREFIX",
    "HANDOFF_PROMPT_PREFIX",
    "handoff_tool_name",
    "is_handoff_tool",
    "prompt_with_handoff_instructions",
]
