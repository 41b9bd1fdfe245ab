"""
Run lifecycle hooks.

Hooks are the seam for persistence and observability: the runtime never
writes to storage itself. Every hook is awaited inline, and an exception
raised by a hook is logged and discarded so a faulty sink cannot abort a
run.
"""

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from ..models.context import ContextVariables
from ..models.contracts import (
    HandoffRecord,
    Message,
    PipelineDecision,
    RunResult,
    ToolCallRequest,
    ToolResult,
)
from ..utils.logging import get_logger

if TYPE_CHECKING:
    from .agent import Agent

logger = get_logger(__name__)


class RunHooks:
    """
    No-op base class; override the events you care about.

    Example:
        class PrintHooks(RunHooks):
            async def on_handoff(self, record, context):
                print(f"{record.source_agent} -> {record.target_agent}")
    """

    async def on_agent_start(self, agent: "Agent", context: ContextVariables) -> None:
        pass

    async def on_message_appended(self, message: Message, context: ContextVariables) -> None:
        pass

    async def on_guardrail_violation(self, decision: PipelineDecision, context: ContextVariables) -> None:
        pass

    async def on_tool_start(self, call: ToolCallRequest, context: ContextVariables) -> None:
        pass

    async def on_tool_end(self, result: ToolResult, context: ContextVariables) -> None:
        pass

    async def on_handoff(self, record: HandoffRecord, context: ContextVariables) -> None:
        pass

    async def on_run_end(self, result: RunResult) -> None:
        pass


class CompositeHooks(RunHooks):
    """Fans each event out to several hook sinks, in order."""

    def __init__(self, hooks: Iterable[RunHooks]):
        self.hooks = tuple(hooks)

    async def on_agent_start(self, agent, context):
        for hook in self.hooks:
            await safe_call(hook, "on_agent_start", agent, context)

    async def on_message_appended(self, message, context):
        for hook in self.hooks:
            await safe_call(hook, "on_message_appended", message, context)

    async def on_guardrail_violation(self, decision, context):
        for hook in self.hooks:
            await safe_call(hook, "on_guardrail_violation", decision, context)

    async def on_tool_start(self, call, context):
        for hook in self.hooks:
            await safe_call(hook, "on_tool_start", call, context)

    async def on_tool_end(self, result, context):
        for hook in self.hooks:
            await safe_call(hook, "on_tool_end", result, context)

    async def on_handoff(self, record, context):
        for hook in self.hooks:
            await safe_call(hook, "on_handoff", record, context)

    async def on_run_end(self, result):
        for hook in self.hooks:
            await safe_call(hook, "on_run_end", result)


async def safe_call(hooks: RunHooks, event: str, *args: Any) -> None:
    """Invoke one hook method, logging instead of propagating failures."""
    try:
        await getattr(hooks, event)(*args)
    except Exception as e:
        logger.warning(
            "hook_failed",
            hook=type(hooks).__name__,
            hook_event=event,
            error=str(e),
            error_type=type(e).__name__,
        )
