"""
Tool execution for one model turn.

Every requested call yields exactly one ToolResult, in request order.
Exceptions, timeouts, unknown tools and invalid arguments all become failed
results so the model can see and react to them.
"""

import asyncio
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING, Optional

from ..exceptions import ToolExecutionError
from ..models.context import ContextVariables
from ..models.contracts import ToolCallRequest, ToolResult
from ..tools.base import ContextUpdate, Tool
from ..utils.logging import get_logger
from .hooks import RunHooks, safe_call

if TYPE_CHECKING:
    from .config import RelayConfig

logger = get_logger(__name__)


class ToolInvoker:
    """
    Runs tool calls concurrently or sequentially.

    Concurrency is bounded by ``config.max_tool_concurrency`` and every call
    carries the ``config.tool_timeout`` deadline.

    Example:
        invoker = ToolInvoker(config)
        results = await invoker.invoke(response.tool_calls, context, agent.tools)
    """

    def __init__(self, config: "RelayConfig", hooks: Optional[RunHooks] = None):
        self.config = config
        self.hooks = hooks or RunHooks()

    async def invoke(
        self,
        tool_calls: Sequence[ToolCallRequest],
        context: ContextVariables,
        tools: Sequence[Tool],
        parallel: bool = True,
    ) -> list[ToolResult]:
        """
        Execute ``tool_calls`` against ``tools``.

        Args:
            tool_calls: Calls requested by the model in one response
            context: Snapshot every tool reads; never mutated
            tools: Tools available to the active agent
            parallel: Run calls concurrently when True, in request order otherwise

        Returns:
            One ToolResult per call, aligned with ``tool_calls``
        """
        if not tool_calls:
            return []

        registry = {tool.name: tool for tool in tools}

        if parallel and len(tool_calls) > 1:
            semaphore = asyncio.Semaphore(self.config.max_tool_concurrency)

            async def bounded(call: ToolCallRequest) -> ToolResult:
                async with semaphore:
                    return await self.invoke_one(call, context, registry.get(call.tool_name))

            results = await asyncio.gather(*(bounded(call) for call in tool_calls))
            return list(results)

        results = []
        for call in tool_calls:
            results.append(await self.invoke_one(call, context, registry.get(call.tool_name)))
        return results

    async def invoke_one(
        self,
        call: ToolCallRequest,
        context: ContextVariables,
        tool: Optional[Tool],
    ) -> ToolResult:
        await safe_call(self.hooks, "on_tool_start", call, context)
        result = await self._execute(call, context, tool)
        await safe_call(self.hooks, "on_tool_end", result, context)

        if result.success:
            logger.info(
                "tool_executed",
                tool_name=call.tool_name,
                call_id=call.id,
                elapsed_ms=round(result.elapsed_ms, 2),
            )
        else:
            logger.warning(
                "tool_failed",
                tool_name=call.tool_name,
                call_id=call.id,
                error_type=result.error_type,
                error=result.error,
            )
        return result

    async def _execute(
        self,
        call: ToolCallRequest,
        context: ContextVariables,
        tool: Optional[Tool],
    ) -> ToolResult:
        if tool is None:
            return ToolResult.failure(
                call.id, call.tool_name, f"Unknown tool '{call.tool_name}'", error_type="UnknownTool"
            )
        if call.argument_error:
            return ToolResult.failure(
                call.id, call.tool_name, call.argument_error, error_type="InvalidArguments"
            )

        problem = tool.schema().validate_arguments(call.arguments)
        if problem:
            return ToolResult.failure(call.id, call.tool_name, problem, error_type="InvalidArguments")

        start = time.perf_counter()
        try:
            output = await asyncio.wait_for(
                tool.invoke(dict(call.arguments), context), timeout=self.config.tool_timeout
            )
        except asyncio.TimeoutError:
            return ToolResult.failure(
                call.id,
                call.tool_name,
                f"Tool execution exceeded {self.config.tool_timeout}s timeout",
                error_type="TimeoutError",
                elapsed_ms=(time.perf_counter() - start) * 1000,
            )
        except ToolExecutionError as e:
            return ToolResult.failure(
                call.id,
                call.tool_name,
                e.message,
                error_type=type(e).__name__,
                elapsed_ms=(time.perf_counter() - start) * 1000,
            )
        except Exception as e:
            return ToolResult.failure(
                call.id,
                call.tool_name,
                str(e) or type(e).__name__,
                error_type=type(e).__name__,
                elapsed_ms=(time.perf_counter() - start) * 1000,
            )

        elapsed_ms = (time.perf_counter() - start) * 1000
        if isinstance(output, ContextUpdate):
            return ToolResult(
                call_id=call.id,
                tool_name=call.tool_name,
                success=True,
                value=output.value,
                elapsed_ms=elapsed_ms,
                context_updates=dict(output.variables),
            )
        return ToolResult(
            call_id=call.id,
            tool_name=call.tool_name,
            success=True,
            value=output,
            elapsed_ms=elapsed_ms,
        )
