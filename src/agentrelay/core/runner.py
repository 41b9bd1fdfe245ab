"""
The Runner: turn-taking state machine for one conversation.

States: START -> AWAITING_MODEL -> PROCESSING -> {TOOL_DISPATCH |
HANDOFF_PENDING | TERMINAL}, looping back to AWAITING_MODEL until a
terminal condition. Every terminal condition, including faults, is returned
as a RunResult; nothing escapes ``run`` as an exception.
"""

import asyncio
import json
import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import structlog

from ..exceptions import EmptyResponseError, MaxTurnsExceeded, RelayError
from ..guardrails.base import Guardrail
from ..guardrails.pipeline import GuardrailPipeline
from ..models.context import ContextVariables, as_context
from ..models.contracts import (
    HandoffRecord,
    Message,
    ModelResponse,
    PipelineDecision,
    RunError,
    RunResult,
    RunUsage,
    ToolCallRequest,
)
from ..models.enums import Direction, RunState, RunStatus, Verdict
from ..providers.adapter import ProviderAdapter
from ..utils.logging import bound_run_context, get_logger
from .agent import Agent, AgentRegistry
from .config import RelayConfig
from .handoffs import HandoffRouter
from .hooks import RunHooks, safe_call
from .tool_invoker import ToolInvoker

logger = get_logger(__name__)

IGNORED_HANDOFF_MESSAGE = "Ignored: only one handoff per response is honoured."


@dataclass
class _RunState:
    """Mutable bookkeeping private to a single run."""

    run_id: str
    agent: Agent
    context: ContextVariables
    conversation: list[Message] = field(default_factory=list)
    decisions: list[PipelineDecision] = field(default_factory=list)
    handoffs: list[HandoffRecord] = field(default_factory=list)
    position: RunState = RunState.START
    turns: int = 0
    model_calls: int = 0
    tool_calls: int = 0
    failed_tool_calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    structured_output: Any = None

    def usage(self) -> RunUsage:
        return RunUsage(
            turns=self.turns,
            model_calls=self.model_calls,
            tool_calls=self.tool_calls,
            failed_tool_calls=self.failed_tool_calls,
            handoffs=len(self.handoffs),
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
        )

    def finish(self, status: RunStatus, error: Optional[RunError] = None) -> RunResult:
        self.position = RunState.TERMINAL
        return RunResult(
            run_id=self.run_id,
            status=status,
            conversation=tuple(self.conversation),
            last_agent=self.agent.name,
            error=error,
            usage=self.usage(),
            guardrail_decisions=tuple(self.decisions),
            handoffs=tuple(self.handoffs),
            context=self.context,
            structured_output=self.structured_output,
        )


class Runner:
    """
    Orchestrates agents, tools, guardrails and handoffs for one run at a time.

    A Runner holds no per-run state, so one instance may serve many
    concurrent runs.

    Example:
        config = load_config()
        runner = Runner(
            adapter=ProviderAdapter(LiteLLMBackend(), config),
            registry=AgentRegistry([researcher, writer]),
            config=config,
            input_guardrails=[PIIGuardrail(action=Verdict.REDACT)],
        )
        result = await runner.run("Researcher", "research X")
        print(result.status, result.final_output)
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        registry: AgentRegistry,
        config: RelayConfig,
        pipeline: Optional[GuardrailPipeline] = None,
        tool_invoker: Optional[ToolInvoker] = None,
        hooks: Optional[RunHooks] = None,
        input_guardrails: Sequence[Guardrail] = (),
        output_guardrails: Sequence[Guardrail] = (),
    ):
        self.adapter = adapter
        self.registry = registry
        self.config = config
        self.hooks = hooks or RunHooks()
        self.pipeline = pipeline or GuardrailPipeline(config)
        self.tool_invoker = tool_invoker or ToolInvoker(config, hooks=self.hooks)
        self.router = HandoffRouter(registry, max_handoffs=config.max_handoffs)
        self.input_guardrails = tuple(input_guardrails)
        self.output_guardrails = tuple(output_guardrails)

    async def run(
        self,
        agent: Agent | str,
        input_message: str | Message,
        context: ContextVariables | Mapping[str, Any] | None = None,
        *,
        history: Sequence[Message] = (),
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> RunResult:
        """
        Execute one conversation until a terminal condition.

        Args:
            agent: Starting agent, or its name in the registry
            input_message: The user's message
            context: Initial context variables
            history: Earlier messages to continue from
            should_stop: Checked before every model call; True stops the run

        Returns:
            RunResult with status completed, blocked, max_turns_exceeded,
            stopped or error
        """
        run_id = uuid.uuid4().hex
        start_agent = self.registry[agent] if isinstance(agent, str) else agent
        state = _RunState(
            run_id=run_id,
            agent=start_agent,
            context=as_context(context),
            conversation=list(history),
        )
        start = time.perf_counter()

        with bound_run_context(run_id=run_id, agent=start_agent.name):
            logger.info("run_started", model=start_agent.model)
            try:
                result = await self._run(state, input_message, should_stop)
            except MaxTurnsExceeded as e:
                logger.warning("run_max_turns_exceeded", max_turns=e.max_turns)
                result = state.finish(RunStatus.MAX_TURNS_EXCEEDED, RunError.from_exception(e))
            except RelayError as e:
                logger.error("run_failed", **e.to_dict())
                result = state.finish(RunStatus.ERROR, RunError.from_exception(e))
            except Exception as e:
                logger.exception("run_crashed", error_type=type(e).__name__)
                result = state.finish(RunStatus.ERROR, RunError.from_exception(e))

            logger.info(
                "run_finished",
                status=result.status.value,
                last_agent=result.last_agent,
                turns=result.usage.turns,
                handoffs=result.usage.handoffs,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            await safe_call(self.hooks, "on_run_end", result)
        return result

    def run_sync(
        self,
        agent: Agent | str,
        input_message: str | Message,
        context: ContextVariables | Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> RunResult:
        """Blocking wrapper around ``run`` for scripts and the CLI."""
        return asyncio.run(self.run(agent, input_message, context, **kwargs))

    async def _run(
        self,
        state: _RunState,
        input_message: str | Message,
        should_stop: Optional[Callable[[], bool]],
    ) -> RunResult:
        await safe_call(self.hooks, "on_agent_start", state.agent, state.context)

        user_message = input_message if isinstance(input_message, Message) else Message.user(input_message)
        decision = await self._apply_guardrails(
            state, user_message.text, Direction.INPUT, self.input_guardrails + state.agent.input_guardrails
        )
        if decision.blocked:
            return state.finish(RunStatus.BLOCKED)
        if decision.redacted:
            user_message = user_message.with_content(decision.content)
        await self._append(state, user_message)

        charge_turn = True
        while True:
            if should_stop is not None and should_stop():
                logger.info("run_stopped", turns=state.turns)
                return state.finish(RunStatus.STOPPED)

            if charge_turn:
                max_turns = state.agent.effective_max_turns(self.config.default_max_turns)
                if state.turns >= max_turns:
                    raise MaxTurnsExceeded(max_turns, state.agent.name)
                state.turns += 1
            charge_turn = True

            state.position = RunState.AWAITING_MODEL
            response = await self.adapter.call(
                state.agent, state.conversation, state.context, self.registry
            )
            state.position = RunState.PROCESSING
            state.model_calls += 1
            state.input_tokens += response.usage.input_tokens
            state.output_tokens += response.usage.output_tokens

            if response.is_empty:
                raise EmptyResponseError(state.agent.name, details={"turn": state.turns})

            if not response.tool_calls:
                return await self._finish_with_output(state, response)

            await self._append(
                state,
                Message.assistant(response.content, agent=state.agent.name, tool_calls=response.tool_calls),
            )
            switched = await self._dispatch(state, response.tool_calls)
            if switched:
                # The new agent answers the same exchange; its first call is not a new turn.
                charge_turn = False

    async def _finish_with_output(self, state: _RunState, response: ModelResponse) -> RunResult:
        content = response.content or ""
        decision = await self._apply_guardrails(
            state,
            content,
            Direction.OUTPUT,
            self.output_guardrails + state.agent.output_guardrails,
        )
        if decision.blocked:
            return state.finish(RunStatus.BLOCKED)

        await self._append(state, Message.assistant(decision.content, agent=state.agent.name))
        state.structured_output = state.agent.parse_output(decision.content)
        return state.finish(RunStatus.COMPLETED)

    async def _dispatch(self, state: _RunState, tool_calls: Sequence[ToolCallRequest]) -> bool:
        """
        Run ordinary tools and honour at most one handoff.

        Tool messages are appended in the order the model requested the
        calls. Returns True when the active agent changed.

        Raises:
            RoutingError: The handoff target is not permitted, not registered
                or the handoff limit is reached
        """
        state.position = RunState.TOOL_DISPATCH
        ordinary = [call for call in tool_calls if not self.router.is_handoff(call)]
        handoff_calls = [call for call in tool_calls if self.router.is_handoff(call)]

        results = await self.tool_invoker.invoke(
            ordinary, state.context, state.agent.tools, parallel=state.agent.parallel_tool_calls
        )
        replies: dict[str, str] = {}
        for result in results:
            state.tool_calls += 1
            if not result.success:
                state.failed_tool_calls += 1
            elif result.context_updates:
                state.context = state.context.update(result.context_updates)
            replies[result.call_id] = result.to_text()

        next_agent = state.agent
        routing_error = None
        if handoff_calls:
            state.position = RunState.HANDOFF_PENDING
            request = self.router.parse(handoff_calls[0])
            routed = self.router.route(state.agent, request, handoffs_so_far=len(state.handoffs))
            if routed.success:
                next_agent = routed.data
                replies[request.call_id] = json.dumps({"assistant": next_agent.name})
            else:
                routing_error = routed.error
                replies[request.call_id] = json.dumps(
                    {"error": routing_error.message, "error_type": type(routing_error).__name__}
                )
            for extra in handoff_calls[1:]:
                replies[extra.id] = IGNORED_HANDOFF_MESSAGE
                logger.info("handoff_ignored", tool_name=extra.tool_name, call_id=extra.id)

        for call in tool_calls:
            await self._append(state, Message.tool(call.id, call.tool_name, replies[call.id]))

        if routing_error is not None:
            raise routing_error

        if next_agent.name == state.agent.name:
            if handoff_calls:
                logger.debug("handoff_to_self", agent=state.agent.name)
            return False

        record = HandoffRecord(
            source_agent=state.agent.name,
            target_agent=next_agent.name,
            reason=request.reason,
            turn=state.turns,
        )
        state.handoffs.append(record)
        state.agent = next_agent
        structlog.contextvars.bind_contextvars(agent=next_agent.name)
        logger.info(
            "handoff_completed",
            source_agent=record.source_agent,
            target_agent=record.target_agent,
            reason=record.reason,
            turn=record.turn,
        )
        await safe_call(self.hooks, "on_handoff", record, state.context)
        await safe_call(self.hooks, "on_agent_start", next_agent, state.context)
        return True

    async def _apply_guardrails(
        self,
        state: _RunState,
        content: str,
        direction: Direction,
        guardrails: Sequence[Guardrail],
    ) -> PipelineDecision:
        decision = await self.pipeline.evaluate(content, direction, state.context, guardrails)
        if decision.results:
            state.decisions.append(decision)
        if decision.verdict != Verdict.ALLOW or decision.violations:
            await safe_call(self.hooks, "on_guardrail_violation", decision, state.context)
        return decision

    async def _append(self, state: _RunState, message: Message) -> None:
        state.conversation.append(message)
        await safe_call(self.hooks, "on_message_appended", message, state.context)

