"""
Handoff routing.

Only structured ``transfer_to_<Agent>`` tool calls are honoured; message
text is never inspected for handoff intent.
"""

from typing import Optional

from ..exceptions import RoutingError
from ..models.contracts import HandoffRequest, ToolCallRequest
from ..models.result import Result
from ..tools.handoff import is_handoff_tool, normalize_agent_name, target_from_tool_name
from ..utils.logging import get_logger
from .agent import Agent, AgentRegistry

logger = get_logger(__name__)


class HandoffRouter:
    """
    Validates handoff requests against the registry and the current agent.

    A target must be registered and listed in the current agent's
    ``handoff_targets``. Names match exactly first, then after
    normalization, so ``transfer_to_writer_agent`` reaches ``WriterAgent``.

    Example:
        router = HandoffRouter(registry, max_handoffs=config.max_handoffs)
        routed = router.route(current, router.parse(call), handoffs_so_far=1)
        if routed.success:
            current = routed.data
    """

    def __init__(self, registry: AgentRegistry, max_handoffs: int = 5):
        self.registry = registry
        self.max_handoffs = max_handoffs

    @staticmethod
    def is_handoff(call: ToolCallRequest) -> bool:
        return is_handoff_tool(call.tool_name)

    @staticmethod
    def parse(call: ToolCallRequest) -> HandoffRequest:
        reason = call.arguments.get("reason", "") if isinstance(call.arguments, dict) else ""
        return HandoffRequest(
            target_agent_name=target_from_tool_name(call.tool_name),
            reason=str(reason or ""),
            call_id=call.id,
            tool_name=call.tool_name,
        )

    def resolve_target(self, current: Agent, requested: str) -> Optional[str]:
        """Name of the permitted target matching ``requested``, or None."""
        if requested in current.handoff_targets:
            return requested
        wanted = normalize_agent_name(requested)
        for target in current.handoff_targets:
            if normalize_agent_name(target) == wanted:
                return target
        return None

    def route(
        self,
        current: Agent,
        request: HandoffRequest,
        handoffs_so_far: int = 0,
    ) -> Result[Agent, RoutingError]:
        """
        Decide the agent that takes over.

        A handoff to the current agent is a no-op continuation and does not
        count against ``max_handoffs``.
        """
        requested = request.target_agent_name
        target = self.resolve_target(current, requested)

        if target is None:
            logger.warning(
                "handoff_rejected",
                source_agent=current.name,
                target_agent=requested,
                reason="not_permitted",
            )
            return Result.err(
                RoutingError(
                    f"Agent '{current.name}' is not permitted to hand off to '{requested}'",
                    source_agent=current.name,
                    target_agent=requested,
                    details={"allowed_targets": list(current.handoff_targets)},
                )
            )

        agent = self.registry.get(target)
        if agent is None:
            logger.warning(
                "handoff_rejected",
                source_agent=current.name,
                target_agent=target,
                reason="not_registered",
            )
            return Result.err(
                RoutingError(
                    f"Handoff target '{target}' is not registered",
                    source_agent=current.name,
                    target_agent=target,
                    details={"registered_agents": list(self.registry)},
                )
            )

        if agent.name != current.name and handoffs_so_far >= self.max_handoffs:
            return Result.err(
                RoutingError(
                    f"Handoff limit of {self.max_handoffs} reached",
                    source_agent=current.name,
                    target_agent=target,
                    details={"max_handoffs": self.max_handoffs},
                )
            )

        result = Result.ok(agent)
        if target != requested:
            result = result.with_warning(f"Resolved handoff target '{requested}' to '{target}'")
        return result
