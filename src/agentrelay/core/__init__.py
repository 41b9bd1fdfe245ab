"""
Core components of the agent runtime.
"""

from .agent import Agent, AgentRegistry
from .config import CircuitBreakerSettings, RelayConfig, RetryPolicy, load_config
from .handoffs import HandoffRouter
from .hooks import CompositeHooks, RunHooks
from .runner import Runner
from .tool_invoker import ToolInvoker

__all__ = [
    "Agent",
    "AgentRegistry",
    "RelayConfig",
    "RetryPolicy",
    "CircuitBreakerSettings",
    "load_config",
    "HandoffRouter",
    "RunHooks",
    "CompositeHooks",
    "Runner",
    "ToolInvoker",
]
