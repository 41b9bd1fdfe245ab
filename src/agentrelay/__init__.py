"""
agentrelay - Multi-Agent Execution Runtime
Handoffs, parallel guardrails and resilient provider calls for LLM agents
"""

# Setup rich logging and tracebacks globally
from .utils.rich_logging import setup_rich_logging
setup_rich_logging()

from .core.agent import Agent, AgentRegistry
from .core.config import RelayConfig, load_config
from .core.hooks import CompositeHooks, RunHooks
from .core.runner import Runner
from .guardrails import (
    FunctionGuardrail,
    Guardrail,
    GuardrailPipeline,
    LengthGuardrail,
    PatternGuardrail,
    PIIGuardrail,
)
from .models.context import ContextVariables, Lazy
from .models.contracts import Message, RunResult
from .models.enums import Direction, RunStatus, Verdict
from .providers import CircuitBreaker, LiteLLMBackend, ProviderAdapter
from .tools import ContextUpdate, FunctionTool, Tool, function_tool

__version__ = "0.1.0"

__all__ = [
    "Agent",
    "AgentRegistry",
    "Runner",
    "RunHooks",
    "CompositeHooks",
    "RelayConfig",
    "load_config",
    "Guardrail",
    "FunctionGuardrail",
    "GuardrailPipeline",
    "PIIGuardrail",
    "PatternGuardrail",
    "LengthGuardrail",
    "ContextVariables",
    "Lazy",
    "Message",
    "RunResult",
    "Direction",
    "RunStatus",
    "Verdict",
    "ProviderAdapter",
    "CircuitBreaker",
    "LiteLLMBackend",
    "Tool",
    "FunctionTool",
    "ContextUpdate",
    "function_tool",
]
