"""
Provider resilience layer.

``ProviderAdapter.call`` turns an agent and a conversation into one model
response, retrying transient failures with exponential backoff and jitter
and failing fast while the circuit breaker is open.
"""

import asyncio
import random
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any, Optional

from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

from ..exceptions import ProviderError, ProviderTimeoutError, RetriesExhaustedError
from ..models.context import ContextVariables
from ..models.contracts import Message, ModelResponse
from ..models.enums import ErrorKind, TRANSIENT_KINDS
from ..utils.error_handler import to_provider_error
from ..utils.logging import get_logger
from .base import ModelBackend
from .circuit_breaker import CircuitBreaker

if TYPE_CHECKING:
    from ..core.agent import Agent, AgentRegistry
    from ..core.config import RelayConfig, RetryPolicy

logger = get_logger(__name__)

# Failures that say something about backend health. Request-specific
# failures (invalid request, context too large) do not trip the breaker.
BREAKER_KINDS = TRANSIENT_KINDS | {ErrorKind.AUTHENTICATION}


class wait_backoff(wait_base):
    """
    Exponential backoff with proportional jitter.

    delay = min(max_delay, base_delay * multiplier ** (attempt - 1)), then
    scaled by a random factor in [1 - jitter, 1 + jitter]. A server-provided
    ``retry_after`` raises the delay, still bounded by max_delay.
    """

    def __init__(self, policy: "RetryPolicy", rng: Optional[random.Random] = None):
        self.policy = policy
        self.rng = rng or random.Random()

    def compute(self, attempt_number: int, retry_after: Optional[float] = None) -> float:
        policy = self.policy
        delay = min(policy.max_delay, policy.base_delay * policy.multiplier ** (attempt_number - 1))
        if policy.jitter:
            delay *= 1 + self.rng.uniform(-policy.jitter, policy.jitter)
        if retry_after:
            delay = max(delay, retry_after)
        return max(0.0, min(delay, policy.max_delay))

    def __call__(self, retry_state: RetryCallState) -> float:
        retry_after = None
        if retry_state.outcome is not None and retry_state.outcome.failed:
            retry_after = getattr(retry_state.outcome.exception(), "retry_after", None)
        return self.compute(retry_state.attempt_number, retry_after)


class ProviderAdapter:
    """
    Wraps a ModelBackend with deadlines, retries and a circuit breaker.

    The breaker is checked before every attempt, including retries, so a
    breaker that opens mid-retry stops the sequence with CircuitOpenError.

    Example:
        adapter = ProviderAdapter(LiteLLMBackend(), config)
        response = await adapter.call(agent, conversation, context)
    """

    def __init__(
        self,
        backend: ModelBackend,
        config: "RelayConfig",
        breaker: Optional[CircuitBreaker] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.backend = backend
        self.config = config
        self.policy = config.retry
        self.breaker = breaker or CircuitBreaker(config.circuit_breaker)
        self.sleep = sleep
        self.wait = wait_backoff(self.policy, rng)
        self.retry_stats: dict[str, Any] = {
            "total_attempts": 0,
            "successful_retries": 0,
            "failed_operations": 0,
            "by_error_type": {},
        }

    async def call(
        self,
        agent: "Agent",
        conversation: Sequence[Message],
        context: ContextVariables,
        registry: Optional["AgentRegistry"] = None,
    ) -> ModelResponse:
        """
        Request one model response for ``agent``.

        Raises:
            CircuitOpenError: Breaker open (or half-open and saturated)
            ProviderError: Non-retryable failure, raised on first occurrence
            RetriesExhaustedError: Retryable failures outlasted max_retries
        """
        messages = self.build_messages(agent, conversation)
        tools = [schema.to_openai() for schema in agent.tool_schemas(registry)]
        settings = dict(agent.model_settings)
        response_format = agent.response_format()
        if response_format is not None:
            settings.setdefault("response_format", response_format)
        attempts: list[dict[str, Any]] = []

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.policy.max_retries + 1),
            wait=self.wait,
            retry=retry_if_exception(self._is_retryable),
            sleep=self.sleep,
            before_sleep=self._log_retry,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._attempt(agent, messages, tools, settings, attempts)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            self.retry_stats["failed_operations"] += 1
            logger.error(
                "provider_retries_exhausted",
                agent=agent.name,
                model=agent.model,
                attempts=len(attempts),
                last_kind=last_error.kind.value,
            )
            raise RetriesExhaustedError(
                f"Model call failed after {len(attempts)} attempts: {last_error.message}",
                attempts=attempts,
                last_error=last_error,
            ) from last_error
        except Exception:
            self.retry_stats["failed_operations"] += 1
            raise

        if len(attempts) > 1:
            self.retry_stats["successful_retries"] += 1
        logger.debug(
            "provider_call_completed",
            agent=agent.name,
            model=agent.model,
            attempts=len(attempts),
            context_keys=len(context),
            latency_ms=round(response.latency_ms, 2),
        )
        return response

    async def _attempt(
        self,
        agent: "Agent",
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        settings: dict[str, Any],
        attempts: list[dict[str, Any]],
    ) -> ModelResponse:
        self.breaker.before_call()
        self.retry_stats["total_attempts"] += 1
        start = time.perf_counter()

        # Every admitted call settles the breaker exactly once.
        settled = False
        try:
            response = await asyncio.wait_for(
                self.backend.complete(agent.model, messages, tools, settings),
                timeout=self.config.provider_timeout,
            )
            self.breaker.record_success()
            settled = True
        except asyncio.TimeoutError as e:
            error: ProviderError = ProviderTimeoutError(
                f"Model call exceeded {self.config.provider_timeout}s deadline",
                timeout=self.config.provider_timeout,
                details={"model": agent.model},
            )
            settled = self._record_failure(error, attempts, start)
            raise error from e
        except Exception as e:
            error = to_provider_error(e)
            settled = self._record_failure(error, attempts, start)
            if error is e:
                raise
            raise error from e
        finally:
            if not settled:
                self.breaker.release()

        latency_ms = (time.perf_counter() - start) * 1000
        attempts.append({"attempt": len(attempts) + 1, "success": True, "latency_ms": latency_ms})
        return response.model_copy(update={"latency_ms": latency_ms})

    def _record_failure(self, error: ProviderError, attempts: list[dict[str, Any]], start: float) -> bool:
        """Record the failed attempt; True when the breaker counted it."""
        counted = error.kind in BREAKER_KINDS
        if counted:
            self.breaker.record_failure()
        by_type = self.retry_stats["by_error_type"]
        by_type[error.kind.value] = by_type.get(error.kind.value, 0) + 1
        attempts.append(
            {
                "attempt": len(attempts) + 1,
                "success": False,
                "kind": error.kind.value,
                "message": error.message,
                "status_code": error.status_code,
                "latency_ms": (time.perf_counter() - start) * 1000,
            }
        )
        return counted

    def _is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, ProviderError) and self.policy.is_retryable(exc.kind)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "provider_retry_scheduled",
            attempt=retry_state.attempt_number,
            max_attempts=self.policy.max_retries + 1,
            kind=getattr(getattr(error, "kind", None), "value", None),
            delay=round(retry_state.next_action.sleep, 3) if retry_state.next_action else None,
        )

    @staticmethod
    def build_messages(agent: "Agent", conversation: Sequence[Message]) -> list[dict[str, Any]]:
        """System message from the agent's instructions, then the conversation."""
        messages = []
        system_prompt = agent.system_prompt()
        if system_prompt:
            messages.append(Message.system(system_prompt).to_provider_dict())
        messages.extend(message.to_provider_dict() for message in conversation)
        return messages

    def reset_stats(self) -> None:
        self.retry_stats = {
            "total_attempts": 0,
            "successful_retries": 0,
            "failed_operations": 0,
            "by_error_type": {},
        }
