"""Tests for retries, deadlines and the circuit breaker around a model backend"""
import asyncio
import random

import pytest
from agentrelay.core.config import RelayConfig, RetryPolicy
from agentrelay.exceptions import (
    CircuitOpenError,
    ProviderError,
    ProviderFatalError,
    ProviderTimeoutError,
    RateLimitError,
    RetriesExhaustedError,
)
from agentrelay.models.context import ContextVariables
from agentrelay.models.contracts import Message
from agentrelay.models.enums import BreakerState, ErrorKind
from agentrelay.providers.adapter import ProviderAdapter, wait_backoff
from agentrelay.providers.circuit_breaker import CircuitBreaker
from agentrelay.tools.handoff import HANDOFF_PROMPT_PREFIX

from scripted import ScriptedBackend, text_response

CONVERSATION = [Message.user("What is the capital of France?")]


def server_error() -> ProviderError:
    return ProviderError("upstream returned 503", kind=ErrorKind.SERVER_ERROR, status_code=503)


def make_adapter(backend, clock, sleep, **config_overrides) -> ProviderAdapter:
    config = RelayConfig(**config_overrides)
    breaker = CircuitBreaker(config.circuit_breaker, clock=clock)
    return ProviderAdapter(backend, config, breaker=breaker, sleep=sleep)


class TestRetries:
    """Transient failures are retried with backoff"""

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, adapter, backend, sleep, researcher):
        backend.add(server_error(), text_response("Paris"))

        response = await adapter.call(researcher, CONVERSATION, ContextVariables())

        assert response.content == "Paris"
        assert backend.call_count == 2
        assert sleep.delays == [pytest.approx(0.01)]
        assert adapter.retry_stats["total_attempts"] == 2
        assert adapter.retry_stats["successful_retries"] == 1
        assert adapter.retry_stats["by_error_type"] == {"server_error": 1}

    @pytest.mark.asyncio
    async def test_unknown_exceptions_are_classified(self, adapter, backend, researcher):
        backend.add(Exception("Rate limit reached, slow down"), text_response("ok"))

        response = await adapter.call(researcher, CONVERSATION, ContextVariables())

        assert response.content == "ok"
        assert adapter.retry_stats["by_error_type"] == {"rate_limit": 1}

    @pytest.mark.asyncio
    async def test_fatal_errors_are_not_retried(self, adapter, backend, sleep, researcher):
        backend.add(ProviderFatalError("bad key", kind=ErrorKind.AUTHENTICATION, status_code=401))

        with pytest.raises(ProviderFatalError):
            await adapter.call(researcher, CONVERSATION, ContextVariables())

        assert backend.call_count == 1
        assert sleep.delays == []
        assert adapter.retry_stats["failed_operations"] == 1

    @pytest.mark.asyncio
    async def test_exhaustion_reports_attempt_history(self, adapter, backend, sleep, researcher):
        backend.add(*(server_error() for _ in range(4)))

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await adapter.call(researcher, CONVERSATION, ContextVariables())

        error = exc_info.value
        assert len(error.attempts) == 4
        assert all(a["kind"] == "server_error" for a in error.attempts)
        assert error.last_error.status_code == 503
        assert error.details["last_kind"] == "server_error"
        assert sleep.delays == [pytest.approx(0.01), pytest.approx(0.02), pytest.approx(0.04)]

    @pytest.mark.asyncio
    async def test_retry_after_raises_delay(self, adapter, backend, sleep, researcher):
        backend.add(RateLimitError("slow down", retry_after=0.05), text_response("ok"))

        await adapter.call(researcher, CONVERSATION, ContextVariables())

        assert sleep.delays == [pytest.approx(0.05)]


class TestDeadline:
    @pytest.mark.asyncio
    async def test_slow_backend_times_out(self, clock, sleep, researcher):
        async def hang(request):
            await asyncio.sleep(5)

        backend = ScriptedBackend([hang])
        adapter = make_adapter(backend, clock, sleep, retry={"max_retries": 0}, provider_timeout=0.05)

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await adapter.call(researcher, CONVERSATION, ContextVariables())

        assert isinstance(exc_info.value.last_error, ProviderTimeoutError)
        assert exc_info.value.last_error.kind == ErrorKind.TIMEOUT


class TestCircuitBreaker:
    """The breaker is checked before every attempt"""

    @pytest.mark.asyncio
    async def test_opens_and_fails_fast(self, clock, sleep, researcher):
        backend = ScriptedBackend([server_error() for _ in range(5)])
        adapter = make_adapter(backend, clock, sleep, retry={"max_retries": 0})

        for _ in range(5):
            with pytest.raises(RetriesExhaustedError):
                await adapter.call(researcher, CONVERSATION, ContextVariables())

        with pytest.raises(CircuitOpenError):
            await adapter.call(researcher, CONVERSATION, ContextVariables())

        assert backend.call_count == 5
        assert adapter.breaker.state == BreakerState.OPEN

    @pytest.mark.asyncio
    async def test_opening_mid_retry_stops_sequence(self, clock, sleep, researcher):
        backend = ScriptedBackend([server_error() for _ in range(10)])
        adapter = make_adapter(
            backend, clock, sleep, retry={"max_retries": 10, "base_delay": 0.01, "max_delay": 0.1}
        )

        with pytest.raises(CircuitOpenError):
            await adapter.call(researcher, CONVERSATION, ContextVariables())

        assert backend.call_count == 5

    @pytest.mark.asyncio
    async def test_invalid_requests_do_not_trip_breaker(self, clock, sleep, researcher):
        backend = ScriptedBackend(
            [ProviderFatalError("bad schema", kind=ErrorKind.INVALID_REQUEST) for _ in range(6)]
        )
        adapter = make_adapter(backend, clock, sleep)

        for _ in range(6):
            with pytest.raises(ProviderFatalError):
                await adapter.call(researcher, CONVERSATION, ContextVariables())

        assert adapter.breaker.state == BreakerState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_trial_closes_breaker(self, clock, sleep, researcher):
        backend = ScriptedBackend([server_error() for _ in range(5)] + [text_response("back")])
        adapter = make_adapter(backend, clock, sleep, retry={"max_retries": 0})
        for _ in range(5):
            with pytest.raises(RetriesExhaustedError):
                await adapter.call(researcher, CONVERSATION, ContextVariables())

        clock.advance(30)
        response = await adapter.call(researcher, CONVERSATION, ContextVariables())

        assert response.content == "back"
        assert adapter.breaker.state == BreakerState.CLOSED

    @pytest.mark.asyncio
    async def test_request_error_during_trial_frees_slot(self, clock, sleep, researcher):
        backend = ScriptedBackend(
            [
                server_error(),
                ProviderFatalError("bad schema", kind=ErrorKind.INVALID_REQUEST, status_code=400),
                text_response("back"),
            ]
        )
        adapter = make_adapter(
            backend,
            clock,
            sleep,
            retry={"max_retries": 0},
            circuit_breaker={"failure_threshold": 1, "cooldown_seconds": 10},
        )
        with pytest.raises(RetriesExhaustedError):
            await adapter.call(researcher, CONVERSATION, ContextVariables())

        clock.advance(11)
        with pytest.raises(ProviderFatalError):
            await adapter.call(researcher, CONVERSATION, ContextVariables())

        assert adapter.breaker.state == BreakerState.HALF_OPEN
        assert adapter.breaker.stats["trial_calls"] == 0

        response = await adapter.call(researcher, CONVERSATION, ContextVariables())

        assert response.content == "back"
        assert adapter.breaker.state == BreakerState.CLOSED

    @pytest.mark.asyncio
    async def test_cancelled_trial_frees_slot(self, clock, sleep, researcher):
        started = asyncio.Event()

        async def hang(request):
            started.set()
            await asyncio.sleep(5)

        backend = ScriptedBackend([server_error(), hang, text_response("back")])
        adapter = make_adapter(
            backend,
            clock,
            sleep,
            retry={"max_retries": 0},
            circuit_breaker={"failure_threshold": 1, "cooldown_seconds": 10},
        )
        with pytest.raises(RetriesExhaustedError):
            await adapter.call(researcher, CONVERSATION, ContextVariables())
        clock.advance(11)

        task = asyncio.create_task(adapter.call(researcher, CONVERSATION, ContextVariables()))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        response = await adapter.call(researcher, CONVERSATION, ContextVariables())

        assert response.content == "back"
        assert adapter.breaker.state == BreakerState.CLOSED


class TestRequestShape:
    @pytest.mark.asyncio
    async def test_system_prompt_and_tools(self, adapter, backend, researcher, registry):
        backend.add(text_response("ok"))

        await adapter.call(researcher, CONVERSATION, ContextVariables(), registry)

        request = backend.calls[0]
        assert request["model"] == researcher.model
        assert request["messages"][0]["role"] == "system"
        assert request["messages"][0]["content"].startswith(HANDOFF_PROMPT_PREFIX)
        assert request["messages"][1] == {"role": "user", "content": "What is the capital of France?"}
        assert backend.tool_names(0) == ["search", "transfer_to_Writer"]

    def test_build_messages_without_instructions(self):
        from agentrelay.core.agent import Agent

        messages = ProviderAdapter.build_messages(Agent(name="Bare"), CONVERSATION)

        assert [m["role"] for m in messages] == ["user"]


class TestWaitBackoff:
    def test_exponential_and_capped(self):
        wait = wait_backoff(RetryPolicy(base_delay=1.0, max_delay=5.0, jitter=0.0))

        assert [wait.compute(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]

    def test_jitter_bounds(self):
        wait = wait_backoff(RetryPolicy(base_delay=1.0, max_delay=10.0, jitter=0.1), rng=random.Random(7))

        for _ in range(50):
            assert 0.9 <= wait.compute(1) <= 1.1

    def test_retry_after_is_capped(self):
        wait = wait_backoff(RetryPolicy(base_delay=1.0, max_delay=5.0, jitter=0.0))

        assert wait.compute(1, retry_after=3.0) == 3.0
        assert wait.compute(1, retry_after=30.0) == 5.0
