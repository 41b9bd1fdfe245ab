"""
Pytest configuration and shared fixtures.
"""

import tempfile
from pathlib import Path

import pytest

from agentrelay.core.agent import Agent, AgentRegistry
from agentrelay.core.config import RelayConfig
from agentrelay.core.runner import Runner
from agentrelay.providers.adapter import ProviderAdapter
from agentrelay.providers.circuit_breaker import CircuitBreaker
from agentrelay.tools.base import function_tool

from scripted import ScriptedBackend


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays without waiting"""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def temp_dir():
    """Temporary directory for test files"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config():
    """Configuration with small delays and default thresholds"""
    return RelayConfig(
        retry={"max_retries": 3, "base_delay": 0.01, "max_delay": 0.1, "jitter": 0.0},
        provider_timeout=5.0,
        tool_timeout=1.0,
        guardrail_timeout=1.0,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def backend():
    return ScriptedBackend()


@pytest.fixture
def adapter(backend, config, clock, sleep):
    """ProviderAdapter over the scripted backend with a fake clock and sleep"""
    breaker = CircuitBreaker(config.circuit_breaker, clock=clock)
    return ProviderAdapter(backend, config, breaker=breaker, sleep=sleep)


@pytest.fixture
def search_tool():
    @function_tool
    def search(query: str) -> dict:
        """Search the knowledge base."""
        return {"query": query, "hits": [f"result for {query}"]}

    return search


@pytest.fixture
def researcher(search_tool):
    return Agent(
        name="Researcher",
        instructions="Research the topic, then hand off to Writer.",
        tools=[search_tool],
        handoff_targets=["Writer"],
    )


@pytest.fixture
def writer():
    return Agent(
        name="Writer",
        instructions="Write the final answer.",
        handoff_targets=["Researcher"],
        handoff_description="Writes polished answers",
    )


@pytest.fixture
def registry(researcher, writer):
    return AgentRegistry([researcher, writer])


@pytest.fixture
def runner(adapter, registry, config):
    return Runner(adapter=adapter, registry=registry, config=config)


@pytest.fixture
def mock_litellm_response(mocker):
    """Mock LiteLLM chat-completions response with plain text"""
    mock_response = mocker.Mock()
    mock_response.model = "openai/gpt-4o-mini"
    mock_response.choices = [mocker.Mock()]
    mock_response.choices[0].message.content = "Mocked response"
    mock_response.choices[0].message.tool_calls = None
    mock_response.choices[0].finish_reason = "stop"
    mock_response.usage.prompt_tokens = 1000
    mock_response.usage.completion_tokens = 50
    return mock_response


@pytest.fixture
def mock_litellm_tool_response(mocker):
    """Mock LiteLLM response requesting two tool calls, one with broken arguments"""
    good = mocker.Mock()
    good.id = "call_abc"
    good.function.name = "search"
    good.function.arguments = '{"query": "circuit breakers"}'

    broken = mocker.Mock()
    broken.id = None
    broken.function.name = "search"
    broken.function.arguments = "{not json"

    mock_response = mocker.Mock()
    mock_response.model = "openai/gpt-4o-mini"
    mock_response.choices = [mocker.Mock()]
    mock_response.choices[0].message.content = None
    mock_response.choices[0].message.tool_calls = [good, broken]
    mock_response.choices[0].finish_reason = "tool_calls"
    mock_response.usage = None
    return mock_response
