"""Tests for handoff parsing and routing"""
import pytest
from agentrelay.core.agent import Agent, AgentRegistry
from agentrelay.core.handoffs import HandoffRouter
from agentrelay.exceptions import RoutingError
from agentrelay.models.contracts import HandoffRequest

from scripted import tool_call


@pytest.fixture
def router(registry):
    return HandoffRouter(registry, max_handoffs=2)


def request(target: str) -> HandoffRequest:
    return HandoffRequest(target_agent_name=target)


class TestParse:
    def test_detects_transfer_calls(self, router):
        assert router.is_handoff(tool_call("transfer_to_Writer"))
        assert not router.is_handoff(tool_call("search"))

    def test_parse_extracts_target_and_reason(self, router):
        call = tool_call("transfer_to_Writer", {"reason": "research done"}, call_id="c1")

        parsed = router.parse(call)

        assert parsed.target_agent_name == "Writer"
        assert parsed.reason == "research done"
        assert parsed.call_id == "c1"


class TestRoute:
    def test_exact_match(self, router, researcher, writer):
        routed = router.route(researcher, request("Writer"))

        assert routed.success
        assert routed.data is writer
        assert routed.warnings == []

    def test_normalized_match(self):
        source = Agent(name="Triage", handoff_targets=["WriterAgent"])
        target = Agent(name="WriterAgent")
        router = HandoffRouter(AgentRegistry([source, target]))

        routed = router.route(source, request("writer_agent"))

        assert routed.data is target
        assert "writer_agent" in routed.warnings[0]

    def test_target_not_permitted(self, router, writer):
        editor = Agent(name="Editor")
        router = HandoffRouter(AgentRegistry([writer, editor]))

        routed = router.route(writer, request("Editor"))

        assert not routed.success
        assert isinstance(routed.error, RoutingError)
        assert routed.error.message == "Agent 'Writer' is not permitted to hand off to 'Editor'"
        assert routed.error.details["target_agent"] == "Editor"

    def test_target_not_registered(self, writer):
        lonely = Agent(name="Lonely", handoff_targets=["Ghost"])
        router = HandoffRouter(AgentRegistry([lonely, writer]))

        routed = router.route(lonely, request("Ghost"))

        assert routed.error.message == "Handoff target 'Ghost' is not registered"

    def test_handoff_limit(self, router, researcher):
        assert router.route(researcher, request("Writer"), handoffs_so_far=1).success

        routed = router.route(researcher, request("Writer"), handoffs_so_far=2)

        assert routed.error.message == "Handoff limit of 2 reached"

    def test_self_handoff_ignores_limit(self):
        looper = Agent(name="Looper", handoff_targets=["Looper"])
        router = HandoffRouter(AgentRegistry([looper]), max_handoffs=0)

        routed = router.route(looper, request("Looper"), handoffs_so_far=0)

        assert routed.data is looper
