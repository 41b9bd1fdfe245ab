"""Tests for lifecycle hooks and hook fan-out"""
import pytest
from agentrelay.core.hooks import CompositeHooks, RunHooks, safe_call
from agentrelay.models.context import ContextVariables
from agentrelay.models.contracts import Message


class Collector(RunHooks):
    def __init__(self, label, seen):
        self.label = label
        self.seen = seen

    async def on_message_appended(self, message, context):
        self.seen.append((self.label, message.text))


class Broken(RunHooks):
    async def on_message_appended(self, message, context):
        raise RuntimeError("sink down")


class TestHooks:
    @pytest.mark.asyncio
    async def test_base_hooks_are_no_ops(self):
        await RunHooks().on_message_appended(Message.user("x"), ContextVariables())

    @pytest.mark.asyncio
    async def test_safe_call_swallows_hook_failures(self):
        await safe_call(Broken(), "on_message_appended", Message.user("x"), ContextVariables())

    @pytest.mark.asyncio
    async def test_composite_fans_out_in_order_past_failures(self):
        seen = []
        hooks = CompositeHooks([Collector("a", seen), Broken(), Collector("b", seen)])

        await hooks.on_message_appended(Message.user("hello"), ContextVariables())

        assert seen == [("a", "hello"), ("b", "hello")]
