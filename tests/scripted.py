"""
Scripted model backend and response builders shared by the test suite.
"""

import inspect
from typing import Any

from agentrelay.models.contracts import ModelResponse, ToolCallRequest, Usage


def text_response(content: str, input_tokens: int = 10, output_tokens: int = 5) -> ModelResponse:
    """Final assistant message without tool calls"""
    return ModelResponse(
        content=content,
        usage=Usage(input_tokens=input_tokens, output_tokens=output_tokens),
        model="scripted",
        finish_reason="stop",
    )


def tool_call(name: str, arguments: dict[str, Any] | None = None, call_id: str | None = None) -> ToolCallRequest:
    return ToolCallRequest(id=call_id or f"call_{name}", tool_name=name, arguments=arguments or {})


def tool_response(*calls: ToolCallRequest, content: str | None = None) -> ModelResponse:
    """Assistant message requesting one or more tool calls"""
    return ModelResponse(
        content=content,
        tool_calls=tuple(calls),
        usage=Usage(input_tokens=10, output_tokens=5),
        model="scripted",
        finish_reason="tool_calls",
    )


def empty_response() -> ModelResponse:
    return ModelResponse(content=None, model="scripted", finish_reason="stop")


class ScriptedBackend:
    """
    ModelBackend that replays a fixed list of steps.

    Each step is a ModelResponse to return, an exception to raise, or a
    callable receiving the request and returning either.
    """

    def __init__(self, steps=()):
        self.steps = list(steps)
        self.calls: list[dict[str, Any]] = []

    def add(self, *steps) -> "ScriptedBackend":
        self.steps.extend(steps)
        return self

    async def complete(self, model, messages, tools, settings) -> ModelResponse:
        request = {"model": model, "messages": messages, "tools": tools, "settings": settings}
        self.calls.append(request)
        if not self.steps:
            raise AssertionError("ScriptedBackend has no scripted response left")

        step = self.steps.pop(0)
        if callable(step) and not isinstance(step, (ModelResponse, BaseException)):
            step = step(request)
            if inspect.isawaitable(step):
                step = await step
        if isinstance(step, BaseException):
            raise step
        return step

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def system_prompts(self) -> list[str]:
        """System message content of every request, in order"""
        return [
            call["messages"][0]["content"]
            for call in self.calls
            if call["messages"] and call["messages"][0]["role"] == "system"
        ]

    def tool_names(self, index: int = -1) -> list[str]:
        return [tool["function"]["name"] for tool in self.calls[index]["tools"]]
