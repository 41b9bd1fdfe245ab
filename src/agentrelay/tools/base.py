"""
Typed tool interface.

The runtime depends only on ``Tool``: a name, a parameter schema and an
async ``invoke``. FunctionTool adapts plain Python callables (sync or async)
to that interface, deriving the schema from the signature when one is not
given explicitly.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, get_type_hints

from ..models.context import ContextVariables
from ..models.schemas import ParameterSpec, ToolSchema

CONTEXT_PARAMETER = "context"

_PYTHON_TO_JSON = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    dict: "object",
    list: "array",
    tuple: "array",
}


@dataclass(frozen=True)
class ContextUpdate:
    """
    Tool return value that also updates context variables.

    Example:
        def login(user_id: str) -> ContextUpdate:
            return ContextUpdate(value="logged in", variables={"user_id": user_id})
    """

    value: Any
    variables: dict[str, Any] = field(default_factory=dict)


class Tool(ABC):
    """Interface every tool exposed to a model must satisfy."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def schema(self) -> ToolSchema:
        ...

    @abstractmethod
    async def invoke(self, arguments: dict[str, Any], context: ContextVariables) -> Any:
        """
        Execute the tool.

        Returns the raw output (or a ContextUpdate). Raising is allowed;
        the ToolInvoker converts exceptions into failed ToolResults.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class FunctionTool(Tool):
    """
    Tool backed by a Python callable.

    A parameter named ``context`` is not exposed to the model; the current
    ContextVariables snapshot is passed to it instead.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        name: str | None = None,
        description: str | None = None,
        parameters: list[ParameterSpec] | None = None,
    ):
        self.func = func
        self._name = name or func.__name__
        self._description = description if description is not None else _first_doc_line(func)
        self._accepts_context = CONTEXT_PARAMETER in inspect.signature(func).parameters
        params = parameters if parameters is not None else _parameters_from_signature(func)
        self._schema = ToolSchema(
            name=self._name,
            description=self._description,
            parameters=tuple(params),
        )

    @property
    def name(self) -> str:
        return self._name

    def schema(self) -> ToolSchema:
        return self._schema

    async def invoke(self, arguments: dict[str, Any], context: ContextVariables) -> Any:
        kwargs = dict(arguments)
        if self._accepts_context:
            kwargs[CONTEXT_PARAMETER] = context

        if inspect.iscoroutinefunction(self.func):
            return await self.func(**kwargs)

        # Run blocking callables off the event loop so parallel calls overlap
        return await asyncio.to_thread(self.func, **kwargs)


def function_tool(
    func: Callable[..., Any] | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
    parameters: list[ParameterSpec] | None = None,
) -> Any:
    """
    Decorator turning a function into a FunctionTool.

    Example:
        @function_tool
        def get_weather(city: str, units: str = "metric") -> dict:
            \"\"\"Look up the current weather.\"\"\"
            ...

        @function_tool(name="search")
        async def search_docs(query: str) -> list: ...
    """

    def decorator(inner: Callable[..., Any]) -> FunctionTool:
        return FunctionTool(inner, name=name, description=description, parameters=parameters)

    if func is not None:
        return decorator(func)
    return decorator


def _first_doc_line(func: Callable[..., Any]) -> str:
    doc = inspect.getdoc(func) or ""
    return doc.strip().splitlines()[0] if doc.strip() else ""


def _parameters_from_signature(func: Callable[..., Any]) -> list[ParameterSpec]:
    try:
        hints = get_type_hints(func)
    except (NameError, TypeError):
        hints = {}

    params = []
    for param in inspect.signature(func).parameters.values():
        if param.name == CONTEXT_PARAMETER:
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        annotation = hints.get(param.name, str)
        origin = getattr(annotation, "__origin__", annotation)
        params.append(
            ParameterSpec(
                name=param.name,
                type=_PYTHON_TO_JSON.get(origin, "string"),
                required=param.default is inspect.Parameter.empty,
            )
        )
    return params
