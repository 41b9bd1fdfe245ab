"""Model backend contract consumed by the ProviderAdapter."""

from typing import Any, Protocol, runtime_checkable

from ..models.contracts import ModelResponse


@runtime_checkable
class ModelBackend(Protocol):
    """
    Request/response boundary to a concrete model provider.

    Implementations raise ProviderError (or any exception, which the adapter
    classifies) on failure and never retry internally; retrying and circuit
    breaking belong to the adapter.
    """

    async def complete(
        self,
        model: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        settings: dict[str, Any],
    ) -> ModelResponse:
        ...
