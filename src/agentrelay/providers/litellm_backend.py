"""
LiteLLM backend - unified interface to many model providers.

Translates chat-completions responses into ModelResponse values and LiteLLM
exception types into classified ProviderErrors.
"""

import json
from typing import Any, Optional

import litellm

from ..exceptions import ProviderError, ProviderFatalError, ProviderTimeoutError, RateLimitError
from ..models.contracts import ModelResponse, ToolCallRequest, Usage
from ..models.enums import ErrorKind
from ..utils.error_handler import to_provider_error
from ..utils.logging import get_logger

logger = get_logger(__name__)


class LiteLLMBackend:
    """
    ModelBackend calling ``litellm.acompletion``.

    Example:
        backend = LiteLLMBackend(api_base="http://localhost:4000")
        adapter = ProviderAdapter(backend, config)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        default_settings: Optional[dict[str, Any]] = None,
    ):
        self.api_key = api_key
        self.api_base = api_base
        self.default_settings = dict(default_settings or {})

    async def complete(
        self,
        model: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        settings: dict[str, Any],
    ) -> ModelResponse:
        completion_kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            **self.default_settings,
            **settings,
        }
        if tools:
            completion_kwargs["tools"] = tools
        if self.api_key:
            completion_kwargs["api_key"] = self.api_key
        if self.api_base:
            completion_kwargs["api_base"] = self.api_base

        try:
            response = await litellm.acompletion(**completion_kwargs)
        except Exception as e:
            raise map_litellm_error(e) from e

        return parse_completion(response, model)


def map_litellm_error(exc: Exception) -> ProviderError:
    """Translate a LiteLLM exception into a classified ProviderError."""
    status_code = getattr(exc, "status_code", None)
    details = {"error_type": type(exc).__name__, "provider": getattr(exc, "llm_provider", None)}

    if isinstance(exc, litellm.exceptions.Timeout):
        return ProviderTimeoutError(str(exc), timeout=getattr(exc, "timeout", 0) or 0, details=details)
    if isinstance(exc, litellm.exceptions.RateLimitError):
        return RateLimitError(str(exc), retry_after=_retry_after(exc), details=details)
    if isinstance(exc, litellm.exceptions.ContextWindowExceededError):
        return ProviderFatalError(
            str(exc), kind=ErrorKind.CONTEXT_TOO_LARGE, status_code=status_code, details=details
        )
    if isinstance(exc, (litellm.exceptions.AuthenticationError, litellm.exceptions.PermissionDeniedError)):
        return ProviderFatalError(
            str(exc), kind=ErrorKind.AUTHENTICATION, status_code=status_code, details=details
        )
    if isinstance(exc, (litellm.exceptions.BadRequestError, litellm.exceptions.NotFoundError)):
        return ProviderFatalError(
            str(exc), kind=ErrorKind.INVALID_REQUEST, status_code=status_code, details=details
        )
    if isinstance(exc, litellm.exceptions.APIConnectionError):
        return ProviderError(str(exc), kind=ErrorKind.NETWORK, status_code=status_code, details=details)
    if isinstance(
        exc, (litellm.exceptions.ServiceUnavailableError, litellm.exceptions.InternalServerError)
    ):
        return ProviderError(
            str(exc), kind=ErrorKind.SERVER_ERROR, status_code=status_code, details=details
        )

    return to_provider_error(exc)


def _retry_after(exc: Exception) -> Optional[float]:
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None) or {}
    value = headers.get("retry-after") if hasattr(headers, "get") else None
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def parse_completion(response: Any, model: str) -> ModelResponse:
    """Normalize a chat-completions response object."""
    choice = response.choices[0]
    message = choice.message

    tool_calls = []
    for index, tc in enumerate(getattr(message, "tool_calls", None) or []):
        raw_arguments = tc.function.arguments or "{}"
        arguments: dict[str, Any] = {}
        argument_error = None
        try:
            decoded = json.loads(raw_arguments)
            if isinstance(decoded, dict):
                arguments = decoded
            else:
                argument_error = f"Tool arguments must be a JSON object, got {type(decoded).__name__}"
        except json.JSONDecodeError as e:
            argument_error = f"Invalid JSON in tool arguments: {e}"
            logger.warning("tool_arguments_undecodable", tool_name=tc.function.name, error=str(e))

        tool_calls.append(
            ToolCallRequest(
                id=tc.id or f"call_{index}",
                tool_name=tc.function.name,
                arguments=arguments,
                argument_error=argument_error,
            )
        )

    usage = getattr(response, "usage", None)
    return ModelResponse(
        content=message.content,
        tool_calls=tuple(tool_calls),
        usage=Usage(
            input_tokens=getattr(usage, "prompt_tokens", None) or 0,
            output_tokens=getattr(usage, "completion_tokens", None) or 0,
        ),
        model=getattr(response, "model", None) or model,
        finish_reason=choice.finish_reason,
        raw_response=response,
    )
