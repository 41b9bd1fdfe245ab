"""
Model backends and the resilience layer in front of them.
"""

from .adapter import ProviderAdapter, wait_backoff
from .base import ModelBackend
from .circuit_breaker import CircuitBreaker
from .litellm_backend import LiteLLMBackend

__all__ = [
    "ModelBackend",
    "LiteLLMBackend",
    "CircuitBreaker",
    "ProviderAdapter",
    "wait_backoff",
]
