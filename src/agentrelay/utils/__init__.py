"""
Utility modules for the agent runtime.
"""

from .error_handler import classify_error, to_provider_error
from .logging import bound_run_context, get_logger, setup_logging

__all__ = [
    "get_logger",
    "setup_logging",
    "bound_run_context",
    "classify_error",
    "to_provider_error",
]
