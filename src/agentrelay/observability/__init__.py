"""
Observability sinks built on run hooks.
"""

from .audit import JsonlAuditHooks

__all__ = ["JsonlAuditHooks"]
