"""
Guardrails: independent content checks and their concurrent pipeline.
"""

from .base import FunctionGuardrail, Guardrail
from .builtin import LengthGuardrail, PatternGuardrail, PIIGuardrail, luhn_valid
from .pipeline import GuardrailPipeline

__all__ = [
    "Guardrail",
    "FunctionGuardrail",
    "PIIGuardrail",
    "PatternGuardrail",
    "LengthGuardrail",
    "GuardrailPipeline",
    "luhn_valid",
]
