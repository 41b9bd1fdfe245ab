"""
Guardrail interface.

A guardrail inspects one piece of content for one direction and returns a
GuardrailResult. Blocking is expressed as a verdict, never by raising: an
exception escaping ``check`` is treated as a guardrail failure by the
pipeline.
"""

import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any

from ..models.context import ContextVariables
from ..models.contracts import GuardrailResult, Violation
from ..models.enums import Direction, Verdict

BOTH_DIRECTIONS = frozenset({Direction.INPUT, Direction.OUTPUT})


class Guardrail(ABC):
    """Base class for input and output checks."""

    def __init__(self, name: str | None = None, directions: Iterable[Direction] | None = None):
        self.name = name or type(self).__name__
        self.directions = frozenset(directions) if directions is not None else BOTH_DIRECTIONS

    def applies_to(self, direction: Direction) -> bool:
        return direction in self.directions

    @abstractmethod
    async def check(
        self, content: str, context: ContextVariables, direction: Direction
    ) -> GuardrailResult:
        ...

    def redact(self, content: str) -> str:
        """
        Transformation applied when the pipeline decision is REDACT.

        The pipeline uses a result's ``filtered_content`` while the text is
        still what the guardrail checked. Once an earlier guardrail has
        already rewritten it, this method is applied to the rewritten text
        instead. Guardrails that only set ``filtered_content`` cannot be
        chained after another redaction; the pipeline records that as a
        guardrail failure.
        """
        raise NotImplementedError(f"Guardrail '{self.name}' has no redact transformation")

    def result(
        self,
        direction: Direction,
        verdict: Verdict = Verdict.ALLOW,
        violations: Iterable[Violation] = (),
        filtered_content: str | None = None,
    ) -> GuardrailResult:
        """Build a GuardrailResult attributed to this guardrail."""
        return GuardrailResult(
            guardrail=self.name,
            verdict=verdict,
            direction=direction,
            filtered_content=filtered_content,
            violations=tuple(
                v if v.guardrail else v.model_copy(update={"guardrail": self.name})
                for v in violations
            ),
        )

    def __repr__(self) -> str:
        directions = sorted(d.value for d in self.directions)
        return f"{type(self).__name__}(name={self.name!r}, directions={directions})"


class FunctionGuardrail(Guardrail):
    """
    Guardrail backed by a callable.

    The callable receives ``(content, context)`` and returns a Verdict, a
    ``(Verdict, [Violation, ...])`` tuple or a full GuardrailResult. It may
    be sync or async.

    Example:
        def no_secrets(content, context):
            if "password" in content.lower():
                return Verdict.BLOCK, [Violation(rule="secret", detail="password mentioned")]
            return Verdict.ALLOW

        guardrail = FunctionGuardrail(no_secrets, directions=[Direction.INPUT])
    """

    def __init__(
        self,
        func: Callable[[str, ContextVariables], Any],
        name: str | None = None,
        directions: Iterable[Direction] | None = None,
        redactor: Callable[[str], str] | None = None,
    ):
        super().__init__(name=name or func.__name__, directions=directions)
        self.func = func
        self.redactor = redactor

    async def check(
        self, content: str, context: ContextVariables, direction: Direction
    ) -> GuardrailResult:
        outcome = self.func(content, context)
        if inspect.isawaitable(outcome):
            outcome = await outcome

        if isinstance(outcome, GuardrailResult):
            return outcome.model_copy(update={"guardrail": self.name, "direction": direction})

        violations: Iterable[Violation] = ()
        if isinstance(outcome, tuple):
            outcome, violations = outcome
        if not isinstance(outcome, Verdict):
            raise TypeError(
                f"Guardrail '{self.name}' returned {type(outcome).__name__}, expected Verdict"
            )

        if outcome == Verdict.REDACT and self.redactor is None:
            raise ValueError(f"Guardrail '{self.name}' returned REDACT without a redactor")

        filtered = self.redact(content) if outcome == Verdict.REDACT else None
        return self.result(direction, outcome, violations, filtered_content=filtered)

    def redact(self, content: str) -> str:
        if self.redactor is None:
            return super().redact(content)
        return self.redactor(content)
