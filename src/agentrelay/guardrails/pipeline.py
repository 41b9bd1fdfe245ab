"""
Concurrent guardrail evaluation.

Every guardrail applicable to a direction runs concurrently against the same
content and context snapshot. Results are re-serialized in registration
order before aggregation, so the decision never depends on which guardrail
finished first.
"""

import asyncio
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING

from ..exceptions import GuardrailError
from ..models.context import ContextVariables
from ..models.contracts import GuardrailResult, PipelineDecision, Violation
from ..models.enums import Direction, Severity, Verdict
from ..utils.logging import get_logger
from .base import Guardrail

if TYPE_CHECKING:
    from ..core.config import RelayConfig

logger = get_logger(__name__)


class GuardrailPipeline:
    """
    Fan-out/fan-in evaluator with strict verdict precedence.

    Aggregation: BLOCK > REDACT > FLAG > LOG > ALLOW. On REDACT the content
    is rewritten by every redacting guardrail in registration order, see
    ``_apply_redactions``.

    Example:
        pipeline = GuardrailPipeline(config)
        decision = await pipeline.evaluate(text, Direction.INPUT, context, guardrails)
        if decision.blocked:
            ...
    """

    def __init__(self, config: "RelayConfig"):
        self.config = config
        self.timeout = config.guardrail_timeout
        self.failure_verdict = config.guardrail_failure_verdict

    async def evaluate(
        self,
        content: str,
        direction: Direction,
        context: ContextVariables,
        guardrails: Sequence[Guardrail],
    ) -> PipelineDecision:
        applicable = [g for g in guardrails if g.applies_to(direction)]
        if not applicable:
            return PipelineDecision(
                verdict=Verdict.ALLOW,
                direction=direction,
                content=content,
                original_content=content,
            )

        start = time.perf_counter()
        results = await asyncio.gather(
            *(self._run_one(g, content, context, direction) for g in applicable)
        )
        decision = self.aggregate(content, direction, applicable, list(results))

        logger.debug(
            "guardrails_evaluated",
            direction=direction.value,
            guardrails=len(applicable),
            verdict=decision.verdict.value,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        if decision.verdict != Verdict.ALLOW:
            logger.info(
                "guardrail_decision",
                direction=direction.value,
                verdict=decision.verdict.value,
                rules=[v.rule for v in decision.violations],
            )
        return decision

    async def _run_one(
        self,
        guardrail: Guardrail,
        content: str,
        context: ContextVariables,
        direction: Direction,
    ) -> GuardrailResult:
        """Evaluate one guardrail; failures become a recorded violation."""
        start = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                guardrail.check(content, context, direction), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            error = GuardrailError(
                f"Guardrail exceeded {self.timeout}s timeout",
                guardrail=guardrail.name,
                details={"timeout": self.timeout},
            )
            return self._failure_result(guardrail, direction, error, start)
        except Exception as e:
            error = GuardrailError(
                f"Guardrail raised {type(e).__name__}: {e}",
                guardrail=guardrail.name,
                details={"error_type": type(e).__name__},
            )
            return self._failure_result(guardrail, direction, error, start)

        elapsed = (time.perf_counter() - start) * 1000
        return result.model_copy(
            update={"guardrail": guardrail.name, "direction": direction, "elapsed_ms": elapsed}
        )

    def _failure_result(
        self,
        guardrail: Guardrail,
        direction: Direction,
        error: GuardrailError,
        start: float,
        violations: Sequence[Violation] = (),
    ) -> GuardrailResult:
        logger.warning("guardrail_failed", **error.to_dict())
        return GuardrailResult(
            guardrail=guardrail.name,
            verdict=self.failure_verdict,
            direction=direction,
            violations=(
                *violations,
                Violation(
                    rule="GuardrailError",
                    severity=Severity.MEDIUM,
                    detail=error.message,
                    guardrail=guardrail.name,
                ),
            ),
            elapsed_ms=(time.perf_counter() - start) * 1000,
        )

    def aggregate(
        self,
        content: str,
        direction: Direction,
        guardrails: Sequence[Guardrail],
        results: Sequence[GuardrailResult],
    ) -> PipelineDecision:
        """Combine per-guardrail results (aligned with ``guardrails``) into one decision."""
        results = list(results)
        verdict = combine_verdicts(results)

        filtered = content
        if verdict == Verdict.REDACT:
            filtered, results = self._apply_redactions(content, direction, guardrails, results)
            # A failed redaction changes its result, and possibly the verdict.
            verdict = combine_verdicts(results)
            if verdict != Verdict.REDACT:
                filtered = content

        return PipelineDecision(
            verdict=verdict,
            direction=direction,
            content=filtered,
            original_content=content,
            results=tuple(results),
        )

    def _apply_redactions(
        self,
        content: str,
        direction: Direction,
        guardrails: Sequence[Guardrail],
        results: list[GuardrailResult],
    ) -> tuple[str, list[GuardrailResult]]:
        """
        Rewrite content with every REDACT result, in registration order.

        A result's own ``filtered_content`` is used while the text is still
        the checked original; after that the guardrail's ``redact`` is applied
        to the rewritten text. A redaction that cannot be produced turns that
        result into a guardrail failure and leaves the text as it was.
        """
        filtered = content
        settled: list[GuardrailResult] = []
        for guardrail, result in zip(guardrails, results):
            if result.verdict != Verdict.REDACT:
                settled.append(result)
                continue

            start = time.perf_counter()
            try:
                if filtered == content and result.filtered_content is not None:
                    filtered = result.filtered_content
                else:
                    filtered = guardrail.redact(filtered)
            except Exception as e:
                error = GuardrailError(
                    f"Redaction raised {type(e).__name__}: {e}",
                    guardrail=guardrail.name,
                    details={"error_type": type(e).__name__},
                )
                settled.append(
                    self._failure_result(guardrail, direction, error, start, violations=result.violations)
                )
                continue
            settled.append(result)
        return filtered, settled


def combine_verdicts(results: Sequence[GuardrailResult]) -> Verdict:
    """Highest-precedence verdict among ``results``; ALLOW when empty."""
    return min((r.verdict for r in results), key=lambda v: v.precedence, default=Verdict.ALLOW)
