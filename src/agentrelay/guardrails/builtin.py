"""
Built-in guardrails: PII detection, forbidden patterns and length limits.

Replacement tokens never match the pattern they replace, so running the same
guardrails over already-redacted text does not trigger them again.
"""

import re
from collections.abc import Iterable, Mapping
from typing import Callable, Optional

from ..models.context import ContextVariables
from ..models.contracts import GuardrailResult, Violation
from ..models.enums import Direction, Severity, Verdict
from .base import Guardrail


def luhn_valid(digits: str) -> bool:
    """Luhn checksum used by payment card numbers."""
    if not digits.isdigit() or not 13 <= len(digits) <= 19:
        return False
    total = 0
    for index, char in enumerate(reversed(digits)):
        value = int(char)
        if index % 2 == 1:
            value *= 2
            if value > 9:
                value -= 9
        total += value
    return total % 10 == 0


def _digits(text: str) -> str:
    return re.sub(r"\D", "", text)


class PIIPattern:
    """One kind of personally identifiable information."""

    def __init__(
        self,
        pii_type: str,
        label: str,
        pattern: str,
        token: str,
        validator: Optional[Callable[[str], bool]] = None,
    ):
        self.pii_type = pii_type
        self.label = label
        self.regex = re.compile(pattern)
        self.token = token
        self.validator = validator

    def matches(self, text: str) -> list[str]:
        return [
            m.group(0)
            for m in self.regex.finditer(text)
            if self.validator is None or self.validator(m.group(0))
        ]

    def replace(self, text: str, token: Optional[str] = None) -> str:
        replacement = token or self.token

        def substitute(match: re.Match[str]) -> str:
            if self.validator is not None and not self.validator(match.group(0)):
                return match.group(0)
            return replacement

        return self.regex.sub(substitute, text)


# Applied in this order; earlier types are replaced before later ones scan.
PII_PATTERNS: tuple[PIIPattern, ...] = (
    PIIPattern(
        "email",
        "Email Address",
        r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b",
        "[EMAIL]",
    ),
    PIIPattern(
        "ip_address",
        "IP Address",
        r"\b(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
        r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\b",
        "[IP_ADDRESS]",
    ),
    PIIPattern(
        "credit_card",
        "Credit Card Number",
        r"\b(?:\d[ -]?){12,18}\d\b",
        "[CREDIT_CARD]",
        validator=lambda match: luhn_valid(_digits(match)),
    ),
    PIIPattern(
        "ssn",
        "Social Security Number",
        r"\b\d{3}-?\d{2}-?\d{4}\b",
        "[SSN]",
        validator=lambda match: len(_digits(match)) == 9,
    ),
    PIIPattern(
        "phone",
        "Phone Number",
        r"(?<![\w+])(?:\+?1[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b",
        "[PHONE]",
        validator=lambda match: len(_digits(match)) >= 10,
    ),
)

PII_TYPES = tuple(p.pii_type for p in PII_PATTERNS)


class PIIGuardrail(Guardrail):
    """
    Detects personal data and applies the configured action.

    Example:
        # Replace emails and card numbers in user input
        pii = PIIGuardrail(action=Verdict.REDACT, types=["email", "credit_card"])

        # Refuse any output containing an SSN
        pii = PIIGuardrail(action=Verdict.BLOCK, types=["ssn"], directions=[Direction.OUTPUT])
    """

    def __init__(
        self,
        action: Verdict = Verdict.REDACT,
        types: Optional[Iterable[str]] = None,
        tokens: Optional[Mapping[str, str]] = None,
        severity: Severity = Severity.HIGH,
        name: Optional[str] = None,
        directions: Optional[Iterable[Direction]] = None,
    ):
        super().__init__(name=name or "pii", directions=directions)
        if action == Verdict.ALLOW:
            raise ValueError("PIIGuardrail action must not be 'allow'")

        selected = set(types) if types is not None else set(PII_TYPES)
        unknown = sorted(selected - set(PII_TYPES))
        if unknown:
            raise ValueError(f"Unknown PII types {unknown}; expected any of {list(PII_TYPES)}")

        self.action = action
        self.severity = severity
        self.patterns = tuple(p for p in PII_PATTERNS if p.pii_type in selected)
        self.tokens = dict(tokens or {})
        for pii_type, token in self.tokens.items():
            pattern = next((p for p in PII_PATTERNS if p.pii_type == pii_type), None)
            if pattern is not None and pattern.matches(token):
                raise ValueError(f"Replacement token {token!r} would itself be detected as {pii_type}")

    def scan(self, content: str) -> dict[str, int]:
        """Count detections per PII type, in application order."""
        found: dict[str, int] = {}
        remaining = content
        for pattern in self.patterns:
            matches = pattern.matches(remaining)
            if matches:
                found[pattern.pii_type] = len(matches)
                remaining = pattern.replace(remaining)
        return found

    async def check(
        self, content: str, context: ContextVariables, direction: Direction
    ) -> GuardrailResult:
        found = self.scan(content)
        if not found:
            return self.result(direction)

        labels = {p.pii_type: p.label for p in self.patterns}
        violations = [
            Violation(
                rule=f"pii.{pii_type}",
                severity=self.severity,
                detail=f"{labels[pii_type]} detected ({count} occurrence{'s' if count != 1 else ''})",
            )
            for pii_type, count in found.items()
        ]
        filtered = self.redact(content) if self.action == Verdict.REDACT else None
        return self.result(direction, self.action, violations, filtered_content=filtered)

    def redact(self, content: str) -> str:
        for pattern in self.patterns:
            content = pattern.replace(content, self.tokens.get(pattern.pii_type))
        return content


class PatternGuardrail(Guardrail):
    """
    Applies a verdict when any forbidden regular expression matches.

    ``patterns`` maps a rule name to a regex; a plain list uses the regex
    itself as the rule name. On REDACT, matches become ``replacement``.
    """

    def __init__(
        self,
        patterns: Mapping[str, str] | Iterable[str],
        verdict: Verdict = Verdict.BLOCK,
        replacement: str = "[REDACTED]",
        severity: Severity = Severity.MEDIUM,
        flags: int = re.IGNORECASE,
        name: Optional[str] = None,
        directions: Optional[Iterable[Direction]] = None,
    ):
        super().__init__(name=name or "pattern", directions=directions)
        if not isinstance(patterns, Mapping):
            patterns = {p: p for p in patterns}
        if not patterns:
            raise ValueError("PatternGuardrail requires at least one pattern")

        self.rules = {rule: re.compile(regex, flags) for rule, regex in patterns.items()}
        self.verdict = verdict
        self.replacement = replacement
        self.severity = severity

        for rule, regex in self.rules.items():
            if verdict == Verdict.REDACT and regex.search(replacement):
                raise ValueError(f"Replacement {replacement!r} matches rule '{rule}'")

    async def check(
        self, content: str, context: ContextVariables, direction: Direction
    ) -> GuardrailResult:
        violations = [
            Violation(rule=rule, severity=self.severity, detail=f"Matched forbidden pattern '{regex.pattern}'")
            for rule, regex in self.rules.items()
            if regex.search(content)
        ]
        if not violations:
            return self.result(direction)

        filtered = self.redact(content) if self.verdict == Verdict.REDACT else None
        return self.result(direction, self.verdict, violations, filtered_content=filtered)

    def redact(self, content: str) -> str:
        for regex in self.rules.values():
            content = regex.sub(self.replacement, content)
        return content


class LengthGuardrail(Guardrail):
    """Limits content length in characters. REDACT truncates instead of refusing."""

    def __init__(
        self,
        max_chars: int,
        verdict: Verdict = Verdict.BLOCK,
        severity: Severity = Severity.LOW,
        name: Optional[str] = None,
        directions: Optional[Iterable[Direction]] = None,
    ):
        super().__init__(name=name or "length", directions=directions)
        if max_chars < 1:
            raise ValueError(f"max_chars must be positive, got {max_chars}")
        self.max_chars = max_chars
        self.verdict = verdict
        self.severity = severity

    async def check(
        self, content: str, context: ContextVariables, direction: Direction
    ) -> GuardrailResult:
        if len(content) <= self.max_chars:
            return self.result(direction)

        violation = Violation(
            rule="length.max_chars",
            severity=self.severity,
            detail=f"Content has {len(content)} characters, limit is {self.max_chars}",
        )
        filtered = self.redact(content) if self.verdict == Verdict.REDACT else None
        return self.result(direction, self.verdict, [violation], filtered_content=filtered)

    def redact(self, content: str) -> str:
        return content[: self.max_chars]
