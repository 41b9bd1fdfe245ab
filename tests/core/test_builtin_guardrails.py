"""Tests for the PII, pattern and length guardrails"""
import pytest
from agentrelay.guardrails.builtin import LengthGuardrail, PatternGuardrail, PIIGuardrail, luhn_valid
from agentrelay.models.context import ContextVariables
from agentrelay.models.enums import Direction, Verdict

CONTEXT = ContextVariables()


class TestLuhn:
    def test_valid_numbers(self):
        assert luhn_valid("4111111111111111")
        assert luhn_valid("5500005555555559")

    def test_invalid_numbers(self):
        assert not luhn_valid("4111111111111112")
        assert not luhn_valid("123")


class TestPIIGuardrail:
    """Detection, redaction and action handling"""

    @pytest.mark.parametrize(
        "text,pii_type,token",
        [
            ("Mail jane.doe@example.com today", "email", "[EMAIL]"),
            ("Server at 192.168.1.10 is down", "ip_address", "[IP_ADDRESS]"),
            ("Card 4111 1111 1111 1111 on file", "credit_card", "[CREDIT_CARD]"),
            ("SSN 123-45-6789 here", "ssn", "[SSN]"),
            ("Call (555) 123-4567 now", "phone", "[PHONE]"),
        ],
    )
    def test_detects_and_redacts(self, text, pii_type, token):
        guardrail = PIIGuardrail()

        assert guardrail.scan(text) == {pii_type: 1}
        assert token in guardrail.redact(text)

    def test_card_failing_luhn_is_not_a_card(self):
        assert "credit_card" not in PIIGuardrail().scan("Card 4111 1111 1111 1112")

    @pytest.mark.asyncio
    async def test_redact_result(self):
        guardrail = PIIGuardrail(types=["email"])

        result = await guardrail.check("a@b.io and c@d.io", CONTEXT, Direction.INPUT)

        assert result.verdict == Verdict.REDACT
        assert result.filtered_content == "[EMAIL] and [EMAIL]"
        [violation] = result.violations
        assert violation.rule == "pii.email"
        assert violation.detail == "Email Address detected (2 occurrences)"
        assert violation.guardrail == "pii"

    @pytest.mark.asyncio
    async def test_block_action(self):
        guardrail = PIIGuardrail(action=Verdict.BLOCK, types=["ssn"])

        result = await guardrail.check("SSN 123-45-6789", CONTEXT, Direction.OUTPUT)

        assert result.verdict == Verdict.BLOCK
        assert result.filtered_content is None

    @pytest.mark.asyncio
    async def test_clean_content_allows(self):
        result = await PIIGuardrail().check("nothing personal", CONTEXT, Direction.INPUT)

        assert result.verdict == Verdict.ALLOW
        assert result.violations == ()

    def test_redaction_is_stable(self):
        guardrail = PIIGuardrail()
        once = guardrail.redact("jane@example.com, 10.0.0.1, 123-45-6789")

        assert guardrail.redact(once) == once
        assert guardrail.scan(once) == {}

    def test_custom_tokens(self):
        guardrail = PIIGuardrail(types=["email"], tokens={"email": "<hidden>"})

        assert guardrail.redact("x@y.com") == "<hidden>"

    def test_rejects_detectable_token(self):
        with pytest.raises(ValueError, match="would itself be detected"):
            PIIGuardrail(tokens={"email": "me@example.com"})

    def test_rejects_unknown_type_and_allow(self):
        with pytest.raises(ValueError, match="Unknown PII types"):
            PIIGuardrail(types=["passport"])
        with pytest.raises(ValueError):
            PIIGuardrail(action=Verdict.ALLOW)


class TestPatternGuardrail:
    @pytest.mark.asyncio
    async def test_blocks_on_match(self):
        guardrail = PatternGuardrail({"secrets": r"api[_-]?key"})

        result = await guardrail.check("my API_KEY is", CONTEXT, Direction.INPUT)

        assert result.verdict == Verdict.BLOCK
        assert result.violations[0].rule == "secrets"

    @pytest.mark.asyncio
    async def test_redact_mode(self):
        guardrail = PatternGuardrail([r"password=\S+"], verdict=Verdict.REDACT)

        result = await guardrail.check("login password=hunter2 ok", CONTEXT, Direction.INPUT)

        assert result.filtered_content == "login [REDACTED] ok"

    def test_rejects_self_matching_replacement(self):
        with pytest.raises(ValueError):
            PatternGuardrail([r"redacted"], verdict=Verdict.REDACT)

    def test_requires_patterns(self):
        with pytest.raises(ValueError):
            PatternGuardrail([])


class TestLengthGuardrail:
    @pytest.mark.asyncio
    async def test_within_limit(self):
        result = await LengthGuardrail(10).check("short", CONTEXT, Direction.INPUT)
        assert result.verdict == Verdict.ALLOW

    @pytest.mark.asyncio
    async def test_truncates_in_redact_mode(self):
        guardrail = LengthGuardrail(5, verdict=Verdict.REDACT)

        result = await guardrail.check("0123456789", CONTEXT, Direction.OUTPUT)

        assert result.verdict == Verdict.REDACT
        assert result.filtered_content == "01234"
        assert result.violations[0].rule == "length.max_chars"
