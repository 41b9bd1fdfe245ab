"""
JSONL audit trail for runs.

Implements RunHooks so persistence stays outside the runtime: pass a
JsonlAuditHooks instance to the Runner and every appended message, guardrail
decision, handoff and run outcome is written as one JSON line.
"""

import asyncio
import json
import threading
from collections import Counter, deque
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import structlog

from ..core.hooks import RunHooks
from ..models.context import ContextVariables
from ..models.contracts import HandoffRecord, Message, PipelineDecision, RunResult
from ..utils.logging import get_logger


class JsonlAuditHooks(RunHooks):
    """
    Appends audit records to a JSONL file.

    Example:
        audit = JsonlAuditHooks("./logs/audit.jsonl")
        runner = Runner(adapter, registry, config, hooks=audit)
        ...
        audit.get_summary_stats()
    """

    def __init__(self, log_file: str | Path = "./logs/audit.jsonl", include_messages: bool = True):
        """
        Initialize the audit sink.

        Args:
            log_file: Path to JSONL log file
            include_messages: Also record every appended message, not only
                violations, handoffs and outcomes
        """
        self.log_file = Path(log_file)
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        self.include_messages = include_messages
        self.logger = get_logger(__name__)
        # Writes from concurrent runs land on worker threads; keep lines whole.
        self._lock = threading.Lock()

    async def on_message_appended(self, message: Message, context: ContextVariables) -> None:
        if self.include_messages:
            await self.record("message_appended", message=message.model_dump(mode="json"))

    async def on_guardrail_violation(self, decision: PipelineDecision, context: ContextVariables) -> None:
        await self.record(
            "guardrail_decision",
            direction=decision.direction.value,
            verdict=decision.verdict.value,
            violations=[v.model_dump(mode="json") for v in decision.violations],
            guardrails=[r.guardrail for r in decision.results],
        )

    async def on_handoff(self, record: HandoffRecord, context: ContextVariables) -> None:
        await self.record("handoff", **record.model_dump(mode="json"))

    async def on_run_end(self, result: RunResult) -> None:
        await self.record(
            "run_end",
            run_id=result.run_id,
            status=result.status.value,
            last_agent=result.last_agent,
            usage=result.usage.model_dump(mode="json"),
            error=result.error.model_dump(mode="json") if result.error else None,
            context=result.context.to_dict(resolve_lazy=False),
        )

    async def record(self, event: str, **fields: Any) -> None:
        """Append one record from a worker thread, keeping file I/O off the event loop."""
        await asyncio.to_thread(self.write, event, **fields)

    def write(self, event: str, **fields: Any) -> None:
        """Append one record; I/O failures are logged, never raised."""
        record = {
            "event": event,
            "timestamp": datetime.now().isoformat(),
            "run_id": structlog.contextvars.get_contextvars().get("run_id"),
            **fields,
        }
        try:
            line = json.dumps(record, default=str) + "\n"
            with self._lock, open(self.log_file, "a", encoding="utf-8") as f:
                f.write(line)
        except (OSError, TypeError) as e:
            self.logger.error("failed_to_write_audit_record", audit_event=event, error=str(e))

    def load_recent(
        self,
        limit: int = 100,
        event: Optional[str] = None,
        run_id: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """
        Most recent records first, optionally filtered.

        Args:
            limit: Maximum number of records to return
            event: Only records of this event type
            run_id: Only records of this run
        """
        if not self.log_file.exists():
            return []

        try:
            with open(self.log_file, "r", encoding="utf-8") as f:
                lines = deque(f, maxlen=limit * 10)
        except OSError as e:
            self.logger.error("failed_to_load_audit_records", error=str(e))
            return []

        records = []
        for line in reversed(lines):
            if len(records) >= limit:
                break
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                self.logger.warning("failed_to_parse_audit_record", error=str(e))
                continue
            if event and record.get("event") != event:
                continue
            if run_id and record.get("run_id") != run_id:
                continue
            records.append(record)
        return records

    def get_summary_stats(self, limit: int = 1000) -> dict[str, Any]:
        """Outcome counts over the most recent runs."""
        runs = self.load_recent(limit=limit, event="run_end")
        decisions = self.load_recent(limit=limit, event="guardrail_decision")
        return {
            "run_count": len(runs),
            "by_status": dict(Counter(r["status"] for r in runs)),
            "by_verdict": dict(Counter(d["verdict"] for d in decisions)),
            "handoffs": sum(r["usage"]["handoffs"] for r in runs),
            "total_tokens": sum(
                r["usage"]["input_tokens"] + r["usage"]["output_tokens"] for r in runs
            ),
        }
