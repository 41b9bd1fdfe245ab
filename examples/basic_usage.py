"""
Basic usage example for agentrelay.

Demonstrates a Researcher -> Writer handoff with a search tool, PII
redaction on input and a JSONL audit trail.

Requires credentials for the chosen model, e.g. OPENAI_API_KEY.
"""

import asyncio
import os

from agentrelay import (
    Agent,
    AgentRegistry,
    PIIGuardrail,
    Runner,
    function_tool,
    load_config,
)
from agentrelay.observability import JsonlAuditHooks
from agentrelay.providers import LiteLLMBackend, ProviderAdapter
from agentrelay.utils import setup_logging
from agentrelay.utils.rich_logging import console

MODEL = os.getenv("AGENTRELAY_EXAMPLE_MODEL", "openai/gpt-4o-mini")

NOTES = {
    "circuit breaker": "Stops calling a failing dependency until a cooldown has passed.",
    "exponential backoff": "Retry delays grow geometrically, usually with random jitter.",
}


@function_tool
def search_notes(query: str) -> dict:
    """Search the team's engineering notes."""
    hits = {topic: text for topic, text in NOTES.items() if topic in query.lower()}
    return {"query": query, "hits": hits}


async def main():
    console.print_banner()

    config = load_config()
    setup_logging(config)

    researcher = Agent(
        name="Researcher",
        instructions="Collect facts with search_notes, then transfer to the Writer.",
        model=MODEL,
        tools=[search_notes],
        handoff_targets=["Writer"],
    )
    writer = Agent(
        name="Writer",
        instructions="Turn the research in the conversation into a short, friendly paragraph.",
        model=MODEL,
        handoff_description="Writes the final answer for the user",
    )

    runner = Runner(
        adapter=ProviderAdapter(LiteLLMBackend(), config),
        registry=AgentRegistry([researcher, writer]),
        config=config,
        hooks=JsonlAuditHooks("./logs/audit.jsonl"),
        input_guardrails=[PIIGuardrail()],
    )

    result = await runner.run(
        "Researcher",
        "I'm jane@example.com - explain circuit breakers and exponential backoff.",
    )

    console.print_handoff_tree(result)
    console.print_run_summary(result)
    if result.final_output:
        print(f"\n{result.final_output}")


if __name__ == "__main__":
    asyncio.run(main())
