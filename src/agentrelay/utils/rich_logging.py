"""Console output with Rich: theme, configuration and run summaries"""

from typing import TYPE_CHECKING, Optional

import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme
from rich.traceback import install as install_rich_traceback
from rich.tree import Tree

if TYPE_CHECKING:
    from ..core.config import RelayConfig
    from ..models.contracts import RunResult

RELAY_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "metric": "magenta",
        "token": "blue",
        "agent": "bold cyan",
        "tool": "blue",
        "handoff": "magenta",
        "verdict": "yellow",
    }
)

_STATUS_STYLES = {
    "completed": "success",
    "blocked": "warning",
    "max_turns_exceeded": "warning",
    "stopped": "info",
    "error": "error",
}


class RelayConsole:
    """Singleton console with the runtime's theme"""

    _instance: Optional["RelayConsole"] = None

    def __new__(cls) -> "RelayConsole":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not hasattr(self, "initialized"):
            self.console = Console(theme=RELAY_THEME)
            self.initialized = True

    def print_banner(self):
        self.console.print(
            Panel.fit(
                "[bold cyan]agentrelay[/bold cyan] - Multi-Agent Execution Runtime\n"
                "[dim]Handoffs • Parallel Guardrails • Resilient Providers[/dim]",
                border_style="cyan",
            )
        )

    def print_config_summary(self, config: "RelayConfig"):
        """Print configuration summary table"""
        table = Table(title="Configuration", show_header=False, border_style="cyan")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="yellow")

        retry = config.retry
        breaker = config.circuit_breaker
        table.add_row("Max Retries", str(retry.max_retries))
        table.add_row(
            "Backoff",
            f"{retry.base_delay}s x{retry.multiplier} (max {retry.max_delay}s, jitter {retry.jitter:.0%})",
        )
        table.add_row("Retryable Kinds", ", ".join(sorted(k.value for k in retry.retryable_kinds)))
        table.add_row(
            "Circuit Breaker",
            f"{breaker.failure_threshold} failures / {breaker.window_seconds}s, "
            f"cooldown {breaker.cooldown_seconds}s",
        )
        table.add_row("Provider Timeout", f"{config.provider_timeout}s")
        table.add_row("Tool Timeout", f"{config.tool_timeout}s")
        table.add_row("Guardrail Timeout", f"{config.guardrail_timeout}s")
        table.add_row("Default Max Turns", str(config.default_max_turns))
        table.add_row("Max Handoffs", str(config.max_handoffs))
        table.add_row("Guardrail Failure Verdict", config.guardrail_failure_verdict.value)
        table.add_row("Log Level", config.log_level.value)

        self.console.print(table)

    def print_run_summary(self, result: "RunResult"):
        """Print the outcome and counters of a run"""
        style = _STATUS_STYLES.get(result.status.value, "info")
        table = Table(title=f"Run {result.run_id[:8]}", show_header=True, border_style="cyan")
        table.add_column("Metric", style="cyan", no_wrap=True)
        table.add_column("Value", style="yellow", justify="right")

        table.add_row("Status", f"[{style}]{result.status.value}[/{style}]")
        table.add_row("Last Agent", f"[agent]{result.last_agent}[/agent]")
        table.add_row("Turns", str(result.usage.turns))
        table.add_row("Model Calls", str(result.usage.model_calls))
        table.add_row(
            "Tool Calls",
            f"{result.usage.tool_calls} ({result.usage.failed_tool_calls} failed)",
        )
        table.add_row("Handoffs", str(result.usage.handoffs))
        table.add_row("Tokens", f"{result.usage.total_tokens:,}")
        table.add_row("Violations", str(len(result.violations)))
        if result.error:
            table.add_row("Error", f"[error]{result.error.kind.value}: {result.error.message}[/error]")

        self.console.print(table)

    def print_handoff_tree(self, result: "RunResult"):
        """Print the chain of agents that handled a run"""
        first = result.handoffs[0].source_agent if result.handoffs else result.last_agent
        tree = Tree(f"[agent]{first}[/agent]")
        node = tree
        for record in result.handoffs:
            node = node.add(f"[handoff]→[/handoff] [agent]{record.target_agent}[/agent] (turn {record.turn})")
        self.console.print(tree)

    def print_success(self, message: str):
        self.console.print(f"[success]✓[/success] {message}")

    def print_error(self, message: str):
        self.console.print(f"[error]✗[/error] {message}")

    def print_warning(self, message: str):
        self.console.print(f"[warning]⚠[/warning] {message}")


console = RelayConsole()


def setup_rich_logging() -> None:
    """
    Install Rich's traceback handler globally.

    structlog configuration is handled separately in utils/logging.py.
    """
    install_rich_traceback(
        show_locals=False,
        width=120,
        extra_lines=3,
        theme="monokai",
        word_wrap=False,
        suppress=[structlog],
    )
