"""
Command-line interface for agentrelay.

Provides commands for inspecting configuration and running a single agent
against a real model backend.
"""

import sys
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .exceptions import ConfigurationError
from .utils.rich_logging import console as relay_console

app = typer.Typer(
    name="agentrelay",
    help="Multi-agent execution runtime with handoffs, guardrails and resilient provider calls",
    add_completion=False,
)

console = Console()


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold cyan]agentrelay[/bold cyan] version {__version__}")
    console.print("Multi-Agent Execution Runtime")


@app.command()
def info():
    """
    Display project information.
    """
    panel = Panel(
        f"""[bold cyan]agentrelay[/bold cyan] - Multi-Agent Execution Runtime

[bold]Version:[/bold] {__version__}

[bold]Components:[/bold]
  • Runner            - Turn-taking state machine
  • GuardrailPipeline - Concurrent input/output checks
  • HandoffRouter     - transfer_to_<Agent> routing
  • ToolInvoker       - Parallel tool execution
  • ProviderAdapter   - Retry, backoff and circuit breaking

[dim]For help: agentrelay --help[/dim]
        """,
        title="Project Info",
        border_style="cyan",
    )
    console.print(panel)


@app.command()
def run(
    message: str = typer.Argument(..., help="User message to send"),
    model: str = typer.Option("openai/gpt-4o-mini", "--model", "-m", help="Model (LiteLLM format)"),
    instructions: str = typer.Option(
        "You are a helpful assistant.", "--instructions", "-i", help="System instructions"
    ),
    max_turns: Optional[int] = typer.Option(None, "--max-turns", help="Override default max turns"),
    redact_pii: bool = typer.Option(False, "--redact-pii", help="Redact PII from input and output"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """
    Run a single agent on one message and print the outcome.
    """
    from .core.agent import Agent, AgentRegistry
    from .core.config import load_config
    from .core.runner import Runner
    from .guardrails.builtin import PIIGuardrail
    from .providers.adapter import ProviderAdapter
    from .providers.litellm_backend import LiteLLMBackend
    from .utils.logging import setup_logging

    try:
        config = load_config(**({"log_level": "DEBUG"} if debug else {}))
    except ConfigurationError as e:
        relay_console.print_error(e.user_message)
        sys.exit(1)
    setup_logging(config)

    agent = Agent(name="Assistant", instructions=instructions, model=model, max_turns=max_turns)
    guardrails = [PIIGuardrail()] if redact_pii else []
    runner = Runner(
        adapter=ProviderAdapter(LiteLLMBackend(), config),
        registry=AgentRegistry([agent]),
        config=config,
        input_guardrails=guardrails,
        output_guardrails=guardrails,
    )

    result = runner.run_sync(agent, message)
    if result.final_output:
        console.print(Panel(result.final_output, title=result.last_agent, border_style="green"))
    if config.enable_rich_console:
        relay_console.print_run_summary(result)
    if not result.success:
        relay_console.print_warning(f"Run ended with status {result.status.value}")
        sys.exit(1)


# Configuration management subcommand group
config_app = typer.Typer(help="Configuration management commands")
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show():
    """
    Display the configuration resolved from kwargs, environment, .env and pyproject.toml.
    """
    from .core.config import load_config

    try:
        config = load_config()
    except ConfigurationError as e:
        relay_console.print_error(e.user_message)
        sys.exit(1)

    relay_console.print_config_summary(config)


@config_app.command("export")
def config_export(
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output file path (default: .agentrelay/config.yaml)"
    ),
):
    """
    Export the current configuration to a YAML file.
    """
    from .core.config import load_config
    from .utils.config_export import export_config

    try:
        output_path = export_config(load_config(), output)
    except (ConfigurationError, OSError) as e:
        relay_console.print_error(f"Export failed: {e}")
        sys.exit(1)

    relay_console.print_success(f"Configuration exported to: {output_path}")


@config_app.command("load")
def config_load(
    config_file: Path = typer.Argument(..., help="Path to configuration YAML file"),
):
    """
    Load and validate configuration from a YAML file.
    """
    from .utils.config_export import import_config

    try:
        config = import_config(config_file)
    except FileNotFoundError as e:
        relay_console.print_error(str(e))
        sys.exit(1)
    except (ConfigurationError, yaml.YAMLError) as e:
        relay_console.print_error(f"Invalid configuration file: {e}")
        sys.exit(1)

    relay_console.print_success(f"Configuration loaded from: {config_file}")
    relay_console.print_config_summary(config)


@config_app.command("diff")
def config_diff(
    config_file: Path = typer.Argument(..., help="YAML file to compare with the current configuration"),
):
    """
    Show settings that differ between the current configuration and a YAML file.
    """
    from .core.config import load_config
    from .utils.config_export import config_diff as diff_configs
    from .utils.config_export import import_config

    try:
        differences = diff_configs(load_config(), import_config(config_file))
    except (FileNotFoundError, ConfigurationError, yaml.YAMLError) as e:
        relay_console.print_error(str(e))
        sys.exit(1)

    if not differences:
        console.print("[green]No differences[/green]")
        return

    table = Table(title="Configuration Diff")
    table.add_column("Setting", style="cyan")
    table.add_column("Current", style="yellow")
    table.add_column(str(config_file), style="green")
    for key, (current, other) in differences.items():
        table.add_row(key, str(current), str(other))
    console.print(table)


if __name__ == "__main__":
    app()
