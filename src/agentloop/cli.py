"""
Command-line interface for agentloop.

Runs queries through the agent with live event rendering, and manages the
long-term history, the request cache and configuration.
"""

import asyncio
import signal
import sys
import time
from pathlib import Path
from typing import Optional

import typer
import yaml
from pydantic import ValidationError
from rich.markdown import Markdown
from rich.table import Table

from . import __version__
from .core.agent import Agent
from .core.cache import CacheConfig
from .core.config import AgentConfig, get_config
from .core.history import LongTermChatHistory
from .core.runner import AgentRunner
from .models.enums import RunStatus
from .models.events import (
    AgentEvent,
    AnswerStartEvent,
    ContextClearedEvent,
    DoneEvent,
    ErrorEvent,
    ThinkingEvent,
    ToolEndEvent,
    ToolErrorEvent,
    ToolLimitEvent,
    ToolProgressEvent,
    ToolStartEvent,
)
from .models.contracts import result_to_text
from .tools.builtin import create_default_registry
from .utils.logging import setup_logging
from .utils.rich_logging import console, setup_rich_logging

app = typer.Typer(
    name="agentloop",
    help="LLM agent execution engine with tool dispatch and context management",
    add_completion=False,
)

# Batch window for tool_progress redraws
PROGRESS_BATCH_MS = 80

EXIT_CODES = {
    RunStatus.COMPLETED: 0,
    RunStatus.ERROR: 1,
    RunStatus.INTERRUPTED: 130,
}


class EventRenderer:
    """Renders the event stream, batching rapid progress updates."""

    def __init__(self, show_progress: bool = True, batch_ms: int = PROGRESS_BATCH_MS):
        self.show_progress = show_progress
        self.batch_seconds = batch_ms / 1000
        self._pending_progress: Optional[str] = None
        self._last_progress_at: Optional[float] = None

    def _flush_progress(self) -> None:
        if self._pending_progress is not None:
            console.console.print(f"    [progress]… {self._pending_progress}[/progress]")
            self._pending_progress = None
            self._last_progress_at = time.monotonic()

    def __call__(self, event: AgentEvent) -> None:
        if isinstance(event, ToolProgressEvent):
            if not self.show_progress:
                return
            self._pending_progress = event.message
            if (
                self._last_progress_at is None
                or time.monotonic() - self._last_progress_at >= self.batch_seconds
            ):
                self._flush_progress()
            return

        self._flush_progress()

        if isinstance(event, ThinkingEvent):
            console.console.print("[thinking]Thinking…[/thinking]")
        elif isinstance(event, ContextClearedEvent):
            console.print_info(f"Cleared {event.evicted_count} old tool results from context")
        elif isinstance(event, ToolStartEvent):
            args = ", ".join(f"{k}={v!r}" for k, v in event.args.items())
            console.console.print(f"  [tool]⚙ {event.tool}[/tool]({args})")
        elif isinstance(event, ToolEndEvent):
            preview = result_to_text(event.result)
            if len(preview) > 120:
                preview = preview[:117] + "..."
            suffix = " [dim](cached)[/dim]" if event.cached else f" [dim]({event.duration_ms:.0f}ms)[/dim]"
            console.console.print(f"    [success]✓[/success] {preview}{suffix}")
        elif isinstance(event, ToolErrorEvent):
            console.console.print(f"    [error]✗[/error] {event.tool}: {event.error}")
        elif isinstance(event, ToolLimitEvent):
            console.print_warning(f"Tool call limit ({event.limit}) reached; answering now")
        elif isinstance(event, AnswerStartEvent):
            console.console.print()
        elif isinstance(event, DoneEvent):
            console.console.print(Markdown(event.answer or "_(empty answer)_"))
            console.console.print()
            console.print_run_summary(
                event.total_time,
                event.token_usage,
                event.tokens_per_second,
                extra={"Iterations": event.iterations},
            )
        elif isinstance(event, ErrorEvent):
            console.print_error(event.message)


def _build_config(model: Optional[str], max_tool_calls: Optional[int]) -> AgentConfig:
    overrides = {}
    if model:
        overrides["model"] = model
    if max_tool_calls is not None:
        overrides["max_tool_calls"] = max_tool_calls
    return AgentConfig(**overrides) if overrides else get_config()


async def _ask(query: str, config: AgentConfig, use_history: bool, show_progress: bool) -> RunStatus:
    agent = Agent.from_config(config, registry=create_default_registry())
    history = LongTermChatHistory(config.data_dir) if use_history else None
    runner = AgentRunner(agent, history=history)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, runner.cancel, "interrupted")
    except (NotImplementedError, RuntimeError):
        pass

    try:
        outcome = await runner.run_query(query, on_event=EventRenderer(show_progress))
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass

    if outcome.status == RunStatus.INTERRUPTED:
        console.print_warning(f"Run interrupted ({outcome.error or 'cancelled'})")
    return outcome.status


@app.command()
def version():
    """Show version information."""
    console.console.print(f"[bold cyan]agentloop[/bold cyan] version {__version__}")


@app.command()
def ask(
    query: str = typer.Argument(..., help="Question for the agent"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Override the LLM model"),
    max_tool_calls: Optional[int] = typer.Option(
        None, "--max-tool-calls", help="Tool calls allowed for this run"
    ),
    no_history: bool = typer.Option(
        False, "--no-history", help="Do not read or write the long-term history"
    ),
    quiet_progress: bool = typer.Option(
        False, "--quiet-progress", help="Hide tool progress messages"
    ),
    show_config: bool = typer.Option(False, "--show-config", help="Print settings before running"),
):
    """
    Run a query through the agent and render its events live.

    Ctrl-C interrupts the run cooperatively; the partial answer is kept in
    the history.
    """
    if not query.strip():
        console.print_error("Query must not be empty")
        raise typer.Exit(code=2)

    try:
        config = _build_config(model, max_tool_calls)
    except ValidationError as e:
        console.print_error(f"Invalid configuration: {e}")
        raise typer.Exit(code=2)

    setup_logging(config)
    if show_config and config.enable_rich_console:
        console.print_banner()
        console.print_config_summary(config)

    status = asyncio.run(_ask(query, config, not no_history, not quiet_progress))
    raise typer.Exit(code=EXIT_CODES[status])


@app.command()
def history(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of entries to show"),
    clear: bool = typer.Option(False, "--clear", help="Delete the long-term history"),
):
    """Show recent queries from the long-term history (newest first)."""
    store = LongTermChatHistory(get_config().data_dir)

    if clear:
        store.clear()
        console.print_success("History cleared")
        return

    strings = store.get_message_strings()
    if not strings:
        console.print_info("No history yet")
        return

    table = Table(title="Recent Queries", show_header=True, border_style="cyan")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Query", style="cyan")
    for index, text in enumerate(strings[:limit], start=1):
        table.add_row(str(index), text)
    console.console.print(table)


# Cache management subcommand group
cache_app = typer.Typer(help="Request cache commands")
app.add_typer(cache_app, name="cache")


def _cache_from_config():
    return CacheConfig.from_agent_config(get_config()).create_cache()


@cache_app.command("stats")
def cache_stats():
    """Show statistics of the configured cache backend."""
    try:
        stats = _cache_from_config().stats()
    except (ImportError, OSError) as e:
        console.print_error(f"Cache unavailable: {e}")
        sys.exit(1)

    table = Table(title="Cache", show_header=False, border_style="cyan")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="yellow")
    for key, value in stats.items():
        table.add_row(key, str(value))
    console.console.print(table)


@cache_app.command("clear")
def cache_clear():
    """Remove every entry from the configured cache backend."""
    try:
        removed = _cache_from_config().clear()
    except (ImportError, OSError) as e:
        console.print_error(f"Cache unavailable: {e}")
        sys.exit(1)
    console.print_success(f"Removed {removed} cache entries")


# Configuration management subcommand group
config_app = typer.Typer(help="Configuration management commands")
app.add_typer(config_app, name="config")


@config_app.command("export")
def config_export(
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file path (default: .agentloop/config.yaml)"
    ),
    include_secrets: bool = typer.Option(
        False,
        "--include-secrets",
        help="Include API keys in export (WARNING: sensitive data)"
    ),
):
    """
    Export current configuration to YAML file.

    By default, API keys and secrets are excluded.
    """
    from .utils.config_export import export_config

    try:
        output_path = export_config(get_config(), output, include_secrets)
    except (OSError, ValidationError) as e:
        console.print_error(f"Export failed: {e}")
        sys.exit(1)

    console.print_success(f"Configuration exported to: {output_path}")
    if not include_secrets:
        console.console.print("[dim]Note: API keys excluded. Use --include-secrets to include them.[/dim]")


@config_app.command("load")
def config_load(
    config_file: Path = typer.Argument(..., help="Path to configuration YAML file"),
):
    """
    Load and validate configuration from YAML file.

    Displays the resulting settings for verification.
    """
    from .utils.config_export import import_config

    try:
        config = import_config(config_file)
    except FileNotFoundError as e:
        console.print_error(str(e))
        sys.exit(1)
    except (ValidationError, ValueError, yaml.YAMLError) as e:
        console.print_error(f"Invalid configuration file: {e}")
        sys.exit(1)

    console.print_success(f"Configuration loaded from: {config_file}")
    console.print_config_summary(config)


@config_app.command("show")
def config_show():
    """Display current configuration settings (secrets excluded)."""
    try:
        config = get_config()
    except ValidationError as e:
        console.print_error(f"Failed to load config: {e}")
        sys.exit(1)

    table = Table(title="Active Settings")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="yellow")

    config_dict = config.model_dump(exclude=set(AgentConfig.SECRET_FIELDS), exclude_none=True)
    for key, value in sorted(config_dict.items()):
        table.add_row(key, str(value))

    console.console.print(table)


def main():
    """Main entry point for the CLI."""
    setup_rich_logging()
    app()


if __name__ == "__main__":
    main()
