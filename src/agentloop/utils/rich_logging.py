"""Rich console output for the terminal front end"""

from typing import TYPE_CHECKING, Any, Optional

import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme
from rich.traceback import install as install_rich_traceback

if TYPE_CHECKING:
    from ..core.config import AgentConfig
    from ..models.contracts import TokenUsage

AGENTLOOP_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "metric": "magenta",
        "token": "blue",
        "latency": "cyan",
        "tool": "blue",
        "progress": "dim cyan",
        "thinking": "dim",
    }
)


class AgentConsole:
    """Singleton console with the agentloop theme"""

    _instance: Optional["AgentConsole"] = None

    def __new__(cls) -> "AgentConsole":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not hasattr(self, "initialized"):
            self.console = Console(theme=AGENTLOOP_THEME)
            self.initialized = True

    def print_banner(self):
        """Print startup banner"""
        self.console.print(
            Panel.fit(
                "[bold cyan]agentloop[/bold cyan] - LLM agent execution engine\n"
                "[dim]Tool dispatch • Context eviction • Request caching[/dim]",
                border_style="cyan",
            )
        )

    def print_config_summary(self, config: "AgentConfig"):
        """Print configuration summary table"""
        table = Table(title="Configuration", show_header=False, border_style="cyan")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="yellow")

        table.add_row("Model", config.model)
        fallbacks = config.get_fallback_models()
        if fallbacks:
            table.add_row("Fallback Models", ", ".join(fallbacks))
        table.add_row("Token Budget", f"{config.token_budget:,}")
        table.add_row("Context Threshold", f"{config.context_threshold:,}")
        table.add_row("Keep Tool Uses", str(config.keep_tool_uses))
        table.add_row("Max Tool Calls", str(config.max_tool_calls))
        table.add_row("History Turns Replayed", str(config.max_history_turns))
        table.add_row("Run Timeout", f"{config.run_timeout_seconds:.0f}s")
        table.add_row("Cache Backend", str(config.cache_backend))

        self.console.print(table)

    def print_run_summary(
        self,
        total_time: float,
        token_usage: "TokenUsage",
        tokens_per_second: float,
        extra: dict[str, Any] | None = None,
    ):
        """Print the statistics of a finished run"""
        table = Table(title="Run Summary", show_header=True, border_style="cyan")
        table.add_column("Metric", style="cyan", no_wrap=True)
        table.add_column("Value", style="yellow", justify="right")

        table.add_row("Duration", f"[latency]{total_time:.2f}s[/latency]")
        table.add_row("Input Tokens", f"[token]{token_usage.input_tokens:,}[/token]")
        table.add_row("Output Tokens", f"[token]{token_usage.output_tokens:,}[/token]")
        table.add_row("Context Tokens (est.)", f"{token_usage.context_tokens:,}")
        table.add_row("Tokens/sec", f"[metric]{tokens_per_second:.1f}[/metric]")
        for key, value in (extra or {}).items():
            table.add_row(key, str(value))

        self.console.print(table)

    def print_success(self, message: str):
        """Print success message"""
        self.console.print(f"[success]✓[/success] {message}")

    def print_error(self, message: str):
        """Print error message"""
        self.console.print(f"[error]✗[/error] {message}")

    def print_warning(self, message: str):
        """Print warning message"""
        self.console.print(f"[warning]⚠[/warning] {message}")

    def print_info(self, message: str):
        """Print info message"""
        self.console.print(f"[info]ℹ[/info] {message}")


# Global console instance
console = AgentConsole()


def setup_rich_logging() -> None:
    """
    Install Rich's traceback handler globally.

    Call once at CLI startup. structlog configuration lives in
    utils/logging.py; this only affects how uncaught exceptions render.
    """
    install_rich_traceback(
        show_locals=False,
        width=120,
        extra_lines=3,
        theme="monokai",
        word_wrap=False,
        suppress=[structlog],
    )
