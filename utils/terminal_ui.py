"""Terminal output helpers built on Rich."""

from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

# Global console instance
console = Console()

PRIMARY = "cyan"
SUCCESS = "green"
WARNING = "yellow"
ERROR = "red"
MUTED = "dim"

_STATE_STYLES = {
    "running": PRIMARY,
    "paused": WARNING,
    "completed": SUCCESS,
    "failed": ERROR,
}


def print_header(title: str, subtitle: Optional[str] = None) -> None:
    """Print a formatted header panel.

    Args:
        title: Main title text
        subtitle: Optional subtitle text
    """
    content = f"[bold {PRIMARY}]{title}[/bold {PRIMARY}]"
    if subtitle:
        content += f"\n[{MUTED}]{subtitle}[/{MUTED}]"

    console.print(Panel(content, border_style=PRIMARY, box=box.DOUBLE, padding=(1, 2)))


def print_config(config: Dict[str, Any]) -> None:
    """Print configuration in a formatted table.

    Args:
        config: Dictionary of configuration key-value pairs
    """
    table = Table(show_header=False, box=box.SIMPLE, border_style=MUTED, padding=(0, 2))
    table.add_column("Key", style=f"{PRIMARY} bold")
    table.add_column("Value", style=SUCCESS)

    for key, value in config.items():
        table.add_row(key, str(value))

    console.print(table)


def print_final_answer(answer: str, title: str = "Final Answer") -> None:
    """Print final answer in a formatted panel with Markdown rendering.

    Args:
        answer: Final answer text (supports Markdown)
        title: Panel title
    """
    console.print()
    console.print(
        Panel(
            Markdown(answer),
            title=f"[bold {SUCCESS}]{title}[/bold {SUCCESS}]",
            border_style=SUCCESS,
            box=box.DOUBLE,
            padding=(1, 2),
        )
    )


def print_run_summary(summary: Dict[str, Any], success: bool) -> None:
    """Print run counters as a compact table."""
    style = SUCCESS if success else ERROR
    table = Table(
        title=f"[bold {style}]{'Run succeeded' if success else 'Run failed'}[/bold {style}]",
        show_header=False,
        box=box.ROUNDED,
        border_style=MUTED,
        padding=(0, 1),
    )
    table.add_column("Metric", style=PRIMARY)
    table.add_column("Value", justify="right")
    for key, value in summary.items():
        table.add_row(key, str(value))
    console.print(table)


def print_session_table(rows: List[Dict[str, Any]]) -> None:
    """Print one row per session.

    Args:
        rows: Dicts with session_id, command, model, state, started, messages, tool_calls
    """
    if not rows:
        console.print(f"[{MUTED}]No sessions found.[/{MUTED}]")
        return

    table = Table(
        show_header=True,
        header_style=f"bold {PRIMARY}",
        box=box.ROUNDED,
        border_style=MUTED,
        padding=(0, 1),
    )
    table.add_column("Session")
    table.add_column("Command")
    table.add_column("Model")
    table.add_column("State")
    table.add_column("Started")
    table.add_column("Msgs", justify="right")
    table.add_column("Tools", justify="right")

    for row in rows:
        state = row["state"]
        style = _STATE_STYLES.get(state, "")
        table.add_row(
            row["session_id"],
            row["command"],
            row["model"],
            f"[{style}]{state}[/{style}]" if style else state,
            row["started"],
            str(row["messages"]),
            str(row["tool_calls"]),
        )

    console.print(table)


def print_tool_calls(records: List[Dict[str, Any]]) -> None:
    """Print the tool call log of a session."""
    if not records:
        console.print(f"[{MUTED}]No tool calls recorded.[/{MUTED}]")
        return

    table = Table(show_header=True, header_style=f"bold {PRIMARY}", box=box.SIMPLE, padding=(0, 1))
    table.add_column("#", justify="right")
    table.add_column("Iter", justify="right")
    table.add_column("Tool")
    table.add_column("Result")
    table.add_column("Duration", justify="right")

    for index, record in enumerate(records, start=1):
        if record["success"]:
            outcome = f"[{SUCCESS}]ok[/{SUCCESS}]"
        else:
            error = record.get("error", "")
            if len(error) > 80:
                error = error[:77] + "..."
            outcome = f"[{ERROR}]{error or 'failed'}[/{ERROR}]"
        table.add_row(
            str(index),
            str(record["iteration"]),
            record["tool_name"],
            outcome,
            f"{record['duration']:.2f}s",
        )

    console.print(table)


def print_error(message: str, title: str = "Error") -> None:
    """Print an error message.

    Args:
        message: Error message
        title: Error title (default: "Error")
    """
    console.print(
        Panel(
            f"[{ERROR}]{message}[/{ERROR}]",
            title=f"[bold {ERROR}]{title}[/bold {ERROR}]",
            border_style=ERROR,
            box=box.ROUNDED,
        )
    )


def print_warning(message: str) -> None:
    console.print(f"[{WARNING}]{message}[/{WARNING}]")


def print_success(message: str) -> None:
    console.print(f"[{SUCCESS}]✓ {message}[/{SUCCESS}]")


def print_info(message: str) -> None:
    console.print(f"[{PRIMARY}]ℹ {message}[/{PRIMARY}]")


def print_log_location(log_file: str) -> None:
    """Print log file location.

    Args:
        log_file: Path to log file
    """
    console.print()
    console.print(f"[{MUTED}]Detailed logs: {log_file}[/{MUTED}]")
