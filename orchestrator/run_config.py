"""Named run policies for each command."""

from typing import Callable, Dict

from config import Config
from session.types import RunConfig


def default_run_config() -> RunConfig:
    return RunConfig(max_iterations=Config.MAX_ITERATIONS)


def plan_run_config() -> RunConfig:
    """Planning: few iterations, read-only tools, aborts fast on repeated errors."""
    return RunConfig(
        max_iterations=5,
        allowed_tools=("read_file", "list_directory"),
        require_text_output=True,
        timeout_seconds=180,
        max_tool_retries=1,
        abort_on_repeated_errors=True,
    )


def generate_run_config() -> RunConfig:
    """Generation: more iterations, mutating tools, tolerant retry budget."""
    return RunConfig(
        max_iterations=15,
        allowed_tools=("read_file", "write_file", "list_directory", "run_shell_command"),
        require_text_output=False,
        timeout_seconds=600,
        max_tool_retries=3,
        abort_on_repeated_errors=False,
    )


def review_run_config() -> RunConfig:
    """Review: most iterations, tests and linters via the shell, file rewrites as patches.

    Aborts on repeated errors so fixes do not oscillate.
    """
    return RunConfig(
        max_iterations=20,
        allowed_tools=("read_file", "list_directory", "write_file", "run_shell_command"),
        require_text_output=False,
        timeout_seconds=900,
        max_tool_retries=2,
        abort_on_repeated_errors=True,
    )


PRESETS: Dict[str, Callable[[], RunConfig]] = {
    "chat": default_run_config,
    "plan": plan_run_config,
    "generate": generate_run_config,
    "review": review_run_config,
}


def get_preset(command: str) -> RunConfig:
    """Return the run policy for a command.

    Raises:
        ValueError: If the command has no preset
    """
    factory = PRESETS.get(command)
    if factory is None:
        raise ValueError(f"Unknown command '{command}'. Available: {', '.join(PRESETS)}")
    return factory()
