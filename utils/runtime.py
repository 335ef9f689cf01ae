"""Runtime directory management for loopwright.

User-level runtime data is stored under ~/.loopwright/:
- config: Configuration file (created by config.ensure_config())
- logs/: Log files (only created with --verbose)

Sessions belong to a workspace and live under <workspace>/.loopwright/sessions/.
"""

import os
from typing import Optional

RUNTIME_DIR = os.path.join(os.path.expanduser("~"), ".loopwright")

WORKSPACE_DIR_NAME = ".loopwright"


def get_runtime_dir() -> str:
    """Get the runtime directory path.

    Returns:
        Path to ~/.loopwright directory
    """
    return RUNTIME_DIR


def get_config_file() -> str:
    """Get the configuration file path.

    Returns:
        Path to ~/.loopwright/config
    """
    return os.path.join(RUNTIME_DIR, "config")


def get_log_dir() -> str:
    """Get the log directory path.

    Returns:
        Path to ~/.loopwright/logs/
    """
    return os.path.join(RUNTIME_DIR, "logs")


def get_sessions_dir(workspace_root: Optional[str] = None) -> str:
    """Get the sessions directory for a workspace.

    Args:
        workspace_root: Workspace root (default: current working directory)

    Returns:
        Path to <workspace>/.loopwright/sessions/
    """
    root = workspace_root or os.getcwd()
    return os.path.join(root, WORKSPACE_DIR_NAME, "sessions")


def ensure_runtime_dirs(create_logs: bool = False) -> None:
    """Ensure runtime directories exist.

    Creates:
    - ~/.loopwright/
    - ~/.loopwright/logs/ (only if create_logs=True)

    Args:
        create_logs: Whether to create the logs directory (for --verbose mode)
    """
    os.makedirs(RUNTIME_DIR, exist_ok=True)

    if create_logs:
        os.makedirs(get_log_dir(), exist_ok=True)
