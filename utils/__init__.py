"""Utility modules for loopwright."""

from .logger import get_log_file_path, get_logger, setup_logger

# Note: terminal_ui and runtime are NOT exported here to avoid circular imports.
# Import directly when needed:
#   from utils import terminal_ui
#   from utils.runtime import get_config_file, get_sessions_dir, etc.

__all__ = [
    "setup_logger",
    "get_logger",
    "get_log_file_path",
]
