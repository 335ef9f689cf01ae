"""Workspace tools and the registry that exposes them to the orchestrator."""

from .base import BaseTool, ToolOutcome
from .errors import ErrorCode, StandardizedToolError, ToolInvocationError
from .file_ops import ListDirectoryTool, ReadFileTool, WriteFileTool
from .registry import ToolRegistry
from .shell import ShellCommandTool
from .validator import ToolValidator


def create_workspace_tools(workspace_root: str) -> ToolRegistry:
    """Create a registry with the built-in workspace tools.

    Args:
        workspace_root: Directory every tool path is resolved against

    Returns:
        ToolRegistry with read_file, write_file, list_directory and run_shell_command
    """
    validator = ToolValidator(workspace_root)
    return ToolRegistry(
        [
            ReadFileTool(validator),
            WriteFileTool(validator),
            ListDirectoryTool(validator),
            ShellCommandTool(validator),
        ]
    )


__all__ = [
    "BaseTool",
    "ToolOutcome",
    "ErrorCode",
    "StandardizedToolError",
    "ToolInvocationError",
    "ToolRegistry",
    "ToolValidator",
    "ReadFileTool",
    "WriteFileTool",
    "ListDirectoryTool",
    "ShellCommandTool",
    "create_workspace_tools",
]
