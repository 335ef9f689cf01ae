"""File operation tools scoped to a workspace root."""

import os
from typing import Any, Dict

import aiofiles
import aiofiles.os

from .base import BaseTool, ToolOutcome
from .errors import (
    ErrorCode,
    StandardizedToolError,
    content_too_large_error,
    directory_not_found_error,
    file_not_found_error,
    invalid_line_range_error,
    missing_parameter_error,
    parameter_error,
)
from .validator import PathValidationError, ToolValidator


class WorkspaceTool(BaseTool):
    """Base for tools that operate on paths inside the workspace."""

    def __init__(self, validator: ToolValidator):
        self.validator = validator

    def _relative(self, resolved: str) -> str:
        return os.path.relpath(resolved, self.validator.workspace_root)


class ReadFileTool(WorkspaceTool):
    """Read contents of a file, optionally a line range."""

    readonly = True

    @property
    def name(self) -> str:
        return "read_file"

    @property
    def description(self) -> str:
        return (
            "Read the contents of a file in the workspace. Use start_line and end_line "
            "(1-indexed, inclusive) to read part of a large file."
        )

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "path": {
                "type": "string",
                "description": "Workspace-relative path of the file to read",
            },
            "start_line": {
                "type": "integer",
                "description": "First line to read (1-indexed). Default: 1",
                "default": 1,
            },
            "end_line": {
                "type": "integer",
                "description": "Last line to read (inclusive). Default: end of file",
                "default": 0,
            },
        }

    async def execute(self, path: str = "", start_line: int = 1, end_line: int = 0) -> ToolOutcome:
        error = self.validator.check_required({"path": path}, ["path"])
        if error:
            return ToolOutcome.failed(error)
        for param, value in (("start_line", start_line), ("end_line", end_line)):
            error = self.validator.check_type(param, value, int)
            if error:
                return ToolOutcome.failed(error)

        try:
            resolved = self.validator.resolve_path(path)
        except PathValidationError as e:
            return ToolOutcome.failed(e.error)

        if not await aiofiles.os.path.exists(resolved):
            return ToolOutcome.failed(file_not_found_error(path))
        if await aiofiles.os.path.isdir(resolved):
            return ToolOutcome.failed(parameter_error("path", "is a directory, not a file"))

        # Whole-file reads are capped; a line range may read into a large file
        size = await aiofiles.os.path.getsize(resolved)
        ranged = start_line != 1 or end_line != 0
        if size > self.MAX_CONTENT_BYTES and not ranged:
            return ToolOutcome.failed(content_too_large_error(size, self.MAX_CONTENT_BYTES))

        try:
            async with aiofiles.open(resolved, encoding="utf-8") as f:
                lines = await f.readlines()
        except UnicodeDecodeError:
            return ToolOutcome.failure(
                ErrorCode.INVALID_ENCODING, f"File is not valid UTF-8: {path}", file_path=path
            )
        except PermissionError:
            return ToolOutcome.failure(
                ErrorCode.PERMISSION_DENIED, f"Permission denied: {path}", file_path=path
            )

        # end_line 0 means through the last line
        total = len(lines)
        last = end_line or total
        if start_line < 1 or last < start_line or (total and last > total):
            return ToolOutcome.failed(invalid_line_range_error(start_line, end_line))

        return ToolOutcome.ok(
            {
                "path": self._relative(resolved),
                "content": "".join(lines[start_line - 1 : last]),
                "start_line": start_line,
                "end_line": last,
                "total_lines": total,
            }
        )


class WriteFileTool(WorkspaceTool):
    """Write content to a file, creating parent directories as needed."""

    @property
    def name(self) -> str:
        return "write_file"

    @property
    def description(self) -> str:
        return (
            "Write content to a file in the workspace. Existing files are only "
            "replaced when overwrite is true."
        )

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "path": {
                "type": "string",
                "description": "Workspace-relative path of the file to write",
            },
            "content": {
                "type": "string",
                "description": "Content to write to the file",
            },
            "overwrite": {
                "type": "boolean",
                "description": "Replace the file if it already exists. Default: false",
                "default": False,
            },
        }

    async def execute(self, path: str = "", content: Any = None, overwrite: bool = False) -> ToolOutcome:
        error = self.validator.check_required({"path": path}, ["path"])
        if error:
            return ToolOutcome.failed(error)
        if content is None:
            return ToolOutcome.failed(missing_parameter_error("content"))
        error = self.validator.check_type("content", content, str)
        if error:
            return ToolOutcome.failed(error)

        try:
            resolved = self.validator.resolve_path(path)
        except PathValidationError as e:
            return ToolOutcome.failed(e.error)

        # Limit counts encoded bytes, not characters
        size = len(content.encode("utf-8"))
        if size > self.MAX_CONTENT_BYTES:
            return ToolOutcome.failed(content_too_large_error(size, self.MAX_CONTENT_BYTES))

        existed = await aiofiles.os.path.exists(resolved)
        if existed and not overwrite:
            return ToolOutcome.failed(
                StandardizedToolError(
                    ErrorCode.FILE_ALREADY_EXISTS,
                    f"File already exists: {path}",
                    "Set overwrite to true to replace the file, or choose a different path",
                ).with_detail("file_path", path)
            )

        try:
            await aiofiles.os.makedirs(os.path.dirname(resolved), exist_ok=True)
            async with aiofiles.open(resolved, "w", encoding="utf-8") as f:
                await f.write(content)
        except PermissionError:
            return ToolOutcome.failure(
                ErrorCode.PERMISSION_DENIED, f"Permission denied: {path}", file_path=path
            )

        return ToolOutcome.ok(
            {
                "path": self._relative(resolved),
                "bytes_written": size,
                "created": not existed,
            }
        )


class ListDirectoryTool(WorkspaceTool):
    """List entries of a workspace directory."""

    readonly = True

    @property
    def name(self) -> str:
        return "list_directory"

    @property
    def description(self) -> str:
        return "List files and subdirectories of a workspace directory"

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "path": {
                "type": "string",
                "description": "Workspace-relative directory path. Default: workspace root",
                "default": ".",
            },
        }

    async def execute(self, path: str = ".") -> ToolOutcome:
        try:
            resolved = self.validator.resolve_path(path or ".")
        except PathValidationError as e:
            return ToolOutcome.failed(e.error)

        if not await aiofiles.os.path.isdir(resolved):
            return ToolOutcome.failed(directory_not_found_error(path))

        # Sorted by name
        entries = []
        for entry in sorted(await aiofiles.os.scandir(resolved), key=lambda e: e.name):
            entries.append(
                {
                    "name": entry.name,
                    "type": "directory" if entry.is_dir() else "file",
                }
            )
        return ToolOutcome.ok({"path": self._relative(resolved), "entries": entries})
