"""Parameter and path validation shared by workspace tools."""

import os
from typing import Any, Dict, Iterable, Optional

from .errors import (
    ErrorCode,
    StandardizedToolError,
    missing_parameter_error,
    parameter_error,
    path_outside_workspace_error,
)


class ToolValidator:
    """Validates tool arguments against a workspace root."""

    def __init__(self, workspace_root: str):
        self.workspace_root = os.path.realpath(workspace_root)

    def check_required(
        self, args: Dict[str, Any], required: Iterable[str]
    ) -> Optional[StandardizedToolError]:
        """Return an error for the first required parameter that is missing or empty."""
        for name in required:
            value = args.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                return missing_parameter_error(name)
        return None

    def check_type(self, name: str, value: Any, expected: type) -> Optional[StandardizedToolError]:
        # bool is an int subclass; reject it where an integer is expected
        if expected is int and isinstance(value, bool):
            return parameter_error(name, "must be an integer")
        if not isinstance(value, expected):
            return parameter_error(name, f"must be of type {expected.__name__}")
        return None

    def resolve_path(self, path: str) -> str:
        """Resolve a workspace-relative path to an absolute one.

        Raises:
            PathValidationError: If the path is empty or escapes the workspace
        """
        if not path or not path.strip():
            raise PathValidationError(missing_parameter_error("path"))

        if os.path.isabs(path):
            raise PathValidationError(path_outside_workspace_error(path))

        parts = path.replace("\\", "/").split("/")
        if ".." in parts:
            raise PathValidationError(path_outside_workspace_error(path))

        if "\x00" in path:
            raise PathValidationError(
                StandardizedToolError(
                    ErrorCode.INVALID_PATH_FORMAT,
                    f"Invalid path format: {path!r}",
                    "Provide a plain relative path without control characters",
                ).with_detail("invalid_path", path)
            )

        resolved = os.path.realpath(os.path.join(self.workspace_root, path))
        # Symlinks may still point outside the workspace
        if resolved != self.workspace_root and not resolved.startswith(
            self.workspace_root + os.sep
        ):
            raise PathValidationError(path_outside_workspace_error(path))
        return resolved


class PathValidationError(Exception):
    """Carries the standardized error for a rejected path."""

    def __init__(self, error: StandardizedToolError):
        super().__init__(str(error))
        self.error = error
