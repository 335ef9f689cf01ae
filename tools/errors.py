"""Standardized tool errors.

Tools report business-logic failures as a ``StandardizedToolError`` attached
to a failed ``ToolOutcome``. Failures that prevent a tool from being invoked
at all (unknown tool, malformed arguments) raise ``ToolInvocationError``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class ErrorCode(str, Enum):
    """Stable error codes shared by all tools."""

    # Parameter validation
    INVALID_PARAMETERS = "INVALID_PARAMETERS"
    MISSING_PARAMETER = "MISSING_PARAMETER"
    INVALID_PATH_FORMAT = "INVALID_PATH_FORMAT"
    PATH_OUTSIDE_WORKSPACE = "PATH_OUTSIDE_WORKSPACE"

    # File system
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    DIRECTORY_NOT_FOUND = "DIRECTORY_NOT_FOUND"
    FILE_ALREADY_EXISTS = "FILE_ALREADY_EXISTS"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INSUFFICIENT_SPACE = "INSUFFICIENT_SPACE"

    # Content validation
    INVALID_FILE_FORMAT = "INVALID_FILE_FORMAT"
    CONTENT_TOO_LARGE = "CONTENT_TOO_LARGE"
    INVALID_LINE_RANGE = "INVALID_LINE_RANGE"
    INVALID_ENCODING = "INVALID_ENCODING"

    # Git operations
    GIT_NOT_REPOSITORY = "GIT_NOT_REPOSITORY"
    GIT_NOTHING_TO_COMMIT = "GIT_NOTHING_TO_COMMIT"
    GIT_CONFLICT = "GIT_CONFLICT"
    INVALID_COMMIT_MESSAGE = "INVALID_COMMIT_MESSAGE"

    # Test and lint runs
    TEST_FAILURE = "TEST_FAILURE"
    LINT_ERRORS = "LINT_ERRORS"
    COMPILATION_FAILURE = "COMPILATION_FAILURE"
    INVALID_TEST_PATTERN = "INVALID_TEST_PATTERN"

    # Shell execution
    COMMAND_NOT_FOUND = "COMMAND_NOT_FOUND"
    COMMAND_TIMEOUT = "COMMAND_TIMEOUT"
    COMMAND_FAILED = "COMMAND_FAILED"
    INVALID_COMMAND_ARGS = "INVALID_COMMAND_ARGS"

    # General
    INTERNAL_ERROR = "INTERNAL_ERROR"
    TIMEOUT = "TIMEOUT"
    RESOURCE_LIMIT = "RESOURCE_LIMIT"
    UNSUPPORTED_OPERATION = "UNSUPPORTED_OPERATION"


class ToolInvocationError(Exception):
    """Raised when a tool cannot be invoked at all."""


@dataclass
class StandardizedToolError:
    """A structured tool failure with an actionable suggestion for the model."""

    code: ErrorCode
    message: str
    suggestion: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def with_detail(self, key: str, value: Any) -> "StandardizedToolError":
        self.details[key] = value
        return self

    def format_for_llm(self) -> str:
        """Render the error the way the model sees it."""
        parts = [f"ERROR: {self.message}"]
        if self.suggestion:
            parts.append(f"SUGGESTION: {self.suggestion}")
        if self.details:
            details = ", ".join(f"{key}: {value}" for key, value in self.details.items())
            parts.append(f"DETAILS: {details}")
        return "\n".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "suggestion": self.suggestion,
            "details": dict(self.details),
        }


def parameter_error(param_name: str, reason: str) -> StandardizedToolError:
    return StandardizedToolError(
        ErrorCode.INVALID_PARAMETERS,
        f"Invalid parameter '{param_name}': {reason}",
        f"Please check the '{param_name}' parameter and ensure it meets the requirements: {reason}",
    ).with_detail("parameter", param_name)


def missing_parameter_error(param_name: str) -> StandardizedToolError:
    return StandardizedToolError(
        ErrorCode.MISSING_PARAMETER,
        f"Required parameter '{param_name}' is missing",
        f"Please provide the required parameter '{param_name}' in your tool call",
    ).with_detail("parameter", param_name)


def file_not_found_error(file_path: str) -> StandardizedToolError:
    return StandardizedToolError(
        ErrorCode.FILE_NOT_FOUND,
        f"File not found: {file_path}",
        f"The file '{file_path}' does not exist. Use the 'list_directory' tool to verify "
        "the correct path, or check if the file needs to be created first",
    ).with_detail("file_path", file_path)


def directory_not_found_error(dir_path: str) -> StandardizedToolError:
    return StandardizedToolError(
        ErrorCode.DIRECTORY_NOT_FOUND,
        f"Directory not found: {dir_path}",
        f"The directory '{dir_path}' does not exist. Use the 'list_directory' tool to verify "
        "the correct path, or ensure parent directories are created first",
    ).with_detail("directory_path", dir_path)


def path_outside_workspace_error(path: str) -> StandardizedToolError:
    return StandardizedToolError(
        ErrorCode.PATH_OUTSIDE_WORKSPACE,
        f"Path is outside workspace: {path}",
        "Ensure all file paths are relative to the workspace root and do not use '..' "
        "or absolute paths that escape the workspace boundary",
    ).with_detail("invalid_path", path)


def invalid_line_range_error(start_line: int, end_line: int) -> StandardizedToolError:
    return (
        StandardizedToolError(
            ErrorCode.INVALID_LINE_RANGE,
            f"Invalid line range: start_line={start_line}, end_line={end_line}",
            "Ensure start_line is less than or equal to end_line, and both are positive "
            "integers within the file's line count",
        )
        .with_detail("start_line", start_line)
        .with_detail("end_line", end_line)
    )


def content_too_large_error(size: int, max_size: int) -> StandardizedToolError:
    return (
        StandardizedToolError(
            ErrorCode.CONTENT_TOO_LARGE,
            f"Content too large: {size} bytes (max: {max_size})",
            f"Reduce the content size to under {max_size} bytes, or consider breaking it "
            "into smaller chunks",
        )
        .with_detail("size", size)
        .with_detail("max_size", max_size)
    )


_SUGGESTIONS = {
    ErrorCode.INVALID_PARAMETERS: "Carefully review the tool's parameter schema and ensure all parameters match the expected types and formats",
    ErrorCode.MISSING_PARAMETER: "Check the tool's required parameters and provide all mandatory fields",
    ErrorCode.FILE_NOT_FOUND: "Use 'list_directory' to verify file existence and correct paths",
    ErrorCode.DIRECTORY_NOT_FOUND: "Use 'list_directory' to verify directory structure and ensure parent directories exist",
    ErrorCode.PATH_OUTSIDE_WORKSPACE: "Use relative paths within the workspace and avoid '..' or absolute paths",
    ErrorCode.INVALID_LINE_RANGE: "Ensure start_line <= end_line and both are within the file's line count",
    ErrorCode.CONTENT_TOO_LARGE: "Break large content into smaller chunks or use streaming operations",
    ErrorCode.GIT_NOT_REPOSITORY: "Ensure you're working within a git repository or initialize one if needed",
    ErrorCode.TEST_FAILURE: "Review test failures and fix underlying issues before proceeding",
    ErrorCode.COMMAND_FAILED: "Check command syntax, arguments, and ensure required dependencies are available",
    ErrorCode.TIMEOUT: "Reduce operation scope or increase timeout limits for complex operations",
}


def get_error_code_suggestions() -> Dict[ErrorCode, str]:
    """General suggestions for each error code that has one."""
    return dict(_SUGGESTIONS)
