"""Base tool interface for all workspace tools."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import ErrorCode, StandardizedToolError, get_error_code_suggestions


@dataclass
class ToolOutcome:
    """Result of one tool execution.

    A failed outcome always has a non-empty ``error``. When a standardized
    error is attached it is authoritative and ``error`` is derived from it.
    """

    success: bool
    data: Any = None
    error: str = ""
    standardized_error: Optional[StandardizedToolError] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ToolOutcome":
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, error: StandardizedToolError) -> "ToolOutcome":
        outcome = cls(success=False)
        outcome.set_error(error)
        return outcome

    @classmethod
    def failure(cls, code: ErrorCode, message: str, **details: Any) -> "ToolOutcome":
        """Build a failed outcome, filling in the generic suggestion for ``code``."""
        suggestion = get_error_code_suggestions().get(code, "")
        return cls.failed(StandardizedToolError(code, message, suggestion, dict(details)))

    def set_error(self, error: StandardizedToolError) -> None:
        self.success = False
        self.standardized_error = error
        self.error = str(error)

    @property
    def error_code(self) -> str:
        return self.standardized_error.code.value if self.standardized_error else ""

    def format_error(self) -> str:
        """Error text for the model: the structured form when available."""
        if self.standardized_error:
            return self.standardized_error.format_for_llm()
        return f"ERROR: {self.error}"


class BaseTool(ABC):
    """Abstract base class for all tools."""

    # Limit for file content returned or written by a tool
    MAX_CONTENT_BYTES = 1024 * 1024
    # Tools that never modify the workspace; dry runs offer only these
    readonly: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool identifier."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description for the LLM."""
        pass

    @property
    @abstractmethod
    def parameters(self) -> Dict[str, Any]:
        """JSON Schema properties for tool parameters."""
        pass

    @abstractmethod
    async def execute(self, **kwargs) -> ToolOutcome:
        """Execute the tool and return its outcome."""
        raise NotImplementedError

    @property
    def required_parameters(self):
        # Parameters without a 'default' value are required
        return [key for key, value in self.parameters.items() if "default" not in value]

    def to_schema(self) -> Dict[str, Any]:
        """Convert to the tool schema handed to the reasoning client."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": {
                "type": "object",
                "properties": self.parameters,
                "required": self.required_parameters,
            },
        }
