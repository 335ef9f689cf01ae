"""Tool registry: name lookup, schema filtering and invocation."""

import json
from typing import Any, Dict, List, Optional, Sequence

from utils import get_logger

from .base import BaseTool, ToolOutcome
from .errors import ErrorCode, ToolInvocationError, parameter_error

logger = get_logger(__name__)


class ToolRegistry:
    """Maps tool names to tool instances."""

    def __init__(self, tools: Optional[Sequence[BaseTool]] = None):
        self._tools: Dict[str, BaseTool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: BaseTool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> Optional[BaseTool]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def get_schemas(self, allowed: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        """Get tool schemas, restricted to ``allowed`` when it is non-empty.

        Args:
            allowed: Tool names visible to the model (empty or None means all)

        Returns:
            List of tool schemas
        """
        allowed_set = set(allowed or ())
        return [
            tool.to_schema()
            for name, tool in self._tools.items()
            if not allowed_set or name in allowed_set
        ]

    async def execute(self, name: str, arguments: str) -> ToolOutcome:
        """Execute a tool from its raw JSON arguments.

        Args:
            name: Tool name
            arguments: JSON object string produced by the model

        Returns:
            The tool outcome

        Raises:
            ToolInvocationError: If the tool is unknown or the arguments cannot be decoded
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolInvocationError(f"tool '{name}' not found")

        try:
            kwargs = json.loads(arguments) if arguments and arguments.strip() else {}
        except json.JSONDecodeError as e:
            raise ToolInvocationError(f"invalid arguments for tool '{name}': {e}") from e
        if not isinstance(kwargs, dict):
            raise ToolInvocationError(f"arguments for tool '{name}' must be a JSON object")

        unknown = sorted(set(kwargs) - set(tool.parameters))
        if unknown:
            return ToolOutcome.failed(parameter_error(unknown[0], "not a parameter of this tool"))

        try:
            return await tool.execute(**kwargs)
        except Exception as e:
            logger.exception(f"Tool {name} raised")
            return ToolOutcome.failure(ErrorCode.INTERNAL_ERROR, f"{name} failed: {e}")
