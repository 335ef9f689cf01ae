"""Shell command execution tool."""

import asyncio
from typing import Any, Dict

from .base import BaseTool, ToolOutcome
from .errors import ErrorCode, parameter_error
from .validator import ToolValidator

# Exit status the shell uses for an unknown command
_COMMAND_NOT_FOUND_STATUS = 127
_MAX_OUTPUT_CHARS = 20000


class ShellCommandTool(BaseTool):
    """Run a shell command in the workspace root and capture its output."""

    DEFAULT_TIMEOUT = 30.0
    MAX_TIMEOUT = 600.0

    def __init__(self, validator: ToolValidator):
        self.validator = validator

    @property
    def name(self) -> str:
        return "run_shell_command"

    @property
    def description(self) -> str:
        return (
            "Execute a shell command in the workspace root. Returns exit code, "
            "stdout and stderr. A non-zero exit code is reported as a failure."
        )

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "command": {
                "type": "string",
                "description": "Shell command to execute",
            },
            "timeout": {
                "type": "number",
                "description": "Timeout in seconds. Default is 30 seconds.",
                "default": self.DEFAULT_TIMEOUT,
            },
        }

    async def execute(self, command: str = "", timeout: float = DEFAULT_TIMEOUT) -> ToolOutcome:
        """Execute the command and return its captured output.

        Args:
            command: Shell command to execute
            timeout: Seconds to wait before killing the process

        Returns:
            Outcome with exit_code, stdout and stderr
        """
        error = self.validator.check_required({"command": command}, ["command"])
        if error:
            return ToolOutcome.failed(error)
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            return ToolOutcome.failed(parameter_error("timeout", "must be a positive number"))
        timeout = min(float(timeout), self.MAX_TIMEOUT)

        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self.validator.workspace_root,
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except TimeoutError:
            process.kill()
            await process.communicate()
            return ToolOutcome.failure(
                ErrorCode.COMMAND_TIMEOUT,
                f"Command timed out after {timeout:g} seconds",
                command=command,
                timeout=timeout,
            )
        except asyncio.CancelledError:
            # Reap the killed process even while this task is being cancelled
            if process.returncode is None:
                process.kill()
            await asyncio.shield(process.wait())
            raise

        data = {
            "exit_code": process.returncode,
            "stdout": _truncate(stdout.decode("utf-8", errors="replace")),
            "stderr": _truncate(stderr.decode("utf-8", errors="replace")),
        }

        if process.returncode == _COMMAND_NOT_FOUND_STATUS:
            outcome = ToolOutcome.failure(
                ErrorCode.COMMAND_NOT_FOUND,
                f"Command not found: {command.split()[0]}",
                command=command,
            )
            outcome.data = data
            return outcome
        if process.returncode != 0:
            outcome = ToolOutcome.failure(
                ErrorCode.COMMAND_FAILED,
                f"Command exited with status {process.returncode}",
                command=command,
                stderr=data["stderr"][-500:],
            )
            outcome.data = data
            return outcome

        return ToolOutcome.ok(data)


def _truncate(text: str) -> str:
    if len(text) <= _MAX_OUTPUT_CHARS:
        return text
    return text[:_MAX_OUTPUT_CHARS] + f"\n... ({len(text) - _MAX_OUTPUT_CHARS} more chars)"
