"""Command-level entry points: plan, generate, review and chat.

Each command pairs a system prompt with a preset run policy, picks the base
or the deliberating runner, and adapts the run result to the command's
response shape.
"""

import asyncio
import dataclasses
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from config import Config
from llm.base import ReasoningClient
from llm.message_types import Message
from session import RunConfig, SessionManager
from tools.registry import ToolRegistry
from utils import get_logger

from .deliberation import DeliberationConfig, DeliberationRunner
from .results import DeliberationResult
from .run_config import get_preset
from .runner import AgentRunner

logger = get_logger(__name__)

PLAN_SYSTEM_PROMPT = """\
You are an expert software architect and project planner.

Your task is to analyze the user's goal and the codebase to create a detailed development plan.

You have access to tools to read files and explore the codebase structure. Use these tools to gather any additional context you need.

Your final response must be a valid JSON plan following this structure:
{
  "overall_goal": "string",
  "tasks": [
    {
      "id": "string",
      "description": "string",
      "files_to_modify": ["string"],
      "files_to_create": ["string"],
      "files_to_delete": ["string"],
      "estimated_effort": "small|medium|large",
      "dependencies": ["string"],
      "rationale": "string"
    }
  ],
  "summary": "string",
  "estimated_total_effort": "string",
  "risks_and_considerations": ["string"]
}

Use tools to explore the codebase as needed, then provide the final plan in JSON format."""

GENERATE_SYSTEM_PROMPT = """\
You are an expert software engineer specializing in code generation.

Your task is to implement the given task by making precise code changes. You have access to tools to:
- Read existing files
- Write new files or replace existing ones
- List directory contents
- Run shell commands when necessary

For each change you make:
1. First read the existing file (if modifying)
2. Write the complete new content with write_file (set overwrite to true for existing files)
3. Keep changes precise and consistent with the surrounding code

Work systematically through the task requirements. When you have completed all necessary changes, provide a summary of what was implemented."""

REVIEW_SYSTEM_PROMPT = """\
You are an expert software engineer specializing in code review and debugging.

Your task is to analyze test failures and linting issues, then fix them by making precise code changes.

You have access to tools to:
- Read files to understand the current code
- Rewrite files to fix issues
- Run tests and linters through the shell to verify fixes

For each issue:
1. Analyze the error message to understand the problem
2. Read the relevant files to see the current code
3. Make targeted fixes with write_file
4. Verify the fix by running the tests or linter again

Work systematically through all issues. Focus on minimal, precise changes that address the root cause."""

CHAT_SYSTEM_PROMPT = """\
You are a helpful software engineering assistant working inside the user's workspace.

Use the available tools to inspect files, make changes and run commands when that helps answer the request. When you are done, reply with a clear final answer."""

SYSTEM_PROMPTS: Dict[str, str] = {
    "plan": PLAN_SYSTEM_PROMPT,
    "generate": GENERATE_SYSTEM_PROMPT,
    "review": REVIEW_SYSTEM_PROMPT,
    "chat": CHAT_SYSTEM_PROMPT,
}

_JSON_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


@dataclass
class PlanResponse:
    result: DeliberationResult
    plan: Optional[Dict[str, Any]] = None
    parse_error: str = ""


@dataclass
class GenerateResponse:
    result: DeliberationResult
    changes: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class ReviewResponse:
    result: DeliberationResult
    fixes_applied: List[str] = field(default_factory=list)


class CommandIntegrator:
    """Wires commands to runners."""

    def __init__(
        self,
        client: ReasoningClient,
        tools: ToolRegistry,
        workspace_root: str,
        session_manager: Optional[SessionManager] = None,
        deliberation: Optional[DeliberationConfig] = None,
        tool_timeout: Optional[float] = None,
    ):
        self.client = client
        self.tools = tools
        self.workspace_root = workspace_root
        self.session_manager = session_manager
        self.deliberation = deliberation or DeliberationConfig.from_config()
        self.tool_timeout = tool_timeout

    async def run_command(
        self,
        command: str,
        prompt: str,
        model: Optional[str] = None,
        config: Optional[RunConfig] = None,
        resume_session_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DeliberationResult:
        """Run one command.

        Args:
            command: One of plan, generate, review, chat
            prompt: Initial user prompt (may be empty when resuming)
            model: Model identifier (default: Config.LITELLM_MODEL)
            config: Run policy (default: the command's preset)
            resume_session_id: Continue this session instead of starting a new one
            cancel_event: Set to stop the run after the current iteration

        Returns:
            The run result; deliberation fields are empty when deliberation is off
        """
        system_prompt = SYSTEM_PROMPTS.get(command)
        if system_prompt is None:
            raise ValueError(f"Unknown command '{command}'. Available: {', '.join(SYSTEM_PROMPTS)}")

        runner = AgentRunner(
            self.client,
            self.tools,
            system_prompt,
            model or Config.LITELLM_MODEL,
            config=config or get_preset(command),
            session_manager=self.session_manager,
            tool_timeout=self.tool_timeout,
        )
        # A resumed session brings its own run policy
        if resume_session_id:
            await runner.resume(resume_session_id)

        if self.deliberation.enabled:
            logger.info(f"Running {command} with deliberation")
            return await DeliberationRunner(runner, self.deliberation).run_with_deliberation(
                prompt, command, cancel_event
            )

        logger.info(f"Running {command}")
        return DeliberationResult(run=await runner.run(prompt, command, cancel_event))

    async def execute_plan(
        self,
        goal: str,
        model: Optional[str] = None,
        codebase_context: str = "",
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PlanResponse:
        prompt = (
            f"User Goal: {goal}\n\n"
            "Please analyze this goal and create a development plan. Use the available tools "
            "to explore the codebase structure and gather any additional context you need "
            "before creating the plan."
        )
        if codebase_context:
            prompt += f"\n\nCodebase Context:\n{codebase_context}"

        result = await self.run_command("plan", prompt, model, cancel_event=cancel_event)
        response = PlanResponse(result=result)
        if result.final_response:
            try:
                response.plan = parse_plan(result.final_response)
            except ValueError as e:
                logger.warning(f"Failed to parse plan JSON: {e}")
                response.parse_error = str(e)
        return response

    async def execute_generate(
        self,
        task: str,
        model: Optional[str] = None,
        plan: Optional[Dict[str, Any]] = None,
        dry_run: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GenerateResponse:
        """Implement a task; with ``dry_run`` only read-only tools are offered."""
        parts = [f"Task to implement:\n{task}"]
        if plan is not None:
            parts.append(f"Overall Plan Context:\n{json.dumps(plan, indent=2)}")
        parts.append(
            "Please implement this task by making the necessary code changes. Use the available "
            "tools to read existing files, create new files, and apply modifications as needed."
        )

        config = get_preset("generate")
        if dry_run:
            parts.append(
                "NOTE: This is a dry run. Do not actually modify files, but describe what changes "
                "you would make."
            )
            # The preset always includes read_file, so this never widens to all tools
            config = dataclasses.replace(config, allowed_tools=self._readonly_tools(config))

        result = await self.run_command(
            "generate", "\n\n".join(parts), model, config=config, cancel_event=cancel_event
        )
        return GenerateResponse(result=result, changes=collect_file_changes(result.run.messages))

    def _readonly_tools(self, config: RunConfig) -> tuple:
        names = []
        for name in config.allowed_tools:
            tool = self.tools.get(name)
            if tool is not None and tool.readonly:
                names.append(name)
        return tuple(names)

    async def execute_review(
        self,
        target_dir: str,
        test_output: str = "",
        lint_output: str = "",
        model: Optional[str] = None,
        max_cycles: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ReviewResponse:
        """Fix reported test and lint failures; ``max_cycles`` caps iterations."""
        config = get_preset("review")
        if max_cycles is not None:
            config = dataclasses.replace(config, max_iterations=max_cycles)

        prompt = (
            "Please analyze and fix the following issues:\n\n"
            f"Test Output:\n{test_output or '(none)'}\n\n"
            f"Lint Output:\n{lint_output or '(none)'}\n\n"
            f"Target Directory: {target_dir}\n\n"
            "Please use the available tools to read the relevant files, understand the issues, "
            "and apply fixes. After making changes, run the tests and linter again to verify the fixes."
        )
        result = await self.run_command(
            "review", prompt, model, config=config, cancel_event=cancel_event
        )
        fixes = [f"Rewrote {change['path']}" for change in collect_file_changes(result.run.messages)]
        return ReviewResponse(result=result, fixes_applied=fixes)

    async def execute_chat(
        self,
        message: str,
        model: Optional[str] = None,
        resume_session_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DeliberationResult:
        return await self.run_command(
            "chat", message, model, resume_session_id=resume_session_id, cancel_event=cancel_event
        )


def parse_plan(text: str) -> Dict[str, Any]:
    """Parse a JSON plan, allowing it to be wrapped in a fenced code block.

    Raises:
        ValueError: If no JSON object can be read
    """
    # Models often wrap JSON in a ```json fence
    candidate = text.strip()
    match = _JSON_FENCE.search(candidate)
    if match:
        candidate = match.group(1).strip()
    try:
        plan = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ValueError(f"response is not valid JSON: {e}") from e
    if not isinstance(plan, dict):
        raise ValueError("plan must be a JSON object")
    return plan


def collect_file_changes(messages: List[Message]) -> List[Dict[str, Any]]:
    """Successful write_file results in transcript order."""
    changes = []
    for message in messages:
        if message.role != "tool" or message.tool_name != "write_file":
            continue
        try:
            data = json.loads(message.content)
        except json.JSONDecodeError:
            continue  # retry guidance or a final error
        if isinstance(data, dict) and "bytes_written" in data:
            changes.append(
                {
                    "tool": message.tool_name,
                    "path": data.get("path", ""),
                    "bytes_written": data["bytes_written"],
                    "created": data.get("created", False),
                }
            )
    return changes
