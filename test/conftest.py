"""Shared fixtures: scripted reasoning clients and fake tools."""

import asyncio
import json
import os
from typing import Any, Dict, List, Optional

import pytest

# Use litellm's bundled model cost map; the remote fetch fails offline and its
# warning deadlocks litellm's import under pytest.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

from llm.base import ReasoningClient, ReasoningError
from llm.message_types import Action, ConfidenceAssessment, Message, ThoughtResponse
from session import SessionManager
from tools.base import BaseTool, ToolOutcome
from tools.errors import ErrorCode
from tools.registry import ToolRegistry

FINAL = "Task completed successfully."
SYSTEM_PROMPT = "You are a test agent."
MODEL = "test/model"


def text(content: str) -> Action:
    return Action.text_action(content)


def call(name: str, arguments: Optional[Dict[str, Any]] = None, call_id: str = "") -> Action:
    return Action.tool_action(name, json.dumps(arguments or {}), call_id)


class ScriptedClient(ReasoningClient):
    """Reasoning client that replays scripted actions, thoughts and assessments.

    Scripted entries that are exceptions are raised instead of returned.
    """

    def __init__(
        self,
        actions: List[Any],
        thoughts: Optional[List[Any]] = None,
        assessments: Optional[List[Any]] = None,
        deliberation: bool = False,
        thought_delay: float = 0.0,
    ):
        self.actions = list(actions)
        self.thoughts = list(thoughts or [])
        self.assessments = list(assessments or [])
        self.deliberation = deliberation
        self.thought_delay = thought_delay
        self.calls: List[Dict[str, Any]] = []
        self.thought_calls: List[Dict[str, str]] = []
        self.assessment_calls: List[Dict[str, str]] = []

    async def generate_action(
        self,
        model: str,
        messages: List[Message],
        system_prompt: str,
        tool_defs: List[Dict[str, Any]],
    ) -> Action:
        self.calls.append(
            {"model": model, "messages": list(messages), "tool_defs": list(tool_defs)}
        )
        if not self.actions:
            raise ReasoningError("script exhausted")
        action = self.actions.pop(0)
        if isinstance(action, Exception):
            raise action
        return action

    async def generate_thought(self, model: str, prompt: str, context: str) -> ThoughtResponse:
        self.thought_calls.append({"prompt": prompt, "context": context})
        if self.thought_delay:
            await asyncio.sleep(self.thought_delay)
        if not self.thoughts:
            raise ReasoningError("no thought scripted")
        thought = self.thoughts.pop(0)
        if isinstance(thought, Exception):
            raise thought
        return thought

    async def assess_confidence(
        self, model: str, thought: str, proposed_action: str
    ) -> ConfidenceAssessment:
        self.assessment_calls.append({"thought": thought, "proposed_action": proposed_action})
        if not self.assessments:
            raise ReasoningError("no assessment scripted")
        assessment = self.assessments.pop(0)
        if isinstance(assessment, Exception):
            raise assessment
        return assessment

    def supports_deliberation(self) -> bool:
        return self.deliberation


class FlakyTool(BaseTool):
    """Fails with each scripted error code in turn, then succeeds."""

    def __init__(self, name: str = "flaky", failures: Optional[List[ErrorCode]] = None):
        self._name = name
        self.failures = list(failures or [])
        self.calls: List[str] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"Test tool {self._name}"

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "value": {"type": "string", "description": "Any value", "default": ""},
        }

    async def execute(self, value: str = "") -> ToolOutcome:
        self.calls.append(value)
        if self.failures:
            code = self.failures.pop(0)
            return ToolOutcome.failure(code, f"{self._name} failed with {code.value}")
        return ToolOutcome.ok({"value": value, "call": len(self.calls)})


class SlowTool(BaseTool):
    """Sleeps longer than any test deadline."""

    def __init__(self, delay: float = 5.0):
        self.delay = delay
        self.cancelled = False

    @property
    def name(self) -> str:
        return "slow"

    @property
    def description(self) -> str:
        return "Sleeps"

    @property
    def parameters(self) -> Dict[str, Any]:
        return {}

    async def execute(self) -> ToolOutcome:
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return ToolOutcome.ok("woke up")


@pytest.fixture
def flaky_tool():
    return FlakyTool()


@pytest.fixture
def registry(flaky_tool):
    return ToolRegistry([flaky_tool, FlakyTool("other")])


@pytest.fixture
def session_manager(tmp_path):
    return SessionManager(str(tmp_path), sessions_dir=str(tmp_path / "sessions"))
