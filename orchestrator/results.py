"""Run results and the in-memory audit records produced during a run."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from llm.message_types import Message
from session.types import utc_now


class RunErrorKind(str, Enum):
    """Why a run ended unsuccessfully."""

    REASONING_FAILURE = "reasoning_failure"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"
    MAX_ITERATIONS = "max_iterations"
    LOW_CONFIDENCE = "low_confidence"

    @property
    def resumable(self) -> bool:
        # The session is intact; continuing it may finish the work
        return self in (RunErrorKind.CANCELLED, RunErrorKind.TIMEOUT, RunErrorKind.MAX_ITERATIONS)


@dataclass
class ToolCallAttempt:
    """One attempt at executing a tool call. Kept for the current run only."""

    tool_name: str
    attempt_number: int
    serialized_parameters: str
    error_code: str = ""
    error_message: str = ""
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def failed(self) -> bool:
        return bool(self.error_message)


@dataclass
class RunResult:
    final_response: str
    messages: List[Message]
    tool_calls: int
    iterations: int
    success: bool
    error: str = ""
    error_kind: Optional[RunErrorKind] = None
    tool_retries: int = 0
    error_details: List[str] = field(default_factory=list)
    session_id: Optional[str] = None


@dataclass
class DeliberationStep:
    """One unit of internal reasoning. Internal steps never enter the transcript."""

    id: str
    phase: str  # "thought", "action", "reflect", "confidence"
    content: str
    confidence: float = 0.0
    reasoning_path: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utc_now)
    internal: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DeliberationResult:
    run: RunResult
    deliberation_steps: List[DeliberationStep] = field(default_factory=list)
    thought_count: int = 0
    average_confidence: float = 0.0
    reflection_notes: List[str] = field(default_factory=list)

    # Convenience passthroughs so callers can treat both result kinds alike
    @property
    def success(self) -> bool:
        return self.run.success

    @property
    def final_response(self) -> str:
        return self.run.final_response

    @property
    def error(self) -> str:
        return self.run.error
