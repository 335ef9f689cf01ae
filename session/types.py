"""Persisted session types."""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from llm.message_types import Message


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStatus(str, Enum):
    """Lifecycle state of a session."""

    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED)


@dataclass(frozen=True)
class RunConfig:
    """Per-run policy. Created once per run and never mutated.

    An empty ``allowed_tools`` means every registered tool is visible.
    """

    max_iterations: int = 10
    allowed_tools: Tuple[str, ...] = ()
    require_text_output: bool = True
    timeout_seconds: float = 300.0
    max_tool_retries: int = 2
    retry_with_modification: bool = True
    enable_error_analysis: bool = True
    abort_on_repeated_errors: bool = False

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if self.max_tool_retries < 0:
            raise ValueError("max_tool_retries must not be negative")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        # Accept any iterable of names but store an immutable tuple
        object.__setattr__(self, "allowed_tools", tuple(self.allowed_tools))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["allowed_tools"] = list(self.allowed_tools)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunConfig":
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


@dataclass
class ToolCallResult:
    success: bool
    data: Any = None
    error: str = ""


@dataclass
class ToolCallRecord:
    """Persisted record of one tool execution. Never mutated once appended."""

    id: str
    timestamp: datetime
    tool_name: str
    parameters: Dict[str, Any]
    result: ToolCallResult
    duration: float
    success: bool
    error: str = ""
    iteration: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SessionState:
    """The durable, resumable unit of one orchestration run."""

    session_id: str
    start_time: datetime
    system_prompt: str
    model: str
    config: RunConfig
    command: str = "chat"
    workspace_root: str = ""
    end_time: Optional[datetime] = None
    messages: List[Message] = field(default_factory=list)
    tool_calls: List[ToolCallRecord] = field(default_factory=list)
    current_state: SessionStatus = SessionStatus.RUNNING
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SessionInfo:
    """Summary of a session for listings."""

    session_id: str
    start_time: datetime
    end_time: Optional[datetime]
    model: str
    command: str
    current_state: SessionStatus
    tool_calls: int
    messages: int
