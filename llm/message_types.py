"""Message and action types shared by the reasoning client and the orchestrator."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ToolCallRequest:
    """A tool invocation requested by the model.

    ``arguments`` is kept as the raw JSON string the model produced so that
    malformed arguments can be reported instead of silently dropped.
    """

    name: str
    arguments: str
    id: str = ""


@dataclass
class Message:
    """One turn in the conversation.

    Assistant turns carry either ``content`` or ``tool_call``. Tool turns always
    carry ``tool_call_id`` and ``tool_name``.
    """

    role: str  # "system", "user", "assistant", "tool"
    content: str = ""
    tool_call: Optional[ToolCallRequest] = None
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None


@dataclass
class Action:
    """The next step chosen by the model: free text or a tool call."""

    is_text: bool
    text: str = ""
    tool_call: Optional[ToolCallRequest] = None

    @classmethod
    def text_action(cls, text: str) -> "Action":
        return cls(is_text=True, text=text)

    @classmethod
    def tool_action(cls, name: str, arguments: str, call_id: str = "") -> "Action":
        return cls(is_text=False, tool_call=ToolCallRequest(name=name, arguments=arguments, id=call_id))


@dataclass
class ThoughtResponse:
    """Structured internal reasoning returned by a thought request."""

    thought_content: str
    confidence: float = 0.5
    reasoning_steps: List[str] = field(default_factory=list)
    suggested_action: str = ""
    uncertainty: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ConfidenceAssessment:
    """Assessment of an action that was just taken."""

    score: float = 0.5
    factors: Dict[str, float] = field(default_factory=dict)
    uncertainties: List[str] = field(default_factory=list)
    recommendation: str = "proceed"  # "proceed", "retry", "abort"
    metadata: Dict[str, Any] = field(default_factory=dict)
