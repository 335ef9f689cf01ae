"""Reasoning client interface consumed by the orchestrator."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from .message_types import Action, ConfidenceAssessment, Message, ThoughtResponse


class ReasoningError(Exception):
    """Raised when the reasoning service cannot produce a response."""


class ReasoningClient(ABC):
    """Abstract base class for reasoning services.

    Only ``generate_action`` is required. Clients that can produce structured
    thoughts and confidence assessments override the deliberation methods and
    return True from ``supports_deliberation``.
    """

    @abstractmethod
    async def generate_action(
        self,
        model: str,
        messages: List[Message],
        system_prompt: str,
        tool_defs: List[Dict[str, Any]],
    ) -> Action:
        """Choose the next action given the conversation so far.

        Args:
            model: Model identifier
            messages: Full conversation, including the system message
            system_prompt: System prompt for the run
            tool_defs: Tool schemas visible to the model

        Returns:
            Text action or tool-call action
        """
        raise NotImplementedError

    async def generate_thought(self, model: str, prompt: str, context: str) -> ThoughtResponse:
        """Produce an internal reasoning trace before acting."""
        raise NotImplementedError(f"{type(self).__name__} does not support deliberation")

    async def assess_confidence(
        self, model: str, thought: str, proposed_action: str
    ) -> ConfidenceAssessment:
        """Assess confidence in an action that was just taken."""
        raise NotImplementedError(f"{type(self).__name__} does not support deliberation")

    def supports_deliberation(self) -> bool:
        return False
