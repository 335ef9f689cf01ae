"""Reasoning client layer."""

from .base import ReasoningClient, ReasoningError
from .litellm_adapter import LiteLLMReasoningClient
from .message_types import (
    Action,
    ConfidenceAssessment,
    Message,
    ThoughtResponse,
    ToolCallRequest,
)
from .retry import RetryConfig, with_retry

__all__ = [
    "Action",
    "ConfidenceAssessment",
    "LiteLLMReasoningClient",
    "Message",
    "ReasoningClient",
    "ReasoningError",
    "RetryConfig",
    "ThoughtResponse",
    "ToolCallRequest",
    "with_retry",
]
