"""LiteLLM-backed reasoning client for 100+ providers."""

import json
import logging
import uuid
from typing import Any, Dict, List, Optional

import litellm

from utils import get_logger

from .base import ReasoningClient, ReasoningError
from .deliberation import (
    CONFIDENCE_PROMPT,
    CONFIDENCE_SYSTEM_PROMPT,
    THOUGHT_PROMPT,
    THOUGHT_SYSTEM_PROMPT,
    parse_confidence,
    parse_thought,
)
from .message_types import Action, ConfidenceAssessment, Message, ThoughtResponse
from .retry import RetryConfig, with_retry

logger = get_logger(__name__)

# Suppress LiteLLM's verbose logging to console
litellm_logger = logging.getLogger("LiteLLM")
litellm_logger.setLevel(logging.WARNING)
litellm_logger.propagate = False


class LiteLLMReasoningClient(ReasoningClient):
    """Reasoning client that talks to any LiteLLM-supported provider."""

    def __init__(self, model: str, retry_config: Optional[RetryConfig] = None, **kwargs):
        """Initialize the client.

        Args:
            model: Default LiteLLM model identifier (e.g., "anthropic/claude-3-5-sonnet-20241022")
            retry_config: Backoff policy for transient API failures
            **kwargs: Additional configuration:
                - api_key: API key (optional, uses env vars by default)
                - api_base: Custom base URL
                - drop_params: Drop unsupported params (default: True)
                - timeout: Request timeout in seconds
                - max_tokens: Completion budget for actions (default: 4096)
        """
        self.model = model
        self.provider = model.split("/")[0] if "/" in model else "unknown"
        self.retry_config = retry_config or RetryConfig()

        self.api_key = kwargs.pop("api_key", None)
        self.api_base = kwargs.pop("api_base", None)
        self.drop_params = kwargs.pop("drop_params", True)
        self.timeout = kwargs.pop("timeout", 600)
        self.max_tokens = kwargs.pop("max_tokens", 4096)

        litellm.drop_params = self.drop_params
        litellm.suppress_debug_info = True

        # Also suppress httpx and openai loggers that LiteLLM uses
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("openai").setLevel(logging.WARNING)

        logger.info(f"Initialized LiteLLM client for provider: {self.provider}, model: {model}")

    @with_retry()
    async def _make_api_call_async(self, **call_params):
        """Internal async API call with retry logic."""
        return await litellm.acompletion(**call_params)

    async def _complete(self, model: str, messages: List[Dict[str, Any]], **kwargs):
        call_params: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "timeout": self.timeout,
        }
        if self.api_key:
            call_params["api_key"] = self.api_key
        if self.api_base:
            call_params["api_base"] = self.api_base
        call_params.update(kwargs)

        logger.debug(
            f"Calling LiteLLM with model: {call_params['model']}, messages: {len(messages)}"
        )
        try:
            response = await self._make_api_call_async(**call_params)
        except Exception as e:
            raise ReasoningError(f"{self.provider} completion failed: {e}") from e

        if not getattr(response, "choices", None):
            raise ReasoningError(f"{self.provider} completion returned no choices")

        if hasattr(response, "usage") and response.usage:
            usage = response.usage
            logger.debug(
                f"Token Usage: Input={usage.get('prompt_tokens', 0)}, "
                f"Output={usage.get('completion_tokens', 0)}"
            )
        return response

    async def generate_action(
        self,
        model: str,
        messages: List[Message],
        system_prompt: str,
        tool_defs: List[Dict[str, Any]],
    ) -> Action:
        kwargs: Dict[str, Any] = {"max_tokens": self.max_tokens}
        if tool_defs:
            kwargs["tools"] = self._convert_tools(tool_defs)

        response = await self._complete(
            model, self._convert_messages(messages, system_prompt), **kwargs
        )
        return self._convert_response(response)

    async def generate_thought(self, model: str, prompt: str, context: str) -> ThoughtResponse:
        messages = [
            {"role": "system", "content": THOUGHT_SYSTEM_PROMPT},
            {"role": "user", "content": THOUGHT_PROMPT.format(context=context, prompt=prompt)},
        ]
        response = await self._complete(model, messages, temperature=0.3, max_tokens=1000)
        thought = parse_thought(response.choices[0].message.content or "")
        logger.debug(
            f"Generated thought: confidence={thought.confidence}, "
            f"steps={len(thought.reasoning_steps)}"
        )
        return thought

    async def assess_confidence(
        self, model: str, thought: str, proposed_action: str
    ) -> ConfidenceAssessment:
        messages = [
            {"role": "system", "content": CONFIDENCE_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": CONFIDENCE_PROMPT.format(thought=thought, proposed_action=proposed_action),
            },
        ]
        response = await self._complete(model, messages, temperature=0.2, max_tokens=800)
        assessment = parse_confidence(response.choices[0].message.content or "")
        logger.debug(
            f"Confidence assessment: score={assessment.score}, "
            f"recommendation={assessment.recommendation}"
        )
        return assessment

    def supports_deliberation(self) -> bool:
        return True

    def _convert_messages(self, messages: List[Message], system_prompt: str) -> List[Dict]:
        """Convert Message objects to LiteLLM format (OpenAI-compatible)."""
        litellm_messages: List[Dict[str, Any]] = []

        if system_prompt and not any(msg.role == "system" for msg in messages):
            litellm_messages.append({"role": "system", "content": system_prompt})

        for msg in messages:
            if msg.role == "tool":
                litellm_messages.append(
                    {
                        "role": "tool",
                        "content": msg.content or "",
                        "tool_call_id": msg.tool_call_id or "",
                    }
                )
            elif msg.role == "assistant" and msg.tool_call is not None:
                litellm_messages.append(
                    {
                        "role": "assistant",
                        "content": msg.content or None,
                        "tool_calls": [
                            {
                                "id": msg.tool_call.id,
                                "type": "function",
                                "function": {
                                    "name": msg.tool_call.name,
                                    "arguments": msg.tool_call.arguments,
                                },
                            }
                        ],
                    }
                )
            else:
                litellm_messages.append({"role": msg.role, "content": msg.content})

        return litellm_messages

    def _convert_tools(self, tool_defs: List[Dict[str, Any]]) -> List[Dict]:
        """Convert tool schemas to OpenAI function format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool["name"],
                    "description": tool["description"],
                    "parameters": tool["input_schema"],
                },
            }
            for tool in tool_defs
        ]

    def _convert_response(self, response) -> Action:
        """Convert a LiteLLM response into an Action.

        Only the first tool call is used; the loop executes one call per iteration.
        """
        message = response.choices[0].message

        tool_calls = getattr(message, "tool_calls", None)
        if tool_calls:
            if len(tool_calls) > 1:
                logger.debug(f"Model returned {len(tool_calls)} tool calls, using the first")
            tc = tool_calls[0]
            arguments = tc.function.arguments
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            call_id = tc.id or f"call_{uuid.uuid4().hex[:12]}"
            return Action.tool_action(tc.function.name, arguments, call_id)

        content = getattr(message, "content", None) or ""
        if not isinstance(content, str):
            content = str(content)
        return Action.text_action(content)
