"""Tests for the LiteLLM reasoning client."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from llm.base import ReasoningError
from llm.litellm_adapter import LiteLLMReasoningClient
from llm.message_types import Message, ToolCallRequest
from llm.retry import RetryConfig


def make_response(content=None, tool_calls=None, usage=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


def make_tool_call(name, arguments, call_id="call_1"):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


def fast_client(**kwargs) -> LiteLLMReasoningClient:
    retry = RetryConfig(max_retries=2, initial_delay=0.0, jitter=False)
    return LiteLLMReasoningClient(model="openai/gpt-4o", retry_config=retry, **kwargs)


class TestMessageConversion:
    """Test message conversion in LiteLLM adapter."""

    def setup_method(self):
        """Set up test fixtures."""
        self.client = fast_client()

    def test_convert_simple_string_content(self):
        """Test conversion of simple string content."""
        messages = [
            Message(role="user", content="Hello"),
            Message(role="assistant", content="Hi there!"),
        ]
        result = self.client._convert_messages(messages, "")

        assert result == [
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "Hi there!"},
        ]

    def test_system_prompt_added_when_missing(self):
        """The system prompt is prepended only if the conversation has none."""
        result = self.client._convert_messages([Message(role="user", content="Hi")], "Be brief")
        assert result[0] == {"role": "system", "content": "Be brief"}

        result = self.client._convert_messages(
            [Message(role="system", content="Seeded"), Message(role="user", content="Hi")],
            "Be brief",
        )
        assert [m["content"] for m in result] == ["Seeded", "Hi"]

    def test_tool_call_and_result_pairing(self):
        """Assistant tool calls and tool results keep their shared id."""
        messages = [
            Message(
                role="assistant",
                content="",
                tool_call=ToolCallRequest(name="read_file", arguments='{"path": "a"}', id="c1"),
            ),
            Message(role="tool", content="data", tool_call_id="c1", tool_name="read_file"),
        ]

        result = self.client._convert_messages(messages, "")

        assert result[0]["content"] is None
        assert result[0]["tool_calls"] == [
            {
                "id": "c1",
                "type": "function",
                "function": {"name": "read_file", "arguments": '{"path": "a"}'},
            }
        ]
        assert result[1] == {"role": "tool", "content": "data", "tool_call_id": "c1"}


class TestToolConversion:
    """Test tool conversion in LiteLLM adapter."""

    def test_convert_tools_to_openai_format(self):
        """Test conversion of tool schemas to OpenAI format."""
        tools = [
            {
                "name": "read_file",
                "description": "Read a file",
                "input_schema": {
                    "type": "object",
                    "properties": {"path": {"type": "string"}},
                    "required": ["path"],
                },
            }
        ]

        result = fast_client()._convert_tools(tools)

        assert result == [
            {
                "type": "function",
                "function": {
                    "name": "read_file",
                    "description": "Read a file",
                    "parameters": tools[0]["input_schema"],
                },
            }
        ]


class TestResponseConversion:
    """Test converting LiteLLM responses to actions."""

    def setup_method(self):
        self.client = fast_client()

    def test_text_response(self):
        action = self.client._convert_response(make_response(content="All done"))
        assert action.is_text
        assert action.text == "All done"

    def test_tool_call_response(self):
        response = make_response(tool_calls=[make_tool_call("read_file", '{"path": "a"}')])

        action = self.client._convert_response(response)

        assert action.tool_call.name == "read_file"
        assert action.tool_call.arguments == '{"path": "a"}'
        assert action.tool_call.id == "call_1"

    def test_first_of_several_tool_calls(self):
        response = make_response(
            tool_calls=[make_tool_call("a", "{}", "c1"), make_tool_call("b", "{}", "c2")]
        )
        assert self.client._convert_response(response).tool_call.name == "a"

    def test_dict_arguments_and_missing_id(self):
        response = make_response(tool_calls=[make_tool_call("a", {"x": 1}, call_id=None)])

        action = self.client._convert_response(response)

        assert json.loads(action.tool_call.arguments) == {"x": 1}
        assert action.tool_call.id.startswith("call_")

    def test_empty_content(self):
        assert self.client._convert_response(make_response(content=None)).text == ""


class TestCompletionCalls:
    """Calls through litellm.acompletion."""

    @pytest.mark.asyncio
    async def test_generate_action_passes_tools_and_credentials(self):
        client = fast_client(api_key="sk-test", api_base="http://localhost:4000", timeout=30)
        mock = AsyncMock(return_value=make_response(content="hello"))
        tool_defs = [{"name": "t", "description": "d", "input_schema": {"type": "object"}}]

        with patch("llm.litellm_adapter.litellm.acompletion", mock):
            action = await client.generate_action(
                "", [Message(role="user", content="hi")], "sys", tool_defs
            )

        assert action.text == "hello"
        kwargs = mock.call_args.kwargs
        assert kwargs["model"] == "openai/gpt-4o"
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["api_base"] == "http://localhost:4000"
        assert kwargs["timeout"] == 30
        assert kwargs["tools"][0]["function"]["name"] == "t"
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}

    @pytest.mark.asyncio
    async def test_no_tools_key_without_tools(self):
        mock = AsyncMock(return_value=make_response(content="hello"))
        with patch("llm.litellm_adapter.litellm.acompletion", mock):
            await fast_client().generate_action("openai/gpt-4o-mini", [], "sys", [])

        assert "tools" not in mock.call_args.kwargs
        assert mock.call_args.kwargs["model"] == "openai/gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self):
        mock = AsyncMock(
            side_effect=[Exception("503 Service Unavailable"), make_response(content="ok")]
        )
        with patch("llm.litellm_adapter.litellm.acompletion", mock):
            action = await fast_client().generate_action("", [], "sys", [])

        assert action.text == "ok"
        assert mock.await_count == 2

    @pytest.mark.asyncio
    async def test_failure_becomes_reasoning_error(self):
        mock = AsyncMock(side_effect=Exception("invalid api key"))
        with patch("llm.litellm_adapter.litellm.acompletion", mock):
            with pytest.raises(ReasoningError, match="invalid api key"):
                await fast_client().generate_action("", [], "sys", [])

        assert mock.await_count == 1

    @pytest.mark.asyncio
    async def test_no_choices(self):
        mock = AsyncMock(return_value=SimpleNamespace(choices=[], usage=None))
        with patch("llm.litellm_adapter.litellm.acompletion", mock):
            with pytest.raises(ReasoningError, match="no choices"):
                await fast_client().generate_action("", [], "sys", [])

    @pytest.mark.asyncio
    async def test_generate_thought(self):
        content = (
            "THOUGHT PROCESS:\n"
            "1. Key factors to consider: the file layout\n"
            "4. Confidence level (0.0-1.0): 0.85\n"
            "5. Suggested action: read the file\n"
        )
        mock = AsyncMock(return_value=make_response(content=content))
        with patch("llm.litellm_adapter.litellm.acompletion", mock):
            thought = await fast_client().generate_thought("", "what next", "ctx")

        assert thought.confidence == 0.85
        assert thought.suggested_action == "5. Suggested action: read the file"
        assert "CONTEXT: ctx" in mock.call_args.kwargs["messages"][1]["content"]
        assert mock.call_args.kwargs["temperature"] == 0.3

    @pytest.mark.asyncio
    async def test_assess_confidence(self):
        content = (
            "CONFIDENCE ASSESSMENT:\n"
            "1. Overall confidence score (0.0-1.0): 0.4\n"
            "5. Recommendation (proceed/retry/abort): abort\n"
        )
        mock = AsyncMock(return_value=make_response(content=content))
        with patch("llm.litellm_adapter.litellm.acompletion", mock):
            assessment = await fast_client().assess_confidence("", "thought", "Tool execution: x")

        assert assessment.score == 0.4
        assert assessment.recommendation == "abort"
        assert "PROPOSED ACTION: Tool execution: x" in mock.call_args.kwargs["messages"][1]["content"]

    def test_supports_deliberation(self):
        assert fast_client().supports_deliberation()
        assert fast_client().provider == "openai"
