"""Tests for the command integrator."""

import json

import pytest

from conftest import FINAL, MODEL, ScriptedClient, call, text
from llm.message_types import Message, ThoughtResponse
from orchestrator import DeliberationConfig, RunErrorKind, get_preset
from orchestrator.integrator import (
    PLAN_SYSTEM_PROMPT,
    CommandIntegrator,
    collect_file_changes,
    parse_plan,
)
from session import RunConfig, SessionManager
from tools import create_workspace_tools

PLAN = {"overall_goal": "add a CLI", "tasks": [], "summary": "one step"}


@pytest.fixture
def workspace(tmp_path):
    root = tmp_path / "ws"
    root.mkdir()
    return root


def make_integrator(client, workspace, session_manager=None, deliberation=None):
    return CommandIntegrator(
        client,
        create_workspace_tools(str(workspace)),
        str(workspace),
        session_manager=session_manager,
        deliberation=deliberation or DeliberationConfig(),
        tool_timeout=10,
    )


def tool_names(client, index=0):
    return [tool["name"] for tool in client.calls[index]["tool_defs"]]


class TestPlan:
    """The plan command."""

    @pytest.mark.asyncio
    async def test_plan_is_parsed(self, workspace):
        client = ScriptedClient(
            [call("list_directory"), text(f"```json\n{json.dumps(PLAN)}\n```")]
        )
        response = await make_integrator(client, workspace).execute_plan(
            "add a CLI", MODEL, codebase_context="flat layout"
        )

        assert response.result.success
        assert response.plan == PLAN
        assert response.parse_error == ""
        assert client.calls[0]["messages"][0].content == PLAN_SYSTEM_PROMPT
        assert "Codebase Context:\nflat layout" in client.calls[0]["messages"][1].content
        assert tool_names(client) == ["read_file", "list_directory"]

    @pytest.mark.asyncio
    async def test_unparseable_plan(self, workspace):
        client = ScriptedClient([text("The plan is complete, see above.")])
        response = await make_integrator(client, workspace).execute_plan("goal", MODEL)

        assert response.result.success
        assert response.plan is None
        assert "not valid JSON" in response.parse_error


class TestGenerate:
    """The generate command."""

    @pytest.mark.asyncio
    async def test_changes_are_collected(self, workspace):
        client = ScriptedClient(
            [
                call("write_file", {"path": "cli.py", "content": "print('hi')\n"}),
                call("write_file", {"path": "cli.py", "content": "again"}),
                text(FINAL),
            ]
        )
        response = await make_integrator(client, workspace).execute_generate(
            "add a CLI", MODEL, plan=PLAN
        )

        assert response.result.success
        assert (workspace / "cli.py").read_text() == "print('hi')\n"
        # The second write is refused because the file exists
        assert response.changes == [
            {"tool": "write_file", "path": "cli.py", "bytes_written": 12, "created": True}
        ]
        assert "Overall Plan Context:" in client.calls[0]["messages"][1].content

    @pytest.mark.asyncio
    async def test_dry_run_offers_readonly_tools(self, workspace):
        client = ScriptedClient(
            [call("write_file", {"path": "x.py", "content": "x"}), text(FINAL)]
        )
        response = await make_integrator(client, workspace).execute_generate(
            "add a CLI", MODEL, dry_run=True
        )

        assert tool_names(client) == ["read_file", "list_directory"]
        assert "dry run" in client.calls[0]["messages"][1].content
        assert not (workspace / "x.py").exists()
        assert response.changes == []
        assert "not available in this run" in response.result.run.messages[3].content


class TestReview:
    """The review command."""

    @pytest.mark.asyncio
    async def test_fixes_applied(self, workspace):
        (workspace / "bug.py").write_text("x = \n")
        client = ScriptedClient(
            [
                call("read_file", {"path": "bug.py"}),
                call("write_file", {"path": "bug.py", "content": "x = 1\n", "overwrite": True}),
                call("run_shell_command", {"command": "true"}),
                text(FINAL),
            ]
        )
        response = await make_integrator(client, workspace).execute_review(
            str(workspace), test_output="SyntaxError in bug.py", model=MODEL
        )

        assert response.result.success
        assert response.fixes_applied == ["Rewrote bug.py"]
        prompt = client.calls[0]["messages"][1].content
        assert "Test Output:\nSyntaxError in bug.py" in prompt
        assert "Lint Output:\n(none)" in prompt

    @pytest.mark.asyncio
    async def test_max_cycles_caps_iterations(self, workspace):
        client = ScriptedClient([call("list_directory"), call("list_directory")])
        response = await make_integrator(client, workspace).execute_review(
            str(workspace), model=MODEL, max_cycles=1
        )

        assert not response.result.success
        assert response.result.run.error_kind == RunErrorKind.MAX_ITERATIONS
        assert response.result.error == "reached maximum iterations (1)"
        assert len(client.calls) == 1


class TestRunCommand:
    """Runner selection, sessions and resume."""

    @pytest.mark.asyncio
    async def test_unknown_command(self, workspace):
        with pytest.raises(ValueError, match="Unknown command"):
            await make_integrator(ScriptedClient([]), workspace).run_command("deploy", "x", MODEL)

    @pytest.mark.asyncio
    async def test_deliberation_when_enabled(self, workspace):
        client = ScriptedClient(
            [text(FINAL)],
            thoughts=[ThoughtResponse(thought_content="look first", confidence=0.8)],
            deliberation=True,
        )
        integrator = make_integrator(
            client, workspace, deliberation=DeliberationConfig(enabled=True)
        )

        result = await integrator.execute_chat("hello", MODEL)

        assert result.success
        assert result.thought_count == 1
        assert result.reflection_notes

    @pytest.mark.asyncio
    async def test_no_deliberation_when_disabled(self, workspace):
        client = ScriptedClient([text(FINAL)], deliberation=True)
        result = await make_integrator(client, workspace).execute_chat("hello", MODEL)

        assert result.success
        assert client.thought_calls == []
        assert result.deliberation_steps == []

    @pytest.mark.asyncio
    async def test_sessions_record_command(self, workspace, tmp_path):
        manager = SessionManager(str(workspace), sessions_dir=str(tmp_path / "sessions"))
        client = ScriptedClient([text(json.dumps(PLAN))])

        response = await make_integrator(client, workspace, manager).execute_plan("goal", MODEL)

        session = await manager.load_session(response.result.run.session_id)
        assert session.command == "plan"
        assert session.config == get_preset("plan")

    @pytest.mark.asyncio
    async def test_resume_continues_session(self, workspace, tmp_path):
        manager = SessionManager(str(workspace), sessions_dir=str(tmp_path / "sessions"))
        client = ScriptedClient([text("Let me think."), text(FINAL)])
        integrator = make_integrator(client, workspace, manager)

        first = await integrator.run_command(
            "chat", "hello", MODEL, config=RunConfig(max_iterations=1)
        )
        second = await integrator.execute_chat(
            "and then?", MODEL, resume_session_id=first.run.session_id
        )

        assert second.success
        assert second.run.session_id == first.run.session_id
        assert [m.content for m in second.run.messages[1:]] == [
            "hello",
            "Let me think.",
            "and then?",
            FINAL,
        ]


class TestHelpers:
    """Plan parsing and change collection."""

    def test_parse_plain_json(self):
        assert parse_plan(json.dumps(PLAN)) == PLAN

    def test_parse_fenced_json(self):
        assert parse_plan(f"Here it is:\n```\n{json.dumps(PLAN)}\n```") == PLAN

    def test_parse_rejects_non_objects(self):
        with pytest.raises(ValueError):
            parse_plan("[1, 2]")
        with pytest.raises(ValueError):
            parse_plan("not json")

    def test_collect_ignores_errors_and_other_tools(self):
        def tool_message(content, name):
            return Message(role="tool", content=content, tool_call_id="c", tool_name=name)

        messages = [
            tool_message("ERROR: File already exists", "write_file"),
            tool_message('{"path": "a", "bytes_written": 1}', "read_file"),
            tool_message('{"path": "b", "bytes_written": 2, "created": false}', "write_file"),
        ]

        assert collect_file_changes(messages) == [
            {"tool": "write_file", "path": "b", "bytes_written": 2, "created": False}
        ]
