import json

import pytest

import main as loopwright_main
from config import Config
from conftest import FINAL, ScriptedClient, call, text
from session import SessionManager


class _DummyConsole:
    def __init__(self):
        self.lines: list[str] = []

    def print(self, *args, **kwargs):  # noqa: ARG002
        self.lines.append(" ".join(str(a) for a in args))

    def print_json(self, data):
        self.lines.append(data)


def _setup_common(monkeypatch, client=None):
    calls = {"error": [], "info": [], "success": [], "warning": [], "answer": [], "sessions": []}
    console = _DummyConsole()

    monkeypatch.setattr(loopwright_main, "ensure_config", lambda: None)
    monkeypatch.setattr(loopwright_main, "ensure_runtime_dirs", lambda create_logs=False: None)
    monkeypatch.setattr(loopwright_main, "setup_logger", lambda: None)
    monkeypatch.setattr(Config, "validate", classmethod(lambda cls: None))
    if client is not None:
        monkeypatch.setattr(loopwright_main, "create_client", lambda model: client)

    ui = loopwright_main.terminal_ui
    monkeypatch.setattr(
        ui, "print_error", lambda msg, title="Error": calls["error"].append((title, msg))
    )
    monkeypatch.setattr(ui, "print_info", lambda msg: calls["info"].append(msg))
    monkeypatch.setattr(ui, "print_success", lambda msg: calls["success"].append(msg))
    monkeypatch.setattr(ui, "print_warning", lambda msg: calls["warning"].append(msg))
    monkeypatch.setattr(
        ui,
        "print_final_answer",
        lambda answer, title="Final Answer": calls["answer"].append(answer),
    )
    monkeypatch.setattr(ui, "print_session_table", lambda rows: calls["sessions"].append(rows))
    monkeypatch.setattr(ui, "console", console)

    return calls, console


def test_task_is_required(monkeypatch, tmp_path):
    _setup_common(monkeypatch)

    with pytest.raises(SystemExit) as exc_info:
        loopwright_main.main(["--workspace", str(tmp_path)])

    assert exc_info.value.code == 2


def test_chat_task_succeeds(monkeypatch, tmp_path):
    client = ScriptedClient([call("list_directory"), text(FINAL)])
    calls, _ = _setup_common(monkeypatch, client)

    code = loopwright_main.main(["--task", "what is here?", "--workspace", str(tmp_path)])

    assert code == 0
    assert calls["answer"] == [FINAL]
    assert not calls["error"]
    manager = SessionManager(str(tmp_path))
    assert manager.sessions_dir == str(tmp_path / ".loopwright" / "sessions")
    assert len(list((tmp_path / ".loopwright" / "sessions").glob("session_*.json"))) == 1


def test_failed_run_exits_non_zero(monkeypatch, tmp_path):
    calls, _ = _setup_common(monkeypatch, ScriptedClient([]))

    code = loopwright_main.main(["-t", "hello", "-w", str(tmp_path)])

    assert code == 1
    assert calls["error"][0][0] == "Run Failed"
    assert "LLM generation failed" in calls["error"][0][1]


def test_plan_mode_prints_plan(monkeypatch, tmp_path):
    plan = {"overall_goal": "g", "tasks": [], "summary": "s"}
    calls, console = _setup_common(monkeypatch, ScriptedClient([text(json.dumps(plan))]))

    code = loopwright_main.main(["--mode", "plan", "-t", "goal", "-w", str(tmp_path)])

    assert code == 0
    assert json.dumps(plan) in console.lines


def test_configuration_error(monkeypatch, tmp_path):
    calls, _ = _setup_common(monkeypatch)

    def invalid(cls):
        raise ValueError("OPENAI_API_KEY not set.")

    monkeypatch.setattr(Config, "validate", classmethod(invalid))

    code = loopwright_main.main(["-t", "hello", "-w", str(tmp_path)])

    assert code == 1
    assert calls["error"] == [("Configuration Error", "OPENAI_API_KEY not set.")]


def test_resume_unknown_session(monkeypatch, tmp_path):
    calls, _ = _setup_common(monkeypatch, ScriptedClient([]))

    code = loopwright_main.main(["--resume", "missing", "-w", str(tmp_path)])

    assert code == 1
    assert calls["error"][0][0] == "Session Error"


def test_sessions_list_and_delete(monkeypatch, tmp_path):
    client = ScriptedClient([text(FINAL)])
    calls, _ = _setup_common(monkeypatch, client)
    loopwright_main.main(["-t", "hello", "-w", str(tmp_path)])

    assert loopwright_main.main(["-w", str(tmp_path), "sessions", "list"]) == 0
    rows = calls["sessions"][0]
    assert len(rows) == 1
    assert rows[0]["command"] == "chat"
    assert rows[0]["state"] == "completed"

    session_id = rows[0]["session_id"]
    assert loopwright_main.main(["-w", str(tmp_path), "sessions", "delete", session_id]) == 0
    assert calls["success"] == [f"Deleted session {session_id}"]

    assert loopwright_main.main(["-w", str(tmp_path), "sessions", "delete", session_id]) == 1
    assert calls["error"][-1][0] == "Session Error"


def test_sessions_export(monkeypatch, tmp_path):
    client = ScriptedClient([call("list_directory"), text(FINAL)])
    calls, _ = _setup_common(monkeypatch, client)
    loopwright_main.main(["-t", "hello", "-w", str(tmp_path)])
    loopwright_main.main(["-w", str(tmp_path), "sessions", "list"])
    session_id = calls["sessions"][0][0]["session_id"]
    output = tmp_path / "calls.jsonl"

    code = loopwright_main.main(
        ["-w", str(tmp_path), "sessions", "export", session_id, str(output)]
    )

    assert code == 0
    records = [json.loads(line) for line in output.read_text().splitlines()]
    assert [r["tool_name"] for r in records] == ["list_directory"]
