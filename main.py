"""Command line entry point for loopwright."""

import argparse
import asyncio
import importlib.metadata
import json
import os
import signal
from datetime import timedelta
from typing import Optional

from config import Config, ensure_config
from llm import LiteLLMReasoningClient, RetryConfig
from orchestrator import CommandIntegrator, DeliberationConfig, DeliberationResult
from session import SessionError, SessionManager
from tools import create_workspace_tools
from utils import get_log_file_path, setup_logger, terminal_ui
from utils.runtime import ensure_runtime_dirs

MODES = ("chat", "plan", "generate", "review")


def create_client(model: str) -> LiteLLMReasoningClient:
    """Create the LiteLLM-backed reasoning client from Config."""
    return LiteLLMReasoningClient(
        model=model,
        retry_config=RetryConfig.from_config(),
        api_key=Config.get_api_key(model),
        api_base=Config.LITELLM_API_BASE,
        drop_params=Config.LITELLM_DROP_PARAMS,
        timeout=Config.LITELLM_TIMEOUT,
    )


def create_integrator(workspace: str, model: str, deliberate: bool) -> CommandIntegrator:
    return CommandIntegrator(
        client=create_client(model),
        tools=create_workspace_tools(workspace),
        workspace_root=workspace,
        session_manager=SessionManager(workspace),
        deliberation=DeliberationConfig.from_config(enabled=deliberate or None),
        tool_timeout=Config.TOOL_TIMEOUT,
    )


def _install_interrupt(cancel_event: asyncio.Event) -> None:
    """First Ctrl+C stops the run after the current iteration."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except NotImplementedError:
        # Signal handlers are unavailable on this platform's event loop
        pass


async def run_task(args: argparse.Namespace) -> bool:
    """Run one command and print its outcome.

    Returns:
        True if the run succeeded
    """
    workspace = os.path.abspath(args.workspace)
    model = args.model or Config.LITELLM_MODEL
    integrator = create_integrator(workspace, model, args.deliberate)

    cancel_event = asyncio.Event()
    _install_interrupt(cancel_event)

    deliberation = "on" if integrator.deliberation.enabled else "off"
    terminal_ui.print_header("loopwright", f"{args.mode} · {model} · deliberation {deliberation}")

    plan = None
    changes = None
    if args.resume:
        info = await integrator.session_manager.get_session_info(args.resume)
        terminal_ui.print_info(f"Resuming {info.command} session {info.session_id}")
        result = await integrator.run_command(
            info.command,
            args.task or "",
            model,
            resume_session_id=args.resume,
            cancel_event=cancel_event,
        )
    elif args.mode == "plan":
        response = await integrator.execute_plan(args.task, model, cancel_event=cancel_event)
        result, plan = response.result, response.plan
        if response.parse_error:
            terminal_ui.print_warning(f"Plan is not valid JSON: {response.parse_error}")
    elif args.mode == "generate":
        response = await integrator.execute_generate(
            args.task, model, dry_run=args.dry_run, cancel_event=cancel_event
        )
        result, changes = response.result, [c["path"] for c in response.changes]
    elif args.mode == "review":
        response = await integrator.execute_review(
            workspace,
            test_output=args.task,
            model=model,
            max_cycles=args.max_cycles,
            cancel_event=cancel_event,
        )
        result, changes = response.result, response.fixes_applied
    else:
        result = await integrator.execute_chat(args.task, model, cancel_event=cancel_event)

    _print_result(result, plan, changes)
    return result.success


def _print_result(result: DeliberationResult, plan=None, changes=None) -> None:
    run = result.run
    if plan is not None:
        terminal_ui.console.print_json(json.dumps(plan))
    elif result.final_response:
        terminal_ui.print_final_answer(result.final_response)

    if changes:
        terminal_ui.print_info("Changes:")
        for change in changes:
            terminal_ui.console.print(f"  • {change}")

    summary = {
        "Iterations": run.iterations,
        "Tool calls": run.tool_calls,
        "Tool retries": run.tool_retries,
        "Session": run.session_id or "-",
    }
    if result.deliberation_steps:
        summary["Thoughts"] = result.thought_count
        summary["Avg confidence"] = f"{result.average_confidence:.2f}"
    terminal_ui.print_run_summary(summary, run.success)

    if not run.success:
        terminal_ui.print_error(run.error, title="Run Failed")
        if run.error_kind is not None and run.error_kind.resumable and run.session_id:
            terminal_ui.print_info(f"Continue with: loopwright --resume {run.session_id}")


async def sessions_command(args: argparse.Namespace) -> bool:
    manager = SessionManager(os.path.abspath(args.workspace))

    if args.action == "list":
        rows = []
        for session_id in await manager.list_sessions():
            try:
                info = await manager.get_session_info(session_id)
            except SessionError as e:
                terminal_ui.print_warning(f"Skipping {session_id}: {e}")
                continue
            rows.append(
                {
                    "session_id": info.session_id,
                    "command": info.command,
                    "model": info.model,
                    "state": info.current_state.value,
                    "started": info.start_time.strftime("%Y-%m-%d %H:%M"),
                    "messages": info.messages,
                    "tool_calls": info.tool_calls,
                }
            )
        rows.sort(key=lambda row: row["started"], reverse=True)
        terminal_ui.print_session_table(rows)

    elif args.action == "show":
        session = await manager.load_session(args.session_id)
        terminal_ui.print_config(
            {
                "Session": session.session_id,
                "Command": session.command,
                "Model": session.model,
                "State": session.current_state.value,
                "Started": session.start_time.isoformat(),
                "Ended": session.end_time.isoformat() if session.end_time else "-",
                "Workspace": session.workspace_root,
                "Messages": len(session.messages),
                "Max iterations": session.config.max_iterations,
            }
        )
        terminal_ui.print_tool_calls(
            [
                {
                    "iteration": record.iteration,
                    "tool_name": record.tool_name,
                    "success": record.success,
                    "error": record.error,
                    "duration": record.duration,
                }
                for record in session.tool_calls
            ]
        )

    elif args.action == "delete":
        await manager.delete_session(args.session_id)
        terminal_ui.print_success(f"Deleted session {args.session_id}")

    elif args.action == "cleanup":
        days = args.max_age_days if args.max_age_days is not None else Config.SESSION_MAX_AGE_DAYS
        deleted = await manager.cleanup_old_sessions(timedelta(days=days))
        terminal_ui.print_success(f"Removed {deleted} sessions older than {days} days")

    elif args.action == "export":
        count = await manager.export_session_to_jsonl(args.session_id, args.output)
        terminal_ui.print_success(f"Exported {count} tool calls to {args.output}")

    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loopwright",
        description="Drive a reasoning model through tool calls with retries, deliberation and resumable sessions",
    )

    try:
        version = importlib.metadata.version("loopwright")
    except importlib.metadata.PackageNotFoundError:
        version = "dev"
    parser.add_argument("--version", "-V", action="version", version=f"loopwright {version}")

    parser.add_argument("--task", "-t", type=str, help="Task or message for the agent")
    parser.add_argument("--mode", choices=MODES, default="chat", help="Command to run (default: chat)")
    parser.add_argument(
        "--deliberate", action="store_true", help="Enable thought and confidence phases for this run"
    )
    parser.add_argument("--resume", "-r", metavar="SESSION_ID", help="Continue a previous session")
    parser.add_argument(
        "--workspace", "-w", default=".", help="Workspace root for tools and sessions (default: .)"
    )
    parser.add_argument("--model", "-m", type=str, help="LiteLLM model ID, e.g. openai/gpt-4o")
    parser.add_argument("--dry-run", action="store_true", help="generate: describe changes only")
    parser.add_argument("--max-cycles", type=int, help="review: maximum iterations")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging to ~/.loopwright/logs/"
    )

    subparsers = parser.add_subparsers(dest="command")
    sessions = subparsers.add_parser("sessions", help="Manage saved sessions")
    actions = sessions.add_subparsers(dest="action", required=True)
    actions.add_parser("list", help="List sessions in the workspace")
    show = actions.add_parser("show", help="Show a session and its tool calls")
    show.add_argument("session_id")
    delete = actions.add_parser("delete", help="Delete a session")
    delete.add_argument("session_id")
    cleanup = actions.add_parser("cleanup", help="Delete old sessions")
    cleanup.add_argument("--max-age-days", type=int, help="Default: SESSION_MAX_AGE_DAYS")
    export = actions.add_parser("export", help="Export tool calls as JSON lines")
    export.add_argument("session_id")
    export.add_argument("output")

    return parser


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    ensure_config()
    ensure_runtime_dirs(create_logs=args.verbose)

    # Initialize logging only in verbose mode
    if args.verbose:
        setup_logger()

    if args.command == "sessions":
        try:
            ok = asyncio.run(sessions_command(args))
        except SessionError as e:
            terminal_ui.print_error(str(e), title="Session Error")
            return 1
        return 0 if ok else 1

    if not args.task and not args.resume:
        parser.error("--task is required unless --resume is given")

    try:
        Config.validate()
    except ValueError as e:
        terminal_ui.print_error(str(e), title="Configuration Error")
        return 1

    try:
        ok = asyncio.run(run_task(args))
    except SessionError as e:
        terminal_ui.print_error(str(e), title="Session Error")
        return 1
    except ValueError as e:
        terminal_ui.print_error(str(e), title="Invalid Request")
        return 1

    if args.verbose and get_log_file_path():
        terminal_ui.print_log_location(get_log_file_path())
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
