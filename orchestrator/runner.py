"""Base orchestration loop between a reasoning client and workspace tools.

One run is a single sequential task: ask the model for the next action, run
the tool it asked for, feed the result back, repeat. A failed tool call is
answered with either retry guidance or a final structured error; only
iteration exhaustion, a reasoning failure, cancellation or the run deadline
end a run unsuccessfully.
"""

import asyncio
import json
import time
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from config import Config
from llm.base import ReasoningClient
from llm.message_types import Message, ToolCallRequest
from session import (
    RunConfig,
    SessionManager,
    SessionState,
    SessionStatus,
    ToolCallRecord,
    ToolCallResult,
)
from session.types import utc_now
from tools.base import ToolOutcome
from tools.errors import ErrorCode, ToolInvocationError
from tools.registry import ToolRegistry
from utils import get_logger

from .policies import CompletionPolicy, RetryPolicy
from .results import RunErrorKind, RunResult, ToolCallAttempt

logger = get_logger(__name__)


@dataclass
class RetryChain:
    """A failing tool call that was answered with retry guidance.

    The model may change the arguments between attempts, so the chain keeps
    every call signature it touched.
    """

    tool_name: str
    retries: int
    signatures: List[str] = field(default_factory=list)


class StepKind(str, Enum):
    TEXT = "text"
    TOOL_CALL = "tool_call"
    INVOCATION_ERROR = "invocation_error"
    FAILED = "failed"


@dataclass
class IterationStep:
    """What a single iteration did, for observers of the loop."""

    kind: StepKind
    text: str = ""
    tool_name: str = ""
    outcome: Optional[ToolOutcome] = None


@dataclass
class LoopState:
    """Mutable progress of one run."""

    messages: List[Message]
    command: str
    deadline: float
    iterations: int = 0
    tool_calls: int = 0
    tool_retries: int = 0
    error_details: List[str] = field(default_factory=list)
    finished: bool = False
    success: bool = False
    final_response: str = ""
    error: str = ""
    error_kind: Optional[RunErrorKind] = None

    def succeed(self, final_response: str) -> None:
        self.finished = True
        self.success = True
        self.final_response = final_response

    def fail(self, kind: RunErrorKind, error: str) -> None:
        self.finished = True
        self.success = False
        self.error_kind = kind
        self.error = error

    def last_assistant_text(self) -> str:
        for message in reversed(self.messages):
            if message.role == "assistant" and message.content:
                return message.content
        return ""


class AgentRunner:
    """Runs the reasoning/tool loop.

    Retry bookkeeping (attempt ledger, error history, per-signature retry
    counters) is reset at the start of every run.
    """

    def __init__(
        self,
        client: ReasoningClient,
        tools: ToolRegistry,
        system_prompt: str,
        model: str,
        config: Optional[RunConfig] = None,
        session_manager: Optional[SessionManager] = None,
        retry_policy: Optional[RetryPolicy] = None,
        completion_policy: Optional[CompletionPolicy] = None,
        tool_timeout: Optional[float] = None,
    ):
        """Initialize the runner.

        Args:
            client: Reasoning client that chooses actions
            tools: Registry of tools the model may call
            system_prompt: System prompt for the run
            model: Model identifier passed to the client
            config: Run policy (default: RunConfig())
            session_manager: Persists the run after every step when given
            retry_policy: Decides retries for failed tool calls
            completion_policy: Decides whether a text response ends the run
            tool_timeout: Per tool-call deadline in seconds (default: Config.TOOL_TIMEOUT)
        """
        self.client = client
        self.tools = tools
        self.system_prompt = system_prompt
        self.model = model
        self.config = config or RunConfig()
        self.session_manager = session_manager
        self.retry_policy = retry_policy or RetryPolicy()
        self.completion_policy = completion_policy or CompletionPolicy()
        self.tool_timeout = tool_timeout if tool_timeout is not None else Config.TOOL_TIMEOUT
        self.session: Optional[SessionState] = None
        self._reset_bookkeeping()

    def _reset_bookkeeping(self) -> None:
        self.tool_attempts: List[ToolCallAttempt] = []
        self.error_history: Dict[str, int] = {}
        self.current_retries: Dict[str, int] = {}
        # Call that just received retry guidance
        self._pending_retry: Optional[RetryChain] = None

    async def resume(self, session_id: str) -> SessionState:
        """Attach a persisted session; the next run continues its conversation.

        The session's own run policy replaces the runner's.

        Raises:
            ValueError: If the runner has no session manager
            SessionMismatchError: If the model or system prompt differs from the session's
        """
        if self.session_manager is None:
            raise ValueError("Resuming a session requires a session manager")
        self.session = await self.session_manager.resume_session(
            session_id, self.model, self.system_prompt
        )
        self.config = self.session.config
        return self.session

    async def run(
        self,
        initial_prompt: str,
        command: str = "chat",
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunResult:
        """Run the loop until a final answer, a fatal error or the iteration cap.

        Args:
            initial_prompt: User request (may be empty when resuming)
            command: Originating use case, recorded on new sessions
            cancel_event: Checked after every iteration; set it to stop the run

        Returns:
            RunResult with the full transcript and counters
        """
        state = await self.prepare_run(initial_prompt, command)
        return await self.drive(state, cancel_event)

    async def prepare_run(self, initial_prompt: str, command: str) -> LoopState:
        """Reset bookkeeping, open the session and build the starting conversation."""
        self._reset_bookkeeping()

        if self.session_manager is not None:
            if self.session is None:
                self.session = await self.session_manager.create_session(
                    self.system_prompt, self.model, command, self.config
                )
            await self.session_manager.acquire(self.session.session_id)
            if self.session.current_state != SessionStatus.RUNNING:
                self.session_manager.update_session_state(self.session, SessionStatus.RUNNING)

        if self.session is not None and self.session.messages:
            messages = list(self.session.messages)
            if initial_prompt and messages[-1].content != initial_prompt:
                messages.append(Message(role="user", content=initial_prompt))
        else:
            messages = [
                Message(role="system", content=self.system_prompt),
                Message(role="user", content=initial_prompt),
            ]

        loop = asyncio.get_running_loop()
        state = LoopState(
            messages=messages,
            command=command,
            deadline=loop.time() + self.config.timeout_seconds,
        )
        logger.info(
            f"Starting run: command={command}, max_iterations={self.config.max_iterations}, "
            f"session={self.session.session_id if self.session else 'none'}"
        )
        return state

    async def drive(
        self,
        state: LoopState,
        cancel_event: Optional[asyncio.Event] = None,
        observer: Any = None,
    ) -> RunResult:
        """Iterate until the run finishes, then close it out.

        Args:
            state: State from prepare_run
            cancel_event: Checked after every iteration
            observer: Optional object with async ``before_iteration(state)`` and
                ``after_iteration(state, step)`` hooks

        Returns:
            The run result
        """
        try:
            async with asyncio.timeout_at(state.deadline):
                while not state.finished:
                    if state.iterations >= self.config.max_iterations:
                        logger.warning(
                            f"Run reached max iterations ({self.config.max_iterations})"
                        )
                        state.final_response = state.last_assistant_text()
                        state.fail(
                            RunErrorKind.MAX_ITERATIONS,
                            f"reached maximum iterations ({self.config.max_iterations})",
                        )
                        break

                    if observer is not None:
                        await observer.before_iteration(state)

                    step = await self.run_iteration(state)

                    # Observers only see iterations that left the run open
                    if observer is not None and not state.finished:
                        await observer.after_iteration(state, step)

                    if not state.finished and cancel_event is not None and cancel_event.is_set():
                        logger.info(f"Run cancelled after iteration {state.iterations}")
                        state.fail(RunErrorKind.CANCELLED, "cancelled: run was cancelled by the caller")
        except TimeoutError:
            logger.warning(f"Run exceeded its deadline of {self.config.timeout_seconds}s")
            state.fail(
                RunErrorKind.TIMEOUT,
                f"timeout: run exceeded {self.config.timeout_seconds:g} seconds",
            )
        except asyncio.CancelledError:
            await self._release_session()
            raise
        except Exception as e:
            # Close out the session before an unexpected error propagates
            logger.error(f"Run aborted at iteration {state.iterations}: {e}")
            await self._abort_session(state, e)
            raise

        return await self.finish_run(state)

    async def finish_run(self, state: LoopState) -> RunResult:
        """Record the outcome on the session and build the result."""
        if self.session is not None and self.session_manager is not None:
            self.session.messages = list(state.messages)
            self.session_manager.update_session_state(
                self.session,
                SessionStatus.COMPLETED if state.success else SessionStatus.FAILED,
            )
            self.session.metadata.update(
                {
                    "iterations": state.iterations,
                    "tool_retries": state.tool_retries,
                    "error": state.error,
                    "error_kind": state.error_kind.value if state.error_kind else None,
                }
            )
            try:
                await self.session_manager.save_session(self.session)
            finally:
                await self._release_session()

        if state.success:
            logger.info(
                f"Run completed in {state.iterations} iterations with {state.tool_calls} tool calls"
            )
        else:
            logger.warning(f"Run failed after {state.iterations} iterations: {state.error}")

        return RunResult(
            final_response=state.final_response,
            messages=list(state.messages),
            tool_calls=state.tool_calls,
            iterations=state.iterations,
            success=state.success,
            error=state.error,
            error_kind=state.error_kind,
            tool_retries=state.tool_retries,
            error_details=list(state.error_details),
            session_id=self.session.session_id if self.session else None,
        )

    async def run_iteration(self, state: LoopState) -> IterationStep:
        """Ask for one action and carry it out."""
        state.iterations += 1
        iteration = state.iterations
        logger.debug(f"Iteration {iteration}")

        tool_defs = self.tools.get_schemas(self.config.allowed_tools)
        try:
            action = await self.client.generate_action(
                self.model, list(state.messages), self.system_prompt, tool_defs
            )
        except Exception as e:
            logger.error(f"LLM generation failed at iteration {iteration}: {e}")
            state.fail(RunErrorKind.REASONING_FAILURE, f"LLM generation failed: {e}")
            return IterationStep(kind=StepKind.FAILED)

        if action.is_text:
            state.messages.append(Message(role="assistant", content=action.text))
            await self._persist(state)
            if self.completion_policy.is_final(action.text, iteration, self.config.max_iterations):
                state.succeed(action.text)
            return IterationStep(kind=StepKind.TEXT, text=action.text)

        return await self._handle_tool_call(state, action.tool_call, iteration)

    async def _handle_tool_call(
        self, state: LoopState, call: ToolCallRequest, iteration: int
    ) -> IterationStep:
        if not call.id:
            call.id = f"call_{uuid.uuid4().hex[:12]}"
        signature = f"{call.name}:{call.arguments}"
        state.messages.append(Message(role="assistant", content="", tool_call=call))

        # Same tool right after retry guidance continues the pending call
        pending = self._pending_retry
        continuing = pending is not None and pending.tool_name == call.name
        retry_count = pending.retries if continuing else 0
        attempt = ToolCallAttempt(
            tool_name=call.name,
            attempt_number=retry_count + 1,
            serialized_parameters=call.arguments,
        )

        started_at = utc_now()
        started = time.monotonic()
        try:
            if self.config.allowed_tools and call.name not in self.config.allowed_tools:
                raise ToolInvocationError(f"tool '{call.name}' is not available in this run")
            outcome = await self._execute_tool(state, call)
        except ToolInvocationError as e:
            message = f"Tool execution error: {e}"
            logger.warning(message)
            attempt.error_message = message
            self.tool_attempts.append(attempt)
            state.messages.append(self._tool_message(call, message))
            state.error_details.append(message)
            await self._persist(state)
            return IterationStep(kind=StepKind.INVOCATION_ERROR, tool_name=call.name)
        duration = time.monotonic() - started

        self._pending_retry = None
        if continuing:
            chain = pending.signatures + [signature]
        else:
            # An abandoned chain no longer holds a retry budget
            if pending is not None:
                self._clear_retries(pending.signatures)
            chain = [signature]
            state.tool_calls += 1
        self._record_tool_call(call, outcome, started_at, duration, iteration, attempt.attempt_number)

        if outcome.success:
            self.tool_attempts.append(attempt)
            self._clear_retries(chain)
            content = self._format_result(outcome)
        else:
            attempt.error_code = outcome.error_code
            attempt.error_message = outcome.error
            self.tool_attempts.append(attempt)
            content = self._handle_failure(state, call, outcome, chain, retry_count)

        state.messages.append(self._tool_message(call, content))
        await self._persist(state)
        return IterationStep(kind=StepKind.TOOL_CALL, tool_name=call.name, outcome=outcome)

    async def _execute_tool(self, state: LoopState, call: ToolCallRequest) -> ToolOutcome:
        # Never outlive the run deadline
        remaining = state.deadline - asyncio.get_running_loop().time()
        budget = max(0.0, min(self.tool_timeout, remaining))
        try:
            async with asyncio.timeout(budget):
                return await self.tools.execute(call.name, call.arguments)
        except TimeoutError:
            logger.warning(f"Tool {call.name} timed out after {budget:.1f}s")
            return ToolOutcome.failure(
                ErrorCode.TIMEOUT,
                f"Tool '{call.name}' timed out after {budget:.1f} seconds",
                timeout=round(budget, 1),
            )

    def _handle_failure(
        self,
        state: LoopState,
        call: ToolCallRequest,
        outcome: ToolOutcome,
        chain: List[str],
        retry_count: int,
    ) -> str:
        """Update retry bookkeeping and return the tool message for a failed call.

        ``chain`` holds the signatures of every attempt of this logical call,
        the current one last.
        """
        code = outcome.error_code
        if code:
            self.error_history[code] = self.error_history.get(code, 0) + 1

        if self.retry_policy.should_retry(code, retry_count, self.config, self.error_history):
            retries = retry_count + 1
            self.current_retries[chain[-1]] = retries
            self._pending_retry = RetryChain(call.name, retries, chain)
            state.tool_retries += 1
            state.error_details.append(f"Retry {retries} for {call.name}: {outcome.error}")
            logger.debug(f"Retrying tool {call.name} (retry {retries}): {outcome.error}")
            return self._build_retry_prompt(call.name, outcome, retries)

        # The chain ends here; a later call with the same arguments starts fresh
        self._clear_retries(chain)
        state.error_details.append(f"Final error for {call.name}: {outcome.error}")
        logger.debug(f"Giving up on tool {call.name}: {outcome.error}")
        if self.config.enable_error_analysis and outcome.standardized_error:
            return outcome.standardized_error.format_for_llm()
        return f"Error: {outcome.error}"

    def _clear_retries(self, signatures: List[str]) -> None:
        for signature in signatures:
            self.current_retries.pop(signature, None)

    def _build_retry_prompt(self, tool_name: str, outcome: ToolOutcome, attempt: int) -> str:
        lines = [
            f"Your previous attempt to use the tool '{tool_name}' failed "
            f"(attempt {attempt} of {self.config.max_tool_retries + 1}).",
            "",
        ]
        if outcome.standardized_error:
            lines += ["ERROR DETAILS:", outcome.standardized_error.format_for_llm(), ""]
        else:
            lines += [f"Error: {outcome.error}", ""]
        lines += [
            "INSTRUCTIONS FOR RETRY:",
            "1. Carefully review the error message above",
            "2. Identify what went wrong with your parameters",
            "3. Provide a corrected tool call with the proper parameters",
            "4. If you cannot fix the issue, explain why and suggest an alternative approach",
            "",
            "Please provide your corrected response:",
        ]
        return "\n".join(lines)

    def _format_result(self, outcome: ToolOutcome) -> str:
        if outcome.data is None:
            return "Tool executed successfully"
        if isinstance(outcome.data, str):
            return outcome.data
        try:
            return json.dumps(outcome.data, indent=2, ensure_ascii=False)
        except (TypeError, ValueError):
            return str(outcome.data)

    def _tool_message(self, call: ToolCallRequest, content: str) -> Message:
        return Message(role="tool", content=content, tool_call_id=call.id, tool_name=call.name)

    def _record_tool_call(
        self,
        call: ToolCallRequest,
        outcome: ToolOutcome,
        started_at,
        duration: float,
        iteration: int,
        attempt_number: int,
    ) -> None:
        if self.session is None or self.session_manager is None:
            return
        try:
            parameters = json.loads(call.arguments) if call.arguments.strip() else {}
        except json.JSONDecodeError:
            parameters = {"raw": call.arguments}
        record = ToolCallRecord(
            id=call.id,
            timestamp=started_at,
            tool_name=call.name,
            parameters=parameters,
            result=ToolCallResult(success=outcome.success, data=outcome.data, error=outcome.error),
            duration=duration,
            success=outcome.success,
            error=outcome.error,
            iteration=iteration,
            metadata={"attempt": attempt_number, "error_code": outcome.error_code},
        )
        self.session_manager.add_tool_call(self.session, record)

    async def _persist(self, state: LoopState) -> None:
        if self.session is None or self.session_manager is None:
            return
        self.session.messages = list(state.messages)
        await self.session_manager.save_session(self.session)

    async def _abort_session(self, state: LoopState, error: Exception) -> None:
        """Mark the session failed after an unexpected error and release its lock.

        The save is attempted once; if it fails too, the file keeps its last
        good state and the lock is still released.
        """
        if self.session is None or self.session_manager is None:
            return
        try:
            self.session.messages = list(state.messages)
            self.session_manager.update_session_state(self.session, SessionStatus.FAILED)
            self.session.metadata.update(
                {"iterations": state.iterations, "error": f"aborted: {error}", "error_kind": None}
            )
            await self.session_manager.save_session(self.session)
        except OSError as e:
            logger.error(f"Could not record failure of session {self.session.session_id}: {e}")
        finally:
            await self._release_session()

    async def _release_session(self) -> None:
        if self.session is not None and self.session_manager is not None:
            await self.session_manager.release(self.session.session_id)

    def get_message_history(self) -> List[Message]:
        if self.session is not None:
            return list(self.session.messages)
        return []

    def get_error_analytics(self) -> Dict[str, Any]:
        """Summarize tool attempts of the current run."""
        total = len(self.tool_attempts)
        retried = sum(1 for a in self.tool_attempts if a.attempt_number > 1)
        return {
            "tool_attempts": [asdict(a) for a in self.tool_attempts],
            "error_history": dict(self.error_history),
            "current_retries": dict(self.current_retries),
            "total_attempts": total,
            "failed_attempts": sum(1 for a in self.tool_attempts if a.failed),
            "retry_rate": retried / total if total else 0.0,
        }
