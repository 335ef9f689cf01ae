"""Deliberation: think before acting, assess after acting.

DeliberationRunner wraps an AgentRunner and hooks into its loop. Each
iteration may be preceded by an internal thought and, after a tool call,
followed by a confidence assessment. Deliberation steps are kept on the
result only and never enter the conversation.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from config import Config
from llm.message_types import Message
from utils import get_logger

from .results import DeliberationResult, DeliberationStep, RunErrorKind
from .runner import AgentRunner, IterationStep, LoopState, StepKind

logger = get_logger(__name__)


@dataclass
class DeliberationConfig:
    enabled: bool = False
    confidence_threshold: float = 0.7
    max_thought_depth: int = 3  # reasoning steps kept per thought
    require_explanation: bool = True
    thought_timeout: float = 30.0
    enable_reflection: bool = True

    @classmethod
    def from_config(cls, enabled: Optional[bool] = None) -> "DeliberationConfig":
        """Build from Config, optionally overriding ``enabled``."""
        return cls(
            enabled=Config.DELIBERATION_ENABLED if enabled is None else enabled,
            confidence_threshold=Config.DELIBERATION_CONFIDENCE_THRESHOLD,
            max_thought_depth=Config.DELIBERATION_MAX_THOUGHT_DEPTH,
            require_explanation=Config.DELIBERATION_REQUIRE_EXPLANATION,
            thought_timeout=Config.DELIBERATION_THOUGHT_TIMEOUT,
            enable_reflection=Config.DELIBERATION_ENABLE_REFLECTION,
        )


class DeliberationRunner:
    """Runs an AgentRunner with thought, confidence and reflection phases."""

    def __init__(self, runner: AgentRunner, config: Optional[DeliberationConfig] = None):
        self.runner = runner
        self.config = config or DeliberationConfig()
        self.steps: List[DeliberationStep] = []
        self.reflection_notes: List[str] = []

    @property
    def client(self):
        return self.runner.client

    async def run_with_deliberation(
        self,
        initial_prompt: str,
        command: str = "chat",
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DeliberationResult:
        """Run the task, deliberating around each iteration when enabled.

        With deliberation disabled this is exactly ``AgentRunner.run``.
        """
        self.steps = []
        self.reflection_notes = []

        if not self.config.enabled:
            run = await self.runner.run(initial_prompt, command, cancel_event)
            return DeliberationResult(run=run)

        logger.info(
            f"Starting deliberation run: threshold={self.config.confidence_threshold}, "
            f"thought_timeout={self.config.thought_timeout}s"
        )
        state = await self.runner.prepare_run(initial_prompt, command)
        run = await self.runner.drive(state, cancel_event, observer=self)

        if run.success and self.config.enable_reflection:
            note = f"Completed in {run.iterations} iterations with {len(self.steps)} deliberation steps"
            self.reflection_notes.append(note)
            logger.debug(f"Reflection: {note}")

        # Only scored steps count toward the average
        confidences = [step.confidence for step in self.steps if step.confidence > 0]
        return DeliberationResult(
            run=run,
            deliberation_steps=list(self.steps),
            thought_count=sum(1 for step in self.steps if step.phase == "thought"),
            average_confidence=sum(confidences) / len(confidences) if confidences else 0.0,
            reflection_notes=list(self.reflection_notes),
        )

    async def before_iteration(self, state: LoopState) -> None:
        """Thought phase."""
        if not self.client.supports_deliberation():
            return

        iteration = state.iterations + 1
        prompt = self._build_thought_prompt(state.messages)
        context = self._build_thought_context(state.messages)
        try:
            async with asyncio.timeout(self.config.thought_timeout):
                thought = await self.client.generate_thought(self.runner.model, prompt, context)
        except Exception as e:
            logger.warning(f"Thought generation failed, acting without it: {e}")
            return

        # Thoughts stay in the ledger; they never enter the transcript
        self.steps.append(
            DeliberationStep(
                id=f"thought_{iteration}_{len(self.steps)}",
                phase="thought",
                content=thought.thought_content,
                confidence=thought.confidence,
                reasoning_path=list(thought.reasoning_steps[: self.config.max_thought_depth]),
                metadata={
                    "iteration": iteration,
                    "suggested_action": thought.suggested_action,
                    "uncertainty": thought.uncertainty,
                },
            )
        )
        if thought.confidence < self.config.confidence_threshold:
            logger.debug(
                f"Low thought confidence {thought.confidence:.2f} "
                f"(threshold {self.config.confidence_threshold})"
            )

    async def after_iteration(self, state: LoopState, step: IterationStep) -> None:
        """Confidence phase; may stop the run."""
        if step.kind != StepKind.TOOL_CALL or not self.config.require_explanation:
            return

        # The thought timeout bounds this call too
        iteration = state.iterations
        try:
            async with asyncio.timeout(self.config.thought_timeout):
                assessment = await self.client.assess_confidence(
                    self.runner.model,
                    self._latest_thought(),
                    f"Tool execution: {step.tool_name}",
                )
        except Exception as e:
            logger.warning(f"Confidence assessment failed: {e}")
            return

        self.steps.append(
            DeliberationStep(
                id=f"confidence_{iteration}_{len(self.steps)}",
                phase="confidence",
                content=f"Confidence: {assessment.score:.2f} - {assessment.recommendation}",
                confidence=assessment.score,
                metadata={
                    "iteration": iteration,
                    "factors": dict(assessment.factors),
                    "uncertainties": list(assessment.uncertainties),
                    "recommendation": assessment.recommendation,
                },
            )
        )

        if assessment.score < self.config.confidence_threshold and assessment.recommendation == "abort":
            logger.warning(f"Aborting run: confidence {assessment.score:.2f} with abort recommendation")
            state.final_response = state.last_assistant_text()
            state.fail(
                RunErrorKind.LOW_CONFIDENCE,
                f"Action aborted due to low confidence: {assessment.score:.2f}",
            )

    def _latest_thought(self) -> str:
        for step in reversed(self.steps):
            if step.phase == "thought":
                return step.content
        return ""

    def _build_thought_prompt(self, messages: List[Message]) -> str:
        parts = ["Think step by step about the current situation:"]
        # Last three turns only
        for message in messages[-3:]:
            if message.role != "system":
                parts.append(f"{message.role}: {message.content}")
        parts.append(
            "\nWhat should I consider before taking action? What are the potential risks and benefits?"
        )
        return "\n".join(parts)

    def _build_thought_context(self, messages: List[Message]) -> str:
        lines = ["Current conversation context:"]
        lines += [f"- {m.role}: {m.content}" for m in messages if m.role != "system"]
        return "\n".join(lines) + "\n"
