"""Agent loop, deliberation and command integration."""

from .deliberation import DeliberationConfig, DeliberationRunner
from .integrator import CommandIntegrator, GenerateResponse, PlanResponse, ReviewResponse
from .policies import CompletionPolicy, RetryPolicy
from .results import (
    DeliberationResult,
    DeliberationStep,
    RunErrorKind,
    RunResult,
    ToolCallAttempt,
)
from .run_config import get_preset
from .runner import AgentRunner, IterationStep, LoopState, StepKind

__all__ = [
    "AgentRunner",
    "CommandIntegrator",
    "CompletionPolicy",
    "DeliberationConfig",
    "DeliberationResult",
    "DeliberationRunner",
    "DeliberationStep",
    "GenerateResponse",
    "IterationStep",
    "LoopState",
    "PlanResponse",
    "RetryPolicy",
    "ReviewResponse",
    "RunErrorKind",
    "RunResult",
    "StepKind",
    "ToolCallAttempt",
    "get_preset",
]
