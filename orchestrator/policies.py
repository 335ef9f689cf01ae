"""Retry and completion policies used by the agent loop.

Both are plain objects so tests and callers can substitute their own.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple

from session.types import RunConfig
from tools.errors import ErrorCode

DEFAULT_NON_RETRIABLE: FrozenSet[str] = frozenset(
    {
        ErrorCode.UNSUPPORTED_OPERATION.value,
        ErrorCode.INTERNAL_ERROR.value,
        ErrorCode.FILE_ALREADY_EXISTS.value,
    }
)

DEFAULT_FINAL_INDICATORS: Tuple[str, ...] = (
    "task completed",
    "finished",
    "done",
    "complete",
    "successfully",
    "final result",
    "conclusion",
    "summary",
)


@dataclass(frozen=True)
class RetryPolicy:
    """Decides whether a failed tool call gets retry guidance.

    Args:
        non_retriable: Error codes that parameter changes cannot fix
        repeat_threshold: With abort_on_repeated_errors, stop retrying once an
            error code has been seen this many times in the run
    """

    non_retriable: FrozenSet[str] = DEFAULT_NON_RETRIABLE
    repeat_threshold: int = 3

    def should_retry(
        self,
        error_code: str,
        retry_count: int,
        config: RunConfig,
        error_history: Dict[str, int],
    ) -> bool:
        """Apply the retry rules in order.

        Args:
            error_code: Standardized error code, empty for unstructured failures
            retry_count: Retries already granted to this call
            config: Run policy
            error_history: Occurrences per error code in this run, including this one

        Returns:
            True if the model should be asked to correct the call
        """
        if retry_count >= config.max_tool_retries:
            return False
        if not config.retry_with_modification:
            return False
        if not error_code:
            return True
        if error_code in self.non_retriable:
            return False
        if config.abort_on_repeated_errors and error_history.get(error_code, 0) >= self.repeat_threshold:
            return False
        return True


@dataclass(frozen=True)
class CompletionPolicy:
    """Decides whether a text response ends the run."""

    indicators: Tuple[str, ...] = DEFAULT_FINAL_INDICATORS
    min_substantial_length: int = 100
    continuation_phrases: Tuple[str, ...] = ("need to", "should")

    def is_final(self, content: str, iteration: int, max_iterations: int) -> bool:
        if iteration >= max_iterations:
            return True

        text = content.strip().lower()
        if any(indicator in text for indicator in self.indicators):
            return True

        # A long answer that does not announce further work is taken as final
        return len(text) > self.min_substantial_length and not any(
            phrase in text for phrase in self.continuation_phrases
        )
