"""Tests for retry and completion policies."""

import pytest

from orchestrator import CompletionPolicy, RetryPolicy, get_preset
from session.types import RunConfig


class TestRetryPolicy:
    """Retry rules are applied in order."""

    def setup_method(self):
        self.policy = RetryPolicy()
        self.config = RunConfig(max_tool_retries=3)

    def test_retries_a_retriable_error(self):
        assert self.policy.should_retry("FILE_NOT_FOUND", 0, self.config, {"FILE_NOT_FOUND": 1})

    def test_budget_exhausted(self):
        assert not self.policy.should_retry("FILE_NOT_FOUND", 3, self.config, {})

    def test_budget_checked_before_unstructured(self):
        assert not self.policy.should_retry("", 3, self.config, {})

    def test_modification_disabled(self):
        config = RunConfig(max_tool_retries=3, retry_with_modification=False)
        assert not self.policy.should_retry("FILE_NOT_FOUND", 0, config, {})

    def test_unstructured_error_is_retried(self):
        assert self.policy.should_retry("", 0, self.config, {})

    def test_non_retriable_codes(self):
        for code in ("UNSUPPORTED_OPERATION", "INTERNAL_ERROR", "FILE_ALREADY_EXISTS"):
            assert not self.policy.should_retry(code, 0, self.config, {code: 1})

    def test_repeated_errors_only_abort_when_enabled(self):
        history = {"TIMEOUT": 5}
        assert self.policy.should_retry("TIMEOUT", 0, self.config, history)

        config = RunConfig(max_tool_retries=3, abort_on_repeated_errors=True)
        assert not self.policy.should_retry("TIMEOUT", 0, config, history)
        assert self.policy.should_retry("TIMEOUT", 0, config, {"TIMEOUT": 2})

    def test_custom_policy(self):
        policy = RetryPolicy(non_retriable=frozenset({"TIMEOUT"}), repeat_threshold=1)
        assert not policy.should_retry("TIMEOUT", 0, self.config, {})
        assert policy.should_retry("FILE_NOT_FOUND", 0, self.config, {})


class TestCompletionPolicy:
    """Final-answer heuristic for text responses."""

    def setup_method(self):
        self.policy = CompletionPolicy()

    def test_indicator_words(self):
        assert self.policy.is_final("All DONE here.", 1, 10)
        assert self.policy.is_final("Here is a summary of the changes", 1, 10)

    def test_short_text_without_indicator(self):
        assert not self.policy.is_final("Let me look at the file.", 1, 10)

    def test_long_text_is_final(self):
        answer = "The module exposes three entry points. " * 4
        assert self.policy.is_final(answer, 1, 10)

    def test_long_text_with_continuation_phrase(self):
        answer = "The module exposes three entry points. " * 4 + "I need to check the tests."
        assert not self.policy.is_final(answer, 1, 10)

    def test_last_iteration_is_always_final(self):
        assert self.policy.is_final("hmm", 10, 10)

    def test_custom_indicators(self):
        policy = CompletionPolicy(indicators=("ship it",))
        assert policy.is_final("OK, ship it", 1, 10)
        assert not policy.is_final("task completed", 1, 10)


class TestPresets:
    """Named run policies per command."""

    def test_plan_preset(self):
        config = get_preset("plan")
        assert config.max_iterations == 5
        assert config.allowed_tools == ("read_file", "list_directory")
        assert config.timeout_seconds == 180
        assert config.max_tool_retries == 1
        assert config.abort_on_repeated_errors

    def test_generate_and_review_presets(self):
        generate = get_preset("generate")
        review = get_preset("review")

        assert (generate.max_iterations, generate.max_tool_retries) == (15, 3)
        assert (review.max_iterations, review.max_tool_retries) == (20, 2)
        assert "write_file" in generate.allowed_tools
        assert "run_shell_command" in review.allowed_tools
        assert review.abort_on_repeated_errors and not generate.abort_on_repeated_errors

    def test_chat_preset_is_unrestricted(self):
        assert get_preset("chat").allowed_tools == ()

    def test_unknown_preset(self):
        with pytest.raises(ValueError, match="Unknown command"):
            get_preset("deploy")

    def test_run_config_roundtrip(self):
        config = get_preset("review")
        assert RunConfig.from_dict(config.to_dict()) == config

    def test_run_config_validation(self):
        with pytest.raises(ValueError):
            RunConfig(max_iterations=0)
        with pytest.raises(ValueError):
            RunConfig(timeout_seconds=0)
