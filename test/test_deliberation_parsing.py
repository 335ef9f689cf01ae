"""Tests for parsing thought and confidence responses."""

from llm.deliberation import extract_score, parse_confidence, parse_thought

THOUGHT = """\
THOUGHT PROCESS:
1. Key factors to consider: the config file may be missing
2. Potential risks: overwriting user edits
3. Potential benefits: a working build
4. Confidence level (0.0-1.0): 0.85
5. Suggested action: read config.py first
6. Areas of uncertainty: which Python version is targeted
"""

ASSESSMENT = """\
CONFIDENCE ASSESSMENT:
1. Overall confidence score (0.0-1.0): 0.35
2. Supporting factors:
- file exists: 0.9
- tests pass = 0.6
3. Risk factors:
- might overwrite local changes
4. Uncertainties:
- encoding of the file
5. Recommendation (proceed/retry/abort): retry
6. Rationale for recommendation: an abort is not needed yet
"""


class TestExtractScore:
    """Finding a confidence value on a line."""

    def test_ignores_leading_enumerator(self):
        assert extract_score("1. Overall confidence score: 0.7") == 0.7

    def test_skips_out_of_range_numbers(self):
        assert extract_score("Confidence: 7 out of 10, so 0.7") == 0.7

    def test_range_hint_is_not_a_score(self):
        assert extract_score("4. Confidence level (0.0-1.0): 0.2") == 0.2

    def test_no_score(self):
        assert extract_score("Confidence: high") is None


class TestParseThought:
    """Parsing the THOUGHT PROCESS format."""

    def test_full_response(self):
        thought = parse_thought(THOUGHT)

        assert thought.thought_content == THOUGHT
        assert thought.confidence == 0.85
        assert len(thought.reasoning_steps) == 6
        assert thought.reasoning_steps[0].startswith("1. Key factors")
        assert thought.suggested_action == "5. Suggested action: read config.py first"
        assert thought.uncertainty.startswith("6. Areas of uncertainty")

    def test_unparseable_keeps_defaults(self):
        thought = parse_thought("I will just go ahead.")

        assert thought.confidence == 0.5
        assert thought.reasoning_steps == []
        assert thought.suggested_action == ""


class TestParseConfidence:
    """Parsing the CONFIDENCE ASSESSMENT format."""

    def test_full_response(self):
        assessment = parse_confidence(ASSESSMENT)

        assert assessment.score == 0.35
        assert assessment.recommendation == "retry"
        assert assessment.factors == {"file exists": 0.9, "tests pass": 0.6}
        assert assessment.uncertainties == [
            "might overwrite local changes",
            "encoding of the file",
        ]
        assert assessment.metadata["raw_response"] == ASSESSMENT

    def test_template_hint_is_not_the_answer(self):
        """The "(proceed/retry/abort)" hint alone does not pick a recommendation."""
        assessment = parse_confidence("5. Recommendation (proceed/retry/abort): proceed")
        assert assessment.recommendation == "proceed"

    def test_bare_recommendation_line(self):
        assert parse_confidence("Recommendation: ABORT").recommendation == "abort"

    def test_defaults(self):
        assessment = parse_confidence("")

        assert assessment.score == 0.5
        assert assessment.recommendation == "proceed"
        assert assessment.factors == {}
