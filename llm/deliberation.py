"""Prompt templates and response parsing for deliberation requests.

Thought and confidence requests ask the model for a numbered, line-oriented
answer. Parsing is lenient: anything that cannot be read keeps its default.
"""

import re
from typing import Optional

from .message_types import ConfidenceAssessment, ThoughtResponse

THOUGHT_SYSTEM_PROMPT = (
    "You are a careful, analytical assistant that provides structured reasoning "
    "before taking action."
)

THOUGHT_PROMPT = """\
You are an AI assistant that thinks carefully before acting. Please analyze the following situation step by step.

CONTEXT: {context}

CURRENT SITUATION: {prompt}

Please provide your analysis in the following structured format:

THOUGHT PROCESS:
1. Key factors to consider:
2. Potential risks:
3. Potential benefits:
4. Confidence level (0.0-1.0):
5. Suggested action:
6. Areas of uncertainty:

Be thorough in your analysis and provide a confidence score between 0.0 and 1.0."""

CONFIDENCE_SYSTEM_PROMPT = (
    "You are a careful evaluator that provides detailed confidence assessments "
    "for proposed actions."
)

CONFIDENCE_PROMPT = """\
You are an expert evaluator assessing the confidence and risks of proposed actions.

PREVIOUS REASONING: {thought}

PROPOSED ACTION: {proposed_action}

Please provide a detailed confidence assessment in the following format:

CONFIDENCE ASSESSMENT:
1. Overall confidence score (0.0-1.0):
2. Supporting factors:
3. Risk factors:
4. Uncertainties:
5. Recommendation (proceed/retry/abort):
6. Rationale for recommendation:

Be precise with your confidence score and provide clear reasoning."""

_STEP_PREFIX = re.compile(r"^[1-6]\.")
_ENUMERATOR = re.compile(r"^\d+\.$")
_FACTOR = re.compile(r"^-\s*(.+?)\s*[:=]\s*([0-9.]+)\s*$")


def extract_score(line: str) -> Optional[float]:
    """Return the first number in [0, 1] on a line, ignoring a leading "1." marker."""
    words = line.split()
    if words and _ENUMERATOR.match(words[0]):
        words = words[1:]
    for word in words:
        try:
            value = float(word.strip(":,;()[]"))
        except ValueError:
            continue
        if 0.0 <= value <= 1.0:
            return value
    return None


def parse_thought(content: str) -> ThoughtResponse:
    """Parse a thought response in the THOUGHT PROCESS format."""
    thought = ThoughtResponse(thought_content=content)

    for raw_line in content.splitlines():
        line = raw_line.strip()
        lower = line.lower()

        if "confidence" in lower:
            score = extract_score(line)
            if score is not None:
                thought.confidence = score

        if _STEP_PREFIX.match(line):
            thought.reasoning_steps.append(line)

        if "suggested action" in lower:
            thought.suggested_action = line

        if "uncertainty" in lower:
            thought.uncertainty = line

    return thought


def parse_confidence(content: str) -> ConfidenceAssessment:
    """Parse a confidence response in the CONFIDENCE ASSESSMENT format."""
    assessment = ConfidenceAssessment(metadata={"raw_response": content})
    section = ""

    for raw_line in content.splitlines():
        line = raw_line.strip()
        lower = line.lower()

        if "confidence score" in lower:
            score = extract_score(line)
            if score is not None:
                assessment.score = score

        if "recommendation" in lower and not lower.startswith("6."):
            # Prefer the answer after the colon so the "(proceed/retry/abort)"
            # hint in an echoed template line is not mistaken for the answer.
            value = lower.split(":", 1)[1] if ":" in lower else lower
            if "abort" in value:
                assessment.recommendation = "abort"
            elif "retry" in value:
                assessment.recommendation = "retry"
            elif "proceed" in value:
                assessment.recommendation = "proceed"

        if "supporting factors" in lower:
            section = "factors"
            continue
        if "uncertainties" in lower or "risk factors" in lower:
            section = "uncertainties"
            continue
        if _ENUMERATOR.match(line.split(" ", 1)[0] if line else ""):
            section = ""
            continue

        if line.startswith("- "):
            if section == "uncertainties":
                assessment.uncertainties.append(line[2:])
            elif section == "factors":
                match = _FACTOR.match(line)
                if match:
                    weight = extract_score(match.group(2))
                    if weight is not None:
                        assessment.factors[match.group(1)] = weight

    return assessment
