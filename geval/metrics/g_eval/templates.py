"""Prompt templates for G-Eval.

Two prompts: one asks the judge to turn criteria into concrete evaluation
steps, the other asks it to score a test case against those steps.
Scores use an integer 0-10 scale (binary 0/1 in strict mode).
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from geval.schemas.metric import Rubric
from geval.schemas.test_case import EvaluationParam, LLMTestCase

# ---------------------------------------------------------------------------
# Step generation
# ---------------------------------------------------------------------------

EVALUATION_STEPS_TASK = """\
Given the following evaluation parameters: {params}{criteria}

Generate 3-4 concise evaluation steps to evaluate these parameters.
The steps should clearly explain how to assess the quality and relationships between these parameters.

Output your response in the following JSON format:
{{
  "steps": [
    "Step 1 description",
    "Step 2 description",
    "Step 3 description"
  ]
}}"""


# ---------------------------------------------------------------------------
# Grading
# ---------------------------------------------------------------------------

EVALUATION_TASK = """\
You will be given evaluation steps, inputs, and outputs to evaluate.

**Evaluation Steps:**
{steps}

**Test Case:**
{content}{rubric}

Based on the evaluation steps and test case, evaluate the quality.
{scoring_instructions}

Provide your evaluation in the following JSON format:
{{
  "score": <number>,
  "reason": "<detailed explanation of your evaluation>"
}}"""

STRICT_SCORING = "Give a binary score of either 0 (fail) or 1 (pass)."
GRADED_SCORING = "Provide a score from 0 to 10, where 0 is the worst and 10 is the best."


def _param_value(param: EvaluationParam | str) -> str:
    return EvaluationParam(param).value


def format_param_name(param: str) -> str:
    """camelCase -> Title Case (``actualOutput`` -> ``Actual Output``)."""
    spaced = re.sub(r"([A-Z])", r" \1", param)
    return (spaced[:1].upper() + spaced[1:]).strip()


def generate_evaluation_steps_prompt(
    evaluation_params: Iterable[EvaluationParam | str],
    criteria: str | None = None,
) -> str:
    params_text = ", ".join(_param_value(p) for p in evaluation_params)
    criteria_text = f"\n\n**Criteria:**\n{criteria}" if criteria else ""
    return EVALUATION_STEPS_TASK.format(params=params_text, criteria=criteria_text)


def generate_evaluation_prompt(
    evaluation_steps: Iterable[str],
    test_case_content: Mapping[str, str],
    strict_mode: bool,
    rubric: Iterable[Rubric] | None = None,
) -> str:
    """Render the grading prompt.

    Args:
        evaluation_steps: Steps to number and show to the judge.
        test_case_content: Parameter name -> text, as produced by
            ``extract_test_case_content``.
        strict_mode: Ask for a binary 0/1 judgment instead of 0-10.
        rubric: Optional score anchors, rendered one per line.
    """
    steps_text = "\n".join(
        f"{i}. {step}" for i, step in enumerate(evaluation_steps, start=1)
    )
    content_text = "\n\n".join(
        f"**{format_param_name(key)}:**\n{value}"
        for key, value in test_case_content.items()
    )

    rubric_text = ""
    rubric = list(rubric or [])
    if rubric:
        rubric_text = "\n\n**Scoring Rubric:**\n" + "\n".join(
            f"- Score {_format_score(r.score)}: {r.description}" for r in rubric
        )

    return EVALUATION_TASK.format(
        steps=steps_text,
        content=content_text,
        rubric=rubric_text,
        scoring_instructions=STRICT_SCORING if strict_mode else GRADED_SCORING,
    )


def _format_score(score: float) -> str:
    return str(int(score)) if float(score).is_integer() else str(score)


# ---------------------------------------------------------------------------
# Content extraction
# ---------------------------------------------------------------------------


def extract_test_case_content(
    test_case: LLMTestCase | Mapping[str, Any],
    evaluation_params: Iterable[EvaluationParam | str],
) -> dict[str, str]:
    """Map the configured parameters of a test case to prompt text.

    Lists are joined with newlines; other values go through ``str()``.
    Parameters that are absent or None are left out. Never raises.
    """
    content: dict[str, str] = {}
    for raw in evaluation_params:
        param = EvaluationParam(raw)
        if isinstance(test_case, Mapping):
            value = test_case.get(param.value, test_case.get(param.attribute))
        else:
            value = getattr(test_case, param.attribute, None)

        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            content[param.value] = "\n".join(str(v) for v in value)
        else:
            content[param.value] = str(value)
    return content
