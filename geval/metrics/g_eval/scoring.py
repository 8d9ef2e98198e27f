"""Score resolution for G-Eval.

A single sampled score token is a noisy point estimate. When the metric is
configured with ``top_logprobs`` the grading prompt is re-issued with
log-probabilities enabled and the final score becomes the average of every
score-like token in the stream, weighted by ``exp(logprob)``.

The scale is integer 0-10 throughout; 5.0 is the neutral fallback.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import structlog

from geval.models.base import BaseJudgeLLM
from geval.metrics.g_eval.schemas import EvaluationResult
from geval.metrics.g_eval.templates import generate_evaluation_prompt
from geval.schemas.llm import GenerateOptions, TokenLogprob
from geval.schemas.metric import GEvalConfig

logger = structlog.get_logger(__name__)

SCORE_MIN = 0
SCORE_MAX = 10
NEUTRAL_SCORE = 5.0

_INTEGER_TOKEN = re.compile(r"^[0-9]+$")


@dataclass(frozen=True)
class ScoreResolution:
    score: float
    cost: float = 0.0


def parse_score_token(token: str) -> int | None:
    """Return the score a token stands for, or None if it is not on the scale."""
    text = token.strip()
    if not _INTEGER_TOKEN.match(text):
        return None
    value = int(text)
    if SCORE_MIN <= value <= SCORE_MAX:
        return value
    return None


def calculate_weighted_score(logprobs: Iterable[TokenLogprob]) -> float:
    """Probability-weighted mean of the score tokens in ``logprobs``.

    Returns NEUTRAL_SCORE when no token parses as a score.
    """
    weighted_sum = 0.0
    total_weight = 0.0
    for entry in logprobs:
        score = parse_score_token(entry.token)
        if score is None:
            continue
        weight = math.exp(entry.logprob)
        weighted_sum += score * weight
        total_weight += weight

    if total_weight <= 0:
        return NEUTRAL_SCORE
    return weighted_sum / total_weight


async def resolve_score(
    result: EvaluationResult,
    config: GEvalConfig,
    evaluation_steps: list[str],
    model: BaseJudgeLLM,
    content: Mapping[str, str] | None = None,
) -> ScoreResolution:
    """Turn the grading judgment into the final score.

    Strict mode and configs without ``top_logprobs`` take ``result.score``
    as-is. Otherwise the grading prompt is rebuilt in graded mode over
    ``content`` (empty by default, so the judge re-derives its score
    distribution from the steps and rubric alone) and sent through
    ``generate_raw`` with log-probabilities. Without log-probabilities in
    the response the sampled score is kept.
    """
    if not config.top_logprobs or config.strict_mode:
        return ScoreResolution(score=result.score)

    prompt = generate_evaluation_prompt(
        evaluation_steps,
        dict(content or {}),
        False,
        config.rubric,
    )
    raw = await model.generate_raw(
        prompt, GenerateOptions(top_logprobs=config.top_logprobs)
    )
    cost = model.calculate_cost(raw.usage) if raw.usage else 0.0

    if not raw.logprobs:
        logger.debug("logprobs_unavailable", model=model.model_name)
        return ScoreResolution(score=result.score, cost=cost)

    score = calculate_weighted_score(raw.logprobs)
    logger.debug(
        "weighted_score",
        sampled=result.score,
        weighted=round(score, 4),
        tokens=len(raw.logprobs),
    )
    return ScoreResolution(score=score, cost=cost)
