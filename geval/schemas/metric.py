"""Metric configuration and result models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from geval.schemas.test_case import EvaluationParam


class Rubric(BaseModel):
    """One anchor of the scoring scale shown to the judge."""

    score: float
    description: str


class MetricConfig(BaseModel):
    """Settings shared by every metric."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    threshold: float
    strict_mode: bool = False
    verbose: bool = False


class GEvalConfig(MetricConfig):
    """G-Eval configuration.

    Either ``criteria`` (steps are generated once and cached) or
    ``evaluation_steps`` (used as-is) should be provided. Consistency checks
    (non-empty params, no rubric in strict mode) are enforced by ``GEval``.
    """

    name: str = "G-Eval"
    evaluation_params: list[EvaluationParam]
    criteria: str | None = None
    evaluation_steps: list[str] | None = None
    rubric: list[Rubric] | None = None
    top_logprobs: int | None = Field(default=None, ge=1, le=20)


class MetricResult(BaseModel):
    """Final verdict returned by ``evaluate()``."""

    model_config = ConfigDict(frozen=True)

    score: float
    success: bool
    reason: str
    error: str | None = None
    evaluation_cost: float = 0.0

    @classmethod
    def failure(cls, message: str, evaluation_cost: float = 0.0) -> MetricResult:
        return cls(
            score=0.0,
            success=False,
            reason=f"Evaluation failed: {message}",
            error=message,
            evaluation_cost=evaluation_cost,
        )
