"""G-Eval: a criteria-driven, LLM-graded metric.

Pipeline per ``evaluate()`` call:
1. reset the judge session (ports that support it)
2. check that every configured parameter is present on the test case
3. generate evaluation steps from the criteria (once per instance, cached)
4. grade the test case against the steps (structured ``{score, reason}``)
5. resolve the final score (optionally log-probability weighted)
6. compare against the threshold

``evaluate()`` never raises: missing parameters and judge failures come
back as a failed ``MetricResult`` with ``error`` set, so a batch run is
never aborted by one bad case.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog

from geval.errors import ConfigError, MissingParameterError
from geval.metrics.base_metric import BaseMetric
from geval.metrics.g_eval.schemas import (
    EVALUATION_RESULT_SCHEMA,
    EVALUATION_STEPS_SCHEMA,
    EvaluationResult,
    EvaluationSteps,
)
from geval.metrics.g_eval.scoring import SCORE_MAX, SCORE_MIN, resolve_score
from geval.metrics.g_eval.templates import (
    extract_test_case_content,
    generate_evaluation_prompt,
    generate_evaluation_steps_prompt,
)
from geval.models.base import BaseJudgeLLM, SupportsSessionReset
from geval.schemas.metric import GEvalConfig, MetricResult
from geval.schemas.test_case import EvaluationParam, LLMTestCase

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class _StepsPending:
    pass


@dataclass(frozen=True)
class _StepsReady:
    steps: tuple[str, ...]


_StepsState = _StepsPending | _StepsReady


def _param_missing(test_case: LLMTestCase | Mapping[str, Any], param: EvaluationParam) -> bool:
    if isinstance(test_case, Mapping):
        return test_case.get(param.value, test_case.get(param.attribute)) is None
    return getattr(test_case, param.attribute, None) is None


class GEval(BaseMetric[GEvalConfig]):
    """LLM-graded metric over any combination of test-case parameters.

    Args:
        model: Judge model port.
        config: A GEvalConfig, or a mapping validated into one
            (camelCase and snake_case keys are both accepted).

    Raises:
        ConfigError: if no evaluation parameters are configured, or a
            rubric is combined with strict mode.

    One instance may be awaited concurrently: step generation is guarded
    by a lock. Ports that keep session state are reset at the start of
    every evaluation, so concurrent use of a stateful port is unsupported.
    """

    def __init__(self, model: BaseJudgeLLM, config: GEvalConfig | Mapping[str, Any]):
        if not isinstance(config, GEvalConfig):
            config = GEvalConfig.model_validate(config)

        if not config.evaluation_params:
            raise ConfigError("At least one evaluation parameter must be specified")
        if config.strict_mode and config.rubric:
            raise ConfigError("Rubric is not supported in strict mode")

        super().__init__(model, config)
        self._resettable = isinstance(model, SupportsSessionReset)
        self._steps_lock = asyncio.Lock()
        self._steps: _StepsState = _StepsPending()
        if config.evaluation_steps:
            self._steps = _StepsReady(tuple(config.evaluation_steps))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.config.name

    def get_name(self) -> str:
        return self.config.name

    def get_evaluation_steps(self) -> list[str] | None:
        """Cached evaluation steps, or None before the first generation."""
        if isinstance(self._steps, _StepsReady):
            return list(self._steps.steps)
        return None

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def evaluate(self, test_case: LLMTestCase | Mapping[str, Any]) -> MetricResult:
        """Grade ``test_case``. Never raises."""
        try:
            if self._resettable:
                self.model.reset_session()
            return await self._evaluate(test_case)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.warning(
                "geval_failed", metric=self.name, error=message, exc_info=True
            )
            return MetricResult.failure(message, self.evaluation_cost)

    async def _evaluate(self, test_case: LLMTestCase | Mapping[str, Any]) -> MetricResult:
        missing = self.missing_parameters(test_case)
        if missing:
            error = MissingParameterError(missing)
            logger.info("geval_missing_parameters", metric=self.name, missing=missing)
            return MetricResult.failure(str(error), self.evaluation_cost)

        steps = await self._ensure_steps()
        content = extract_test_case_content(test_case, self.config.evaluation_params)
        result = await self._grade(steps, content)

        self.model.last_usage = None
        try:
            resolution = await resolve_score(result, self.config, steps, self.model)
        except Exception:
            self._charge_last_usage()
            raise
        self.evaluation_cost += resolution.cost

        score = self._clamp(resolution.score)
        success = self.is_successful(score)

        if self.config.verbose:
            logger.info(
                "geval_verbose",
                metric=self.name,
                steps=steps,
                content_keys=list(content),
                sampled_score=result.score,
                reason=result.reason,
            )
        logger.info(
            "geval_evaluated",
            metric=self.name,
            score=score,
            success=success,
            cost=self.evaluation_cost,
        )
        return MetricResult(
            score=score,
            success=success,
            reason=result.reason,
            evaluation_cost=self.evaluation_cost,
        )

    def missing_parameters(self, test_case: LLMTestCase | Mapping[str, Any]) -> list[str]:
        """Names of every configured parameter absent or None on ``test_case``."""
        return [
            param.value
            for param in self.config.evaluation_params
            if _param_missing(test_case, param)
        ]

    async def _ensure_steps(self) -> list[str]:
        if isinstance(self._steps, _StepsReady):
            return list(self._steps.steps)

        async with self._steps_lock:
            # Another evaluation may have generated them while we waited.
            if isinstance(self._steps, _StepsReady):
                return list(self._steps.steps)

            prompt = generate_evaluation_steps_prompt(
                self.config.evaluation_params, self.config.criteria
            )
            data = await self._charged(
                self.model.generate_structured(prompt, EVALUATION_STEPS_SCHEMA)
            )
            parsed = EvaluationSteps.model_validate(data)

            self._steps = _StepsReady(tuple(parsed.steps))
            logger.info(
                "evaluation_steps_generated", metric=self.name, count=len(parsed.steps)
            )
            return list(parsed.steps)

    async def _grade(self, steps: list[str], content: dict[str, str]) -> EvaluationResult:
        prompt = generate_evaluation_prompt(
            steps, content, self.config.strict_mode, self.config.rubric
        )
        data = await self._charged(
            self.model.generate_structured(prompt, EVALUATION_RESULT_SCHEMA)
        )
        return EvaluationResult.model_validate(data)

    async def _charged(self, call: Awaitable[T]) -> T:
        """Await a port call and charge its usage, whether or not it raised."""
        self.model.last_usage = None
        try:
            return await call
        finally:
            self._charge_last_usage()

    def _charge_last_usage(self) -> None:
        usage = self.model.last_usage
        if usage is not None:
            self.evaluation_cost += self.model.calculate_cost(usage)

    def _clamp(self, score: float) -> float:
        if self.config.strict_mode:
            return 1.0 if score >= 0.5 else 0.0
        return float(min(max(score, SCORE_MIN), SCORE_MAX))
