"""Tests for the G-Eval engine (unit tests with a scripted judge)."""

from __future__ import annotations

import asyncio
import json

import pytest

from geval.errors import ConfigError, NoContentError, ProviderError, SchemaViolation
from geval.metrics.g_eval import GEval
from geval.models.langchain_judge import LangChainJudge
from geval.schemas.llm import RawModelResponse, TokenLogprob, TokenUsage
from geval.schemas.metric import GEvalConfig, Rubric
from geval.schemas.test_case import EvaluationParam, LLMTestCase

from fakes import PRICING, FakeRunnable, ScriptedJudge, SessionJudge, ai_message

STEPS = {"steps": ["Check correctness", "Check completeness", "Check clarity"]}


def _case(**overrides) -> LLMTestCase:
    data = {"input": "2+2?", "actual_output": "4"}
    data.update(overrides)
    return LLMTestCase(**data)


def _config(**overrides) -> dict:
    data = {
        "name": "Correctness",
        "evaluationParams": ["input", "actualOutput"],
        "criteria": "Is the answer correct?",
        "threshold": 0.7,
    }
    data.update(overrides)
    return data


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_empty_params_rejected(self, judge):
        with pytest.raises(ConfigError, match="At least one evaluation parameter"):
            GEval(judge, _config(evaluationParams=[]))

    def test_strict_with_rubric_rejected(self, judge):
        rubric = [{"score": 0, "description": "bad"}, {"score": 1, "description": "good"}]
        with pytest.raises(ConfigError, match="strict mode"):
            GEval(judge, _config(strictMode=True, rubric=rubric))

    def test_rubric_without_strict_accepted(self, judge):
        metric = GEval(judge, _config(rubric=[{"score": 10, "description": "great"}]))
        assert metric.config.rubric == [Rubric(score=10, description="great")]

    def test_accepts_config_model(self, judge):
        config = GEvalConfig(
            name="Relevancy",
            evaluation_params=[EvaluationParam.INPUT],
            threshold=5,
        )
        metric = GEval(judge, config)
        assert metric.get_name() == "Relevancy"
        assert metric.name == "Relevancy"

    def test_snake_case_param_names(self, judge):
        metric = GEval(judge, _config(evaluationParams=["input", "actual_output"]))
        assert metric.config.evaluation_params == [
            EvaluationParam.INPUT,
            EvaluationParam.ACTUAL_OUTPUT,
        ]

    def test_supplied_steps_cached_immediately(self, judge):
        metric = GEval(judge, _config(evaluationSteps=["a", "b"]))
        assert metric.get_evaluation_steps() == ["a", "b"]

    def test_no_steps_before_first_evaluation(self, judge):
        assert GEval(judge, _config()).get_evaluation_steps() is None


# ---------------------------------------------------------------------------
# End-to-end scenarios
# ---------------------------------------------------------------------------


class TestEvaluate:
    @pytest.mark.asyncio
    async def test_scenario_a_passes(self, judge):
        judge.structured = [STEPS, {"score": 9, "reason": "correct"}]
        metric = GEval(judge, _config())

        result = await metric.evaluate(_case())

        assert result.score == 9
        assert result.success is True
        assert result.reason == "correct"
        assert result.error is None

    @pytest.mark.asyncio
    async def test_scenario_b_strict_zero_fails(self, judge):
        judge.structured = [STEPS, {"score": 0, "reason": "wrong"}]
        metric = GEval(judge, _config(strictMode=True, threshold=1))

        result = await metric.evaluate(_case(actual_output="5"))

        assert result.score == 0
        assert result.success is False
        assert "binary score" in judge.prompts("structured")[1]

    @pytest.mark.asyncio
    async def test_strict_score_is_binary(self, judge):
        judge.structured = [STEPS, {"score": 1, "reason": "pass"}]
        metric = GEval(judge, _config(strictMode=True, threshold=1))

        result = await metric.evaluate(_case())

        assert result.score in (0.0, 1.0)
        assert result.success is True

    @pytest.mark.asyncio
    async def test_scenario_c_missing_expected_output(self, judge):
        metric = GEval(judge, _config(evaluationParams=["input", "actualOutput", "expectedOutput"]))

        result = await metric.evaluate(_case())

        assert result.score == 0
        assert result.success is False
        assert "expectedOutput" in result.error
        assert result.reason.startswith("Evaluation failed:")
        assert judge.calls == []

    @pytest.mark.asyncio
    async def test_lists_every_missing_parameter(self, judge):
        metric = GEval(
            judge,
            _config(evaluationParams=["input", "expectedOutput", "context", "toolsCalled"]),
        )

        result = await metric.evaluate(_case())

        assert result.error == (
            "Test case is missing required parameters: expectedOutput, context, toolsCalled"
        )

    @pytest.mark.asyncio
    async def test_mapping_test_case(self, judge):
        judge.structured = [STEPS, {"score": 6, "reason": "fine"}]
        metric = GEval(judge, _config())

        result = await metric.evaluate({"input": "Q", "actualOutput": "A"})

        assert result.score == 6
        assert "**Actual Output:**\nA" in judge.prompts("structured")[1]

    @pytest.mark.asyncio
    async def test_grading_prompt_contains_steps_and_content(self, judge):
        judge.structured = [STEPS, {"score": 7, "reason": "ok"}]
        metric = GEval(judge, _config(evaluationParams=["input", "actualOutput", "context"]))

        await metric.evaluate(_case(context=["math facts", "more facts"]))

        steps_prompt, grading_prompt = judge.prompts("structured")
        assert "input, actualOutput, context" in steps_prompt
        assert "Is the answer correct?" in steps_prompt
        assert "1. Check correctness" in grading_prompt
        assert "**Context:**\nmath facts\nmore facts" in grading_prompt

    @pytest.mark.asyncio
    async def test_score_clamped_to_scale(self, judge):
        judge.structured = [STEPS, {"score": 14, "reason": "overflow"}]
        result = await GEval(judge, _config()).evaluate(_case())
        assert result.score == 10


# ---------------------------------------------------------------------------
# Threshold
# ---------------------------------------------------------------------------


class TestThreshold:
    def test_inclusive(self, judge):
        metric = GEval(judge, _config(threshold=7))
        assert metric.is_successful(7) is True
        assert metric.is_successful(6.999) is False

    def test_monotonic(self, judge):
        metric = GEval(judge, _config(threshold=5))
        scores = [i / 4 for i in range(0, 41)]
        verdicts = [metric.is_successful(s) for s in scores]
        first_pass = verdicts.index(True)
        assert all(verdicts[first_pass:])
        assert not any(verdicts[:first_pass])


# ---------------------------------------------------------------------------
# Steps memoization and session reset
# ---------------------------------------------------------------------------


class TestStepsCache:
    @pytest.mark.asyncio
    async def test_steps_generated_once(self, judge):
        judge.structured = [
            STEPS,
            {"score": 8, "reason": "a"},
            {"score": 3, "reason": "b"},
        ]
        metric = GEval(judge, _config())

        await metric.evaluate(_case())
        first = metric.get_evaluation_steps()
        await metric.evaluate(_case(actual_output="5"))

        assert metric.get_evaluation_steps() == first == STEPS["steps"]
        assert len(judge.prompts("structured")) == 3

    @pytest.mark.asyncio
    async def test_too_few_generated_steps_not_cached(self, judge):
        judge.structured = [{"steps": ["Only one"]}]
        metric = GEval(judge, _config())

        result = await metric.evaluate(_case())

        assert result.success is False
        assert "steps" in result.error
        assert metric.get_evaluation_steps() is None

    @pytest.mark.asyncio
    async def test_supplied_steps_skip_generation(self, judge):
        judge.structured = [{"score": 8, "reason": "a"}]
        metric = GEval(judge, _config(evaluationSteps=["Only step"]))

        await metric.evaluate(_case())

        assert len(judge.calls) == 1
        assert "1. Only step" in judge.prompts("structured")[0]

    @pytest.mark.asyncio
    async def test_failed_generation_not_cached(self, judge):
        judge.structured = [
            ProviderError("boom"),
            STEPS,
            {"score": 8, "reason": "a"},
        ]
        metric = GEval(judge, _config())

        first = await metric.evaluate(_case())
        assert first.error == "boom"
        assert metric.get_evaluation_steps() is None

        second = await metric.evaluate(_case())
        assert second.success is True
        assert metric.get_evaluation_steps() == STEPS["steps"]

    @pytest.mark.asyncio
    async def test_concurrent_evaluations_generate_once(self, judge):
        judge.structured = [STEPS] + [{"score": 8, "reason": "x"}] * 3
        metric = GEval(judge, _config())

        results = await asyncio.gather(*(metric.evaluate(_case()) for _ in range(3)))

        assert all(r.success for r in results)
        assert sum("Generate 3-4" in p for p in judge.prompts("structured")) == 1

    @pytest.mark.asyncio
    async def test_session_reset_before_each_evaluation(self, judge):
        judge.structured = [STEPS, {"score": 8, "reason": "a"}, {"score": 8, "reason": "b"}]
        metric = GEval(judge, _config())

        await metric.evaluate(_case())
        await metric.evaluate(_case())

        assert judge.resets == 2

    @pytest.mark.asyncio
    async def test_stateless_port_is_fine(self, stateless_judge):
        stateless_judge.structured = [STEPS, {"score": 8, "reason": "a"}]
        result = await GEval(stateless_judge, _config()).evaluate(_case())
        assert result.success is True


# ---------------------------------------------------------------------------
# Cost accounting
# ---------------------------------------------------------------------------


class TestCost:
    USAGE = TokenUsage(prompt_tokens=500_000, completion_tokens=250_000, total_tokens=750_000)

    @pytest.mark.asyncio
    async def test_accumulates_steps_and_grading_cost(self):
        judge = SessionJudge(
            structured=[STEPS, {"score": 8, "reason": "a"}], usage=self.USAGE
        )
        metric = GEval(judge, _config())

        result = await metric.evaluate(_case())

        # two calls x (0.5 * $1 + 0.25 * $2)
        assert result.evaluation_cost == pytest.approx(2.0)
        assert metric.get_evaluation_cost() == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_cost_monotonic_across_calls(self):
        judge = SessionJudge(
            structured=[STEPS, {"score": 8, "reason": "a"}, {"score": 2, "reason": "b"}],
            usage=self.USAGE,
        )
        metric = GEval(judge, _config())

        first = await metric.evaluate(_case())
        second = await metric.evaluate(_case())

        assert second.evaluation_cost > first.evaluation_cost

    @pytest.mark.asyncio
    async def test_reset_cost_keeps_steps(self):
        judge = SessionJudge(structured=[STEPS, {"score": 8, "reason": "a"}], usage=self.USAGE)
        metric = GEval(judge, _config())
        await metric.evaluate(_case())

        metric.reset_cost()

        assert metric.get_evaluation_cost() == 0.0
        assert metric.get_evaluation_steps() == STEPS["steps"]

    @pytest.mark.asyncio
    async def test_no_usage_means_no_cost(self, judge):
        judge.structured = [STEPS, {"score": 8, "reason": "a"}]
        result = await GEval(judge, _config()).evaluate(_case())
        assert result.evaluation_cost == 0.0

    @pytest.mark.asyncio
    async def test_failed_call_is_still_charged(self):
        judge = SessionJudge(
            structured=[STEPS, SchemaViolation("Missing required field: score")],
            usage=self.USAGE,
        )
        result = await GEval(judge, _config()).evaluate(_case())
        assert result.success is False
        assert result.error == "Missing required field: score"
        # steps call + the failed grading call
        assert result.evaluation_cost == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_failed_logprob_call_is_still_charged(self):
        judge = SessionJudge(
            structured=[STEPS, {"score": 8, "reason": "a"}],
            raw=[NoContentError("No content in response")],
            usage=self.USAGE,
        )
        result = await GEval(judge, _config(topLogprobs=5)).evaluate(_case())
        assert result.error == "No content in response"
        assert result.evaluation_cost == pytest.approx(3.0)

    @pytest.mark.asyncio
    async def test_unbilled_provider_error_adds_nothing(self):
        judge = SessionJudge(
            structured=[STEPS, {"score": 8, "reason": "a"}],
            usage=self.USAGE,
        )
        metric = GEval(judge, _config())
        await metric.evaluate(_case())

        judge.usage = None
        judge.structured = [ProviderError("API error: 503")]
        result = await metric.evaluate(_case())

        assert result.evaluation_cost == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_langchain_judge_failure_charges_every_attempt(self):
        usage = {"input_tokens": 1_000_000, "output_tokens": 0, "total_tokens": 1_000_000}
        runnable = FakeRunnable([
            ai_message(json.dumps(STEPS), usage=usage),
            ai_message("garbage", usage=usage),
            ai_message("still garbage", usage=usage),
        ])
        judge = LangChainJudge(
            "judge-model",
            pricing=PRICING,
            session_memory=False,
            llm_factory=lambda **_: runnable,
        )

        result = await GEval(judge, _config()).evaluate(_case())

        assert "Structured output invalid" in result.error
        assert result.evaluation_cost == pytest.approx(3.0)


# ---------------------------------------------------------------------------
# Failure conversion
# ---------------------------------------------------------------------------


class TestNeverRaises:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            ProviderError("API error: 500"),
            SchemaViolation("Expected number at score, got str"),
            NoContentError("No content in response"),
            RuntimeError("unexpected"),
        ],
    )
    async def test_port_errors_become_failed_results(self, judge, error):
        judge.structured = [STEPS, error]
        result = await GEval(judge, _config()).evaluate(_case())

        assert result.score == 0
        assert result.success is False
        assert result.error == str(error)
        assert result.reason == f"Evaluation failed: {error}"

    @pytest.mark.asyncio
    async def test_bad_result_shape_becomes_failed_result(self, judge):
        judge.structured = [STEPS, {"score": "high", "reason": "x"}]
        result = await GEval(judge, _config()).evaluate(_case())
        assert result.success is False
        assert "Expected number" in result.error

    @pytest.mark.asyncio
    async def test_logprob_call_failure_becomes_failed_result(self, judge):
        judge.structured = [STEPS, {"score": 8, "reason": "a"}]
        judge.raw = [NoContentError("No content in response")]
        result = await GEval(judge, _config(topLogprobs=5)).evaluate(_case())
        assert result.error == "No content in response"


# ---------------------------------------------------------------------------
# Log-probability weighting through the engine
# ---------------------------------------------------------------------------


class TestLogprobScoring:
    @pytest.mark.asyncio
    async def test_weighted_score_used(self, judge):
        judge.structured = [STEPS, {"score": 9, "reason": "good"}]
        judge.raw = [
            RawModelResponse(
                content='{"score": 9}',
                logprobs=[
                    TokenLogprob(token="9", logprob=-0.105),
                    TokenLogprob(token="9", logprob=-2.3),
                ],
            )
        ]
        metric = GEval(judge, _config(topLogprobs=5, threshold=8))

        result = await metric.evaluate(_case())

        assert result.score == pytest.approx(9.0)
        assert result.success is True
        assert result.reason == "good"

    @pytest.mark.asyncio
    async def test_strict_mode_skips_logprob_call(self, judge):
        judge.structured = [STEPS, {"score": 1, "reason": "ok"}]
        metric = GEval(judge, _config(strictMode=True, topLogprobs=5, threshold=1))

        result = await metric.evaluate(_case())

        assert result.score == 1
        assert judge.prompts("raw") == []
