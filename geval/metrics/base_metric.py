"""Abstract base for LLM-graded metrics."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from geval.models.base import BaseJudgeLLM
from geval.schemas.metric import MetricConfig, MetricResult
from geval.schemas.test_case import LLMTestCase

ConfigT = TypeVar("ConfigT", bound=MetricConfig)


class BaseMetric(ABC, Generic[ConfigT]):
    """A metric grades one test case at a time with a judge model.

    Tracks the accumulated judge cost across evaluations until ``reset_cost``.
    """

    def __init__(self, model: BaseJudgeLLM, config: ConfigT):
        self.model = model
        self.config = config
        self.evaluation_cost = 0.0

    @abstractmethod
    async def evaluate(self, test_case: LLMTestCase) -> MetricResult:
        """Evaluate a test case. Implementations must not raise."""

    def is_successful(self, score: float) -> bool:
        """Inclusive threshold check."""
        return score >= self.config.threshold

    def get_evaluation_cost(self) -> float:
        return self.evaluation_cost

    def reset_cost(self) -> None:
        self.evaluation_cost = 0.0
