"""Pydantic data model shared by the metric, the model port and the runner."""

from geval.schemas.descriptor import SchemaDescriptor
from geval.schemas.llm import (
    GenerateOptions,
    RawModelResponse,
    TokenLogprob,
    TokenUsage,
    TopLogprob,
)
from geval.schemas.metric import GEvalConfig, MetricConfig, MetricResult, Rubric
from geval.schemas.test_case import EvaluationParam, LLMTestCase

__all__ = [
    "EvaluationParam",
    "GEvalConfig",
    "GenerateOptions",
    "LLMTestCase",
    "MetricConfig",
    "MetricResult",
    "RawModelResponse",
    "Rubric",
    "SchemaDescriptor",
    "TokenLogprob",
    "TokenUsage",
    "TopLogprob",
]
