"""G-Eval: LLM-graded evaluation of model outputs against custom criteria."""

from geval.errors import (
    ConfigError,
    ExtractionError,
    MissingParameterError,
    NoContentError,
    ProviderError,
    SchemaViolation,
)
from geval.metrics import BaseMetric, GEval
from geval.models import BaseJudgeLLM, LangChainJudge
from geval.schemas import (
    EvaluationParam,
    GEvalConfig,
    LLMTestCase,
    MetricConfig,
    MetricResult,
    Rubric,
)
from geval.utils.json_parser import extract_json, safe_json_parse

__version__ = "0.1.0"

__all__ = [
    "BaseJudgeLLM",
    "BaseMetric",
    "ConfigError",
    "EvaluationParam",
    "ExtractionError",
    "GEval",
    "GEvalConfig",
    "LLMTestCase",
    "LangChainJudge",
    "MetricConfig",
    "MetricResult",
    "MissingParameterError",
    "NoContentError",
    "ProviderError",
    "Rubric",
    "SchemaViolation",
    "extract_json",
    "safe_json_parse",
]
