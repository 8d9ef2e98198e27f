"""LLM-graded evaluation metrics."""

from geval.metrics.base_metric import BaseMetric
from geval.metrics.g_eval import GEval

__all__ = ["BaseMetric", "GEval"]
