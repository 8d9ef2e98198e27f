from geval.metrics.g_eval.g_eval import GEval

__all__ = ["GEval"]
