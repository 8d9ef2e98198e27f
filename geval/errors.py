"""Exception taxonomy for the G-Eval metric.

Configuration errors are raised at construction time. Everything raised
while evaluating a test case is caught by ``GEval.evaluate()`` and turned
into a failed ``MetricResult``.
"""

from __future__ import annotations


class GEvalError(Exception):
    """Base class for all errors raised by this package."""


class ConfigError(GEvalError, ValueError):
    """Invalid metric configuration (empty params, rubric with strict mode)."""


class MissingParameterError(GEvalError):
    """A configured evaluation parameter is absent from a test case."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(
            f"Test case is missing required parameters: {', '.join(self.missing)}"
        )


class ExtractionError(GEvalError, ValueError):
    """No parseable JSON could be recovered from model output."""


class ModelError(GEvalError):
    """Base class for failures raised by a judge model port."""


class SchemaViolation(ModelError):
    """Model output could not be made to conform to the requested schema."""


class NoContentError(ModelError):
    """The provider returned an empty completion."""


class ProviderError(ModelError):
    """Transport or API failure reported by the underlying provider."""
