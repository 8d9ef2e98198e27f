"""Judge model port: the capabilities the G-Eval engine depends on."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from geval.config import ModelPricing
from geval.schemas.descriptor import SchemaDescriptor
from geval.schemas.llm import GenerateOptions, RawModelResponse, TokenUsage


@runtime_checkable
class SupportsSessionReset(Protocol):
    """Optional capability of stateful ports.

    ``GEval`` checks for it once at construction and calls ``reset_session``
    before every evaluation so that one test case never leaks context into
    the next.
    """

    def reset_session(self) -> None: ...


class BaseJudgeLLM(ABC):
    """Abstract judge model.

    Implementations own transport, retry/backoff and timeouts. After every
    call ``last_usage`` holds the token usage reported for that call (summed
    over any internal re-asks), or None when the provider reported none.
    It is also set when a call raises after the provider answered, so that
    callers can charge for failed attempts.
    """

    def __init__(
        self,
        model_name: str,
        pricing: Mapping[str, ModelPricing] | None = None,
    ):
        self.model_name = model_name
        self.pricing: dict[str, ModelPricing] = dict(pricing or {})
        self.last_usage: TokenUsage | None = None

    @abstractmethod
    async def generate(
        self, prompt: str, options: GenerateOptions | None = None
    ) -> str:
        """Generate free text from a prompt."""

    @abstractmethod
    async def generate_structured(
        self,
        prompt: str,
        schema: SchemaDescriptor,
        options: GenerateOptions | None = None,
    ) -> Any:
        """Generate a value conforming to ``schema``.

        Raises:
            SchemaViolation: if the output cannot be made to conform.
        """

    @abstractmethod
    async def generate_raw(
        self, prompt: str, options: GenerateOptions | None = None
    ) -> RawModelResponse:
        """Generate text plus usage and, if requested, token log-probabilities.

        Raises:
            NoContentError: if the provider returned empty content.
        """

    def get_model_name(self) -> str:
        return self.model_name

    def calculate_cost(self, usage: TokenUsage) -> float:
        """Estimated USD cost of ``usage``; 0.0 for models without a price entry.

        Usage is always priced against ``model_name``. When a fallback
        provider answered the call, the estimate is the primary model's
        price for the tokens the fallback reported.
        """
        pricing = self.pricing.get(self.model_name)
        if pricing is None:
            return 0.0

        input_cost = usage.prompt_tokens / 1_000_000 * pricing.input
        output_cost = usage.completion_tokens / 1_000_000 * pricing.output
        return input_cost + output_cost
