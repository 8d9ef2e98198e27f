"""Judge model port backed by LangChain chat models.

Wraps the runnables built by ``create_judge_llm`` and translates between
LangChain messages and the port's types (``RawModelResponse``,
``TokenUsage``, ``TokenLogprob``). Structured generation parses with the
JSON extraction ladder, validates against the schema descriptor and, on
failure, re-asks a JSON fixer prompt before giving up.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from typing import Any

import structlog
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_core.runnables import Runnable

from geval.config import ModelPricing, Settings, get_judge_settings
from geval.errors import ExtractionError, ModelError, NoContentError, ProviderError, SchemaViolation
from geval.models.base import BaseJudgeLLM
from geval.models.factory import create_judge_llm, message_text
from geval.schemas.descriptor import SchemaDescriptor
from geval.schemas.llm import (
    GenerateOptions,
    RawModelResponse,
    TokenLogprob,
    TokenUsage,
)
from geval.utils.json_parser import extract_json

logger = structlog.get_logger(__name__)

JSON_FIXER_SYSTEM = (
    "You are a JSON fixer. Return ONLY valid JSON that matches the given schema. "
    "Do not include markdown, explanations, or extra keys."
)

JSON_FIXER_TASK = """\
Schema JSON:
{schema}

Invalid output:
{content}

Recent parsing/validation errors:
- {errors}"""


def _usage_from_message(message: BaseMessage) -> TokenUsage | None:
    usage = getattr(message, "usage_metadata", None)
    if not usage:
        return None
    return TokenUsage(
        prompt_tokens=usage.get("input_tokens", 0),
        completion_tokens=usage.get("output_tokens", 0),
        total_tokens=usage.get("total_tokens", 0),
    )


def _logprobs_from_message(message: BaseMessage) -> list[TokenLogprob] | None:
    logprobs = (message.response_metadata or {}).get("logprobs")
    if not logprobs:
        return None
    content = logprobs.get("content") if isinstance(logprobs, dict) else logprobs
    if not content:
        return None
    return [TokenLogprob.model_validate(entry) for entry in content]


def _add_usage(total: TokenUsage | None, usage: TokenUsage | None) -> TokenUsage | None:
    if usage is None:
        return total
    if total is None:
        return usage
    return TokenUsage(
        prompt_tokens=total.prompt_tokens + usage.prompt_tokens,
        completion_tokens=total.completion_tokens + usage.completion_tokens,
        total_tokens=total.total_tokens + usage.total_tokens,
    )


def _parse_structured(content: str, schema: SchemaDescriptor) -> Any:
    data = extract_json(content)
    schema.validate_instance(data)
    return data


class LangChainJudge(BaseJudgeLLM):
    """Judge LLM using LangChain chat models with fallbacks and retries.

    Args:
        model_name: Primary model. None = ``[defaults].model``.
        pricing: Price table (USD per 1M tokens). None = ``[pricing]``.
        session_memory: Replay earlier turns of the current session to the
            model. None = ``[session].memory``. ``reset_session`` clears it.
        settings: Optional Settings with API keys; loaded from env if omitted.
        llm_factory: Builds a runnable for a set of generation options.
    """

    def __init__(
        self,
        model_name: str | None = None,
        *,
        pricing: Mapping[str, ModelPricing] | None = None,
        session_memory: bool | None = None,
        settings: Settings | None = None,
        llm_factory: Callable[..., Runnable] = create_judge_llm,
    ):
        judge_settings = get_judge_settings()
        super().__init__(
            model_name or judge_settings.defaults.model,
            judge_settings.pricing if pricing is None else pricing,
        )
        self._settings = settings
        self._llm_factory = llm_factory
        self._native_structured = judge_settings.defaults.native_structured_output
        self._json_fix_attempts = max(1, judge_settings.json_fix.max_attempts)
        self._session_memory = (
            judge_settings.session.memory if session_memory is None else session_memory
        )
        self._history: list[BaseMessage] = []
        self._runnables: dict[str, Runnable] = {}

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def reset_session(self) -> None:
        """Forget earlier turns so the next call starts a fresh conversation."""
        self._history.clear()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _get_llm(
        self,
        options: GenerateOptions,
        response_format: dict[str, Any] | None = None,
    ) -> Runnable:
        key = json.dumps(
            [options.model_dump(), response_format], sort_keys=True, default=str
        )
        if key not in self._runnables:
            self._runnables[key] = self._llm_factory(
                model=self.model_name,
                temperature=options.temperature,
                max_tokens=options.max_tokens,
                top_p=options.top_p,
                top_logprobs=options.top_logprobs,
                response_format=response_format,
                settings=self._settings,
            )
        return self._runnables[key]

    async def _invoke(
        self,
        messages: list[BaseMessage],
        options: GenerateOptions,
        response_format: dict[str, Any] | None = None,
    ) -> AIMessage:
        llm = self._get_llm(options, response_format)
        if self._session_memory:
            messages = [*self._history, *messages]
        try:
            response = await llm.ainvoke(messages)
        except ModelError:
            raise
        except Exception as exc:
            logger.warning("judge_call_failed", model=self.model_name, error=str(exc))
            raise ProviderError(str(exc)) from exc

        if self._session_memory:
            self._history.extend([messages[-1], response])
        return response

    # ------------------------------------------------------------------
    # Port
    # ------------------------------------------------------------------

    async def generate(
        self, prompt: str, options: GenerateOptions | None = None
    ) -> str:
        self.last_usage = None
        response = await self._invoke([HumanMessage(content=prompt)], options or GenerateOptions())
        self.last_usage = _usage_from_message(response)
        return message_text(response)

    async def generate_raw(
        self, prompt: str, options: GenerateOptions | None = None
    ) -> RawModelResponse:
        options = options or GenerateOptions()
        self.last_usage = None
        response = await self._invoke([HumanMessage(content=prompt)], options)
        # Recorded before the empty-content check; empty completions are billed too.
        self.last_usage = _usage_from_message(response)

        content = message_text(response)
        if not content:
            raise NoContentError("No content in response")

        return RawModelResponse(
            content=content,
            usage=self.last_usage,
            logprobs=_logprobs_from_message(response) if options.top_logprobs else None,
        )

    async def generate_structured(
        self,
        prompt: str,
        schema: SchemaDescriptor,
        options: GenerateOptions | None = None,
    ) -> Any:
        """Generate JSON matching ``schema``, re-asking a fixer on bad output.

        Strategy:
        1) Primary model call (with native json_schema format when enabled)
        2) Extract JSON + validate against the descriptor
        3) If invalid, ask the fixer with schema and error memory, retry parse
        """
        options = options or GenerateOptions()
        json_schema = schema.to_json_schema()
        response_format = None
        if self._native_structured:
            response_format = {
                "type": "json_schema",
                "json_schema": {
                    "name": "structured_output",
                    "strict": True,
                    "schema": json_schema,
                },
            }

        self.last_usage = None
        response = await self._invoke(
            [HumanMessage(content=prompt)], options, response_format
        )
        # Running total over the primary call and every fixer re-ask, kept
        # current when a SchemaViolation is raised.
        self.last_usage = _usage_from_message(response)
        content = message_text(response)
        errors: list[str] = []

        for attempt in range(1, self._json_fix_attempts + 1):
            try:
                return _parse_structured(content, schema)
            except (ExtractionError, SchemaViolation) as exc:
                errors.append(str(exc))
                if attempt >= self._json_fix_attempts:
                    raise SchemaViolation(
                        f"Structured output invalid after {attempt} attempt(s). "
                        f"Last error: {exc}"
                    ) from exc

                logger.info("structured_output_fix", attempt=attempt, error=str(exc))
                fixer_messages = [
                    SystemMessage(content=JSON_FIXER_SYSTEM),
                    HumanMessage(
                        content=JSON_FIXER_TASK.format(
                            schema=json.dumps(json_schema, ensure_ascii=True),
                            content=content,
                            errors="\n- ".join(errors),
                        )
                    ),
                ]
                fixed = await self._invoke(
                    fixer_messages, GenerateOptions(temperature=0.0)
                )
                self.last_usage = _add_usage(self.last_usage, _usage_from_message(fixed))
                content = message_text(fixed)
