"""Judge LLM factory with fallback provider chain.

Primary: any OpenAI-compatible endpoint (OpenAI, OpenRouter, vLLM, ...)
Fallback 1: Groq (cloud, fast inference)
Fallback 2: Ollama (local)

Model, temperature, retries and fallback providers are configured in geval.toml.

Each provider is piped with an empty-content validator so that blank
completions cascade to the next provider via with_fallbacks(). The whole
chain is wrapped in with_retry() using the [retry] table.
"""

from __future__ import annotations

from typing import Any

import structlog
from langchain_core.messages import BaseMessage
from langchain_core.runnables import Runnable, RunnableLambda
from langchain_openai import ChatOpenAI

from geval.config import Settings, get_judge_settings, get_settings
from geval.errors import NoContentError

logger = structlog.get_logger(__name__)


def message_text(message: BaseMessage) -> str:
    """Plain text of a chat message whose content may be a list of blocks."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


# ---------------------------------------------------------------------------
# Empty content validator
# ---------------------------------------------------------------------------


def _make_content_validator() -> RunnableLambda:
    """Create a Runnable that raises if the LLM returned no text.

    When piped after an LLM (``llm | validator``), an empty response raises
    ``NoContentError`` which ``with_fallbacks()`` catches to try the next
    provider in the chain.
    """

    def _validate(response):  # noqa: ANN001
        if not message_text(response).strip():
            raise NoContentError("No content in response")
        return response

    return RunnableLambda(_validate)


# ---------------------------------------------------------------------------
# LLM factory
# ---------------------------------------------------------------------------


def create_judge_llm(
    model: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
    top_p: float | None = None,
    top_logprobs: int | None = None,
    response_format: dict[str, Any] | None = None,
    settings: Settings | None = None,
) -> Runnable:
    """Create the judge LLM with optional fallback providers and retries.

    Args:
        model: Primary model name. None = ``[defaults].model`` in geval.toml.
        temperature: Sampling temperature. None = geval.toml.
        max_tokens: Maximum tokens in response.
        top_p: Nucleus sampling cutoff.
        top_logprobs: Request per-token log-probabilities with this many
            alternatives. Only the OpenAI-compatible primary supports it.
        response_format: Native structured-output request for the primary
            (e.g. a ``json_schema`` format). Fallbacks rely on the prompt.
        settings: Optional Settings instance; loads from env if not provided.

    Returns:
        A Runnable taking a list of messages and returning an AIMessage.
    """
    if settings is None:
        settings = get_settings()

    judge_settings = get_judge_settings()
    model = model or judge_settings.defaults.model
    timeout = judge_settings.defaults.timeout

    if temperature is None:
        temperature = judge_settings.defaults.temperature

    kwargs = dict(
        model=model,
        temperature=temperature,
        openai_api_key=settings.openai_api_key,
        openai_api_base=settings.openai_base_url,
        timeout=timeout,
    )
    if max_tokens is not None:
        kwargs["max_tokens"] = max_tokens
    if top_p is not None:
        kwargs["top_p"] = top_p
    if top_logprobs is not None:
        kwargs["logprobs"] = True
        kwargs["top_logprobs"] = top_logprobs

    primary: Runnable = ChatOpenAI(**kwargs)
    if response_format is not None:
        primary = primary.bind(response_format=response_format)

    validator = _make_content_validator()
    chain: Runnable = primary | validator

    fallbacks: list[Runnable] = []

    # Fallback 1: Groq
    if judge_settings.providers.groq.enabled and settings.groq_api_key:
        from langchain_groq import ChatGroq

        groq_model = judge_settings.get_groq_model()
        groq_kwargs = dict(
            model=groq_model,
            temperature=temperature,
            api_key=settings.groq_api_key,
            timeout=timeout,
        )
        if max_tokens is not None:
            groq_kwargs["max_tokens"] = max_tokens
        fallbacks.append(ChatGroq(**groq_kwargs) | validator)
        logger.debug("groq_fallback_configured", model=groq_model)

    # Fallback 2: Ollama (local, no API key needed)
    if judge_settings.providers.ollama.enabled:
        from langchain_ollama import ChatOllama

        ollama_model = judge_settings.get_ollama_model()
        base_url = judge_settings.providers.ollama.base_url or "http://localhost:11434"
        ollama_kwargs = dict(
            model=ollama_model,
            temperature=temperature,
            base_url=base_url,
        )
        if max_tokens is not None:
            ollama_kwargs["num_predict"] = max_tokens
        fallbacks.append(ChatOllama(**ollama_kwargs) | validator)
        logger.debug("ollama_fallback_configured", model=ollama_model)

    if fallbacks:
        chain = chain.with_fallbacks(fallbacks)

    retry = judge_settings.retry
    if retry.max_attempts > 1:
        chain = chain.with_retry(
            stop_after_attempt=retry.max_attempts,
            wait_exponential_jitter=retry.exponential_jitter,
        )

    return chain
