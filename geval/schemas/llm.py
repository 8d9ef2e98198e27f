"""Request/response types exchanged with a judge model port."""

from __future__ import annotations

from pydantic import BaseModel


class GenerateOptions(BaseModel):
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    top_logprobs: int | None = None


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class TopLogprob(BaseModel):
    token: str
    logprob: float


class TokenLogprob(BaseModel):
    """Log-probability of one generated token and its top-k alternatives."""

    token: str
    logprob: float
    top_logprobs: list[TopLogprob] | None = None


class RawModelResponse(BaseModel):
    content: str
    usage: TokenUsage | None = None
    logprobs: list[TokenLogprob] | None = None
