"""Judge model port and its LangChain-backed implementation."""

from geval.models.base import BaseJudgeLLM, SupportsSessionReset
from geval.models.factory import create_judge_llm
from geval.models.langchain_judge import LangChainJudge

__all__ = [
    "BaseJudgeLLM",
    "LangChainJudge",
    "SupportsSessionReset",
    "create_judge_llm",
]
