"""Structured output schemas for the two G-Eval judge calls."""

from __future__ import annotations

from pydantic import BaseModel, Field

from geval.schemas.descriptor import SchemaDescriptor

EVALUATION_STEPS_SCHEMA = SchemaDescriptor(
    type="object",
    properties={
        "steps": SchemaDescriptor(type="array", items=SchemaDescriptor(type="string")),
    },
    required=["steps"],
)

EVALUATION_RESULT_SCHEMA = SchemaDescriptor(
    type="object",
    properties={
        "score": SchemaDescriptor(type="number"),
        "reason": SchemaDescriptor(type="string"),
    },
    required=["score", "reason"],
)


class EvaluationSteps(BaseModel):
    """Generated steps. The prompt asks for 3-4; longer lists are kept as-is."""

    steps: list[str] = Field(..., min_length=3)


class EvaluationResult(BaseModel):
    """Judgment from the grading call, before any log-probability reweighting."""

    score: float
    reason: str = ""
