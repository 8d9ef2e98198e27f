"""Test-case loading from JSON and JSONL files.

A JSON file holds either a list of test cases or an object with a
``test_cases`` list. A JSONL file holds one test case per line. Keys may be
camelCase (``actualOutput``) or snake_case (``actual_output``).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

from geval.schemas.test_case import LLMTestCase

logger = structlog.get_logger(__name__)


def _records_from_text(text: str, suffix: str) -> list[dict[str, Any]]:
    if suffix == ".jsonl":
        return [json.loads(line) for line in text.splitlines() if line.strip()]

    data = json.loads(text)
    if isinstance(data, dict):
        data = data.get("test_cases", data.get("testCases", []))
    if not isinstance(data, list):
        raise ValueError("Expected a list of test cases")
    return data


def parse_test_cases(records: list[dict[str, Any]], dataset: str | None = None) -> list[LLMTestCase]:
    """Validate raw records into test cases, optionally keeping one dataset tag."""
    cases = [LLMTestCase.model_validate(r) for r in records]
    if dataset is not None:
        cases = [c for c in cases if c.dataset == dataset]
    return cases


def load_test_cases(path: str | Path, dataset: str | None = None) -> list[LLMTestCase]:
    """Load test cases from a .json or .jsonl file.

    Args:
        path: File to read.
        dataset: Keep only test cases whose ``dataset`` tag equals this.

    Raises:
        ValueError: on malformed JSON or an unexpected top-level shape.
        pydantic.ValidationError: if a record is missing ``input``/``actualOutput``.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    cases = parse_test_cases(_records_from_text(text, path.suffix.lower()), dataset)
    logger.info("test_cases_loaded", path=str(path), count=len(cases), dataset=dataset)
    return cases
