"""Recover a JSON value from free-form model output.

Judges are asked for JSON but routinely wrap it in prose or Markdown
fences. ``extract_json`` walks a ladder of increasingly permissive
patterns; the first one that parses wins.
"""

from __future__ import annotations

import json
import re
from typing import Any, TypeVar

from geval.errors import ExtractionError

T = TypeVar("T")

_FLAT_OBJECT = re.compile(r"\{[^{}]*\}")
_NESTED_OBJECT = re.compile(r"\{(?:[^{}]|\{[^{}]*\})*\}")
_FLAT_ARRAY = re.compile(r"\[[^\[\]]*\]")
_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\}|\[[\s\S]*?\])\s*```")


def _candidates(text: str):
    yield text

    for pattern in (_FLAT_OBJECT, _NESTED_OBJECT, _FLAT_ARRAY):
        match = pattern.search(text)
        if match:
            yield match.group(0)

    match = _FENCED_BLOCK.search(text)
    if match and match.group(1):
        yield match.group(1)


def extract_json(text: str) -> Any:
    """Parse the first recoverable JSON value in ``text``.

    Attempt order: the whole text, the first flat ``{...}``, the first
    ``{...}`` with one level of nesting, the first flat ``[...]``, then a
    fenced code block (optionally tagged ``json``).

    Raises:
        ExtractionError: if none of the attempts parses.
    """
    for candidate in _candidates(text):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue

    raise ExtractionError("Failed to extract valid JSON from text")


def safe_json_parse(text: str, fallback: T) -> Any | T:
    """Like ``extract_json`` but returns ``fallback`` instead of raising."""
    try:
        return extract_json(text)
    except ExtractionError:
        return fallback
