"""Shared test fixtures."""

from __future__ import annotations

import os

import pytest

from fakes import ScriptedJudge, SessionJudge

# Ensure tests don't accidentally call real APIs
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("GROQ_API_KEY", "test-key")


@pytest.fixture
def judge() -> SessionJudge:
    return SessionJudge()


@pytest.fixture
def stateless_judge() -> ScriptedJudge:
    return ScriptedJudge()
