"""Pytest configuration and fixtures for ReviewLens tests."""

import json

import pytest

from config import ReviewSettings
from llm_client import ModelInvoker


class FakeInvoker(ModelInvoker):
    """Replays scripted responses and records every request.

    Each scripted response is a dict (sent back as JSON), a raw string, an
    exception instance (raised from the provider call) or a callable that
    receives the user prompt.
    """

    name = "Fake"

    def __init__(self, responses=None, summary="Overall the code is in good shape."):
        super().__init__("fake-model")
        self.responses = list(responses or [])
        self.summary = summary
        self.calls: list[tuple[str, str, bool]] = []

    async def _generate(self, system_prompt, user_prompt, json_output):
        self.calls.append((system_prompt, user_prompt, json_output))
        if not json_output:
            if isinstance(self.summary, Exception):
                raise self.summary
            return self.summary

        response = self.responses.pop(0) if self.responses else {}
        if isinstance(response, Exception):
            raise response
        if callable(response):
            response = response(user_prompt)
        if isinstance(response, dict):
            return json.dumps(response)
        return response

    @property
    def review_calls(self):
        return [call for call in self.calls if call[2]]


class LineEstimator:
    """One token per line; chunk limit fixed up front."""

    def __init__(self, limit: int = 1000):
        self.limit = limit
        self.exact = True

    async def estimate(self, text: str) -> int:
        return len(text.splitlines())

    def chunk_limit(self) -> int:
        return self.limit


@pytest.fixture
def make_invoker():
    """Factory for scripted invokers."""
    return FakeInvoker


@pytest.fixture
def line_estimator():
    """Factory for line-counting estimators."""
    return LineEstimator


@pytest.fixture
def settings() -> ReviewSettings:
    """OpenAI settings with a dummy key, never in mock mode."""
    return ReviewSettings(model="gpt-4o", api_key="sk-test", use_mock=False)


@pytest.fixture
def review_body() -> dict:
    """A typical well-formed model response."""
    return {
        "dangers": [{"line": 4, "description": "SQL built from user input."}],
        "issues": [{"line": 10, "description": "Missing null check."}],
        "suggestions": [{"line": 2, "description": "Extract a helper."}],
        "good_practices": [{"line": 1, "description": "Clear naming."}],
        "fix": [{"line": 10, "explanation": "Guard None.", "code": "-a\n+b"}],
        "score": 80,
        "summary": "Solid file with one risky query.",
    }


@pytest.fixture(autouse=True)
def no_api_keys(monkeypatch):
    """Keep real credentials from the environment out of every test."""
    for var in ("OPENAI_API_KEY", "GOOGLE_API_KEY", "GEMINI_API_KEY", "GITHUB_TOKEN"):
        monkeypatch.delenv(var, raising=False)
