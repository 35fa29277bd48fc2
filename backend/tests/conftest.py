"""
Pytest configuration and shared fixtures for all tests.

This file is automatically loaded by pytest before running tests.
It sets up the test environment and provides fakes for the clock and the
upstream model so no test talks to the network.
"""

import os
import sys

# Add backend directory to path for imports FIRST
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Dummy values so config.py never needs a real .env
os.environ.setdefault("OPENAI_API_KEY", "test-api-key-for-testing")

from typing import Any, Dict, List, Optional

import pytest

from errors import ModelServiceError
from services.session_store import SessionStore


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires a real model API key)"
    )


# ============================================================================
# FAKES
# ============================================================================

class FakeClock:
    """Manually advanced clock in epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeModelStream:
    """
    Stands in for ModelStream: yields the given chunks, then optionally raises.
    """

    def __init__(
        self,
        chunks: List[str],
        final_text: str = "",
        tool_calls: Optional[List[Dict[str, str]]] = None,
        error: Optional[Exception] = None
    ):
        self._chunks = list(chunks)
        self._error = error
        self.final_text = final_text
        self.tool_calls = tool_calls or []
        self.closed = False
        self.delivered = 0

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        if self._chunks:
            self.delivered += 1
            return self._chunks.pop(0)
        if self._error is not None:
            error, self._error = self._error, None
            raise error
        raise StopAsyncIteration

    async def aclose(self) -> None:
        self.closed = True


class FakeModelClient:
    """
    Stands in for ModelClient. Records every open_stream() call.
    """

    def __init__(self, stream: Optional[FakeModelStream] = None, open_error: Optional[Exception] = None):
        self.stream = stream or FakeModelStream(["Hello!"])
        self.open_error = open_error
        self.calls: List[Dict[str, Any]] = []

    async def open_stream(self, instructions, messages, tools=None):
        self.calls.append({"instructions": instructions, "messages": list(messages), "tools": tools})
        if self.open_error is not None:
            raise self.open_error
        return self.stream


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def store(fake_clock):
    """A fresh SessionStore on the fake clock with the production defaults."""
    return SessionStore(ttl_seconds=3600, max_messages=20, sweep_interval_seconds=600, clock=fake_clock)


@pytest.fixture
def fake_stream_factory():
    """Factory fixture for FakeModelStream."""
    def create_stream(chunks, final_text="", tool_calls=None, error=None):
        return FakeModelStream(chunks, final_text=final_text, tool_calls=tool_calls, error=error)

    return create_stream


@pytest.fixture
def fake_model_factory():
    """Factory fixture for FakeModelClient."""
    def create_client(stream=None, open_error=None):
        return FakeModelClient(stream=stream, open_error=open_error)

    return create_client


@pytest.fixture
def upstream_failure():
    return ModelServiceError("Connection refused")
