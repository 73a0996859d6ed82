"""
Core pytest configuration and fixtures for chatbranch testing.

This module provides shared test fixtures, fake streaming providers, and
utilities used across the unit and integration suites.
"""

import asyncio
from collections import defaultdict
from typing import Callable, Dict, List
from unittest.mock import MagicMock

import pytest
from chatbranch.catalog import Catalog, ModelInfo
from chatbranch.config import Settings
from chatbranch.llm import LLM
from chatbranch.models import SYSTEM_ROLE, USER_ROLE
from chatbranch.tree import MessageTree

# ===== FAKE PROVIDERS =====


class ScriptedLLM(LLM):
    """Streams a fixed list of items per model.

    Exceptions in a script are raised at that point of the stream.
    """

    def __init__(self, scripts: Dict[str, List] = None, default_model: str = "model-a"):
        self.scripts = scripts or {}
        self.model = default_model
        self.calls: List[Dict] = []

    async def open_stream(self, messages, model, **kwargs):
        self.calls.append({"messages": messages, "model": model, "kwargs": kwargs})
        return self._emit(list(self.scripts.get(model, [])))

    async def _emit(self, items):
        for item in items:
            await asyncio.sleep(0)
            if isinstance(item, BaseException):
                raise item
            yield item

    def extract_fragment(self, chunk):
        return chunk


class GatedLLM(LLM):
    """Streams whatever the test feeds it, one queue per model.

    Feed ``None`` to end a stream and an exception to fail it.
    """

    def __init__(self, default_model: str = "model-a"):
        self.model = default_model
        self.queues: Dict[str, asyncio.Queue] = defaultdict(asyncio.Queue)
        self.calls: List[Dict] = []
        self.closed: List[str] = []

    async def open_stream(self, messages, model, **kwargs):
        self.calls.append({"messages": messages, "model": model})
        return self._drain(model)

    async def _drain(self, model):
        queue = self.queues[model]
        try:
            while True:
                item = await queue.get()
                if item is None:
                    return
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.closed.append(model)

    def feed(self, model: str, *items) -> None:
        for item in items:
            self.queues[model].put_nowait(item)

    def extract_fragment(self, chunk):
        return chunk


# ===== TEST DATA FIXTURES =====


@pytest.fixture
def tree() -> MessageTree:
    """Empty message tree."""
    return MessageTree()


@pytest.fixture
def chain(tree):
    """A linear conversation root -> a -> b -> c."""
    root = tree.create_root_message(SYSTEM_ROLE, "You are helpful.")
    a = tree.create_root_message(USER_ROLE, "Hello", parent_id=root.id)
    b = tree.append_child(a.id, content="Hi there!")
    c = tree.create_root_message(USER_ROLE, "Explain trees", parent_id=b.id)
    return tree, [root, a, b, c]


@pytest.fixture
def sample_catalog() -> Catalog:
    return Catalog(
        [
            ModelInfo(id="model-a", name="Model A"),
            ModelInfo(id="model-b", name="Model B", owned_by="ollama"),
            ModelInfo(id="model-hidden", name="Hidden", hidden=True),
        ]
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(default_models="model-a")


# ===== PROVIDER FIXTURES =====


@pytest.fixture
def scripted_llm() -> Callable[..., ScriptedLLM]:
    """Factory for providers with a fixed script per model."""
    return ScriptedLLM


@pytest.fixture
def gated_llm() -> GatedLLM:
    return GatedLLM()


@pytest.fixture
def mock_llm():
    """Mock LLM provider for testing."""
    mock = MagicMock(spec=LLM)
    mock.model = "model-a"
    return mock


@pytest.fixture
def mock_layout():
    """Mock layout provider for testing."""
    mock = MagicMock()
    mock.build_messages.return_value = []
    mock.get_external_stylesheets.return_value = []
    mock.get_external_scripts.return_value = []
    return mock


# ===== TEST UTILITIES =====


async def _wait_until(predicate: Callable[[], bool], attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("Condition was not reached while the loop was running")


@pytest.fixture
def wait_until():
    """Await until `predicate()` holds, yielding to the loop in between."""
    return _wait_until


# ===== APP FIXTURES =====


@pytest.fixture
def test_app():
    """
    Provides a Chatbranch app instance with simple, predictable collaborators.

    Uses the Echo model with no delay so no network access is needed.
    """
    from chatbranch import Chatbranch
    from chatbranch.layout import Minimal
    from chatbranch.llm import Echo

    app = Chatbranch(
        layout=Minimal(),
        llm=Echo(delay=0),
        settings=Settings(),
    )
    yield app
    app.runner.stop()


# ===== CONFIGURATION =====


def pytest_configure(config):
    """Pytest configuration."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow-running")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


