# tests/conftest.py
"""
Shared pytest fixtures.
"""

import logging
import os
import tempfile
from pathlib import Path

import pytest

from buildfs import FileSnapshot, FileSystemModel
from buildflow.core.prompts import PromptRenderer
from buildflow.core.state import NoticeChannel
from buildflow.core.tools import ToolExecutor
from buildflow.core.turn_loop import ConversationOrchestrator

from helpers import (
    FakeImageSearch, FakeSandbox, InMemoryDependencyCache, InMemoryProjectStore, ScriptedModelBackend,
)


@pytest.fixture(scope="session")
def anyio_backend():
    return 'asyncio'


@pytest.fixture(scope="function")
def isolated_filesystem():
    """Temporary working directory for tests that touch .buildcoder/."""
    with tempfile.TemporaryDirectory() as temp_dir:
        temp_path = Path(temp_dir)
        original_cwd = os.getcwd()
        os.chdir(temp_path)
        try:
            yield temp_path
        finally:
            os.chdir(original_cwd)


@pytest.fixture
def runner():
    from click.testing import CliRunner
    return CliRunner()


@pytest.fixture
def prompts():
    return PromptRenderer()


@pytest.fixture
def notices():
    channel = NoticeChannel()
    channel.received = []
    channel.subscribe(channel.received.append)
    return channel


@pytest.fixture
def sandbox():
    return FakeSandbox()


@pytest.fixture
def image_search():
    return FakeImageSearch()


@pytest.fixture
def dependency_cache():
    return InMemoryDependencyCache()


@pytest.fixture
def store():
    return InMemoryProjectStore()


@pytest.fixture
def fs():
    return FileSystemModel(live=FileSnapshot({"src/App.tsx": "export default App;\n"}))


@pytest.fixture
def executor(fs, sandbox, image_search, dependency_cache):
    return ToolExecutor(fs, "demo", sandbox=sandbox, image_search=image_search,
                        dependency_cache=dependency_cache)


@pytest.fixture
def make_orchestrator(executor, prompts, notices):
    """Build an orchestrator around a scripted backend: make_orchestrator(turn1, turn2, ...)."""
    def factory(*turns, max_iterations=25, chunk_size=None):
        backend = ScriptedModelBackend(turns, chunk_size=chunk_size)
        orchestrator = ConversationOrchestrator(
            backend, executor, prompts=prompts, notices=notices, max_iterations=max_iterations
        )
        return orchestrator, backend
    return factory


@pytest.fixture(autouse=True)
def restore_package_loggers():
    """The CLI installs its own handlers on the package loggers; put them back for caplog."""
    names = ("buildfs", "buildflow", "buildcoder")
    saved = {}
    for name in names:
        logger = logging.getLogger(name)
        saved[name] = (list(logger.handlers), logger.level, logger.propagate)
    yield
    for name, (handlers, level, propagate) in saved.items():
        logger = logging.getLogger(name)
        logger.handlers = handlers
        logger.setLevel(level)
        logger.propagate = propagate
