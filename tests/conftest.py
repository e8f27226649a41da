"""Pytest configuration and fixtures."""

import pytest

from workbench_core.config import Config
from workbench_core.orchestrator import WorkspaceOrchestrator
from workbench_core.sandbox.mock import MockSandboxRuntime


class RecordingTerminal:
    """Terminal sink that keeps every chunk it receives."""

    def __init__(self) -> None:
        self.chunks: list[str] = []

    def write(self, data: str) -> None:
        self.chunks.append(data)

    @property
    def text(self) -> str:
        return "".join(self.chunks)


@pytest.fixture
def sample_config_dict():
    """Sample configuration dictionary for testing."""
    return {
        "project": {"name": "test-project", "seed": "empty"},
        "sandbox": {"backend": "mock"},
        "sync": {"max_retries": 0, "retry_delay_seconds": 0},
        "logging": {"level": "DEBUG", "format": "text"},
    }


@pytest.fixture
def config(sample_config_dict) -> Config:
    return Config.from_dict(sample_config_dict)


@pytest.fixture
def runtime() -> MockSandboxRuntime:
    return MockSandboxRuntime()


@pytest.fixture
def terminal() -> RecordingTerminal:
    return RecordingTerminal()


@pytest.fixture
def seed_files() -> dict[str, str]:
    return {
        "package.json": '{"name": "demo"}',
        "index.html": "<div id=root></div>",
        "src/main.jsx": "import App from './App'",
        "src/App.jsx": "export default () => null",
    }


@pytest.fixture
def workspace(config, runtime, terminal, seed_files) -> WorkspaceOrchestrator:
    """Workspace over the mock sandbox with a small project."""
    return WorkspaceOrchestrator(
        config=config,
        runtime=runtime,
        files=seed_files,
        terminal=terminal,
    )
