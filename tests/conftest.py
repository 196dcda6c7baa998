"""
Test Configuration

Shared fixtures and test utilities.

Child-process behaviour is exercised against small executable shell
scripts written into the test's temporary directory.
"""

from pathlib import Path
from typing import Callable

import pytest

from foundry_runner.config.settings import RunnerSettings
from foundry_runner.observability.logging import BufferHandler, StructuredLogger, configure_logging
from foundry_runner.tools.executor import CommandExecutor
from foundry_runner.tools.process import ProcessRunner
from foundry_runner.tools.resolver import BinaryCache, BinaryResolver
from foundry_runner.tools.workdir import ProjectLocator
from tests.fixtures import FAKE_TOOL_SCRIPT, RecordingRunner, write_executable


@pytest.fixture
def home_dir(tmp_path) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def toolchain_dir(home_dir) -> Path:
    """``~/.foundry/bin`` inside the fake home."""
    path = home_dir / ".foundry" / "bin"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def project_dir(tmp_path) -> Path:
    """A project tree with ``contracts/foundry.toml``."""
    project = tmp_path / "project"
    contracts = project / "contracts"
    contracts.mkdir(parents=True)
    (contracts / "foundry.toml").write_text("[profile.default]\n")
    return project


@pytest.fixture
def settings(home_dir) -> RunnerSettings:
    return RunnerSettings(
        home=str(home_dir),
        user="tester",
        debug=True,
        contracts_dir=None,
        log_format="text",
        _env_file=None,
    )


@pytest.fixture
def log_buffer() -> BufferHandler:
    return BufferHandler()


@pytest.fixture
def logger(settings, log_buffer) -> StructuredLogger:
    return configure_logging(settings, handlers=[log_buffer])


@pytest.fixture
def cache() -> BinaryCache:
    return BinaryCache()


@pytest.fixture
def fake_tool(toolchain_dir) -> Callable[..., Path]:
    """Factory installing a fake tool into ``~/.foundry/bin``."""

    def install(name: str, body: str | None = None, directory: Path | None = None) -> Path:
        target = (directory or toolchain_dir) / name
        return write_executable(target, body or FAKE_TOOL_SCRIPT.format(name=name))

    return install


@pytest.fixture
def resolver(settings, cache, logger) -> BinaryResolver:
    return BinaryResolver(
        settings=settings,
        cache=cache,
        runner=ProcessRunner(),
        logger=logger,
        candidate_dirs=[],
    )


@pytest.fixture
def locator(settings, logger, project_dir) -> ProjectLocator:
    return ProjectLocator(settings=settings, logger=logger, start_dir=str(project_dir))


@pytest.fixture
def recording_runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def make_executor(settings, resolver, locator, logger, recording_runner):
    """Factory for executors wired to the test fixtures."""

    def build(runner: ProcessRunner | None = None, **overrides) -> CommandExecutor:
        kwargs = dict(
            settings=settings,
            resolver=resolver,
            locator=locator,
            runner=runner or recording_runner,
            logger=logger,
        )
        kwargs.update(overrides)
        return CommandExecutor(**kwargs)

    return build


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
