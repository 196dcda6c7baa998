"""
Unit Tests - Installation Health
"""

import pytest

from foundry_runner.core.exceptions import ExecutionTimeoutError
from foundry_runner.observability.logging import LogLevel
from foundry_runner.tools.health import check_installation, find_process_id, is_process_running
from foundry_runner.tools.process import ProcessOutcome, ProcessRunner


class StubRunner(ProcessRunner):
    """Returns a canned outcome, or raises a canned error."""

    def __init__(self, outcome: ProcessOutcome | None = None, error: Exception | None = None):
        super().__init__()
        self.outcome = outcome
        self.error = error
        self.calls: list[list[str]] = []

    async def run(self, argv, **kwargs):
        self.calls.append(list(argv))
        if self.error is not None:
            raise self.error
        return self.outcome


class TestProcessLookup:
    """Tests for find_process_id and is_process_running."""

    @pytest.mark.asyncio
    async def test_first_pid_is_returned(self, logger):
        runner = StubRunner(ProcessOutcome(0, "4242\n4343\n", ""))

        assert await find_process_id("anvil.*8545", runner=runner, logger=logger) == 4242
        assert runner.calls == [["pgrep", "-f", "anvil.*8545"]]

    @pytest.mark.asyncio
    async def test_no_match(self, logger):
        runner = StubRunner(ProcessOutcome(1, "", ""))

        assert await find_process_id(runner=runner, logger=logger) is None
        assert await is_process_running(runner=runner, logger=logger) is False

    @pytest.mark.asyncio
    async def test_running(self, logger):
        runner = StubRunner(ProcessOutcome(0, "99\n", ""))

        assert await is_process_running(runner=runner, logger=logger) is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            FileNotFoundError(2, "No such file or directory", "pgrep"),
            ExecutionTimeoutError("slow", timeout_ms=5000),
        ],
    )
    async def test_lookup_failure_is_logged(self, logger, log_buffer, error):
        runner = StubRunner(error=error)

        assert await find_process_id(runner=runner, logger=logger) is None
        assert log_buffer.messages(LogLevel.WARNING) == ["Process lookup failed"]


class TestCheckInstallation:
    """Tests for check_installation."""

    @pytest.mark.asyncio
    async def test_reports_found_and_missing_tools(self, resolver, fake_tool, logger, log_buffer):
        forge = fake_tool("forge")

        report = await check_installation(
            resolver,
            tools=["forge", "foundry-runner-test-missing-tool"],
            logger=logger,
        )

        assert report["forge"].found is True
        assert report["forge"].path == str(forge)
        assert report["forge"].version == "forge 0.2.0 (test)"

        missing = report["foundry-runner-test-missing-tool"]
        assert missing.found is False
        assert missing.error
        assert "Foundry installation state" in log_buffer.messages(LogLevel.INFO)

    @pytest.mark.asyncio
    async def test_broken_binary_is_not_found(self, resolver, fake_tool, logger, cache):
        broken = fake_tool("cast", body="#!/bin/sh\nexit 1\n")
        cache.set("cast", str(broken))

        report = await check_installation(resolver, tools=["cast"], logger=logger)

        assert report["cast"].found is False
        assert report["cast"].path == str(broken)
