"""
Unit Tests - Binary Resolver & Cache
"""

import os

import pytest

from foundry_runner.config.settings import RunnerSettings
from foundry_runner.core.exceptions import BinaryNotFoundError
from foundry_runner.tools.process import ProcessRunner
from foundry_runner.tools.resolver import (
    BinaryCache,
    BinaryResolver,
    check_executable,
    check_real_executable,
)
from tests.fixtures import FAKE_TOOL_SCRIPT, remove_exec_bits, write_executable

MISSING_TOOL = "foundry-runner-test-missing-tool"


class TestBinaryCache:
    """Tests for BinaryCache."""

    def test_set_get_evict(self):
        cache = BinaryCache()
        cache.set("forge", "/usr/bin/forge")

        assert cache.get("forge") == "/usr/bin/forge"
        assert "forge" in cache
        assert cache.evict("forge") == "/usr/bin/forge"
        assert cache.get("forge") is None
        assert cache.evict("forge") is None

    def test_snapshot_is_a_copy(self):
        cache = BinaryCache()
        cache.set("cast", "/a/cast")

        snapshot = cache.snapshot()
        snapshot["cast"] = "/b/cast"

        assert cache.get("cast") == "/a/cast"

    def test_clear(self):
        cache = BinaryCache()
        cache.set("cast", "/a/cast")
        cache.clear()

        assert cache.snapshot() == {}


class TestChecks:
    """Tests for filesystem verification helpers."""

    def test_executable_file(self, tmp_path):
        path = write_executable(tmp_path / "tool", "#!/bin/sh\n")

        assert check_executable(str(path)) is None

    def test_missing(self, tmp_path):
        assert check_executable(str(tmp_path / "nope")) == "does not exist"

    def test_directory(self, tmp_path):
        assert check_executable(str(tmp_path)) == "is not a regular file"

    def test_not_executable(self, tmp_path):
        path = write_executable(tmp_path / "tool", "#!/bin/sh\n", mode=0o644)

        assert check_executable(str(path)) == "is not executable"

    def test_follows_symlinks(self, tmp_path):
        target = write_executable(tmp_path / "real" / "forge", "#!/bin/sh\n")
        link = tmp_path / "link"
        link.symlink_to(target)

        real, reason = check_real_executable(str(link))

        assert reason is None
        assert real == os.path.realpath(target)


class TestBinaryResolver:
    """Tests for BinaryResolver."""

    @pytest.mark.asyncio
    async def test_resolves_from_search_path(self, resolver, fake_tool, cache):
        binary = fake_tool("forge")

        path = await resolver.resolve("forge")

        assert path == str(binary)
        assert cache.get("forge") == str(binary)

    @pytest.mark.asyncio
    async def test_repeated_calls_are_stable(self, resolver, fake_tool):
        fake_tool("cast")

        first = await resolver.resolve("cast")
        second = await resolver.resolve("cast")

        assert first == second

    @pytest.mark.asyncio
    async def test_cache_hit_is_logged(self, resolver, fake_tool, log_buffer):
        fake_tool("cast")

        await resolver.resolve("cast")
        await resolver.resolve("cast")

        assert "Binary cache hit" in log_buffer.messages()

    @pytest.mark.asyncio
    async def test_lost_exec_bit_triggers_re_resolution(
        self, settings, cache, logger, fake_tool, tmp_path
    ):
        primary = fake_tool("fake-forge")
        alternate_dir = tmp_path / "alt"
        alternate = write_executable(alternate_dir / "fake-forge", FAKE_TOOL_SCRIPT.format(name="fake-forge"))
        resolver = BinaryResolver(
            settings=settings,
            cache=cache,
            runner=ProcessRunner(),
            logger=logger,
            candidate_dirs=[str(alternate_dir)],
        )

        assert await resolver.resolve("fake-forge") == str(primary)

        remove_exec_bits(primary)

        assert await resolver.resolve("fake-forge") == str(alternate)
        assert cache.get("fake-forge") == str(alternate)

    @pytest.mark.asyncio
    async def test_deleted_cached_path_is_evicted(self, resolver, fake_tool, cache, tmp_path):
        binary = fake_tool("cast")
        cache.set("cast", str(tmp_path / "gone" / "cast"))

        path = await resolver.resolve("cast")

        assert path == str(binary)
        assert cache.get("cast") == str(binary)

    @pytest.mark.asyncio
    async def test_candidate_requires_working_version_flag(self, settings, cache, logger, tmp_path):
        broken_dir = tmp_path / "broken"
        working_dir = tmp_path / "working"
        write_executable(broken_dir / "fake-anvil", "#!/bin/sh\nexit 3\n")
        good = write_executable(working_dir / "fake-anvil", FAKE_TOOL_SCRIPT.format(name="fake-anvil"))
        resolver = BinaryResolver(
            settings=settings,
            cache=cache,
            runner=ProcessRunner(),
            logger=logger,
            candidate_dirs=[str(broken_dir), str(working_dir)],
        )

        assert await resolver.resolve("fake-anvil") == str(good)

    @pytest.mark.asyncio
    async def test_candidate_directory_is_skipped(self, settings, cache, logger, tmp_path):
        (tmp_path / "dirs" / "fake-anvil").mkdir(parents=True)
        good = write_executable(tmp_path / "ok" / "fake-anvil", FAKE_TOOL_SCRIPT.format(name="fake-anvil"))
        resolver = BinaryResolver(
            settings=settings,
            cache=cache,
            runner=ProcessRunner(),
            logger=logger,
            candidate_dirs=[str(tmp_path / "dirs"), str(tmp_path / "ok")],
        )

        assert await resolver.resolve("fake-anvil") == str(good)

    @pytest.mark.asyncio
    async def test_bare_name_fallback_is_not_cached(self, resolver, cache):
        path = await resolver.resolve(MISSING_TOOL)

        assert path == MISSING_TOOL
        assert cache.get(MISSING_TOOL) is None

    @pytest.mark.asyncio
    async def test_raises_when_fallback_disabled(self, home_dir, cache, logger, tmp_path):
        settings = RunnerSettings(
            home=str(home_dir),
            user="tester",
            allow_bare_fallback=False,
            _env_file=None,
        )
        resolver = BinaryResolver(
            settings=settings,
            cache=cache,
            runner=ProcessRunner(),
            logger=logger,
            candidate_dirs=[str(tmp_path / "nowhere")],
        )

        with pytest.raises(BinaryNotFoundError) as exc_info:
            await resolver.resolve(MISSING_TOOL)

        assert exc_info.value.attempted_paths == [str(tmp_path / "nowhere" / MISSING_TOOL)]
        assert exc_info.value.context["search_path"]

    def test_default_candidate_order(self, settings, home_dir):
        resolver = BinaryResolver(settings=settings, cache=BinaryCache())

        assert resolver.candidate_paths("forge") == [
            str(home_dir / ".foundry" / "bin" / "forge"),
            str(home_dir / ".local" / "bin" / "forge"),
            "/home/tester/.foundry/bin/forge",
            "/usr/local/bin/forge",
            "/usr/bin/forge",
            str(home_dir / ".cargo" / "bin" / "forge"),
        ]

    @pytest.mark.asyncio
    async def test_probe_version(self, resolver, fake_tool):
        binary = fake_tool("forge")

        assert await resolver.probe_version(str(binary)) == "forge 0.2.0 (test)"

    @pytest.mark.asyncio
    async def test_probe_version_missing_binary(self, resolver, tmp_path):
        assert await resolver.probe_version(str(tmp_path / "missing")) is None
