"""
Binary Resolver

Turns a tool name into a verified absolute executable path.

Resolution order, first success wins:
1. Cache hit, re-verified on every call (evicted on failure)
2. Search-path probe against the constructed execution environment
3. Conventional install locations, each exercised with ``--version``
4. The bare tool name, left to spawn-time PATH lookup (never cached)

Design decisions:
- The cache is an explicit, injectable service guarded by a lock that is
  only held for dictionary access, never across an await
- A cached path is never trusted without a fresh check, so concurrent
  eviction/population races heal on the next use
- Filesystem probes run in a worker thread so each one yields to the loop
"""

import asyncio
import os
import shutil
import threading
from typing import Sequence

from foundry_runner.config.settings import RunnerSettings, get_settings
from foundry_runner.core.exceptions import BinaryNotFoundError, RunnerError
from foundry_runner.core.types import ToolName
from foundry_runner.observability.logging import StructuredLogger, get_logger
from foundry_runner.safety.allowlist import tool_key
from foundry_runner.tools.environment import (
    ExecutionEnvironment,
    build_environment,
    host_home,
    host_user,
)
from foundry_runner.tools.process import ProcessRunner


class BinaryCache:
    """Process-wide map of tool name to last verified executable path."""

    def __init__(self):
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, tool: str) -> str | None:
        with self._lock:
            return self._entries.get(tool)

    def set(self, tool: str, path: str) -> None:
        with self._lock:
            self._entries[tool] = path

    def evict(self, tool: str) -> str | None:
        """Drop an entry, returning the path that was cached."""
        with self._lock:
            return self._entries.pop(tool, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._entries)

    def __contains__(self, tool: object) -> bool:
        with self._lock:
            return tool in self._entries


_default_cache = BinaryCache()


def get_binary_cache() -> BinaryCache:
    """The cache shared by every resolver that is not given its own."""
    return _default_cache


def check_executable(path: str) -> str | None:
    """
    Verify ``path`` is an existing, executable, regular file.

    Symlinks are followed. Returns None when the file is usable, otherwise
    a short reason.
    """
    if not os.path.exists(path):
        return "does not exist"
    if not os.path.isfile(path):
        return "is not a regular file"
    if not os.access(path, os.X_OK):
        return "is not executable"
    return None


def check_real_executable(path: str) -> tuple[str, str | None]:
    """Resolve symlinks, then verify. Returns (real_path, failure_reason)."""
    real_path = os.path.realpath(path)
    return real_path, check_executable(real_path)


class BinaryResolver:
    """
    Locates Foundry executables.

    Usage:
        resolver = BinaryResolver()
        path = await resolver.resolve("forge")
    """

    def __init__(
        self,
        settings: RunnerSettings | None = None,
        cache: BinaryCache | None = None,
        runner: ProcessRunner | None = None,
        logger: StructuredLogger | None = None,
        candidate_dirs: Sequence[str] | None = None,
    ):
        self._settings = settings or get_settings()
        self._cache = cache if cache is not None else get_binary_cache()
        self._runner = runner or ProcessRunner(self._settings.max_buffer_bytes)
        self._logger = logger or get_logger(self._settings)
        self._candidate_dirs = list(candidate_dirs) if candidate_dirs is not None else None

    @property
    def cache(self) -> BinaryCache:
        return self._cache

    @property
    def settings(self) -> RunnerSettings:
        return self._settings

    def candidate_paths(self, tool: "ToolName | str") -> list[str]:
        """Conventional install locations, in probe order."""
        name = tool_key(tool)
        if self._candidate_dirs is not None:
            return [os.path.join(d, name) for d in self._candidate_dirs]

        home = host_home(self._settings)
        dirs = [
            os.path.join(home, ".foundry", "bin"),
            os.path.join(home, ".local", "bin"),
        ]
        user = host_user(self._settings)
        if user:
            dirs.append(os.path.join("/home", user, ".foundry", "bin"))
        dirs.extend(
            [
                "/usr/local/bin",
                "/usr/bin",
                os.path.join(home, ".cargo", "bin"),
            ]
        )
        return [os.path.join(d, name) for d in dirs]

    async def resolve(self, tool: "ToolName | str") -> str:
        """
        Resolve ``tool`` to an executable path.

        Returns:
            An absolute path, or the bare tool name when nothing could be
            verified and the bare-name fallback is enabled

        Raises:
            BinaryNotFoundError: Every strategy failed and the bare-name
                fallback is disabled
        """
        name = tool_key(tool)
        attempted: list[str] = []

        cached = self._cache.get(name)
        if cached:
            reason = await asyncio.to_thread(check_executable, cached)
            if reason is None:
                self._logger.debug("Binary cache hit", tool=name, path=cached)
                return cached
            self._cache.evict(name)
            attempted.append(cached)
            self._logger.debug(
                "Cached binary failed verification, evicted",
                tool=name,
                path=cached,
                reason=reason,
            )

        env = build_environment(settings=self._settings)

        found = await self._probe_search_path(name, env)
        if found:
            self._cache.set(name, found)
            self._logger.debug("Binary found on search path", tool=name, path=found)
            return found

        for candidate in self.candidate_paths(name):
            attempted.append(candidate)
            reason = await asyncio.to_thread(check_executable, candidate)
            if reason is not None:
                continue

            version = await self.probe_version(candidate, env)
            if version is None:
                continue

            self._cache.set(name, candidate)
            self._logger.debug(
                "Binary found at install location",
                tool=name,
                path=candidate,
                version=version,
            )
            return candidate

        if self._settings.allow_bare_fallback:
            self._logger.debug(
                "No verified binary, deferring to spawn-time PATH lookup",
                tool=name,
                attempted=attempted,
            )
            return name

        raise BinaryNotFoundError(
            f"Could not locate {name}; is Foundry installed?",
            tool=name,
            attempted_paths=attempted,
            context={"search_path": env.truncated_path()},
        )

    async def probe_version(
        self,
        path: str,
        env: ExecutionEnvironment | None = None,
    ) -> str | None:
        """Run ``path --version``; returns its output, or None if it failed."""
        env = env or build_environment(settings=self._settings)
        timeout_ms = int(self._settings.version_check_timeout * 1000)

        try:
            outcome = await self._runner.run(
                [path, "--version"],
                env=env.as_dict(),
                timeout_ms=timeout_ms,
            )
        except (OSError, RunnerError) as e:
            self._logger.debug("Version check failed", path=path, reason=str(e))
            return None

        if not outcome.ok:
            self._logger.debug(
                "Version check exited non-zero",
                path=path,
                returncode=outcome.returncode,
            )
            return None

        return outcome.stdout.strip()

    async def _probe_search_path(self, name: str, env: ExecutionEnvironment) -> str | None:
        found = await asyncio.to_thread(shutil.which, name, path=env.path)
        if not found:
            return None

        found = os.path.abspath(found)
        reason = await asyncio.to_thread(check_executable, found)
        if reason is not None:
            self._logger.debug("Search-path match unusable", path=found, reason=reason)
            return None
        return found
