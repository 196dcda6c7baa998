"""
Project Directory Discovery

Finds the default working directory for Foundry commands: the ``contracts``
directory holding ``foundry.toml``. Only the marker's existence is checked;
its contents are never read.
"""

import asyncio
import os

from foundry_runner.config.settings import RunnerSettings, get_settings
from foundry_runner.observability.logging import StructuredLogger, get_logger

# Service directory the application is usually launched from
SERVICE_DIR_NAME = "backend"


class ProjectLocator:
    """
    Resolves and caches the project directory.

    Lookup order:
    1. The CONTRACTS_DIR override, when it contains the marker file
    2. Walking upward from the start directory for ``contracts/foundry.toml``
    3. ``<start>/contracts``
    """

    def __init__(
        self,
        settings: RunnerSettings | None = None,
        logger: StructuredLogger | None = None,
        start_dir: str | None = None,
    ):
        self._settings = settings or get_settings()
        self._logger = logger or get_logger(self._settings)
        self._start_dir = start_dir
        self._cached: str | None = None

    def invalidate(self) -> None:
        self._cached = None

    async def resolve(self) -> str:
        """Return the project directory, discovering it on first use."""
        if self._cached is None:
            self._cached = await asyncio.to_thread(self._discover)
            self._logger.debug("Project directory resolved", path=self._cached)
        return self._cached

    def _has_marker(self, directory: str) -> bool:
        return os.path.exists(os.path.join(directory, self._settings.marker_file))

    def _start(self) -> str:
        current = os.path.abspath(self._start_dir or os.getcwd())
        if os.path.basename(current.rstrip(os.sep)) == SERVICE_DIR_NAME:
            return os.path.dirname(current)
        return current

    def _discover(self) -> str:
        override = self._settings.contracts_dir
        if override:
            override = os.path.abspath(override)
            if self._has_marker(override):
                return override
            self._logger.warning(
                "CONTRACTS_DIR has no marker file, searching instead",
                contracts_dir=override,
                marker=self._settings.marker_file,
            )

        start = self._start()
        directory = start
        while True:
            candidate = os.path.join(directory, self._settings.project_dir_name)
            if self._has_marker(candidate):
                return candidate

            parent = os.path.dirname(directory)
            if parent == directory:
                break
            directory = parent

        return os.path.join(start, self._settings.project_dir_name)
