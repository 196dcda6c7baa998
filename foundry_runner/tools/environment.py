"""
Execution Environment

Builds the variable set a child process runs under. Rebuilt for every call
because caller overrides vary per call.
"""

import getpass
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from foundry_runner.config.settings import RunnerSettings, get_settings

SYSTEM_BIN_DIRS = (
    "/usr/local/sbin",
    "/usr/local/bin",
    "/usr/sbin",
    "/usr/bin",
    "/sbin",
    "/bin",
)

# Used when every other source of search path is empty
MINIMAL_PATH = "/usr/bin:/bin"


@dataclass
class ExecutionEnvironment:
    """Variables for one child process."""

    variables: dict[str, str] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return self.variables.get("PATH", "")

    @property
    def search_path(self) -> list[str]:
        """Ordered search directories."""
        return [entry for entry in self.path.split(os.pathsep) if entry]

    def truncated_path(self, limit: int = 200) -> str:
        if len(self.path) <= limit:
            return self.path
        return self.path[:limit] + "..."

    def as_dict(self) -> dict[str, str]:
        return dict(self.variables)


def host_home(settings: RunnerSettings | None = None) -> str:
    """Home directory, honouring the HOME override."""
    settings = settings or get_settings()
    return settings.home or str(Path.home())


def host_user(settings: RunnerSettings | None = None) -> str | None:
    """Login name, honouring the USER override."""
    settings = settings or get_settings()
    if settings.user:
        return settings.user
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return None


def toolchain_bin_dir(settings: RunnerSettings | None = None) -> str:
    """Well-known Foundry install directory (``~/.foundry/bin``)."""
    return os.path.join(host_home(settings), ".foundry", "bin")


def join_search_path(*parts: str | None) -> str:
    """Join path fragments, dropping empty segments and duplicate separators."""
    entries: list[str] = []
    for part in parts:
        if not part:
            continue
        entries.extend(entry for entry in part.split(os.pathsep) if entry.strip())
    return os.pathsep.join(entries)


def build_environment(
    overrides: Mapping[str, str] | None = None,
    *,
    base: Mapping[str, str] | None = None,
    settings: RunnerSettings | None = None,
) -> ExecutionEnvironment:
    """
    Build the environment for a child process.

    The search path is, in priority order: the Foundry install directory,
    the standard system binary directories, then the inherited PATH. A
    caller-supplied PATH is appended after that rather than replacing it;
    every other override replaces the inherited value verbatim.

    Args:
        overrides: Caller environment overrides
        base: Inherited environment (defaults to ``os.environ``)
        settings: Runner settings

    Returns:
        The environment, whose search path is never empty
    """
    settings = settings or get_settings()
    inherited = dict(os.environ if base is None else base)
    overrides = dict(overrides or {})

    system_path = join_search_path(
        toolchain_bin_dir(settings),
        *SYSTEM_BIN_DIRS,
        inherited.get("PATH"),
    )
    custom_path = overrides.pop("PATH", None)
    search_path = join_search_path(system_path, custom_path) or MINIMAL_PATH

    variables = {**inherited, "PATH": search_path}
    variables.setdefault("HOME", host_home(settings))
    if "USER" not in variables:
        user = host_user(settings)
        if user:
            variables["USER"] = user

    variables.update(overrides)
    return ExecutionEnvironment(variables=variables)
