"""
Execution Strategies

Concrete ways of spawning a resolved tool. The executor tries them in order
and stops at the first one that gets the process running.

- DirectStrategy: argument vector straight to the binary, no shell, no
  directory change
- ShellStrategy: ``cd <dir> && <binary> <args...>`` through an explicit shell

Every value interpolated into a shell string goes through quote_for_shell.
"""

import errno
import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from foundry_runner.tools.environment import ExecutionEnvironment
from foundry_runner.tools.process import ProcessOutcome, ProcessRunner

# Exit statuses a POSIX shell uses when it cannot run the command
SHELL_NOT_EXECUTABLE = 126
SHELL_NOT_FOUND = 127

# OS error each of those statuses stands for
SHELL_EXIT_ERRNO = {
    SHELL_NOT_EXECUTABLE: errno.EACCES,
    SHELL_NOT_FOUND: errno.ENOENT,
}


@dataclass
class Invocation:
    """Everything needed to spawn one command."""

    tool: str
    binary: str
    args: list[str]
    working_directory: str
    env: ExecutionEnvironment
    timeout_ms: int


def quote_for_shell(value: str) -> str:
    """
    Quote one value for interpolation into a POSIX shell command.

    The value is single-quoted, so ``$``, backticks and double quotes are
    inert; embedded single quotes are closed, escaped and reopened.
    """
    return shlex.quote(value)


def build_shell_command(working_directory: str, binary: str, args: Sequence[str]) -> str:
    """Build ``cd <dir> && <binary> <args...>`` with every part quoted."""
    parts = [quote_for_shell(binary), *(quote_for_shell(arg) for arg in args)]
    return f"cd {quote_for_shell(working_directory)} && {' '.join(parts)}"


class ExecutionStrategy(ABC):
    """One way of spawning a command."""

    name: str = "strategy"

    @abstractmethod
    def argv(self, invocation: Invocation) -> list[str]:
        """Argument vector handed to the OS."""

    def cwd(self, invocation: Invocation) -> str | None:
        return None

    def is_missing_executable(self, outcome: ProcessOutcome) -> bool:
        """Whether a finished process signals the tool could not be started."""
        return False

    async def attempt(self, invocation: Invocation, runner: ProcessRunner) -> ProcessOutcome:
        """
        Spawn the command once.

        Raises:
            OSError: The process could not be started
            ValueError: The OS rejected an argument or environment entry
        """
        return await runner.run(
            self.argv(invocation),
            env=invocation.env.as_dict(),
            cwd=self.cwd(invocation),
            timeout_ms=invocation.timeout_ms,
        )


class DirectStrategy(ExecutionStrategy):
    """Invoke the binary directly; the child inherits our working directory."""

    name = "direct"

    def argv(self, invocation: Invocation) -> list[str]:
        return [invocation.binary, *invocation.args]


class ShellStrategy(ExecutionStrategy):
    """Change directory, then run the binary, inside an explicit shell."""

    name = "shell"

    def __init__(self, shell: str = "/bin/bash"):
        self.shell = shell

    def command(self, invocation: Invocation) -> str:
        return build_shell_command(
            invocation.working_directory,
            invocation.binary,
            invocation.args,
        )

    def argv(self, invocation: Invocation) -> list[str]:
        return [self.shell, "-c", self.command(invocation)]

    def is_missing_executable(self, outcome: ProcessOutcome) -> bool:
        return outcome.returncode in SHELL_EXIT_ERRNO
