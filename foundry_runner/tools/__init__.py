"""
Tools Module

Resolution and execution of the Foundry binaries.

Components:
- build_environment: child process environment
- BinaryResolver / BinaryCache: verified executable lookup
- ProjectLocator: default working directory discovery
- CommandExecutor: the end-to-end execution pipeline
"""

from foundry_runner.tools.environment import ExecutionEnvironment, build_environment
from foundry_runner.tools.executor import CommandExecutor
from foundry_runner.tools.health import check_installation, find_process_id, is_process_running
from foundry_runner.tools.process import ProcessOutcome, ProcessRunner
from foundry_runner.tools.resolver import BinaryCache, BinaryResolver, get_binary_cache
from foundry_runner.tools.strategies import (
    DirectStrategy,
    ShellStrategy,
    build_shell_command,
    quote_for_shell,
)
from foundry_runner.tools.workdir import ProjectLocator

__all__ = [
    "BinaryCache",
    "BinaryResolver",
    "CommandExecutor",
    "DirectStrategy",
    "ExecutionEnvironment",
    "ProcessOutcome",
    "ProcessRunner",
    "ProjectLocator",
    "ShellStrategy",
    "build_environment",
    "build_shell_command",
    "check_installation",
    "find_process_id",
    "get_binary_cache",
    "is_process_running",
    "quote_for_shell",
]
