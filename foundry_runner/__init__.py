"""
Foundry Runner

Safe execution layer for the Foundry command-line tools (forge, anvil, cast).

Modules:
- safety: allowlist and argument sanitization
- tools: environment, binary resolution, strategies and the executor
- config: settings from environment variables
- observability: structured diagnostic logging
"""

from foundry_runner.core.exceptions import (
    BinaryNotFoundError,
    CommandNotAllowedError,
    ExecutionFailedError,
    ExecutionTimeoutError,
    InvalidArgumentError,
    OutputLimitExceededError,
    RunnerError,
)
from foundry_runner.core.types import (
    BinaryStatus,
    ExecutionOptions,
    ExecutionRequest,
    ExecutionResult,
    ToolName,
)
from foundry_runner.safety import ALLOWED_COMMANDS, sanitize_args, validate_command
from foundry_runner.tools import (
    BinaryCache,
    BinaryResolver,
    CommandExecutor,
    build_environment,
)

__version__ = "0.1.0"

__all__ = [
    "ALLOWED_COMMANDS",
    "BinaryCache",
    "BinaryNotFoundError",
    "BinaryResolver",
    "BinaryStatus",
    "CommandExecutor",
    "CommandNotAllowedError",
    "ExecutionFailedError",
    "ExecutionOptions",
    "ExecutionRequest",
    "ExecutionResult",
    "ExecutionTimeoutError",
    "InvalidArgumentError",
    "OutputLimitExceededError",
    "RunnerError",
    "ToolName",
    "build_environment",
    "sanitize_args",
    "validate_command",
]
