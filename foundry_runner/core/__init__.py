"""
Core Module

Exception taxonomy and shared request/response types.
"""

from foundry_runner.core.exceptions import (
    AttemptFailure,
    BinaryNotFoundError,
    CommandNotAllowedError,
    ConfigurationError,
    ExecutionFailedError,
    ExecutionTimeoutError,
    FailureDiagnostics,
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

__all__ = [
    "AttemptFailure",
    "BinaryNotFoundError",
    "BinaryStatus",
    "CommandNotAllowedError",
    "ConfigurationError",
    "ExecutionFailedError",
    "ExecutionOptions",
    "ExecutionRequest",
    "ExecutionResult",
    "ExecutionTimeoutError",
    "FailureDiagnostics",
    "InvalidArgumentError",
    "OutputLimitExceededError",
    "RunnerError",
    "ToolName",
]
