"""
Exception Hierarchy

Defines all exceptions raised by the Foundry command runner.
Every failure surfaces as exactly one of these kinds.

Design decisions:
- All exceptions inherit from RunnerError for easy catching
- Exceptions carry structured context, not just messages
- Error codes enable programmatic handling by the API layer
"""

from dataclasses import dataclass, field
from typing import Any


class RunnerError(Exception):
    """
    Base exception for all runner errors.

    Provides structured error information including:
    - Human-readable message
    - Machine-readable error code
    - Additional context for debugging
    """

    error_code: str = "RUNNER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.error_code
        self.context = context or {}
        self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "context": self.context,
        }


# ============================================================
# Configuration Errors
# ============================================================

class ConfigurationError(RunnerError):
    """Error in configuration or settings."""

    error_code = "CONFIGURATION_ERROR"


# ============================================================
# Validation Errors (raised before anything is spawned)
# ============================================================

class CommandNotAllowedError(RunnerError):
    """Subcommand is not in the allowlist for the tool."""

    error_code = "COMMAND_NOT_ALLOWED"

    def __init__(
        self,
        message: str,
        *,
        tool: str,
        subcommand: str,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.tool = tool
        self.subcommand = subcommand
        self.context.setdefault("tool", tool)
        self.context.setdefault("subcommand", subcommand)


class InvalidArgumentError(RunnerError):
    """Argument is empty or too long after sanitization."""

    error_code = "INVALID_ARGUMENT"

    def __init__(
        self,
        message: str,
        *,
        index: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.index = index
        if index is not None:
            self.context.setdefault("index", index)


# ============================================================
# Resolution Errors
# ============================================================

class BinaryNotFoundError(RunnerError):
    """No usable executable could be located for a tool."""

    error_code = "BINARY_NOT_FOUND"

    def __init__(
        self,
        message: str,
        *,
        tool: str,
        attempted_paths: list[str] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.tool = tool
        self.attempted_paths = attempted_paths or []
        self.context.setdefault("tool", tool)
        self.context.setdefault("attempted_paths", self.attempted_paths)


# ============================================================
# Execution Errors
# ============================================================

@dataclass
class AttemptFailure:
    """Why a single strategy attempt failed."""

    strategy: str
    reason: str
    errno: int | None = None
    returncode: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy,
            "reason": self.reason,
            "errno": self.errno,
            "returncode": self.returncode,
        }


@dataclass
class FailureDiagnostics:
    """Context accumulated while trying to run a command."""

    attempts: list[AttemptFailure] = field(default_factory=list)
    attempted_paths: list[str] = field(default_factory=list)
    search_path: str = ""
    errno: int | None = None
    returncode: int | None = None
    stderr: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempts": [a.to_dict() for a in self.attempts],
            "attempted_paths": self.attempted_paths,
            "search_path": self.search_path,
            "errno": self.errno,
            "returncode": self.returncode,
            "stderr": self.stderr,
        }


class ExecutionTimeoutError(RunnerError):
    """The spawned process exceeded its time bound and was killed."""

    error_code = "EXECUTION_TIMEOUT"

    def __init__(
        self,
        message: str,
        *,
        timeout_ms: int,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.timeout_ms = timeout_ms
        self.context.setdefault("timeout_ms", timeout_ms)


class ExecutionFailedError(RunnerError):
    """The process failed, or could not be started after all retries."""

    error_code = "EXECUTION_FAILED"

    def __init__(
        self,
        message: str,
        *,
        diagnostics: FailureDiagnostics | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.diagnostics = diagnostics or FailureDiagnostics()
        self.context.setdefault("diagnostics", self.diagnostics.to_dict())


class OutputLimitExceededError(ExecutionFailedError):
    """A stream produced more output than the buffer cap allows."""

    error_code = "OUTPUT_LIMIT_EXCEEDED"
