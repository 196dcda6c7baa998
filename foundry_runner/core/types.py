"""
Core Types and Data Structures

Defines the request/response types exchanged with the runner.
These are intentionally simple, immutable where possible, and serializable.
"""

from enum import Enum

from pydantic import BaseModel, Field


class ToolName(str, Enum):
    """The closed set of executables the runner may invoke."""

    FORGE = "forge"
    ANVIL = "anvil"
    CAST = "cast"


class ExecutionOptions(BaseModel):
    """Per-call knobs for a command execution."""

    working_directory: str | None = None
    timeout_ms: int | None = Field(default=None, gt=0)
    environment_overrides: dict[str, str] = Field(default_factory=dict)

    # Indices of arguments that carry call-signature syntax.
    # None falls back to the positional heuristic.
    structural_arguments: frozenset[int] | None = None

    class Config:
        frozen = True


class ExecutionRequest(BaseModel):
    """A complete request to run one allowlisted command."""

    tool: ToolName
    arguments: list[str] = Field(min_length=1)
    working_directory: str | None = None
    timeout_ms: int | None = Field(default=None, gt=0)
    environment_overrides: dict[str, str] = Field(default_factory=dict)
    structural_arguments: frozenset[int] | None = None

    @property
    def subcommand(self) -> str:
        return self.arguments[0]

    @property
    def options(self) -> ExecutionOptions:
        return ExecutionOptions(
            working_directory=self.working_directory,
            timeout_ms=self.timeout_ms,
            environment_overrides=self.environment_overrides,
            structural_arguments=self.structural_arguments,
        )


class ExecutionResult(BaseModel):
    """Fully buffered output of a successful command."""

    stdout: str
    stderr: str

    class Config:
        frozen = True


class BinaryStatus(BaseModel):
    """Installation state of a single tool."""

    found: bool
    path: str | None = None
    version: str | None = None
    error: str | None = None
