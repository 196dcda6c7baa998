"""
Observability Module

Structured logging for the runner's out-of-band diagnostic channel.
"""

from foundry_runner.observability.logging import (
    BufferHandler,
    ConsoleHandler,
    FileHandler,
    LogLevel,
    StructuredLogger,
    configure_logging,
    get_logger,
)

__all__ = [
    "BufferHandler",
    "ConsoleHandler",
    "FileHandler",
    "LogLevel",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
]
