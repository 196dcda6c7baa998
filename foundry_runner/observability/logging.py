"""
Runner Diagnostics

Out-of-band trace for the runner. Records never share a stream with the
output of the wrapped tools: they go to stderr, and optionally to a JSON
lines file.

The only verbosity switch is the debug toggle (``DEBUG_FOUNDRY``). Without it
the runner reports installation state, launches and lookup failures; with it,
every resolution step and spawn attempt is traced as well.

Each record carries the invocation it belongs to (tool, subcommand and a
short invocation id), set once per ``execute()`` through ``logger.context``.
"""

import contextvars
import json
import sys
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from functools import lru_cache
from typing import Any, TextIO

from foundry_runner.config.settings import RunnerSettings, get_settings


class LogLevel(IntEnum):
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40


_invocation: contextvars.ContextVar[dict[str, str]] = contextvars.ContextVar(
    "foundry_invocation", default={}
)


@dataclass
class LogRecord:
    """One diagnostic event, tagged with the invocation it belongs to."""

    level: LogLevel
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    error: BaseException | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    tool: str | None = None
    subcommand: str | None = None
    invocation_id: str | None = None

    @property
    def command(self) -> str | None:
        if self.tool is None:
            return None
        return f"{self.tool} {self.subcommand}" if self.subcommand else self.tool

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "ts": self.timestamp.isoformat(),
            "level": self.level.name,
            "msg": self.message,
        }
        if self.command:
            result["command"] = self.command
        if self.invocation_id:
            result["invocation"] = self.invocation_id
        if self.data:
            result.update(self.data)
        if self.error is not None:
            result["error"] = f"{type(self.error).__name__}: {self.error}"
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def to_text(self) -> str:
        prefix = f"[foundry {self.level.name.lower()}]"
        if self.command:
            prefix += f" {self.command}"
            if self.invocation_id:
                prefix += f"#{self.invocation_id}"
        fields = " ".join(f"{key}={value}" for key, value in self.data.items())
        line = f"{prefix}: {self.message}"
        if fields:
            line += f" ({fields})"
        if self.error is not None:
            line += f" [{type(self.error).__name__}: {self.error}]"
        return line


class LogHandler(ABC):
    """Destination for diagnostic records."""

    @abstractmethod
    def emit(self, record: LogRecord) -> None:
        """Write one record."""

    def close(self) -> None:
        pass


class ConsoleHandler(LogHandler):
    """Writes to stderr, never to stdout."""

    def __init__(self, stream: TextIO | None = None, json_output: bool = False):
        self.stream = stream or sys.stderr
        self.json_output = json_output

    def emit(self, record: LogRecord) -> None:
        text = record.to_json() if self.json_output else record.to_text()
        print(text, file=self.stream)


class FileHandler(LogHandler):
    """
    Appends JSON lines to ``FOUNDRY_LOG_FILE``.

    The file is opened on first write and released by ``close()``; a later
    record reopens it.
    """

    def __init__(self, filename: str):
        self.filename = filename
        self._file: TextIO | None = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def emit(self, record: LogRecord) -> None:
        if self._file is None:
            self._file = open(self.filename, "a", encoding="utf-8")
        self._file.write(record.to_json() + "\n")
        self._file.flush()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None


class BufferHandler(LogHandler):
    """Keeps records in memory; used by the test-suite."""

    def __init__(self):
        self.records: list[LogRecord] = []

    def emit(self, record: LogRecord) -> None:
        self.records.append(record)

    def messages(self, level: LogLevel | None = None) -> list[str]:
        return [r.message for r in self.records if level is None or r.level == level]


class StructuredLogger:
    """
    Runner logger.

    Built by ``configure_logging``; debug records are dropped unless the
    debug toggle was on.
    """

    def __init__(self, debug: bool, handlers: list[LogHandler]):
        self.debug_enabled = debug
        self.handlers = handlers

    def _log(
        self,
        level: LogLevel,
        message: str,
        error: BaseException | None = None,
        **data: Any,
    ) -> None:
        invocation = _invocation.get()
        record = LogRecord(
            level=level,
            message=message,
            data=data,
            error=error,
            tool=invocation.get("tool"),
            subcommand=invocation.get("subcommand"),
            invocation_id=invocation.get("invocation_id"),
        )

        for handler in self.handlers:
            try:
                handler.emit(record)
            except Exception:
                pass  # A broken log sink must not fail the command

    def debug(self, message: str, **data: Any) -> None:
        if self.debug_enabled:
            self._log(LogLevel.DEBUG, message, **data)

    def info(self, message: str, **data: Any) -> None:
        self._log(LogLevel.INFO, message, **data)

    def warning(self, message: str, error: BaseException | None = None, **data: Any) -> None:
        self._log(LogLevel.WARNING, message, error=error, **data)

    def error(self, message: str, error: BaseException | None = None, **data: Any) -> None:
        self._log(LogLevel.ERROR, message, error=error, **data)

    def close(self) -> None:
        """Release handler resources such as an open log file."""
        for handler in self.handlers:
            handler.close()

    @staticmethod
    @contextmanager
    def context(**invocation: str):
        """
        Tag every record logged inside the block.

        Usage:
            with logger.context(tool="forge", subcommand="build", invocation_id="1a2b3c4d"):
                logger.debug("Resolving binary")
        """
        token = _invocation.set({**_invocation.get(), **invocation})
        try:
            yield
        finally:
            _invocation.reset(token)


def configure_logging(
    settings: RunnerSettings,
    handlers: list[LogHandler] | None = None,
) -> StructuredLogger:
    """
    Build a runner logger from settings.

    Args:
        settings: Supplies the debug toggle, output format and log file
        handlers: Replace the settings-derived sinks (used by tests)
    """
    if handlers is None:
        handlers = [ConsoleHandler(json_output=settings.log_format == "json")]
        if settings.log_file:
            handlers.append(FileHandler(settings.log_file))
    return StructuredLogger(debug=settings.debug, handlers=handlers)


@lru_cache(maxsize=8)
def get_logger(settings: RunnerSettings | None = None) -> StructuredLogger:
    """
    Shared logger for ``settings`` (process settings by default).

    Components that are not handed a logger use this, so one settings object
    maps to one set of sinks and at most one open log file.
    """
    return configure_logging(settings or get_settings())
