"""
Process Runner

Spawns one child process with a time bound and a per-stream output cap.
Output is fully buffered; exceeding the cap is a failure, never a silent
truncation. Each child runs in its own session so a timeout can kill the
whole process group (shell plus tool).
"""

import asyncio
import os
import signal
import subprocess
from dataclasses import dataclass
from typing import Mapping, Sequence

from foundry_runner.core.exceptions import (
    ExecutionTimeoutError,
    OutputLimitExceededError,
)

DEFAULT_MAX_BUFFER_BYTES = 10 * 1024 * 1024

_CHUNK_SIZE = 64 * 1024


@dataclass
class ProcessOutcome:
    """Exit status and decoded output of a finished process."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class _OutputOverflow(Exception):
    def __init__(self, stream: str):
        super().__init__(stream)
        self.stream = stream


class ProcessRunner:
    """
    Runs child processes on the event loop.

    Spawn failures (missing executable, permission denied, bad working
    directory) propagate as ``OSError`` so callers can inspect ``errno``.
    """

    def __init__(self, max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES):
        self._max_buffer_bytes = max_buffer_bytes
        self._detached: list[subprocess.Popen] = []

    @property
    def max_buffer_bytes(self) -> int:
        return self._max_buffer_bytes

    async def run(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        timeout_ms: int,
    ) -> ProcessOutcome:
        """
        Run ``argv`` to completion.

        Raises:
            OSError: The process could not be started
            ExecutionTimeoutError: The process outlived ``timeout_ms``
            OutputLimitExceededError: A stream exceeded the buffer cap
        """
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=dict(env) if env is not None else None,
            cwd=cwd,
            start_new_session=True,
        )

        try:
            return await asyncio.wait_for(
                self._collect(proc),
                timeout=timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            await self._kill(proc)
            raise ExecutionTimeoutError(
                f"Process exceeded {timeout_ms}ms and was killed",
                timeout_ms=timeout_ms,
                context={"argv0": argv[0]},
            )
        except _OutputOverflow as e:
            await self._kill(proc)
            raise OutputLimitExceededError(
                f"Process {e.stream} exceeded {self._max_buffer_bytes} bytes",
                context={"stream": e.stream, "limit": self._max_buffer_bytes},
            )
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

    def spawn_detached(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> int:
        """Start ``argv`` in a new session, discard its output, return its PID."""
        proc = subprocess.Popen(
            list(argv),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            env=dict(env) if env is not None else None,
            cwd=cwd,
            start_new_session=True,
        )
        # Reap finished children so they do not linger as zombies
        self._detached = [p for p in self._detached if p.poll() is None]
        self._detached.append(proc)
        return proc.pid

    async def _collect(self, proc: asyncio.subprocess.Process) -> ProcessOutcome:
        out_task = asyncio.ensure_future(self._read_capped(proc.stdout, "stdout"))
        err_task = asyncio.ensure_future(self._read_capped(proc.stderr, "stderr"))
        try:
            stdout, stderr = await asyncio.gather(out_task, err_task)
        except BaseException:
            out_task.cancel()
            err_task.cancel()
            raise

        returncode = await proc.wait()
        return ProcessOutcome(
            returncode=returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

    async def _read_capped(self, stream: asyncio.StreamReader | None, name: str) -> bytes:
        if stream is None:
            return b""

        buffer = bytearray()
        while True:
            chunk = await stream.read(_CHUNK_SIZE)
            if not chunk:
                return bytes(buffer)
            buffer.extend(chunk)
            if len(buffer) > self._max_buffer_bytes:
                raise _OutputOverflow(name)

    async def _kill(self, proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is None:
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
            except PermissionError:
                proc.kill()
        await proc.wait()
