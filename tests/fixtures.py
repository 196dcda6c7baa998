"""
Test Fixtures

Helpers shared by the test modules: fake tool scripts and a spawn-recording
process runner.
"""

import os
import stat
from pathlib import Path

from foundry_runner.tools.process import ProcessRunner

FAKE_TOOL_SCRIPT = """#!/bin/sh
if [ "$1" = "--version" ]; then
    echo "{name} 0.2.0 (test)"
    exit 0
fi
for arg in "$@"; do
    echo "arg: $arg"
done
echo "cwd: $(pwd)"
"""


class RecordingRunner(ProcessRunner):
    """ProcessRunner that records every argument vector it spawns."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls: list[list[str]] = []

    async def run(self, argv, **kwargs):
        self.calls.append(list(argv))
        return await super().run(argv, **kwargs)


def write_executable(path: Path, body: str, mode: int = 0o755) -> Path:
    """Write a script and mark it executable."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body)
    os.chmod(path, mode)
    return path


def remove_exec_bits(path: Path) -> None:
    mode = os.stat(path).st_mode
    os.chmod(path, mode & ~(stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))
