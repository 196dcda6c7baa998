"""
Installation Health

Reports whether each Foundry tool can be resolved and run, and offers
presence checks that collaborators use to poll long-running services such
as a local anvil node.
"""

from typing import Iterable

from foundry_runner.core.exceptions import RunnerError
from foundry_runner.core.types import BinaryStatus, ToolName
from foundry_runner.observability.logging import StructuredLogger, get_logger
from foundry_runner.safety.allowlist import tool_key
from foundry_runner.tools.environment import build_environment
from foundry_runner.tools.process import ProcessRunner
from foundry_runner.tools.resolver import BinaryResolver

# Default pattern identifying a local anvil node
ANVIL_PROCESS_PATTERN = "anvil.*8545"

_PGREP_TIMEOUT_MS = 5000


async def check_installation(
    resolver: BinaryResolver,
    tools: Iterable["ToolName | str"] = tuple(ToolName),
    logger: StructuredLogger | None = None,
) -> dict[str, BinaryStatus]:
    """Resolve and version-check every tool."""
    logger = logger or get_logger(resolver.settings)
    results: dict[str, BinaryStatus] = {}

    for tool in tools:
        name = tool_key(tool)
        try:
            path = await resolver.resolve(name)
        except RunnerError as e:
            results[name] = BinaryStatus(found=False, error=e.message)
            continue

        version = await resolver.probe_version(path)
        if version is None:
            results[name] = BinaryStatus(
                found=False,
                path=path,
                error=f"{path} --version failed",
            )
        else:
            results[name] = BinaryStatus(found=True, path=path, version=version)

    env = build_environment(settings=resolver.settings)
    logger.info(
        "Foundry installation state",
        tools={name: status.model_dump() for name, status in results.items()},
        home=env.variables.get("HOME"),
        path=env.truncated_path(),
    )
    return results


async def find_process_id(
    pattern: str = ANVIL_PROCESS_PATTERN,
    runner: ProcessRunner | None = None,
    logger: StructuredLogger | None = None,
) -> int | None:
    """PID of the first process whose command line matches ``pattern``."""
    runner = runner or ProcessRunner()
    logger = logger or get_logger()

    try:
        outcome = await runner.run(
            ["pgrep", "-f", pattern],
            env=build_environment().as_dict(),
            timeout_ms=_PGREP_TIMEOUT_MS,
        )
    except (OSError, RunnerError) as e:
        logger.warning("Process lookup failed", pattern=pattern, error=e)
        return None

    if not outcome.ok:
        return None

    for line in outcome.stdout.split():
        if line.isdigit():
            return int(line)
    return None


async def is_process_running(
    pattern: str = ANVIL_PROCESS_PATTERN,
    runner: ProcessRunner | None = None,
    logger: StructuredLogger | None = None,
) -> bool:
    """Whether any process command line matches ``pattern``."""
    return await find_process_id(pattern, runner=runner, logger=logger) is not None
