"""
Command Executor

Secure execution of allowlisted Foundry commands.

Pipeline:
1. Reject empty argument lists
2. Check (tool, subcommand) against the allowlist
3. Sanitize every argument and validate environment overrides
4. Resolve the working directory (caller value or discovered project dir)
5. Resolve the binary and re-verify it right before use
6. Build the child environment
7. Spawn through the strategy ladder (direct, then shell); a failed direct
   run is retried once through the shell
8. On a missing-executable failure, evict, re-verify and retry the shell
   strategy once more before giving up

Design decisions:
- Validation happens before anything is spawned
- A non-zero exit moves down the ladder like a spawn failure, except for
  NON_REPLAYABLE_COMMANDS, whose side effects must not happen twice
- Timeouts and output overflow are terminal
- Every failure reason is kept for the final diagnostic
"""

import asyncio
import errno as errno_codes
import os
from typing import Mapping, Sequence
from uuid import uuid4

from foundry_runner.config.settings import RunnerSettings, get_settings
from foundry_runner.core.exceptions import (
    AttemptFailure,
    BinaryNotFoundError,
    CommandNotAllowedError,
    ExecutionFailedError,
    FailureDiagnostics,
    InvalidArgumentError,
)
from foundry_runner.core.types import (
    ExecutionOptions,
    ExecutionRequest,
    ExecutionResult,
    ToolName,
)
from foundry_runner.observability.logging import StructuredLogger, get_logger
from foundry_runner.safety.allowlist import ALLOWED_COMMANDS, tool_key, validate_command
from foundry_runner.safety.sanitizer import sanitize_args, validate_environment
from foundry_runner.tools.environment import build_environment, toolchain_bin_dir
from foundry_runner.tools.process import ProcessOutcome, ProcessRunner
from foundry_runner.tools.resolver import BinaryResolver, check_real_executable
from foundry_runner.tools.strategies import (
    SHELL_EXIT_ERRNO,
    DirectStrategy,
    ExecutionStrategy,
    Invocation,
    ShellStrategy,
)
from foundry_runner.tools.workdir import ProjectLocator

# Tools that must run inside the project directory to find foundry.toml
DIRECTORY_BOUND_TOOLS = frozenset({ToolName.FORGE.value})

# Subcommand that gates detached launches
LAUNCH_SUBCOMMAND = "start"

# Commands that may already have taken effect when they exit non-zero, so a
# failed run is reported instead of replayed through the next strategy
NON_REPLAYABLE_COMMANDS = frozenset({(ToolName.CAST.value, "send")})

# Errnos meaning the binary itself could not be run
_UNRUNNABLE_ERRNOS = frozenset({errno_codes.ENOENT, errno_codes.EACCES})

_MAX_STDERR_IN_MESSAGE = 2000


class CommandExecutor:
    """
    Runs allowlisted Foundry commands.

    Provides:
    - Allowlist gating and argument sanitization
    - Verified binary resolution with a shared cache
    - Strategy fallback with layered diagnostics
    - Timeout and output-size enforcement
    """

    def __init__(
        self,
        settings: RunnerSettings | None = None,
        resolver: BinaryResolver | None = None,
        locator: ProjectLocator | None = None,
        runner: ProcessRunner | None = None,
        logger: StructuredLogger | None = None,
        allowlist: Mapping[str, frozenset[str]] = ALLOWED_COMMANDS,
    ):
        self._settings = settings or get_settings()
        self._logger = logger or get_logger(self._settings)
        self._runner = runner or ProcessRunner(self._settings.max_buffer_bytes)
        self._resolver = resolver or BinaryResolver(
            settings=self._settings,
            runner=self._runner,
            logger=self._logger,
        )
        self._locator = locator or ProjectLocator(settings=self._settings, logger=self._logger)
        self._allowlist = allowlist

    @property
    def resolver(self) -> BinaryResolver:
        return self._resolver

    async def execute(
        self,
        tool: "ToolName | str",
        raw_args: Sequence[str],
        options: ExecutionOptions | None = None,
    ) -> ExecutionResult:
        """
        Execute a Foundry command.

        Args:
            tool: Tool to run
            raw_args: Caller arguments, subcommand first
            options: Working directory, timeout and environment overrides

        Returns:
            Buffered stdout and stderr

        Raises:
            CommandNotAllowedError: Subcommand is not allowlisted
            InvalidArgumentError: Arguments are missing or invalid
            BinaryNotFoundError: The executable could not be located
            ExecutionTimeoutError: The process exceeded its timeout
            ExecutionFailedError: The process failed or could not be started
        """
        options = options or ExecutionOptions()
        name = tool_key(tool)
        raw_args = list(raw_args)

        if not raw_args:
            raise InvalidArgumentError("At least one argument (the subcommand) is required")

        subcommand = raw_args[0]
        if not validate_command(name, subcommand, self._allowlist):
            raise CommandNotAllowedError(
                f"Command not allowed: {name} {subcommand}",
                tool=name,
                subcommand=subcommand,
            )

        args = sanitize_args(raw_args, options.structural_arguments)
        overrides = validate_environment(options.environment_overrides)

        with self._logger.context(tool=name, subcommand=subcommand, invocation_id=uuid4().hex[:8]):
            default_dir = await self._locator.resolve()
            working_directory = options.working_directory or default_dir

            binary = await self._resolve_verified(name)
            env = build_environment(overrides, settings=self._settings)

            invocation = Invocation(
                tool=name,
                binary=binary,
                args=args,
                working_directory=working_directory,
                env=env,
                timeout_ms=options.timeout_ms or self._settings.default_timeout_ms,
            )

            self._logger.debug(
                "Executing command",
                binary=binary,
                cwd=working_directory,
                args=args,
                path=env.truncated_path(150),
            )

            ladder = self._plan(name, working_directory, default_dir)
            return await self._run_ladder(invocation, ladder)

    async def execute_request(self, request: ExecutionRequest) -> ExecutionResult:
        """Execute a prebuilt request."""
        return await self.execute(request.tool, request.arguments, request.options)

    def close(self) -> None:
        """Release logger resources such as an open log file."""
        self._logger.close()

    async def launch_detached(
        self,
        tool: "ToolName | str",
        args: Sequence[str] = (),
        options: ExecutionOptions | None = None,
    ) -> int:
        """
        Start a long-running tool (e.g. a local ``anvil`` node) and return its PID.

        The process is detached from this call: it runs in its own session
        with output discarded, and its liveness must be polled separately.

        Raises:
            CommandNotAllowedError: The tool may not be launched
            InvalidArgumentError: Arguments are invalid
            BinaryNotFoundError: The executable could not be located
            ExecutionFailedError: The process could not be started
        """
        options = options or ExecutionOptions()
        name = tool_key(tool)

        if not validate_command(name, LAUNCH_SUBCOMMAND, self._allowlist):
            raise CommandNotAllowedError(
                f"Launch not allowed: {name}",
                tool=name,
                subcommand=LAUNCH_SUBCOMMAND,
            )

        sanitized = sanitize_args(list(args), options.structural_arguments)
        overrides = validate_environment(options.environment_overrides)

        with self._logger.context(tool=name, subcommand=LAUNCH_SUBCOMMAND, invocation_id=uuid4().hex[:8]):
            binary = await self._resolve_verified(name)
            env = build_environment(overrides, settings=self._settings)

            cwd = options.working_directory
            if cwd is None:
                default_dir = await self._locator.resolve()
                cwd = default_dir if await asyncio.to_thread(os.path.isdir, default_dir) else None

            try:
                pid = await asyncio.to_thread(
                    self._runner.spawn_detached,
                    [binary, *sanitized],
                    env=env.as_dict(),
                    cwd=cwd,
                )
            except OSError as e:
                self._resolver.cache.evict(name)
                raise ExecutionFailedError(
                    f"Could not launch {name}: {e.strerror or e}",
                    diagnostics=FailureDiagnostics(
                        attempts=[AttemptFailure("detached", str(e), errno=e.errno)],
                        attempted_paths=[binary],
                        search_path=env.truncated_path(),
                        errno=e.errno,
                    ),
                    cause=e,
                )
            except ValueError as e:
                raise InvalidArgumentError(f"Could not launch {name}: {e}", cause=e)

            self._logger.info("Launched detached process", binary=binary, pid=pid)
            return pid

    def _plan(self, tool: str, working_directory: str, default_dir: str) -> list[ExecutionStrategy]:
        shell = ShellStrategy(self._settings.shell)
        if tool in DIRECTORY_BOUND_TOOLS or working_directory != default_dir:
            return [shell]
        return [DirectStrategy(), shell]

    async def _resolve_verified(self, tool: str) -> str:
        """Resolve ``tool`` and check the result once more right before use."""
        resolved = await self._resolver.resolve(tool)
        fallback = os.path.join(toolchain_bin_dir(self._settings), tool)
        cache = self._resolver.cache

        if not os.path.isabs(resolved):
            # Bare name: try the documented location, else leave it to PATH
            real, reason = await asyncio.to_thread(check_real_executable, fallback)
            if reason is None:
                cache.set(tool, fallback)
                return real
            return resolved

        real, reason = await asyncio.to_thread(check_real_executable, resolved)
        if reason is None:
            return real

        cache.evict(tool)
        self._logger.debug("Resolved binary failed verification", path=resolved, reason=reason)

        real_fallback, fallback_reason = await asyncio.to_thread(check_real_executable, fallback)
        if fallback_reason is None:
            cache.set(tool, fallback)
            return real_fallback

        raise BinaryNotFoundError(
            f"Command not found: {tool}. Checked {resolved} ({reason}) and {fallback} ({fallback_reason})",
            tool=tool,
            attempted_paths=[resolved, fallback],
        )

    async def _run_ladder(
        self,
        invocation: Invocation,
        ladder: list[ExecutionStrategy],
    ) -> ExecutionResult:
        diagnostics = FailureDiagnostics(
            attempted_paths=[invocation.binary],
            search_path=invocation.env.truncated_path(),
        )
        replayable = (invocation.tool, invocation.args[0]) not in NON_REPLAYABLE_COMMANDS

        for position, strategy in enumerate(ladder):
            has_next = position < len(ladder) - 1
            outcome = await self._attempt(
                strategy,
                invocation,
                diagnostics,
                retry_on_exit=replayable and has_next,
            )
            if outcome is not None:
                return ExecutionResult(stdout=outcome.stdout, stderr=outcome.stderr)

        if self._last_was_unrunnable(diagnostics):
            outcome = await self._diagnostic_retry(invocation, diagnostics)
            if outcome is not None:
                return ExecutionResult(stdout=outcome.stdout, stderr=outcome.stderr)

        if diagnostics.attempts[-1].errno == errno_codes.ENOENT:
            summary = f"Command not found: {invocation.tool}"
        else:
            summary = f"Could not start {invocation.tool}: {diagnostics.attempts[-1].reason}"

        raise ExecutionFailedError(
            f"{summary}. Tried {', '.join(diagnostics.attempted_paths)}; "
            f"PATH: {diagnostics.search_path} (errno: {diagnostics.errno})",
            diagnostics=diagnostics,
        )

    async def _attempt(
        self,
        strategy: ExecutionStrategy,
        invocation: Invocation,
        diagnostics: FailureDiagnostics,
        retry_on_exit: bool = False,
    ) -> ProcessOutcome | None:
        """
        Run one strategy.

        Returns the outcome on success, None when the next strategy should
        try: the process could not be started, or it exited non-zero and
        ``retry_on_exit`` is set. Any other non-zero exit raises
        ExecutionFailedError.
        """
        try:
            outcome = await strategy.attempt(invocation, self._runner)
        except OSError as e:
            diagnostics.attempts.append(
                AttemptFailure(strategy.name, e.strerror or str(e), errno=e.errno)
            )
            diagnostics.errno = e.errno
            self._logger.debug(
                "Strategy could not start process",
                strategy=strategy.name,
                errno=e.errno,
                reason=str(e),
            )
            return None
        except ValueError as e:
            # e.g. "embedded null byte" from the OS layer
            raise InvalidArgumentError(
                f"{invocation.tool} arguments rejected by the OS: {e}",
                cause=e,
            )

        if outcome.ok:
            self._logger.debug(
                "Command succeeded",
                strategy=strategy.name,
                stdout_length=len(outcome.stdout),
                stderr_length=len(outcome.stderr),
            )
            return outcome

        diagnostics.returncode = outcome.returncode
        diagnostics.stderr = outcome.stderr

        if strategy.is_missing_executable(outcome):
            code = SHELL_EXIT_ERRNO[outcome.returncode]
            diagnostics.attempts.append(
                AttemptFailure(
                    strategy.name,
                    outcome.stderr.strip() or os.strerror(code),
                    errno=code,
                    returncode=outcome.returncode,
                )
            )
            diagnostics.errno = code
            self._logger.debug(
                "Shell could not run the binary",
                strategy=strategy.name,
                returncode=outcome.returncode,
            )
            return None

        diagnostics.attempts.append(
            AttemptFailure(strategy.name, "non-zero exit", returncode=outcome.returncode)
        )
        if retry_on_exit:
            self._logger.debug(
                "Command exited non-zero, retrying with next strategy",
                strategy=strategy.name,
                returncode=outcome.returncode,
            )
            return None

        message = outcome.stderr.strip()[-_MAX_STDERR_IN_MESSAGE:] or (
            f"{invocation.tool} exited with code {outcome.returncode}"
        )
        raise ExecutionFailedError(message, diagnostics=diagnostics)

    def _last_was_unrunnable(self, diagnostics: FailureDiagnostics) -> bool:
        if not diagnostics.attempts:
            return False
        return diagnostics.attempts[-1].errno in _UNRUNNABLE_ERRNOS

    async def _diagnostic_retry(
        self,
        invocation: Invocation,
        diagnostics: FailureDiagnostics,
    ) -> ProcessOutcome | None:
        """Evict, re-verify the binary and give the shell strategy one more try."""
        self._resolver.cache.evict(invocation.tool)

        if os.path.isabs(invocation.binary):
            _, reason = await asyncio.to_thread(check_real_executable, invocation.binary)
            if reason is not None:
                code = errno_codes.EACCES if reason == "is not executable" else errno_codes.ENOENT
                diagnostics.attempts.append(
                    AttemptFailure("verify", f"{invocation.binary} {reason}", errno=code)
                )
                diagnostics.errno = code
                self._logger.debug("Binary vanished before retry", path=invocation.binary, reason=reason)
                return None

        self._logger.debug("Retrying through shell after missing-executable failure")
        return await self._attempt(ShellStrategy(self._settings.shell), invocation, diagnostics)
