"""Shell command execution with an optional privilege-elevation chain.

On Windows, deployment commands (service restarts, writes under Program
Files) often need an elevated shell. The executor tries each configured
elevation strategy in order and falls back to a plain, unelevated run when
none of them succeeds. Elsewhere the command simply runs as a child process.

Known limitation: elevated attempts run ``cd <dir> && <command>`` as one
invocation, so a failed directory change is reported the same way as a
failing command.
"""

import asyncio
import shutil
import sys
import tempfile
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from deployhook.config import settings
from deployhook.models.deployment import CommandResult, ErrorKind
from deployhook.utils.logging import get_logger

logger = get_logger(__name__)

PERMISSION_MARKERS = (
    "access is denied",
    "access denied",
    "permission denied",
    "eperm",
    "eacces",
    "elevated privileges required",
    "requires elevation",
)


def classify_error(text: str) -> ErrorKind:
    """Tell permission failures apart from ordinary ones."""
    lowered = text.lower()
    if any(marker in lowered for marker in PERMISSION_MARKERS):
        return ErrorKind.PERMISSION_DENIED
    return ErrorKind.ORDINARY


def _decode(data: bytes | None) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def build_result(
    command: str,
    cwd: Path,
    returncode: int | None,
    stdout: str,
    stderr: str,
    strategy: str,
    started: float,
) -> CommandResult:
    """Turn a finished process into a CommandResult."""
    success = returncode == 0
    return CommandResult(
        command=command,
        working_directory=str(cwd),
        success=success,
        stdout=stdout,
        stderr=stderr,
        exit_code=returncode,
        error_kind=None if success else classify_error(f"{stderr}\n{stdout}"),
        strategy=strategy,
        duration_ms=_elapsed_ms(started),
    )


def spawn_failure(
    command: str, cwd: Path, error: Exception, strategy: str, started: float
) -> CommandResult:
    """Result for a process that could not be started at all."""
    kind = (
        ErrorKind.PERMISSION_DENIED
        if isinstance(error, PermissionError)
        else classify_error(str(error))
    )
    return CommandResult(
        command=command,
        working_directory=str(cwd),
        success=False,
        stderr=str(error),
        error_kind=kind,
        strategy=strategy,
        duration_ms=_elapsed_ms(started),
    )


class ElevationStrategy(ABC):
    """One way of running a command with elevated privileges."""

    name: str = "elevated"

    @abstractmethod
    def available(self) -> bool:
        """Whether this strategy can be attempted on this host."""

    @abstractmethod
    async def attempt(self, command: str, cwd: Path) -> CommandResult:
        """Run ``command`` in ``cwd``; never raises for process failures."""


class StagedElevation(ElevationStrategy):
    """Elevation that needs a script and a log file on disk.

    The elevated process cannot share pipes with us, so the command is
    written to a script that redirects its output into a log file which is
    read back afterwards. The staging directory is always removed.
    """

    script_suffix = ".cmd"

    @abstractmethod
    def render_script(self, command: str, cwd: Path, log_path: Path) -> str:
        """Script text that runs the command and writes output to log_path."""

    @abstractmethod
    def launch_args(self, script_path: Path) -> list[str]:
        """Argument vector that runs the staged script elevated."""

    async def attempt(self, command: str, cwd: Path) -> CommandResult:
        started = time.perf_counter()
        staging = Path(tempfile.mkdtemp(prefix="deployhook-"))
        try:
            script_path = staging / f"run{self.script_suffix}"
            log_path = staging / "output.log"
            script_path.write_text(
                self.render_script(command, cwd, log_path), encoding="utf-8"
            )

            try:
                process = await asyncio.create_subprocess_exec(
                    *self.launch_args(script_path),
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
                launcher_out, launcher_err = await process.communicate()
            except (OSError, ValueError) as e:
                return spawn_failure(command, cwd, e, self.name, started)

            output = ""
            if log_path.exists():
                output = log_path.read_text(encoding="utf-8", errors="replace")

            stderr = _decode(launcher_err)
            if process.returncode != 0 and not stderr:
                stderr = output
            return build_result(
                command,
                cwd,
                process.returncode,
                output or _decode(launcher_out),
                stderr,
                self.name,
                started,
            )
        finally:
            shutil.rmtree(staging, ignore_errors=True)


class PowerShellRunAs(StagedElevation):
    """Start an elevated cmd.exe through PowerShell's ``-Verb RunAs``."""

    name = "powershell-runas"

    def available(self) -> bool:
        return bool(shutil.which("powershell.exe") or shutil.which("powershell"))

    def render_script(self, command: str, cwd: Path, log_path: Path) -> str:
        return (
            "@echo off\r\n"
            f'(cd /d "{cwd}" && {command}) > "{log_path}" 2>&1\r\n'
            "exit /b %ERRORLEVEL%\r\n"
        )

    def launch_args(self, script_path: Path) -> list[str]:
        launcher = (
            "$p = Start-Process -FilePath 'cmd.exe' "
            f"-ArgumentList '/c', '\"{script_path}\"' "
            "-Verb RunAs -Wait -PassThru -WindowStyle Hidden; "
            "exit $p.ExitCode"
        )
        return [
            "powershell.exe",
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-Command",
            launcher,
        ]


class GsudoElevation(ElevationStrategy):
    """Run through gsudo, which keeps the console and its pipes."""

    name = "gsudo"

    def available(self) -> bool:
        return shutil.which("gsudo") is not None

    async def attempt(self, command: str, cwd: Path) -> CommandResult:
        started = time.perf_counter()
        try:
            process = await asyncio.create_subprocess_exec(
                "gsudo",
                "cmd.exe",
                "/c",
                f'cd /d "{cwd}" && {command}',
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate()
        except (OSError, ValueError) as e:
            return spawn_failure(command, cwd, e, self.name, started)
        return build_result(
            command,
            cwd,
            process.returncode,
            _decode(stdout),
            _decode(stderr),
            self.name,
            started,
        )


def default_strategies(
    platform: str | None = None, enabled: bool | None = None
) -> list[ElevationStrategy]:
    """Elevation chain for the host platform, in attempt order."""
    platform = platform or sys.platform
    enabled = settings.elevation_enabled if enabled is None else enabled
    if not enabled or not platform.startswith("win"):
        return []
    return [PowerShellRunAs(), GsudoElevation()]


class CommandExecutor:
    """Runs deployment commands one at a time in a working directory."""

    def __init__(self, strategies: Sequence[ElevationStrategy] | None = None):
        self.strategies = (
            list(strategies) if strategies is not None else default_strategies()
        )

    async def execute(self, command: str, working_directory: str | Path) -> CommandResult:
        """Run a shell command and capture its output."""
        cwd = Path(working_directory)
        if not cwd.is_dir():
            logger.error("executor.missing_directory", cwd=str(cwd), command=command)
            return CommandResult(
                command=command,
                working_directory=str(cwd),
                success=False,
                stderr=f"Working directory does not exist: {cwd}",
                error_kind=ErrorKind.ORDINARY,
            )

        for strategy in self.strategies:
            if not strategy.available():
                logger.debug("executor.strategy_unavailable", strategy=strategy.name)
                continue

            result = await strategy.attempt(command, cwd)
            if result.success:
                return result

            logger.warning(
                "executor.elevation_failed",
                strategy=strategy.name,
                command=command,
                exit_code=result.exit_code,
                error_kind=result.error_kind.value if result.error_kind else None,
            )

        return await self._run_direct(command, cwd)

    async def _run_direct(self, command: str, cwd: Path) -> CommandResult:
        started = time.perf_counter()
        logger.info("executor.running", command=command, cwd=str(cwd))
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate()
        except (OSError, ValueError) as e:
            logger.error("executor.spawn_failed", command=command, error=str(e))
            return spawn_failure(command, cwd, e, "direct", started)

        return build_result(
            command,
            cwd,
            process.returncode,
            _decode(stdout),
            _decode(stderr),
            "direct",
            started,
        )
