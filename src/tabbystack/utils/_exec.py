"""Execution utilities for external commands.

This module wraps ``subprocess.run`` for the tools the stack shells out to
(git, pip, docker, nvidia-smi, huggingface-cli) with uniform timeout
handling, optional output capture, and error reporting.
"""

import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

# Default timeout in milliseconds for captured commands
DEFAULT_TIMEOUT_MS: int = 60000

# Maximum output size in bytes
MAX_OUTPUT_BYTES: int = 102400  # 100KB


@dataclass(frozen=True, slots=True)
class CommandConfig:
    """Configuration for command execution.

    Attributes:
        args: Program and arguments to execute.
        cwd: Working directory for execution.
        env: Additional environment variables to set.
        capture: Capture stdout/stderr instead of inheriting the terminal.
        timeout_ms: Execution timeout in milliseconds, or None for no limit.
    """

    args: tuple[str, ...]
    cwd: str | Path | None = None
    env: dict[str, str] = field(default_factory=dict)
    capture: bool = True
    timeout_ms: int | None = DEFAULT_TIMEOUT_MS


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Result from command execution.

    Attributes:
        success: Whether the command ran and exited with status 0.
        exit_code: Process exit code, or None if execution failed.
        stdout: Standard output (empty unless captured).
        stderr: Standard error (empty unless captured).
        error: Error message if execution failed (timeout, not found, etc.).
        timed_out: Whether the command timed out.
        command_not_found: Whether the program was not found.
    """

    success: bool
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    error: str | None = None
    timed_out: bool = False
    command_not_found: bool = False

    @property
    def lines(self) -> list[str]:
        """Return non-empty stdout lines with surrounding whitespace removed."""
        return [line.strip() for line in self.stdout.splitlines() if line.strip()]


def truncate_output(output: str, max_bytes: int = MAX_OUTPUT_BYTES) -> str:
    """Truncate output to max bytes, preserving valid UTF-8.

    Args:
        output: The string to truncate.
        max_bytes: Maximum size in bytes.

    Returns:
        Truncated string with indicator if truncated.
    """
    if not output:
        return output

    encoded = output.encode("utf-8")
    if len(encoded) <= max_bytes:
        return output

    # 'ignore' drops an incomplete multi-byte sequence at the cut
    truncated = encoded[:max_bytes].decode("utf-8", errors="ignore")

    return truncated + "\n... [output truncated]"


def which(program: str) -> str | None:
    """Return the full path of ``program`` on PATH, or None."""
    return shutil.which(program)


def run_command(config: CommandConfig) -> CommandResult:
    """Execute an external command.

    Args:
        config: Command configuration specifying args, env, cwd, timeout, etc.

    Returns:
        CommandResult with execution outcome.
    """
    if not config.args:
        return CommandResult(success=False, error="No command specified")

    env = {**os.environ, **config.env}
    cwd = str(config.cwd) if config.cwd else None
    timeout_seconds = (
        config.timeout_ms / 1000.0 if config.timeout_ms is not None else None
    )

    try:
        result = subprocess.run(  # noqa: S603
            list(config.args),
            env=env,
            cwd=cwd,
            capture_output=config.capture,
            timeout=timeout_seconds,
            check=False,
        )
    except subprocess.TimeoutExpired:
        return CommandResult(
            success=False,
            error=f"Command timed out after {timeout_seconds}s",
            timed_out=True,
        )
    except FileNotFoundError as e:
        return CommandResult(
            success=False,
            error=str(e),
            command_not_found=True,
        )
    except OSError as e:
        return CommandResult(success=False, error=str(e))

    stdout = ""
    stderr = ""
    if config.capture:
        stdout = truncate_output(result.stdout.decode("utf-8", errors="replace"))
        stderr = truncate_output(result.stderr.decode("utf-8", errors="replace"))

    return CommandResult(
        success=result.returncode == 0,
        exit_code=result.returncode,
        stdout=stdout,
        stderr=stderr,
        error=None if result.returncode == 0 else f"Exited with code {result.returncode}",
    )


def run(
    *args: str,
    cwd: str | Path | None = None,
    env: dict[str, str] | None = None,
    capture: bool = True,
    timeout_ms: int | None = DEFAULT_TIMEOUT_MS,
) -> CommandResult:
    """Shorthand for ``run_command(CommandConfig(...))``."""
    return run_command(
        CommandConfig(
            args=args,
            cwd=cwd,
            env=env or {},
            capture=capture,
            timeout_ms=timeout_ms,
        )
    )
