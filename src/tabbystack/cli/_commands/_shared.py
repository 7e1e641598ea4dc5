# pyright: reportExplicitAny=false
"""Shared CLI utilities for commands.

This module provides common utilities used across CLI command implementations:
- Standardized exit codes
- JSON output formatting
- Categorized error reporting
- Construction of the launcher from the CLI context
"""

from collections.abc import Sequence
from enum import IntEnum
from typing import Any, Never

from rich.console import Console

from tabbystack.exceptions import (
    AlreadyRunningError,
    ConfigError,
    HealthCheckError,
    PreconditionError,
    SetupError,
    TabbyStackError,
)
from tabbystack.health import HealthPoller
from tabbystack.launcher import (
    ComposeRuntime,
    ConsoleEventSink,
    ServiceLauncher,
    StartOutcome,
    StartupReport,
    build_service_definitions,
    tagged,
)
from tabbystack.supervisor import ProcessSupervisor, ServiceKind

from ._context import CLIContext

FormattableData = dict[str, Any]

__all__ = [
    "ExitCode",
    "FormattableData",
    "build_launcher",
    "create_sink",
    "exit_with_error",
    "format_json",
    "get_error_console",
    "handle_error",
    "print_startup_summary",
]


class ExitCode(IntEnum):
    """Exit codes for tabbystack commands."""

    SUCCESS = 0
    FAILURE = 1


def format_json(data: FormattableData, *, indent: bool = True) -> str:
    """Format data as JSON.

    Args:
        data: Dictionary to format as JSON.
        indent: Whether to pretty-print with indentation.

    Returns:
        JSON-formatted string representation.
    """
    import orjson

    options = orjson.OPT_INDENT_2 if indent else 0
    return orjson.dumps(data, option=options).decode("utf-8")


def get_error_console() -> Console:
    """Get a Rich console configured for error output to stderr."""
    return Console(stderr=True)


def exit_with_error(
    message: str,
    code: ExitCode = ExitCode.FAILURE,
    *,
    console: Console | None = None,
    details: Sequence[str] = (),
) -> Never:
    """Print an ``[ERROR]`` message and exit with the specified code.

    Args:
        message: The error message to display.
        code: The exit code to use.
        console: Console for output. Defaults to a new stderr console.
        details: Extra lines printed verbatim after the message.

    Raises:
        SystemExit: Always raised with the specified exit code.
    """
    if console is None:
        console = get_error_console()

    console.print(tagged("ERROR", message))
    for line in details:
        console.print(line, markup=False, highlight=False)
    raise SystemExit(code)


def handle_error(error: TabbyStackError, *, console: Console | None = None) -> Never:
    """Report a tabbystack error by category and exit with FAILURE.

    Raises:
        SystemExit: Always raised with ExitCode.FAILURE.
    """
    details: list[str] = []
    message = str(error)

    if isinstance(error, PreconditionError):
        if error.hint:
            details.append(error.hint)
    elif isinstance(error, AlreadyRunningError):
        details.append("Run 'tabbystack stop' first or use the existing instance.")
    elif isinstance(error, HealthCheckError):
        if error.log_tail:
            details.append(f"Last {len(error.log_tail)} lines of the {error.service_name} log:")
            details.extend(error.log_tail)
    elif isinstance(error, SetupError):
        message = f"Setup step '{error.step}' failed: {message}"
    elif isinstance(error, ConfigError):
        message = f"Configuration error: {message}"

    exit_with_error(message, console=console, details=details)


def create_sink(ctx: CLIContext) -> ConsoleEventSink:
    """Return a console event sink honoring ``--quiet``."""
    return ConsoleEventSink(ctx.console, ctx.error_console, quiet=ctx.quiet)


def build_launcher(ctx: CLIContext) -> ServiceLauncher:
    """Assemble the launcher for the configured stack."""
    config = ctx.config
    logger = ctx.logger
    definitions = build_service_definitions(config)
    compose_file = next(
        (d.compose_file for d in definitions if d.kind is ServiceKind.CONTAINER), None
    )
    return ServiceLauncher(
        definitions,
        ProcessSupervisor(config.paths.logs_dir, logger=logger),
        HealthPoller(progress_interval=config.inference.progress_interval),
        ComposeRuntime(config.root, compose_file, logger=logger),
        sink=create_sink(ctx),
        logger=logger,
        grace_period=config.inference.grace_period,
    )


def print_startup_summary(report: StartupReport, ctx: CLIContext) -> None:
    """Print where each started service can be reached."""
    console = ctx.console
    if ctx.quiet:
        return

    console.print()
    console.print("=" * 76)
    console.print(tagged("OK", "Services started successfully!"))
    console.print("=" * 76)
    console.print()

    for result in report.results:
        if result.outcome is not StartOutcome.READY:
            continue
        console.print(f"{result.label}:", markup=False)
        console.print(f"  - URL:     {result.url}", markup=False)
        if result.log_file is not None:
            console.print(f"  - Docs:    {result.url}/docs", markup=False)
            console.print(f"  - Logs:    {result.log_file}", markup=False)
        if result.pid is not None:
            console.print(f"  - PID:     {result.pid}", markup=False)
        console.print()

    console.print("To stop services: tabbystack stop", markup=False)
    console.print("To check services: tabbystack status", markup=False)
