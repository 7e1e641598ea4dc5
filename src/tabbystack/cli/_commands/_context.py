# ruff: noqa: TC003  # Path needed at runtime for dataclass field
"""CLI context for global state management.

The CLIContext is set once at CLI startup by the meta command and made
available to all commands via contextvars.
"""

import contextvars
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console

from tabbystack.config import Config, load_config

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger


class OutputFormat(StrEnum):
    """Supported output formats for commands."""

    TABLE = "table"
    JSON = "json"


_current_cli_context: contextvars.ContextVar["CLIContext | None"] = (  # noqa: UP037
    contextvars.ContextVar("cli_context", default=None)
)


@dataclass(frozen=True, slots=True)
class CLIContext:
    """Global CLI context with configuration and options.

    Attributes:
        config: Loaded configuration object.
        verbose: Enable verbose output with additional details.
        quiet: Suppress non-essential output.
        project_root: Project root given on the command line.
        logger: Structured logger for CLI commands (writes to file only).
        console: Console for regular output.
        error_console: Console for errors.
    """

    config: Config = field(repr=False)
    verbose: bool = False
    quiet: bool = False
    project_root: Path | None = None
    logger: "FilteringBoundLogger | None" = field(default=None, repr=False)  # noqa: UP037
    console: Console = field(default_factory=Console, repr=False)
    error_console: Console = field(
        default_factory=lambda: Console(stderr=True), repr=False
    )

    @classmethod
    def get_current(cls) -> "CLIContext":  # noqa: UP037
        """Get the active CLIContext, or a default one if none is set."""
        ctx = _current_cli_context.get()
        if ctx is not None:
            return ctx
        return cls(config=load_config())

    @classmethod
    def set_current(cls, ctx: "CLIContext") -> None:  # noqa: UP037
        """Set the active CLIContext."""
        _ = _current_cli_context.set(ctx)

    @classmethod
    def reset(cls) -> None:
        """Clear the active context.

        This is primarily useful for testing to ensure a clean state between tests.
        """
        _ = _current_cli_context.set(None)
