"""tabbystack CLI commands."""

from typing import TYPE_CHECKING

from ._context import CLIContext, OutputFormat
from ._restart import app as restart_app
from ._setup import app as setup_app
from ._shared import (
    ExitCode,
    FormattableData,
    exit_with_error,
    format_json,
    get_error_console,
    handle_error,
)
from ._start import app as start_app
from ._status import app as status_app
from ._stop import app as stop_app

if TYPE_CHECKING:
    from cyclopts import App

__all__ = [
    "CLIContext",
    "ExitCode",
    "FormattableData",
    "OutputFormat",
    "exit_with_error",
    "format_json",
    "get_error_console",
    "handle_error",
    "register_commands",
    "restart_app",
    "setup_app",
    "start_app",
    "status_app",
    "stop_app",
]


def register_commands(app: "App") -> None:  # noqa: UP037
    app.command(start_app)
    app.command(stop_app)
    app.command(restart_app)
    app.command(status_app)
    app.command(setup_app)

