"""Stop command - brings the stack down."""

from typing import Annotated

from cyclopts import App, Parameter

from tabbystack.exceptions import GracefulShutdownTimeoutError, TabbyStackError
from tabbystack.launcher import StopOutcome, tagged

from ._context import CLIContext
from ._shared import ExitCode, build_launcher, exit_with_error, handle_error

app = App(name="stop", help="Stop Open WebUI, then TabbyAPI", help_on_error=True)


@app.default
def stop(
    *,
    force: Annotated[
        bool,
        Parameter(
            name=["--force", "-f"],
            negative=(),
            help="Force kill processes if graceful shutdown fails.",
        ),
    ] = False,
) -> None:
    """Stop all services in reverse start order.

    TabbyAPI gets SIGTERM and the configured grace period to exit. Without
    --force a process that outlives it is left running and the command
    fails. With --force it is killed, as are TabbyAPI processes found
    without a PID file.
    """
    ctx = CLIContext.get_current()
    launcher = build_launcher(ctx)

    try:
        report = launcher.stop_all(force=force)
    except GracefulShutdownTimeoutError as e:
        exit_with_error(str(e), ExitCode.FAILURE, console=ctx.error_console)
    except TabbyStackError as e:
        handle_error(e, console=ctx.error_console)

    if not report.ok:
        failed = ", ".join(r.label for r in report.results if r.outcome is StopOutcome.FAILED)
        exit_with_error(f"Failed to stop: {failed}", console=ctx.error_console)

    if not ctx.quiet:
        ctx.console.print()
        ctx.console.print(tagged("OK", "All services stopped"))
