"""Restart command - clean restart of the inference service."""

from typing import Annotated

from cyclopts import App, Parameter

from tabbystack.exceptions import TabbyStackError
from tabbystack.launcher import INFERENCE_SERVICE

from ._context import CLIContext
from ._shared import build_launcher, handle_error, print_startup_summary

app = App(name="restart", help="Restart TabbyAPI", help_on_error=True)


@app.default
def restart(
    *,
    graceful: Annotated[
        bool,
        Parameter(help="Fail instead of force killing a process that will not stop."),
    ] = False,
) -> None:
    """Stop TabbyAPI and start it again on its own.

    By default a process that outlives the grace period is killed so the
    GPU memory it holds is released. Open WebUI is left untouched.
    """
    ctx = CLIContext.get_current()
    launcher = build_launcher(ctx)

    try:
        report = launcher.restart(INFERENCE_SERVICE, force=not graceful)
    except TabbyStackError as e:
        handle_error(e, console=ctx.error_console)

    print_startup_summary(report, ctx)
