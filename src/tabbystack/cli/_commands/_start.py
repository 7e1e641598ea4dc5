"""Start command - brings the stack up."""

from typing import Annotated

from cyclopts import App, Parameter

from tabbystack.exceptions import TabbyStackError

from ._context import CLIContext
from ._shared import build_launcher, handle_error, print_startup_summary

app = App(name="start", help="Start TabbyAPI, then Open WebUI", help_on_error=True)


@app.default
def start(
    *,
    no_optional_tail: Annotated[
        bool,
        Parameter(help="Only start mandatory services."),
    ] = False,
    no_webui: Annotated[
        bool,
        Parameter(help="Only start TabbyAPI, skip Open WebUI."),
    ] = False,
) -> None:
    """Start the stack.

    TabbyAPI runs natively for GPU access and must be healthy before Open
    WebUI (docker compose) is started. Loading a model can take several
    minutes; progress is reported every 30 seconds.

    Environment variables TABBY_PORT, WEBUI_PORT and TABBY_STARTUP_TIMEOUT
    override the configured values.
    """
    ctx = CLIContext.get_current()
    launcher = build_launcher(ctx)

    try:
        report = launcher.start_all(include_optional_tail=not (no_optional_tail or no_webui))
    except TabbyStackError as e:
        handle_error(e, console=ctx.error_console)

    print_startup_summary(report, ctx)
