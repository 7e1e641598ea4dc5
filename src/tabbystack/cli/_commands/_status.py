"""Status command - shows what is running."""

from typing import Annotated

from cyclopts import App, Parameter
from rich.table import Table

from ._context import CLIContext, OutputFormat
from ._shared import build_launcher, format_json

app = App(name="status", help="Show service status", help_on_error=True)


@app.default
def status(
    *,
    format: Annotated[  # noqa: A002
        OutputFormat,
        Parameter(name=["--format"], help="Output format."),
    ] = OutputFormat.TABLE,
) -> None:
    """Show whether each service is running and healthy."""
    ctx = CLIContext.get_current()
    statuses = build_launcher(ctx).status()

    if format == OutputFormat.JSON:
        print(format_json({"services": [s.to_dict() for s in statuses]}))
        return

    table = Table(title="tabbystack services")
    table.add_column("Service")
    table.add_column("Kind")
    table.add_column("Running")
    table.add_column("Healthy")
    table.add_column("PID")
    table.add_column("URL")

    for service in statuses:
        table.add_row(
            service.label,
            str(service.kind),
            "yes" if service.running else "no",
            "yes" if service.healthy else "no",
            str(service.pid) if service.pid is not None else "-",
            service.url,
        )

    ctx.console.print(table)
