"""Setup command - installs the stack and downloads models."""

from typing import Annotated

from cyclopts import App, Parameter

from tabbystack.exceptions import TabbyStackError
from tabbystack.launcher import tagged
from tabbystack.setup import SetupReport, create_gate, download_model, run_setup

from ._context import CLIContext
from ._shared import create_sink, handle_error

app = App(
    name="setup",
    help="Install TabbyAPI and its dependencies, then download the default model",
    help_on_error=True,
)


@app.default
def setup(
    *,
    skip_model: Annotated[
        bool,
        Parameter(help="Skip model download during setup."),
    ] = False,
) -> None:
    """Run the idempotent environment setup.

    Checks Python, git and the NVIDIA driver, creates the virtual
    environment, clones or updates TabbyAPI, installs its dependencies and
    downloads the model named by MODEL_REPO and MODEL_REVISION.
    """
    ctx = CLIContext.get_current()

    try:
        report = run_setup(
            ctx.config, skip_model=skip_model, sink=create_sink(ctx), logger=ctx.logger
        )
    except TabbyStackError as e:
        handle_error(e, console=ctx.error_console)

    _print_summary(report, ctx)


@app.command(name="download-model")
def download_model_command(
    repo: Annotated[str, Parameter(help="HuggingFace model repository.")],
    revision: Annotated[str, Parameter(help="Branch or quantization, e.g. 6_5.")],
) -> None:
    """Download an additional model.

    Example: tabbystack setup download-model bartowski/QwQ-32B-exl2 6_5
    """
    ctx = CLIContext.get_current()
    gate = create_gate(ctx.config, logger=ctx.logger)

    try:
        _ = download_model(gate, repo, revision, sink=create_sink(ctx))
    except TabbyStackError as e:
        handle_error(e, console=ctx.error_console)


def _print_summary(report: SetupReport, ctx: CLIContext) -> None:
    if ctx.quiet:
        return

    console = ctx.console
    console.print()
    console.print("=" * 76)
    console.print(tagged("OK", "Setup complete!"))
    console.print("=" * 76)
    console.print()
    console.print("Installed components:")
    console.print(f"  - Python venv:  {report.venv_dir}", markup=False)
    console.print(f"  - TabbyAPI:     {report.tabby_dir}", markup=False)
    console.print(f"  - Models:       {report.models_dir}", markup=False)
    console.print()
    if report.model is not None:
        console.print("Downloaded model:")
        console.print(f"  - {report.model.path}", markup=False)
        console.print()
    console.print("Next steps:")
    console.print(f"  1. Review/edit {ctx.config.paths.tabby_config.name} if needed", markup=False)
    console.print("  2. Run 'tabbystack start' to start all services", markup=False)
    console.print(f"  3. Open {ctx.config.webui.base_url} in your browser", markup=False)
