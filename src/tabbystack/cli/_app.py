"""The command-line interface for tabbystack."""
# ruff: noqa: TC003  # Path needed at runtime for cyclopts parameter parsing

from pathlib import Path
from typing import Annotated

from cyclopts import App, Parameter
from rich.console import Console

from tabbystack.config import ConfigError, load_config
from tabbystack.utils import create_cli_logger

from ._commands import CLIContext, handle_error, register_commands

APP_HELP = "Install, start, stop and inspect a local TabbyAPI + Open WebUI stack."


def create_app(
    console: Console | None = None,
    error_console: Console | None = None,
    *,
    exit_on_error: bool = True,
) -> App:
    if console is None:
        console = Console()
    if error_console is None:
        error_console = Console(stderr=True)
    app = App(
        name="tabbystack",
        help=APP_HELP,
        help_on_error=True,
        console=console,
        error_console=error_console,
        exit_on_error=exit_on_error,
    )

    @app.meta.default
    def _default(  # pyright: ignore[reportUnusedFunction]
        *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
        verbose: Annotated[bool, Parameter(help="Enable verbose output")] = False,
        quiet: Annotated[bool, Parameter(help="Suppress non-essential output")] = False,
        config: Annotated[
            Path | None, Parameter(name="--config", help="Path to config file")
        ] = None,
        project_root: Annotated[
            Path | None, Parameter(name="--project-root", help="Path to project root")
        ] = None,
    ) -> None:
        """Launch tabbystack CLI with global options.

        Args:
            tokens: Command tokens to pass to subcommands.
            verbose: Enable verbose output and debug logging.
            quiet: Suppress non-essential output.
            config: Explicit path to config file.
            project_root: Path to project root directory.
        """
        cli_overrides: dict[str, object] | None = None
        if verbose:
            cli_overrides = {"logging": {"level": "debug"}}

        try:
            loaded_config = load_config(
                project_root=project_root,
                config_path=config,
                cli_overrides=cli_overrides,
            )
        except ConfigError as e:
            handle_error(e, console=error_console)

        logging_config = loaded_config.logging
        rotate = logging_config.max_bytes > 0 and logging_config.backup_count > 0
        cli_logger = create_cli_logger(
            logs_dir=loaded_config.paths.logs_dir,
            level=logging_config.level.value,
            log_format=logging_config.format.value,  # type: ignore[arg-type]
            log_file=logging_config.file,
            command=tokens[0] if tokens else "",
            max_bytes=logging_config.max_bytes if rotate else None,
            backup_count=logging_config.backup_count if rotate else None,
        )

        if verbose and not quiet:
            console.print(
                f"Config sources: {', '.join(loaded_config.sources)}",
                markup=False,
                highlight=False,
            )

        ctx = CLIContext(
            config=loaded_config,
            verbose=verbose,
            quiet=quiet,
            project_root=project_root,
            logger=cli_logger,
            console=console,
            error_console=error_console,
        )
        CLIContext.set_current(ctx)

        try:
            app(tokens)
        finally:
            CLIContext.reset()

    register_commands(app)
    return app


def main() -> None:
    """Default entrypoint for the `tabbystack` CLI."""
    app = create_app()
    app.meta()


if __name__ == "__main__":
    main()
