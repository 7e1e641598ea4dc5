"""docker compose wrapper for the companion UI."""

from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, final

from tabbystack.exceptions import ContainerRuntimeError
from tabbystack.utils import CommandResult, null_logger, run, which

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

# Generous limit for image pulls triggered by ``up``
COMPOSE_TIMEOUT_MS = 15 * 60 * 1000

# Short limit for read-only queries
QUERY_TIMEOUT_MS = 30 * 1000


@final
class ComposeRuntime:
    """Runs docker compose against one project.

    The standalone ``docker-compose`` binary is preferred (v1 compatibility),
    then the ``docker compose`` plugin. An explicit ``command`` skips
    discovery.
    """

    __slots__ = ("_command", "_logger", "compose_file", "project_dir")

    def __init__(
        self,
        project_dir: Path,
        compose_file: Path | None = None,
        *,
        command: tuple[str, ...] | None = None,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize the runtime.

        Args:
            project_dir: Directory compose runs in.
            compose_file: Compose file passed with ``-f``; None uses the
                compose default lookup.
            command: Compose invocation, e.g. ``("docker", "compose")``.
            logger: Structured logger for diagnostics.
        """
        self.project_dir = project_dir
        self.compose_file = compose_file
        self._command = command
        self._logger = logger or null_logger()

    def command(self) -> tuple[str, ...] | None:
        """Return the compose invocation, or None if no runtime is installed."""
        if self._command is not None:
            return self._command
        if which("docker-compose"):
            return ("docker-compose",)
        if which("docker"):
            probe = run("docker", "compose", "version", timeout_ms=QUERY_TIMEOUT_MS)
            if probe.success:
                return ("docker", "compose")
        return None

    def is_available(self) -> bool:
        """Return True if a compose runtime can be invoked."""
        return self.command() is not None

    def up(self, env: Mapping[str, str] | None = None) -> None:
        """Start the project detached.

        Raises:
            ContainerRuntimeError: If compose is missing or exits non-zero.
        """
        _ = self._run("up", "-d", env=env, timeout_ms=COMPOSE_TIMEOUT_MS)

    def down(self) -> None:
        """Stop and remove the project's containers.

        Raises:
            ContainerRuntimeError: If compose is missing or exits non-zero.
        """
        _ = self._run("down", timeout_ms=COMPOSE_TIMEOUT_MS)

    def is_running(self) -> bool:
        """Return True if the project has any containers.

        A failing ``ps`` counts as not running.
        """
        try:
            result = self._run("ps", "--quiet", timeout_ms=QUERY_TIMEOUT_MS)
        except ContainerRuntimeError:
            return False
        return bool(result.lines)

    def logs_hint(self) -> str:
        """Return the command an operator can run to follow the logs."""
        base = self.command() or ("docker-compose",)
        return " ".join((*base, "logs", "-f"))

    def _args(self, *args: str) -> tuple[str, ...]:
        base = self.command()
        if base is None:
            msg = "No docker compose runtime found on PATH"
            raise ContainerRuntimeError(msg, command=("docker-compose", *args))
        if self.compose_file is not None:
            return (*base, "-f", str(self.compose_file), *args)
        return (*base, *args)

    def _run(
        self,
        *args: str,
        env: Mapping[str, str] | None = None,
        timeout_ms: int,
    ) -> CommandResult:
        command = self._args(*args)
        self._logger.debug("compose_command", argv=list(command))
        result = run(
            *command,
            cwd=self.project_dir,
            env=dict(env or {}),
            timeout_ms=timeout_ms,
        )
        if not result.success:
            detail = result.stderr.strip() or result.error or "unknown error"
            msg = f"'{' '.join(command)}' failed: {detail}"
            self._logger.warning(
                "compose_failed", argv=list(command), exit_code=result.exit_code
            )
            raise ContainerRuntimeError(
                msg, command=command, exit_code=result.exit_code
            )
        return result
