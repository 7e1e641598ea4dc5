"""tabbystack exceptions."""

from pathlib import Path
from typing import Any


class TabbyStackError(Exception):
    """Base exception for tabbystack errors."""


class PreconditionError(TabbyStackError):
    """A required directory, file, or tool is missing.

    Raised before any side effect so that nothing is left half-started.

    Attributes:
        path: The missing path, if the precondition is filesystem based.
        hint: Suggested remedy shown to the operator.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        hint: str | None = None,
    ) -> None:
        """Initialize with error message and precondition context."""
        super().__init__(message)
        self.path: Path | None = path
        self.hint: str | None = hint


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(TabbyStackError):
    """Base exception for configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be loaded or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


class ConfigValidationError(ConfigError):
    """Raised when configuration fails validation."""

    def __init__(
        self,
        message: str,
        *,
        key: str,
        value: Any,  # pyright: ignore[reportAny,reportExplicitAny]
        expected: str,
        source: str | None = None,
    ) -> None:
        """Initialize with error message and validation context."""
        super().__init__(message)
        self.key: str = key
        self.value: Any = value  # pyright: ignore[reportExplicitAny]
        self.expected: str = expected
        self.source: str | None = source


# =============================================================================
# Supervisor Exceptions
# =============================================================================


class SupervisorError(TabbyStackError):
    """Base exception for process supervisor errors."""


class AlreadyRunningError(SupervisorError):
    """Raised when a service already has a live recorded process.

    Attributes:
        service_name: The service that is already running.
        pid: Process ID found in the PID record.
    """

    def __init__(self, message: str, *, service_name: str, pid: int) -> None:
        """Initialize with error message and the conflicting process.

        Args:
            message: Human-readable error message.
            service_name: The service that is already running.
            pid: Process ID found in the PID record.
        """
        super().__init__(message)
        self.service_name: str = service_name
        self.pid: int = pid


class ServiceStartError(SupervisorError):
    """Raised when a service process cannot be launched.

    Attributes:
        service_name: The name of the service that failed to start.
        cause: The underlying exception that caused the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        service_name: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and service context.

        Args:
            message: Human-readable error message.
            service_name: The name of the service that failed to start.
            cause: The underlying exception that caused the failure.
        """
        super().__init__(message)
        self.service_name: str | None = service_name
        self.cause: Exception | None = cause


class GracefulShutdownTimeoutError(SupervisorError):
    """Raised when a process outlives its grace period and force was not set.

    The process is left running and its PID record is kept.

    Attributes:
        service_names: Services that did not stop in time.
        report: The stop report gathered before raising, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        service_names: tuple[str, ...] = (),
        report: object | None = None,
    ) -> None:
        """Initialize with error message and the services still alive."""
        super().__init__(message)
        self.service_names: tuple[str, ...] = service_names
        self.report: object | None = report


# =============================================================================
# Health Check Exceptions
# =============================================================================


class HealthCheckError(TabbyStackError):
    """Base exception for services that never became ready.

    Attributes:
        service_name: The service being waited on.
        elapsed: Seconds spent waiting.
        log_tail: Last lines of the service log for diagnosis.
    """

    def __init__(
        self,
        message: str,
        *,
        service_name: str,
        elapsed: float = 0.0,
        log_tail: list[str] | None = None,
    ) -> None:
        """Initialize with error message and diagnostic context."""
        super().__init__(message)
        self.service_name: str = service_name
        self.elapsed: float = elapsed
        self.log_tail: list[str] = log_tail if log_tail is not None else []


class StartupTimeoutError(HealthCheckError):
    """Raised when a health check never succeeded within its budget."""


class ProcessExitedError(HealthCheckError):
    """Raised when a supervised process died while being waited on."""


# =============================================================================
# Container Runtime Exceptions
# =============================================================================


class ContainerRuntimeError(TabbyStackError):
    """Raised when the container runtime command fails.

    Attributes:
        command: The command that failed.
        exit_code: Its exit code, if it ran at all.
    """

    def __init__(
        self,
        message: str,
        *,
        command: tuple[str, ...] = (),
        exit_code: int | None = None,
    ) -> None:
        """Initialize with error message and command context."""
        super().__init__(message)
        self.command: tuple[str, ...] = command
        self.exit_code: int | None = exit_code


# =============================================================================
# Model Exceptions
# =============================================================================


class ModelError(TabbyStackError):
    """Base exception for model acquisition errors."""


class InvalidModelReferenceError(ModelError, ValueError):
    """Raised when a repository or revision cannot name a local directory.

    Attributes:
        repo: The repository identifier given.
        revision: The revision given.
    """

    def __init__(self, message: str, *, repo: str, revision: str) -> None:
        """Initialize with error message and the offending reference."""
        super().__init__(message)
        self.repo: str = repo
        self.revision: str = revision


class DownloadError(ModelError):
    """Raised when the download client fails or leaves no presence marker.

    Attributes:
        repo: Repository being downloaded.
        revision: Revision being downloaded.
        exit_code: Exit code of the download client, if it ran.
    """

    def __init__(
        self,
        message: str,
        *,
        repo: str,
        revision: str,
        exit_code: int | None = None,
    ) -> None:
        """Initialize with error message and download context."""
        super().__init__(message)
        self.repo: str = repo
        self.revision: str = revision
        self.exit_code: int | None = exit_code


# =============================================================================
# Setup Exceptions
# =============================================================================


class SetupError(TabbyStackError):
    """Raised when an environment setup step fails.

    Attributes:
        step: Name of the setup step that failed.
        exit_code: Exit code of the failing command, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        step: str,
        exit_code: int | None = None,
    ) -> None:
        """Initialize with error message and step context."""
        super().__init__(message)
        self.step: str = step
        self.exit_code: int | None = exit_code
