"""Data models for the supervisor system.

This module defines the core data types for service management:
- ServiceKind: How a service is run (native process or container)
- Precondition: A path that must exist before a service can start
- ServiceDefinition: Static service configuration
- ManagedProcess: A spawned or recovered service process
- TerminationOutcome / TerminationResult: What ``terminate`` did
"""

import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from pathlib import Path

from tabbystack.health import HealthCheckTarget

from ._pidfile import pid_is_alive


class ServiceKind(StrEnum):
    """How a service is run.

    - NATIVE: A local process tracked by a PID record
    - CONTAINER: A docker compose project
    """

    NATIVE = "native"
    CONTAINER = "container"


@dataclass(frozen=True, slots=True)
class Precondition:
    """A path that must exist before a service may start.

    Attributes:
        path: File or directory that must exist.
        hint: What the operator should do when it is missing.
    """

    path: Path
    hint: str = ""

    def satisfied(self) -> bool:
        """Return True when the path exists."""
        return self.path.exists()


@dataclass(frozen=True, slots=True)
class ServiceDefinition:
    """Static configuration for one service of the stack.

    Attributes:
        name: Unique identifier; names the log and PID record files.
        kind: Native process or container project.
        health: Readiness endpoint and wait budget.
        command: Command and arguments (native services).
        cwd: Working directory for the process.
        env: Environment overrides merged over the current environment.
        optional: Optional services may be skipped and degrade to warnings.
        preconditions: Paths checked before anything is started.
        orphan_pattern: Regex matched against process command lines to find
            instances running without a PID record.
        worker_pattern: Regex matched against process command lines to find
            worker processes killed along with the service on a forced stop.
        compose_file: docker compose file (container services).
        display_name: Human-readable name for messages.
    """

    name: str
    kind: ServiceKind
    health: HealthCheckTarget
    command: tuple[str, ...] = ()
    cwd: Path | None = None
    env: dict[str, str] = field(default_factory=dict)
    optional: bool = False
    preconditions: tuple[Precondition, ...] = ()
    orphan_pattern: str | None = None
    worker_pattern: str | None = None
    compose_file: Path | None = None
    display_name: str = ""

    @property
    def label(self) -> str:
        """Return the display name, falling back to the identifier."""
        return self.display_name or self.name


@dataclass(slots=True)
class ManagedProcess:
    """A supervised native process.

    Created by ``ProcessSupervisor.spawn`` (with a live ``Popen`` handle) or
    recovered from a PID record by a later invocation (handle is None).

    Attributes:
        name: Service identifier.
        pid: Operating system process ID.
        log_file: File receiving the process's stdout and stderr.
        pid_file: PID record path.
        started_at: Spawn time, or the record's modification time when
            recovered from disk.
        handle: Popen object when this process spawned the service.
    """

    name: str
    pid: int
    log_file: Path
    pid_file: Path
    started_at: datetime
    handle: subprocess.Popen[bytes] | None = field(default=None, repr=False)

    def is_alive(self) -> bool:
        """Return True while the process is running.

        Uses the Popen handle when present (which also reaps the child),
        otherwise checks the PID.
        """
        if self.handle is not None:
            return self.handle.poll() is None
        return pid_is_alive(self.pid)

    @property
    def exit_code(self) -> int | None:
        """Return the exit code if known (only for processes spawned here)."""
        if self.handle is None:
            return None
        return self.handle.poll()


class TerminationOutcome(StrEnum):
    """What ``ProcessSupervisor.terminate`` observed or did.

    - NOT_RUNNING: No PID record and no matching orphan
    - STALE_RECORD: PID record pointed at a dead process; record removed
    - STOPPED: Process exited after the graceful signal; record removed
    - KILLED: Process outlived the grace period and was killed; record removed
    - GRACEFUL_TIMEOUT: Process outlived the grace period; left running
    - ORPHANS_FOUND: Unrecorded matching processes found and left alone
    - ORPHANS_KILLED: Unrecorded matching processes found and killed
    """

    NOT_RUNNING = "not_running"
    STALE_RECORD = "stale_record"
    STOPPED = "stopped"
    KILLED = "killed"
    GRACEFUL_TIMEOUT = "graceful_timeout"
    ORPHANS_FOUND = "orphans_found"
    ORPHANS_KILLED = "orphans_killed"


@dataclass(frozen=True, slots=True)
class TerminationResult:
    """Result of a terminate call.

    Attributes:
        service_name: Service identifier.
        outcome: What happened.
        pids: Process IDs involved (the recorded PID or the orphans found).
        workers: Worker processes killed by a forced stop's sweep.
    """

    service_name: str
    outcome: TerminationOutcome
    pids: tuple[int, ...] = ()
    workers: tuple[int, ...] = ()

    @property
    def failed(self) -> bool:
        """Return True when the process is known to still be running."""
        return self.outcome is TerminationOutcome.GRACEFUL_TIMEOUT
