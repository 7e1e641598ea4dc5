"""Supervisor package for native service processes.

This package spawns long-lived service processes in the background, tracks
them through on-disk PID records so a later invocation can find them, and
terminates them gracefully with an optional forced kill.

Key Components:
    - ServiceKind: Native process or container project
    - Precondition: Path that must exist before a service starts
    - ServiceDefinition: Static service configuration
    - ManagedProcess: A spawned or recovered process
    - PidRecord: The ``<service>.pid`` file
    - TerminationOutcome / TerminationResult: What ``terminate`` did
    - ProcessSupervisor: Spawn, find, and terminate

Example:
    >>> from tabbystack.supervisor import ProcessSupervisor
    >>> supervisor = ProcessSupervisor(Path("logs"))
    >>> process = supervisor.spawn(definition)
    >>> supervisor.terminate(definition.name, force=True)
"""

from ._models import (
    ManagedProcess,
    Precondition,
    ServiceDefinition,
    ServiceKind,
    TerminationOutcome,
    TerminationResult,
)
from ._pidfile import PidRecord, pid_is_alive
from ._supervisor import (
    DEFAULT_GRACE_PERIOD,
    DEFAULT_LOG_TAIL_LINES,
    DEFAULT_POLL_INTERVAL,
    ProcessSupervisor,
)

__all__ = [
    "DEFAULT_GRACE_PERIOD",
    "DEFAULT_LOG_TAIL_LINES",
    "DEFAULT_POLL_INTERVAL",
    "ManagedProcess",
    "PidRecord",
    "Precondition",
    "ProcessSupervisor",
    "ServiceDefinition",
    "ServiceKind",
    "TerminationOutcome",
    "TerminationResult",
    "pid_is_alive",
]
