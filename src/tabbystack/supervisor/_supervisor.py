"""Process supervisor for native services.

This module provides the ProcessSupervisor class that spawns, recovers,
and terminates long-lived service processes tracked through PID records,
so a later invocation (``stop`` in a new process) can find what ``start``
launched.
"""

import contextlib
import os
import re
import signal
import subprocess
from collections import deque
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, final

import psutil

from tabbystack.exceptions import AlreadyRunningError, ServiceStartError
from tabbystack.utils import Clock, SystemClock, null_logger, utc_now

from ._models import (
    ManagedProcess,
    ServiceDefinition,
    TerminationOutcome,
    TerminationResult,
)
from ._pidfile import PidRecord, pid_is_alive

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

DEFAULT_GRACE_PERIOD = 30.0
DEFAULT_POLL_INTERVAL = 1.0

# How long to wait for the kernel to reap a SIGKILLed process
KILL_WAIT = 5.0

DEFAULT_LOG_TAIL_LINES = 50


@final
class ProcessSupervisor:
    """Tracks at most one live process per service identifier.

    The at-most-one invariant is enforced by checking the PID record for a
    live process immediately before spawning. There is no lock, so two
    supervisors spawning the same service at the same moment can race; this
    is a single-operator tool and the race is accepted.

    Attributes:
        logs_dir: Directory holding ``<service>.log`` and ``<service>.pid``.
        poll_interval: Seconds between liveness checks while terminating.
    """

    __slots__ = ("_clock", "_logger", "logs_dir", "poll_interval")

    def __init__(
        self,
        logs_dir: Path,
        *,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
        clock: Clock | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Initialize the supervisor.

        Args:
            logs_dir: Directory for service logs and PID records.
            logger: Structured logger for diagnostics.
            clock: Time source for termination polling.
            poll_interval: Seconds between liveness checks while terminating.
        """
        self.logs_dir = logs_dir
        self.poll_interval = poll_interval
        self._logger = logger or null_logger()
        self._clock: Clock = clock or SystemClock()

    def record_for(self, name: str) -> PidRecord:
        """Return the PID record for a service."""
        return PidRecord.for_service(self.logs_dir, name)

    def log_file_for(self, name: str) -> Path:
        """Return the log file path for a service."""
        return self.logs_dir / f"{name}.log"

    def find(self, name: str) -> ManagedProcess | None:
        """Recover the live process for ``name`` from its PID record.

        A record naming a dead process is removed.

        Args:
            name: Service identifier.

        Returns:
            The running process, or None if the service is not running.
        """
        record = self.record_for(name)
        pid = record.read()
        if pid is None:
            if record.exists():
                self._logger.warning("pid_record_unreadable", service=name)
                record.remove()
            return None

        if not pid_is_alive(pid, started_before=record.written_at()):
            self._logger.info("pid_record_stale", service=name, pid=pid)
            record.remove()
            return None

        return ManagedProcess(
            name=name,
            pid=pid,
            log_file=self.log_file_for(name),
            pid_file=record.path,
            started_at=record.modified_at() or utc_now(),
        )

    def is_running(self, name: str) -> bool:
        """Return True if ``name`` has a live recorded process."""
        return self.find(name) is not None

    def spawn(self, definition: ServiceDefinition) -> ManagedProcess:
        """Launch a service in the background and record its PID.

        Output (stdout and stderr) goes to the service log file, which is
        truncated first. The process runs in its own session so it outlives
        the caller. Returns as soon as the process is launched; readiness is
        the poller's concern.

        Args:
            definition: The service to launch.

        Returns:
            The newly spawned process.

        Raises:
            AlreadyRunningError: If a live process is already recorded.
            ServiceStartError: If the command cannot be executed.
        """
        name = definition.name
        existing = self.find(name)
        if existing is not None:
            msg = f"{definition.label} already running (PID: {existing.pid})"
            raise AlreadyRunningError(msg, service_name=name, pid=existing.pid)

        if not definition.command:
            msg = f"Service '{name}' has no command to run"
            raise ServiceStartError(msg, service_name=name)

        self.logs_dir.mkdir(parents=True, exist_ok=True)
        log_file = self.log_file_for(name)
        env = {**os.environ, **definition.env}

        try:
            with log_file.open("wb") as log_handle:
                handle = subprocess.Popen(  # noqa: S603
                    definition.command,
                    cwd=definition.cwd,
                    env=env,
                    stdin=subprocess.DEVNULL,
                    stdout=log_handle,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                )
        except OSError as e:
            msg = f"Failed to start service '{name}': {e}"
            raise ServiceStartError(msg, service_name=name, cause=e) from e

        record = self.record_for(name)
        record.write(handle.pid)

        self._logger.info(
            "service_spawned",
            service=name,
            pid=handle.pid,
            argv=list(definition.command),
            log_file=str(log_file),
        )

        return ManagedProcess(
            name=name,
            pid=handle.pid,
            log_file=log_file,
            pid_file=record.path,
            started_at=utc_now(),
            handle=handle,
        )

    def terminate(
        self,
        name: str,
        *,
        force: bool = False,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        orphan_pattern: str | None = None,
        worker_pattern: str | None = None,
    ) -> TerminationResult:
        """Stop a service's process.

        With a PID record: sends SIGTERM to the process group the service
        was spawned into (and to descendants that left it), then polls
        liveness every ``poll_interval`` for up to ``grace_period``. A process that exits has
        its record removed. One that does not is killed (SIGKILL) when
        ``force`` is set, otherwise it is left running and its record kept.
        A record whose process is already dead is removed.

        Without a record: looks for orphaned processes whose command line
        matches ``orphan_pattern``. They are only reported unless ``force``
        is set, in which case they are killed.

        When ``force`` is set and ``worker_pattern`` is given, processes
        matching it (worker processes that outlive their parent and keep GPU
        memory) are killed as well, unless the service itself was left
        running.

        Args:
            name: Service identifier.
            force: Escalate to SIGKILL after the grace period.
            grace_period: Seconds to wait after SIGTERM.
            orphan_pattern: Regex for orphan discovery; None disables it.
            worker_pattern: Regex for worker processes swept on a forced stop.

        Returns:
            What was observed and done.
        """
        result = self._terminate(
            name, force=force, grace_period=grace_period, orphan_pattern=orphan_pattern
        )
        if not force or worker_pattern is None or result.failed:
            return result

        workers = tuple(
            p for p in self.find_orphans(worker_pattern) if p not in result.pids
        )
        for worker in workers:
            _ = self._send(worker, signal.SIGKILL)
        if workers:
            self._logger.warning("workers_killed", service=name, pids=list(workers))
            result = replace(result, workers=workers)
        return result

    def _terminate(
        self,
        name: str,
        *,
        force: bool,
        grace_period: float,
        orphan_pattern: str | None,
    ) -> TerminationResult:
        record = self.record_for(name)
        pid = record.read()

        if pid is None:
            if record.exists():
                record.remove()
            return self._terminate_orphans(name, force=force, pattern=orphan_pattern)

        if not pid_is_alive(pid, started_before=record.written_at()):
            record.remove()
            self._logger.info("pid_record_stale", service=name, pid=pid)
            return TerminationResult(name, TerminationOutcome.STALE_RECORD, (pid,))

        self._logger.info("sending_sigterm", service=name, pid=pid)
        if not self._send_group(pid, signal.SIGTERM):
            record.remove()
            return TerminationResult(name, TerminationOutcome.STALE_RECORD, (pid,))

        if self._wait_for_exit(pid, grace_period):
            record.remove()
            if force:
                # group members that ignored SIGTERM
                with contextlib.suppress(ProcessLookupError, PermissionError):
                    os.killpg(pid, signal.SIGKILL)
            self._logger.info("service_stopped", service=name, pid=pid)
            return TerminationResult(name, TerminationOutcome.STOPPED, (pid,))

        if not force:
            self._logger.warning(
                "graceful_shutdown_timeout",
                service=name,
                pid=pid,
                grace_period=grace_period,
            )
            return TerminationResult(name, TerminationOutcome.GRACEFUL_TIMEOUT, (pid,))

        self._logger.warning("sending_sigkill", service=name, pid=pid)
        _ = self._send_group(pid, signal.SIGKILL)
        _ = self._wait_for_exit(pid, KILL_WAIT)
        record.remove()
        return TerminationResult(name, TerminationOutcome.KILLED, (pid,))

    def find_orphans(self, pattern: str) -> list[int]:
        """Return PIDs of processes whose command line matches ``pattern``.

        The current process is never included.
        """
        regex = re.compile(pattern)
        own_pid = os.getpid()
        found: list[int] = []
        for process in psutil.process_iter(["pid", "cmdline"]):
            info = process.info
            cmdline = info.get("cmdline") or []
            if info["pid"] == own_pid or not cmdline:
                continue
            if regex.search(" ".join(cmdline)):
                found.append(info["pid"])
        return found

    def log_tail(self, name: str, lines: int = DEFAULT_LOG_TAIL_LINES) -> list[str]:
        """Return the last ``lines`` lines of a service's log.

        Returns an empty list when the log does not exist.
        """
        log_file = self.log_file_for(name)
        try:
            with log_file.open(encoding="utf-8", errors="replace") as f:
                return [line.rstrip("\n") for line in deque(f, maxlen=lines)]
        except FileNotFoundError:
            return []

    def _terminate_orphans(
        self,
        name: str,
        *,
        force: bool,
        pattern: str | None,
    ) -> TerminationResult:
        if pattern is None:
            return TerminationResult(name, TerminationOutcome.NOT_RUNNING)

        orphans = tuple(self.find_orphans(pattern))
        if not orphans:
            return TerminationResult(name, TerminationOutcome.NOT_RUNNING)

        if not force:
            self._logger.warning("orphans_found", service=name, pids=list(orphans))
            return TerminationResult(name, TerminationOutcome.ORPHANS_FOUND, orphans)

        for orphan in orphans:
            _ = self._send(orphan, signal.SIGKILL)
        self._logger.warning("orphans_killed", service=name, pids=list(orphans))
        return TerminationResult(name, TerminationOutcome.ORPHANS_KILLED, orphans)

    def _send(self, pid: int, sig: signal.Signals) -> bool:
        """Send ``sig`` to ``pid``; return False if the process is gone."""
        try:
            psutil.Process(pid).send_signal(sig)
        except psutil.NoSuchProcess:
            return False
        return True

    def _send_group(self, pid: int, sig: signal.Signals) -> bool:
        """Send ``sig`` to the process group led by ``pid`` and to its descendants.

        Services are spawned in their own session, so ``pid`` is also their
        process group ID. Descendants are collected before signalling since
        they are reparented once the leader dies. Returns False if nothing
        was left to signal.
        """
        try:
            descendants = psutil.Process(pid).children(recursive=True)
        except psutil.NoSuchProcess:
            descendants = []

        try:
            os.killpg(pid, sig)
            delivered = True
        except (ProcessLookupError, PermissionError):
            delivered = self._send(pid, sig)

        for child in descendants:
            try:
                child.send_signal(sig)
            except psutil.NoSuchProcess:
                continue
            delivered = True
        return delivered

    def _wait_for_exit(self, pid: int, timeout: float) -> bool:
        """Poll until ``pid`` exits or ``timeout`` elapses."""
        deadline = self._clock.monotonic() + timeout
        while pid_is_alive(pid):
            remaining = deadline - self._clock.monotonic()
            if remaining <= 0:
                return False
            self._clock.sleep(min(self.poll_interval, remaining))
        return True
