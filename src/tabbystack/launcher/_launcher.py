"""Start and stop sequencing for the whole stack."""

from collections.abc import Sequence
from typing import TYPE_CHECKING, final

from tabbystack.exceptions import (
    ContainerRuntimeError,
    GracefulShutdownTimeoutError,
    PreconditionError,
    ProcessExitedError,
    ServiceStartError,
    StartupTimeoutError,
    SupervisorError,
)
from tabbystack.health import HealthPoller, ReadyOutcome, WaitResult
from tabbystack.supervisor import (
    DEFAULT_GRACE_PERIOD,
    DEFAULT_LOG_TAIL_LINES,
    ManagedProcess,
    ProcessSupervisor,
    ServiceDefinition,
    ServiceKind,
    TerminationOutcome,
)
from tabbystack.utils import format_duration, null_logger

from ._compose import ComposeRuntime
from ._events import EventSink, EventType, LaunchEvent, NullEventSink
from ._reports import (
    ServiceStartResult,
    ServiceStatus,
    ServiceStopResult,
    StartOutcome,
    StartupReport,
    StopOutcome,
    StopReport,
)

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger


@final
class ServiceLauncher:
    """Brings the stack up in order and down in reverse order.

    Startup is fail-fast for mandatory services: the first one that cannot
    be started or never becomes ready aborts the sequence, and services
    already started are left running. Optional services degrade to
    warnings.
    """

    __slots__ = (
        "_logger",
        "_sink",
        "definitions",
        "grace_period",
        "log_tail_lines",
        "poller",
        "runtime",
        "supervisor",
    )

    def __init__(
        self,
        definitions: Sequence[ServiceDefinition],
        supervisor: ProcessSupervisor,
        poller: HealthPoller,
        runtime: ComposeRuntime | None = None,
        *,
        sink: EventSink | None = None,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
        grace_period: float = DEFAULT_GRACE_PERIOD,
        log_tail_lines: int = DEFAULT_LOG_TAIL_LINES,
    ) -> None:
        """Initialize the launcher.

        Args:
            definitions: Services in start order.
            supervisor: Supervisor for native services.
            poller: Readiness poller.
            runtime: Container runtime for container services.
            sink: Receiver of progress events.
            logger: Structured logger for diagnostics.
            grace_period: Seconds native services get to exit on stop.
            log_tail_lines: Log lines attached to startup errors.
        """
        self.definitions = tuple(definitions)
        self.supervisor = supervisor
        self.poller = poller
        self.runtime = runtime
        self.grace_period = grace_period
        self.log_tail_lines = log_tail_lines
        self._sink: EventSink = sink or NullEventSink()
        self._logger = logger or null_logger()

    # -------------------------------------------------------------------------
    # Selection and preconditions
    # -------------------------------------------------------------------------

    def definition(self, name: str) -> ServiceDefinition:
        """Return the definition named ``name``.

        Raises:
            KeyError: If no such service is defined.
        """
        for definition in self.definitions:
            if definition.name == name:
                return definition
        raise KeyError(name)

    def select(self, *, include_optional_tail: bool = True) -> tuple[ServiceDefinition, ...]:
        """Return the services to start.

        Without the optional tail, trailing optional services are dropped;
        optional services between mandatory ones are kept.
        """
        selected = list(self.definitions)
        if not include_optional_tail:
            while selected and selected[-1].optional:
                _ = selected.pop()
        return tuple(selected)

    def check_preconditions(self, definitions: Sequence[ServiceDefinition]) -> None:
        """Verify every precondition before anything is started.

        Raises:
            PreconditionError: Naming the first missing path.
        """
        for definition in definitions:
            for precondition in definition.preconditions:
                if not precondition.satisfied():
                    msg = f"{definition.label}: required path not found: {precondition.path}"
                    raise PreconditionError(
                        msg, path=precondition.path, hint=precondition.hint or None
                    )

    # -------------------------------------------------------------------------
    # Start
    # -------------------------------------------------------------------------

    def start_all(self, *, include_optional_tail: bool = True) -> StartupReport:
        """Start the selected services in order.

        Args:
            include_optional_tail: Also start trailing optional services.

        Returns:
            Per-service results.

        Raises:
            PreconditionError: A required path is missing; nothing was started.
            AlreadyRunningError: A mandatory native service is already running.
            ServiceStartError: A mandatory service could not be launched.
            StartupTimeoutError: A mandatory service never became ready.
            ProcessExitedError: A mandatory native service died while starting.
        """
        selected = self.select(include_optional_tail=include_optional_tail)
        self.check_preconditions(selected)
        self._logger.info("start_all", services=[d.name for d in selected])

        report = StartupReport()
        for definition in selected:
            report.results.append(self._start(definition))
        return report

    def restart(self, name: str, *, force: bool = True) -> StartupReport:
        """Stop one service and start it again on its own.

        Raises:
            KeyError: If the service is not defined.
            GracefulShutdownTimeoutError: The old process outlived the grace
                period and ``force`` was not set.
        """
        definition = self.definition(name)
        self.check_preconditions((definition,))

        result = self._stop(definition, force=force)
        if result.outcome is StopOutcome.GRACEFUL_TIMEOUT:
            msg = f"{definition.label} did not stop within {format_duration(self.grace_period)}"
            raise GracefulShutdownTimeoutError(
                msg,
                service_names=(name,),
                report=StopReport([result]),
            )

        return StartupReport([self._start(definition)])

    def _start(self, definition: ServiceDefinition) -> ServiceStartResult:
        if definition.kind is ServiceKind.CONTAINER:
            return self._start_container(definition)
        return self._start_native(definition)

    def _start_native(self, definition: ServiceDefinition) -> ServiceStartResult:
        name = definition.name
        try:
            process = self.supervisor.spawn(definition)
        except SupervisorError as e:
            if not definition.optional:
                raise
            return self._optional_failure(definition, str(e))

        self._emit(
            name,
            EventType.SPAWNED,
            f"{definition.label} starting (PID: {process.pid})",
            pid=process.pid,
        )
        self._emit(name, EventType.WAITING, f"Log file: {process.log_file}")
        self._emit(
            name,
            EventType.WAITING,
            f"Waiting for {definition.label} to become ready "
            + f"(timeout {format_duration(definition.health.timeout)})...",
        )

        result = self.poller.wait_ready(
            definition.health,
            process=process,
            on_progress=lambda elapsed: self._progress(definition, elapsed),
        )
        return self._finish_native(definition, process, result)

    def _finish_native(
        self,
        definition: ServiceDefinition,
        process: ManagedProcess,
        result: WaitResult,
    ) -> ServiceStartResult:
        name = definition.name
        base_url = definition.health.url.removesuffix("/health")

        if result.outcome is ReadyOutcome.READY:
            self._emit(name, EventType.READY, f"{definition.label} is ready!", pid=process.pid)
            self._logger.info(
                "service_ready", service=name, pid=process.pid, elapsed=result.elapsed
            )
            return ServiceStartResult(
                name=name,
                label=definition.label,
                outcome=StartOutcome.READY,
                url=base_url,
                pid=process.pid,
                elapsed=result.elapsed,
                log_file=process.log_file,
            )

        log_tail = self.supervisor.log_tail(name, self.log_tail_lines)

        if result.outcome is ReadyOutcome.PROCESS_EXITED:
            self.supervisor.record_for(name).remove()
            exit_code = process.exit_code
            suffix = f" (exit code {exit_code})" if exit_code is not None else ""
            msg = f"{definition.label} exited unexpectedly{suffix}. Check logs: {process.log_file}"
            self._logger.error("service_exited", service=name, exit_code=exit_code)
            if definition.optional:
                return self._optional_failure(definition, msg)
            self._emit(name, EventType.FAILED, msg, pid=process.pid)
            raise ProcessExitedError(
                msg, service_name=name, elapsed=result.elapsed, log_tail=log_tail
            )

        msg = (
            f"{definition.label} failed to start within "
            + f"{format_duration(definition.health.timeout)}. Check logs: {process.log_file}"
        )
        self._logger.error("service_timeout", service=name, elapsed=result.elapsed)
        if definition.optional:
            return self._optional_failure(
                definition, msg, outcome=StartOutcome.NOT_READY, pid=process.pid
            )
        self._emit(name, EventType.FAILED, msg, pid=process.pid)
        raise StartupTimeoutError(
            msg, service_name=name, elapsed=result.elapsed, log_tail=log_tail
        )

    def _start_container(self, definition: ServiceDefinition) -> ServiceStartResult:
        name = definition.name
        runtime = self.runtime

        if runtime is None or not runtime.is_available():
            msg = f"Docker not found - skipping {definition.label}"
            if not definition.optional:
                raise PreconditionError(msg, hint="Install Docker with the compose plugin.")
            self._emit(name, EventType.WARNING, msg)
            return ServiceStartResult(
                name=name,
                label=definition.label,
                outcome=StartOutcome.SKIPPED,
                message=msg,
            )

        self._emit(name, EventType.SPAWNED, f"Starting {definition.label}...")
        try:
            runtime.up(definition.env)
        except ContainerRuntimeError as e:
            if not definition.optional:
                raise ServiceStartError(str(e), service_name=name, cause=e) from e
            return self._optional_failure(definition, str(e))

        self._emit(name, EventType.WAITING, f"Waiting for {definition.label} to start...")
        result = self.poller.wait_ready(
            definition.health,
            on_progress=lambda elapsed: self._progress(definition, elapsed),
        )
        base_url = definition.health.url.removesuffix("/health")

        if result.ready:
            self._emit(name, EventType.READY, f"{definition.label} is ready!")
            return ServiceStartResult(
                name=name,
                label=definition.label,
                outcome=StartOutcome.READY,
                url=base_url,
                elapsed=result.elapsed,
            )

        msg = f"{definition.label} may still be starting. Check: {runtime.logs_hint()}"
        if not definition.optional:
            self._emit(name, EventType.FAILED, msg)
            raise StartupTimeoutError(msg, service_name=name, elapsed=result.elapsed)
        return self._optional_failure(definition, msg, outcome=StartOutcome.NOT_READY)

    def _optional_failure(
        self,
        definition: ServiceDefinition,
        message: str,
        *,
        outcome: StartOutcome = StartOutcome.FAILED,
        pid: int | None = None,
    ) -> ServiceStartResult:
        self._emit(definition.name, EventType.WARNING, message, pid=pid)
        self._logger.warning(
            "optional_service_not_ready", service=definition.name, outcome=str(outcome)
        )
        return ServiceStartResult(
            name=definition.name,
            label=definition.label,
            outcome=outcome,
            pid=pid,
            message=message,
        )

    def _progress(self, definition: ServiceDefinition, elapsed: float) -> None:
        self._emit(
            definition.name,
            EventType.PROGRESS,
            f"Still loading... ({format_duration(elapsed)} elapsed)",
        )
        if definition.kind is ServiceKind.NATIVE:
            last = self.supervisor.log_tail(definition.name, 1)
            if last and last[0].strip():
                self._emit(definition.name, EventType.PROGRESS, last[0])

    # -------------------------------------------------------------------------
    # Stop
    # -------------------------------------------------------------------------

    def stop_all(self, *, force: bool = False) -> StopReport:
        """Stop every defined service in reverse start order.

        Every service is attempted even when an earlier one fails to stop.

        Args:
            force: Kill native processes that outlive the grace period, and
                kill orphaned processes found without a PID record.

        Returns:
            Per-service results.

        Raises:
            GracefulShutdownTimeoutError: A native service outlived the grace
                period without ``force``. Carries the full report.
        """
        report = StopReport()
        for definition in reversed(self.definitions):
            report.results.append(self._stop(definition, force=force))

        still_running = report.still_running
        if still_running:
            names = tuple(r.name for r in still_running)
            msg = (
                f"{', '.join(r.label for r in still_running)} did not stop gracefully "
                + f"within {format_duration(self.grace_period)}. Run with --force to force kill."
            )
            raise GracefulShutdownTimeoutError(msg, service_names=names, report=report)

        return report

    def _stop(self, definition: ServiceDefinition, *, force: bool) -> ServiceStopResult:
        if definition.kind is ServiceKind.CONTAINER:
            return self._stop_container(definition)
        return self._stop_native(definition, force=force)

    def _stop_container(self, definition: ServiceDefinition) -> ServiceStopResult:
        name = definition.name
        label = definition.label
        runtime = self.runtime
        self._emit(name, EventType.STOPPING, f"Stopping {label}...")

        if runtime is None or not runtime.is_available():
            msg = f"Docker not available, skipping {label}"
            self._emit(name, EventType.SKIPPED, msg)
            return ServiceStopResult(name, label, StopOutcome.SKIPPED, message=msg)

        if not runtime.is_running():
            msg = f"{label} container not running"
            self._emit(name, EventType.SKIPPED, msg)
            return ServiceStopResult(name, label, StopOutcome.ALREADY_STOPPED, message=msg)

        try:
            runtime.down()
        except ContainerRuntimeError as e:
            self._emit(name, EventType.FAILED, str(e))
            return ServiceStopResult(name, label, StopOutcome.FAILED, message=str(e))

        self._emit(name, EventType.STOPPED, f"{label} stopped")
        return ServiceStopResult(name, label, StopOutcome.STOPPED)

    def _stop_native(self, definition: ServiceDefinition, *, force: bool) -> ServiceStopResult:
        name = definition.name
        label = definition.label
        self._emit(name, EventType.STOPPING, f"Stopping {label}...")

        result = self.supervisor.terminate(
            name,
            force=force,
            grace_period=self.grace_period,
            orphan_pattern=definition.orphan_pattern,
            worker_pattern=definition.worker_pattern,
        )
        pids = result.pids
        pid = pids[0] if pids else None
        pid_list = ", ".join(str(p) for p in pids)

        match result.outcome:
            case TerminationOutcome.NOT_RUNNING:
                msg = f"{label} not running (no PID file)"
                self._emit(name, EventType.SKIPPED, msg)
            case TerminationOutcome.STALE_RECORD:
                msg = f"{label} process not running (stale PID file)"
                self._emit(name, EventType.SKIPPED, msg, pid=pid)
            case TerminationOutcome.STOPPED:
                msg = f"{label} stopped"
                self._emit(name, EventType.STOPPED, msg, pid=pid)
            case TerminationOutcome.KILLED:
                self._emit(
                    name,
                    EventType.WARNING,
                    "Graceful shutdown timed out, force killed",
                    pid=pid,
                )
                msg = f"{label} stopped"
                self._emit(name, EventType.STOPPED, msg, pid=pid)
            case TerminationOutcome.GRACEFUL_TIMEOUT:
                msg = (
                    f"{label} did not stop gracefully within "
                    + f"{format_duration(self.grace_period)}"
                )
                self._emit(name, EventType.WARNING, msg, pid=pid)
            case TerminationOutcome.ORPHANS_FOUND:
                msg = (
                    f"Found {label} process(es) without PID file: {pid_list}. "
                    + "Use --force to kill these processes"
                )
                self._emit(name, EventType.WARNING, msg)
            case TerminationOutcome.ORPHANS_KILLED:
                msg = f"Killed orphan {label} process(es): {pid_list}"
                self._emit(name, EventType.STOPPED, msg)

        return ServiceStopResult(
            name, label, StopOutcome(result.outcome.value), pids, message=msg
        )

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def status(self) -> list[ServiceStatus]:
        """Return the running flag, PID and a single health probe per service."""
        statuses: list[ServiceStatus] = []
        for definition in self.definitions:
            base_url = definition.health.url.removesuffix("/health")
            healthy = self.poller.probe_once(definition.health)

            if definition.kind is ServiceKind.CONTAINER:
                running = self.runtime is not None and (
                    self.runtime.is_available() and self.runtime.is_running()
                )
                statuses.append(
                    ServiceStatus(
                        name=definition.name,
                        label=definition.label,
                        kind=definition.kind,
                        running=running,
                        healthy=healthy,
                        url=base_url,
                    )
                )
                continue

            process = self.supervisor.find(definition.name)
            statuses.append(
                ServiceStatus(
                    name=definition.name,
                    label=definition.label,
                    kind=definition.kind,
                    running=process is not None,
                    healthy=healthy,
                    url=base_url,
                    pid=process.pid if process else None,
                    started_at=process.started_at if process else None,
                    log_file=self.supervisor.log_file_for(definition.name),
                )
            )
        return statuses

    def _emit(
        self,
        service_name: str,
        event_type: EventType,
        message: str,
        *,
        pid: int | None = None,
    ) -> None:
        self._sink.write_event(LaunchEvent(service_name, event_type, message, pid))
