from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from tabbystack.exceptions import ContainerRuntimeError, SupervisorError
from tabbystack.health import HealthCheckTarget, ReadyOutcome, WaitResult
from tabbystack.launcher import RecordingEventSink, ServiceLauncher, build_service_definitions
from tabbystack.supervisor import (
    ManagedProcess,
    PidRecord,
    ServiceDefinition,
    TerminationOutcome,
    TerminationResult,
)
from tabbystack.utils import utc_now

if TYPE_CHECKING:
    from conftest import StackProject


@dataclass
class FakeSupervisor:
    """Records spawn and terminate calls instead of running processes."""

    logs_dir: Path
    calls: list[str]
    spawn_error: SupervisorError | None = None
    outcomes: dict[str, TerminationOutcome] = field(default_factory=dict)
    running: dict[str, int] = field(default_factory=dict)
    tail: list[str] = field(default_factory=list)
    forced: list[bool] = field(default_factory=list)
    worker_patterns: list[str | None] = field(default_factory=list)

    def record_for(self, name: str) -> PidRecord:
        return PidRecord.for_service(self.logs_dir, name)

    def log_file_for(self, name: str) -> Path:
        return self.logs_dir / f"{name}.log"

    def spawn(self, definition: ServiceDefinition) -> ManagedProcess:
        self.calls.append(f"spawn:{definition.name}")
        if self.spawn_error is not None:
            raise self.spawn_error
        pid = 4000 + len(self.calls)
        record = self.record_for(definition.name)
        record.write(pid)
        return ManagedProcess(
            name=definition.name,
            pid=pid,
            log_file=self.log_file_for(definition.name),
            pid_file=record.path,
            started_at=utc_now(),
        )

    def find(self, name: str) -> ManagedProcess | None:
        pid = self.running.get(name)
        if pid is None:
            return None
        return ManagedProcess(
            name=name,
            pid=pid,
            log_file=self.log_file_for(name),
            pid_file=self.record_for(name).path,
            started_at=utc_now(),
        )

    def log_tail(self, name: str, lines: int = 50) -> list[str]:
        return self.tail[-lines:]

    def terminate(
        self,
        name: str,
        *,
        force: bool = False,
        grace_period: float = 30.0,
        orphan_pattern: str | None = None,
        worker_pattern: str | None = None,
    ) -> TerminationResult:
        self.calls.append(f"terminate:{name}")
        self.worker_patterns.append(worker_pattern)
        self.forced.append(force)
        outcome = self.outcomes.get(name, TerminationOutcome.NOT_RUNNING)
        pids = () if outcome is TerminationOutcome.NOT_RUNNING else (4242,)
        return TerminationResult(name, outcome, pids)


@dataclass
class FakePoller:
    """Returns a scripted outcome per health URL."""

    calls: list[str]
    outcomes: dict[str, ReadyOutcome] = field(default_factory=dict)
    healthy: dict[str, bool] = field(default_factory=dict)
    progress_at: tuple[float, ...] = ()

    def wait_ready(
        self,
        target: HealthCheckTarget,
        *,
        process: object | None = None,
        on_progress: object | None = None,
    ) -> WaitResult:
        self.calls.append(f"wait:{target.url}")
        if callable(on_progress):
            for elapsed in self.progress_at:
                on_progress(elapsed)
        outcome = self.outcomes.get(target.url, ReadyOutcome.READY)
        return WaitResult(outcome, elapsed=12.0, attempts=3)

    def probe_once(self, target: HealthCheckTarget) -> bool:
        return self.healthy.get(target.url, False)


@dataclass
class FakeRuntime:
    """Compose runtime stand-in."""

    calls: list[str]
    available: bool = True
    running: bool = False
    up_error: bool = False
    down_error: bool = False
    env: dict[str, str] = field(default_factory=dict)

    def is_available(self) -> bool:
        return self.available

    def is_running(self) -> bool:
        return self.running

    def up(self, env: Mapping[str, str] | None = None) -> None:
        self.calls.append("compose:up")
        self.env = dict(env or {})
        if self.up_error:
            msg = "'docker compose up -d' failed: port is allocated"
            raise ContainerRuntimeError(msg, exit_code=1)

    def down(self) -> None:
        self.calls.append("compose:down")
        if self.down_error:
            msg = "'docker compose down' failed"
            raise ContainerRuntimeError(msg, exit_code=1)

    def logs_hint(self) -> str:
        return "docker compose logs -f"


@dataclass
class LauncherHarness:
    """A launcher wired to fakes, with the stack's real definitions."""

    project: "StackProject"
    calls: list[str]
    supervisor: FakeSupervisor
    poller: FakePoller
    runtime: FakeRuntime
    sink: RecordingEventSink
    definitions: tuple[ServiceDefinition, ...]

    @property
    def inference(self) -> ServiceDefinition:
        return self.definitions[0]

    @property
    def webui(self) -> ServiceDefinition:
        return self.definitions[1]

    def launcher(self, *, runtime: bool = True) -> ServiceLauncher:
        return ServiceLauncher(
            self.definitions,
            self.supervisor,  # pyright: ignore[reportArgumentType]
            self.poller,  # pyright: ignore[reportArgumentType]
            self.runtime if runtime else None,  # pyright: ignore[reportArgumentType]
            sink=self.sink,
            grace_period=30.0,
        )


@pytest.fixture
def harness(project: "StackProject") -> LauncherHarness:
    project.venv_dir.mkdir()
    project.tabby_dir.mkdir()
    config = project.load()
    calls: list[str] = []
    return LauncherHarness(
        project=project,
        calls=calls,
        supervisor=FakeSupervisor(config.paths.logs_dir, calls),
        poller=FakePoller(calls),
        runtime=FakeRuntime(calls),
        sink=RecordingEventSink(),
        definitions=build_service_definitions(config),
    )
