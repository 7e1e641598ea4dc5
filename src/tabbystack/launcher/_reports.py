"""Results of launcher operations."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from tabbystack.supervisor import ServiceKind


class StartOutcome(StrEnum):
    """How one service's start ended.

    - READY: Health check succeeded
    - SKIPPED: Not attempted (optional service without a runtime)
    - NOT_READY: Optional service started but never became ready
    - FAILED: Optional service could not be started
    """

    READY = "ready"
    SKIPPED = "skipped"
    NOT_READY = "not_ready"
    FAILED = "failed"


class StopOutcome(StrEnum):
    """How one service's stop ended.

    Native services report the supervisor's termination outcome; container
    services add SKIPPED (no runtime), ALREADY_STOPPED and FAILED.
    """

    NOT_RUNNING = "not_running"
    STALE_RECORD = "stale_record"
    STOPPED = "stopped"
    KILLED = "killed"
    GRACEFUL_TIMEOUT = "graceful_timeout"
    ORPHANS_FOUND = "orphans_found"
    ORPHANS_KILLED = "orphans_killed"
    SKIPPED = "skipped"
    ALREADY_STOPPED = "already_stopped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ServiceStartResult:
    """Start result for one service."""

    name: str
    label: str
    outcome: StartOutcome
    url: str = ""
    pid: int | None = None
    elapsed: float = 0.0
    log_file: Path | None = None
    message: str = ""


@dataclass(slots=True)
class StartupReport:
    """Per-service results of ``start_all`` or ``restart``, in start order."""

    results: list[ServiceStartResult] = field(default_factory=list)

    def get(self, name: str) -> ServiceStartResult | None:
        """Return the result for ``name``, if it was attempted."""
        return next((r for r in self.results if r.name == name), None)

    @property
    def warnings(self) -> list[ServiceStartResult]:
        """Results for services that did not become ready."""
        return [r for r in self.results if r.outcome is not StartOutcome.READY]


@dataclass(frozen=True, slots=True)
class ServiceStopResult:
    """Stop result for one service."""

    name: str
    label: str
    outcome: StopOutcome
    pids: tuple[int, ...] = ()
    message: str = ""


@dataclass(slots=True)
class StopReport:
    """Per-service results of ``stop_all``, in stop order."""

    results: list[ServiceStopResult] = field(default_factory=list)

    def get(self, name: str) -> ServiceStopResult | None:
        """Return the result for ``name``, if it was attempted."""
        return next((r for r in self.results if r.name == name), None)

    @property
    def still_running(self) -> list[ServiceStopResult]:
        """Results for services left running after the grace period."""
        return [
            r for r in self.results if r.outcome is StopOutcome.GRACEFUL_TIMEOUT
        ]

    @property
    def ok(self) -> bool:
        """Return True when nothing failed and nothing was left running."""
        return not any(
            r.outcome in (StopOutcome.GRACEFUL_TIMEOUT, StopOutcome.FAILED)
            for r in self.results
        )


@dataclass(frozen=True, slots=True)
class ServiceStatus:
    """Point-in-time status of one service."""

    name: str
    label: str
    kind: ServiceKind
    running: bool
    healthy: bool
    url: str
    pid: int | None = None
    started_at: datetime | None = None
    log_file: Path | None = None

    def to_dict(self) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Return JSON-compatible data."""
        return {
            "name": self.name,
            "label": self.label,
            "kind": str(self.kind),
            "running": self.running,
            "healthy": self.healthy,
            "url": self.url,
            "pid": self.pid,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "log_file": str(self.log_file) if self.log_file else None,
        }
