"""Data models for health checks."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum


class ReadyOutcome(StrEnum):
    """Terminal states of a readiness wait.

    - READY: The probe succeeded.
    - TIMED_OUT: The timeout budget ran out before any probe succeeded.
    - PROCESS_EXITED: The supervised process died while being waited on.
    """

    READY = "ready"
    TIMED_OUT = "timed_out"
    PROCESS_EXITED = "process_exited"


@dataclass(frozen=True, slots=True)
class HealthCheckTarget:
    """An HTTP readiness endpoint and how to wait on it.

    Attributes:
        url: Endpoint to probe with GET.
        interval: Seconds between probes.
        timeout: Total seconds to wait before giving up.
        expect_json: Fields the JSON body must contain with these exact
            values, e.g. ``{"status": "healthy"}``. Empty accepts any 2xx.
        request_timeout: Per-request timeout in seconds.
    """

    url: str
    interval: float = 5.0
    timeout: float = 300.0
    expect_json: Mapping[str, object] = field(default_factory=dict)
    request_timeout: float = 3.0


@dataclass(frozen=True, slots=True)
class WaitResult:
    """Outcome of ``HealthPoller.wait_ready``.

    Attributes:
        outcome: Terminal state reached.
        elapsed: Seconds spent waiting.
        attempts: Number of probes issued.
    """

    outcome: ReadyOutcome
    elapsed: float
    attempts: int

    @property
    def ready(self) -> bool:
        """Return True when the target became ready."""
        return self.outcome is ReadyOutcome.READY
