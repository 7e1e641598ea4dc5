"""Readiness polling for HTTP health endpoints.

The wait loop is a small state machine (Waiting -> Ready | TimedOut |
ProcessExited). Progress reporting is a callback so the loop can be tested
without capturing console output, and time comes from an injected Clock so
tests never sleep.
"""

from collections.abc import Callable
from dataclasses import replace
from typing import Protocol, final

from tabbystack.utils import Clock, SystemClock

from ._models import HealthCheckTarget, ReadyOutcome, WaitResult
from ._probe import HttpProbe, Probe

DEFAULT_PROGRESS_INTERVAL = 30.0

# Lower bound on a probe request timeout once the deadline is (nearly) reached
MIN_REQUEST_TIMEOUT = 0.1

ProgressCallback = Callable[[float], None]


class SupportsLiveness(Protocol):
    """Anything that can tell whether its process is still running."""

    def is_alive(self) -> bool: ...


@final
class HealthPoller:
    """Blocking, single-target readiness wait.

    Each call to ``wait_ready`` is independent; a poller holds no state
    between waits, so one instance can serve several services in turn.
    """

    __slots__ = ("_clock", "_probe", "progress_interval")

    def __init__(
        self,
        probe: Probe | None = None,
        clock: Clock | None = None,
        *,
        progress_interval: float = DEFAULT_PROGRESS_INTERVAL,
    ) -> None:
        """Initialize the poller.

        Args:
            probe: Readiness probe. Defaults to an HttpProbe.
            clock: Time source. Defaults to the system clock.
            progress_interval: Seconds between progress callbacks.
        """
        self._probe: Probe = probe or HttpProbe()
        self._clock: Clock = clock or SystemClock()
        self.progress_interval = progress_interval

    def probe_once(self, target: HealthCheckTarget) -> bool:
        """Probe the target a single time."""
        return self._probe(target)

    def wait_ready(
        self,
        target: HealthCheckTarget,
        *,
        process: SupportsLiveness | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> WaitResult:
        """Poll ``target`` until it is ready, the budget runs out, or the process dies.

        Each cycle checks the process first (a dead process ends the wait at
        once), then probes. A successful probe returns immediately. Otherwise
        the loop sleeps ``target.interval``. Neither a sleep nor a probe request
        may run past the deadline (requests get at least MIN_REQUEST_TIMEOUT),
        so the total wait is bounded by ``timeout + interval``.

        Args:
            target: Endpoint and timing to wait on.
            process: Supervised process backing the endpoint, if any.
            on_progress: Called with elapsed seconds every
                ``progress_interval``. Purely observational.

        Returns:
            The terminal outcome with elapsed time and probe count.
        """
        start = self._clock.monotonic()
        next_progress = self.progress_interval
        attempts = 0

        while True:
            elapsed = self._clock.monotonic() - start

            if process is not None and not process.is_alive():
                return WaitResult(ReadyOutcome.PROCESS_EXITED, elapsed, attempts)

            attempts += 1
            if self._probe(_bounded(target, target.timeout - elapsed)):
                return WaitResult(
                    ReadyOutcome.READY, self._clock.monotonic() - start, attempts
                )

            elapsed = self._clock.monotonic() - start
            if elapsed >= target.timeout:
                return WaitResult(ReadyOutcome.TIMED_OUT, elapsed, attempts)

            if on_progress is not None and elapsed >= next_progress:
                on_progress(elapsed)
                while next_progress <= elapsed:
                    next_progress += self.progress_interval

            self._clock.sleep(min(target.interval, target.timeout - elapsed))


def _bounded(target: HealthCheckTarget, remaining: float) -> HealthCheckTarget:
    """Return ``target`` with its request timeout capped at ``remaining``."""
    request_timeout = min(target.request_timeout, max(remaining, MIN_REQUEST_TIMEOUT))
    if request_timeout == target.request_timeout:
        return target
    return replace(target, request_timeout=request_timeout)
