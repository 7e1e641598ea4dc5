"""Health polling for HTTP readiness endpoints.

Key Components:
    - HealthCheckTarget: Endpoint, interval, and timeout budget
    - HttpProbe: Single GET probe with optional JSON field matching
    - HealthPoller: Blocking wait loop returning a WaitResult
    - ReadyOutcome: READY, TIMED_OUT, or PROCESS_EXITED

Example:
    >>> from tabbystack.health import HealthCheckTarget, HealthPoller
    >>> target = HealthCheckTarget(url="http://127.0.0.1:5000/health", timeout=300)
    >>> HealthPoller().wait_ready(target).outcome
    <ReadyOutcome.READY: 'ready'>
"""

from ._models import HealthCheckTarget, ReadyOutcome, WaitResult
from ._poller import (
    DEFAULT_PROGRESS_INTERVAL,
    HealthPoller,
    ProgressCallback,
    SupportsLiveness,
)
from ._probe import HttpProbe, Probe

__all__ = [
    "DEFAULT_PROGRESS_INTERVAL",
    "HealthCheckTarget",
    "HealthPoller",
    "HttpProbe",
    "Probe",
    "ProgressCallback",
    "ReadyOutcome",
    "SupportsLiveness",
    "WaitResult",
]
