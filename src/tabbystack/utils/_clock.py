"""Clock abstraction for wait loops.

Poll loops take a Clock so their timing can be driven by a fake in tests
instead of real sleeps.
"""

import time
from typing import Protocol, final, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Monotonic time source with a blocking sleep."""

    def monotonic(self) -> float:
        """Return seconds from an arbitrary, monotonically increasing origin."""
        ...

    def sleep(self, seconds: float) -> None:
        """Block for ``seconds``."""
        ...


@final
class SystemClock:
    """Clock backed by ``time.monotonic`` and ``time.sleep``."""

    __slots__ = ()

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)
