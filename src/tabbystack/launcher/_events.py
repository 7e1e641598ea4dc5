"""Launch events and the sinks that display them.

The launcher reports what it is doing as LaunchEvent records passed to an
EventSink, so sequencing can be tested without capturing console output.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Protocol, final

from rich.console import Console
from rich.style import Style
from rich.text import Text

from tabbystack.utils import utc_now


class EventType(StrEnum):
    """Kinds of launch events."""

    SPAWNED = "spawned"
    WAITING = "waiting"
    PROGRESS = "progress"
    READY = "ready"
    SKIPPED = "skipped"
    WARNING = "warning"
    FAILED = "failed"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class LaunchEvent:
    """Something observable that happened to a service.

    Attributes:
        service_name: Service identifier.
        event_type: What happened.
        message: Operator-facing description.
        pid: Process ID, when one is involved.
        timestamp: When the event was created.
    """

    service_name: str
    event_type: EventType
    message: str = ""
    pid: int | None = None
    timestamp: datetime = field(default_factory=utc_now)


class EventSink(Protocol):
    """Consumer of launch events."""

    def write_event(self, event: LaunchEvent) -> None:
        """Record or display an event."""
        ...


@final
class NullEventSink:
    """Sink that discards every event."""

    __slots__ = ()

    def write_event(self, event: LaunchEvent) -> None:
        pass


@final
class RecordingEventSink:
    """Sink that keeps events in memory, in order."""

    __slots__ = ("events",)

    def __init__(self) -> None:
        self.events: list[LaunchEvent] = []

    def write_event(self, event: LaunchEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> list[LaunchEvent]:
        """Return the recorded events of one type."""
        return [e for e in self.events if e.event_type is event_type]


# Severity tag shown in front of each event type
_EVENT_TAGS: dict[EventType, str] = {
    EventType.SPAWNED: "INFO",
    EventType.WAITING: "INFO",
    EventType.PROGRESS: "INFO",
    EventType.READY: "OK",
    EventType.SKIPPED: "INFO",
    EventType.WARNING: "WARN",
    EventType.FAILED: "ERROR",
    EventType.STOPPING: "INFO",
    EventType.STOPPED: "OK",
}


_TAG_STYLES: dict[str, Style] = {
    "INFO": Style(color="blue"),
    "OK": Style(color="green"),
    "WARN": Style(color="yellow", bold=True),
    "ERROR": Style(color="red"),
}


def tagged(tag: str, message: str) -> Text:
    """Return ``[TAG] message`` with the tag colored by severity."""
    text = Text()
    _ = text.append(f"[{tag}]", style=_TAG_STYLES.get(tag, Style()))
    _ = text.append(" ")
    _ = text.append(message)
    return text


@final
class ConsoleEventSink:
    """Sink that prints events as ``[TAG] message`` lines.

    Tags follow the shell tooling's convention: ``[INFO]`` in blue,
    ``[OK]`` in green, ``[WARN]`` in yellow and ``[ERROR]`` in red. Errors go
    to the error console. In quiet mode only warnings and errors are shown.
    """

    __slots__ = ("_console", "_error_console", "quiet")

    def __init__(
        self,
        console: Console | None = None,
        error_console: Console | None = None,
        *,
        quiet: bool = False,
    ) -> None:
        """Initialize the sink.

        Args:
            console: Console for regular output. If None, creates a new one.
            error_console: Console for errors. Defaults to ``console``.
            quiet: Suppress ``[INFO]`` and ``[OK]`` lines.
        """
        self._console = console or Console()
        self._error_console = error_console or self._console
        self.quiet = quiet

    def write_event(self, event: LaunchEvent) -> None:
        """Print an event with its severity tag."""
        tag = _EVENT_TAGS[event.event_type]
        if self.quiet and tag in ("INFO", "OK"):
            return

        message = event.message or f"{event.service_name} {event.event_type}"
        console = self._error_console if tag == "ERROR" else self._console
        console.print(tagged(tag, message))
