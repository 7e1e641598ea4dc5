"""Service launcher for the local LLM stack.

Sequences the inference service and the companion UI: preconditions first,
then each service is started and waited on in order. Stopping walks the
same list in reverse.

Key Components:
    - build_service_definitions: Services derived from configuration
    - ComposeRuntime: docker compose wrapper for container services
    - ServiceLauncher: start_all, stop_all, restart, status
    - EventSink / ConsoleEventSink: Operator-facing progress output
"""

from ._compose import ComposeRuntime
from ._definitions import (
    INFERENCE_ORPHAN_PATTERN,
    INFERENCE_SERVICE,
    WEBUI_SERVICE,
    build_inference_definition,
    build_service_definitions,
    build_webui_definition,
    inference_entry_args,
    venv_python,
)
from ._events import (
    ConsoleEventSink,
    EventSink,
    EventType,
    LaunchEvent,
    NullEventSink,
    RecordingEventSink,
    tagged,
)
from ._launcher import ServiceLauncher
from ._reports import (
    ServiceStartResult,
    ServiceStatus,
    ServiceStopResult,
    StartOutcome,
    StartupReport,
    StopOutcome,
    StopReport,
)

__all__ = [
    "INFERENCE_ORPHAN_PATTERN",
    "INFERENCE_SERVICE",
    "WEBUI_SERVICE",
    "ComposeRuntime",
    "ConsoleEventSink",
    "EventSink",
    "EventType",
    "LaunchEvent",
    "NullEventSink",
    "RecordingEventSink",
    "ServiceLauncher",
    "ServiceStartResult",
    "ServiceStatus",
    "ServiceStopResult",
    "StartOutcome",
    "StartupReport",
    "StopOutcome",
    "StopReport",
    "build_inference_definition",
    "build_service_definitions",
    "build_webui_definition",
    "inference_entry_args",
    "tagged",
    "venv_python",
]
