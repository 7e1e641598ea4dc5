"""Shared utilities for tabbystack."""

from ._clock import Clock, SystemClock
from ._exec import (
    DEFAULT_TIMEOUT_MS,
    CommandConfig,
    CommandResult,
    run,
    run_command,
    truncate_output,
    which,
)
from ._logging import create_cli_logger, null_logger
from ._paths import (
    CONFIG_FILE_NAME,
    find_project_root,
    get_project_config_path,
    resolve_path,
)
from ._timestamps import format_duration, from_epoch, utc_now

__all__ = [
    "CONFIG_FILE_NAME",
    "DEFAULT_TIMEOUT_MS",
    "Clock",
    "CommandConfig",
    "CommandResult",
    "SystemClock",
    "create_cli_logger",
    "find_project_root",
    "format_duration",
    "from_epoch",
    "get_project_config_path",
    "null_logger",
    "resolve_path",
    "run",
    "run_command",
    "truncate_output",
    "utc_now",
    "which",
]
