"""On-disk PID records.

A PID record is a text file holding one decimal process ID followed by a
newline, at ``<logs_dir>/<service>.pid``. It is the only state shared
between separate invocations (start in one process, stop in another).

There is no locking: a check-then-write sequence can race when two
launchers run at once. Callers re-check liveness immediately before any
mutating decision to keep that window small.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import psutil

from tabbystack.utils import from_epoch

# Tolerance between a process's start time and its record being written
CREATE_TIME_SLACK = 1.0


def pid_is_alive(pid: int, *, started_before: float | None = None) -> bool:
    """Return True if ``pid`` names a running (non-zombie) process.

    The equivalent of ``kill -0``, except that zombies (exited but not yet
    reaped) count as dead. When ``started_before`` (an epoch timestamp,
    usually the PID record's mtime) is given, a process created after it
    also counts as dead: the PID was recycled after the recorded process
    exited.
    """
    if pid <= 0:
        return False
    try:
        process = psutil.Process(pid)
        if (
            started_before is not None
            and process.create_time() > started_before + CREATE_TIME_SLACK
        ):
            return False
        return process.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        # Exists but belongs to someone else
        return True


@dataclass(frozen=True, slots=True)
class PidRecord:
    """PID record file for one service."""

    path: Path

    @classmethod
    def for_service(cls, logs_dir: Path, name: str) -> "PidRecord":  # noqa: UP037
        """Return the record for ``name`` under ``logs_dir``."""
        return cls(logs_dir / f"{name}.pid")

    def exists(self) -> bool:
        """Return True if the record file exists."""
        return self.path.is_file()

    def read(self) -> int | None:
        """Return the recorded PID, or None if missing or unreadable."""
        try:
            content = self.path.read_text(encoding="utf-8").strip()
        except (FileNotFoundError, IsADirectoryError):
            return None
        except UnicodeDecodeError:
            return None
        if not content.isdigit():
            return None
        return int(content)

    def write(self, pid: int) -> None:
        """Write ``pid`` to the record, replacing any previous content."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(f".pid.{os.getpid()}.tmp")
        _ = tmp_path.write_text(f"{pid}\n", encoding="utf-8")
        _ = tmp_path.replace(self.path)

    def remove(self) -> None:
        """Delete the record if present."""
        self.path.unlink(missing_ok=True)

    def modified_at(self) -> datetime | None:
        """Return the record's modification time, or None if missing."""
        try:
            return from_epoch(self.path.stat().st_mtime)
        except FileNotFoundError:
            return None

    def written_at(self) -> float | None:
        """Return the record's mtime as an epoch timestamp, or None if missing."""
        try:
            return self.path.stat().st_mtime
        except FileNotFoundError:
            return None
