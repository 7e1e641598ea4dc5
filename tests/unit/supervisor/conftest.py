import subprocess
import sys

import pytest


@pytest.fixture
def dead_pid() -> int:
    """PID of a child that has already exited and been reaped."""
    process = subprocess.Popen([sys.executable, "-c", "pass"])  # noqa: S603
    _ = process.wait()
    return process.pid
