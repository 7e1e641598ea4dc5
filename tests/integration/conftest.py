import os
import signal
import socket
import sys
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import psutil
import pytest
from rich.console import Console

from tabbystack.cli import create_app
from tabbystack.config import ENV_ALIASES, ENV_PREFIX

if TYPE_CHECKING:
    from pytest_mock import MockerFixture

    from conftest import StackProject

# Stand-in for TabbyAPI: serves /health on the port named in its config file
FAKE_TABBY_MAIN = """\
import argparse
import http.server
import pathlib

parser = argparse.ArgumentParser()
parser.add_argument("--config", required=True)
args = parser.parse_args()
port = int(pathlib.Path(args.config).read_text().split(":")[1])


class Handler(http.server.BaseHTTPRequestHandler):
    def do_GET(self):
        if self.path != "/health":
            self.send_response(404)
            self.end_headers()
            return
        body = b'{"status": "healthy"}'
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *args):
        pass


print("Loading model...", flush=True)
server = http.server.HTTPServer(("127.0.0.1", port), Handler)
print(f"Listening on {port}", flush=True)
server.serve_forever()
"""

FAILING_TABBY_MAIN = """\
import sys

print("Loading model...", flush=True)
print("RuntimeError: CUDA driver version is insufficient", flush=True)
sys.exit(3)
"""


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if Path(item.path).is_relative_to(Path(__file__).parent):
            item.add_marker(pytest.mark.integration)


def free_port() -> int:
    """Return a TCP port nothing is listening on right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def kill_recorded(logs_dir: Path) -> None:
    """Kill any process left behind by a PID record under ``logs_dir``."""
    for pid_file in logs_dir.glob("*.pid"):
        content = pid_file.read_text().strip()
        if not content.isdigit():
            continue
        try:
            psutil.Process(int(content)).send_signal(signal.SIGKILL)
        except psutil.NoSuchProcess:
            pass


@dataclass(frozen=True, slots=True)
class FakeStack:
    """A project with a fake venv and TabbyAPI checkout."""

    project: "StackProject"
    tabby_port: int
    webui_port: int

    @property
    def root(self) -> Path:
        return self.project.root

    @property
    def pid_file(self) -> Path:
        return self.project.logs_dir / "tabby.pid"

    @property
    def log_file(self) -> Path:
        return self.project.logs_dir / "tabby.log"

    def use_main(self, source: str) -> None:
        _ = (self.project.tabby_dir / "main.py").write_text(source)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for alias in ENV_ALIASES:
        monkeypatch.delenv(alias, raising=False)
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key)


@pytest.fixture
def no_docker(mocker: "MockerFixture") -> None:
    _ = mocker.patch("tabbystack.launcher._compose.which", return_value=None)


@pytest.fixture
def fake_stack(project: "StackProject", no_docker: None) -> Iterator[FakeStack]:
    tabby_port = free_port()
    webui_port = free_port()

    bin_dir = project.venv_dir / "bin"
    bin_dir.mkdir(parents=True)
    python = bin_dir / "python"
    _ = python.write_text(f'#!/bin/sh\nexec "{sys.executable}" "$@"\n')
    python.chmod(0o755)

    project.tabby_dir.mkdir()
    _ = (project.tabby_dir / "main.py").write_text(FAKE_TABBY_MAIN)
    _ = (project.root / "tabby_config.yml").write_text(f"port: {tabby_port}\n")

    _ = project.write_config(
        f"""\
[inference]
port = {tabby_port}
poll_interval = 0.2
progress_interval = 5.0
startup_timeout = 20.0
grace_period = 5.0

[webui]
port = {webui_port}
poll_interval = 0.2
startup_timeout = 1.0
"""
    )

    stack = FakeStack(project=project, tabby_port=tabby_port, webui_port=webui_port)
    yield stack
    kill_recorded(project.logs_dir)


@pytest.fixture
def tabbystack_cli_with_exit_code(console: Console) -> Callable[..., int]:
    """Run the CLI and return its exit code (0 if no SystemExit)."""

    app = create_app(console=console, error_console=console, exit_on_error=False)

    def _run(*args: str) -> int:
        try:
            app.meta(list(args))
        except SystemExit as e:
            return e.code if isinstance(e.code, int) else 1
        else:
            return 0

    return _run
