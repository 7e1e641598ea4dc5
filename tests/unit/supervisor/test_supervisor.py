import os
import signal
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import orjson
import psutil
import pytest

from tabbystack.exceptions import AlreadyRunningError, ServiceStartError
from tabbystack.health import HealthCheckTarget
from tabbystack.supervisor import (
    ProcessSupervisor,
    ServiceDefinition,
    ServiceKind,
    TerminationOutcome,
    TerminationResult,
)
from tabbystack.utils import create_cli_logger

if TYPE_CHECKING:
    from pytest_mock import MockerFixture

    from conftest import FakeClock


def _definition(name: str = "svc", command: tuple[str, ...] = ()) -> ServiceDefinition:
    return ServiceDefinition(
        name=name,
        kind=ServiceKind.NATIVE,
        health=HealthCheckTarget(url="http://127.0.0.1:1/health"),
        command=command,
    )


class FakeProcessInfo:
    def __init__(self, pid: int, cmdline: list[str] | None) -> None:
        self.info = {"pid": pid, "cmdline": cmdline}


class TestFind:
    def test_no_record(self, tmp_path: Path) -> None:
        supervisor = ProcessSupervisor(tmp_path)

        assert supervisor.find("svc") is None
        assert supervisor.is_running("svc") is False

    def test_live_record(self, tmp_path: Path) -> None:
        supervisor = ProcessSupervisor(tmp_path)
        supervisor.record_for("svc").write(os.getpid())

        process = supervisor.find("svc")

        assert process is not None
        assert process.pid == os.getpid()
        assert process.handle is None
        assert process.log_file == tmp_path / "svc.log"
        assert process.is_alive() is True
        assert process.exit_code is None

    def test_stale_record_is_removed(self, tmp_path: Path, dead_pid: int) -> None:
        supervisor = ProcessSupervisor(tmp_path)
        supervisor.record_for("svc").write(dead_pid)

        assert supervisor.find("svc") is None
        assert supervisor.record_for("svc").exists() is False

    def test_unreadable_record_is_removed(self, tmp_path: Path) -> None:
        supervisor = ProcessSupervisor(tmp_path)
        _ = (tmp_path / "svc.pid").write_text("garbage")

        assert supervisor.find("svc") is None
        assert not (tmp_path / "svc.pid").exists()


class TestSpawn:
    def test_refuses_when_already_running(self, tmp_path: Path) -> None:
        supervisor = ProcessSupervisor(tmp_path)
        supervisor.record_for("svc").write(os.getpid())

        with pytest.raises(AlreadyRunningError) as exc_info:
            _ = supervisor.spawn(_definition(command=(sys.executable, "-c", "pass")))

        assert exc_info.value.pid == os.getpid()
        assert exc_info.value.service_name == "svc"

    def test_empty_command(self, tmp_path: Path) -> None:
        supervisor = ProcessSupervisor(tmp_path)

        with pytest.raises(ServiceStartError, match="no command"):
            _ = supervisor.spawn(_definition())

    def test_missing_executable(self, tmp_path: Path) -> None:
        supervisor = ProcessSupervisor(tmp_path)

        with pytest.raises(ServiceStartError) as exc_info:
            _ = supervisor.spawn(_definition(command=(str(tmp_path / "nope"),)))

        assert isinstance(exc_info.value.cause, OSError)
        assert supervisor.record_for("svc").exists() is False

    def test_output_goes_to_log_file(self, tmp_path: Path) -> None:
        supervisor = ProcessSupervisor(tmp_path / "logs")
        script = "import sys; print('out'); print('err', file=sys.stderr)"

        process = supervisor.spawn(_definition(command=(sys.executable, "-c", script)))
        assert process.handle is not None
        _ = process.handle.wait(timeout=10)

        assert process.exit_code == 0
        assert process.is_alive() is False
        assert sorted(supervisor.log_tail("svc")) == ["err", "out"]
        assert supervisor.record_for("svc").read() == process.pid

    def test_spawn_log_keeps_cli_command(self, tmp_path: Path) -> None:
        logger = create_cli_logger(logs_dir=tmp_path / "cli", command="start")
        supervisor = ProcessSupervisor(tmp_path / "logs", logger=logger)
        command = (sys.executable, "-c", "pass")

        process = supervisor.spawn(_definition(command=command))
        assert process.handle is not None
        _ = process.handle.wait(timeout=10)

        lines = (tmp_path / "cli" / "tabbystack.log").read_text().splitlines()
        entries = [orjson.loads(line) for line in lines]
        spawned = next(e for e in entries if e["event"] == "service_spawned")
        assert spawned["command"] == "start"
        assert spawned["argv"] == list(command)

    def test_env_overrides_and_cwd(self, tmp_path: Path) -> None:
        supervisor = ProcessSupervisor(tmp_path / "logs")
        workdir = tmp_path / "work"
        workdir.mkdir()
        definition = ServiceDefinition(
            name="svc",
            kind=ServiceKind.NATIVE,
            health=HealthCheckTarget(url="http://127.0.0.1:1/health"),
            command=(
                sys.executable,
                "-c",
                "import os; print(os.environ['LD_PRELOAD_TEST']); print(os.getcwd())",
            ),
            cwd=workdir,
            env={"LD_PRELOAD_TEST": "libfake.so"},
        )

        process = supervisor.spawn(definition)
        assert process.handle is not None
        _ = process.handle.wait(timeout=10)

        assert supervisor.log_tail("svc") == ["libfake.so", str(workdir.resolve())]


class TestTerminate:
    def test_nothing_recorded_without_pattern(self, tmp_path: Path) -> None:
        result = ProcessSupervisor(tmp_path).terminate("svc")

        assert result.outcome is TerminationOutcome.NOT_RUNNING
        assert result.pids == ()
        assert result.failed is False

    def test_stale_record(self, tmp_path: Path, dead_pid: int) -> None:
        supervisor = ProcessSupervisor(tmp_path)
        supervisor.record_for("svc").write(dead_pid)

        result = supervisor.terminate("svc")

        assert result.outcome is TerminationOutcome.STALE_RECORD
        assert result.pids == (dead_pid,)
        assert supervisor.record_for("svc").exists() is False

    def test_graceful_timeout_keeps_record(
        self, tmp_path: Path, clock: "FakeClock", mocker: "MockerFixture"
    ) -> None:
        supervisor = ProcessSupervisor(tmp_path, clock=clock, poll_interval=1.0)
        supervisor.record_for("svc").write(4242)
        _ = mocker.patch("tabbystack.supervisor._supervisor.pid_is_alive", return_value=True)
        send = mocker.patch.object(ProcessSupervisor, "_send_group", return_value=True)

        result = supervisor.terminate("svc", grace_period=3.0)

        assert result.outcome is TerminationOutcome.GRACEFUL_TIMEOUT
        assert result.failed is True
        assert supervisor.record_for("svc").read() == 4242
        send.assert_called_once_with(4242, signal.SIGTERM)
        assert sum(clock.sleeps) == 3.0

    def test_force_kills_after_grace_period(
        self, tmp_path: Path, clock: "FakeClock", mocker: "MockerFixture"
    ) -> None:
        supervisor = ProcessSupervisor(tmp_path, clock=clock)
        supervisor.record_for("svc").write(4242)
        _ = mocker.patch("tabbystack.supervisor._supervisor.pid_is_alive", return_value=True)
        send = mocker.patch.object(ProcessSupervisor, "_send_group", return_value=True)

        result = supervisor.terminate("svc", force=True, grace_period=2.0)

        assert result.outcome is TerminationOutcome.KILLED
        assert [c.args for c in send.call_args_list] == [
            (4242, signal.SIGTERM),
            (4242, signal.SIGKILL),
        ]
        assert supervisor.record_for("svc").exists() is False

    def test_stopped_within_grace_period(
        self, tmp_path: Path, clock: "FakeClock", mocker: "MockerFixture"
    ) -> None:
        supervisor = ProcessSupervisor(tmp_path, clock=clock)
        supervisor.record_for("svc").write(4242)
        # alive for the initial check and two polls, then gone
        _ = mocker.patch(
            "tabbystack.supervisor._supervisor.pid_is_alive",
            side_effect=[True, True, True, False],
        )
        _ = mocker.patch.object(ProcessSupervisor, "_send_group", return_value=True)

        result = supervisor.terminate("svc", grace_period=30.0)

        assert result.outcome is TerminationOutcome.STOPPED
        assert clock.sleeps == [1.0, 1.0]
        assert supervisor.record_for("svc").exists() is False

    def test_process_gone_before_signal(
        self, tmp_path: Path, mocker: "MockerFixture"
    ) -> None:
        supervisor = ProcessSupervisor(tmp_path)
        supervisor.record_for("svc").write(4242)
        _ = mocker.patch("tabbystack.supervisor._supervisor.pid_is_alive", return_value=True)
        _ = mocker.patch.object(ProcessSupervisor, "_send_group", return_value=False)

        result = supervisor.terminate("svc")

        assert result.outcome is TerminationOutcome.STALE_RECORD
        assert supervisor.record_for("svc").exists() is False


class TestOrphans:
    def test_find_orphans_matches_cmdline(
        self, tmp_path: Path, mocker: "MockerFixture"
    ) -> None:
        _ = mocker.patch.object(
            psutil,
            "process_iter",
            return_value=[
                FakeProcessInfo(100, ["python", "/opt/tabbyapi/main.py"]),
                FakeProcessInfo(101, ["python", "other.py"]),
                FakeProcessInfo(102, None),
                FakeProcessInfo(os.getpid(), ["python", "/opt/tabbyapi/main.py"]),
            ],
        )

        orphans = ProcessSupervisor(tmp_path).find_orphans(r"tabbyapi.*main\.py")

        assert orphans == [100]

    def test_orphans_reported_without_force(
        self, tmp_path: Path, mocker: "MockerFixture"
    ) -> None:
        _ = mocker.patch.object(ProcessSupervisor, "find_orphans", return_value=[100, 101])
        send = mocker.patch.object(ProcessSupervisor, "_send", return_value=True)

        result = ProcessSupervisor(tmp_path).terminate("svc", orphan_pattern="tabby")

        assert result.outcome is TerminationOutcome.ORPHANS_FOUND
        assert result.pids == (100, 101)
        send.assert_not_called()

    def test_orphans_killed_with_force(
        self, tmp_path: Path, mocker: "MockerFixture"
    ) -> None:
        _ = mocker.patch.object(ProcessSupervisor, "find_orphans", return_value=[100])
        send = mocker.patch.object(ProcessSupervisor, "_send", return_value=True)

        result = ProcessSupervisor(tmp_path).terminate(
            "svc", force=True, orphan_pattern="tabby"
        )

        assert result.outcome is TerminationOutcome.ORPHANS_KILLED
        send.assert_called_once_with(100, signal.SIGKILL)

    def test_no_orphans(self, tmp_path: Path, mocker: "MockerFixture") -> None:
        _ = mocker.patch.object(ProcessSupervisor, "find_orphans", return_value=[])

        result = ProcessSupervisor(tmp_path).terminate("svc", orphan_pattern="tabby")

        assert result.outcome is TerminationOutcome.NOT_RUNNING


class TestWorkerSweep:
    def test_forced_stop_kills_workers(
        self, tmp_path: Path, clock: "FakeClock", mocker: "MockerFixture"
    ) -> None:
        supervisor = ProcessSupervisor(tmp_path, clock=clock)
        supervisor.record_for("svc").write(4242)
        _ = mocker.patch(
            "tabbystack.supervisor._supervisor.pid_is_alive", side_effect=[True, False]
        )
        _ = mocker.patch.object(ProcessSupervisor, "_send_group", return_value=True)
        _ = mocker.patch("tabbystack.supervisor._supervisor.os.killpg")
        find = mocker.patch.object(ProcessSupervisor, "find_orphans", return_value=[4242, 5000])
        send = mocker.patch.object(ProcessSupervisor, "_send", return_value=True)

        result = supervisor.terminate("svc", force=True, worker_pattern="model_tp")

        assert result.outcome is TerminationOutcome.STOPPED
        assert result.workers == (5000,)
        find.assert_called_once_with("model_tp")
        send.assert_called_once_with(5000, signal.SIGKILL)

    def test_no_sweep_without_force(
        self, tmp_path: Path, clock: "FakeClock", mocker: "MockerFixture"
    ) -> None:
        supervisor = ProcessSupervisor(tmp_path, clock=clock)
        supervisor.record_for("svc").write(4242)
        _ = mocker.patch(
            "tabbystack.supervisor._supervisor.pid_is_alive", side_effect=[True, False]
        )
        _ = mocker.patch.object(ProcessSupervisor, "_send_group", return_value=True)
        find = mocker.patch.object(ProcessSupervisor, "find_orphans", return_value=[5000])

        result = supervisor.terminate("svc", worker_pattern="model_tp")

        assert result.outcome is TerminationOutcome.STOPPED
        assert result.workers == ()
        find.assert_not_called()

    def test_no_sweep_when_left_running(
        self, tmp_path: Path, clock: "FakeClock", mocker: "MockerFixture"
    ) -> None:
        supervisor = ProcessSupervisor(tmp_path, clock=clock)
        _ = mocker.patch.object(
            ProcessSupervisor,
            "_terminate",
            return_value=TerminationResult(
                "svc", TerminationOutcome.GRACEFUL_TIMEOUT, (4242,)
            ),
        )
        find = mocker.patch.object(ProcessSupervisor, "find_orphans")

        result = supervisor.terminate("svc", force=True, worker_pattern="model_tp")

        assert result.failed is True
        find.assert_not_called()


class TestLogTail:
    def test_missing_log(self, tmp_path: Path) -> None:
        assert ProcessSupervisor(tmp_path).log_tail("svc") == []

    def test_last_lines(self, tmp_path: Path) -> None:
        _ = (tmp_path / "svc.log").write_text("".join(f"line {i}\n" for i in range(100)))

        tail = ProcessSupervisor(tmp_path).log_tail("svc", 3)

        assert tail == ["line 97", "line 98", "line 99"]

    def test_undecodable_bytes(self, tmp_path: Path) -> None:
        _ = (tmp_path / "svc.log").write_bytes(b"ok\n\xff\xfe\n")

        tail = ProcessSupervisor(tmp_path).log_tail("svc")

        assert tail[0] == "ok"
        assert len(tail) == 2
