from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from tabbystack.exceptions import PreconditionError, SetupError
from tabbystack.launcher import EventType, RecordingEventSink
from tabbystack.models import ModelAcquisitionGate
from tabbystack.setup import download_model, run_preflight, run_setup

if TYPE_CHECKING:
    from pytest_mock import MockerFixture

    from conftest import StackProject

PREFLIGHT = "tabbystack.setup._preflight"
STEPS = "tabbystack.setup._steps"


class MarkerDownloader:
    def __init__(self) -> None:
        self.calls = 0

    def download(self, repo: str, revision: str, target: Path) -> int:
        self.calls += 1
        target.mkdir(parents=True, exist_ok=True)
        _ = (target / "config.json").write_text("{}")
        return 0


@pytest.fixture
def tools(mocker: "MockerFixture") -> dict[str, object]:
    """Patch every external command setup would run."""
    return {
        "check_git": mocker.patch(f"{PREFLIGHT}.check_git", return_value="/usr/bin/git"),
        "list_gpus": mocker.patch(
            f"{PREFLIGHT}.list_gpus", return_value=("NVIDIA RTX A6000, 49140 MiB",)
        ),
        "cuda_version": mocker.patch(f"{PREFLIGHT}.cuda_version", return_value="12.4"),
        "ensure_venv": mocker.patch(f"{STEPS}.ensure_venv", return_value=True),
        "sync_checkout": mocker.patch(f"{STEPS}.sync_checkout", return_value="cloned"),
        "install_dependencies": mocker.patch(f"{STEPS}.install_dependencies"),
        "install_download_client": mocker.patch(f"{STEPS}.install_download_client"),
        "docker_available": mocker.patch(f"{STEPS}.docker_available", return_value=True),
        "pull_image": mocker.patch(f"{STEPS}.pull_image"),
    }


class TestRunPreflight:
    def test_reports_findings(self, tools: dict[str, object]) -> None:
        sink = RecordingEventSink()

        report = run_preflight(sink, python_version=(3, 11))

        assert report.python_version == "3.11"
        assert report.gpus == ("NVIDIA RTX A6000, 49140 MiB",)
        assert report.cuda_version == "12.4"
        assert "Found 1 NVIDIA GPU(s)" in [e.message for e in sink.events]
        assert all(e.service_name == "setup" for e in sink.events)

    def test_missing_cuda_is_a_warning(
        self, tools: dict[str, object], mocker: "MockerFixture"
    ) -> None:
        _ = mocker.patch(f"{PREFLIGHT}.cuda_version", return_value=None)
        sink = RecordingEventSink()

        report = run_preflight(sink)

        assert report.cuda_version is None
        assert len(sink.of_type(EventType.WARNING)) == 2

    def test_old_python_stops_everything(self, tools: dict[str, object]) -> None:
        with pytest.raises(PreconditionError):
            _ = run_preflight(RecordingEventSink(), python_version=(3, 8))


class TestRunSetup:
    def test_full_run(self, project: "StackProject", tools: dict[str, object]) -> None:
        config = project.load()
        downloader = MarkerDownloader()
        gate = ModelAcquisitionGate(config.paths.models_dir, downloader)
        sink = RecordingEventSink()

        report = run_setup(config, sink=sink, gate=gate)

        assert report.venv_created is True
        assert report.checkout == "cloned"
        assert report.model is not None
        assert report.model.path.name == "Llama-3.2-3B-Instruct-exl2_6_5"
        assert report.image_pulled is True
        assert report.tabby_config_present is False
        assert report.warnings == ["tabby_config.yml not found - please create it"]
        assert downloader.calls == 1

    def test_skip_model(self, project: "StackProject", tools: dict[str, object]) -> None:
        config = project.load()
        downloader = MarkerDownloader()

        report = run_setup(
            config,
            skip_model=True,
            gate=ModelAcquisitionGate(config.paths.models_dir, downloader),
        )

        assert report.model is None
        assert downloader.calls == 0

    def test_without_docker(
        self,
        project: "StackProject",
        tools: dict[str, object],
        mocker: "MockerFixture",
    ) -> None:
        _ = mocker.patch(f"{STEPS}.docker_available", return_value=False)
        pull = tools["pull_image"]
        _ = (project.root / "tabby_config.yml").write_text("model: {}\n")

        report = run_setup(project.load(), skip_model=True)

        assert report.image_pulled is False
        assert report.tabby_config_present is True
        assert report.warnings == ["Docker not found - skipping Open WebUI image pull"]
        assert pull.call_count == 0  # pyright: ignore[reportAttributeAccessIssue]

    def test_stops_at_first_failure(
        self,
        project: "StackProject",
        tools: dict[str, object],
        mocker: "MockerFixture",
    ) -> None:
        _ = mocker.patch(
            f"{STEPS}.sync_checkout",
            side_effect=SetupError("Cloning TabbyAPI failed", step="checkout"),
        )
        install = tools["install_dependencies"]

        with pytest.raises(SetupError):
            _ = run_setup(project.load(), skip_model=True)

        assert install.call_count == 0  # pyright: ignore[reportAttributeAccessIssue]

    def test_uses_configured_model(
        self, project: "StackProject", tools: dict[str, object]
    ) -> None:
        config = project.load(MODEL_REPO="org/Other-exl2", MODEL_REVISION="4_0")
        gate = ModelAcquisitionGate(config.paths.models_dir, MarkerDownloader())

        report = run_setup(config, gate=gate)

        assert report.model is not None
        assert report.model.path == config.paths.models_dir / "Other-exl2_4_0"


class TestDownloadModel:
    def test_already_present(self, tmp_path: Path) -> None:
        target = tmp_path / "Model_6_5"
        target.mkdir()
        _ = (target / "config.json").write_text("{}")
        downloader = MarkerDownloader()
        sink = RecordingEventSink()

        artifact = download_model(
            ModelAcquisitionGate(tmp_path, downloader), "org/Model", "6_5", sink=sink
        )

        assert artifact.downloaded is False
        assert downloader.calls == 0
        assert sink.events[0].message.startswith("Model already downloaded at ")

    def test_downloads(self, tmp_path: Path) -> None:
        sink = RecordingEventSink()

        artifact = download_model(
            ModelAcquisitionGate(tmp_path, MarkerDownloader()), "org/Model", "6_5", sink=sink
        )

        assert artifact.downloaded is True
        assert sink.of_type(EventType.READY)[-1].message.startswith(
            "Model downloaded successfully to "
        )
