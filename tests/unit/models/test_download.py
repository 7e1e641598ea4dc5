from pathlib import Path
from typing import TYPE_CHECKING

from tabbystack.models import HuggingFaceCliDownloader
from tabbystack.utils import CommandResult

if TYPE_CHECKING:
    from pytest_mock import MockerFixture

RUN = "tabbystack.models._download.run"


class TestHuggingFaceCliDownloader:
    def test_command_line(self, tmp_path: Path) -> None:
        downloader = HuggingFaceCliDownloader("/venv/bin/huggingface-cli")

        assert downloader.command("org/Model", "6_5", tmp_path) == (
            "/venv/bin/huggingface-cli",
            "download",
            "org/Model",
            "--revision",
            "6_5",
            "--local-dir",
            str(tmp_path),
        )

    def test_for_venv_prefers_venv_client(self, tmp_path: Path) -> None:
        client = tmp_path / "bin" / "huggingface-cli"
        client.parent.mkdir()
        _ = client.write_text("")

        assert HuggingFaceCliDownloader.for_venv(tmp_path).executable == str(client)

    def test_for_venv_falls_back_to_path(
        self, tmp_path: Path, mocker: "MockerFixture"
    ) -> None:
        _ = mocker.patch("tabbystack.models._download.which", return_value=None)

        assert HuggingFaceCliDownloader.for_venv(tmp_path).executable == "huggingface-cli"

    def test_streams_output_without_timeout(
        self, tmp_path: Path, mocker: "MockerFixture"
    ) -> None:
        run = mocker.patch(RUN, return_value=CommandResult(success=True, exit_code=0))

        assert HuggingFaceCliDownloader().download("org/Model", "6_5", tmp_path) == 0
        assert run.call_args.kwargs == {"capture": False, "timeout_ms": None}

    def test_exit_code_passthrough(self, tmp_path: Path, mocker: "MockerFixture") -> None:
        _ = mocker.patch(RUN, return_value=CommandResult(success=False, exit_code=3))

        assert HuggingFaceCliDownloader().download("org/Model", "6_5", tmp_path) == 3

    def test_client_not_found(self, tmp_path: Path, mocker: "MockerFixture") -> None:
        _ = mocker.patch(
            RUN, return_value=CommandResult(success=False, command_not_found=True)
        )

        assert HuggingFaceCliDownloader().download("org/Model", "6_5", tmp_path) == 127
