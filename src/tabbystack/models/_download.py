"""Model download client."""

from pathlib import Path
from typing import Protocol, final

from tabbystack.utils import run, which

HF_CLI = "huggingface-cli"


class Downloader(Protocol):
    """Fetches a model revision into a local directory."""

    def download(self, repo: str, revision: str, target: Path) -> int:
        """Download ``repo`` at ``revision`` into ``target``.

        Returns:
            The client's exit code; 0 means success.
        """
        ...


@final
class HuggingFaceCliDownloader:
    """Runs ``huggingface-cli download`` with output streamed to the terminal.

    The client resumes interrupted downloads on its own, so calling it again
    for a partial directory is safe.
    """

    __slots__ = ("executable",)

    def __init__(self, executable: str | Path | None = None) -> None:
        """Initialize the downloader.

        Args:
            executable: Client to run. Defaults to ``huggingface-cli`` on PATH.
        """
        self.executable: str = str(executable) if executable else HF_CLI

    @classmethod
    def for_venv(cls, venv_dir: Path) -> "HuggingFaceCliDownloader":  # noqa: UP037
        """Prefer the client installed in ``venv_dir``, falling back to PATH."""
        candidate = venv_dir / "bin" / HF_CLI
        if candidate.is_file():
            return cls(candidate)
        return cls(which(HF_CLI))

    def command(self, repo: str, revision: str, target: Path) -> tuple[str, ...]:
        """Return the download command line."""
        return (
            self.executable,
            "download",
            repo,
            "--revision",
            revision,
            "--local-dir",
            str(target),
        )

    def download(self, repo: str, revision: str, target: Path) -> int:
        result = run(
            *self.command(repo, revision, target),
            capture=False,
            timeout_ms=None,
        )
        if result.exit_code is None:
            # Could not be executed at all
            return 127 if result.command_not_found else 1
        return result.exit_code
