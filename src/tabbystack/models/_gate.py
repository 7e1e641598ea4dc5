"""Idempotent model acquisition."""

from pathlib import Path
from typing import TYPE_CHECKING, final

from tabbystack.exceptions import DownloadError
from tabbystack.utils import null_logger

from ._artifact import DEFAULT_MARKER, ModelArtifact, model_dir_name
from ._download import Downloader

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger


@final
class ModelAcquisitionGate:
    """Downloads a model revision only when its presence marker is missing.

    A directory counts as downloaded when ``<dir>/<marker>`` exists. An
    interrupted download leaves no marker, so the next call resumes it.
    """

    __slots__ = ("_downloader", "_logger", "marker", "models_dir")

    def __init__(
        self,
        models_dir: Path,
        downloader: Downloader,
        *,
        marker: str = DEFAULT_MARKER,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize the gate.

        Args:
            models_dir: Directory holding one subdirectory per model revision.
            downloader: Client used when a revision is missing.
            marker: File name that marks a complete download.
            logger: Structured logger for diagnostics.
        """
        self.models_dir = models_dir
        self.marker = marker
        self._downloader = downloader
        self._logger = logger or null_logger()

    def artifact_for(self, repo: str, revision: str) -> ModelArtifact:
        """Return the artifact for a revision without touching the filesystem."""
        return ModelArtifact(
            repo=repo,
            revision=revision,
            path=self.models_dir / model_dir_name(repo, revision),
            marker=self.marker,
        )

    def ensure_downloaded(self, repo: str, revision: str) -> ModelArtifact:
        """Return the artifact, downloading it first if it is not present.

        Raises:
            InvalidModelReferenceError: If the reference cannot name a directory.
            DownloadError: If the client fails or finishes without producing
                the presence marker.
        """
        artifact = self.artifact_for(repo, revision)
        if artifact.present:
            self._logger.info("model_present", repo=repo, revision=revision, path=str(artifact.path))
            return artifact

        self.models_dir.mkdir(parents=True, exist_ok=True)
        self._logger.info("model_download_started", repo=repo, revision=revision, path=str(artifact.path))

        exit_code = self._downloader.download(repo, revision, artifact.path)
        if exit_code != 0:
            msg = f"Download of {repo} (revision {revision}) failed with exit code {exit_code}"
            self._logger.error("model_download_failed", repo=repo, revision=revision, exit_code=exit_code)
            raise DownloadError(msg, repo=repo, revision=revision, exit_code=exit_code)

        if not artifact.present:
            msg = (
                f"Download of {repo} (revision {revision}) finished but "
                + f"{artifact.marker_path} is missing"
            )
            self._logger.error("model_marker_missing", repo=repo, revision=revision)
            raise DownloadError(msg, repo=repo, revision=revision, exit_code=exit_code)

        self._logger.info("model_downloaded", repo=repo, revision=revision)
        return ModelArtifact(
            repo=repo,
            revision=revision,
            path=artifact.path,
            marker=self.marker,
            downloaded=True,
        )
