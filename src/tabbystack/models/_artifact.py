"""Model artifact naming and presence."""

from dataclasses import dataclass
from pathlib import Path

from tabbystack.exceptions import InvalidModelReferenceError

DEFAULT_MARKER = "config.json"


def model_dir_name(repo: str, revision: str) -> str:
    """Return the local directory name for a model revision.

    The name is the last path segment of the repository identifier, an
    underscore, and the revision.

    Examples:
        >>> model_dir_name("bartowski/Llama-3.2-3B-Instruct-exl2", "6_5")
        'Llama-3.2-3B-Instruct-exl2_6_5'

    Raises:
        InvalidModelReferenceError: If the repository segment or revision is
            empty, or the revision contains a path separator.
    """
    name = repo.rstrip("/").rsplit("/", 1)[-1].strip()
    revision = revision.strip()
    if not name or name in (".", ".."):
        msg = f"Invalid model repository: {repo!r}"
        raise InvalidModelReferenceError(msg, repo=repo, revision=revision)
    if not revision or "/" in revision or "\\" in revision:
        msg = f"Invalid model revision: {revision!r}"
        raise InvalidModelReferenceError(msg, repo=repo, revision=revision)
    return f"{name}_{revision}"


@dataclass(frozen=True, slots=True)
class ModelArtifact:
    """A model revision's local directory.

    Attributes:
        repo: Repository identifier, e.g. ``org/Model-Name``.
        revision: Branch or quantization tag, e.g. ``6_5``.
        path: Local directory.
        marker: File whose existence marks the download complete.
        downloaded: Whether the call that produced this transferred data.
    """

    repo: str
    revision: str
    path: Path
    marker: str = DEFAULT_MARKER
    downloaded: bool = False

    @property
    def marker_path(self) -> Path:
        """Return the presence-marker path."""
        return self.path / self.marker

    @property
    def present(self) -> bool:
        """Return True when the presence marker exists (checked on each access)."""
        return self.marker_path.is_file()
