"""Project path discovery."""

from pathlib import Path

CONFIG_FILE_NAME = "tabbystack.toml"


def find_project_root(start: Path | None = None) -> Path:
    """Find the project root by searching upward for a tabbystack.toml file.

    Args:
        start: Directory to start searching from. Defaults to the current
            working directory.

    Returns:
        The first directory containing tabbystack.toml, or the starting
        directory when none is found.
    """
    origin = (start or Path.cwd()).resolve()
    for candidate in (origin, *origin.parents):
        if (candidate / CONFIG_FILE_NAME).is_file():
            return candidate
    return origin


def get_project_config_path(project_root: Path) -> Path:
    """Get the path to the project configuration file."""
    return project_root / CONFIG_FILE_NAME


def resolve_path(value: str | Path, root: Path) -> Path:
    """Resolve a configured path against the project root.

    Absolute paths and paths starting with ``~`` are kept as given.
    """
    path = Path(value).expanduser()
    if path.is_absolute():
        return path
    return root / path
