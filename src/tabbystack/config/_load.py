"""Configuration discovery and loading."""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from tabbystack.exceptions import ConfigLoadError
from tabbystack.utils import find_project_root, get_project_config_path

from ._loader import deep_merge, parse_env_vars, read_toml_file
from ._models import Config


def load_config(
    *,
    project_root: Path | None = None,
    config_path: Path | None = None,
    include_env: bool = True,
    environ: Mapping[str, str] | None = None,
    cli_overrides: dict[str, Any] | None = None,  # pyright: ignore[reportExplicitAny]
) -> Config:
    """Load merged configuration from all sources.

    Sources are merged lowest to highest precedence:
    defaults -> config file -> environment -> CLI overrides.

    Args:
        project_root: Project root directory. If None, search upward from the
            current directory for tabbystack.toml.
        config_path: Explicit config file (``--config``). Must exist.
        include_env: Include environment variables as a source.
        environ: Environment mapping used instead of ``os.environ``.
        cli_overrides: Values from command-line flags.

    Returns:
        Merged, validated configuration.

    Raises:
        ConfigLoadError: If an explicit config file is missing or any file
            cannot be parsed.
        ConfigValidationError: If the merged configuration is invalid.
    """
    root = (project_root or find_project_root()).resolve()
    merged: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]
    sources: list[str] = ["default"]

    if config_path is not None:
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise ConfigLoadError(msg, path=config_path)
        file_path: Path | None = config_path
    else:
        candidate = get_project_config_path(root)
        file_path = candidate if candidate.is_file() else None

    if file_path is not None:
        merged = deep_merge(merged, read_toml_file(file_path))
        sources.append(str(file_path))

    if include_env:
        env_values = parse_env_vars(environ)
        if env_values:
            merged = deep_merge(merged, env_values)
            sources.append("env")

    if cli_overrides:
        merged = deep_merge(merged, cli_overrides)
        sources.append("cli")

    return Config.from_dict(merged, root=root, sources=tuple(sources))
