# pyright: reportExplicitAny=false, reportAny=false
"""Configuration models.

This module provides the Pydantic models for each configuration section
and the main Config container.
"""

from enum import StrEnum
from pathlib import Path
from typing import Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tabbystack.exceptions import ConfigValidationError
from tabbystack.utils import resolve_path

from ._defaults import DEFAULT_CONFIG
from ._loader import deep_merge


class LogLevel(StrEnum):
    """Log level threshold values.

    Values are ordered from most verbose (debug) to least verbose (error).
    """

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    JSON = "json"
    TEXT = "text"


class PathsConfig(BaseModel):
    """Filesystem layout of the stack.

    Relative values in config files are resolved against the project root
    before validation, so every attribute here is an absolute path.

    Attributes:
        logs_dir: Directory for service logs and PID records.
        models_dir: Directory holding downloaded model artifacts.
        venv_dir: Python virtual environment the inference service runs in.
        tabby_dir: TabbyAPI checkout.
        tabby_config: TabbyAPI configuration file passed with ``--config``.
        compose_file: docker compose file for the companion UI.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    logs_dir: Path
    models_dir: Path
    venv_dir: Path
    tabby_dir: Path
    tabby_config: Path
    compose_file: Path


class InferenceConfig(BaseModel):
    """Settings for the native inference service (TabbyAPI)."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    host: str = "127.0.0.1"
    port: int = Field(default=5000, gt=0, le=65535)
    startup_timeout: float = Field(default=300.0, gt=0)
    poll_interval: float = Field(default=5.0, gt=0)
    progress_interval: float = Field(default=30.0, gt=0)
    grace_period: float = Field(default=30.0, ge=0)
    expect_status: str = Field(
        default="",
        description="Required value of the 'status' field in /health; empty accepts any 2xx.",
    )
    ld_preload: str = Field(
        default="",
        description="Library forced into the process with LD_PRELOAD; empty disables.",
    )
    repo_url: str = "https://github.com/theroyallab/tabbyAPI.git"
    extras: str = "cu121"

    @property
    def base_url(self) -> str:
        """Return the base URL of the service."""
        return f"http://{self.host}:{self.port}"


class WebUIConfig(BaseModel):
    """Settings for the containerized companion UI (Open WebUI)."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    host: str = "127.0.0.1"
    port: int = Field(default=3000, gt=0, le=65535)
    startup_timeout: float = Field(default=60.0, gt=0)
    poll_interval: float = Field(default=2.0, gt=0)
    image: str = "ghcr.io/open-webui/open-webui:main"

    @property
    def base_url(self) -> str:
        """Return the base URL of the service."""
        return f"http://{self.host}:{self.port}"


class ModelConfig(BaseModel):
    """Default model artifact downloaded by setup."""

    model_config: ClassVar[ConfigDict] = ConfigDict(
        frozen=True, extra="ignore", coerce_numbers_to_str=True
    )

    repo: str = "bartowski/Llama-3.2-3B-Instruct-exl2"
    revision: str = "6_5"
    marker: str = "config.json"


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold.
        format: Log output format.
        file: Path to log file (empty uses logs/tabbystack.log).
        max_bytes: Rotate after this many bytes (0 disables rotation).
        backup_count: Rotated files to keep (0 disables rotation).
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    file: str = ""
    max_bytes: int = Field(default=0, ge=0)
    backup_count: int = Field(default=0, ge=0)


class Config(BaseModel):
    """Configuration container with typed access.

    Use the factory methods rather than the constructor so defaults are
    merged and paths resolved.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    root: Path
    paths: PathsConfig
    inference: InferenceConfig = Field(default_factory=InferenceConfig)
    webui: WebUIConfig = Field(default_factory=WebUIConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    sources: tuple[str, ...] = ()

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        *,
        root: Path,
        sources: tuple[str, ...] = (),
    ) -> Self:
        """Create configuration from a dictionary.

        Args:
            data: Configuration values; missing keys take their defaults.
            root: Project root that relative paths resolve against.
            sources: Human-readable names of the sources merged into ``data``.

        Returns:
            Validated configuration.

        Raises:
            ConfigValidationError: If a value has the wrong type or range.
        """
        merged = deep_merge(DEFAULT_CONFIG, data)
        merged["paths"] = {
            key: resolve_path(value, root) if isinstance(value, str) else value
            for key, value in merged.get("paths", {}).items()
        }

        try:
            return cls.model_validate(
                {**merged, "root": root, "sources": sources},
            )
        except ValidationError as e:
            first = e.errors()[0]
            key = ".".join(str(part) for part in first["loc"])
            msg = f"Invalid configuration value for '{key}': {first['msg']}"
            raise ConfigValidationError(
                msg,
                key=key,
                value=first.get("input"),
                expected=first["msg"],
                source=", ".join(sources) or None,
            ) from e

    def to_dict(self) -> dict[str, Any]:
        """Return the configuration as plain JSON-compatible data."""
        return self.model_dump(mode="json", exclude={"sources"})
