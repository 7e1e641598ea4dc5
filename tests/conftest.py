from dataclasses import dataclass, field
from pathlib import Path

import pytest
from rich.console import Console

from tabbystack.config import Config, load_config


@dataclass(slots=True)
class FakeClock:
    """Clock whose sleep advances time instantly."""

    now: float = 0.0
    sleeps: list[float] = field(default_factory=list)

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@dataclass(frozen=True, slots=True)
class StackProject:
    """An isolated project tree for tests."""

    root: Path

    @property
    def config_file(self) -> Path:
        return self.root / "tabbystack.toml"

    @property
    def logs_dir(self) -> Path:
        return self.root / "logs"

    @property
    def models_dir(self) -> Path:
        return self.root / "models"

    @property
    def venv_dir(self) -> Path:
        return self.root / "venv"

    @property
    def tabby_dir(self) -> Path:
        return self.root / "tabbyapi"

    def write_config(self, content: str) -> Path:
        _ = self.config_file.write_text(content, encoding="utf-8")
        return self.config_file

    def load(self, **environ: str) -> Config:
        return load_config(project_root=self.root, environ=environ)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def project(tmp_path: Path) -> StackProject:
    root = tmp_path / "stack"
    root.mkdir()
    return StackProject(root=root)


@pytest.fixture
def console() -> Console:
    return Console(
        width=70,
        force_terminal=True,
        highlight=False,
        color_system=None,
        legacy_windows=False,
    )
