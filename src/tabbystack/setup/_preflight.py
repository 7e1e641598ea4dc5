"""Pre-flight checks run before setup touches anything."""

import re
import sys
from dataclasses import dataclass, field

from tabbystack.exceptions import PreconditionError, SetupError
from tabbystack.utils import run, which

MIN_PYTHON: tuple[int, int] = (3, 10)

_CUDA_RELEASE_PATTERN = re.compile(r"release (\d+\.\d+)")


@dataclass(frozen=True, slots=True)
class PreflightReport:
    """What the pre-flight checks found.

    Attributes:
        python_version: ``major.minor`` of the interpreter creating the venv.
        git: Path of the git executable.
        gpus: One ``name, memory`` line per NVIDIA GPU.
        cuda_version: CUDA toolkit release, or None when nvcc is missing.
    """

    python_version: str
    git: str
    gpus: tuple[str, ...] = field(default=())
    cuda_version: str | None = None


def check_python(version: tuple[int, ...] | None = None) -> str:
    """Return ``major.minor`` if the interpreter is new enough.

    Raises:
        PreconditionError: If older than MIN_PYTHON.
    """
    info = tuple(version) if version is not None else tuple(sys.version_info[:2])
    found = ".".join(str(part) for part in info[:2])
    if info[:2] < MIN_PYTHON:
        required = ".".join(str(part) for part in MIN_PYTHON)
        msg = f"Python {required}+ required, found {found}"
        raise PreconditionError(msg, hint=f"Install Python {required} or newer.")
    return found


def check_git() -> str:
    """Return the git executable path.

    Raises:
        PreconditionError: If git is not installed.
    """
    git = which("git")
    if git is None:
        msg = "Git is not installed"
        raise PreconditionError(msg, hint="Install git and re-run setup.")
    return git


def list_gpus() -> tuple[str, ...]:
    """Return ``name, memory.total`` for each NVIDIA GPU.

    Raises:
        PreconditionError: If nvidia-smi is not installed.
        SetupError: If nvidia-smi fails.
    """
    if which("nvidia-smi") is None:
        msg = "nvidia-smi not found. NVIDIA drivers required."
        raise PreconditionError(msg, hint="Install the NVIDIA driver.")

    result = run(
        "nvidia-smi",
        "--query-gpu=name,memory.total",
        "--format=csv,noheader",
    )
    if not result.success:
        msg = f"nvidia-smi failed: {result.stderr.strip() or result.error}"
        raise SetupError(msg, step="preflight", exit_code=result.exit_code)
    return tuple(result.lines)


def cuda_version() -> str | None:
    """Return the CUDA toolkit release reported by nvcc, or None if unavailable."""
    if which("nvcc") is None:
        return None
    result = run("nvcc", "--version")
    if not result.success:
        return None
    match = _CUDA_RELEASE_PATTERN.search(result.stdout)
    return match.group(1) if match else None
