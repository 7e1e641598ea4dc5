"""Individual setup steps.

Each step is idempotent: re-running setup on a finished installation only
upgrades packages and fast-forwards the TabbyAPI checkout.
"""

import re
import sys
from pathlib import Path

from tabbystack.exceptions import SetupError
from tabbystack.utils import CommandResult, run, which

_HEAD_BRANCH_PATTERN = re.compile(r"HEAD branch:\s*(\S+)")


def _check(result: CommandResult, step: str, what: str) -> CommandResult:
    if not result.success:
        detail = result.stderr.strip() or result.error or "unknown error"
        msg = f"{what} failed: {detail}"
        raise SetupError(msg, step=step, exit_code=result.exit_code)
    return result


def venv_pip(venv_dir: Path) -> tuple[str, ...]:
    """Return the command that runs pip inside ``venv_dir``."""
    return (str(venv_dir / "bin" / "python"), "-m", "pip")


def ensure_venv(venv_dir: Path, *, python: str | None = None) -> bool:
    """Create the virtual environment if missing and upgrade its packaging tools.

    Returns:
        True if the environment was created by this call.

    Raises:
        SetupError: If creation or the upgrade fails.
    """
    created = False
    if not venv_dir.is_dir():
        interpreter = python or sys.executable
        _ = _check(
            run(interpreter, "-m", "venv", str(venv_dir), timeout_ms=None),
            "venv",
            "Creating the virtual environment",
        )
        created = True

    _ = _check(
        run(
            *venv_pip(venv_dir),
            "install",
            "--upgrade",
            "pip",
            "wheel",
            "setuptools",
            timeout_ms=None,
        ),
        "venv",
        "Upgrading pip",
    )
    return created


def default_branch(tabby_dir: Path) -> str:
    """Return the remote's default branch name.

    Raises:
        SetupError: If git cannot report it.
    """
    result = _check(
        run("git", "remote", "show", "origin", cwd=tabby_dir),
        "checkout",
        "Querying the TabbyAPI remote",
    )
    match = _HEAD_BRANCH_PATTERN.search(result.stdout)
    if match is None or match.group(1) == "(unknown)":
        msg = "Could not determine the default branch of the TabbyAPI remote"
        raise SetupError(msg, step="checkout")
    return match.group(1)


def sync_checkout(tabby_dir: Path, repo_url: str) -> str:
    """Clone TabbyAPI, or update an existing checkout to its default branch.

    Returns:
        ``"cloned"`` or ``"updated"``.

    Raises:
        SetupError: If any git command fails.
    """
    if not tabby_dir.is_dir():
        _ = _check(
            run("git", "clone", repo_url, str(tabby_dir), capture=False, timeout_ms=None),
            "checkout",
            "Cloning TabbyAPI",
        )
        return "cloned"

    _ = _check(
        run("git", "fetch", "origin", cwd=tabby_dir, timeout_ms=None),
        "checkout",
        "Fetching TabbyAPI",
    )
    branch = default_branch(tabby_dir)
    _ = _check(
        run("git", "checkout", branch, cwd=tabby_dir),
        "checkout",
        f"Checking out {branch}",
    )
    _ = _check(
        run("git", "pull", "origin", branch, cwd=tabby_dir, capture=False, timeout_ms=None),
        "checkout",
        f"Pulling {branch}",
    )
    return "updated"


def install_dependencies(venv_dir: Path, tabby_dir: Path, extras: str) -> None:
    """Install TabbyAPI's requirements and the package with its CUDA extras.

    Raises:
        SetupError: If pip fails.
    """
    pip = venv_pip(venv_dir)
    if (tabby_dir / "requirements.txt").is_file():
        _ = _check(
            run(*pip, "install", "-r", "requirements.txt", cwd=tabby_dir, capture=False, timeout_ms=None),
            "dependencies",
            "Installing TabbyAPI requirements",
        )

    target = f".[{extras}]" if extras else "."
    _ = _check(
        run(*pip, "install", target, cwd=tabby_dir, capture=False, timeout_ms=None),
        "dependencies",
        f"Installing TabbyAPI {target}",
    )


def install_download_client(venv_dir: Path) -> None:
    """Install or upgrade ``huggingface_hub[cli]`` in the environment.

    Raises:
        SetupError: If pip fails.
    """
    _ = _check(
        run(*venv_pip(venv_dir), "install", "--upgrade", "huggingface_hub[cli]", timeout_ms=None),
        "dependencies",
        "Installing huggingface-cli",
    )


def docker_available() -> bool:
    """Return True if the docker CLI is on PATH."""
    return which("docker") is not None


def pull_image(image: str) -> None:
    """Pull a container image.

    Raises:
        SetupError: If the pull fails.
    """
    _ = _check(
        run("docker", "pull", image, capture=False, timeout_ms=None),
        "image",
        f"Pulling {image}",
    )
