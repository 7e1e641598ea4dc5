"""Environment bootstrap: pre-flight checks, venv, TabbyAPI, dependencies, model."""

from ._preflight import (
    MIN_PYTHON,
    PreflightReport,
    check_git,
    check_python,
    cuda_version,
    list_gpus,
)
from ._setup import (
    SetupReport,
    create_gate,
    download_model,
    run_preflight,
    run_setup,
)
from ._steps import (
    default_branch,
    docker_available,
    ensure_venv,
    install_dependencies,
    install_download_client,
    pull_image,
    sync_checkout,
    venv_pip,
)

__all__ = [
    "MIN_PYTHON",
    "PreflightReport",
    "SetupReport",
    "check_git",
    "check_python",
    "create_gate",
    "cuda_version",
    "default_branch",
    "docker_available",
    "download_model",
    "ensure_venv",
    "install_dependencies",
    "install_download_client",
    "list_gpus",
    "pull_image",
    "run_preflight",
    "run_setup",
    "sync_checkout",
    "venv_pip",
]
