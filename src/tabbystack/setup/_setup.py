"""Full environment setup."""

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from tabbystack.config import Config
from tabbystack.launcher import EventSink, EventType, LaunchEvent, NullEventSink
from tabbystack.models import HuggingFaceCliDownloader, ModelAcquisitionGate, ModelArtifact
from tabbystack.utils import null_logger

from . import _preflight, _steps

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

SETUP_EVENT_SOURCE = "setup"


@dataclass(slots=True)
class SetupReport:
    """Summary of a setup run.

    Attributes:
        preflight: Pre-flight findings.
        venv_dir: Virtual environment path.
        venv_created: Whether the environment was created by this run.
        tabby_dir: TabbyAPI checkout path.
        checkout: ``"cloned"`` or ``"updated"``.
        models_dir: Directory holding model artifacts.
        model: The default model, unless its download was skipped.
        tabby_config_present: Whether the TabbyAPI config file exists.
        image_pulled: Whether the companion UI image was pulled.
        warnings: Non-fatal problems found along the way.
    """

    preflight: _preflight.PreflightReport
    venv_dir: Path
    venv_created: bool
    tabby_dir: Path
    checkout: str
    models_dir: Path
    model: ModelArtifact | None = None
    tabby_config_present: bool = False
    image_pulled: bool = False
    warnings: list[str] = field(default_factory=list)


def create_gate(
    config: Config,
    *,
    logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
) -> ModelAcquisitionGate:
    """Return a gate for ``config.paths.models_dir`` using the venv's client."""
    return ModelAcquisitionGate(
        config.paths.models_dir,
        HuggingFaceCliDownloader.for_venv(config.paths.venv_dir),
        marker=config.model.marker,
        logger=logger,
    )


def run_preflight(
    sink: EventSink,
    *,
    python_version: tuple[int, ...] | None = None,
) -> _preflight.PreflightReport:
    """Run the pre-flight checks, reporting each through ``sink``.

    Raises:
        PreconditionError: If Python is too old, or git or nvidia-smi is missing.
        SetupError: If nvidia-smi fails.
    """
    emit = _emitter(sink)
    emit(EventType.WAITING, "Running pre-flight checks...")

    version = _preflight.check_python(python_version)
    emit(EventType.READY, f"Python {version} found")

    git = _preflight.check_git()
    emit(EventType.READY, "Git found")

    gpus = _preflight.list_gpus()
    emit(EventType.READY, f"Found {len(gpus)} NVIDIA GPU(s)")
    for gpu in gpus:
        emit(EventType.WAITING, f"  GPU: {gpu}")

    cuda = _preflight.cuda_version()
    if cuda is None:
        emit(EventType.WARNING, "nvcc not found - CUDA toolkit may not be in PATH")
        emit(EventType.WARNING, "ExLlamaV2 installation may need CUDA toolkit")
    else:
        emit(EventType.READY, f"CUDA {cuda} found")

    return _preflight.PreflightReport(
        python_version=version, git=git, gpus=gpus, cuda_version=cuda
    )


def run_setup(
    config: Config,
    *,
    skip_model: bool = False,
    sink: EventSink | None = None,
    logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    gate: ModelAcquisitionGate | None = None,
) -> SetupReport:
    """Bootstrap the whole stack.

    Steps run in order and stop at the first failure: pre-flight checks,
    virtual environment, TabbyAPI checkout, dependencies, default model,
    TabbyAPI config check, companion UI image.

    Args:
        config: Loaded configuration.
        skip_model: Skip the default model download.
        sink: Receiver of progress messages.
        logger: Structured logger for diagnostics.
        gate: Model gate; defaults to one using the venv's download client.

    Returns:
        What was found and done.

    Raises:
        PreconditionError: A required tool is missing.
        SetupError: A command failed; ``step`` names which one.
        DownloadError: The model download failed.
    """
    sink = sink or NullEventSink()
    log = logger or null_logger()
    emit = _emitter(sink)
    paths = config.paths

    preflight = run_preflight(sink)
    log.info("setup_preflight_passed", gpus=list(preflight.gpus), cuda=preflight.cuda_version)

    venv_exists = paths.venv_dir.is_dir()
    emit(
        EventType.WAITING,
        "Upgrading pip..." if venv_exists else "Creating Python virtual environment...",
    )
    created = _steps.ensure_venv(paths.venv_dir)
    if created:
        emit(EventType.READY, f"Virtual environment created at {paths.venv_dir}")
    else:
        emit(EventType.READY, "Virtual environment already exists")

    emit(
        EventType.WAITING,
        "Updating TabbyAPI..." if paths.tabby_dir.is_dir() else "Cloning TabbyAPI...",
    )
    checkout = _steps.sync_checkout(paths.tabby_dir, config.inference.repo_url)
    emit(EventType.READY, f"TabbyAPI {checkout}")
    log.info("setup_checkout", action=checkout, path=str(paths.tabby_dir))

    emit(EventType.WAITING, "Installing TabbyAPI dependencies...")
    _steps.install_dependencies(paths.venv_dir, paths.tabby_dir, config.inference.extras)
    emit(EventType.READY, "Dependencies installed")

    emit(EventType.WAITING, "Ensuring huggingface-cli is available...")
    _steps.install_download_client(paths.venv_dir)
    emit(EventType.READY, "huggingface-cli ready")

    report = SetupReport(
        preflight=preflight,
        venv_dir=paths.venv_dir,
        venv_created=created,
        tabby_dir=paths.tabby_dir,
        checkout=checkout,
        models_dir=paths.models_dir,
    )

    if skip_model:
        emit(EventType.WARNING, "Skipping model download (--skip-model specified)")
    else:
        report.model = download_model(
            gate or create_gate(config, logger=log),
            config.model.repo,
            config.model.revision,
            sink=sink,
        )

    report.tabby_config_present = paths.tabby_config.is_file()
    if report.tabby_config_present:
        emit(EventType.READY, f"{paths.tabby_config.name} found")
    else:
        msg = f"{paths.tabby_config.name} not found - please create it"
        emit(EventType.WARNING, msg)
        report.warnings.append(msg)

    if _steps.docker_available():
        emit(EventType.WAITING, "Pulling Open WebUI Docker image...")
        _steps.pull_image(config.webui.image)
        report.image_pulled = True
        emit(EventType.READY, "Open WebUI image ready")
    else:
        msg = "Docker not found - skipping Open WebUI image pull"
        emit(EventType.WARNING, msg)
        emit(EventType.WARNING, "Install Docker to use Open WebUI")
        report.warnings.append(msg)

    log.info("setup_complete", warnings=report.warnings)
    return report


def download_model(
    gate: ModelAcquisitionGate,
    repo: str,
    revision: str,
    *,
    sink: EventSink | None = None,
) -> ModelArtifact:
    """Download a model revision unless it is already present.

    Raises:
        InvalidModelReferenceError: If the reference cannot name a directory.
        DownloadError: If the download fails.
    """
    emit = _emitter(sink or NullEventSink())
    artifact = gate.artifact_for(repo, revision)
    if artifact.present:
        emit(EventType.READY, f"Model already downloaded at {artifact.path}")
        return artifact

    emit(EventType.WAITING, f"Downloading model: {repo} (revision: {revision})")
    emit(EventType.WAITING, f"Target directory: {artifact.path}")
    emit(EventType.WAITING, "This may take a while for large models...")
    artifact = gate.ensure_downloaded(repo, revision)
    emit(EventType.READY, f"Model downloaded successfully to {artifact.path}")
    return artifact


def _emitter(sink: EventSink) -> Callable[[EventType, str], None]:
    def emit(event_type: EventType, message: str) -> None:
        sink.write_event(LaunchEvent(SETUP_EVENT_SOURCE, event_type, message))

    return emit
