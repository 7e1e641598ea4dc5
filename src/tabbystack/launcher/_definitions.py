"""Service definitions for the inference service and the companion UI."""

from pathlib import Path

from tabbystack.config import Config
from tabbystack.health import HealthCheckTarget
from tabbystack.supervisor import Precondition, ServiceDefinition, ServiceKind

# Identifiers double as log and PID record file names (logs/tabby.pid)
INFERENCE_SERVICE = "tabby"
WEBUI_SERVICE = "webui"

# Matches TabbyAPI processes started by hand or left without a PID record
INFERENCE_ORPHAN_PATTERN = r"tabbyapi.*main\.py|tabbyAPI"

# Tensor-parallel workers that can outlive TabbyAPI and keep GPU memory
INFERENCE_WORKER_PATTERN = r"exllamav[23].*model_tp"

SETUP_HINT = "Run 'tabbystack setup' first."


def venv_python(venv_dir: Path) -> Path:
    """Return the interpreter inside a virtual environment."""
    return venv_dir / "bin" / "python"


def inference_entry_args(tabby_dir: Path) -> tuple[str, ...]:
    """Return the arguments that launch TabbyAPI from its checkout.

    Newer checkouts ship ``main.py``, older ones ``start.py``; otherwise the
    package is run as a module.
    """
    for entry in ("main.py", "start.py"):
        path = tabby_dir / entry
        if path.is_file():
            return (str(path),)
    return ("-m", "tabbyAPI.main")


def build_inference_definition(config: Config) -> ServiceDefinition:
    """Build the definition of the native inference service."""
    paths = config.paths
    inference = config.inference

    env: dict[str, str] = {}
    if inference.ld_preload:
        env["LD_PRELOAD"] = inference.ld_preload

    expect_json = (
        {"status": inference.expect_status} if inference.expect_status else {}
    )

    return ServiceDefinition(
        name=INFERENCE_SERVICE,
        display_name="TabbyAPI",
        kind=ServiceKind.NATIVE,
        command=(
            str(venv_python(paths.venv_dir)),
            *inference_entry_args(paths.tabby_dir),
            "--config",
            str(paths.tabby_config),
        ),
        cwd=paths.tabby_dir,
        env=env,
        health=HealthCheckTarget(
            url=f"{inference.base_url}/health",
            interval=inference.poll_interval,
            timeout=inference.startup_timeout,
            expect_json=expect_json,
        ),
        preconditions=(
            Precondition(paths.venv_dir, f"Virtual environment not found. {SETUP_HINT}"),
            Precondition(paths.tabby_dir, f"TabbyAPI not found. {SETUP_HINT}"),
        ),
        orphan_pattern=INFERENCE_ORPHAN_PATTERN,
        worker_pattern=INFERENCE_WORKER_PATTERN,
    )


def build_webui_definition(config: Config) -> ServiceDefinition:
    """Build the definition of the containerized companion UI."""
    webui = config.webui
    return ServiceDefinition(
        name=WEBUI_SERVICE,
        display_name="Open WebUI",
        kind=ServiceKind.CONTAINER,
        optional=True,
        env={
            "TABBY_PORT": str(config.inference.port),
            "WEBUI_PORT": str(webui.port),
        },
        health=HealthCheckTarget(
            url=f"{webui.base_url}/health",
            interval=webui.poll_interval,
            timeout=webui.startup_timeout,
        ),
        compose_file=config.paths.compose_file,
    )


def build_service_definitions(config: Config) -> tuple[ServiceDefinition, ...]:
    """Return the stack's services in start order.

    The inference service comes first and is mandatory; the companion UI
    follows as the optional tail.
    """
    return (build_inference_definition(config), build_webui_definition(config))
