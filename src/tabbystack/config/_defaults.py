"""Default configuration values.

This module defines the built-in default configuration values that are used
when no other configuration sources provide values.

Note: DEFAULT_CONFIG is intentionally a plain dict for type compatibility
with functions like deep_merge. The merge functions create copies, so mutation
of the original is not a concern in practice.
"""

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {  # pyright: ignore[reportExplicitAny]
    "paths": {
        "logs_dir": "logs",
        "models_dir": "models",
        "venv_dir": "venv",
        "tabby_dir": "tabbyapi",
        "tabby_config": "tabby_config.yml",
        "compose_file": "docker-compose.yml",
    },
    "inference": {
        "host": "127.0.0.1",
        "port": 5000,
        "startup_timeout": 300.0,
        "poll_interval": 5.0,
        "progress_interval": 30.0,
        "grace_period": 30.0,
        "expect_status": "",
        "ld_preload": "",
        "repo_url": "https://github.com/theroyallab/tabbyAPI.git",
        "extras": "cu121",
    },
    "webui": {
        "host": "127.0.0.1",
        "port": 3000,
        "startup_timeout": 60.0,
        "poll_interval": 2.0,
        "image": "ghcr.io/open-webui/open-webui:main",
    },
    "model": {
        "repo": "bartowski/Llama-3.2-3B-Instruct-exl2",
        "revision": "6_5",
        "marker": "config.json",
    },
    "logging": {
        "level": "info",
        "format": "json",
        "file": "",
        "max_bytes": 0,
        "backup_count": 0,
    },
}

# Short environment variable names kept from the shell tooling, mapped to
# their dot-notation config keys.
ENV_ALIASES: dict[str, str] = {
    "TABBY_PORT": "inference.port",
    "TABBY_STARTUP_TIMEOUT": "inference.startup_timeout",
    "WEBUI_PORT": "webui.port",
    "MODEL_REPO": "model.repo",
    "MODEL_REVISION": "model.revision",
}
