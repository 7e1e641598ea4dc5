"""tabbystack configuration.

This module provides the public API for configuration management: loading
from defaults, tabbystack.toml, environment variables and CLI flags, and
typed access to the merged values.

Example:
    >>> from tabbystack.config import load_config
    >>> config = load_config()
    >>> config.inference.port
    5000
"""

from tabbystack.exceptions import (
    ConfigError,
    ConfigLoadError,
    ConfigValidationError,
)

from ._defaults import DEFAULT_CONFIG, ENV_ALIASES
from ._load import load_config
from ._loader import (
    ENV_PREFIX,
    deep_merge,
    parse_env_vars,
    parse_string_value,
    read_toml_file,
    set_nested_key,
)
from ._models import (
    Config,
    InferenceConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    ModelConfig,
    PathsConfig,
    WebUIConfig,
)

__all__ = [
    "DEFAULT_CONFIG",
    "ENV_ALIASES",
    "ENV_PREFIX",
    "Config",
    "ConfigError",
    "ConfigLoadError",
    "ConfigValidationError",
    "InferenceConfig",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "ModelConfig",
    "PathsConfig",
    "WebUIConfig",
    "deep_merge",
    "load_config",
    "parse_env_vars",
    "parse_string_value",
    "read_toml_file",
    "set_nested_key",
]
