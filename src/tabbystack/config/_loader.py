# pyright: reportAny=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""TOML configuration file loading and merging."""

import os
import re
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from tabbystack.exceptions import ConfigLoadError

from ._defaults import ENV_ALIASES

ENV_PREFIX = "TABBYSTACK_"

# Plain decimal literals only; int() would also accept "6_5", which is a
# revision tag, not sixty-five.
_INT_PATTERN = re.compile(r"-?\d+")
_FLOAT_PATTERN = re.compile(r"-?\d+\.\d*|-?\.\d+")

# Variables under the prefix that are flags, not config keys
_RESERVED_ENV_KEYS = frozenset({"DEBUG"})


def read_toml_file(path: Path) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Read and parse a TOML file.

    Args:
        path: Path to the TOML file.

    Returns:
        Parsed TOML content as dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigLoadError: If the file cannot be parsed.
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Failed to parse TOML file: {e}"
        raise ConfigLoadError(
            msg,
            path=path,
            line=getattr(e, "lineno", None),
            column=getattr(e, "colno", None),
        ) from e


def deep_merge(
    base: Mapping[str, Any],  # pyright: ignore[reportExplicitAny]
    override: Mapping[str, Any],  # pyright: ignore[reportExplicitAny]
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Deep merge two configuration dictionaries.

    Merges `override` into `base`, returning a new dictionary. Neither input
    is modified.

    Merge rules:
        - Dictionaries are recursively merged
        - Arrays are replaced entirely (no element-wise merge)
        - Scalars are replaced with override value
        - Missing keys in override preserve base values
    """
    result: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]

    for key in base.keys() | override.keys():
        if key not in override:
            result[key] = copy_value(base[key])
        elif key not in base:
            result[key] = copy_value(override[key])
        else:
            base_val = base[key]
            override_val = override[key]

            if isinstance(base_val, Mapping) and isinstance(override_val, Mapping):
                result[key] = deep_merge(base_val, override_val)
            else:
                result[key] = copy_value(override_val)

    return result


def copy_value(value: Any) -> Any:  # pyright: ignore[reportExplicitAny]
    """Create a deep copy of a configuration value.

    Recursively copies dicts and lists so the result is independent of the
    original.
    """
    if isinstance(value, Mapping):
        return {k: copy_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [copy_value(item) for item in value]
    return value


def set_nested_key(
    data: dict[str, Any],  # pyright: ignore[reportExplicitAny]
    key: str,
    value: Any,  # pyright: ignore[reportExplicitAny]
) -> None:
    """Set a value in a nested dictionary using dot notation.

    Intermediate dictionaries are created as needed.

    Examples:
        >>> data = {}
        >>> set_nested_key(data, "inference.port", 5001)
        >>> data
        {'inference': {'port': 5001}}
    """
    parts = key.split(".")
    current = data
    for part in parts[:-1]:
        existing = current.get(part)
        if not isinstance(existing, dict):
            existing = {}
            current[part] = existing
        current = existing
    current[parts[-1]] = value


def parse_string_value(value: str) -> Any:  # pyright: ignore[reportExplicitAny]
    """Parse a string value with automatic type inference.

    Precedence:
    1. Boolean: true/false (case-insensitive)
    2. Integer: plain decimal digits
    3. Float: decimal with a point
    4. String: fallback

    Examples:
        >>> parse_string_value("true")
        True
        >>> parse_string_value("5001")
        5001
        >>> parse_string_value("2.5")
        2.5
        >>> parse_string_value("6_5")
        '6_5'
    """
    stripped = value.strip()
    lower_value = stripped.lower()
    if lower_value in ("true", "false"):
        return lower_value == "true"

    if _INT_PATTERN.fullmatch(stripped):
        return int(stripped)

    if _FLOAT_PATTERN.fullmatch(stripped):
        return float(stripped)

    return value


def parse_env_vars(
    environ: Mapping[str, str] | None = None,
    *,
    prefix: str = ENV_PREFIX,
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Parse environment variables into a config dictionary.

    Two forms are recognized:

    - Prefixed names: ``TABBYSTACK_INFERENCE__PORT`` -> ``inference.port``
      (prefix removed, double underscores become dots, lowercased).
    - Short aliases kept from the shell tooling, such as ``TABBY_PORT``
      and ``MODEL_REVISION`` (see ``ENV_ALIASES``). Prefixed names win when
      both are set.

    Args:
        environ: Environment mapping. Defaults to ``os.environ``.
        prefix: Environment variable prefix.

    Returns:
        Dictionary of parsed config values with nested structure.
    """
    env = os.environ if environ is None else environ
    result: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]

    for alias, config_key in ENV_ALIASES.items():
        raw = env.get(alias)
        if raw:
            set_nested_key(result, config_key, parse_string_value(raw))

    for key, value in env.items():
        if not key.startswith(prefix):
            continue

        config_key = key[len(prefix) :]
        if not config_key or config_key in _RESERVED_ENV_KEYS:
            continue

        config_path = config_key.replace("__", ".").lower()
        set_nested_key(result, config_path, parse_string_value(value))

    return result
