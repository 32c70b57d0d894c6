"""YAML configuration loader with validation.

String values may reference environment variables as ``${NAME}`` or
``${NAME:-default}``, which keeps API keys such as ``DASHSCOPE_API_KEY``
out of the file itself.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..utils.errors import ConfigError, ErrorCode
from .models import Config

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


class ConfigLoadError(ConfigError):
    """Raised when configuration loading fails."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.CONFIG_INVALID) -> None:
        super().__init__(message=message, code=code)


def _expand_env(value: Any) -> Any:
    """Recursively substitute ``${VAR}`` references in string values."""
    if isinstance(value, str):
        return _ENV_PATTERN.sub(
            lambda m: os.environ.get(m.group(1), m.group(2) or ""), value
        )
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    return value


def _validate(data: Any) -> Config:
    if not isinstance(data, dict):
        raise ConfigLoadError("Configuration must be a YAML object")

    try:
        return Config.model_validate(_expand_env(data))
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")
        raise ConfigLoadError("Configuration validation failed:\n" + "\n".join(errors))


def load_config(config_path: Path) -> Config:
    """Load and validate configuration from YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Validated Config instance

    Raises:
        ConfigLoadError: If the file is missing, unreadable or invalid
    """
    if not config_path.exists():
        raise ConfigLoadError(
            f"Configuration file not found: {config_path}", ErrorCode.CONFIG_NOT_FOUND
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Invalid YAML format: {e}")
    except OSError as e:
        raise ConfigLoadError(f"Failed to read configuration file: {e}")

    return _validate(data)


def load_config_from_string(yaml_content: str) -> Config:
    """Load configuration from a YAML string (used by tests)."""
    try:
        data = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Invalid YAML format: {e}")

    return _validate(data)
