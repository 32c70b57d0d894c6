"""Configuration management for AgentHub.

- YAML configuration with ``${ENV}`` substitution
- Type validation via Pydantic
- Hot-reload through a watchdog file watcher
- Primary/backup model failover settings
"""

from .loader import ConfigLoadError, load_config, load_config_from_string
from .manager import ConfigManager, get_config
from .models import (
    Config,
    ExternalApisConfig,
    GenerationConfig,
    GuardConfig,
    LoggingConfig,
    ModelConfig,
    ServerConfig,
    SessionConfig,
    StorageConfig,
    SummaryConfig,
)

__all__ = [
    "Config",
    "ConfigLoadError",
    "ConfigManager",
    "ExternalApisConfig",
    "GenerationConfig",
    "GuardConfig",
    "LoggingConfig",
    "ModelConfig",
    "ServerConfig",
    "SessionConfig",
    "StorageConfig",
    "SummaryConfig",
    "get_config",
    "load_config",
    "load_config_from_string",
]
