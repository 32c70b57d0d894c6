"""Configuration manager with hot-reload support."""

import os
import threading
from pathlib import Path
from typing import Callable

from ..utils.logger import get_logger
from .loader import load_config
from .models import Config

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "agenthub.yaml"
CONFIG_ENV_VAR = "AGENTHUB_CONFIG"


class ConfigManager:
    """Singleton configuration manager with hot-reload support.

    Thread-safe access to configuration with lazy loading on first access,
    reload through the watchdog watcher, and change callbacks.
    """

    _instance: "ConfigManager | None" = None
    _lock = threading.Lock()

    def __new__(cls, config_path: Path | None = None) -> "ConfigManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Path | None = None) -> None:
        if self._initialized:
            return

        self._config_path = config_path or Path(
            os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)
        )
        self._config: Config | None = None
        self._callbacks: list[Callable[[Config], None]] = []
        self._watcher = None
        self._rlock = threading.RLock()
        self._initialized = True

    @classmethod
    def reset(cls) -> None:
        """Drop the singleton (tests only)."""
        with cls._lock:
            if cls._instance is not None:
                cls._instance.stop_watcher()
            cls._instance = None

    @property
    def config(self) -> Config:
        """Get current configuration, loading if necessary."""
        with self._rlock:
            if self._config is None:
                self._config = load_config(self._config_path)
                logger.info(
                    "Configuration loaded",
                    extra={"config_path": str(self._config_path)},
                )
            return self._config

    @property
    def config_path(self) -> Path:
        return self._config_path

    def reload(self) -> None:
        """Reload configuration from file and notify callbacks.

        An invalid file keeps the previous configuration in place.
        """
        with self._rlock:
            try:
                new_config = load_config(self._config_path)
            except Exception as e:
                logger.error(
                    "Configuration reload failed, keeping previous config",
                    extra={"config_path": str(self._config_path), "error": str(e)},
                )
                return
            self._config = new_config
            callbacks = list(self._callbacks)

        logger.info("Configuration reloaded", extra={"callbacks": len(callbacks)})
        for callback in callbacks:
            try:
                callback(new_config)
            except Exception as e:
                logger.warning(
                    "Config change callback failed",
                    extra={"callback": getattr(callback, "__name__", repr(callback)), "error": str(e)},
                )

    def on_change(self, callback: Callable[[Config], None]) -> None:
        """Register a callback to be called with the new Config on reload."""
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[Config], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def start_watcher(self) -> None:
        """Start the file watcher for hot-reload."""
        from .watcher import ConfigWatcher

        if self._watcher is None:
            self._watcher = ConfigWatcher(self._config_path, self.reload)
            self._watcher.start()

    def stop_watcher(self) -> None:
        if self._watcher:
            self._watcher.stop()
            self._watcher = None


def get_config() -> Config:
    """Return the ConfigManager singleton's configuration."""
    return ConfigManager().config
