"""File watcher for configuration hot-reload."""

import time
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..utils.logger import get_logger

logger = get_logger(__name__)


class ConfigChangeHandler(FileSystemEventHandler):
    """Debounced handler that fires when the config file itself changes."""

    def __init__(
        self,
        config_path: Path,
        callback: Callable[[], None],
        debounce_seconds: float = 1.0,
    ) -> None:
        self.config_path = config_path.resolve()
        self.callback = callback
        self.debounce_seconds = debounce_seconds
        self.last_fired = 0.0

    def _matches(self, event: FileSystemEvent) -> bool:
        if event.is_directory:
            return False
        return Path(event.src_path).resolve() == self.config_path

    def on_modified(self, event: FileSystemEvent) -> None:
        if not self._matches(event):
            return

        now = time.monotonic()
        if now - self.last_fired < self.debounce_seconds:
            return
        self.last_fired = now

        logger.info("Configuration file changed", extra={"path": str(self.config_path)})
        self.callback()

    # Editors that write via rename surface as created events
    on_created = on_modified


class ConfigWatcher:
    """Watchdog-based file watcher for configuration hot-reload."""

    def __init__(self, config_path: Path, callback: Callable[[], None]) -> None:
        self.config_path = config_path
        self.handler = ConfigChangeHandler(config_path, callback)
        self.observer: Observer | None = None

    def start(self) -> None:
        if self.observer is not None:
            return

        self.observer = Observer()
        watch_dir = self.config_path.resolve().parent
        self.observer.schedule(self.handler, str(watch_dir), recursive=False)
        self.observer.start()
        logger.info("Config watcher started", extra={"path": str(self.config_path)})

    def stop(self) -> None:
        if self.observer:
            self.observer.stop()
            self.observer.join()
            self.observer = None
            logger.info("Config watcher stopped", extra={"path": str(self.config_path)})
