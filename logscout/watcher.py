"""FileChangeWatcher: watchdog handler that wakes follow-mode file readers."""

import logging
import os
import threading
from typing import Callable

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class FileChangeWatcher(FileSystemEventHandler):
    def __init__(self):
        super().__init__()
        self._callbacks: dict[str, list[Callable[[], None]]] = {}
        self._lock = threading.Lock()
        self._observer = None

    def watch(self, path: str, callback: Callable[[], None]):
        """Call *callback* whenever *path* is modified, created or moved into place."""
        abs_path = os.path.abspath(path)
        with self._lock:
            self._callbacks.setdefault(abs_path, []).append(callback)

    def get_watched_dirs(self) -> set[str]:
        """Return unique parent directories of watched files (for Observer scheduling)."""
        with self._lock:
            return {os.path.dirname(p) for p in self._callbacks}

    def _fire(self, path: str):
        with self._lock:
            callbacks = list(self._callbacks.get(os.path.abspath(path), ()))
        for callback in callbacks:
            callback()

    def on_modified(self, event):
        if not event.is_directory:
            self._fire(event.src_path)

    def on_created(self, event):
        if not event.is_directory:
            self._fire(event.src_path)

    def on_moved(self, event):
        if not event.is_directory:
            self._fire(event.src_path)
            self._fire(event.dest_path)

    def start(self):
        self._observer = Observer()
        for dir_path in self.get_watched_dirs():
            self._observer.schedule(self, dir_path, recursive=False)
            logger.debug("Watching directory: %s", dir_path)
        self._observer.start()

    def stop(self):
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
