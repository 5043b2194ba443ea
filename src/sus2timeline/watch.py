from __future__ import annotations
import os
import time
import logging
from typing import Callable, Optional
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

log = logging.getLogger(__name__)

class ChartFileWatcher(FileSystemEventHandler):
    """Calls on_change when one chart file is written, created or atomically replaced."""

    def __init__(self, path: str, on_change: Callable[[], None], debounce_sec: float = 0.3,
                 clock: Callable[[], float] = time.monotonic):
        super().__init__()
        self.path = os.path.abspath(path)
        self.on_change = on_change
        self.debounce_sec = debounce_sec
        self.clock = clock
        self._last_sig: Optional[float] = None

    def _maybe_signal(self, candidate_path: str):
        if os.path.abspath(candidate_path) != self.path:
            return
        now = self.clock()
        if self._last_sig is None or now - self._last_sig > self.debounce_sec:
            self._last_sig = now
            self.on_change()

    def on_modified(self, event):
        self._maybe_signal(event.src_path)

    def on_created(self, event):
        self._maybe_signal(event.src_path)

    def on_moved(self, event):
        # editors that save atomically rename a temp file onto the chart
        dest = getattr(event, "dest_path", None)
        self._maybe_signal(dest or event.src_path)

def watch_chart(path: str, on_change: Callable[[], None], debounce_sec: float = 0.3,
                poll_interval: float = 0.5, stop: Optional[Callable[[], bool]] = None):
    """
    Blocks until KeyboardInterrupt (or until stop() returns True), calling
    on_change after each save of `path`.
    """
    target = os.path.abspath(path)
    handler = ChartFileWatcher(target, on_change, debounce_sec)
    observer = Observer()
    observer.schedule(handler, os.path.dirname(target), recursive=False)
    observer.start()
    log.info("watching %s", target)
    try:
        while not (stop and stop()):
            time.sleep(poll_interval)
    except KeyboardInterrupt:
        pass
    finally:
        observer.stop()
        observer.join(1)
