"""Live watch: feed files appearing under the input directory to the dispatcher."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
import logging
import sys
import threading

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from photo_intake.services.dispatcher import Dispatcher


class IngestEventHandler(FileSystemEventHandler):
    """Submit every new file to a worker pool.

    With `wait_for_close` (inotify on Linux reports close-after-write), a
    created file is only submitted once its writer closes it, so a photo
    still being copied in is never picked up half-written. Elsewhere the
    created event is the trigger and `wait_for_readable` is the only guard.
    Files moved into the tree are complete and go straight to the pool.
    """

    def __init__(self, dispatcher: Dispatcher, pool: ThreadPoolExecutor,
                 wait_for_close: bool = False):
        super().__init__()
        self.dispatcher = dispatcher
        self.pool = pool
        self.wait_for_close = wait_for_close
        self._pending = set()
        self._lock = threading.Lock()

    def _submit(self, path) -> None:
        logging.debug("File event: %s", path)
        self.pool.submit(self.dispatcher.dispatch, Path(path))

    def on_created(self, event):
        if event.is_directory:
            return
        if self.wait_for_close:
            with self._lock:
                self._pending.add(event.src_path)
        else:
            self._submit(event.src_path)

    def on_closed(self, event):
        if event.is_directory:
            return
        with self._lock:
            if event.src_path not in self._pending:
                return
            self._pending.discard(event.src_path)
        self._submit(event.src_path)

    def on_moved(self, event):
        if event.is_directory:
            return
        with self._lock:
            # renamed before the first close; the close will arrive on the new name
            if event.src_path in self._pending:
                self._pending.discard(event.src_path)
                self._pending.add(event.dest_path)
                return
        self._submit(event.dest_path)


class InputWatcher:
    """Own the watchdog observer and the worker pool for one input directory."""

    def __init__(self, dispatcher: Dispatcher, source: Path, workers: int):
        self.source = Path(source)
        self.pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="watch")
        self.handler = IngestEventHandler(dispatcher, self.pool,
                                          wait_for_close=sys.platform.startswith("linux"))
        self.observer = Observer()

    def start(self) -> None:
        self.observer.schedule(self.handler, str(self.source), recursive=True)
        self.observer.start()
        logging.info("Watching %s", self.source)

    def stop(self, wait: bool = True) -> None:
        self.observer.stop()
        self.observer.join()
        self.pool.shutdown(wait=wait)
        logging.info("Stopped watching %s", self.source)

    def __enter__(self) -> "InputWatcher":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()
