"""Ingestion dispatcher: route each new file to the photo processor or archive expander."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Iterable, Optional
import logging
import time

from photo_intake.archives import ArchiveExpander
from photo_intake.config import SorterConfig
from photo_intake.scanner import ARCHIVE, IMAGE, classify, scan_files, wait_for_readable
from photo_intake.services.processor import PhotoProcessor


class Dispatcher:
    def __init__(self, config: SorterConfig, processor: PhotoProcessor,
                 expander: Optional[ArchiveExpander] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.processor = processor
        self.expander = expander or ArchiveExpander(config, self.dispatch_tree)
        self._sleep = sleep

    def dispatch(self, path, depth: int = 0) -> Optional[str]:
        """Handle one available file. Returns its kind, or None if ignored.

        Blocks until the photo is placed or the archive fully re-ingested.
        Never raises: failures are logged so sibling files keep flowing.
        """
        path = Path(path)
        kind = classify(path)
        if kind is None:
            logging.debug("Ignoring %s", path)
            return None

        wait_for_readable(path, self.config.readable_attempts,
                          self.config.readable_interval, self._sleep)
        try:
            if kind == IMAGE:
                logging.info("Found photo: %s", path.name)
                self.processor.process(path)
            elif kind == ARCHIVE:
                logging.info("Found archive: %s", path.name)
                self.expander.expand(path, depth)
        except Exception:
            logging.exception("Failed to process %s", path)
        return kind

    def dispatch_all(self, paths: Iterable[Path], depth: int = 0) -> int:
        """Dispatch `paths` concurrently and wait until all of them finish.

        Each call gets its own pool so an archive expanding inside a worker
        never waits on a slot held by its own parent.
        """
        paths = list(paths)
        if not paths:
            return 0
        with ThreadPoolExecutor(max_workers=self.config.workers,
                                thread_name_prefix="ingest") as pool:
            futures = [pool.submit(self.dispatch, p, depth) for p in paths]
            wait(futures)
        return len(paths)

    def dispatch_tree(self, root, depth: int = 0) -> int:
        """Dispatch every file below `root` (backlog scan / extracted archive)."""
        return self.dispatch_all(scan_files(root), depth)
