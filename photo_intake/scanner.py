"""Scanner: classify incoming files and walk a directory for the startup backlog."""
from pathlib import Path
from typing import Callable, Iterator, Optional
import logging
import time

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png"}
ARCHIVE_EXTENSIONS = {".zip", ".tar"}

IMAGE = "image"
ARCHIVE = "archive"


def is_hidden(path) -> bool:
    return Path(path).name.startswith(".")


def classify(path) -> Optional[str]:
    """Return IMAGE, ARCHIVE, or None for hidden and unsupported files."""
    p = Path(path)
    if is_hidden(p):
        return None
    ext = p.suffix.lower()
    if ext in IMAGE_EXTENSIONS:
        return IMAGE
    if ext in ARCHIVE_EXTENSIONS:
        return ARCHIVE
    return None


def wait_for_readable(path, attempts: int = 10, interval: float = 1.0,
                      sleep: Callable[[float], None] = time.sleep) -> bool:
    """Try to open `path` for reading up to `attempts` times.

    Returns False once the attempts are exhausted; callers carry on anyway,
    this only gives a writer a chance to finish a half-copied file.
    """
    for attempt in range(1, attempts + 1):
        try:
            with open(path, "rb"):
                return True
        except OSError as exc:
            logging.debug("File not readable yet (%d/%d): %s: %s", attempt, attempts, path, exc)
            sleep(interval)
    return False


def scan_files(source, recursive: bool = True) -> Iterator[Path]:
    """Yield every regular file under `source`."""
    p = Path(source)
    if not p.exists():
        raise FileNotFoundError(f"Source path not found: {source}")

    iterator = p.rglob("*") if recursive else p.iterdir()
    for fp in iterator:
        if fp.is_file():
            yield fp
