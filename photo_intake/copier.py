"""Copier: copy files into destination folders with conflict resolution."""
from pathlib import Path
import logging
import os
import shutil


def _claim(dest: Path):
    """Atomically create `dest`; raises FileExistsError if the name is taken."""
    fd = os.open(dest, os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0), 0o666)
    return os.fdopen(fd, "wb")


def place_file(src: Path, dest_dir: Path) -> Path:
    """Copy `src` into `dest_dir` under a name nobody else holds. Returns destination Path.

    Behavior:
    - Create `dest_dir` if needed
    - If a file with the same name exists, append suffix `_1`, `_2`, ...
    - The name is claimed with an exclusive create, so concurrent placements
      of identically named files never end up sharing a destination
    - `src` is never modified or removed; OSError propagates to the caller
    """
    src = Path(src)
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)

    base = src.stem
    suf = src.suffix
    dest = dest_dir / src.name
    i = 1
    while True:
        try:
            out = _claim(dest)
            break
        except FileExistsError:
            dest = dest_dir / f"{base}_{i}{suf}"
            i += 1

    try:
        with out, open(src, "rb") as fin:
            shutil.copyfileobj(fin, out)
        shutil.copystat(src, dest)
    except BaseException:
        # don't leave a truncated file holding the claimed name
        try:
            dest.unlink()
        except OSError:
            logging.warning("Could not remove partial copy %s", dest)
        raise

    logging.info("Copied %s -> %s", src, dest)
    return dest
