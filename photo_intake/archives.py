"""Archive expansion: unpack ZIP/TAR files into a scratch directory and re-ingest.

Every expansion owns a fresh ``photo_intake_<hex>`` directory under the
system temp root. The directory is removed before `expand` returns, whether
extraction and re-ingestion succeeded or not.
"""
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import Callable, Iterator, Optional, Tuple
import logging
import re
import shutil
import tarfile
import tempfile
import uuid
import zipfile

from photo_intake.config import SorterConfig

WORKSPACE_PREFIX = "photo_intake_"
# Windows drive prefix such as "C:" or "c:evil.jpg"
_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")


class ArchiveLimitError(Exception):
    """Raised when an archive would extract more data than allowed."""


@contextmanager
def temp_workspace(parent: Optional[Path] = None) -> Iterator[Path]:
    root = Path(parent) if parent is not None else Path(tempfile.gettempdir())
    workspace = root / f"{WORKSPACE_PREFIX}{uuid.uuid4().hex}"
    workspace.mkdir(parents=True)
    try:
        yield workspace
    finally:
        if workspace.exists():
            try:
                shutil.rmtree(workspace)
            except OSError as exc:
                logging.error("Failed to remove temp workspace %s: %s", workspace, exc)


def _safe_relative(name: str) -> Optional[PurePosixPath]:
    """Return the entry's relative path, or None if it would leave the workspace."""
    rel = PurePosixPath(name.replace("\\", "/"))
    parts = [p for p in rel.parts if p not in ("", ".")]
    if not parts or rel.is_absolute() or ".." in parts or _DRIVE_PREFIX.match(parts[0]):
        return None
    return PurePosixPath(*parts)


def _write_entry(target: Path, source) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    # overwrite on name collision
    with open(target, "wb") as out:
        shutil.copyfileobj(source, out)


def _extract_zip(archive_path: Path, workspace: Path, limit: int) -> int:
    written = 0
    total = 0
    with zipfile.ZipFile(archive_path) as zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            rel = _safe_relative(info.filename)
            if rel is None:
                logging.warning("Skipping unsafe entry %r in %s", info.filename, archive_path.name)
                continue
            total += info.file_size
            if total > limit:
                raise ArchiveLimitError(f"{archive_path.name} exceeds {limit} extracted bytes")
            with zf.open(info) as src:
                _write_entry(workspace / rel, src)
            written += 1
    return written


def _extract_tar(archive_path: Path, workspace: Path, limit: int) -> int:
    written = 0
    total = 0
    with tarfile.open(archive_path) as tf:
        for member in tf:
            if member.isdir():
                continue
            if not member.isfile():
                logging.warning("Skipping non-regular entry %r in %s", member.name, archive_path.name)
                continue
            rel = _safe_relative(member.name)
            if rel is None:
                logging.warning("Skipping unsafe entry %r in %s", member.name, archive_path.name)
                continue
            total += member.size
            if total > limit:
                raise ArchiveLimitError(f"{archive_path.name} exceeds {limit} extracted bytes")
            src = tf.extractfile(member)
            if src is None:
                continue
            with src:
                _write_entry(workspace / rel, src)
            written += 1
    return written


def extract_archive(archive_path: Path, workspace: Path, limit: int) -> int:
    """Write every file entry of `archive_path` under `workspace`; returns the count."""
    archive_path = Path(archive_path)
    if archive_path.suffix.lower() == ".zip":
        return _extract_zip(archive_path, workspace, limit)
    return _extract_tar(archive_path, workspace, limit)


class ArchiveExpander:
    """Expand archives and hand the extracted tree back to the dispatcher.

    `submit(directory, depth)` must block until every file under `directory`
    has been ingested; the workspace is deleted as soon as it returns.
    """

    def __init__(self, config: SorterConfig, submit: Callable[[Path, int], None],
                 temp_root: Optional[Path] = None):
        self.config = config
        self.submit = submit
        self.temp_root = temp_root

    def expand(self, archive_path, depth: int = 0) -> Tuple[int, bool]:
        """Expand `archive_path` and ingest its files.

        Returns (files extracted, fully succeeded). Errors are logged, never raised.
        """
        archive_path = Path(archive_path)
        if depth >= self.config.max_archive_depth:
            logging.warning("Skipping %s: nested deeper than %d archives",
                            archive_path.name, self.config.max_archive_depth)
            return 0, False

        count = 0
        with temp_workspace(self.temp_root) as workspace:
            try:
                count = extract_archive(archive_path, workspace, self.config.max_archive_bytes)
                logging.info("Extracted %d file(s) from %s", count, archive_path.name)
                self.submit(workspace, depth + 1)
            except (zipfile.BadZipFile, tarfile.TarError, ArchiveLimitError, OSError) as exc:
                logging.error("Archive error %s: %s", archive_path.name, exc)
                return count, False
            except Exception:
                logging.exception("Unexpected error expanding %s", archive_path.name)
                return count, False
        return count, True
