"""Runtime configuration shared by every pipeline component."""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
import json
import logging
from typing import Any, Dict


@dataclass(frozen=True)
class SorterConfig:
    input_dir: Path = Path("input")
    output_dir: Path = Path("output")
    user_agent: str = "PhotoIntake/1.0"
    geocode_domain: str = "nominatim.openstreetmap.org"
    geocode_scheme: str = "https"
    # Nominatim usage policy: at most one request per second
    geocode_delay: float = 1.1
    geocode_timeout: float = 10.0
    workers: int = 4
    readable_attempts: int = 10
    readable_interval: float = 1.0
    max_archive_depth: int = 4
    max_archive_bytes: int = 2 * 1024 ** 3

    @property
    def by_date_root(self) -> Path:
        return Path(self.output_dir) / "ByDate"

    @property
    def by_location_root(self) -> Path:
        return Path(self.output_dir) / "ByLocation"


_PATH_FIELDS = {"input_dir", "output_dir"}


def _coerce(name: str, value: Any, default: Any) -> Any:
    if name in _PATH_FIELDS:
        if not isinstance(value, (str, Path)):
            raise TypeError(name)
        return Path(str(value).strip()).expanduser()
    # bool is an int subclass; never accept it for numeric settings
    if isinstance(value, bool):
        raise TypeError(name)
    if isinstance(default, float) and isinstance(value, (int, float)):
        return float(value)
    if isinstance(default, int) and isinstance(value, int):
        return value
    if isinstance(default, str) and isinstance(value, str):
        return value.strip()
    raise TypeError(name)


def _read_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ValueError(f"Config root must be an object: {path}")
    return raw


def load_config(path: str | Path | None = None, **overrides: Any) -> SorterConfig:
    """Build a `SorterConfig` from an optional JSON file plus keyword overrides.

    Unknown keys and values of the wrong type are skipped with a warning.
    Overrides set to None are ignored so CLI defaults don't mask the file.
    """
    defaults = SorterConfig()
    known = {f.name: getattr(defaults, f.name) for f in fields(SorterConfig)}

    values: Dict[str, Any] = {}
    if path is not None:
        raw = _read_file(Path(path).expanduser())
        values.update(raw)
    values.update({k: v for k, v in overrides.items() if v is not None})

    accepted: Dict[str, Any] = {}
    for key, value in values.items():
        if key not in known:
            logging.warning("Ignoring unknown config key: %s", key)
            continue
        try:
            accepted[key] = _coerce(key, value, known[key])
        except TypeError:
            logging.warning("Ignoring config key %s with invalid value %r", key, value)

    if accepted.get("workers", 1) < 1:
        logging.warning("workers must be at least 1; using 1")
        accepted["workers"] = 1
    return replace(defaults, **accepted)
