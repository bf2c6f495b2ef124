"""Grouper: produce filesystem-safe destination folders from metadata."""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional
import re

from photo_intake.geocoder import LocationName

# Windows-reserved characters plus ASCII control characters; covers POSIX too
INVALID_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

UNKNOWN_LOCATION = "UnknownLocation"
UNKNOWN_COUNTRY = "UnknownCountry"
UNKNOWN_CITY = "UnknownCity"


def sanitize(name: str) -> str:
    """Replace every character that is invalid in a file name with `_`.

    Idempotent: sanitizing an already sanitized name returns it unchanged.
    """
    s = INVALID_CHARS.sub("_", name)
    if s in (".", ".."):
        s = "_" * len(s)
    return s


def date_folder(root: Path, dt: datetime) -> Path:
    """`root/YYYY/MM/DD` for the capture date."""
    return Path(root) / f"{dt.year:04d}" / f"{dt.month:02d}" / f"{dt.day:02d}"


def location_folder(root: Path, location: Optional[LocationName]) -> Path:
    """`root/Country/City`, or `root/UnknownLocation` when nothing was resolved."""
    if location is None:
        return Path(root) / UNKNOWN_LOCATION
    country = sanitize(location.country or UNKNOWN_COUNTRY)
    city = sanitize(location.city or UNKNOWN_CITY)
    return Path(root) / country / city
