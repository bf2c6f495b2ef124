"""Extractor: read EXIF metadata (capture date, GPS) from image files.

Metadata is handled as piexif-style tag groups, e.g.
``{"Exif": {ExifIFD.DateTimeOriginal: b"2023:06:15 10:00:00"},
"GPS": {GPSIFD.GPSLatitude: ((48, 1), (51, 1), (2376, 100)), ...}}``.
Pillow + piexif is the primary reader; exifread is the fallback for files
Pillow can open but whose EXIF block piexif rejects.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Sequence
import logging
import os

import exifread
import piexif
from PIL import Image

Metadata = Dict[str, Dict[int, Any]]

_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"


@dataclass(frozen=True)
class GeoCoordinate:
    latitude: float
    longitude: float

    @classmethod
    def validated(cls, latitude: float, longitude: float) -> Optional["GeoCoordinate"]:
        """Return a coordinate only if both values are inside the valid ranges."""
        if -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0:
            return cls(latitude, longitude)
        return None


def _rational_to_float(value) -> float:
    # piexif gives (num, den); exifread-derived values are already mapped to that shape
    if isinstance(value, (tuple, list)):
        if len(value) != 2:
            raise ValueError(f"not a rational: {value!r}")
        num, den = value
        if not den:
            raise ValueError("zero denominator")
        return float(num) / float(den)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"not a rational: {value!r}")


def _text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    return str(value).replace("\x00", "").strip()


def dms_to_decimal(dms: Sequence, ref: Optional[str]) -> float:
    """Convert a (degrees, minutes, seconds) rational triple to decimal degrees.

    Raises ValueError for anything that isn't exactly three rationals.
    """
    if dms is None or len(dms) != 3:
        raise ValueError(f"expected 3 DMS components, got {dms!r}")
    deg, minute, sec = (_rational_to_float(part) for part in dms)
    dec = deg + (minute / 60.0) + (sec / 3600.0)
    if ref in ("S", "W"):
        dec = -dec
    return dec


def decode_coordinates(metadata: Optional[Metadata]) -> Optional[GeoCoordinate]:
    """Return the validated GPS position from `metadata`, or None.

    Missing GPS group, missing or unknown hemisphere refs, arrays that are not
    DMS triples and out-of-range results all yield None; nothing is raised.
    """
    try:
        gps = (metadata or {}).get("GPS") or {}
        lat_ref = _text(gps.get(piexif.GPSIFD.GPSLatitudeRef))
        lon_ref = _text(gps.get(piexif.GPSIFD.GPSLongitudeRef))
        lat_ref = lat_ref.upper() if lat_ref else None
        lon_ref = lon_ref.upper() if lon_ref else None
        if lat_ref not in ("N", "S") or lon_ref not in ("E", "W"):
            return None
        lat = dms_to_decimal(gps.get(piexif.GPSIFD.GPSLatitude), lat_ref)
        lon = dms_to_decimal(gps.get(piexif.GPSIFD.GPSLongitude), lon_ref)
    except (AttributeError, TypeError, ValueError) as exc:
        logging.debug("Unusable GPS tags: %s", exc)
        return None
    return GeoCoordinate.validated(lat, lon)


def _parse_datetime(value) -> Optional[datetime]:
    text = _text(value)
    if not text:
        return None
    try:
        return datetime.strptime(text, _DATE_FORMAT)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def decode_capture_date(metadata: Optional[Metadata], fallback: datetime) -> datetime:
    """Return DateTimeOriginal from the Exif group, else `fallback`."""
    try:
        exif = (metadata or {}).get("Exif") or {}
        parsed = _parse_datetime(exif.get(piexif.ExifIFD.DateTimeOriginal))
    except (AttributeError, TypeError) as exc:
        logging.debug("Unusable Exif date tag: %s", exc)
        parsed = None
    return parsed or fallback


def file_creation_time(path) -> datetime:
    st = os.stat(path)
    # st_birthtime exists on macOS/BSD (and Windows on 3.12+); st_ctime is creation time on older Windows
    ts = getattr(st, "st_birthtime", None) or st.st_ctime
    return datetime.fromtimestamp(ts)


def _read_with_piexif(path: Path) -> Metadata:
    with Image.open(path) as img:
        exif_bytes = img.info.get("exif")
        if not exif_bytes:
            return {}
    exif = piexif.load(exif_bytes)
    return {"Exif": exif.get("Exif") or {}, "GPS": exif.get("GPS") or {}}


def _to_rational(val):
    # exifread Ratio values print as '12/1' or '12'
    s = str(val)
    if "/" in s:
        num, den = s.split("/", 1)
        return int(num), int(den)
    return int(s), 1


_EXIFREAD_GPS = {
    "GPS GPSLatitude": piexif.GPSIFD.GPSLatitude,
    "GPS GPSLongitude": piexif.GPSIFD.GPSLongitude,
}
_EXIFREAD_GPS_REFS = {
    "GPS GPSLatitudeRef": piexif.GPSIFD.GPSLatitudeRef,
    "GPS GPSLongitudeRef": piexif.GPSIFD.GPSLongitudeRef,
}


def _read_with_exifread(path: Path) -> Metadata:
    with open(path, "rb") as fh:
        tags = exifread.process_file(fh, details=False)

    meta: Metadata = {"Exif": {}, "GPS": {}}
    if "EXIF DateTimeOriginal" in tags:
        meta["Exif"][piexif.ExifIFD.DateTimeOriginal] = str(tags["EXIF DateTimeOriginal"])
    for name, tag_id in _EXIFREAD_GPS.items():
        if name not in tags:
            continue
        try:
            meta["GPS"][tag_id] = tuple(_to_rational(v) for v in tags[name].values)
        except (TypeError, ValueError) as exc:
            logging.debug("Skipping unparsable %s in %s: %s", name, path, exc)
    for name, tag_id in _EXIFREAD_GPS_REFS.items():
        if name in tags:
            meta["GPS"][tag_id] = str(tags[name])
    return meta


def read_metadata(path) -> Metadata:
    """Return the Exif and GPS tag groups of `path`; empty dict when unreadable."""
    path = Path(path)
    try:
        meta = _read_with_piexif(path)
        if meta.get("Exif") or meta.get("GPS"):
            return meta
    except Exception as exc:
        # piexif raises a mix of ValueError/struct.error/InvalidImageDataError
        logging.debug("Pillow/piexif could not read %s: %s", path, exc)

    try:
        return _read_with_exifread(path)
    except Exception as exc:
        logging.debug("exifread could not read %s: %s", path, exc)
    return {}


def extract_metadata(path) -> Dict[str, Any]:
    """Return ``{"datetime": datetime, "gps": GeoCoordinate | None}`` for `path`.

    The datetime is always present: files without a usable EXIF date fall
    back to their filesystem creation time.
    """
    meta = read_metadata(path)
    return {
        "datetime": decode_capture_date(meta, file_creation_time(path)),
        "gps": decode_coordinates(meta),
    }
