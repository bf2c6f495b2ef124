from __future__ import annotations

from pathlib import Path

import piexif
import pytest
from PIL import Image

from photo_intake.config import SorterConfig


def _dms(value: float):
    value = abs(value)
    deg = int(value)
    minutes_full = (value - deg) * 60
    minute = int(minutes_full)
    sec = round((minutes_full - minute) * 60 * 10000)
    return ((deg, 1), (minute, 1), (sec, 10000))


def make_jpeg(path: Path, taken: str | None = None, gps: tuple | None = None) -> Path:
    """Write a small JPEG, optionally with DateTimeOriginal ('YYYY:MM:DD HH:MM:SS') and GPS."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    exif = {"0th": {}, "Exif": {}, "GPS": {}, "1st": {}, "thumbnail": None}
    if taken:
        exif["Exif"][piexif.ExifIFD.DateTimeOriginal] = taken.encode()
    if gps:
        lat, lon = gps
        exif["GPS"][piexif.GPSIFD.GPSLatitudeRef] = b"N" if lat >= 0 else b"S"
        exif["GPS"][piexif.GPSIFD.GPSLatitude] = _dms(lat)
        exif["GPS"][piexif.GPSIFD.GPSLongitudeRef] = b"E" if lon >= 0 else b"W"
        exif["GPS"][piexif.GPSIFD.GPSLongitude] = _dms(lon)
    img = Image.new("RGB", (8, 8), (200, 30, 30))
    if taken or gps:
        img.save(path, "JPEG", exif=piexif.dump(exif))
    else:
        img.save(path, "JPEG")
    return path


class FakeLocation:
    def __init__(self, raw):
        self.raw = raw


class FakeGeolocator:
    """Stands in for geopy's Nominatim; records every reverse() call."""

    def __init__(self, address=None, error=None, raw=None):
        self.address = address
        self.error = error
        self.raw = raw
        self.calls = []

    def reverse(self, query, exactly_one=True, addressdetails=True):
        self.calls.append(query)
        if self.error is not None:
            raise self.error
        if self.raw is not None:
            return FakeLocation(self.raw)
        if self.address is None:
            return None
        return FakeLocation({"address": dict(self.address)})


@pytest.fixture
def config(tmp_path):
    return SorterConfig(
        input_dir=tmp_path / "input",
        output_dir=tmp_path / "output",
        readable_attempts=2,
        readable_interval=0.0,
        workers=4,
    )


@pytest.fixture
def no_sleep():
    calls = []
    return calls.append, calls
