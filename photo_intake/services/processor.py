"""Photo processor: metadata -> geocoding -> two copies (by date, by location)."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import logging

from photo_intake.config import SorterConfig
from photo_intake.copier import place_file
from photo_intake.extractor import extract_metadata
from photo_intake.geocoder import LocationName, ReverseGeocoder
from photo_intake.grouper import date_folder, location_folder


@dataclass
class PlacementResult:
    source: Path
    by_date: Path
    by_location: Path
    location: Optional[LocationName] = None


class PhotoProcessor:
    def __init__(self, config: SorterConfig, geocoder: ReverseGeocoder):
        self.config = config
        self.geocoder = geocoder

    def process(self, photo_path) -> PlacementResult:
        """Copy one photo into ByDate/YYYY/MM/DD and ByLocation/Country/City.

        The source file is left untouched. Placement errors (OSError) propagate.
        """
        photo_path = Path(photo_path)
        meta = extract_metadata(photo_path)
        taken = meta["datetime"]
        gps = meta["gps"]

        location = None
        if gps is not None:
            location = self.geocoder.resolve(gps.latitude, gps.longitude)

        date_dir = date_folder(self.config.by_date_root, taken)
        location_dir = location_folder(self.config.by_location_root, location)

        by_date = place_file(photo_path, date_dir)
        by_location = place_file(photo_path, location_dir)

        logging.info("Processed %s -> %s | %s", photo_path.name,
                     date_dir.relative_to(self.config.by_date_root),
                     location_dir.relative_to(self.config.by_location_root))
        return PlacementResult(photo_path, by_date, by_location, location)
