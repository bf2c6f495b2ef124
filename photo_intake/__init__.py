"""Photo Intake package - ingest dropped photos and archives into date and location trees."""

from .config import SorterConfig, load_config
from .extractor import GeoCoordinate, decode_capture_date, decode_coordinates, extract_metadata
from .geocoder import LocationName, ReverseGeocoder
from .grouper import sanitize
from .copier import place_file
from .archives import ArchiveExpander

__all__ = [
    "SorterConfig",
    "load_config",
    "GeoCoordinate",
    "decode_capture_date",
    "decode_coordinates",
    "extract_metadata",
    "LocationName",
    "ReverseGeocoder",
    "sanitize",
    "place_file",
    "ArchiveExpander",
]
