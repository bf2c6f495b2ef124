"""Geocoder module: reverse-geocode coordinates to (country, city) via Nominatim.

Nominatim's usage policy allows at most one request per second and requires
an identifying User-Agent. Every `ReverseGeocoder` serialises its requests
through a lock and sleeps `delay` seconds right before each one, so
concurrent photo workers cannot exceed the limit between them.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional
import logging
import threading
import time

from geopy.exc import GeopyError
from geopy.geocoders import Nominatim

from photo_intake.config import SorterConfig

UNKNOWN = "Unknown"


@dataclass(frozen=True)
class LocationName:
    country: str
    city: str


def location_from_address(address: dict) -> LocationName:
    """Pick country and the most specific settlement name from a Nominatim address."""
    country = address.get("country") or UNKNOWN
    city = UNKNOWN
    # Nominatim uses different keys depending on settlement size
    for key in ("city", "town", "village"):
        v = address.get(key)
        if v:
            city = v
            break
    return LocationName(country=country, city=city)


class ReverseGeocoder:
    def __init__(self, config: SorterConfig, geolocator=None,
                 sleep: Callable[[float], None] = time.sleep):
        self.delay = config.geocode_delay
        self._sleep = sleep
        self._lock = threading.Lock()
        if geolocator is None:
            geolocator = Nominatim(
                user_agent=config.user_agent,
                domain=config.geocode_domain,
                scheme=config.geocode_scheme,
                timeout=config.geocode_timeout,
            )
        self.geolocator = geolocator

    def _reverse(self, lat: float, lon: float):
        with self._lock:
            self._sleep(self.delay)
            return self.geolocator.reverse((lat, lon), exactly_one=True, addressdetails=True)

    def resolve(self, lat: float, lon: float) -> Optional[LocationName]:
        """Return the LocationName for (lat, lon), or None when lookup fails."""
        try:
            loc = self._reverse(lat, lon)
        except GeopyError as e:
            logging.warning("Reverse geocoding failed for %.6f,%.6f: %s", lat, lon, e)
            return None
        except Exception:
            logging.exception("Unexpected geocoding error for %.6f,%.6f", lat, lon)
            return None

        if not loc:
            logging.debug("No reverse geocoding result for %.6f,%.6f", lat, lon)
            return None
        raw = getattr(loc, "raw", None)
        address = raw.get("address") if isinstance(raw, dict) else None
        if not isinstance(address, dict):
            logging.debug("Reverse geocoding result without address for %.6f,%.6f", lat, lon)
            return None
        return location_from_address(address)
