"""
SatScope Location Resolver
==========================
Turns a named place or a coordinate box into a validated bounding box.

Named places: one Nominatim lookup, memoized for the process lifetime; on
lookup failure a static table of well-known places is used instead.
Coordinate boxes are validated and returned unchanged (no geocoding).

COORDINATE CONVENTION: (west, south, east, north) in degrees.
"""

import logging
import math
import threading
import time
from typing import Dict, List, Optional, Union

import requests

from . import config
from .errors import LocationNotFound, ValidationError
from .plan import BBox, check_bbox

logger = logging.getLogger(__name__)

# Well-known places used when the geocoder is unavailable or finds nothing
FALLBACK_LOCATIONS: Dict[str, BBox] = {
    # North America
    "Montreal": (-73.9, 45.4, -73.5, 45.7),
    "New York": (-74.3, 40.6, -73.7, 40.9),
    "Toronto": (-79.6, 43.6, -79.1, 43.9),
    "Vancouver": (-123.3, 49.2, -122.9, 49.4),
    "Los Angeles": (-118.7, 33.7, -118.1, 34.3),
    "Chicago": (-88.0, 41.6, -87.5, 42.0),
    # Europe
    "London": (-0.5, 51.3, 0.3, 51.7),
    "Paris": (2.2, 48.8, 2.5, 49.0),
    "Berlin": (13.2, 52.4, 13.6, 52.6),
    "Madrid": (-3.8, 40.3, -3.6, 40.5),
    "Rome": (12.4, 41.8, 12.6, 42.0),
    "Amsterdam": (4.8, 52.3, 5.0, 52.4),
    # Asia
    "Tokyo": (139.5, 35.5, 139.9, 35.8),
    "Osaka": (135.3, 34.5, 135.7, 34.8),
    "Kyoto": (135.6, 34.9, 135.9, 35.1),
    "Yokohama": (139.55, 35.35, 139.7, 35.5),
    "Nagoya": (136.8, 35.1, 137.0, 35.25),
    "Sapporo": (141.25, 43.0, 141.45, 43.15),
    "Fukuoka": (130.3, 33.55, 130.5, 33.65),
    "Beijing": (116.2, 39.8, 116.6, 40.1),
    "Shanghai": (121.3, 31.1, 121.7, 31.4),
    "Seoul": (126.8, 37.4, 127.2, 37.7),
    "Mumbai": (72.7, 18.9, 72.9, 19.3),
    "Singapore": (103.6, 1.2, 104.0, 1.5),
    # South America
    "São Paulo": (-46.8, -23.7, -46.4, -23.4),
    "Rio de Janeiro": (-43.4, -23.0, -43.1, -22.8),
    "Buenos Aires": (-58.5, -34.7, -58.3, -34.5),
    # Australia
    "Sydney": (150.9, -34.0, 151.3, -33.7),
    "Melbourne": (144.8, -38.0, 145.1, -37.7),
}

Location = Union[str, BBox, List[float]]


class GeocodingError(Exception):
    """A geocoder could not turn a name into a bounding box."""


class NominatimGeocoder:
    """
    Forward geocoder backed by OpenStreetMap's Nominatim service.

    Uses ToS-compliant spacing between requests and a descriptive User-Agent.
    """

    def __init__(
        self,
        url: str = config.NOMINATIM_URL,
        user_agent: str = config.GEOCODER_USER_AGENT,
        timeout: float = config.GEOCODER_TIMEOUT_SECONDS,
        min_interval: float = config.NOMINATIM_RATE_LIMIT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.user_agent = user_agent
        self.timeout = timeout
        self.min_interval = min_interval
        self.session = session or requests.Session()
        self._last_request_time = 0.0
        self._rate_lock = threading.Lock()

    def _wait_for_slot(self) -> None:
        with self._rate_lock:
            elapsed = time.time() - self._last_request_time
            if elapsed < self.min_interval:
                time.sleep(self.min_interval - elapsed)
            self._last_request_time = time.time()

    def geocode(self, name: str) -> BBox:
        """
        Look up a place name.

        Raises:
            GeocodingError: On HTTP failure, timeout, empty or malformed response
        """
        self._wait_for_slot()
        params = {"q": name, "format": "json", "limit": 1}
        headers = {"User-Agent": self.user_agent}

        try:
            response = self.session.get(self.url, params=params, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout as e:
            raise GeocodingError(f"Nominatim timeout for '{name}'") from e
        except requests.exceptions.RequestException as e:
            raise GeocodingError(f"Nominatim request failed for '{name}': {e}") from e
        except ValueError as e:
            raise GeocodingError(f"Nominatim returned non-JSON for '{name}'") from e

        if not data:
            raise GeocodingError(f"No results found for '{name}'")

        # Nominatim returns [minlat, maxlat, minlon, maxlon]
        try:
            south, north, west, east = (float(v) for v in data[0]["boundingbox"])
            return check_bbox((west, south, east, north))
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise GeocodingError(f"Malformed Nominatim bounding box for '{name}': {e}") from e


class LocationResolver:
    """Resolves plan locations to bounding boxes."""

    def __init__(
        self,
        geocoder: Optional[NominatimGeocoder] = None,
        fallback: Optional[Dict[str, BBox]] = None,
    ):
        self.geocoder = geocoder if geocoder is not None else NominatimGeocoder()
        self.fallback = dict(FALLBACK_LOCATIONS if fallback is None else fallback)
        self._memo: Dict[str, BBox] = {}
        self._memo_lock = threading.Lock()

    @property
    def known_locations(self) -> List[str]:
        return list(self.fallback)

    def resolve(self, location: Location) -> BBox:
        """
        Resolve a place name or [west, south, east, north] box.

        Raises:
            ValidationError: Invalid bounding box (raised before any remote call)
            LocationNotFound: Name unknown to both the geocoder and the fallback table
        """
        if not isinstance(location, str):
            try:
                return check_bbox(location)
            except ValueError as e:
                raise ValidationError(str(e), issues=[{"field": "location", "message": str(e)}]) from e

        name = location.strip()
        if not name:
            raise ValidationError("Location name cannot be empty",
                                  issues=[{"field": "location", "message": "Location name cannot be empty"}])

        with self._memo_lock:
            cached = self._memo.get(name)
        if cached is not None:
            logger.info(f"[Geocoding] Cache hit for '{name}'")
            return cached

        try:
            logger.info(f"[Geocoding] Fetching coordinates for '{name}'")
            bbox = self.geocoder.geocode(name)
            logger.info(f"[Geocoding] Successfully geocoded '{name}': {bbox}")
        except GeocodingError as e:
            logger.warning(f"[Geocoding] Lookup failed for '{name}': {e}")
            bbox = self.fallback.get(name)
            if bbox is None:
                raise LocationNotFound(name, self.known_locations) from e
            logger.info(f"[Geocoding] Using fallback location for '{name}'")

        with self._memo_lock:
            self._memo[name] = bbox
        return bbox


# =============================================================================
# PURE HELPERS
# =============================================================================

def expand_bbox(bbox: BBox, percent_expansion: float = 10) -> BBox:
    """
    Pad a box symmetrically by a percentage of its size, clamped to the globe.
    """
    west, south, east, north = bbox
    lon_pad = (east - west) * percent_expansion / 100 / 2
    lat_pad = (north - south) * percent_expansion / 100 / 2
    return (
        max(-180.0, west - lon_pad),
        max(-90.0, south - lat_pad),
        min(180.0, east + lon_pad),
        min(90.0, north + lat_pad),
    )


def bbox_area_km2(bbox: BBox) -> float:
    """Approximate area of a box in square kilometers."""
    west, south, east, north = bbox
    km_per_degree_lat = 111.0
    km_per_degree_lon = 111.0 * math.cos(math.radians((north + south) / 2))
    return (north - south) * km_per_degree_lat * (east - west) * km_per_degree_lon


def location_label(location: Location) -> str:
    """Human-readable name for a location."""
    if isinstance(location, str):
        return location
    return "[" + ", ".join(f"{v:g}" for v in location) + "]"
