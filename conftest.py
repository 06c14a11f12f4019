"""
Shared fixtures: in-process stand-ins for Earth Engine, the geocoder and
the clock, plus a plan factory.
"""

import threading
from typing import Any, Callable, Dict, List, Optional

import pytest

from satscope.errors import RemoteComputeError
from satscope.gee.engine import ComputeEngine, DifferenceSpec
from satscope.location import GeocodingError


class FakeEngine(ComputeEngine):
    """
    Answers reductions from a callable keyed on the image spec.

    `values(spec)` returns a number, None (empty result), or raises.
    """

    def __init__(self, values: Optional[Callable[[Any], Any]] = None, tile_url: str = "https://tiles.example/{z}/{x}/{y}"):
        self.values = values or (lambda spec: 1.0)
        self.tile_url = tile_url
        self.reduce_calls: List[Dict[str, Any]] = []
        self.tile_calls: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def reduce_region(self, image, bbox, reducer, scale):
        with self._lock:
            self.reduce_calls.append({"image": image, "bbox": bbox, "reducer": reducer, "scale": scale})
        value = self.values(image)
        if value is None:
            return {}
        return {image.band: value}

    def map_tile_url(self, image, vis_params, bbox=None):
        self.tile_calls.append({"image": image, "vis_params": vis_params, "bbox": bbox})
        return self.tile_url


class FakeGeocoder:
    def __init__(self, results: Optional[Dict[str, Any]] = None):
        self.results = results or {}
        self.calls: List[str] = []

    def geocode(self, name):
        self.calls.append(name)
        if name not in self.results:
            raise GeocodingError(f"No results found for '{name}'")
        return self.results[name]


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def bucket_start(spec) -> str:
    """Start date of the window a spec covers ('after' side for differences)."""
    if isinstance(spec, DifferenceSpec):
        return spec.after.start
    return spec.start


def failing(message: str = "Computation timed out."):
    raise RemoteComputeError(message)


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def fake_geocoder():
    return FakeGeocoder()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_plan():
    """Build a raw plan dict with overrides."""

    def _make(**overrides) -> Dict[str, Any]:
        plan = {
            "analysisType": "timeseries",
            "dataProduct": "temperature",
            "datasetIds": ["ECMWF/ERA5/DAILY"],
            "timeRange": {"start": "2024-01-01", "end": "2024-06-30"},
            "location": [10.0, 20.0, 11.0, 21.0],
            "outputs": ["timeseries", "statistics"],
        }
        plan.update(overrides)
        return plan

    return _make
