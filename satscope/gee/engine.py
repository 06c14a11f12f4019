"""
Earth Engine Compute Module
Builds Earth Engine images from plain image specifications and evaluates them.

Workflows describe WHAT to compute (dataset, band, date window, filters,
temporal composite) as frozen dataclasses; a ComputeEngine decides HOW. The
Earth Engine implementation compiles a spec to ee objects, then runs one
reduceRegion or getMapId call. Tests substitute an in-process engine.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

import ee

from .. import config
from ..errors import RemoteComputeError
from ..plan import BBox

logger = logging.getLogger(__name__)


# =============================================================================
# IMAGE SPECIFICATIONS
# =============================================================================

@dataclass(frozen=True)
class CompositeSpec:
    """
    A single-band image: one catalog image, or a temporal composite of a
    filtered collection.
    """
    dataset_id: str
    band: str
    start: Optional[str] = None  # inclusive, YYYY-MM-DD
    end: Optional[str] = None    # exclusive, YYYY-MM-DD
    bounds: Optional[BBox] = None
    cloud_property: Optional[str] = None
    max_cloud: Optional[float] = None
    # Per-image ee transform applied before band selection (masking, indices)
    prepare: Optional[Callable[[Any], Any]] = None
    composite: str = "mean"  # temporal reducer
    offset: float = 0.0      # added after compositing (e.g. Kelvin -> Celsius)
    single_image: bool = False


@dataclass(frozen=True)
class DifferenceSpec:
    """after - before, pixel-wise."""
    after: CompositeSpec
    before: CompositeSpec

    @property
    def band(self) -> str:
        return self.after.band


ImageSpec = Union[CompositeSpec, DifferenceSpec]


class ComputeEngine(ABC):
    """Opaque remote geospatial compute service."""

    @abstractmethod
    def reduce_region(self, image: ImageSpec, bbox: BBox, reducer: str, scale: int) -> Dict[str, Any]:
        """
        Reduce an image over the AOI to one value per band.

        Raises:
            RemoteComputeError: If the engine fails
        """

    @abstractmethod
    def map_tile_url(self, image: ImageSpec, vis_params: Dict[str, Any], bbox: Optional[BBox] = None) -> str:
        """
        Visualization tile URL template for an image.

        Raises:
            RemoteComputeError: If the engine fails
        """


# =============================================================================
# EARTH ENGINE
# =============================================================================

_init_lock = threading.Lock()
_initialized = False


def _apply_call_deadline(settings: config.Settings) -> None:
    # Bounds every getInfo/getMapId round trip, including abandoned buckets
    ee.data.setDeadline(int(settings.bucket_timeout_seconds * 1000))


def initialize_earth_engine(settings: Optional[config.Settings] = None) -> bool:
    """
    Initialize Google Earth Engine once per process.

    Uses service-account credentials when configured, otherwise the default
    credentials for the configured project.
    """
    global _initialized
    settings = settings or config.get_settings()

    with _init_lock:
        if _initialized:
            return True

        if settings.gee_service_account_email and settings.gee_private_key:
            try:
                # Keys pasted into .env usually carry escaped newlines
                key_data = settings.gee_private_key.replace("\\n", "\n")
                credentials = ee.ServiceAccountCredentials(settings.gee_service_account_email, key_data=key_data)
                ee.Initialize(credentials, project=settings.gee_project)
                _apply_call_deadline(settings)
                _initialized = True
                logger.info(f"✅ Earth Engine initialized with service account: {settings.gee_service_account_email}")
                return True
            except Exception as e:
                logger.warning(f"⚠️ EE service account initialization failed: {e}")

        try:
            ee.Initialize(project=settings.gee_project)
            _apply_call_deadline(settings)
            _initialized = True
            logger.info(f"✅ Earth Engine initialized with project: {settings.gee_project}")
            return True
        except Exception as e:
            logger.error(f"❌ EE initialization failed: {e}")
            return False


def is_earth_engine_initialized() -> bool:
    return _initialized


class EarthEngineCompute(ComputeEngine):
    """ComputeEngine backed by the earthengine-api client."""

    def __init__(self, ee_module: Any = ee, max_pixels: float = config.MAX_PIXELS):
        self._ee = ee_module
        self.max_pixels = max_pixels

    def geometry(self, bbox: BBox):
        west, south, east, north = bbox
        return self._ee.Geometry.Rectangle([west, south, east, north])

    def _reducer(self, name: str):
        factories = {
            "mean": self._ee.Reducer.mean,
            "median": self._ee.Reducer.median,
            "sum": self._ee.Reducer.sum,
            "min": self._ee.Reducer.min,
            "max": self._ee.Reducer.max,
        }
        if name not in factories:
            raise ValueError(f"Unknown reducer: {name}")
        return factories[name]()

    def build_image(self, spec: ImageSpec):
        """Compile a spec into an ee.Image (no server round trip)."""
        if isinstance(spec, DifferenceSpec):
            return self.build_image(spec.after).subtract(self.build_image(spec.before))

        if spec.single_image:
            image = self._ee.Image(spec.dataset_id).select(spec.band)
        else:
            collection = self._ee.ImageCollection(spec.dataset_id)
            if spec.bounds is not None:
                collection = collection.filterBounds(self.geometry(spec.bounds))
            if spec.start is not None:
                collection = collection.filterDate(spec.start, spec.end)
            if spec.cloud_property and spec.max_cloud is not None:
                collection = collection.filter(self._ee.Filter.lt(spec.cloud_property, spec.max_cloud))
            if spec.prepare is not None:
                collection = collection.map(spec.prepare)
            collection = collection.select(spec.band)
            if spec.composite not in ("mean", "median", "sum", "min", "max"):
                raise ValueError(f"Unknown composite: {spec.composite}")
            image = getattr(collection, spec.composite)()

        if spec.offset:
            image = image.add(spec.offset)
        return image

    def reduce_region(self, image: ImageSpec, bbox: BBox, reducer: str, scale: int) -> Dict[str, Any]:
        try:
            stats = self.build_image(image).reduceRegion(
                reducer=self._reducer(reducer),
                geometry=self.geometry(bbox),
                scale=scale,
                maxPixels=self.max_pixels,
            )
            return stats.getInfo() or {}
        except ValueError:
            raise
        except Exception as e:
            raise RemoteComputeError(f"Earth Engine reduction failed: {e}") from e

    def map_tile_url(self, image: ImageSpec, vis_params: Dict[str, Any], bbox: Optional[BBox] = None) -> str:
        try:
            ee_image = self.build_image(image)
            if bbox is not None:
                ee_image = ee_image.clip(self.geometry(bbox))
            map_id = ee_image.getMapId(vis_params)
            return map_id["tile_fetcher"].url_format
        except Exception as e:
            raise RemoteComputeError(f"Earth Engine map tile request failed: {e}") from e
