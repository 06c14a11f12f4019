"""
Vegetation Workflow
Monthly spectral-index series from Sentinel-2 (default) or Landsat 8/9.

Clouds are dropped twice: whole scenes above the cloud threshold are filtered
out, then remaining cloud pixels are masked from the QA band.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from ...errors import UnsupportedWorkflowError
from ...plan import AnalysisPlan, BBox, DataProduct, DatasetId, IndexKind
from ...result import Attribution
from ..buckets import BucketUnit
from ..engine import CompositeSpec
from .base import Workflow

logger = logging.getLogger(__name__)

SENTINEL2_COLLECTION = DatasetId.SENTINEL2_SR_HARMONIZED.value

# (red-ish, nir-ish) pairs for normalizedDifference, per sensor family
SENTINEL2_INDEX_BANDS = {
    IndexKind.NDVI: ("B8", "B4"),
    IndexKind.NDWI: ("B3", "B8"),
    IndexKind.NDBI: ("B11", "B8"),
}
LANDSAT_INDEX_BANDS = {
    IndexKind.NDVI: ("SR_B5", "SR_B4"),
    IndexKind.NDWI: ("SR_B3", "SR_B5"),
    IndexKind.NDBI: ("SR_B6", "SR_B5"),
}

# Collection 2 Level-2 surface reflectance scaling
LANDSAT_SCALE = 0.0000275
LANDSAT_OFFSET = -0.2

# QA60 bits 10 (opaque clouds) and 11 (cirrus)
S2_CLOUD_BIT = 1 << 10
S2_CIRRUS_BIT = 1 << 11
# QA_PIXEL bits 3 (cloud) and 4 (cloud shadow)
LANDSAT_CLOUD_BIT = 1 << 3
LANDSAT_SHADOW_BIT = 1 << 4

LANDSAT_DATASETS = (DatasetId.LANDSAT8_L2, DatasetId.LANDSAT9_L2)
SENTINEL2_DATASETS = (DatasetId.SENTINEL2_SR, DatasetId.SENTINEL2_SR_HARMONIZED)


def sentinel2_prepare(index: Optional[IndexKind]) -> Callable[[Any], Any]:
    """Per-image cloud mask plus (optionally) a named index band."""

    def prepare(image):
        qa = image.select("QA60")
        mask = qa.bitwiseAnd(S2_CLOUD_BIT).eq(0).And(qa.bitwiseAnd(S2_CIRRUS_BIT).eq(0))
        image = image.updateMask(mask)
        if index is None:
            return image
        nir_pair = SENTINEL2_INDEX_BANDS[index]
        return image.addBands(image.normalizedDifference(list(nir_pair)).rename(index.value.upper()))

    return prepare


def landsat_prepare(index: Optional[IndexKind]) -> Callable[[Any], Any]:
    """Per-image cloud/shadow mask, reflectance scaling and index band."""

    def prepare(image):
        qa = image.select("QA_PIXEL")
        mask = qa.bitwiseAnd(LANDSAT_CLOUD_BIT).eq(0).And(qa.bitwiseAnd(LANDSAT_SHADOW_BIT).eq(0))
        optical = image.select("SR_B.").multiply(LANDSAT_SCALE).add(LANDSAT_OFFSET)
        image = image.addBands(optical, None, True).updateMask(mask)
        if index is None:
            return image
        pair = LANDSAT_INDEX_BANDS[index]
        return image.addBands(image.normalizedDifference(list(pair)).rename(index.value.upper()))

    return prepare


class VegetationWorkflow(Workflow):
    data_product = DataProduct.VEGETATION
    title = "Vegetation"
    phenomenon = "vegetation"
    bucket_unit = BucketUnit.MONTH
    default_scale = 100

    def source(self, plan: AnalysisPlan) -> DatasetId:
        """First optical dataset requested; Sentinel-2 when none is."""
        for dataset in plan.dataset_ids:
            if dataset in SENTINEL2_DATASETS or dataset in LANDSAT_DATASETS:
                return dataset
        logger.info("No optical dataset requested, using Sentinel-2")
        return DatasetId.SENTINEL2_SR_HARMONIZED

    def index(self, plan: AnalysisPlan) -> Optional[IndexKind]:
        index = plan.params.index
        if index is None:
            return IndexKind.NDVI
        if index == IndexKind.NONE:
            if not plan.params.band:
                raise UnsupportedWorkflowError(
                    'Index "none" requires parameters.band for the vegetation workflow.'
                )
            return None
        if index not in SENTINEL2_INDEX_BANDS:
            raise UnsupportedWorkflowError(
                f'Index "{index.value}" is not available from optical imagery.',
                supported=[k.value for k in SENTINEL2_INDEX_BANDS],
            )
        return index

    def band(self, plan: AnalysisPlan) -> str:
        index = self.index(plan)
        return plan.params.band if index is None else index.value.upper()

    def collection(self, plan: AnalysisPlan, bbox: BBox, start: str, end: str, composite: str) -> CompositeSpec:
        source = self.source(plan)
        index = self.index(plan)
        if source in LANDSAT_DATASETS:
            return CompositeSpec(
                dataset_id=source.value,
                band=self.band(plan),
                start=start,
                end=end,
                bounds=bbox,
                cloud_property="CLOUD_COVER",
                max_cloud=self.max_cloud(plan),
                prepare=landsat_prepare(index),
                composite=composite,
            )
        return CompositeSpec(
            dataset_id=SENTINEL2_COLLECTION,
            band=self.band(plan),
            start=start,
            end=end,
            bounds=bbox,
            cloud_property="CLOUDY_PIXEL_PERCENTAGE",
            max_cloud=self.max_cloud(plan),
            prepare=sentinel2_prepare(index),
            composite=composite,
        )

    def change_value(self, delta: float, before: Optional[float] = None) -> float:
        # Index difference expressed in percentage points
        return delta * 100

    def unit(self, plan: AnalysisPlan) -> Optional[str]:
        return self.band(plan)

    def change_unit(self, plan: AnalysisPlan) -> Optional[str]:
        return f"{self.band(plan)} x 100"

    def vis_params(self, plan: AnalysisPlan) -> Dict[str, Any]:
        return {
            "min": 0,
            "max": 1,
            "palette": ["brown", "yellow", "green", "darkgreen"],
        }

    def change_vis_params(self, plan: AnalysisPlan) -> Dict[str, Any]:
        return {
            "min": -0.5,
            "max": 0.5,
            "palette": ["red", "white", "green"],
        }

    def attributions(self, plan: AnalysisPlan) -> List[Attribution]:
        if self.source(plan) in LANDSAT_DATASETS:
            return [Attribution(
                dataset="Landsat 8/9 Collection 2 Level-2",
                source="U.S. Geological Survey (USGS)",
                license="Public Domain",
                citation="Landsat-8/9 image courtesy of the U.S. Geological Survey",
            )]
        return [Attribution(
            dataset="Sentinel-2 MSI Level-2A (Harmonized)",
            source="European Space Agency (ESA) / Copernicus",
            license="CC BY-SA 3.0 IGO",
            citation="Contains modified Copernicus Sentinel data",
        )]
