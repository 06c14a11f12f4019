"""
Precipitation Workflow
Monthly mean daily rainfall (mm/day) from CHIRPS.
"""

from typing import Any, Dict, List, Optional

from ...plan import AnalysisPlan, BBox, DataProduct, DatasetId
from ...result import Attribution
from ..buckets import BucketUnit
from ..engine import CompositeSpec
from .base import Workflow

PRECIPITATION_BAND = "precipitation"


class PrecipitationWorkflow(Workflow):
    data_product = DataProduct.PRECIPITATION
    title = "Precipitation"
    phenomenon = "precipitation"
    bucket_unit = BucketUnit.MONTH
    default_scale = 5000
    datasets = frozenset({DatasetId.CHIRPS_DAILY})

    def band(self, plan: AnalysisPlan) -> str:
        return PRECIPITATION_BAND

    def collection(self, plan: AnalysisPlan, bbox: BBox, start: str, end: str, composite: str) -> CompositeSpec:
        return CompositeSpec(
            dataset_id=DatasetId.CHIRPS_DAILY.value,
            band=PRECIPITATION_BAND,
            start=start,
            end=end,
            bounds=bbox,
            composite=composite,
        )

    def unit(self, plan: AnalysisPlan) -> Optional[str]:
        return "mm/day"

    def vis_params(self, plan: AnalysisPlan) -> Dict[str, Any]:
        return {
            "min": 0,
            "max": 20,
            "palette": ["white", "lightblue", "blue", "darkblue", "purple"],
        }

    def change_vis_params(self, plan: AnalysisPlan) -> Dict[str, Any]:
        return {
            "min": -10,
            "max": 10,
            "palette": ["brown", "white", "blue"],
        }

    def attributions(self, plan: AnalysisPlan) -> List[Attribution]:
        return [Attribution(
            dataset="CHIRPS Daily",
            source="Climate Hazards Group, UC Santa Barbara",
            license="CC BY 4.0",
            citation="Funk et al. (2015) Scientific Data 2, 150066",
        )]
