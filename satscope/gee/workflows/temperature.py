"""
Temperature Workflow
Monthly near-surface air temperature from ERA5 daily aggregates.

ERA5 stores temperatures in Kelvin; series values and maps are reported in
°C. Non-temperature ERA5 bands pass through unconverted.
"""

from typing import Any, Dict, List, Optional

from ...plan import AnalysisPlan, BBox, DataProduct, DatasetId
from ...result import Attribution
from ..buckets import BucketUnit
from ..engine import CompositeSpec
from .base import Workflow

KELVIN_OFFSET = -273.15
DEFAULT_BAND = "mean_2m_air_temperature"
KELVIN_BANDS = frozenset({
    "mean_2m_air_temperature",
    "minimum_2m_air_temperature",
    "maximum_2m_air_temperature",
    "dewpoint_2m_temperature",
})


class TemperatureWorkflow(Workflow):
    data_product = DataProduct.TEMPERATURE
    title = "Temperature"
    phenomenon = "temperature"
    bucket_unit = BucketUnit.MONTH
    default_scale = 10000
    datasets = frozenset({DatasetId.ERA5_DAILY})

    def band(self, plan: AnalysisPlan) -> str:
        return plan.params.band or DEFAULT_BAND

    def is_kelvin(self, plan: AnalysisPlan) -> bool:
        return self.band(plan) in KELVIN_BANDS

    def collection(self, plan: AnalysisPlan, bbox: BBox, start: str, end: str, composite: str) -> CompositeSpec:
        # ERA5 images are global; no bounds filter
        return CompositeSpec(
            dataset_id=DatasetId.ERA5_DAILY.value,
            band=self.band(plan),
            start=start,
            end=end,
            composite=composite,
        )

    def composite_image(self, plan: AnalysisPlan, bbox: BBox) -> CompositeSpec:
        start, end = self.full_range(plan)
        return CompositeSpec(
            dataset_id=DatasetId.ERA5_DAILY.value,
            band=self.band(plan),
            start=start,
            end=end,
            composite="mean",
            offset=KELVIN_OFFSET if self.is_kelvin(plan) else 0.0,
        )

    def normalize(self, value: float, plan: AnalysisPlan) -> float:
        if self.is_kelvin(plan):
            return value + KELVIN_OFFSET
        return value

    def change_value(self, delta: float, before: Optional[float] = None) -> float:
        # A Kelvin difference is a Celsius difference
        return delta

    def unit(self, plan: AnalysisPlan) -> Optional[str]:
        return "°C" if self.is_kelvin(plan) else None

    def vis_params(self, plan: AnalysisPlan) -> Dict[str, Any]:
        return {
            "min": -20,
            "max": 40,
            "palette": ["blue", "cyan", "yellow", "orange", "red"],
        }

    def change_vis_params(self, plan: AnalysisPlan) -> Dict[str, Any]:
        return {
            "min": -10,
            "max": 10,
            "palette": ["blue", "white", "red"],
        }

    def attributions(self, plan: AnalysisPlan) -> List[Attribution]:
        return [Attribution(
            dataset="ERA5 Daily Aggregates",
            source="ECMWF / Copernicus Climate Change Service",
            license="Copernicus License",
            citation="Hersbach et al. (2020)",
        )]
