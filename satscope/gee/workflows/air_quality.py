"""
Air Quality Workflow
Monthly pollutant column densities from Sentinel-5P TROPOMI (offline L3).

Column densities arrive in mol/m² and are reported in µmol/m²; methane is a
dry-air mixing ratio already in ppb. Change is reported relative to the
baseline period, in percent.
"""

from typing import Any, Dict, List, Optional

from ...errors import UnsupportedDatasetError
from ...plan import AnalysisPlan, BBox, DataProduct, DatasetId
from ...result import Attribution
from ..buckets import BucketUnit
from ..engine import CompositeSpec
from .base import Workflow

POLLUTANT_BANDS = {
    DatasetId.S5P_NO2: ("NO2", "tropospheric_NO2_column_number_density"),
    DatasetId.S5P_CO: ("CO", "CO_column_number_density"),
    DatasetId.S5P_O3: ("O3", "O3_column_number_density"),
    DatasetId.S5P_SO2: ("SO2", "SO2_column_number_density"),
    DatasetId.S5P_CH4: ("CH4", "CH4_column_volume_mixing_ratio_dry_air"),
    DatasetId.S5P_HCHO: ("HCHO", "tropospheric_HCHO_column_number_density"),
}

# (min, max) of the composite map, raw units
POLLUTANT_VIS_RANGES = {
    "NO2": (0, 0.0002),
    "CO": (0, 0.05),
    "O3": (0.12, 0.15),
    "SO2": (0, 0.0005),
    "CH4": (1750, 1900),
    "HCHO": (0, 0.0003),
}

MOL_TO_MICROMOL = 1e6


class AirQualityWorkflow(Workflow):
    data_product = DataProduct.AIR_QUALITY
    title = "Air Quality"
    phenomenon = "air quality"
    bucket_unit = BucketUnit.MONTH
    default_scale = 1000
    relative_change = True

    def source(self, plan: AnalysisPlan) -> DatasetId:
        """First Sentinel-5P dataset in the plan."""
        for dataset in plan.dataset_ids:
            if dataset in POLLUTANT_BANDS:
                return dataset
        raise UnsupportedDatasetError(
            "Air quality analysis requires a Sentinel-5P dataset.",
            supported=[d.value for d in POLLUTANT_BANDS],
        )

    def pollutant(self, plan: AnalysisPlan) -> str:
        return POLLUTANT_BANDS[self.source(plan)][0]

    def band(self, plan: AnalysisPlan) -> str:
        return POLLUTANT_BANDS[self.source(plan)][1]

    def collection(self, plan: AnalysisPlan, bbox: BBox, start: str, end: str, composite: str) -> CompositeSpec:
        return CompositeSpec(
            dataset_id=self.source(plan).value,
            band=self.band(plan),
            start=start,
            end=end,
            bounds=bbox,
            composite=composite,
        )

    def normalize(self, value: float, plan: AnalysisPlan) -> float:
        if self.pollutant(plan) == "CH4":
            return value
        return value * MOL_TO_MICROMOL

    def change_value(self, delta: float, before: Optional[float] = None) -> float:
        if not before:
            raise ValueError("Relative change needs a non-zero baseline")
        return delta / before * 100

    def unit(self, plan: AnalysisPlan) -> Optional[str]:
        return "ppb" if self.pollutant(plan) == "CH4" else "µmol/m²"

    def change_unit(self, plan: AnalysisPlan) -> Optional[str]:
        return "%"

    def vis_params(self, plan: AnalysisPlan) -> Dict[str, Any]:
        low, high = POLLUTANT_VIS_RANGES[self.pollutant(plan)]
        return {
            "min": low,
            "max": high,
            "palette": ["blue", "green", "yellow", "red"],
        }

    def change_vis_params(self, plan: AnalysisPlan) -> Dict[str, Any]:
        return {
            "min": -0.00005,
            "max": 0.00005,
            "palette": ["blue", "white", "red"],
        }

    def attributions(self, plan: AnalysisPlan) -> List[Attribution]:
        return [Attribution(
            dataset=f"Sentinel-5P TROPOMI {self.pollutant(plan)}",
            source="European Space Agency (ESA) / Copernicus",
            license="CC BY 4.0",
            citation="Contains modified Copernicus Sentinel-5P TROPOMI data",
        )]
