"""
Surface Water Workflow
Yearly water-coverage series from the JRC Global Surface Water yearly history.

waterClass values: 0 no data, 1 not water, 2 seasonal water, 3 permanent
water. Each year is reduced to a binary water mask, so the AOI mean is the
fraction of water pixels.

Yearly images are stamped January 1st of their year, so every window this
workflow reads is widened to whole calendar years.
"""

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from ...errors import UnsupportedWorkflowError
from ...plan import AnalysisPlan, BBox, DataProduct, DatasetId
from ...result import Attribution
from ..buckets import BucketUnit, TimeBucket
from ..engine import CompositeSpec
from .base import Workflow

WATER_BAND = "waterClass"
OCCURRENCE_BAND = "occurrence"


def water_mask(image):
    """Seasonal or permanent water -> 1, everything else -> 0."""
    return image.eq(2).Or(image.eq(3)).rename(WATER_BAND)


class WaterWorkflow(Workflow):
    data_product = DataProduct.WATER
    title = "Water"
    phenomenon = "surface water"
    bucket_unit = BucketUnit.YEAR
    default_scale = 30
    # Median of binary masks collapses to 0/1; the mean keeps partial coverage
    change_composite = "mean"
    datasets = frozenset({DatasetId.JRC_GSW_YEARLY, DatasetId.JRC_GSW})

    def band(self, plan: AnalysisPlan) -> str:
        return WATER_BAND

    def collection(self, plan: AnalysisPlan, bbox: BBox, start: str, end: str, composite: str) -> CompositeSpec:
        return CompositeSpec(
            dataset_id=DatasetId.JRC_GSW_YEARLY.value,
            band=WATER_BAND,
            start=start,
            end=end,
            bounds=bbox,
            prepare=water_mask,
            composite=composite,
        )

    def bucket_image(self, plan: AnalysisPlan, bbox: BBox, bucket: TimeBucket) -> CompositeSpec:
        year = bucket.start.year
        return self.collection(plan, bbox, f"{year}-01-01", f"{year + 1}-01-01", "mean")

    def change_windows(self, plan: AnalysisPlan) -> Tuple[Tuple[date, date], Tuple[date, date]]:
        """
        Split at a year boundary: the earlier half of the years before, the rest after.

        Raises:
            UnsupportedWorkflowError: If the range lies within one calendar year
        """
        first = plan.time_range.start_date.year
        last = plan.time_range.end_date.year
        if first == last:
            raise UnsupportedWorkflowError(
                "Surface water change needs a time range spanning at least two calendar years."
            )
        middle = (first + last) // 2
        return (
            (date(first, 1, 1), date(middle + 1, 1, 1)),
            (date(middle + 1, 1, 1), date(last + 1, 1, 1)),
        )

    def composite_image(self, plan: AnalysisPlan, bbox: BBox) -> CompositeSpec:
        # Long-term occurrence map rather than a composite of yearly masks
        return CompositeSpec(
            dataset_id=DatasetId.JRC_GSW.value,
            band=OCCURRENCE_BAND,
            single_image=True,
        )

    def normalize(self, value: float, plan: AnalysisPlan) -> float:
        return value * 100

    def change_value(self, delta: float, before: Optional[float] = None) -> float:
        return delta * 100

    def unit(self, plan: AnalysisPlan) -> Optional[str]:
        return "% water coverage"

    def change_unit(self, plan: AnalysisPlan) -> Optional[str]:
        return "percentage points"

    def vis_params(self, plan: AnalysisPlan) -> Dict[str, Any]:
        return {
            "min": 0,
            "max": 100,
            "palette": ["white", "lightblue", "blue", "darkblue"],
        }

    def change_vis_params(self, plan: AnalysisPlan) -> Dict[str, Any]:
        return {
            "min": -1,
            "max": 1,
            "palette": ["red", "white", "blue"],
        }

    def attributions(self, plan: AnalysisPlan) -> List[Attribution]:
        return [Attribution(
            dataset="JRC Global Surface Water",
            source="European Commission Joint Research Centre",
            license="CC BY 4.0",
            citation="Pekel et al. (2016) Nature 540, 418-422",
        )]
