"""
Shared workflow contract.

A Workflow is the dataset-specific strategy the executors instantiate: it
knows which collection and band to read, how to filter and composite it, the
ground sample distance, unit normalization, visualization and attribution.
The bucketing, fault tolerance and change arithmetic live in the executors.
"""

from abc import ABC, abstractmethod
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from ...errors import UnsupportedDatasetError, UnsupportedWorkflowError
from ...plan import AnalysisPlan, AnalysisType, BBox, DataProduct, DatasetId
from ...result import Attribution
from ..buckets import BucketUnit, TimeBucket, split_at_midpoint
from ..engine import CompositeSpec


class ExecutionMode(str, Enum):
    TIME_SERIES = "time_series"
    CHANGE = "change"


TIME_SERIES_TYPES = frozenset({
    AnalysisType.TIMESERIES,
    AnalysisType.SEASONAL_TREND,
    AnalysisType.SINGLE_DATE_MAP,
    AnalysisType.ZONAL_STATISTICS,
})

CHANGE_TYPES = frozenset({
    AnalysisType.CHANGE,
    AnalysisType.ANOMALY,
})


class Workflow(ABC):
    """Base class for dataset-specific workflows."""

    data_product: DataProduct
    title: str = ""                   # log prefix, e.g. "Temperature"
    phenomenon: str = ""              # used in user-facing messages
    bucket_unit: BucketUnit = BucketUnit.MONTH
    default_scale: int = 1000
    change_composite: str = "median"  # noise-resistant by default
    relative_change: bool = False     # change_value needs the baseline value
    datasets: FrozenSet[DatasetId] = frozenset()  # plan must name one; empty accepts any

    def mode_for(self, plan: AnalysisPlan) -> ExecutionMode:
        if plan.analysis_type in TIME_SERIES_TYPES:
            return ExecutionMode.TIME_SERIES
        if plan.analysis_type in CHANGE_TYPES:
            return ExecutionMode.CHANGE
        raise UnsupportedWorkflowError(
            f"Unsupported analysis type for {self.data_product.value}: {plan.analysis_type.value}"
        )

    def check_datasets(self, plan: AnalysisPlan) -> None:
        """
        Raises:
            UnsupportedDatasetError: If the plan names none of this workflow's datasets
        """
        if self.datasets and self.datasets.isdisjoint(plan.dataset_ids):
            supported = sorted(d.value for d in self.datasets)
            raise UnsupportedDatasetError(
                f"{self.title} analysis requires one of: {', '.join(supported)}.",
                supported=supported,
            )

    # ------------------------------------------------------------------
    # What to read
    # ------------------------------------------------------------------

    @abstractmethod
    def band(self, plan: AnalysisPlan) -> str:
        """Band name the reduction result is keyed by."""

    @abstractmethod
    def collection(self, plan: AnalysisPlan, bbox: BBox, start: str, end: str, composite: str) -> CompositeSpec:
        """Filtered, composited view of the dataset over [start, end)."""

    def bucket_image(self, plan: AnalysisPlan, bbox: BBox, bucket: TimeBucket) -> CompositeSpec:
        start, end = bucket.as_strings()
        return self.collection(plan, bbox, start, end, "mean")

    def composite_image(self, plan: AnalysisPlan, bbox: BBox) -> CompositeSpec:
        """Full-range composite used for the map artifact."""
        start, end = self.full_range(plan)
        return self.collection(plan, bbox, start, end, "mean")

    def change_windows(self, plan: AnalysisPlan) -> Tuple[Tuple[date, date], Tuple[date, date]]:
        """Before and after [start, end) windows of a change analysis."""
        return split_at_midpoint(plan.time_range.start_date, plan.time_range.end_date)

    def change_image(self, plan: AnalysisPlan, bbox: BBox, start: date, end: date) -> CompositeSpec:
        return self.collection(plan, bbox, start.isoformat(), end.isoformat(), self.change_composite)

    @staticmethod
    def full_range(plan: AnalysisPlan) -> Tuple[str, str]:
        """Whole plan range as [start, end) strings."""
        end = plan.time_range.end_date + timedelta(days=1)
        return plan.time_range.start, end.isoformat()

    # ------------------------------------------------------------------
    # How to reduce
    # ------------------------------------------------------------------

    def scale(self, plan: AnalysisPlan) -> int:
        return plan.params.scale_meters or self.default_scale

    def reducer(self, plan: AnalysisPlan) -> str:
        reducer = plan.params.reducer
        return reducer.value if reducer else "mean"

    def max_cloud(self, plan: AnalysisPlan, default: float = 20.0) -> float:
        value = plan.params.max_cloud_percent
        return default if value is None else value

    # ------------------------------------------------------------------
    # Post-processing and presentation
    # ------------------------------------------------------------------

    def normalize(self, value: float, plan: AnalysisPlan) -> float:
        """Unit normalization of one bucket value."""
        return value

    def change_value(self, delta: float, before: Optional[float] = None) -> float:
        """Scalar reported for a change analysis; see each workflow."""
        return delta

    def unit(self, plan: AnalysisPlan) -> Optional[str]:
        return None

    def change_unit(self, plan: AnalysisPlan) -> Optional[str]:
        return self.unit(plan)

    @abstractmethod
    def vis_params(self, plan: AnalysisPlan) -> Dict[str, Any]:
        """Visualization parameters for the composite map."""

    @abstractmethod
    def change_vis_params(self, plan: AnalysisPlan) -> Dict[str, Any]:
        """Visualization parameters for the change map."""

    @abstractmethod
    def attributions(self, plan: AnalysisPlan) -> List[Attribution]:
        """Attribution for the datasets this workflow reads."""
