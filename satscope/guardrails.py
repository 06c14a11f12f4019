"""
SatScope Guardrails Module
==========================
Business-policy limits enforced before any remote computation.

Every check runs regardless of earlier failures, and the failing checks'
messages are joined into one combined error string. A plan with only
warnings is still valid and proceeds.

Checks:
- Time range (parse, ordering, not in the future, maximum span, data floor)
- Analysis type allow-list
- Data product / dataset allow-lists
- Area-of-interest size (coordinate boxes only; named places are trusted
  to the location resolver)
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from . import config
from .errors import GuardrailViolation
from .plan import AnalysisPlan, AnalysisType, DataProduct, DatasetId

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.25

# Practical data-availability floor per dataset family (first usable date)
DATA_AVAILABILITY = {
    DatasetId.SENTINEL2_SR: ("Sentinel-2", date(2015, 6, 23)),
    DatasetId.SENTINEL2_SR_HARMONIZED: ("Sentinel-2", date(2015, 6, 23)),
    DatasetId.LANDSAT8_L2: ("Landsat 8", date(2013, 4, 11)),
    DatasetId.LANDSAT9_L2: ("Landsat 9", date(2021, 10, 31)),
    DatasetId.SENTINEL1_GRD: ("Sentinel-1", date(2014, 10, 3)),
    DatasetId.JRC_GSW: ("JRC Global Surface Water", date(1984, 3, 16)),
    DatasetId.JRC_GSW_YEARLY: ("JRC Global Surface Water", date(1984, 1, 1)),
    DatasetId.ERA5_DAILY: ("ERA5", date(1979, 1, 2)),
    DatasetId.CHIRPS_DAILY: ("CHIRPS", date(1981, 1, 1)),
    DatasetId.SRTM: ("SRTM", date(2000, 2, 11)),
    DatasetId.WORLDCOVER: ("ESA WorldCover", date(2021, 1, 1)),
    DatasetId.VIIRS_MONTHLY: ("VIIRS", date(2014, 1, 1)),
    DatasetId.WORLDPOP: ("WorldPop", date(2000, 1, 1)),
    DatasetId.S5P_NO2: ("Sentinel-5P", date(2018, 6, 28)),
    DatasetId.S5P_CO: ("Sentinel-5P", date(2018, 6, 28)),
    DatasetId.S5P_O3: ("Sentinel-5P", date(2018, 9, 8)),
    DatasetId.S5P_SO2: ("Sentinel-5P", date(2018, 12, 5)),
    DatasetId.S5P_CH4: ("Sentinel-5P", date(2019, 2, 8)),
    DatasetId.S5P_HCHO: ("Sentinel-5P", date(2018, 12, 5)),
}

# Products that currently have a workflow behind them
WORKFLOW_DATA_PRODUCTS = frozenset({
    DataProduct.VEGETATION,
    DataProduct.WATER,
    DataProduct.TEMPERATURE,
    DataProduct.PRECIPITATION,
    DataProduct.AIR_QUALITY,
})


@dataclass(frozen=True)
class GuardrailPolicy:
    """Process-wide policy limits. Read-only after initialization."""
    max_time_range_years: float = 5
    max_aoi_size_degrees: float = 10
    allowed_analysis_types: FrozenSet[AnalysisType] = frozenset(AnalysisType)
    allowed_data_products: FrozenSet[DataProduct] = WORKFLOW_DATA_PRODUCTS
    allowed_dataset_ids: FrozenSet[DatasetId] = frozenset(DatasetId)

    @classmethod
    def from_settings(cls, settings: Optional[config.Settings] = None) -> "GuardrailPolicy":
        settings = settings or config.get_settings()
        return cls(
            max_time_range_years=settings.max_time_range_years,
            max_aoi_size_degrees=settings.max_aoi_size_degrees,
        )

    def describe(self) -> Dict[str, object]:
        """Policy as plain data (for documentation/debugging)."""
        return {
            "maxTimeRangeYears": self.max_time_range_years,
            "maxAoiSizeDegrees": self.max_aoi_size_degrees,
            "allowedAnalysisTypes": sorted(t.value for t in self.allowed_analysis_types),
            "allowedDataProducts": sorted(p.value for p in self.allowed_data_products),
            "allowedDatasetIds": sorted(d.value for d in self.allowed_dataset_ids),
        }


@dataclass
class CheckResult:
    """Outcome of a single guardrail check."""
    valid: bool = True
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class GuardrailResult:
    """Combined outcome of all guardrail checks."""
    valid: bool
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class GuardrailEngine:
    """
    Evaluates a validated plan against a GuardrailPolicy.

    Not fail-fast: all checks run and every failure is reported.
    """

    def __init__(
        self,
        policy: Optional[GuardrailPolicy] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.policy = policy or GuardrailPolicy()
        self._today = today or _utc_today

    def check(self, plan: AnalysisPlan) -> GuardrailResult:
        results = [
            self._check_time_range(plan),
            self._check_analysis_type(plan),
            self._check_datasets(plan),
            self._check_location(plan),
        ]

        errors = [r.error for r in results if not r.valid and r.error]
        warnings = [w for r in results for w in r.warnings]

        if errors:
            return GuardrailResult(valid=False, error=" ".join(errors), warnings=warnings)
        return GuardrailResult(valid=True, warnings=warnings)

    def enforce(self, plan: AnalysisPlan) -> List[str]:
        """
        Check the plan and raise on any violation.

        Returns:
            Advisory warnings for a valid plan

        Raises:
            GuardrailViolation: With the combined message of every failing check
        """
        result = self.check(plan)
        if not result.valid:
            logger.warning(f"Guardrail violation: {result.error}")
            raise GuardrailViolation(result.error, warnings=result.warnings)
        for warning in result.warnings:
            logger.info(f"Guardrail warning: {warning}")
        return result.warnings

    def _check_time_range(self, plan: AnalysisPlan) -> CheckResult:
        """Dates parse, are ordered, not in the future, and within the span limit."""
        try:
            start = date.fromisoformat(plan.time_range.start)
            end = date.fromisoformat(plan.time_range.end)
        except ValueError:
            return CheckResult(False, "Invalid date format. Please use YYYY-MM-DD format.")

        if start >= end:
            return CheckResult(False, "Start date must be before end date.")

        today = self._today()
        if end > today:
            return CheckResult(False, f"End date cannot be in the future (today is {today.isoformat()}).")

        years = (end - start).days / DAYS_PER_YEAR
        max_years = self.policy.max_time_range_years
        if years > max_years:
            return CheckResult(
                False,
                f"Time range too large. Maximum allowed: {max_years:g} years. "
                f"Your request: {years:.1f} years.",
            )

        warnings = []
        for family, floor in self._availability_floors(plan):
            if start < floor:
                warnings.append(
                    f"Start date {start.isoformat()} is before {family} data availability "
                    f"({floor.isoformat()}). Results may be limited for this period."
                )
        return CheckResult(True, warnings=warnings)

    def _check_analysis_type(self, plan: AnalysisPlan) -> CheckResult:
        allowed = self.policy.allowed_analysis_types
        if plan.analysis_type not in allowed:
            return CheckResult(
                False,
                f'Unsupported analysis type: "{plan.analysis_type.value}". '
                f"Supported types: {', '.join(sorted(t.value for t in allowed))}.",
            )
        return CheckResult()

    def _check_datasets(self, plan: AnalysisPlan) -> CheckResult:
        problems = []

        products = self.policy.allowed_data_products
        if plan.data_product not in products:
            problems.append(
                f'Unsupported data product: "{plan.data_product.value}". '
                f"Supported products: {', '.join(sorted(p.value for p in products))}."
            )

        unsupported = [d.value for d in plan.dataset_ids if d not in self.policy.allowed_dataset_ids]
        if unsupported:
            problems.append(
                f"Unsupported datasets: {', '.join(unsupported)}. "
                f"Supported datasets: {', '.join(sorted(d.value for d in self.policy.allowed_dataset_ids))}."
            )

        if problems:
            return CheckResult(False, " ".join(problems))
        return CheckResult()

    def _check_location(self, plan: AnalysisPlan) -> CheckResult:
        """AOI size for coordinate boxes. Named places are trusted to the resolver."""
        if isinstance(plan.location, str):
            return CheckResult()

        west, south, east, north = plan.location
        if not (-180 <= west <= 180 and -180 <= east <= 180):
            return CheckResult(False, "Longitude must be between -180 and 180.")
        if not (-90 <= south <= 90 and -90 <= north <= 90):
            return CheckResult(False, "Latitude must be between -90 and 90.")
        if west >= east:
            return CheckResult(False, "West longitude must be less than east longitude.")
        if south >= north:
            return CheckResult(False, "South latitude must be less than north latitude.")

        width = east - west
        height = north - south
        limit = self.policy.max_aoi_size_degrees
        if width > limit or height > limit:
            return CheckResult(
                False,
                f"Area of interest too large. Maximum: {limit:g}° x {limit:g}°. "
                f"Your request: {width:.2f}° x {height:.2f}°.",
            )
        return CheckResult()

    @staticmethod
    def _availability_floors(plan: AnalysisPlan) -> List[Tuple[str, date]]:
        seen = {}
        for dataset_id in plan.dataset_ids:
            family, floor = DATA_AVAILABILITY.get(dataset_id, (None, None))
            if family and family not in seen:
                seen[family] = floor
        return list(seen.items())


def log_analysis_request(plan: AnalysisPlan, **metadata) -> None:
    """Log an analysis request for monitoring."""
    record = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "analysisType": plan.analysis_type.value,
        "dataProduct": plan.data_product.value,
        "datasets": [d.value for d in plan.dataset_ids],
        "timeRange": {"start": plan.time_range.start, "end": plan.time_range.end},
        "location": plan.location if isinstance(plan.location, str) else f"bbox:{list(plan.location)}",
        **metadata,
    }
    logger.info(f"[Analysis Request] {json.dumps(record)}")
