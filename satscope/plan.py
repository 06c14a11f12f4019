"""
SatScope Analysis Plan
======================
The validated request schema. A raw (untyped, JSON-shaped) plan produced by
the planning step is turned into an immutable AnalysisPlan here, or rejected
with one issue per offending field.

COORDINATE CONVENTION: bounding boxes are (west, south, east, north) in
degrees, matching GeoJSON / Earth Engine rectangle order.
"""

import json
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .errors import ValidationError

BBox = Tuple[float, float, float, float]

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


# =============================================================================
# ENUMS
# =============================================================================

class AnalysisType(str, Enum):
    TIMESERIES = "timeseries"              # trends/changes over time
    CHANGE = "change"                      # explicit before/after comparison
    ANOMALY = "anomaly"                    # deviations from baseline
    SEASONAL_TREND = "seasonal_trend"      # seasonality (>= 1 year)
    SINGLE_DATE_MAP = "single_date_map"    # map for a date / short window
    ZONAL_STATISTICS = "zonal_statistics"  # summary stats for an AOI


class DataProduct(str, Enum):
    """High-level phenomenon category. Selects the workflow."""
    VEGETATION = "vegetation"
    WATER = "water"
    URBAN = "urban"
    TEMPERATURE = "temperature"
    PRECIPITATION = "precipitation"
    SOIL_MOISTURE = "soil_moisture"
    ELEVATION = "elevation"
    LANDCOVER = "landcover"
    NIGHTLIGHTS = "nightlights"
    POPULATION = "population"
    AIR_QUALITY = "air_quality"
    OTHER = "other"


class DatasetId(str, Enum):
    """Curated allowlist of Earth Engine Data Catalog IDs."""
    # Optical (surface reflectance)
    SENTINEL2_SR = "COPERNICUS/S2_SR"
    SENTINEL2_SR_HARMONIZED = "COPERNICUS/S2_SR_HARMONIZED"
    LANDSAT8_L2 = "LANDSAT/LC08/C02/T1_L2"
    LANDSAT9_L2 = "LANDSAT/LC09/C02/T1_L2"
    # SAR
    SENTINEL1_GRD = "COPERNICUS/S1_GRD"
    # Water
    JRC_GSW = "JRC/GSW1_4/GlobalSurfaceWater"
    JRC_GSW_YEARLY = "JRC/GSW1_4/YearlyHistory"
    # Climate / weather
    ERA5_DAILY = "ECMWF/ERA5/DAILY"
    # Precipitation
    CHIRPS_DAILY = "UCSB-CHG/CHIRPS/DAILY"
    # Elevation
    SRTM = "USGS/SRTMGL1_003"
    # Land cover
    WORLDCOVER = "ESA/WorldCover/v200"
    # Night lights
    VIIRS_MONTHLY = "NOAA/VIIRS/DNB/MONTHLY_V1/VCMSLCFG"
    # Population
    WORLDPOP = "WorldPop/GP/100m/pop"
    # Air quality (Sentinel-5P TROPOMI offline products)
    S5P_NO2 = "COPERNICUS/S5P/OFFL/L3_NO2"
    S5P_CO = "COPERNICUS/S5P/OFFL/L3_CO"
    S5P_O3 = "COPERNICUS/S5P/OFFL/L3_O3"
    S5P_SO2 = "COPERNICUS/S5P/OFFL/L3_SO2"
    S5P_CH4 = "COPERNICUS/S5P/OFFL/L3_CH4"
    S5P_HCHO = "COPERNICUS/S5P/OFFL/L3_HCHO"


class OutputType(str, Enum):
    MAP = "map"
    TIMESERIES = "timeseries"
    STATISTICS = "statistics"
    SUMMARY = "summary"


class IndexKind(str, Enum):
    NDVI = "ndvi"
    NDWI = "ndwi"
    NDBI = "ndbi"
    LST = "lst"
    NONE = "none"


class ReducerKind(str, Enum):
    MEAN = "mean"
    MEDIAN = "median"
    SUM = "sum"
    MIN = "min"
    MAX = "max"


# =============================================================================
# MODELS
# =============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class AnalysisParameters(_CamelModel):
    """Optional tuning knobs. Absent means workflow default."""
    model_config = ConfigDict(extra="forbid")

    index: Optional[IndexKind] = None
    band: Optional[str] = Field(None, min_length=1)
    reducer: Optional[ReducerKind] = None
    scale_meters: Optional[int] = Field(None, gt=0)
    max_cloud_percent: Optional[float] = Field(None, ge=0, le=100)


class TimeRange(_CamelModel):
    start: str = Field(pattern=DATE_PATTERN)
    end: str = Field(pattern=DATE_PATTERN)

    @field_validator("start", "end")
    @classmethod
    def _real_calendar_date(cls, value: str) -> str:
        try:
            date.fromisoformat(value)
        except ValueError:
            raise ValueError(f"{value} is not a valid calendar date")
        return value

    @model_validator(mode="after")
    def _start_before_end(self) -> "TimeRange":
        if self.start_date >= self.end_date:
            raise ValueError("Start date must be before end date")
        return self

    @property
    def start_date(self) -> date:
        return date.fromisoformat(self.start)

    @property
    def end_date(self) -> date:
        return date.fromisoformat(self.end)


def check_bbox(bbox: Any) -> BBox:
    """
    Validate a [west, south, east, north] box and return it as a float tuple.

    Raises:
        ValueError: If the box is malformed, out of range or inverted
    """
    if isinstance(bbox, (str, bytes)) or not hasattr(bbox, "__len__") or len(bbox) != 4:
        raise ValueError("Bounding box must be [west, south, east, north]")
    if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in bbox):
        raise ValueError("Bounding box coordinates must be numbers")

    west, south, east, north = (float(v) for v in bbox)
    if not (-180 <= west <= 180 and -180 <= east <= 180):
        raise ValueError("Longitude must be between -180 and 180")
    if not (-90 <= south <= 90 and -90 <= north <= 90):
        raise ValueError("Latitude must be between -90 and 90")
    if west >= east:
        raise ValueError("West longitude must be less than east longitude")
    if south >= north:
        raise ValueError("South latitude must be less than north latitude")
    return (west, south, east, north)


class AnalysisPlan(_CamelModel):
    """The validated, immutable analysis request."""

    analysis_type: AnalysisType
    data_product: DataProduct
    dataset_ids: Tuple[DatasetId, ...] = Field(min_length=1)
    time_range: TimeRange
    location: Union[str, BBox]
    outputs: Tuple[OutputType, ...] = Field(min_length=1)
    parameters: Optional[AnalysisParameters] = None

    @field_validator("location", mode="before")
    @classmethod
    def _check_location(cls, value: Any) -> Any:
        if isinstance(value, str):
            name = value.strip()
            if not name:
                raise ValueError("Location name cannot be empty")
            return name
        return check_bbox(value)

    @property
    def is_bbox(self) -> bool:
        return not isinstance(self.location, str)

    @property
    def params(self) -> AnalysisParameters:
        return self.parameters or AnalysisParameters()

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# VALIDATION ENTRY POINTS
# =============================================================================

# Friendlier wording for the handful of pydantic messages users actually see
_FIELD_MESSAGES = {
    ("datasetIds", "too_short"): "At least one datasetId is required",
    ("outputs", "too_short"): "At least one output type is required",
    ("timeRange.start", "string_pattern_mismatch"): "Date must be in YYYY-MM-DD format",
    ("timeRange.end", "string_pattern_mismatch"): "Date must be in YYYY-MM-DD format",
}


def _issues_from_pydantic(exc: PydanticValidationError) -> List[Dict[str, str]]:
    issues = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "plan"
        message = _FIELD_MESSAGES.get((field, err["type"]), err["msg"])
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        issues.append({"field": field, "message": message})
    return issues


def safe_validate_plan(data: Any) -> Tuple[Optional[AnalysisPlan], List[Dict[str, str]]]:
    """
    Validate raw input without raising.

    Returns:
        Tuple of (plan or None, list of {field, message} issues)
    """
    if isinstance(data, AnalysisPlan):
        return data, []
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError as e:
            return None, [{"field": "plan", "message": f"Plan is not valid JSON: {e}"}]
    if not isinstance(data, dict):
        return None, [{"field": "plan", "message": "Plan must be a JSON object"}]

    try:
        return AnalysisPlan.model_validate(data), []
    except PydanticValidationError as e:
        return None, _issues_from_pydantic(e)


def validate_plan(data: Any) -> AnalysisPlan:
    """
    Validate raw input into an AnalysisPlan.

    Raises:
        ValidationError: Naming every offending field, not just the first
    """
    plan, issues = safe_validate_plan(data)
    if plan is None:
        summary = "; ".join(f"{i['field']}: {i['message']}" for i in issues)
        raise ValidationError(f"Invalid analysis plan. {summary}", issues=issues)
    return plan
