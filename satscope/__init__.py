"""
SatScope Analysis Engine
========================
Structured geospatial analysis on Google Earth Engine.

A request (analysis type, data product, datasets, time range, area) is
validated, checked against policy limits, dispatched to a dataset workflow,
executed as independent time buckets with per-bucket fault tolerance,
summarized into descriptive statistics and cached under a deterministic
fingerprint.

Modules:
    plan: Request schema and validation
    guardrails: Policy limits (time span, AOI size, allow-lists)
    location: Place name / bbox resolution (Nominatim + fallback table)
    cache: Fingerprints and the TTL/capacity-bounded store
    statistics: Summary statistics and trend labels
    pipeline: End-to-end control flow
    gee: Earth Engine adapter, buckets, executors, workflows, router

Example:
    >>> from satscope import create_pipeline
    >>> pipeline = create_pipeline()
    >>> result = pipeline.run({
    ...     "analysisType": "timeseries",
    ...     "dataProduct": "temperature",
    ...     "datasetIds": ["ECMWF/ERA5/DAILY"],
    ...     "timeRange": {"start": "2023-01-01", "end": "2023-12-31"},
    ...     "location": "Tokyo",
    ...     "outputs": ["timeseries", "statistics"],
    ... })
    >>> result.stats.trend
"""

from .errors import (
    AnalysisError,
    ValidationError,
    GuardrailViolation,
    LocationNotFound,
    RemoteComputeError,
    NoValidDataError,
    UnsupportedWorkflowError,
    UnsupportedDatasetError,
)
from .plan import (
    AnalysisPlan,
    AnalysisParameters,
    AnalysisType,
    DataProduct,
    DatasetId,
    OutputType,
    TimeRange,
    validate_plan,
    safe_validate_plan,
)
from .result import (
    AnalysisResult,
    Attribution,
    SummaryStats,
    TimeSeriesPoint,
    WorkflowResult,
)
from .guardrails import GuardrailEngine, GuardrailPolicy, log_analysis_request
from .location import LocationResolver, NominatimGeocoder, expand_bbox, bbox_area_km2
from .cache import CacheStore, generate_cache_key, generate_explanation_cache_key, parse_cache_key
from .statistics import compute_statistics, classify_trend
from .pipeline import AnalysisPipeline, create_pipeline

__all__ = [
    # Errors
    "AnalysisError",
    "ValidationError",
    "GuardrailViolation",
    "LocationNotFound",
    "RemoteComputeError",
    "NoValidDataError",
    "UnsupportedWorkflowError",
    "UnsupportedDatasetError",
    # Plan
    "AnalysisPlan",
    "AnalysisParameters",
    "AnalysisType",
    "DataProduct",
    "DatasetId",
    "OutputType",
    "TimeRange",
    "validate_plan",
    "safe_validate_plan",
    # Results
    "AnalysisResult",
    "Attribution",
    "SummaryStats",
    "TimeSeriesPoint",
    "WorkflowResult",
    # Components
    "GuardrailEngine",
    "GuardrailPolicy",
    "log_analysis_request",
    "LocationResolver",
    "NominatimGeocoder",
    "expand_bbox",
    "bbox_area_km2",
    "CacheStore",
    "generate_cache_key",
    "generate_explanation_cache_key",
    "parse_cache_key",
    "compute_statistics",
    "classify_trend",
    "AnalysisPipeline",
    "create_pipeline",
]

__version__ = "1.0.0"
