"""
SatScope Result Structures
==========================
Workflow output and the outbound analysis artifact.

All outputs are JSON-serializable (camelCase keys) for caching and transport.
"""

from dataclasses import dataclass, field, asdict, replace
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class TimeSeriesPoint:
    """Single point in a chronological series."""
    date: str  # YYYY-MM-DD
    value: float
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class Attribution:
    """Dataset attribution. Supplied by the workflow that used the data."""
    dataset: str
    source: str
    license: Optional[str] = None
    citation: Optional[str] = None
    date_range: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "dataset": self.dataset,
            "source": self.source,
            "license": self.license,
            "citation": self.citation,
            "dateRange": self.date_range,
        }
        return {k: v for k, v in out.items() if v is not None}


@dataclass
class SummaryStats:
    """Descriptive, point-anchored statistics of a series or change result."""
    mean: Optional[float] = None
    min: Optional[float] = None
    min_date: Optional[str] = None
    max: Optional[float] = None
    max_date: Optional[str] = None
    std_dev: Optional[float] = None
    trend: Optional[str] = None
    change_percent: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "mean": self.mean,
            "min": self.min,
            "minDate": self.min_date,
            "max": self.max,
            "maxDate": self.max_date,
            "stdDev": self.std_dev,
            "trend": self.trend,
            "changePercent": self.change_percent,
        }
        return {k: v for k, v in out.items() if v is not None}


@dataclass
class WorkflowResult:
    """
    What a workflow executor returns.

    Exactly one of time_series / change_percent is set, depending on which
    executor ran. attributions must never be empty.
    """
    attributions: List[Attribution]
    map_tile_url: Optional[str] = None
    time_series: Optional[List[TimeSeriesPoint]] = None
    change_percent: Optional[float] = None
    unit: Optional[str] = None

    def __post_init__(self):
        if not self.attributions:
            raise ValueError("WorkflowResult requires at least one attribution")


@dataclass
class ResultMetadata:
    analysis_type: str
    location: str
    time_range: Dict[str, str]
    compute_time_ms: Optional[int] = None
    cached: bool = False
    unit: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "analysisType": self.analysis_type,
            "location": self.location,
            "timeRange": dict(self.time_range),
            "computeTimeMs": self.compute_time_ms,
            "cached": self.cached,
            "unit": self.unit,
        }
        if self.warnings:
            out["warnings"] = list(self.warnings)
        return {k: v for k, v in out.items() if v is not None}


@dataclass
class AnalysisResult:
    """The artifact returned to callers and stored in the cache."""
    attributions: List[Attribution]
    metadata: ResultMetadata
    map_tile_url: Optional[str] = None
    map_bounds: Optional[Tuple[float, float, float, float]] = None
    time_series: Optional[List[TimeSeriesPoint]] = None
    stats: Optional[SummaryStats] = None

    def as_cached(self) -> "AnalysisResult":
        """Copy of this result flagged as served from cache."""
        return replace(self, metadata=replace(self.metadata, cached=True))

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "mapTileUrl": self.map_tile_url,
            "mapBounds": list(self.map_bounds) if self.map_bounds else None,
            "timeSeries": [p.to_dict() for p in self.time_series] if self.time_series is not None else None,
            "stats": self.stats.to_dict() if self.stats else None,
            "attributions": [a.to_dict() for a in self.attributions],
            "metadata": self.metadata.to_dict(),
        }
        return {k: v for k, v in out.items() if v is not None}
