"""
Earth Engine execution: image specs, engine adapter, buckets, executors,
workflows and the router that picks between them.
"""

from .buckets import BucketUnit, TimeBucket, split_time_range, split_at_midpoint
from .engine import (
    CompositeSpec,
    DifferenceSpec,
    ComputeEngine,
    EarthEngineCompute,
    initialize_earth_engine,
    is_earth_engine_initialized,
)
from .executor import TimeSeriesExecutor, ChangeDetectionExecutor
from .router import WorkflowRouter
from .workflows import ExecutionMode, Workflow, default_workflows

__all__ = [
    "BucketUnit",
    "TimeBucket",
    "split_time_range",
    "split_at_midpoint",
    "CompositeSpec",
    "DifferenceSpec",
    "ComputeEngine",
    "EarthEngineCompute",
    "initialize_earth_engine",
    "is_earth_engine_initialized",
    "TimeSeriesExecutor",
    "ChangeDetectionExecutor",
    "WorkflowRouter",
    "ExecutionMode",
    "Workflow",
    "default_workflows",
]
