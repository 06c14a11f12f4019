"""
Dataset workflows, one per supported data product.
"""

from .base import ExecutionMode, Workflow, TIME_SERIES_TYPES, CHANGE_TYPES
from .vegetation import VegetationWorkflow
from .water import WaterWorkflow
from .temperature import TemperatureWorkflow
from .precipitation import PrecipitationWorkflow
from .air_quality import AirQualityWorkflow


def default_workflows():
    """Fresh instances of every built-in workflow."""
    return [
        VegetationWorkflow(),
        WaterWorkflow(),
        TemperatureWorkflow(),
        PrecipitationWorkflow(),
        AirQualityWorkflow(),
    ]


__all__ = [
    "ExecutionMode",
    "Workflow",
    "TIME_SERIES_TYPES",
    "CHANGE_TYPES",
    "VegetationWorkflow",
    "WaterWorkflow",
    "TemperatureWorkflow",
    "PrecipitationWorkflow",
    "AirQualityWorkflow",
    "default_workflows",
]
