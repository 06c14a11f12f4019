"""
SatScope Error Taxonomy
=======================
Every failure that reaches a caller is an AnalysisError subclass carrying a
user-actionable message. Only per-bucket RemoteComputeErrors are recovered
locally (inside the time-series executor); everything else propagates.
"""

from typing import Any, Dict, List, Optional


class AnalysisError(Exception):
    """Base class for user-facing analysis failures."""

    status_code = 500
    error_type = "analysis_error"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.error_type, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AnalysisError):
    """Malformed plan or location; carries one issue per offending field."""

    status_code = 400
    error_type = "validation_error"

    def __init__(self, message: str, issues: Optional[List[Dict[str, str]]] = None):
        self.issues = issues or []
        super().__init__(message, details=self.issues or None)

    @property
    def fields(self) -> List[str]:
        return [issue["field"] for issue in self.issues]


class GuardrailViolation(AnalysisError):
    """Policy breach. The message covers every failing check."""

    status_code = 400
    error_type = "guardrail_violation"

    def __init__(self, message: str, warnings: Optional[List[str]] = None):
        self.warnings = warnings or []
        super().__init__(message, details={"warnings": self.warnings} if self.warnings else None)


class LocationNotFound(AnalysisError):
    status_code = 400
    error_type = "location_not_found"

    def __init__(self, name: str, known_locations: List[str]):
        self.name = name
        self.known_locations = list(known_locations)
        super().__init__(
            f'Unable to find location "{name}". Known locations: '
            f'{", ".join(self.known_locations)}. '
            f"Alternatively provide coordinates as [west, south, east, north].",
            details={"knownLocations": self.known_locations},
        )


class RemoteComputeError(AnalysisError):
    """The remote geospatial engine rejected or failed a request."""

    status_code = 502
    error_type = "remote_compute_error"


class NoValidDataError(AnalysisError):
    status_code = 404
    error_type = "no_valid_data"

    def __init__(self, phenomenon: str, start: str, end: str, location: str):
        self.phenomenon = phenomenon
        super().__init__(
            f"No valid {phenomenon} data found for {start} to {end} at {location}."
        )


class UnsupportedWorkflowError(AnalysisError):
    status_code = 422
    error_type = "unsupported_workflow"

    def __init__(self, message: str, supported: Optional[List[str]] = None):
        self.supported = list(supported or [])
        super().__init__(message, details={"supported": self.supported} if self.supported else None)


class UnsupportedDatasetError(UnsupportedWorkflowError):
    """The selected workflow cannot serve any of the requested datasets."""

    error_type = "unsupported_dataset"
