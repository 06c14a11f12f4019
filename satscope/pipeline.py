"""
SatScope Analysis Pipeline
==========================
Plan Validation -> Guardrail -> Cache probe -> Location -> Workflow Dispatch
-> Executor -> Statistics -> Cache store.

Every collaborator is injected so tests can substitute in-process fakes for
the compute engine, geocoder and clock.
"""

import logging
import time
from typing import Any, Dict, Optional

from . import config
from .cache import CacheStore, generate_cache_key
from .guardrails import GuardrailEngine, GuardrailPolicy, log_analysis_request
from .location import LocationResolver, NominatimGeocoder, location_label
from .plan import AnalysisPlan, validate_plan
from .result import AnalysisResult, Attribution, ResultMetadata, SummaryStats, WorkflowResult
from .statistics import compute_statistics
from .gee.engine import ComputeEngine, EarthEngineCompute
from .gee.executor import ChangeDetectionExecutor, TimeSeriesExecutor
from .gee.router import WorkflowRouter
from .gee.workflows import ExecutionMode

logger = logging.getLogger(__name__)


class AnalysisPipeline:
    """Runs validated analysis plans end to end."""

    def __init__(
        self,
        engine: ComputeEngine,
        resolver: LocationResolver,
        cache: Optional[CacheStore] = None,
        guardrails: Optional[GuardrailEngine] = None,
        router: Optional[WorkflowRouter] = None,
        executors: Optional[Dict[ExecutionMode, Any]] = None,
    ):
        self.engine = engine
        self.resolver = resolver
        self.cache = cache if cache is not None else CacheStore()
        self.guardrails = guardrails or GuardrailEngine()
        self.router = router or WorkflowRouter()
        self.executors = executors or {
            ExecutionMode.TIME_SERIES: TimeSeriesExecutor(engine),
            ExecutionMode.CHANGE: ChangeDetectionExecutor(engine),
        }

    def run(self, raw_plan: Any) -> AnalysisResult:
        """
        Execute a raw plan (dict, JSON string or AnalysisPlan).

        Raises:
            AnalysisError: Any user-facing failure (see satscope.errors)
        """
        started = time.perf_counter()

        plan = validate_plan(raw_plan)
        warnings = self.guardrails.enforce(plan)

        cache_key = generate_cache_key(plan)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info(f"Cache hit: {cache_key}")
            return cached.as_cached()
        logger.info(f"Cache miss: {cache_key}")

        log_analysis_request(plan, cacheKey=cache_key)

        bbox = self.resolver.resolve(plan.location)
        workflow = self.router.resolve(plan.data_product)
        mode = workflow.mode_for(plan)
        logger.info(f"Dispatching {plan.data_product.value} ({plan.analysis_type.value}) as {mode.value}")

        outcome = self.executors[mode].run(workflow, plan, bbox)

        compute_time_ms = int((time.perf_counter() - started) * 1000)
        result = self._assemble(plan, bbox, outcome, warnings, compute_time_ms)

        self.cache.set(cache_key, result)
        logger.info(f"✅ Analysis complete in {compute_time_ms}ms ({cache_key})")
        return result

    @staticmethod
    def _assemble(
        plan: AnalysisPlan,
        bbox,
        outcome: WorkflowResult,
        warnings,
        compute_time_ms: int,
    ) -> AnalysisResult:
        stats: Optional[SummaryStats] = None
        if outcome.time_series:
            stats = compute_statistics(outcome.time_series)
        elif outcome.change_percent is not None:
            stats = SummaryStats(change_percent=outcome.change_percent)

        date_range = f"{plan.time_range.start} to {plan.time_range.end}"
        attributions = [
            Attribution(
                dataset=a.dataset,
                source=a.source,
                license=a.license,
                citation=a.citation,
                date_range=a.date_range or date_range,
            )
            for a in outcome.attributions
        ]

        return AnalysisResult(
            attributions=attributions,
            metadata=ResultMetadata(
                analysis_type=plan.analysis_type.value,
                location=location_label(plan.location),
                time_range={"start": plan.time_range.start, "end": plan.time_range.end},
                compute_time_ms=compute_time_ms,
                cached=False,
                unit=outcome.unit,
                warnings=list(warnings),
            ),
            map_tile_url=outcome.map_tile_url,
            map_bounds=tuple(bbox),
            time_series=outcome.time_series,
            stats=stats,
        )


def create_pipeline(
    settings: Optional[config.Settings] = None,
    engine: Optional[ComputeEngine] = None,
) -> AnalysisPipeline:
    """Wire the default collaborators from settings."""
    settings = settings or config.get_settings()
    engine = engine or EarthEngineCompute()

    geocoder = NominatimGeocoder(
        url=settings.nominatim_url,
        user_agent=settings.geocoder_user_agent,
        timeout=settings.geocoder_timeout_seconds,
    )

    return AnalysisPipeline(
        engine=engine,
        resolver=LocationResolver(geocoder=geocoder),
        cache=CacheStore(
            max_entries=settings.cache_max_entries,
            ttl_seconds=settings.cache_ttl_seconds,
        ),
        guardrails=GuardrailEngine(GuardrailPolicy.from_settings(settings)),
        router=WorkflowRouter(),
        executors={
            ExecutionMode.TIME_SERIES: TimeSeriesExecutor(
                engine,
                max_workers=settings.bucket_workers,
                bucket_timeout=settings.bucket_timeout_seconds,
                request_deadline=settings.request_deadline_seconds,
            ),
            ExecutionMode.CHANGE: ChangeDetectionExecutor(engine),
        },
    )
