"""
Workflow Executors
==================
Run a workflow against a ComputeEngine.

TimeSeriesExecutor fans one reduction per time bucket out to a bounded
thread pool and reassembles values by bucket index. A bucket that fails,
times out, or reduces to nothing is logged and skipped; the series is only
an error when every bucket is empty.

ChangeDetectionExecutor splits the range into the workflow's before and after
windows (the elapsed-time midpoint unless the workflow snaps them to its data
cadence), composites each half, and reduces the after-minus-before difference
to one scalar.
"""

import logging
import math
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Tuple

from .. import config
from ..errors import NoValidDataError, RemoteComputeError
from ..location import location_label
from ..plan import AnalysisPlan, BBox
from ..result import TimeSeriesPoint, WorkflowResult
from .buckets import TimeBucket, split_time_range
from .engine import ComputeEngine, DifferenceSpec
from .workflows.base import Workflow

logger = logging.getLogger(__name__)


def is_valid_number(value: Any) -> bool:
    """Finite int/float (bools and None excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def extract_value(stats: Dict[str, Any], band: str) -> Optional[float]:
    """
    Pull the band's value out of a reduceRegion dictionary.

    Falls back to the only value when the result carries a single key under
    another name. Returns None when there is no usable number.
    """
    if not stats:
        return None
    if band in stats:
        value = stats[band]
    elif len(stats) == 1:
        value = next(iter(stats.values()))
    else:
        return None
    return float(value) if is_valid_number(value) else None


def _no_data(workflow: Workflow, plan: AnalysisPlan) -> NoValidDataError:
    return NoValidDataError(
        workflow.phenomenon or workflow.data_product.value,
        plan.time_range.start,
        plan.time_range.end,
        location_label(plan.location),
    )


# =============================================================================
# TIME SERIES
# =============================================================================

class TimeSeriesExecutor:
    """Per-bucket reductions with bounded concurrency and fault isolation."""

    def __init__(
        self,
        engine: ComputeEngine,
        max_workers: int = config.BUCKET_WORKERS,
        bucket_timeout: float = config.BUCKET_TIMEOUT_SECONDS,
        request_deadline: float = config.REQUEST_DEADLINE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.engine = engine
        self.max_workers = max_workers
        self.bucket_timeout = bucket_timeout
        self.request_deadline = request_deadline
        self._clock = clock

    def run(self, workflow: Workflow, plan: AnalysisPlan, bbox: BBox) -> WorkflowResult:
        """
        Execute a workflow as a time series.

        Raises:
            NoValidDataError: If no bucket produced a value
            UnsupportedDatasetError: If the plan names none of the workflow's datasets
            RemoteComputeError: If the map composite cannot be produced
        """
        # Dataset and band errors surface here, before any bucket is submitted
        workflow.check_datasets(plan)
        band = workflow.band(plan)
        buckets = split_time_range(
            plan.time_range.start_date, plan.time_range.end_date, workflow.bucket_unit
        )
        logger.info(
            f"[{workflow.title} Workflow] Processing {len(buckets)} {workflow.bucket_unit.value}s "
            f"from {plan.time_range.start} to {plan.time_range.end}"
        )

        values = self.collect(workflow, plan, bbox, buckets, band)

        series = [
            TimeSeriesPoint(
                date=bucket.representative_date.isoformat(),
                value=workflow.normalize(value, plan),
                label=bucket.label,
            )
            for bucket, value in zip(buckets, values)
            if value is not None
        ]
        logger.info(f"[{workflow.title} Workflow] {len(series)}/{len(buckets)} buckets with data")

        if not series:
            raise _no_data(workflow, plan)

        map_tile_url = self.engine.map_tile_url(
            workflow.composite_image(plan, bbox), workflow.vis_params(plan), bbox
        )

        return WorkflowResult(
            attributions=workflow.attributions(plan),
            map_tile_url=map_tile_url,
            time_series=series,
            unit=workflow.unit(plan),
        )

    def collect(
        self, workflow: Workflow, plan: AnalysisPlan, bbox: BBox, buckets: List[TimeBucket], band: str
    ) -> List[Optional[float]]:
        """
        One value (or None) per bucket, in bucket order.

        At most max_workers buckets are in flight. Each bucket's timeout runs
        from its submission, so a hung bucket is abandoned without stalling the
        buckets queued behind it; abandoned calls no longer count as in flight.
        """
        values: List[Optional[float]] = [None] * len(buckets)
        if not buckets:
            return values

        deadline = self._clock() + self.request_deadline
        queued = deque(buckets)
        in_flight: Dict[Future, Tuple[TimeBucket, float]] = {}
        pool = ThreadPoolExecutor(max_workers=len(buckets), thread_name_prefix="bucket")
        try:
            while queued or in_flight:
                now = self._clock()
                if now >= deadline:
                    break
                while queued and len(in_flight) < self.max_workers:
                    bucket = queued.popleft()
                    future = pool.submit(self._reduce_bucket, workflow, plan, bbox, bucket, band)
                    in_flight[future] = (bucket, now)

                wake = min(started + self.bucket_timeout for _, started in in_flight.values())
                done, _ = wait(list(in_flight), timeout=max(0.0, min(wake, deadline) - now),
                               return_when=FIRST_COMPLETED)
                for future in done:
                    bucket, _ = in_flight.pop(future)
                    values[bucket.index] = self._bucket_value(workflow, bucket, future)

                now = self._clock()
                for future, (bucket, started) in list(in_flight.items()):
                    if not future.done() and now - started >= self.bucket_timeout:
                        del in_flight[future]
                        logger.warning(
                            f"[{workflow.title} Workflow] {bucket.label}: timed out after {self.bucket_timeout:.1f}s"
                        )

            for future, (bucket, _) in in_flight.items():
                if future.done():
                    values[bucket.index] = self._bucket_value(workflow, bucket, future)
                else:
                    logger.warning(f"[{workflow.title} Workflow] {bucket.label}: request deadline reached")
            for bucket in queued:
                logger.warning(f"[{workflow.title} Workflow] {bucket.label}: not started before the request deadline")
        finally:
            # Abandoned calls end on the Earth Engine client deadline
            pool.shutdown(wait=False, cancel_futures=True)

        return values

    def _bucket_value(self, workflow: Workflow, bucket: TimeBucket, future: Future) -> Optional[float]:
        try:
            return future.result()
        except RemoteComputeError as e:
            logger.warning(f"[{workflow.title} Workflow] {bucket.label}: failed ({e})")
            return None

    def _reduce_bucket(
        self, workflow: Workflow, plan: AnalysisPlan, bbox: BBox, bucket: TimeBucket, band: str
    ) -> Optional[float]:
        stats = self.engine.reduce_region(
            workflow.bucket_image(plan, bbox, bucket),
            bbox,
            workflow.reducer(plan),
            workflow.scale(plan),
        )
        value = extract_value(stats, band)
        if value is None:
            logger.warning(f"[{workflow.title} Workflow] {bucket.label}: no valid data")
        else:
            logger.debug(f"[{workflow.title} Workflow] {bucket.label}: {value}")
        return value


# =============================================================================
# CHANGE DETECTION
# =============================================================================

class ChangeDetectionExecutor:
    """Before/after composite difference over the AOI."""

    def __init__(self, engine: ComputeEngine):
        self.engine = engine

    def run(self, workflow: Workflow, plan: AnalysisPlan, bbox: BBox) -> WorkflowResult:
        """
        Execute a workflow as a change analysis.

        Raises:
            NoValidDataError: If the difference (or a needed baseline) has no value
            UnsupportedDatasetError: If the plan names none of the workflow's datasets
            RemoteComputeError: If the engine fails
        """
        workflow.check_datasets(plan)
        (before_start, before_end), (after_start, after_end) = workflow.change_windows(plan)
        logger.info(
            f"[{workflow.title} Workflow] Change: {before_start} to {before_end} "
            f"vs {after_start} to {after_end}"
        )

        before = workflow.change_image(plan, bbox, before_start, before_end)
        after = workflow.change_image(plan, bbox, after_start, after_end)
        delta = DifferenceSpec(after=after, before=before)

        reducer = workflow.reducer(plan)
        scale = workflow.scale(plan)
        band = workflow.band(plan)

        delta_value = extract_value(self.engine.reduce_region(delta, bbox, reducer, scale), band)
        if delta_value is None:
            raise _no_data(workflow, plan)

        before_value = None
        if workflow.relative_change:
            before_value = extract_value(self.engine.reduce_region(before, bbox, reducer, scale), band)
            if not before_value:
                # Missing or zero baseline: relative change is undefined
                raise _no_data(workflow, plan)

        change = workflow.change_value(delta_value, before_value)
        logger.info(f"[{workflow.title} Workflow] Change value: {change:.4f}")

        map_tile_url = self.engine.map_tile_url(delta, workflow.change_vis_params(plan), bbox)

        return WorkflowResult(
            attributions=workflow.attributions(plan),
            map_tile_url=map_tile_url,
            change_percent=change,
            unit=workflow.change_unit(plan),
        )
