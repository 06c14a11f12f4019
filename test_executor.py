"""
Time-series and change-detection executor tests against a fake engine.
"""

import math
import threading
import time

import pytest

from satscope.errors import (
    NoValidDataError,
    RemoteComputeError,
    UnsupportedDatasetError,
    UnsupportedWorkflowError,
)
from satscope.gee.engine import CompositeSpec, DifferenceSpec
from satscope.gee.executor import (
    ChangeDetectionExecutor,
    TimeSeriesExecutor,
    extract_value,
    is_valid_number,
)
from satscope.gee.workflows import (
    AirQualityWorkflow,
    PrecipitationWorkflow,
    TemperatureWorkflow,
    VegetationWorkflow,
    WaterWorkflow,
)
from satscope.plan import validate_plan

from conftest import FakeEngine, bucket_start, failing

BBOX = (10.0, 20.0, 11.0, 21.0)


def _by_month(values):
    """Map bucket start 'YYYY-MM-..' to a value; callables are invoked."""

    def answer(spec):
        value = values[bucket_start(spec)[:7]]
        return value() if callable(value) else value

    return answer


SIX_MONTHS = {
    "2024-01": 1.0,
    "2024-02": 2.0,
    "2024-03": 3.0,
    "2024-04": 4.0,
    "2024-05": 5.0,
    "2024-06": 6.0,
}


# =============================================================================
# VALUE EXTRACTION
# =============================================================================

@pytest.mark.parametrize("value, expected", [
    (1, True),
    (2.5, True),
    (0.0, True),
    (float("nan"), False),
    (float("inf"), False),
    (None, False),
    ("3.2", False),
    (True, False),
])
def test_is_valid_number(value, expected):
    assert is_valid_number(value) is expected


def test_extract_value():
    assert extract_value({"NDVI": 0.4}, "NDVI") == 0.4
    assert extract_value({"NDVI_mean": 0.4}, "NDVI") == 0.4
    assert extract_value({}, "NDVI") is None
    assert extract_value({"NDVI": None}, "NDVI") is None
    assert extract_value({"a": 1, "b": 2}, "NDVI") is None


# =============================================================================
# TIME SERIES
# =============================================================================

@pytest.fixture
def temperature_plan(make_plan):
    return validate_plan(make_plan())


@pytest.fixture
def precipitation_plan(make_plan):
    return validate_plan(make_plan(dataProduct="precipitation", datasetIds=["UCSB-CHG/CHIRPS/DAILY"]))


def test_series_in_bucket_order(temperature_plan):
    engine = FakeEngine(_by_month({k: v + 273.15 for k, v in SIX_MONTHS.items()}))
    executor = TimeSeriesExecutor(engine, max_workers=3)

    result = executor.run(TemperatureWorkflow(), temperature_plan, BBOX)

    assert [p.date for p in result.time_series] == [
        "2024-01-15", "2024-02-15", "2024-03-15", "2024-04-15", "2024-05-15", "2024-06-15",
    ]
    assert [p.label for p in result.time_series] == list(SIX_MONTHS)
    assert [p.value for p in result.time_series] == pytest.approx([1, 2, 3, 4, 5, 6])
    assert result.unit == "°C"
    assert result.map_tile_url == engine.tile_url
    assert len(engine.reduce_calls) == 6
    # Summary statistics are the pipeline's job
    assert not hasattr(result, "stats")


def test_order_preserved_when_buckets_finish_out_of_order(temperature_plan):
    def slow_first(spec):
        month = bucket_start(spec)[:7]
        if month == "2024-01":
            time.sleep(0.2)
        return SIX_MONTHS[month]

    executor = TimeSeriesExecutor(FakeEngine(slow_first), max_workers=6)
    result = executor.run(TemperatureWorkflow(), validate_plan(temperature_plan.to_dict() | {
        "parameters": {"band": "total_precipitation"},
    }), BBOX)

    assert [p.value for p in result.time_series] == [1, 2, 3, 4, 5, 6]


def test_one_failing_bucket_is_skipped(precipitation_plan):
    values = dict(SIX_MONTHS, **{"2024-03": failing})
    executor = TimeSeriesExecutor(FakeEngine(_by_month(values)))

    result = executor.run(PrecipitationWorkflow(), precipitation_plan, BBOX)

    assert [p.label for p in result.time_series] == ["2024-01", "2024-02", "2024-04", "2024-05", "2024-06"]
    assert [p.value for p in result.time_series] == [1, 2, 4, 5, 6]


def test_empty_and_nan_buckets_are_skipped(precipitation_plan):
    values = dict(SIX_MONTHS, **{"2024-02": None, "2024-05": float("nan")})
    executor = TimeSeriesExecutor(FakeEngine(_by_month(values)))

    result = executor.run(PrecipitationWorkflow(), precipitation_plan, BBOX)

    assert [p.value for p in result.time_series] == [1, 3, 4, 6]
    assert all(math.isfinite(p.value) for p in result.time_series)


def test_all_buckets_failing_raises_no_data(precipitation_plan):
    executor = TimeSeriesExecutor(FakeEngine(lambda spec: failing()))

    with pytest.raises(NoValidDataError) as exc:
        executor.run(PrecipitationWorkflow(), precipitation_plan, BBOX)

    assert exc.value.status_code == 404
    assert str(exc.value) == (
        "No valid precipitation data found for 2024-01-01 to 2024-06-30 at [10, 20, 11, 21]."
    )


def test_map_failure_propagates(precipitation_plan):
    class BrokenTiles(FakeEngine):
        def map_tile_url(self, image, vis_params, bbox=None):
            raise RemoteComputeError("Earth Engine map tile request failed: quota")

    with pytest.raises(RemoteComputeError):
        TimeSeriesExecutor(BrokenTiles()).run(PrecipitationWorkflow(), precipitation_plan, BBOX)


def test_slow_bucket_times_out_and_is_skipped(precipitation_plan):
    release = threading.Event()

    def hang_in_april(spec):
        month = bucket_start(spec)[:7]
        if month == "2024-04":
            release.wait(5)
        return SIX_MONTHS[month]

    executor = TimeSeriesExecutor(FakeEngine(hang_in_april), max_workers=6, bucket_timeout=0.2)
    try:
        result = executor.run(PrecipitationWorkflow(), precipitation_plan, BBOX)
    finally:
        release.set()

    assert [p.label for p in result.time_series] == ["2024-01", "2024-02", "2024-03", "2024-05", "2024-06"]


def test_request_deadline_bounds_waiting(precipitation_plan):
    release = threading.Event()

    def hang_after_february(spec):
        month = bucket_start(spec)[:7]
        if month > "2024-02":
            release.wait(5)
        return SIX_MONTHS[month]

    executor = TimeSeriesExecutor(
        FakeEngine(hang_after_february), max_workers=6, bucket_timeout=30, request_deadline=0.3,
    )
    started = time.monotonic()
    try:
        result = executor.run(PrecipitationWorkflow(), precipitation_plan, BBOX)
    finally:
        release.set()

    assert time.monotonic() - started < 3
    assert [p.label for p in result.time_series] == ["2024-01", "2024-02"]


def test_hung_bucket_does_not_starve_queued_buckets(precipitation_plan):
    release = threading.Event()

    def hang_in_january(spec):
        month = bucket_start(spec)[:7]
        if month == "2024-01":
            release.wait(5)
        return SIX_MONTHS[month]

    executor = TimeSeriesExecutor(FakeEngine(hang_in_january), max_workers=1, bucket_timeout=0.3)
    try:
        result = executor.run(PrecipitationWorkflow(), precipitation_plan, BBOX)
    finally:
        release.set()

    assert [p.label for p in result.time_series] == ["2024-02", "2024-03", "2024-04", "2024-05", "2024-06"]
    assert [p.value for p in result.time_series] == [2, 3, 4, 5, 6]


def test_in_flight_buckets_bounded_by_max_workers(precipitation_plan):
    lock = threading.Lock()
    active = [0]
    peak = [0]

    def tracked(spec):
        with lock:
            active[0] += 1
            peak[0] = max(peak[0], active[0])
        time.sleep(0.05)
        with lock:
            active[0] -= 1
        return SIX_MONTHS[bucket_start(spec)[:7]]

    result = TimeSeriesExecutor(FakeEngine(tracked), max_workers=2).run(
        PrecipitationWorkflow(), precipitation_plan, BBOX
    )

    assert len(result.time_series) == 6
    assert peak[0] <= 2


def test_dataset_mismatch_raises_before_any_reduction(make_plan):
    plan = validate_plan(make_plan(datasetIds=["UCSB-CHG/CHIRPS/DAILY"]))
    engine = FakeEngine()

    with pytest.raises(UnsupportedDatasetError) as exc:
        TimeSeriesExecutor(engine).run(TemperatureWorkflow(), plan, BBOX)

    assert exc.value.status_code == 422
    assert exc.value.supported == ["ECMWF/ERA5/DAILY"]
    assert engine.reduce_calls == []


def test_bucket_uses_plan_reducer_and_scale(make_plan):
    plan = validate_plan(make_plan(parameters={"reducer": "median", "scaleMeters": 2500}))
    engine = FakeEngine(lambda spec: 280.0)

    TimeSeriesExecutor(engine).run(TemperatureWorkflow(), plan, BBOX)

    assert {c["reducer"] for c in engine.reduce_calls} == {"median"}
    assert {c["scale"] for c in engine.reduce_calls} == {2500}
    assert {c["bbox"] for c in engine.reduce_calls} == {BBOX}


def test_bucket_defaults_to_mean_and_workflow_scale(temperature_plan):
    engine = FakeEngine(lambda spec: 280.0)
    TimeSeriesExecutor(engine).run(TemperatureWorkflow(), temperature_plan, BBOX)

    assert {c["reducer"] for c in engine.reduce_calls} == {"mean"}
    assert {c["scale"] for c in engine.reduce_calls} == {10000}


def test_bucket_windows_are_half_open(precipitation_plan):
    engine = FakeEngine(lambda spec: 1.0)
    TimeSeriesExecutor(engine, max_workers=1).run(PrecipitationWorkflow(), precipitation_plan, BBOX)

    windows = sorted((c["image"].start, c["image"].end) for c in engine.reduce_calls)
    assert windows[1] == ("2024-02-01", "2024-03-01")
    assert windows[-1] == ("2024-06-01", "2024-07-01")


def test_water_uses_yearly_buckets(make_plan):
    plan = validate_plan(make_plan(
        dataProduct="water",
        datasetIds=["JRC/GSW1_4/YearlyHistory"],
        timeRange={"start": "2019-01-01", "end": "2021-12-31"},
    ))
    fractions = {"2019": 0.10, "2020": 0.125, "2021": 0.15}
    engine = FakeEngine(lambda spec: fractions[spec.start[:4]])

    result = TimeSeriesExecutor(engine).run(WaterWorkflow(), plan, BBOX)

    assert [p.date for p in result.time_series] == ["2019-07-01", "2020-07-01", "2021-07-01"]
    assert [p.value for p in result.time_series] == pytest.approx([10.0, 12.5, 15.0])
    assert result.unit == "% water coverage"


def test_water_buckets_read_whole_years(make_plan):
    plan = validate_plan(make_plan(
        dataProduct="water",
        datasetIds=["JRC/GSW1_4/YearlyHistory"],
        timeRange={"start": "2020-03-01", "end": "2021-12-31"},
    ))
    engine = FakeEngine(lambda spec: 0.2)

    result = TimeSeriesExecutor(engine, max_workers=1).run(WaterWorkflow(), plan, BBOX)

    windows = sorted((c["image"].start, c["image"].end) for c in engine.reduce_calls)
    assert windows == [("2020-01-01", "2021-01-01"), ("2021-01-01", "2022-01-01")]
    assert [p.label for p in result.time_series] == ["2020", "2021"]


def test_rejects_zero_workers():
    with pytest.raises(ValueError):
        TimeSeriesExecutor(FakeEngine(), max_workers=0)


# =============================================================================
# CHANGE DETECTION
# =============================================================================

def _change_engine(delta, before=None):
    def answer(spec):
        if isinstance(spec, DifferenceSpec):
            return delta
        return before

    return FakeEngine(answer)


def _change_plan(make_plan, **overrides):
    base = dict(analysisType="change", timeRange={"start": "2020-01-01", "end": "2020-12-31"})
    base.update(overrides)
    return validate_plan(make_plan(**base))


def test_change_splits_at_midpoint(make_plan):
    engine = _change_engine(1.5)
    plan = _change_plan(make_plan)

    ChangeDetectionExecutor(engine).run(TemperatureWorkflow(), plan, BBOX)

    delta = engine.reduce_calls[0]["image"]
    assert isinstance(delta, DifferenceSpec)
    assert (delta.before.start, delta.before.end) == ("2020-01-01", "2020-07-01")
    assert (delta.after.start, delta.after.end) == ("2020-07-01", "2021-01-01")
    assert delta.before.composite == "median"
    assert delta.after.composite == "median"


def test_change_returns_delta_map(make_plan):
    engine = _change_engine(1.5)
    result = ChangeDetectionExecutor(engine).run(TemperatureWorkflow(), _change_plan(make_plan), BBOX)

    assert result.map_tile_url == engine.tile_url
    assert isinstance(engine.tile_calls[0]["image"], DifferenceSpec)
    assert engine.tile_calls[0]["vis_params"]["palette"] == ["blue", "white", "red"]
    assert result.time_series is None


def test_temperature_change_is_raw_delta(make_plan):
    result = ChangeDetectionExecutor(_change_engine(1.5)).run(TemperatureWorkflow(), _change_plan(make_plan), BBOX)
    assert result.change_percent == pytest.approx(1.5)


def test_precipitation_change_is_raw_delta(make_plan):
    plan = _change_plan(make_plan, dataProduct="precipitation", datasetIds=["UCSB-CHG/CHIRPS/DAILY"])
    result = ChangeDetectionExecutor(_change_engine(-0.8)).run(PrecipitationWorkflow(), plan, BBOX)
    assert result.change_percent == pytest.approx(-0.8)
    assert result.unit == "mm/day"


def test_vegetation_change_in_percentage_points(make_plan):
    plan = _change_plan(make_plan, dataProduct="vegetation", datasetIds=["COPERNICUS/S2_SR_HARMONIZED"])
    result = ChangeDetectionExecutor(_change_engine(-0.05)).run(VegetationWorkflow(), plan, BBOX)
    assert result.change_percent == pytest.approx(-5.0)


def test_water_change_uses_mean_composite(make_plan):
    plan = _change_plan(make_plan, dataProduct="water", datasetIds=["JRC/GSW1_4/YearlyHistory"],
                        timeRange={"start": "2019-01-01", "end": "2020-12-31"})
    engine = _change_engine(0.02)

    result = ChangeDetectionExecutor(engine).run(WaterWorkflow(), plan, BBOX)

    assert result.change_percent == pytest.approx(2.0)
    assert engine.reduce_calls[0]["image"].before.composite == "mean"


def test_water_change_splits_at_year_boundary(make_plan):
    plan = _change_plan(make_plan, dataProduct="water", datasetIds=["JRC/GSW1_4/YearlyHistory"],
                        timeRange={"start": "2020-03-01", "end": "2021-12-31"})
    engine = _change_engine(0.01)

    ChangeDetectionExecutor(engine).run(WaterWorkflow(), plan, BBOX)

    delta = engine.reduce_calls[0]["image"]
    assert (delta.before.start, delta.before.end) == ("2020-01-01", "2021-01-01")
    assert (delta.after.start, delta.after.end) == ("2021-01-01", "2022-01-01")


def test_water_change_within_one_year_is_rejected(make_plan):
    plan = _change_plan(make_plan, dataProduct="water", datasetIds=["JRC/GSW1_4/YearlyHistory"])
    engine = _change_engine(0.01)

    with pytest.raises(UnsupportedWorkflowError):
        ChangeDetectionExecutor(engine).run(WaterWorkflow(), plan, BBOX)
    assert engine.reduce_calls == []


def test_air_quality_change_is_relative(make_plan):
    plan = _change_plan(make_plan, dataProduct="air_quality", datasetIds=["COPERNICUS/S5P/OFFL/L3_NO2"])
    engine = _change_engine(delta=0.00001, before=0.00004)

    result = ChangeDetectionExecutor(engine).run(AirQualityWorkflow(), plan, BBOX)

    assert result.change_percent == pytest.approx(25.0)
    assert result.unit == "%"
    assert isinstance(engine.reduce_calls[1]["image"], CompositeSpec)


def test_air_quality_zero_baseline_raises_no_data(make_plan):
    plan = _change_plan(make_plan, dataProduct="air_quality", datasetIds=["COPERNICUS/S5P/OFFL/L3_NO2"])
    with pytest.raises(NoValidDataError):
        ChangeDetectionExecutor(_change_engine(delta=0.00001, before=0.0)).run(AirQualityWorkflow(), plan, BBOX)


def test_missing_delta_raises_no_data(make_plan):
    with pytest.raises(NoValidDataError):
        ChangeDetectionExecutor(_change_engine(None)).run(TemperatureWorkflow(), _change_plan(make_plan), BBOX)


def test_change_remote_failure_propagates(make_plan):
    engine = FakeEngine(lambda spec: failing())
    with pytest.raises(RemoteComputeError):
        ChangeDetectionExecutor(engine).run(TemperatureWorkflow(), _change_plan(make_plan), BBOX)
