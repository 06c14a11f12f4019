"""
Cache key and store tests.
"""

import re

import pytest

from satscope.cache import (
    CacheStore,
    generate_cache_key,
    generate_explanation_cache_key,
    normalize_plan,
    parse_cache_key,
)
from satscope.plan import validate_plan

from conftest import FakeClock


# =============================================================================
# KEYS
# =============================================================================

def test_key_format(make_plan):
    key = generate_cache_key(validate_plan(make_plan()))
    assert re.fullmatch(r"analysis:[0-9a-f]{16}", key)


def test_key_is_deterministic(make_plan):
    a = generate_cache_key(validate_plan(make_plan()))
    b = generate_cache_key(validate_plan(make_plan()))
    assert a == b


def test_dataset_order_does_not_matter(make_plan):
    ids = ["COPERNICUS/S5P/OFFL/L3_NO2", "COPERNICUS/S5P/OFFL/L3_CO"]
    a = validate_plan(make_plan(dataProduct="air_quality", datasetIds=ids))
    b = validate_plan(make_plan(dataProduct="air_quality", datasetIds=list(reversed(ids))))
    assert generate_cache_key(a) == generate_cache_key(b)


def test_outputs_do_not_affect_key(make_plan):
    a = validate_plan(make_plan(outputs=["map"]))
    b = validate_plan(make_plan(outputs=["timeseries", "statistics"]))
    assert generate_cache_key(a) == generate_cache_key(b)


@pytest.mark.parametrize("override", [
    {"analysisType": "change"},
    {"datasetIds": ["UCSB-CHG/CHIRPS/DAILY"]},
    {"timeRange": {"start": "2024-01-01", "end": "2024-07-01"}},
    {"location": [10.0, 20.0, 11.0, 21.5]},
    {"location": "Tokyo"},
])
def test_identifying_fields_change_key(make_plan, override):
    base = generate_cache_key(validate_plan(make_plan()))
    assert generate_cache_key(validate_plan(make_plan(**override))) != base


def test_normalize_plan_shape(make_plan):
    normalized = normalize_plan(validate_plan(make_plan()))
    assert normalized == {
        "analysisType": "timeseries",
        "datasets": ["ECMWF/ERA5/DAILY"],
        "timeRange": {"start": "2024-01-01", "end": "2024-06-30"},
        "location": [10.0, 20.0, 11.0, 21.0],
    }


def test_explanation_key(make_plan):
    result_key = generate_cache_key(validate_plan(make_plan()))
    key = generate_explanation_cache_key(result_key, "why is it warming?")
    assert re.fullmatch(r"explanation:[0-9a-f]{16}", key)
    assert key != generate_explanation_cache_key(result_key, "what changed?")


def test_parse_cache_key():
    assert parse_cache_key("analysis:0123456789abcdef") == ("analysis", "0123456789abcdef")


# =============================================================================
# STORE
# =============================================================================

def test_get_miss_and_hit():
    store = CacheStore(clock=FakeClock())
    assert store.get("k") is None

    store.set("k", "v")
    assert store.get("k") == "v"
    assert store.get("k") == "v"
    assert store.stats()["totalHits"] == 2


def test_expired_entry_is_a_miss():
    clock = FakeClock()
    store = CacheStore(ttl_seconds=60, clock=clock)
    store.set("k", "v")

    clock.advance(60)
    assert store.has("k")

    clock.advance(1)
    assert not store.has("k")
    assert store.get("k") is None
    assert len(store) == 0


def test_has_does_not_count_hits():
    store = CacheStore(clock=FakeClock())
    store.set("k", "v")
    store.has("k")
    assert store.stats()["totalHits"] == 0


def test_evicts_oldest_at_capacity():
    clock = FakeClock()
    store = CacheStore(max_entries=2, clock=clock)
    store.set("a", 1)
    clock.advance(1)
    store.set("b", 2)
    clock.advance(1)

    # Reads do not refresh insertion age
    store.get("a")
    store.set("c", 3)

    assert not store.has("a")
    assert store.has("b")
    assert store.has("c")
    assert len(store) == 2


def test_overwrite_at_capacity_does_not_evict():
    clock = FakeClock()
    store = CacheStore(max_entries=2, clock=clock)
    store.set("a", 1)
    clock.advance(1)
    store.set("b", 2)
    clock.advance(1)

    store.set("a", 10)

    assert len(store) == 2
    assert store.get("a") == 10
    assert store.get("b") == 2


def test_overwrite_refreshes_age():
    clock = FakeClock()
    store = CacheStore(max_entries=2, clock=clock)
    store.set("a", 1)
    clock.advance(1)
    store.set("b", 2)
    clock.advance(1)
    store.set("a", 10)
    clock.advance(1)

    store.set("c", 3)

    assert store.has("a")
    assert not store.has("b")


def test_eviction_tie_goes_to_first_inserted():
    store = CacheStore(max_entries=2, clock=FakeClock())
    store.set("a", 1)
    store.set("b", 2)
    store.set("c", 3)
    assert not store.has("a")
    assert store.has("b")


def test_delete_and_clear():
    store = CacheStore(clock=FakeClock())
    store.set("a", 1)
    store.set("b", 2)

    assert store.delete("a")
    assert not store.delete("a")

    store.clear()
    assert len(store) == 0


def test_stats():
    clock = FakeClock()
    store = CacheStore(max_entries=5, clock=clock)
    store.set("a", 1)
    clock.advance(10)
    store.set("b", 2)
    store.get("a")
    store.get("a")

    stats = store.stats()

    assert stats["size"] == 2
    assert stats["maxSize"] == 5
    assert stats["totalHits"] == 2
    assert stats["avgHits"] == 1
    assert stats["avgAgeSeconds"] == 5


def test_rejects_zero_capacity():
    with pytest.raises(ValueError):
        CacheStore(max_entries=0)
