import pytest

from fitrecap.errors import SyncFailed, UpstreamUnavailable
from fitrecap.ingest.strava_sync import extract_record, get_or_sync, sync_year

from conftest import OWNER_ID, FakeProvider, make_payload, make_record


def _never_called():
    raise AssertionError("provider must not be created on a cache hit")


def test_cache_hit_never_touches_provider(store):
    store.upsert(make_record(1, start_local="2024-02-10T07:00:00Z"))

    records = get_or_sync(store, _never_called, OWNER_ID, 2024, force_refresh=False)

    assert [r.external_id for r in records] == [1]


def test_cache_miss_fetches_and_stores(store):
    provider = FakeProvider(pages=[[make_payload(10), make_payload(11, "2024-06-02T08:00:00Z")]])

    records = get_or_sync(store, lambda: provider, OWNER_ID, 2024)

    assert provider.page_calls == 1
    assert [r.external_id for r in records] == [11, 10]
    assert store.has_any(OWNER_ID, 2024)
    assert store.sync_state(OWNER_ID, 2024)["synced_count"] == 2


def test_force_refresh_bypasses_cache(store):
    store.upsert(make_record(1))
    provider = FakeProvider(pages=[[make_payload(1, kudos_count=42)]])

    records = get_or_sync(store, lambda: provider, OWNER_ID, 2024, force_refresh=True)

    assert provider.page_calls == 1
    assert records[0].kudos_count == 42
    assert store.get(OWNER_ID, 1).kudos_count == 42


def test_fetched_records_match_stored_projection(store):
    provider = FakeProvider(pages=[[
        make_payload(10),
        make_payload(11, "2024-09-15T17:45:00Z", type="Run", sport_type="TrailRun",
                     average_speed=3.1337, average_watts=None, max_watts=None),
    ]])

    fetched = sync_year(store, provider, OWNER_ID, 2024)

    assert fetched == store.query(OWNER_ID, 2024)


def test_resync_is_idempotent(store, conn):
    pages = [[make_payload(10), make_payload(11, "2024-06-02T08:00:00Z")]]
    sync_year(store, FakeProvider(pages=pages), OWNER_ID, 2024)
    sync_year(store, FakeProvider(pages=pages), OWNER_ID, 2024)

    assert conn.execute("SELECT COUNT(*) FROM activities").fetchone()[0] == 2


def test_failed_page_keeps_earlier_pages(store):
    provider = FakeProvider(
        pages=[[make_payload(1)], [make_payload(2, "2024-06-03T08:00:00Z")]],
        fail_on_page=2,
        error=UpstreamUnavailable("HTTP 503"),
    )

    with pytest.raises(SyncFailed):
        get_or_sync(store, lambda: provider, OWNER_ID, 2024)

    assert store.get(OWNER_ID, 1) is not None
    assert store.get(OWNER_ID, 2) is None
    assert store.sync_state(OWNER_ID, 2024) is None


def test_activities_outside_local_year_are_not_stored(store):
    provider = FakeProvider(pages=[[
        make_payload(1, "2023-12-31T22:00:00Z"),
        make_payload(2, "2024-01-01T06:00:00Z"),
        make_payload(3, "2025-01-01T09:00:00Z"),
    ]])

    records = sync_year(store, provider, OWNER_ID, 2024)

    assert [r.external_id for r in records] == [2]
    assert store.get(OWNER_ID, 1) is None
    assert store.get(OWNER_ID, 3) is None
    assert store.sync_state(OWNER_ID, 2024)["synced_count"] == 1


def test_syncing_one_year_leaves_previous_year_uncached(store):
    edge = FakeProvider(pages=[[
        make_payload(1, "2024-12-31T09:00:00Z"),
        make_payload(2, "2025-02-01T09:00:00Z"),
    ]])
    get_or_sync(store, lambda: edge, OWNER_ID, 2025)

    full_2024 = FakeProvider(pages=[[
        make_payload(10 + i, f"2024-0{i + 1}-15T08:00:00Z") for i in range(7)
    ] + [make_payload(1, "2024-12-31T09:00:00Z")]])
    records = get_or_sync(store, lambda: full_2024, OWNER_ID, 2024)

    assert full_2024.page_calls == 1
    assert len(records) == 8
    assert records[0].external_id == 1


def test_extract_record_converts_payload():
    record = extract_record(
        make_payload(5, moving_time=4000, elapsed_time=3500, kudos_count=None,
                     sport_type=None),
        OWNER_ID, "2024-12-01T00:00:00+00:00")

    assert record.external_id == 5
    assert record.elapsed_time_s == 4000
    assert record.kudos_count == 0
    assert record.sport == "Ride"
    assert record.start_time_local == "2024-06-01T08:00:00Z"
    assert record.raw["id"] == 5
