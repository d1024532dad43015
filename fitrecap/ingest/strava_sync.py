"""Strava sync: decide cache hit vs refetch, and merge fetched activities.

The cache for (owner, year) counts as fresh as soon as it holds one activity
whose local start date is in that year. Anything else goes to Strava, and
every fetched activity is upserted by its Strava id. Upserts are idempotent,
so a sync that fails halfway keeps what it stored and a re-run recovers.
"""

from fitrecap.models import ActivityRecord
from fitrecap.store import as_stored, utc_now, year_bounds


def _num(value, default=0):
    return value if value is not None else default


def extract_record(payload: dict, owner_id: str, fetched_at: str | None = None) -> ActivityRecord:
    """Convert one Strava summary-activity payload into an ActivityRecord."""
    moving = int(max(_num(payload.get("moving_time")), 0))
    elapsed = int(max(_num(payload.get("elapsed_time")), 0))
    return ActivityRecord(
        external_id=int(payload["id"]),
        owner_id=owner_id,
        name=payload.get("name") or "",
        activity_type=payload.get("type") or payload.get("sport_type") or "Workout",
        sport_type=payload.get("sport_type"),
        distance_m=max(float(_num(payload.get("distance"))), 0.0),
        moving_time_s=moving,
        # Strava occasionally reports elapsed < moving for manual entries
        elapsed_time_s=max(elapsed, moving),
        elevation_gain_m=max(float(_num(payload.get("total_elevation_gain"))), 0.0),
        start_time_utc=payload["start_date"],
        start_time_local=payload["start_date_local"],
        timezone=payload.get("timezone"),
        kudos_count=int(_num(payload.get("kudos_count"))),
        average_speed_mps=max(float(_num(payload.get("average_speed"))), 0.0),
        max_speed_mps=max(float(_num(payload.get("max_speed"))), 0.0),
        avg_heartrate=payload.get("average_heartrate"),
        max_heartrate=payload.get("max_heartrate"),
        avg_watts=payload.get("average_watts"),
        max_watts=payload.get("max_watts"),
        weighted_avg_watts=payload.get("weighted_average_watts"),
        fetched_at=fetched_at or utc_now(),
        raw=payload,
    )


def _in_year(record: ActivityRecord, year: int) -> bool:
    start, end = year_bounds(year)
    return start <= record.start_time_local < end


def sync_year(store, provider, owner_id: str, year: int, verbose: bool = False) -> list[ActivityRecord]:
    """Fetch *year* from Strava, upsert its activities, return what was fetched.

    Pages are upserted as they arrive. Activities the padded window returns
    from a neighbouring year are skipped, so they never mark that year as
    cached. The returned records go through the same storage transform as
    store.query(), newest first.
    """
    fetched_at = utc_now()
    records = []
    counts = {"inserted": 0, "updated": 0, "unchanged": 0, "outside year": 0}

    for batch in provider.iter_year_pages(year):
        for payload in batch:
            record = extract_record(payload, owner_id, fetched_at)
            if not _in_year(record, year):
                counts["outside year"] += 1
                continue
            record_id, status = store.upsert(record)
            counts[status] += 1
            records.append(as_stored(record, record_id=record_id))

    store.record_sync(owner_id, year, len(records))

    if verbose:
        print(f"  SYNC {year}: {counts['inserted']} new, {counts['updated']} updated, "
              f"{counts['unchanged']} unchanged, {counts['outside year']} skipped (other year)")

    records.sort(key=lambda r: r.start_time_local, reverse=True)
    return records


def get_or_sync(store, get_provider, owner_id: str, year: int,
                force_refresh: bool = False, verbose: bool = False) -> list[ActivityRecord]:
    """Return the year's activities, from cache when possible.

    *get_provider* is called only when Strava actually has to be contacted,
    so a cache hit never touches credentials or the network.
    """
    if not force_refresh and store.has_any(owner_id, year):
        if verbose:
            print(f"  CACHE hit for {owner_id} {year}")
        return store.query(owner_id, year)

    if verbose:
        reason = "forced refresh" if force_refresh else "cache empty"
        print(f"  CACHE miss for {owner_id} {year} ({reason}), syncing from Strava")
    return sync_year(store, get_provider(), owner_id, year, verbose=verbose)
