"""Composite reads for the recap view: sync/cache, then aggregates, then highlights."""

from fitrecap.analysis.aggregates import (
    counts_by_month,
    counts_by_sport,
    cumulative_monthly_time,
    daily_counts,
    daily_intensity,
    filter_by_sport,
    sport_filter_counts,
    totals_for,
)
from fitrecap.analysis.highlights import attach_photos, compute_highlights
from fitrecap.config import setting
from fitrecap.errors import NotFound, SyncFailed
from fitrecap.ingest.strava_client import provider_for_owner
from fitrecap.ingest.strava_sync import get_or_sync, sync_year
from fitrecap.store import ActivityStore, load_owner


def _provider_factory(conn, config, owner_id, verbose):
    return lambda: provider_for_owner(conn, config, owner_id, verbose=verbose)


def _require_owner(conn, owner_id):
    owner = load_owner(conn, owner_id)
    if owner is None:
        raise NotFound(f"Unknown owner {owner_id!r}")
    return owner


def get_dashboard_data(conn, config, owner_id: str, year: int, sport: str | None = None,
                       photos: bool = False, force_refresh: bool = False,
                       get_provider=None, verbose: bool = False) -> dict:
    """Everything the recap view renders for one owner and year.

    Totals and groupings follow the sport filter; highlights always use the
    full year.
    """
    owner = _require_owner(conn, owner_id)
    store = ActivityStore(conn)
    get_provider = get_provider or _provider_factory(conn, config, owner_id, verbose)

    records = get_or_sync(store, get_provider, owner_id, year,
                          force_refresh=force_refresh, verbose=verbose)
    filtered = filter_by_sport(records, sport)

    highlights = compute_highlights(records, year)
    if photos and highlights:
        try:
            provider = get_provider()
        except SyncFailed as e:
            if verbose:
                print(f"  WARN skipping photos: {e}")
        else:
            attach_photos(
                highlights, provider.fetch_photos,
                size=setting(config, "strava", "photo_size"),
                max_workers=setting(config, "photos", "max_workers"),
                verbose=verbose,
            )

    days = daily_counts(filtered)
    last_synced = store.last_synced_at(owner_id)
    return {
        "owner": owner,
        "year": year,
        "sport": sport or "all",
        "records": filtered,
        "totals": totals_for(filtered),
        "counts_by_sport": counts_by_sport(filtered),
        "counts_by_month": counts_by_month(filtered),
        "cumulative_monthly_time": cumulative_monthly_time(filtered),
        "daily_counts": days,
        "daily_intensity": daily_intensity(days),
        "filter_counts": sport_filter_counts(records),
        "highlights": highlights,
        "last_synced_at": last_synced.isoformat() if last_synced else None,
    }


def trigger_sync(conn, config, owner_id: str, year: int, get_provider=None,
                 verbose: bool = False) -> dict:
    """Refetch *year* from Strava regardless of what is cached."""
    _require_owner(conn, owner_id)
    store = ActivityStore(conn)
    get_provider = get_provider or _provider_factory(conn, config, owner_id, verbose)
    records = sync_year(store, get_provider(), owner_id, year, verbose=verbose)
    return {"synced_count": len(records)}


def dashboard_payload(data: dict) -> dict:
    """JSON-ready version of get_dashboard_data() output."""
    totals = data["totals"]
    owner = data["owner"]
    return {
        "athlete": {"name": owner.athlete_name or "Athlete", "profile": owner.athlete_profile or ""},
        "year": data["year"],
        "sport": data["sport"],
        "activities": [r.to_dict() for r in data["records"]],
        "totals": {
            "distance_m": totals.distance_m,
            "moving_time_s": totals.moving_time_s,
            "elevation_gain_m": totals.elevation_gain_m,
            "count": totals.count,
        },
        "counts_by_sport": data["counts_by_sport"],
        "counts_by_month": {str(k): v for k, v in sorted(data["counts_by_month"].items())},
        "cumulative_monthly_time": data["cumulative_monthly_time"],
        "daily_counts": data["daily_counts"],
        "daily_intensity": data["daily_intensity"],
        "filter_counts": data["filter_counts"],
        "highlights": [h.to_dict() for h in data["highlights"]],
        "last_synced_at": data["last_synced_at"],
    }
