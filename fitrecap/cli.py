import argparse
import sys
from datetime import date


def _resolve_owner(args, config):
    from fitrecap.config import setting

    owner_id = args.owner or setting(config, "owner", "default")
    if not owner_id:
        print("No owner specified. Use --owner or set owner.default in config.yaml.")
        sys.exit(1)
    return owner_id


def _open_db(config):
    from fitrecap.db import SCHEMA_SQL, _migrate_schema, get_connection

    conn = get_connection(config)
    conn.executescript(SCHEMA_SQL)
    _migrate_schema(conn)
    return conn


def _report_failure(e):
    from fitrecap.errors import user_message

    print(f"\n{user_message(e)}")
    print(f"  ({type(e).__name__}: {e})")
    sys.exit(2)


def cmd_db_init(args):
    from fitrecap.db import init_db
    from fitrecap.config import load_config

    try:
        config = load_config()
    except FileNotFoundError:
        config = None
    init_db(config)


def cmd_auth(args):
    from fitrecap.config import load_config
    from fitrecap.db import get_db_path
    from fitrecap.errors import FitRecapError
    from fitrecap.ingest.strava_auth import authorize_owner

    config = load_config()
    conn = _open_db(config)
    try:
        owner = authorize_owner(conn, config, owner_id=args.owner)
    except FitRecapError as e:
        conn.close()
        _report_failure(e)
    conn.close()

    print(f"\nStored {owner.athlete_name or owner.strava_athlete_id} as owner "
          f"'{owner.id}' in {get_db_path(config)}")
    print(f"Next: fitrecap sync --owner {owner.id}")


def cmd_sync(args):
    from fitrecap.config import load_config
    from fitrecap.dashboard import trigger_sync
    from fitrecap.errors import FitRecapError
    from fitrecap.ingest.strava_client import provider_for_owner
    from fitrecap.ingest.strava_sync import get_or_sync
    from fitrecap.store import ActivityStore, load_owner

    config = load_config()
    owner_id = _resolve_owner(args, config)
    conn = _open_db(config)

    try:
        if args.force:
            result = trigger_sync(conn, config, owner_id, args.year, verbose=args.verbose)
            count = result["synced_count"]
        else:
            if load_owner(conn, owner_id) is None:
                print(f"Unknown owner {owner_id!r}. Run: fitrecap auth")
                sys.exit(1)
            records = get_or_sync(
                ActivityStore(conn),
                lambda: provider_for_owner(conn, config, owner_id, verbose=args.verbose),
                owner_id, args.year, verbose=args.verbose)
            count = len(records)
    except FitRecapError as e:
        conn.close()
        _report_failure(e)

    store = ActivityStore(conn)
    _print_sync_summary(owner_id, args.year, count, store.last_synced_at(owner_id),
                        store.sync_state(owner_id, args.year), forced=args.force)
    conn.close()


def _print_sync_summary(owner_id, year, count, last_synced, state, forced=False):
    prefix = "[FORCED] " if forced else ""
    print(f"\n{prefix}Sync complete for {owner_id} ({year}):")
    print(f"  Activities:    {count}")
    if state:
        print(f"  Last fetch:    {state['last_sync_at']} ({state['synced_count']} activities)")
    if last_synced:
        print(f"  Newest row:    {last_synced.isoformat()}")


def cmd_recap(args):
    from fitrecap.analysis.aggregates import sport_label
    from fitrecap.analysis.formatting import format_distance, format_duration, format_elevation
    from fitrecap.config import load_config
    from fitrecap.dashboard import get_dashboard_data
    from fitrecap.errors import FitRecapError

    config = load_config()
    owner_id = _resolve_owner(args, config)
    conn = _open_db(config)

    try:
        data = get_dashboard_data(conn, config, owner_id, args.year, sport=args.sport,
                                  photos=args.photos, verbose=args.verbose)
    except FitRecapError as e:
        conn.close()
        _report_failure(e)
    conn.close()

    totals = data["totals"]
    label = "" if data["sport"] == "all" else f" - {sport_label(data['sport'])}"
    print(f"\nYour {args.year}{label}")
    print(f"  Workouts:   {totals.count}")
    print(f"  Distance:   {format_distance(totals.distance_m)} mi")
    print(f"  Time:       {format_duration(totals.moving_time_s)}")
    print(f"  Elevation:  {format_elevation(totals.elevation_gain_m)} ft")

    if data["counts_by_sport"]:
        print("\nBy sport:")
        for sport, count in sorted(data["counts_by_sport"].items(), key=lambda kv: -kv[1]):
            print(f"  {sport_label(sport):15s} {count}")

    if not data["highlights"]:
        print("\nNo activities this year.")
        return

    print("\nHighlights:")
    for h in data["highlights"]:
        line = f"  {h.icon} {h.title}: {h.display_value}"
        if h.subtitle:
            line += f" ({h.subtitle})"
        print(line)
        for url in h.photos or []:
            print(f"      {url}")


def cmd_owners(args):
    from fitrecap.config import load_config
    from fitrecap.store import ActivityStore, list_owners

    config = load_config()
    conn = _open_db(config)
    store = ActivityStore(conn)
    owners = list_owners(conn)
    if not owners:
        print("No owners. Run: fitrecap auth")
    for o in owners:
        last = store.last_synced_at(o.id)
        print(f"  {o.id:20s} {o.athlete_name or '':25s} "
              f"{store.count(o.id):5d} activities  last sync {last.isoformat() if last else 'never'}")
    conn.close()


def cmd_review(args):
    from fitrecap.config import load_config, setting
    from fitrecap.review.app import create_app

    config = load_config()
    app = create_app(config)
    app.run(host=setting(config, "review", "host"), port=setting(config, "review", "port"),
            debug=args.debug)


def main():
    parser = argparse.ArgumentParser(prog="fitrecap", description="FitRecap: your year on Strava")
    subparsers = parser.add_subparsers(dest="command")
    this_year = date.today().year

    # db subcommand with its own subcommands
    db_parser = subparsers.add_parser("db", help="Database operations")
    db_sub = db_parser.add_subparsers(dest="db_command")
    db_init = db_sub.add_parser("init", help="Initialize the database schema")
    db_init.set_defaults(func=cmd_db_init)

    auth_parser = subparsers.add_parser("auth", help="Sign in with Strava and store the athlete")
    auth_parser.add_argument("--owner", type=str, help="Owner id to store under (default: Strava athlete id)")
    auth_parser.set_defaults(func=cmd_auth)

    sync_parser = subparsers.add_parser("sync", help="Sync a year of activities from Strava")
    sync_parser.add_argument("--year", type=int, default=this_year, help="Calendar year (default: current)")
    sync_parser.add_argument("--owner", type=str, help="Owner id (default: owner.default in config)")
    sync_parser.add_argument("--force", action="store_true", help="Refetch even if the year is cached")
    sync_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    sync_parser.set_defaults(func=cmd_sync)

    recap_parser = subparsers.add_parser("recap", help="Print the year recap and highlights")
    recap_parser.add_argument("--year", type=int, default=this_year, help="Calendar year (default: current)")
    recap_parser.add_argument("--owner", type=str, help="Owner id (default: owner.default in config)")
    recap_parser.add_argument("--sport", type=str, help="Restrict totals to one sport type (e.g. Ride)")
    recap_parser.add_argument("--photos", action="store_true", help="Fetch photo URLs for highlights")
    recap_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    recap_parser.set_defaults(func=cmd_recap)

    owners_parser = subparsers.add_parser("owners", help="List authenticated athletes")
    owners_parser.set_defaults(func=cmd_owners)

    review_parser = subparsers.add_parser("review", help="Serve the recap JSON API")
    review_parser.add_argument("--debug", action="store_true", help="Flask debug mode")
    review_parser.set_defaults(func=cmd_review)

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)
    if args.command == "db" and not getattr(args, "db_command", None):
        db_parser.print_help()
        sys.exit(1)
    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()
        sys.exit(1)
