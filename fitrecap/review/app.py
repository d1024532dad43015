from datetime import date, datetime

from flask import Flask, jsonify, request

from fitrecap.config import load_config, setting
from fitrecap.dashboard import dashboard_payload, get_dashboard_data, trigger_sync
from fitrecap.db import SCHEMA_SQL, _migrate_schema, get_connection
from fitrecap.errors import NEEDS_SIGN_IN, FitRecapError, NotFound, user_message
from fitrecap.ingest.strava_client import provider_for_owner
from fitrecap.store import ActivityStore


def create_app(config=None, provider_factory=None):
    app = Flask(__name__)

    if config is None:
        config = load_config()
    app.config["FITRECAP"] = config
    provider_factory = provider_factory or provider_for_owner

    def get_db():
        conn = get_connection(config)
        conn.executescript(SCHEMA_SQL)
        _migrate_schema(conn)
        return conn

    # ── Helpers ──────────────────────────────────────────────────────

    def _owner_id():
        owner_id = request.args.get("owner") or setting(config, "owner", "default")
        if not owner_id:
            raise NotFound("No owner given and no default owner configured")
        return owner_id

    def _year(value):
        try:
            return int(value) if value else date.today().year
        except (TypeError, ValueError):
            return None

    def _lazy_provider(conn, owner_id):
        return lambda: provider_factory(conn, config, owner_id)

    @app.errorhandler(FitRecapError)
    def handle_error(e):
        if isinstance(e, NotFound):
            status = 404
        elif e.category == NEEDS_SIGN_IN:
            status = 401
        else:
            status = 502
        return jsonify({"error": user_message(e), "category": e.category, "detail": str(e)}), status

    # ── Routes ───────────────────────────────────────────────────────

    @app.route("/api/dashboard")
    def api_dashboard():
        year = _year(request.args.get("year"))
        if year is None:
            return jsonify({"error": "year must be an integer"}), 400
        owner_id = _owner_id()
        conn = get_db()
        try:
            data = get_dashboard_data(
                conn, config, owner_id, year,
                sport=request.args.get("sport"),
                photos=request.args.get("photos") == "1",
                get_provider=_lazy_provider(conn, owner_id),
            )
            return jsonify(dashboard_payload(data))
        finally:
            conn.close()

    @app.route("/api/activities/sync", methods=["POST"])
    def api_sync():
        body = request.get_json(silent=True) or {}
        year = _year(body.get("year"))
        if year is None:
            return jsonify({"error": "year must be an integer"}), 400
        owner_id = _owner_id()
        conn = get_db()
        try:
            result = trigger_sync(conn, config, owner_id, year,
                                  get_provider=_lazy_provider(conn, owner_id))
        finally:
            conn.close()
        count = result["synced_count"]
        return jsonify({
            "success": True,
            "count": count,
            "message": f"Synced {count} activities",
        })

    @app.route("/api/activities/<int:activity_id>/photos")
    def api_photos(activity_id):
        owner_id = _owner_id()
        conn = get_db()
        try:
            provider = provider_factory(conn, config, owner_id)
            photos = provider.fetch_photos(activity_id)
        finally:
            conn.close()
        return jsonify(photos)

    @app.route("/api/day/<date_str>")
    def api_day(date_str):
        try:
            day = datetime.strptime(date_str, "%Y-%m-%d").date()
        except ValueError:
            return jsonify({"error": "date must be YYYY-MM-DD"}), 400
        owner_id = _owner_id()
        conn = get_db()
        try:
            records = ActivityStore(conn).on_date(owner_id, day)
        finally:
            conn.close()
        return jsonify({"date": date_str, "activities": [r.to_dict() for r in records]})

    return app
