"""Local cache of Strava activities and owner credentials (sqlite).

Year ranges are matched on the local start date string, never on a
timezone-aware instant, so an activity belongs to the year printed on the
athlete's own clock.
"""

import json
from datetime import date, datetime, timedelta, timezone

from fitrecap.models import ActivityRecord, Owner

SPEED_SCALE = 1000

# Columns Strava may change after an activity is first stored.
MUTABLE_COLUMNS = (
    "name", "kudos_count", "average_watts", "max_watts",
    "weighted_average_watts", "data_json", "fetched_at",
)

_ACTIVITY_COLUMNS = (
    "owner_id", "external_id", "name", "type", "sport_type",
    "distance_m", "moving_time_s", "elapsed_time_s", "elevation_gain_m",
    "start_date", "start_date_local", "timezone", "kudos_count",
    "average_speed", "max_speed", "average_heartrate", "max_heartrate",
    "average_watts", "max_watts", "weighted_average_watts",
    "data_json", "fetched_at",
)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def year_bounds(year: int) -> tuple[str, str]:
    return f"{year}-01-01", f"{year + 1}-01-01"


def speed_to_stored(mps: float | None) -> int:
    return int(round((mps or 0) * SPEED_SCALE))


def speed_from_stored(value: int | None) -> float:
    return (value or 0) / SPEED_SCALE


def _round_opt(value):
    return int(round(value)) if value is not None else None


def _to_row(record: ActivityRecord) -> dict:
    """Convert a record into stored units."""
    return {
        "owner_id": record.owner_id,
        "external_id": int(record.external_id),
        "name": record.name or "",
        "type": record.activity_type,
        "sport_type": record.sport_type,
        "distance_m": int(round(record.distance_m or 0)),
        "moving_time_s": int(record.moving_time_s or 0),
        "elapsed_time_s": int(record.elapsed_time_s or 0),
        "elevation_gain_m": int(round(record.elevation_gain_m or 0)),
        "start_date": record.start_time_utc,
        "start_date_local": record.start_time_local,
        "timezone": record.timezone,
        "kudos_count": int(record.kudos_count or 0),
        "average_speed": speed_to_stored(record.average_speed_mps),
        "max_speed": speed_to_stored(record.max_speed_mps),
        "average_heartrate": _round_opt(record.avg_heartrate),
        "max_heartrate": _round_opt(record.max_heartrate),
        "average_watts": _round_opt(record.avg_watts),
        "max_watts": _round_opt(record.max_watts),
        "weighted_average_watts": _round_opt(record.weighted_avg_watts),
        "data_json": json.dumps(record.raw, sort_keys=True) if record.raw is not None else None,
        "fetched_at": record.fetched_at,
    }


def _from_row(row, record_id=None) -> ActivityRecord:
    """Convert a stored row (mapping) back into a record in display units."""
    if record_id is None and "id" in row.keys():
        record_id = row["id"]
    data = row["data_json"]
    return ActivityRecord(
        id=record_id,
        external_id=row["external_id"],
        owner_id=row["owner_id"],
        name=row["name"] or "",
        activity_type=row["type"],
        sport_type=row["sport_type"] or row["type"],
        distance_m=float(row["distance_m"] or 0),
        moving_time_s=row["moving_time_s"] or 0,
        elapsed_time_s=row["elapsed_time_s"] or 0,
        elevation_gain_m=float(row["elevation_gain_m"] or 0),
        start_time_utc=row["start_date"],
        start_time_local=row["start_date_local"],
        timezone=row["timezone"],
        kudos_count=row["kudos_count"] or 0,
        average_speed_mps=speed_from_stored(row["average_speed"]),
        max_speed_mps=speed_from_stored(row["max_speed"]),
        avg_heartrate=row["average_heartrate"],
        max_heartrate=row["max_heartrate"],
        avg_watts=row["average_watts"],
        max_watts=row["max_watts"],
        weighted_avg_watts=row["weighted_average_watts"],
        fetched_at=row["fetched_at"],
        raw=json.loads(data) if data else None,
    )


def as_stored(record: ActivityRecord, record_id=None) -> ActivityRecord:
    """Project a freshly fetched record through the storage transform.

    The result equals what query() would return for the same input.
    """
    return _from_row(_to_row(record), record_id=record_id)


class ActivityStore:
    """Read/write contract over the activities table."""

    def __init__(self, conn):
        self.conn = conn

    def query(self, owner_id: str, year: int) -> list[ActivityRecord]:
        start, end = year_bounds(year)
        rows = self.conn.execute(
            """SELECT * FROM activities
               WHERE owner_id = ? AND start_date_local >= ? AND start_date_local < ?
               ORDER BY start_date_local DESC""",
            (owner_id, start, end),
        ).fetchall()
        return [_from_row(r) for r in rows]

    def has_any(self, owner_id: str, year: int) -> bool:
        start, end = year_bounds(year)
        row = self.conn.execute(
            """SELECT 1 FROM activities
               WHERE owner_id = ? AND start_date_local >= ? AND start_date_local < ?
               LIMIT 1""",
            (owner_id, start, end),
        ).fetchone()
        return row is not None

    def last_synced_at(self, owner_id: str) -> datetime | None:
        row = self.conn.execute(
            "SELECT MAX(fetched_at) FROM activities WHERE owner_id = ?", (owner_id,)
        ).fetchone()
        if row and row[0]:
            return datetime.fromisoformat(row[0])
        return None

    def on_date(self, owner_id: str, day: date) -> list[ActivityRecord]:
        """All activities whose local start falls on *day*, earliest first."""
        start = day.isoformat()
        end = (day + timedelta(days=1)).isoformat()
        rows = self.conn.execute(
            """SELECT * FROM activities
               WHERE owner_id = ? AND start_date_local >= ? AND start_date_local < ?
               ORDER BY start_date_local""",
            (owner_id, start, end),
        ).fetchall()
        return [_from_row(r) for r in rows]

    def get(self, owner_id: str, external_id: int) -> ActivityRecord | None:
        row = self.conn.execute(
            "SELECT * FROM activities WHERE owner_id = ? AND external_id = ?",
            (owner_id, int(external_id)),
        ).fetchone()
        return _from_row(row) if row else None

    def count(self, owner_id: str) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) FROM activities WHERE owner_id = ?", (owner_id,)
        ).fetchone()
        return row[0]

    def upsert(self, record: ActivityRecord) -> tuple[int, str]:
        """Insert a record, or refresh only its mutable columns.

        Returns (local id, status) where status is 'inserted', 'updated' or
        'unchanged'. Identity and measured columns of an existing row are
        never touched.
        """
        values = _to_row(record)
        existing = self.conn.execute(
            f"SELECT id, {', '.join(MUTABLE_COLUMNS)} FROM activities "
            f"WHERE owner_id = ? AND external_id = ?",
            (values["owner_id"], values["external_id"]),
        ).fetchone()

        if existing is None:
            values["fetched_at"] = values["fetched_at"] or utc_now()
            placeholders = ", ".join("?" * len(_ACTIVITY_COLUMNS))
            cursor = self.conn.execute(
                f"INSERT INTO activities ({', '.join(_ACTIVITY_COLUMNS)}) "
                f"VALUES ({placeholders})",
                tuple(values[c] for c in _ACTIVITY_COLUMNS),
            )
            self.conn.commit()
            return cursor.lastrowid, "inserted"

        # no fetch time on the record: keep the stored one
        values["fetched_at"] = values["fetched_at"] or existing["fetched_at"]
        if all(existing[c] == values[c] for c in MUTABLE_COLUMNS):
            return existing["id"], "unchanged"

        assignments = ", ".join(f"{c} = ?" for c in MUTABLE_COLUMNS)
        self.conn.execute(
            f"UPDATE activities SET {assignments} WHERE id = ?",
            tuple(values[c] for c in MUTABLE_COLUMNS) + (existing["id"],),
        )
        self.conn.commit()
        return existing["id"], "updated"

    def record_sync(self, owner_id: str, year: int, synced_count: int):
        self.conn.execute(
            """INSERT INTO sync_state (owner_id, year, last_sync_at, synced_count)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(owner_id, year)
               DO UPDATE SET last_sync_at=excluded.last_sync_at,
                             synced_count=excluded.synced_count""",
            (owner_id, year, utc_now(), synced_count),
        )
        self.conn.commit()

    def sync_state(self, owner_id: str, year: int) -> dict | None:
        row = self.conn.execute(
            "SELECT last_sync_at, synced_count FROM sync_state WHERE owner_id = ? AND year = ?",
            (owner_id, year),
        ).fetchone()
        if not row:
            return None
        return {"last_sync_at": row["last_sync_at"], "synced_count": row["synced_count"]}


# ---------------------------------------------------------------------------
# Owners
# ---------------------------------------------------------------------------

def load_owner(conn, owner_id: str) -> Owner | None:
    row = conn.execute(
        """SELECT id, access_token, token_expires_at, refresh_token,
                  strava_athlete_id, athlete_name, athlete_profile
           FROM owners WHERE id = ?""",
        (owner_id,),
    ).fetchone()
    if not row:
        return None
    return Owner(
        id=row["id"],
        access_token=row["access_token"],
        token_expires_at=row["token_expires_at"],
        refresh_token=row["refresh_token"],
        strava_athlete_id=row["strava_athlete_id"],
        athlete_name=row["athlete_name"],
        athlete_profile=row["athlete_profile"],
    )


def save_owner(conn, owner: Owner):
    conn.execute(
        """INSERT INTO owners (id, strava_athlete_id, access_token, refresh_token,
                               token_expires_at, athlete_name, athlete_profile)
           VALUES (?, ?, ?, ?, ?, ?, ?)
           ON CONFLICT(id)
           DO UPDATE SET access_token=excluded.access_token,
                         refresh_token=excluded.refresh_token,
                         token_expires_at=excluded.token_expires_at,
                         strava_athlete_id=COALESCE(excluded.strava_athlete_id, strava_athlete_id),
                         athlete_name=COALESCE(excluded.athlete_name, athlete_name),
                         athlete_profile=COALESCE(excluded.athlete_profile, athlete_profile),
                         updated_at=datetime('now')""",
        (owner.id, owner.strava_athlete_id, owner.access_token, owner.refresh_token,
         owner.token_expires_at, owner.athlete_name, owner.athlete_profile),
    )
    conn.commit()


def list_owners(conn) -> list[Owner]:
    ids = [r[0] for r in conn.execute("SELECT id FROM owners ORDER BY id").fetchall()]
    return [load_owner(conn, i) for i in ids]
