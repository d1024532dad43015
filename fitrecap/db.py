import sqlite3
from pathlib import Path

SCHEMA_SQL = """\
-- Authenticated athletes (one per Strava account)
CREATE TABLE IF NOT EXISTS owners (
    id                  TEXT PRIMARY KEY,
    strava_athlete_id   INTEGER UNIQUE,
    access_token        TEXT NOT NULL,
    refresh_token       TEXT,
    token_expires_at    INTEGER NOT NULL,
    athlete_name        TEXT,
    athlete_profile     TEXT,
    created_at          TEXT DEFAULT (datetime('now')),
    updated_at          TEXT DEFAULT (datetime('now'))
);

-- Cached Strava activities (one row per external id per owner)
CREATE TABLE IF NOT EXISTS activities (
    id                      INTEGER PRIMARY KEY,
    owner_id                TEXT NOT NULL REFERENCES owners(id),
    external_id             INTEGER NOT NULL,
    name                    TEXT NOT NULL DEFAULT '',
    type                    TEXT NOT NULL,
    sport_type              TEXT,
    distance_m              INTEGER,
    moving_time_s           INTEGER,
    elapsed_time_s          INTEGER,
    elevation_gain_m        INTEGER,
    start_date              TEXT NOT NULL,
    start_date_local        TEXT NOT NULL,
    timezone                TEXT,
    kudos_count             INTEGER,
    average_speed           INTEGER,    -- m/s * 1000
    max_speed               INTEGER,    -- m/s * 1000
    average_heartrate       INTEGER,
    max_heartrate           INTEGER,
    average_watts           INTEGER,
    max_watts               INTEGER,
    weighted_average_watts  INTEGER,
    data_json               TEXT,
    fetched_at              TEXT DEFAULT (datetime('now')),
    UNIQUE (owner_id, external_id)
);

-- Sync bookkeeping per owner and year
CREATE TABLE IF NOT EXISTS sync_state (
    id                  INTEGER PRIMARY KEY,
    owner_id            TEXT NOT NULL REFERENCES owners(id),
    year                INTEGER NOT NULL,
    last_sync_at        TEXT,
    synced_count        INTEGER,
    UNIQUE (owner_id, year)
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_activities_owner_local ON activities(owner_id, start_date_local);
CREATE INDEX IF NOT EXISTS idx_activities_owner_fetched ON activities(owner_id, fetched_at);
"""

DEFAULT_DB_PATH = Path.home() / "fitrecap" / "data" / "fitrecap.db"


def get_db_path(config=None):
    """Resolve the database path from config or fall back to default."""
    if config and "paths" in config and "db" in config["paths"]:
        return Path(config["paths"]["db"])
    return DEFAULT_DB_PATH


def get_connection(config=None):
    """Return a sqlite3 connection using the configured db path."""
    db_path = get_db_path(config)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def _migrate_schema(conn):
    """Add columns that may be missing from existing databases."""
    migrations = [
        ("activities", "timezone", "TEXT"),
        ("activities", "weighted_average_watts", "INTEGER"),
        ("owners", "athlete_profile", "TEXT"),
    ]

    existing = {}
    for table, col, col_type in migrations:
        if table not in existing:
            rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
            existing[table] = {r[1] for r in rows}
        if col not in existing[table]:
            conn.execute(f"ALTER TABLE {table} ADD COLUMN {col} {col_type}")

    conn.commit()


def init_db(config=None, verbose=True):
    """Create all tables and indexes."""
    conn = get_connection(config)
    conn.executescript(SCHEMA_SQL)
    _migrate_schema(conn)
    conn.close()
    db_path = get_db_path(config)
    if verbose:
        print(f"Database initialized at {db_path}")
    return db_path
