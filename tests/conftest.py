import time

import pytest

from fitrecap.db import SCHEMA_SQL, get_connection
from fitrecap.models import ActivityRecord, Owner
from fitrecap.store import ActivityStore, save_owner

OWNER_ID = "athlete-1"


class FakeProvider:
    """In-memory ActivityProvider: serves canned pages and photos."""

    def __init__(self, pages=None, photos=None, fail_on_page=None, error=None):
        self.pages = pages or []
        self.photos = photos or {}
        self.fail_on_page = fail_on_page
        self.error = error
        self.page_calls = 0
        self.photo_calls = []

    def iter_year_pages(self, year):
        for number, batch in enumerate(self.pages, start=1):
            self.page_calls += 1
            if number == self.fail_on_page:
                raise self.error
            yield batch

    def fetch_photos(self, activity_id):
        self.photo_calls.append(activity_id)
        value = self.photos.get(activity_id, [])
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def config(tmp_path):
    return {
        "paths": {"db": str(tmp_path / "fitrecap.db")},
        "strava": {"client_id": "1234", "client_secret": "shh", "per_page": 100,
                   "max_pages": 50, "refresh_margin_s": 300, "photo_size": 600},
        "photos": {"max_workers": 2},
        "owner": {"default": OWNER_ID},
    }


@pytest.fixture
def conn(config):
    conn = get_connection(config)
    conn.executescript(SCHEMA_SQL)
    save_owner(conn, Owner(
        id=OWNER_ID,
        access_token="token-abc",
        refresh_token="refresh-abc",
        token_expires_at=int(time.time()) + 3600,
        strava_athlete_id=99,
        athlete_name="Sam Rider",
    ))
    yield conn
    conn.close()


@pytest.fixture
def store(conn):
    return ActivityStore(conn)


def make_payload(activity_id, start_local="2024-06-01T08:00:00Z", **overrides):
    payload = {
        "id": activity_id,
        "name": f"Activity {activity_id}",
        "type": "Ride",
        "sport_type": "Ride",
        "distance": 20000.4,
        "moving_time": 3600,
        "elapsed_time": 3900,
        "total_elevation_gain": 150.2,
        "start_date": start_local.replace("T08", "T15"),
        "start_date_local": start_local,
        "timezone": "(GMT-08:00) America/Los_Angeles",
        "kudos_count": 3,
        "average_speed": 5.556,
        "max_speed": 12.3,
        "average_heartrate": 141.6,
        "max_heartrate": 172.0,
        "average_watts": 180.4,
        "max_watts": 612.0,
        "weighted_average_watts": 195.0,
    }
    payload.update(overrides)
    return payload


def make_record(external_id=1, start_local="2024-06-01T08:00:00Z", activity_type="Ride",
                sport_type=None, **fields):
    values = {
        "name": f"Activity {external_id}",
        "distance_m": 10000.0,
        "moving_time_s": 3600,
        "elapsed_time_s": 3600,
        "elevation_gain_m": 0.0,
        "average_speed_mps": 3.0,
        "max_speed_mps": 6.0,
        "kudos_count": 0,
        "fetched_at": "2024-12-01T10:00:00+00:00",
    }
    values.update(fields)
    return ActivityRecord(
        external_id=external_id,
        owner_id=OWNER_ID,
        activity_type=activity_type,
        sport_type=sport_type or activity_type,
        start_time_utc=start_local,
        start_time_local=start_local,
        **values,
    )


@pytest.fixture
def provider():
    return FakeProvider()
