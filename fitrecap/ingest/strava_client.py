"""Strava access: per-owner tokens, paginated activity fetch, photos.

Everything here talks to Strava through stravalib. Raw JSON payloads are
returned so the sync layer owns the conversion into ActivityRecords.
"""

import os
import time as time_mod
from datetime import datetime, timedelta, timezone

import requests
from stravalib import Client, exc

from fitrecap.config import setting
from fitrecap.errors import AuthenticationExpired, NotFound, SyncFailed, UpstreamUnavailable
from fitrecap.store import load_owner, save_owner

# Year windows are widened on both sides so activities whose local date is
# in the year but whose UTC instant is not (UTC-12..UTC+14) are still fetched.
YEAR_WINDOW_PADDING = timedelta(days=1)


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------

class StravaRateLimiter:
    """Read budget for one athlete's token, fed by Strava's usage header.

    Strava allows 100 reads per 15-minute window and 1000 per UTC day.
    Close to the window limit the next read waits for the window to roll
    over; close to the daily limit reads are refused until tomorrow.
    """

    WINDOW_S = 15 * 60
    WINDOW_LIMIT = 100
    DAILY_LIMIT = 1000
    WINDOW_HEADROOM = 5
    DAILY_HEADROOM = 50

    def __init__(self, sleep=time_mod.sleep, clock=time_mod.time):
        self.window_used = 0
        self.day_used = 0
        self.pauses = 0
        self._sleep = sleep
        self._clock = clock

    def observe(self, headers):
        """Take usage from an "X-ReadRateLimit-Usage: <window>,<day>" header."""
        usage = headers.get("X-ReadRateLimit-Usage") or headers.get("X-RateLimit-Usage")
        window, _, day = (usage or "").partition(",")
        if window.strip().isdigit() and day.strip().isdigit():
            self.window_used, self.day_used = int(window), int(day)

    def acquire(self, verbose=False):
        """Wait until one more read fits; raise once the day's budget is spent."""
        if self.day_used >= self.DAILY_LIMIT - self.DAILY_HEADROOM:
            raise UpstreamUnavailable(
                f"Strava daily read budget spent ({self.day_used}/{self.DAILY_LIMIT}), "
                f"retry after midnight UTC")

        if self.window_used >= self.WINDOW_LIMIT - self.WINDOW_HEADROOM:
            wait = self.WINDOW_S - int(self._clock()) % self.WINDOW_S + 5
            self.pauses += 1
            if verbose:
                print(f"  RATE LIMIT {self.window_used}/{self.WINDOW_LIMIT} "
                      f"in window, sleeping {wait}s")
            self._sleep(wait)
            self.window_used = 0


# ---------------------------------------------------------------------------
# Token management
# ---------------------------------------------------------------------------

def _app_credentials(config) -> tuple[int, str]:
    strava_cfg = (config or {}).get("strava", {})
    client_id = strava_cfg.get("client_id") or os.environ.get("STRAVA_CLIENT_ID")
    client_secret = strava_cfg.get("client_secret") or os.environ.get("STRAVA_CLIENT_SECRET")
    if not client_id or not client_secret:
        raise AuthenticationExpired(
            "STRAVA_CLIENT_ID and STRAVA_CLIENT_SECRET must be set to refresh tokens"
        )
    return int(client_id), client_secret


def get_valid_token(conn, config, owner_id: str, client_factory=Client) -> str:
    """Return a usable access token for *owner_id*, refreshing it if it expires soon."""
    owner = load_owner(conn, owner_id)
    if owner is None:
        raise NotFound(f"No Strava credentials stored for owner {owner_id!r}")

    margin = setting(config, "strava", "refresh_margin_s")
    if owner.token_expires_at > time_mod.time() + margin:
        return owner.access_token

    if not owner.refresh_token:
        raise AuthenticationExpired(f"No refresh token for owner {owner_id!r}")

    client_id, client_secret = _app_credentials(config)
    try:
        new_tokens = client_factory().refresh_access_token(
            client_id=client_id,
            client_secret=client_secret,
            refresh_token=owner.refresh_token,
        )
    except (exc.Fault, requests.RequestException) as e:
        raise AuthenticationExpired(f"Token refresh failed for owner {owner_id!r}: {e}") from e

    owner.access_token = new_tokens["access_token"]
    owner.refresh_token = new_tokens["refresh_token"]
    owner.token_expires_at = new_tokens["expires_at"]
    save_owner(conn, owner)
    return owner.access_token


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------

class StravaProvider:
    """ActivityProvider backed by an authenticated stravalib Client."""

    def __init__(self, client: Client, config=None, rate_limiter=None, verbose=False):
        self.client = client
        self.per_page = setting(config, "strava", "per_page")
        self.max_pages = setting(config, "strava", "max_pages")
        self.photo_size = setting(config, "strava", "photo_size")
        self.rate_limiter = rate_limiter or StravaRateLimiter()
        self.verbose = verbose

    def _observe_usage(self):
        # stravalib keeps the last response on the protocol's session
        session = getattr(self.client.protocol, "rsession", None)
        response = getattr(session, "last_response", None)
        if response is not None:
            self.rate_limiter.observe(response.headers)

    def _get(self, url: str, **params):
        """One read against the Strava API, inside the rate budget.

        Failures come out as AuthenticationExpired or UpstreamUnavailable.
        """
        self.rate_limiter.acquire(self.verbose)
        try:
            result = self.client.protocol.get(url, **params)
        except exc.AccessUnauthorized as e:
            raise AuthenticationExpired(str(e)) from e
        except (exc.RateLimitExceeded, exc.Fault, requests.RequestException) as e:
            raise UpstreamUnavailable(str(e)) from e
        self._observe_usage()
        return result

    def fetch_activities_in_range(self, after: int, before: int, page: int = 1,
                                  per_page: int | None = None) -> list[dict]:
        """One page of summary activities started between two epoch seconds."""
        return list(self._get(
            "/athlete/activities",
            after=int(after),
            before=int(before),
            page=page,
            per_page=per_page or self.per_page,
        ) or [])

    def iter_year_pages(self, year: int):
        """Yield pages of summary activities for *year* until a short page.

        Pages are requested one after another. Stops after max_pages pages
        even if Strava keeps returning full ones.
        """
        after = datetime(year, 1, 1, tzinfo=timezone.utc) - YEAR_WINDOW_PADDING
        before = datetime(year + 1, 1, 1, tzinfo=timezone.utc) + YEAR_WINDOW_PADDING

        for page in range(1, self.max_pages + 1):
            batch = self.fetch_activities_in_range(
                after.timestamp(), before.timestamp(), page, self.per_page)
            if self.verbose:
                print(f"  PAGE {page}: {len(batch)} activities")
            yield batch
            if len(batch) < self.per_page:
                return
        if self.verbose:
            print(f"  WARN stopped after {self.max_pages} pages")

    def fetch_year(self, year: int) -> list[dict]:
        return [p for batch in self.iter_year_pages(year) for p in batch]

    def fetch_photos(self, activity_id: int) -> list[dict]:
        """Photos for one activity; empty when there are none or Strava fails."""
        try:
            photos = self._get(
                "/activities/{id}/photos",
                id=int(activity_id),
                size=self.photo_size,
                photo_sources="true",
            )
        except SyncFailed as e:
            if self.verbose:
                print(f"    WARN photos fetch failed for {activity_id}: {e}")
            return []

        result = []
        for p in photos or []:
            result.append({
                "photo_id": p.get("unique_id") or p.get("id"),
                "urls": p.get("urls") or {},
                "caption": p.get("caption"),
            })
        return result


def provider_for_owner(conn, config, owner_id: str, verbose=False,
                       client_factory=Client) -> StravaProvider:
    token = get_valid_token(conn, config, owner_id, client_factory=client_factory)
    return StravaProvider(client_factory(access_token=token), config, verbose=verbose)
