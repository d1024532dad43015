import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

# Strava appends a UTC marker to start_date_local even though the value is
# wall-clock time in the activity's own timezone.
_ZONE_SUFFIX = re.compile(r"(Z|[+-]\d{2}:?\d{2})$")

HIGHLIGHT_CATEGORIES = ("record", "pattern", "social", "fun")


def parse_local_datetime(value: str) -> datetime:
    """Parse a local start time as naive wall-clock time.

    Any trailing zone marker is dropped so the value is never shifted into
    another timezone.
    """
    return datetime.fromisoformat(_ZONE_SUFFIX.sub("", value.strip()))


@dataclass
class ActivityRecord:
    external_id: int
    owner_id: str
    activity_type: str
    start_time_utc: str
    start_time_local: str
    id: Optional[int] = None
    name: str = ""
    sport_type: Optional[str] = None
    distance_m: float = 0.0
    moving_time_s: int = 0
    elapsed_time_s: int = 0
    elevation_gain_m: float = 0.0
    average_speed_mps: float = 0.0
    max_speed_mps: float = 0.0
    avg_heartrate: Optional[float] = None
    max_heartrate: Optional[float] = None
    avg_watts: Optional[float] = None
    max_watts: Optional[float] = None
    weighted_avg_watts: Optional[float] = None
    kudos_count: int = 0
    timezone: Optional[str] = None
    fetched_at: Optional[str] = None
    raw: Optional[dict] = field(default=None, repr=False, compare=False)

    @property
    def sport(self) -> str:
        """Display/filter key: refined sport type, else the raw type."""
        return self.sport_type or self.activity_type

    def is_type(self, name: str) -> bool:
        return self.activity_type == name or self.sport_type == name

    @property
    def local_start(self) -> datetime:
        return parse_local_datetime(self.start_time_local)

    @property
    def local_date(self) -> date:
        return self.local_start.date()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "external_id": self.external_id,
            "name": self.name,
            "type": self.activity_type,
            "sport_type": self.sport,
            "distance_m": self.distance_m,
            "moving_time_s": self.moving_time_s,
            "elapsed_time_s": self.elapsed_time_s,
            "elevation_gain_m": self.elevation_gain_m,
            "start_date": self.start_time_utc,
            "start_date_local": self.start_time_local,
            "timezone": self.timezone,
            "kudos_count": self.kudos_count,
            "average_speed_mps": self.average_speed_mps,
            "max_speed_mps": self.max_speed_mps,
            "avg_heartrate": self.avg_heartrate,
            "max_heartrate": self.max_heartrate,
            "avg_watts": self.avg_watts,
            "max_watts": self.max_watts,
            "weighted_avg_watts": self.weighted_avg_watts,
        }


@dataclass
class Owner:
    id: str
    access_token: str
    token_expires_at: int
    refresh_token: Optional[str] = None
    strava_athlete_id: Optional[int] = None
    athlete_name: Optional[str] = None
    athlete_profile: Optional[str] = None


@dataclass
class Totals:
    distance_m: float = 0.0
    moving_time_s: int = 0
    elevation_gain_m: float = 0.0
    count: int = 0


@dataclass
class Streak:
    length_days: int
    start_date: date
    end_date: date


@dataclass
class TimePattern:
    label: str
    peak_hour: int
    percentage: int


@dataclass
class Highlight:
    """One recap card. Built fresh per view and never persisted."""

    category: str
    title: str
    display_value: str
    icon: str
    color: str
    subtitle: Optional[str] = None
    activity: Optional[ActivityRecord] = None
    photos: Optional[list[str]] = None

    def to_dict(self) -> dict:
        return {
            "type": self.category,
            "title": self.title,
            "value": self.display_value,
            "subtitle": self.subtitle,
            "activity": self.activity.to_dict() if self.activity else None,
            "icon": self.icon,
            "color": self.color,
            "photos": self.photos,
        }
