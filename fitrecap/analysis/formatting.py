"""Display strings for distances, durations, speeds and paces (US units)."""

import math

METERS_PER_MILE = 1609.34
METERS_TO_FEET = 3.28084
MPS_TO_MPH = 2.23694

# Sports shown as pace (min/mile) rather than speed.
FOOT_SPORTS = {"Run", "TrailRun", "VirtualRun", "Walk", "Hike"}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def meters_to_miles(meters: float) -> float:
    return meters / METERS_PER_MILE


def format_distance(meters: float) -> str:
    """Miles with one decimal, or whole miles with separators from 100 up."""
    miles = meters_to_miles(meters)
    if miles >= 100:
        return f"{round_half_up(miles):,}"
    return f"{miles:.1f}"


def format_duration(seconds: float) -> str:
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes} min"


def format_elevation(meters: float) -> str:
    return f"{round_half_up(meters * METERS_TO_FEET):,}"


def format_speed(meters_per_second: float) -> str:
    return f"{meters_per_second * MPS_TO_MPH:.1f}"


def format_pace(meters_per_second: float) -> str:
    """Pace as M:SS per mile; empty when the athlete did not move."""
    if not meters_per_second or meters_per_second <= 0:
        return ""
    total = round_half_up(METERS_PER_MILE / meters_per_second)
    m, s = divmod(total, 60)
    return f"{m}:{s:02d}"
