"""Year-in-review highlight cards.

compute_highlights() walks a fixed list of candidates (records, social,
patterns, fun comparisons) and emits a card only when its condition holds.
The "biggest" activity in each record category is the first one with the
maximum value, in input order.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from fitrecap.analysis.formatting import (
    FOOT_SPORTS,
    format_distance,
    format_duration,
    format_elevation,
    format_pace,
    format_speed,
    meters_to_miles,
    round_half_up,
)
from fitrecap.analysis.streaks import EARLY_BIRD, NIGHT_OWL, longest_streak, workout_time_pattern
from fitrecap.models import ActivityRecord, Highlight

EVEREST_M = 8848.86

# (minimum miles, subtitle builder), checked top-down; first match wins.
DISTANCE_COMPARISONS = [
    (2451, lambda miles: f"Coast to coast ({round_half_up(miles / 2451)}x)"),
    (1000, lambda miles: "NYC to Miami and back"),
    (500, lambda miles: "LA to San Francisco (round trip)"),
    (100, lambda miles: f"{round_half_up(miles / 26.2)} marathons"),
]

_PATTERN_STYLE = {
    EARLY_BIRD: ("of workouts before noon", "\U0001F305", "from-yellow-400 to-orange-500"),
    NIGHT_OWL: ("of workouts in the evening", "\U0001F319", "from-indigo-600 to-purple-700"),
}
_ALL_DAY_STYLE = ("workouts spread throughout the day", "☀️", "from-sky-400 to-blue-500")


def _short_date(d) -> str:
    return f"{d:%b} {d.day}"


def _record_card(title, value, activity, icon, color, subtitle=None) -> Highlight:
    return Highlight(
        category="record",
        title=title,
        display_value=value,
        subtitle=subtitle if subtitle is not None else activity.name,
        activity=activity,
        icon=icon,
        color=color,
    )


def _run_subtitle(run: ActivityRecord) -> str:
    pace = format_pace(run.average_speed_mps) if run.sport in FOOT_SPORTS else ""
    return f"{run.name} ({pace} /mi)" if pace else run.name


def compute_highlights(records: list[ActivityRecord], year: int) -> list[Highlight]:
    if not records:
        return []

    highlights: list[Highlight] = []
    rides = [r for r in records if r.is_type("Ride")]
    runs = [r for r in records if r.is_type("Run")]

    # Records

    if rides:
        longest_ride = max(rides, key=lambda r: r.distance_m)
        highlights.append(_record_card(
            "Longest Ride", f"{format_distance(longest_ride.distance_m)} miles",
            longest_ride, "\U0001F6B4", "from-orange-500 to-red-600"))

    if runs:
        longest_run = max(runs, key=lambda r: r.distance_m)
        highlights.append(_record_card(
            "Longest Run", f"{format_distance(longest_run.distance_m)} miles",
            longest_run, "\U0001F3C3", "from-green-500 to-teal-600",
            subtitle=_run_subtitle(longest_run)))

    climbs = [r for r in records if not r.is_type("Snowboard")]
    if climbs:
        biggest_climb = max(climbs, key=lambda r: r.elevation_gain_m)
        if biggest_climb.elevation_gain_m > 0:
            highlights.append(_record_card(
                "Biggest Climb", f"{format_elevation(biggest_climb.elevation_gain_m)} ft",
                biggest_climb, "⛰️", "from-purple-500 to-indigo-600"))

    if rides:
        fastest_ride = max(rides, key=lambda r: r.average_speed_mps)
        highlights.append(_record_card(
            "Fastest Ride", f"{format_speed(fastest_ride.average_speed_mps)} mph",
            fastest_ride, "⚡", "from-yellow-500 to-orange-600"))

    powered = [r for r in rides if r.max_watts and r.max_watts > 0]
    if powered:
        peak_power = max(powered, key=lambda r: r.max_watts)
        highlights.append(_record_card(
            "Peak Power", f"{round_half_up(peak_power.max_watts)} watts",
            peak_power, "⚡", "from-yellow-400 to-amber-600"))

    longest_workout = max(records, key=lambda r: r.moving_time_s)
    highlights.append(_record_card(
        "Longest Workout", format_duration(longest_workout.moving_time_s),
        longest_workout, "⏱️", "from-blue-500 to-cyan-600"))

    # Social

    most_kudos = max(records, key=lambda r: r.kudos_count)
    if most_kudos.kudos_count > 0:
        highlights.append(Highlight(
            category="social",
            title="Most Kudos",
            display_value=f"{most_kudos.kudos_count} kudos",
            subtitle=most_kudos.name,
            activity=most_kudos,
            icon="\U0001F44F",
            color="from-pink-500 to-rose-600",
        ))

    # Patterns

    streak = longest_streak(records)
    if streak.length_days > 1:
        highlights.append(Highlight(
            category="pattern",
            title="Longest Streak",
            display_value=f"{streak.length_days} days",
            subtitle=f"{_short_date(streak.start_date)} - {_short_date(streak.end_date)}",
            icon="\U0001F525",
            color="from-amber-500 to-orange-600",
        ))

    pattern = workout_time_pattern(records)
    subtitle, icon, color = _PATTERN_STYLE.get(pattern.label, _ALL_DAY_STYLE)
    highlights.append(Highlight(
        category="pattern",
        title=pattern.label,
        display_value=f"{pattern.percentage}%",
        subtitle=subtitle,
        icon=icon,
        color=color,
    ))

    # Fun comparisons

    total_elevation = sum(r.elevation_gain_m for r in records)
    everests = total_elevation / EVEREST_M
    if everests >= 0.5:
        if everests >= 1:
            value = f"{everests:.1f}x Everest"
            subtitle = f"{format_elevation(total_elevation)} ft total elevation"
        else:
            value = f"{format_elevation(total_elevation)} ft"
            subtitle = f"{everests * 100:.0f}% of an Everest"
        highlights.append(Highlight(
            category="fun",
            title="Total Climbing",
            display_value=value,
            subtitle=subtitle,
            icon="\U0001F3D4️",
            color="from-slate-500 to-gray-700",
        ))

    total_miles = meters_to_miles(sum(r.distance_m for r in records))
    comparison = next(
        (describe(total_miles) for threshold, describe in DISTANCE_COMPARISONS
         if total_miles >= threshold),
        None,
    )
    if comparison:
        highlights.append(Highlight(
            category="fun",
            title="Total Distance",
            display_value=f"{round_half_up(total_miles):,} miles",
            subtitle=comparison,
            icon="\U0001F5FA️",
            color="from-teal-500 to-cyan-600",
        ))

    total_hours = round_half_up(sum(r.moving_time_s for r in records) / 3600)
    highlights.append(Highlight(
        category="fun",
        title=f"Your {year}",
        display_value=f"{len(records)} workouts",
        subtitle=f"{total_hours} hours of movement",
        icon="\U0001F3C6",
        color="from-strava-orange to-orange-600",
    ))

    return highlights


# ---------------------------------------------------------------------------
# Photos
# ---------------------------------------------------------------------------

def _photo_url(photo: dict, size) -> str | None:
    urls = photo.get("urls") or {}
    return urls.get(str(size)) or next(iter(urls.values()), None)


def attach_photos(highlights: list[Highlight], fetch_photos, size=600,
                  max_workers: int = 4, verbose: bool = False) -> list[Highlight]:
    """Fetch photos for every highlight backed by an activity, concurrently.

    Each fetch fails on its own without affecting the others. URLs are
    attached after all fetches have finished, matched by Strava activity id.
    Highlights are updated in place and returned.
    """
    activity_ids = list(dict.fromkeys(
        h.activity.external_id for h in highlights if h.activity is not None
    ))
    if not activity_ids:
        return highlights

    def fetch(activity_id):
        try:
            photos = fetch_photos(activity_id)
        except Exception as e:
            if verbose:
                print(f"    WARN photos for {activity_id}: {e}")
            return activity_id, []
        urls = [u for u in (_photo_url(p, size) for p in photos or []) if u]
        return activity_id, urls

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        photo_map = {aid: urls for aid, urls in pool.map(fetch, activity_ids) if urls}

    for h in highlights:
        if h.activity is not None and h.activity.external_id in photo_map:
            h.photos = photo_map[h.activity.external_id]
    return highlights
