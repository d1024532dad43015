"""Grouped counts and sums over a set of activities.

All functions are pure and accept records in any order. Months are 0-based
(January = 0) and always come from the local start time.
"""

from __future__ import annotations

from fitrecap.models import ActivityRecord, Totals

ALL_SPORTS = "all"

SPORT_LABELS = {
    "Ride": "Cycling",
    "WeightTraining": "Weightlifting",
    "Run": "Running",
    "Walk": "Walk",
    "Yoga": "Yoga",
    "Snowboard": "Snowboard",
}


def sport_label(sport: str) -> str:
    return SPORT_LABELS.get(sport, sport)


def totals_for(records: list[ActivityRecord]) -> Totals:
    totals = Totals()
    for r in records:
        totals.distance_m += r.distance_m
        totals.moving_time_s += r.moving_time_s
        totals.elevation_gain_m += r.elevation_gain_m
        totals.count += 1
    return totals


def counts_by_sport(records: list[ActivityRecord]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for r in records:
        counts[r.sport] = counts.get(r.sport, 0) + 1
    return counts


def counts_by_month(records: list[ActivityRecord]) -> dict[int, int]:
    counts: dict[int, int] = {}
    for r in records:
        month = r.local_start.month - 1
        counts[month] = counts.get(month, 0) + 1
    return counts


def monthly_moving_time(records: list[ActivityRecord]) -> list[int]:
    """Moving seconds per month, 12 entries."""
    per_month = [0] * 12
    for r in records:
        per_month[r.local_start.month - 1] += r.moving_time_s
    return per_month


def cumulative_monthly_time(records: list[ActivityRecord]) -> list[int]:
    """Running total of moving seconds: entry i covers months 0..i."""
    cumulative = []
    total = 0
    for seconds in monthly_moving_time(records):
        total += seconds
        cumulative.append(total)
    return cumulative


def filter_by_sport(records: list[ActivityRecord], sport: str | None) -> list[ActivityRecord]:
    if not sport or sport == ALL_SPORTS:
        return list(records)
    return [r for r in records if r.sport == sport]


def sport_filter_counts(records: list[ActivityRecord]) -> dict[str, int]:
    """Counts for the sport filter pills, including an 'all' entry."""
    return {ALL_SPORTS: len(records), **counts_by_sport(records)}


def daily_counts(records: list[ActivityRecord]) -> dict[str, int]:
    """Activity count per local calendar date (YYYY-MM-DD)."""
    counts: dict[str, int] = {}
    for r in records:
        day = r.local_date.isoformat()
        counts[day] = counts.get(day, 0) + 1
    return counts


def intensity_level(count: int, max_count: int) -> int:
    """Heatmap shade 0..4 for a day, relative to the busiest day."""
    if count <= 0:
        return 0
    ratio = count / max(max_count, 1)
    if ratio <= 0.25:
        return 1
    if ratio <= 0.5:
        return 2
    if ratio <= 0.75:
        return 3
    return 4


def daily_intensity(counts: dict[str, int]) -> dict[str, int]:
    """Heatmap shade per day, scaled to the busiest day in *counts*."""
    busiest = max(counts.values(), default=0)
    return {day: intensity_level(n, busiest) for day, n in counts.items()}
