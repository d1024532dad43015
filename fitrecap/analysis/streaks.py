"""Consecutive-day streaks and time-of-day habits."""

from __future__ import annotations

from datetime import date, timedelta

from fitrecap.models import ActivityRecord, Streak, TimePattern

MORNING_HOURS = range(5, 12)
EVENING_HOURS = range(17, 22)

# A habit label needs more than this share of workouts.
PATTERN_MIN_PCT = 30

EARLY_BIRD = "Early Bird"
NIGHT_OWL = "Night Owl"
ALL_DAY = "All-Day Athlete"


def longest_streak(records: list[ActivityRecord], today: date | None = None) -> Streak:
    """Longest run of consecutive local calendar days with any activity.

    Several activities on one day count once. On ties the earliest run wins.
    """
    if not records:
        today = today or date.today()
        return Streak(0, today, today)

    days = sorted({r.local_date for r in records})

    best_len, best_start, best_end = 1, days[0], days[0]
    run_len, run_start = 1, days[0]

    for prev, cur in zip(days, days[1:]):
        if cur - prev == timedelta(days=1):
            run_len += 1
            if run_len > best_len:
                best_len, best_start, best_end = run_len, run_start, cur
        else:
            run_len, run_start = 1, cur

    return Streak(best_len, best_start, best_end)


def _pct(part: int, total: int) -> int:
    # Half-up, matching how the percentages are displayed.
    return int(part * 100 / total + 0.5)


def workout_time_pattern(records: list[ActivityRecord]) -> TimePattern:
    """Classify the athlete as an early bird, night owl or all-day athlete."""
    if not records:
        return TimePattern("Active", 12, 0)

    hour_counts = [0] * 24
    for r in records:
        hour_counts[r.local_start.hour] += 1

    # max() keeps the first maximum, so ties go to the lowest hour.
    peak_hour = max(range(24), key=lambda h: hour_counts[h])

    total = len(records)
    morning_pct = _pct(sum(hour_counts[h] for h in MORNING_HOURS), total)
    evening_pct = _pct(sum(hour_counts[h] for h in EVENING_HOURS), total)

    if morning_pct > evening_pct and morning_pct > PATTERN_MIN_PCT:
        return TimePattern(EARLY_BIRD, peak_hour, morning_pct)
    if evening_pct > morning_pct and evening_pct > PATTERN_MIN_PCT:
        return TimePattern(NIGHT_OWL, peak_hour, evening_pct)
    return TimePattern(ALL_DAY, peak_hour, max(morning_pct, evening_pct))
