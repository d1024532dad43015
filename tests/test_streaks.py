from datetime import date

from fitrecap.analysis.streaks import (
    ALL_DAY,
    EARLY_BIRD,
    NIGHT_OWL,
    longest_streak,
    workout_time_pattern,
)
from fitrecap.models import TimePattern

from conftest import make_record


def _on(*stamps):
    return [make_record(i, start_local=s) for i, s in enumerate(stamps, start=1)]


def test_streak_breaks_on_missing_day():
    streak = longest_streak(_on("2024-03-01T07:00:00Z", "2024-03-02T07:00:00Z",
                                "2024-03-04T07:00:00Z"))
    assert streak.length_days == 2
    assert streak.start_date == date(2024, 3, 1)
    assert streak.end_date == date(2024, 3, 2)


def test_same_day_counts_once():
    streak = longest_streak(_on("2024-03-01T07:00:00Z", "2024-03-01T18:00:00Z",
                                "2024-03-02T07:00:00Z"))
    assert streak.length_days == 2


def test_streak_ignores_input_order():
    streak = longest_streak(_on("2024-05-03T07:00:00Z", "2024-05-01T07:00:00Z",
                                "2024-05-02T07:00:00Z"))
    assert streak.length_days == 3
    assert streak.start_date == date(2024, 5, 1)


def test_tied_streaks_keep_the_earliest():
    streak = longest_streak(_on("2024-01-10T07:00:00Z", "2024-01-11T07:00:00Z",
                                "2024-01-01T07:00:00Z", "2024-01-02T07:00:00Z"))
    assert streak.start_date == date(2024, 1, 1)


def test_streak_crosses_month_boundary():
    streak = longest_streak(_on("2024-02-28T07:00:00Z", "2024-02-29T07:00:00Z",
                                "2024-03-01T07:00:00Z"))
    assert streak.length_days == 3


def test_empty_streak():
    streak = longest_streak([], today=date(2024, 12, 31))
    assert streak.length_days == 0
    assert streak.start_date == streak.end_date == date(2024, 12, 31)


def test_single_activity_is_streak_of_one():
    assert longest_streak(_on("2024-03-01T07:00:00Z")).length_days == 1


def test_early_bird():
    records = _on(*["2024-03-0%dT07:15:00Z" % d for d in range(1, 6)])
    assert workout_time_pattern(records) == TimePattern(EARLY_BIRD, 7, 100)


def test_trailing_zone_marker_is_not_converted():
    pattern = workout_time_pattern(_on("2024-06-01T08:00:00Z"))
    assert pattern.peak_hour == 8


def test_night_owl():
    records = _on("2024-03-01T18:00:00Z", "2024-03-02T18:30:00Z",
                  "2024-03-03T19:00:00Z", "2024-03-04T08:00:00Z")
    pattern = workout_time_pattern(records)
    assert pattern.label == NIGHT_OWL
    assert pattern.percentage == 75
    assert pattern.peak_hour == 18


def test_even_split_is_all_day():
    pattern = workout_time_pattern(_on("2024-03-01T08:00:00Z", "2024-03-02T18:00:00Z"))
    assert pattern.label == ALL_DAY
    assert pattern.percentage == 50


def test_midday_workouts_are_all_day():
    pattern = workout_time_pattern(_on("2024-03-01T03:00:00Z", "2024-03-02T13:00:00Z",
                                       "2024-03-03T14:00:00Z"))
    assert pattern.label == ALL_DAY
    assert pattern.percentage == 0


def test_morning_needs_more_than_threshold():
    # 3 of 10 in the morning is exactly 30%, which is not enough.
    stamps = ["2024-03-0%dT07:00:00Z" % d for d in range(1, 4)]
    stamps += ["2024-04-0%dT13:00:00Z" % d for d in range(1, 8)]
    assert workout_time_pattern(_on(*stamps)).label == ALL_DAY


def test_peak_hour_tie_goes_to_earliest_hour():
    pattern = workout_time_pattern(_on("2024-03-01T09:00:00Z", "2024-03-02T07:00:00Z"))
    assert pattern.peak_hour == 7


def test_empty_pattern():
    assert workout_time_pattern([]) == TimePattern("Active", 12, 0)
