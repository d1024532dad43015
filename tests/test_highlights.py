from fitrecap.analysis.formatting import format_distance, format_duration, format_pace
from fitrecap.analysis.highlights import attach_photos, compute_highlights

from conftest import make_record


def _titles(highlights):
    return [h.title for h in highlights]


def test_no_activities_no_highlights():
    assert compute_highlights([], 2024) == []


def test_ride_and_run_without_kudos():
    ride = make_record(1, activity_type="Ride", distance_m=50000.0)
    run = make_record(2, activity_type="Run", distance_m=10000.0)

    highlights = compute_highlights([ride, run], 2024)

    assert _titles(highlights) == [
        "Longest Ride", "Longest Run", "Fastest Ride", "Longest Workout",
        "Early Bird", "Your 2024",
    ]
    assert highlights[0].display_value == "31.1 miles"
    assert highlights[0].activity is ride
    assert highlights[1].subtitle == "Activity 2 (8:56 /mi)"
    assert highlights[-1].display_value == "2 workouts"
    assert highlights[-1].subtitle == "2 hours of movement"


def test_first_maximum_wins():
    first = make_record(1, distance_m=20000.0)
    second = make_record(2, distance_m=20000.0)
    longest = compute_highlights([first, second], 2024)[0]
    assert longest.activity is first


def test_card_order_and_categories():
    records = [
        make_record(1, start_local="2024-03-01T07:00:00Z", distance_m=170000.0,
                    elevation_gain_m=9000.0, kudos_count=12, max_watts=700.4,
                    moving_time_s=30000),
        make_record(2, start_local="2024-03-02T07:00:00Z", activity_type="Run",
                    kudos_count=4),
    ]

    highlights = compute_highlights(records, 2024)

    assert _titles(highlights) == [
        "Longest Ride", "Longest Run", "Biggest Climb", "Fastest Ride", "Peak Power",
        "Longest Workout", "Most Kudos", "Longest Streak", "Early Bird",
        "Total Climbing", "Total Distance", "Your 2024",
    ]
    by_title = {h.title: h for h in highlights}
    assert by_title["Peak Power"].display_value == "700 watts"
    assert by_title["Most Kudos"].display_value == "12 kudos"
    assert by_title["Most Kudos"].category == "social"
    assert by_title["Longest Streak"].display_value == "2 days"
    assert by_title["Longest Streak"].subtitle == "Mar 1 - Mar 2"
    assert by_title["Total Climbing"].display_value == "1.0x Everest"
    assert by_title["Total Distance"].display_value == "112 miles"
    assert by_title["Total Distance"].subtitle == "4 marathons"
    assert by_title["Early Bird"].category == "pattern"


def test_snowboarding_is_not_a_climb():
    board = make_record(1, activity_type="Snowboard", elevation_gain_m=900.0)
    assert "Biggest Climb" not in _titles(compute_highlights([board], 2024))


def test_short_year_has_no_distance_comparison():
    titles = _titles(compute_highlights([make_record(1, distance_m=5000.0)], 2024))
    assert "Total Distance" not in titles
    assert "Total Climbing" not in titles


def test_half_everest_shows_feet():
    record = make_record(1, elevation_gain_m=5000.0)
    climbing = [h for h in compute_highlights([record], 2024) if h.title == "Total Climbing"][0]
    assert climbing.display_value == "16,404 ft"
    assert climbing.subtitle == "57% of an Everest"


def test_formatting():
    assert format_distance(50000) == "31.1"
    assert format_distance(200000) == "124"
    assert format_duration(3600 * 2 + 60 * 5) == "2h 5m"
    assert format_duration(45 * 60) == "45 min"
    assert format_pace(0) == ""
    assert format_pace(3.0) == "8:56"


def test_attach_photos_is_fail_soft():
    ride = make_record(1, distance_m=50000.0)
    run = make_record(2, activity_type="Run")
    highlights = compute_highlights([ride, run], 2024)
    photos = {
        1: [{"photo_id": "a", "urls": {"600": "https://img/a.jpg"}, "caption": None}],
    }

    def fetch(activity_id):
        if activity_id == 2:
            raise RuntimeError("boom")
        return photos.get(activity_id, [])

    attach_photos(highlights, fetch, size=600, max_workers=2)

    by_title = {h.title: h for h in highlights}
    assert by_title["Longest Ride"].photos == ["https://img/a.jpg"]
    assert by_title["Longest Run"].photos is None
    assert by_title["Early Bird"].photos is None


def test_attach_photos_fetches_each_activity_once():
    calls = []

    def fetch(activity_id):
        calls.append(activity_id)
        return []

    # The only ride is longest, fastest and the longest workout.
    highlights = compute_highlights([make_record(1)], 2024)
    attach_photos(highlights, fetch)
    assert calls == [1]
