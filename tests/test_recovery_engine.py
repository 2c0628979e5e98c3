from datetime import date, datetime, timezone

import pytest

from app.core.recovery_data import (
    CIGARETTE_MILESTONES,
    DAY,
    HOUR,
    MINUTE,
    WEEK,
    YEAR,
    Milestone,
    get_all_milestones_sorted,
    get_milestones,
)
from app.core.recovery_engine import (
    compute_progress,
    compute_streak,
    format_duration,
    get_effective_quit_date,
    relapse_impact,
    to_epoch_ms,
)

NOW = 1_700_000_000_000  # 2023-11-14T22:13:20Z


def _relapse(ts, amount=None, substance="cigarettes"):
    return {"substance": substance, "type": "relapse", "timestamp": ts, "amount": amount}


def _m(mid, time, progress):
    return Milestone(mid, time, mid, "test", "", None, ("heart",), progress)


# ── Time normalisation ──

def test_to_epoch_ms_accepts_common_forms():
    assert to_epoch_ms(NOW) == NOW
    assert to_epoch_ms(float(NOW)) == NOW
    assert to_epoch_ms(str(NOW)) == NOW
    assert to_epoch_ms("2023-11-14T22:13:20Z") == NOW
    assert to_epoch_ms("2023-11-14T22:13:20+00:00") == NOW
    assert to_epoch_ms(datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)) == NOW
    assert to_epoch_ms(datetime(2023, 11, 14, 22, 13, 20)) == NOW
    assert to_epoch_ms(date(1970, 1, 2)) == DAY


@pytest.mark.parametrize("value", [None, "", 0, "0", "not a date", float("nan"), True, [1]])
def test_to_epoch_ms_rejects_unusable_values(value):
    assert to_epoch_ms(value) is None


# ── Relapse impact ──

def test_relapse_impact_levels():
    assert relapse_impact({"amount": "light"}) == 0.3
    assert relapse_impact({"amount": "moderate"}) == 0.7
    assert relapse_impact({"amount": "heavy"}) == 1.0
    assert relapse_impact({"amount": "HEAVY "}) == 1.0
    assert relapse_impact({"amount": "a lot"}) == 0.5
    assert relapse_impact({}) == 0.5
    assert relapse_impact({"amount": 3}) == 0.5


def test_heavy_relapse_pushes_three_days():
    t0 = NOW - 30 * DAY
    t1 = NOW - 5 * DAY
    assert get_effective_quit_date(t0, [_relapse(t1, "heavy")], "cigarettes") == t1 + 3 * DAY


def test_light_relapse_pushes_point_nine_days():
    t0 = NOW - 30 * DAY
    t1 = NOW - 5 * DAY
    expected = t1 + int(0.9 * DAY)
    assert get_effective_quit_date(t0, [_relapse(t1, "light")], "cigarettes") == expected


def test_only_latest_relapse_after_quit_counts():
    t0 = NOW - 30 * DAY
    events = [
        _relapse(NOW - 10 * DAY, "heavy"),
        _relapse(NOW - 2 * DAY, "moderate"),
        _relapse(NOW - 20 * DAY, "light"),
    ]
    expected = NOW - 2 * DAY + int(round(0.7 * 3 * DAY))
    assert get_effective_quit_date(t0, events, "cigarettes") == expected


def test_relapses_before_quit_or_other_substance_are_ignored():
    t0 = NOW - 10 * DAY
    events = [
        _relapse(t0 - DAY, "heavy"),
        _relapse(t0, "heavy"),
        _relapse(NOW - DAY, "heavy", substance="alcohol"),
        {"substance": "cigarettes", "type": "log", "timestamp": NOW - DAY},
    ]
    assert get_effective_quit_date(t0, events, "cigarettes") == t0


def test_relapse_with_iso_date_string():
    t0 = NOW - 30 * DAY
    relapse = {"substance": "cigarettes", "type": "relapse",
               "date": "2023-11-10T00:00:00Z", "amount": "heavy"}
    expected = to_epoch_ms("2023-11-10T00:00:00Z") + 3 * DAY
    assert get_effective_quit_date(t0, [relapse], "cigarettes") == expected


def test_effective_quit_date_missing_quit():
    assert get_effective_quit_date(None, [_relapse(NOW)], "cigarettes") is None


# ── Progress ──

def test_inactive_substance_returns_zero_record():
    record = compute_progress(None, "cigarettes", now=NOW)
    assert record["progress"] == 0
    assert record["current_milestone"] is None
    assert record["next_milestone"] is None
    assert record["completed_milestones"] == []


def test_boundary_progress_is_exact_with_custom_catalog():
    catalog = (_m("d7", 7 * DAY, 70), _m("d10", 10 * DAY, 80), _m("d14", 14 * DAY, 90))
    record = compute_progress(NOW - 10 * DAY, "cigarettes", [], now=NOW, milestones=catalog)
    assert record["progress"] == 80
    assert record["current_milestone"]["id"] == "d10"
    assert record["next_milestone"]["time"] == 14 * DAY
    assert record["time_to_next_milestone"] == 4 * DAY


@pytest.mark.parametrize("milestone", CIGARETTE_MILESTONES)
def test_boundary_progress_matches_catalog(milestone):
    record = compute_progress(NOW - milestone.time, "cigarettes", now=NOW)
    assert record["progress"] == milestone.progress
    assert record["current_milestone"]["id"] == milestone.id


def test_interpolates_between_milestones():
    # halfway between 24h (7) and 48h (10)
    record = compute_progress(NOW - 36 * HOUR, "cigarettes", now=NOW)
    assert record["progress"] == pytest.approx(8.5)
    assert record["current_milestone"]["id"] == "cig_24hr"
    assert record["next_milestone"]["id"] == "cig_48hr"


def test_before_first_milestone():
    record = compute_progress(NOW - 10 * MINUTE, "cigarettes", now=NOW)
    assert record["progress"] == 0
    assert record["current_milestone"] is None
    assert record["next_milestone"]["id"] == "cig_20min"
    assert record["time_to_next_milestone"] == 10 * MINUTE


def test_past_last_milestone():
    record = compute_progress(NOW - 20 * YEAR, "cigarettes", now=NOW)
    assert record["progress"] == 100
    assert record["next_milestone"] is None
    assert record["time_to_next_milestone"] is None
    assert record["upcoming_milestones"] == []
    assert len(record["completed_milestones"]) == len(CIGARETTE_MILESTONES)


def test_upcoming_list_is_capped():
    record = compute_progress(NOW - 2 * HOUR, "cigarettes", now=NOW)
    assert len(record["upcoming_milestones"]) == 5
    assert record["upcoming_milestones"][0]["id"] == "cig_8hr"
    assert [m["id"] for m in record["completed_milestones"]] == ["cig_20min", "cig_1hr"]


def test_future_quit_date_is_clamped():
    record = compute_progress(NOW + DAY, "cigarettes", now=NOW)
    assert record["progress"] == 0
    assert record["elapsed_time"] == 0
    assert record["current_milestone"] is None
    assert record["next_milestone"]["id"] == "cig_20min"
    assert record["time_to_next_milestone"] == DAY + 20 * MINUTE
    assert len(record["upcoming_milestones"]) == 5


def test_recent_relapse_can_put_effective_date_in_future():
    record = compute_progress(NOW - 30 * DAY, "cigarettes", [_relapse(NOW - HOUR, "heavy")],
                              now=NOW)
    assert record["progress"] == 0
    assert record["effective_quit_date"] == NOW - HOUR + 3 * DAY
    assert record["quit_date"] == NOW - 30 * DAY


def test_relapse_lowers_progress():
    quit = NOW - 60 * DAY
    clean = compute_progress(quit, "cannabis", now=NOW)
    relapsed = compute_progress(quit, "cannabis", [_relapse(NOW - 10 * DAY, "light", "cannabis")],
                                now=NOW)
    assert relapsed["progress"] < clean["progress"]


def test_progress_is_monotonic_over_time():
    quit = NOW
    last = -1.0
    for hours in range(0, 24 * 400, 37):
        progress = compute_progress(quit, "alcohol", now=quit + hours * HOUR)["progress"]
        assert progress >= last
        assert 0 <= progress <= 100
        last = progress


def test_progress_is_idempotent():
    args = (NOW - 17 * DAY, "cannabis", [_relapse(NOW - 5 * DAY, "light", "cannabis")])
    assert compute_progress(*args, now=NOW) == compute_progress(*args, now=NOW)


def test_unknown_substance_has_empty_catalog():
    assert get_milestones("coffee") == ()
    record = compute_progress(NOW - 10 * DAY, "coffee", now=NOW)
    assert record["progress"] == 0
    assert record["next_milestone"] is None


def test_duplicate_milestone_times_do_not_divide_by_zero():
    catalog = (_m("a", DAY, 10), _m("b", DAY, 20), _m("c", 2 * DAY, 30))
    record = compute_progress(NOW - DAY, "cigarettes", now=NOW, milestones=catalog)
    assert record["progress"] == 20
    assert record["current_milestone"]["id"] == "b"


def test_milestone_dict_omits_empty_optional_fields():
    d = CIGARETTE_MILESTONES[0].to_dict()
    assert d["systems"] == ["heart"]
    assert "warning" not in d


# ── Streak ──

def test_streak_counts_whole_days():
    streak = compute_streak(NOW - 10 * DAY - 5 * HOUR, [], "cigarettes", now=NOW)
    assert streak == {"days": 10, "is_active": True, "effective_date": NOW - 10 * DAY - 5 * HOUR}


def test_streak_uses_effective_date():
    streak = compute_streak(NOW - 30 * DAY, [_relapse(NOW - 5 * DAY, "heavy")], "cigarettes",
                            now=NOW)
    assert streak["days"] == 2
    assert streak["effective_date"] == NOW - 2 * DAY


def test_streak_with_future_effective_date():
    streak = compute_streak(NOW - 30 * DAY, [_relapse(NOW - HOUR, "heavy")], "cigarettes",
                            now=NOW)
    assert streak["days"] == 0
    assert streak["is_active"] is False


def test_streak_without_quit_date():
    assert compute_streak(None, [], "alcohol", now=NOW) == {
        "days": 0, "is_active": False, "effective_date": None,
    }


# ── Display ──

@pytest.mark.parametrize("ms,expected", [
    (None, "Not started"),
    (-1, "Not started"),
    (0, "Just now"),
    (5 * MINUTE, "5 minutes"),
    (1 * MINUTE, "1 minute"),
    (2 * HOUR + 3 * MINUTE, "2h 3m"),
    (3 * DAY, "3 days"),
    (3 * DAY + 4 * HOUR, "3d 4h"),
    (2 * WEEK + 3 * DAY, "2w 3d"),
    (45 * DAY, "1mo 15d"),
    (YEAR + 60 * DAY, "1y 2mo"),
    (2 * YEAR, "2 years"),
])
def test_format_duration(ms, expected):
    assert format_duration(ms) == expected


def test_all_milestones_sorted_by_time():
    merged = get_all_milestones_sorted()
    assert len(merged) == 19 + 16 + 18
    assert [m["time"] for m in merged] == sorted(m["time"] for m in merged)
    assert merged[0]["id"] == "cig_20min"
    assert {m["substance"] for m in merged} == {"cigarettes", "cannabis", "alcohol"}
