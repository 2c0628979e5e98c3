import math

import pytest

from app.core.analytics_engine import (
    active_substances,
    analyze_relapses,
    get_advanced_analytics,
    get_combined_timeline,
    get_operative_rank,
    get_overall_health,
)
from app.core.recovery_data import DAY, HOUR

NOW = 1_700_000_000_000  # Tue 2023-11-14T22:13:20Z


# ── Overall health ──

def test_overall_health_averages_active_substances():
    # cannabis 3 months -> 80, cigarettes halfway 1mo (35) .. 3mo (45) -> 40
    quit_dates = {"cigarettes": NOW - 60 * DAY, "cannabis": NOW - 90 * DAY, "alcohol": None}
    assert get_overall_health(quit_dates, [], now=NOW) == pytest.approx(60.0)


def test_overall_health_with_nothing_active():
    assert get_overall_health({}, now=NOW) == 0
    assert get_overall_health({"cigarettes": None, "alcohol": ""}, now=NOW) == 0


def test_overall_health_applies_relapses():
    quit_dates = {"cannabis": NOW - 90 * DAY}
    relapse = {"substance": "cannabis", "type": "relapse", "timestamp": NOW - DAY,
               "amount": "heavy"}
    assert get_overall_health(quit_dates, [relapse], now=NOW) == 0


def test_active_substances_keeps_canonical_order():
    assert active_substances({"alcohol": NOW, "cigarettes": NOW, "cannabis": None}) == [
        "cigarettes", "alcohol",
    ]


# ── Combined timeline ──

def test_timeline_completed_then_upcoming():
    quit_dates = {"cigarettes": NOW - 2 * HOUR, "cannabis": NOW - 2 * DAY - HOUR}
    items = get_combined_timeline(quit_dates, [], now=NOW)

    assert len(items) == 10
    assert [i["id"] for i in items[:3]] == ["can_day2", "can_day1", "cig_1hr"]
    assert all(i["is_completed"] for i in items[:3])
    assert [i["id"] for i in items[3:7]] == ["cig_8hr", "cig_12hr", "cig_24hr", "can_day3"]
    assert all(not i["is_completed"] for i in items[3:])
    assert items[3]["time_to_event"] == 6 * HOUR
    assert items[3]["substance"] == "cigarettes"
    assert items[6]["substance"] == "cannabis"


def test_timeline_respects_max_items():
    quit_dates = {"alcohol": NOW - 10 * DAY}
    assert len(get_combined_timeline(quit_dates, [], max_items=4, now=NOW)) == 4
    assert get_combined_timeline(quit_dates, [], max_items=0, now=NOW) == []


def test_timeline_empty_without_quit_dates():
    assert get_combined_timeline({}, [], now=NOW) == []


def test_timeline_after_all_milestones():
    items = get_combined_timeline({"cannabis": NOW - 2 * 365 * DAY}, [], now=NOW)
    assert [i["id"] for i in items] == ["can_1yr", "can_6mo", "can_3mo"]


# ── Advanced analytics ──

def test_analytics_uses_default_costs():
    result = get_advanced_analytics({"cigarettes": NOW - 10 * DAY}, [], now=NOW)
    assert result["money_saved"] == pytest.approx(3500.0)
    assert result["life_regained_minutes"] == pytest.approx(2200.0)
    assert result["heartbeats_saved"] == pytest.approx(300000.0)
    assert result["money_saved_formatted"].endswith("3,500.00")
    assert result["life_regained_formatted"] == "1d 12h"


def test_analytics_sums_substances_with_user_costs():
    quit_dates = {"cigarettes": NOW - 2 * DAY, "alcohol": NOW - 4 * DAY}
    result = get_advanced_analytics(quit_dates, [], {"cigarettes": 100, "alcohol": "50"}, now=NOW)
    assert result["money_saved"] == pytest.approx(2 * 100 + 4 * 50)
    assert result["life_regained_minutes"] == pytest.approx(2 * 20 * 11 + 4 * 2 * 15)


@pytest.mark.parametrize("bad", ["abc", float("nan"), float("inf"), -5, "", None])
def test_analytics_never_produces_nan(bad):
    quit_dates = {"cigarettes": NOW - 10 * DAY, "cannabis": NOW - 10 * DAY}
    result = get_advanced_analytics(quit_dates, [], {"cigarettes": bad, "cannabis": 10}, now=NOW)
    assert math.isfinite(result["money_saved"])
    # unusable cost falls back to the default of 350/day
    assert result["money_saved"] == pytest.approx(10 * 350 + 10 * 10)
    assert "nan" not in result["money_saved_formatted"].lower()


def test_analytics_explicit_zero_cost():
    result = get_advanced_analytics({"cannabis": NOW - 3 * DAY}, [], {"cannabis": 0}, now=NOW)
    assert result["money_saved"] == 0
    assert result["life_regained_formatted"] == "0 mins"
    assert result["heartbeats_saved"] == pytest.approx(3000.0)


def test_analytics_future_quit_counts_nothing():
    result = get_advanced_analytics({"alcohol": NOW + DAY}, [], now=NOW)
    assert result["money_saved"] == 0
    assert result["heartbeats_saved"] == 0


def test_analytics_without_active_substances():
    result = get_advanced_analytics({}, [], now=NOW)
    assert result["money_saved"] == 0
    assert result["life_regained_minutes"] == 0
    assert result["life_regained_formatted"] == "0 mins"


# ── Rank ──

@pytest.mark.parametrize("days,rank", [
    (0, "INITIATE"), (6, "INITIATE"), (7, "NOVICE"), (30, "ADEPT"),
    (90, "VETERAN"), (180, "MASTER"), (364, "MASTER"), (365, "LEGENDARY"),
])
def test_operative_rank(days, rank):
    assert get_operative_rank(days) == rank


# ── Relapse analysis ──

RELAPSES = [
    {"substance": "cigarettes", "type": "relapse", "timestamp": "2023-11-12T08:00:00Z",
     "notes": "Stressed at work"},
    {"substance": "cigarettes", "type": "relapse", "timestamp": NOW,
     "notes": "party with friends"},
    {"substance": "cannabis", "type": "relapse", "timestamp": "2023-11-15T14:00:00Z",
     "notes": "bored"},
    {"substance": "cigarettes", "type": "log", "timestamp": NOW, "notes": "stress"},
]


def test_analyze_relapses_distributions():
    result = analyze_relapses(RELAPSES)
    assert result["total_relapses"] == 3

    weekdays = {d["day"]: d["count"] for d in result["by_weekday"]}
    assert [d["day"] for d in result["by_weekday"]][0] == "Sun"
    assert weekdays == {"Sun": 1, "Mon": 0, "Tue": 1, "Wed": 1, "Thu": 0, "Fri": 0, "Sat": 0}

    assert [(p["period"], p["count"]) for p in result["by_time_of_day"]] == [
        ("morning", 1), ("afternoon", 1), ("night", 1),
    ]
    assert result["by_substance"] == {"cigarettes": 2, "cannabis": 1}
    assert {t["trigger"]: t["count"] for t in result["triggers"]} == {
        "stress": 1, "social": 1, "emotional": 1,
    }


def test_analyze_relapses_streaks():
    quit_dates = {"cigarettes": "2023-11-01T00:00:00Z", "cannabis": None}
    streaks = analyze_relapses(RELAPSES, quit_dates)["streaks"]
    assert streaks == {"max_streak": 11, "avg_streak": 7, "total": 2}


def test_analyze_relapses_empty():
    result = analyze_relapses([])
    assert result["total_relapses"] == 0
    assert len(result["by_weekday"]) == 7
    assert result["by_time_of_day"] == []
    assert result["triggers"] == []
    assert result["streaks"] is None
