"""
Analytics Engine: cross-substance aggregates layered on the recovery engine.

  - Overall health: mean progress over active substances.
  - Combined timeline: last completed + soonest upcoming milestones of all
    active substances.
  - Advanced analytics: money saved, life minutes regained, heartbeats saved
        days = max(0, elapsed / DAY)
        money      += days * cost_per_day
        life_min   += days * usage_per_day * life_minutes_per_unit
        heartbeats += days * usage_per_day * heartbeats_per_unit
    Non-finite intermediates are coerced to 0 before summing.
  - Relapse pattern analysis (weekday, time of day, triggers, streaks).

A substance is active when its quit date parses to a timestamp.
"""

import math
import re
from typing import Optional

import pandas as pd

from app.config import (
    CURRENCY_SYMBOL,
    RANK_DEFAULT,
    RANK_THRESHOLDS,
    SUBSTANCES,
    TIMELINE_COMPLETED_LIMIT,
    TIMELINE_DEFAULT_ITEMS,
    TIMEZONE,
)
from app.core.recovery_data import ANALYTICS_CONFIG, DAY, get_milestones
from app.core.recovery_engine import (
    active_substances,
    compute_progress,
    event_time,
    format_duration,
    get_effective_quit_date,
    now_ms,
    to_epoch_ms,
)


def _finite(value) -> float:
    """Coerce to a finite float; anything else becomes 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


# ── Overall health ───────────────────────────────────────────────────

def get_overall_health(quit_dates: dict, events: Optional[list] = None, now=None) -> float:
    """Average progress of the active substances (0 when none is active)."""
    active = active_substances(quit_dates)
    if not active:
        return 0.0
    now_value = now_ms(now)
    total = sum(
        compute_progress(quit_dates[s], s, events, now=now_value)["progress"]
        for s in active
    )
    return total / len(active)


# ── Combined timeline ────────────────────────────────────────────────

def get_combined_timeline(quit_dates: dict, events: Optional[list] = None,
                          max_items: int = TIMELINE_DEFAULT_ITEMS, now=None) -> list[dict]:
    """
    Milestones of all active substances: up to three most recently
    completed (latest first) followed by upcoming ones (soonest first),
    truncated to max_items.
    """
    now_value = now_ms(now)
    processed = []
    for substance in active_substances(quit_dates):
        effective = get_effective_quit_date(quit_dates[substance], events, substance)
        elapsed = now_value - effective
        for m in get_milestones(substance):
            processed.append({
                **m.to_dict(),
                "substance": substance,
                "is_completed": elapsed >= m.time,
                "time_to_event": m.time - elapsed,
                "actual_time": m.time,
            })

    completed = sorted(
        (m for m in processed if m["is_completed"]),
        key=lambda m: m["actual_time"],
        reverse=True,
    )
    upcoming = sorted(
        (m for m in processed if not m["is_completed"]),
        key=lambda m: m["time_to_event"],
    )

    result = completed[:TIMELINE_COMPLETED_LIMIT] + upcoming
    return result[:max(0, max_items)]


# ── Financial & health analytics ─────────────────────────────────────

def _cost_per_day(substance: str, cost_config: Optional[dict]) -> float:
    """
    User cost when it is a usable number, substance default otherwise
    (absent, empty, unparseable, NaN/inf or negative).
    """
    default = _finite(ANALYTICS_CONFIG[substance]["cost_per_day"])
    raw = (cost_config or {}).get(substance)
    if raw is None or isinstance(raw, bool):
        return default
    try:
        cost = float(raw)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(cost) or cost < 0:
        return default
    return cost


def format_money(amount: float) -> str:
    return f"{CURRENCY_SYMBOL}{amount:,.2f}"


def get_advanced_analytics(quit_dates: dict, events: Optional[list] = None,
                           cost_config: Optional[dict] = None, now=None) -> dict:
    """Money saved, life regained and heartbeats saved across active substances."""
    now_value = now_ms(now)
    money_saved = 0.0
    life_minutes = 0.0
    heartbeats = 0.0

    for substance in active_substances(quit_dates):
        config = ANALYTICS_CONFIG.get(substance)
        if not config:
            continue

        cost = _cost_per_day(substance, cost_config)
        progress = compute_progress(quit_dates[substance], substance, events, now=now_value)
        total_days = max(0.0, _finite(progress.get("elapsed_time")) / DAY)

        units = total_days * _finite(config.get("usage_per_day"))
        money_saved += _finite(total_days * cost)
        life_minutes += _finite(units * _finite(config.get("life_minutes_per_unit")))
        heartbeats += _finite(units * _finite(config.get("heartbeats_per_unit")))

    money_saved = _finite(money_saved)
    life_minutes = _finite(life_minutes)
    heartbeats = _finite(heartbeats)

    return {
        "money_saved": money_saved,
        "life_regained_minutes": life_minutes,
        "heartbeats_saved": heartbeats,
        "money_saved_formatted": format_money(money_saved),
        "life_regained_formatted": (
            format_duration(life_minutes * 60 * 1000) if life_minutes > 0 else "0 mins"
        ),
    }


def get_operative_rank(total_streak_days: int) -> str:
    """Rank label from streak days summed over all substances."""
    for threshold, rank in RANK_THRESHOLDS:
        if total_streak_days >= threshold:
            return rank
    return RANK_DEFAULT


# ── Relapse pattern analysis ─────────────────────────────────────────

WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

DAY_PERIODS = [
    ("morning", "Morning (6-12)"),
    ("afternoon", "Afternoon (12-18)"),
    ("evening", "Evening (18-22)"),
    ("night", "Night (22-6)"),
]

TRIGGER_WORDS = {
    "stress": ["stress", "stressed", "anxious", "anxiety", "work", "pressure"],
    "social": ["party", "friends", "social", "bar", "club", "drinking"],
    "emotional": ["sad", "depressed", "lonely", "bored", "angry", "upset"],
    "habitual": ["habit", "routine", "morning", "after meal", "coffee"],
}


def _day_period(hour: int) -> str:
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 18:
        return "afternoon"
    if 18 <= hour < 22:
        return "evening"
    return "night"


def _relapse_frame(events: Optional[list]) -> pd.DataFrame:
    rows = []
    for ev in events or []:
        if ev.get("type") != "relapse":
            continue
        ts = event_time(ev)
        if ts is None:
            continue
        rows.append({
            "substance": ev.get("substance"),
            "ts": ts,
            "notes": ev.get("notes") or "",
        })
    df = pd.DataFrame(rows, columns=["substance", "ts", "notes"])
    df["ts"] = df["ts"].astype("int64")
    df["time"] = pd.to_datetime(df["ts"], unit="ms", utc=True).dt.tz_convert(TIMEZONE)
    return df


def _streaks_between_relapses(df: pd.DataFrame, quit_dates: Optional[dict]) -> Optional[dict]:
    streaks = []
    for substance in active_substances(quit_dates):
        times = sorted(df.loc[df["substance"] == substance, "ts"].tolist())
        if not times:
            continue
        last = to_epoch_ms(quit_dates[substance])
        for ts in times:
            days = math.floor((ts - last) / DAY)
            if days > 0:
                streaks.append(days)
            last = ts

    if not streaks:
        return None
    return {
        "max_streak": max(streaks),
        "avg_streak": math.floor(sum(streaks) / len(streaks) + 0.5),
        "total": len(streaks),
    }


def analyze_relapses(events: Optional[list], quit_dates: Optional[dict] = None) -> dict:
    """
    Relapse patterns: weekday and time-of-day distribution, per-substance
    counts, trigger categories from notes, and clean streaks between relapses.
    """
    df = _relapse_frame(events)
    if df.empty:
        return {
            "total_relapses": 0,
            "by_weekday": [{"day": d, "count": 0} for d in WEEKDAY_NAMES],
            "by_time_of_day": [],
            "by_substance": {},
            "triggers": [],
            "streaks": None,
        }

    # pandas: Monday=0; shift so Sunday=0
    weekday = (df["time"].dt.dayofweek + 1) % 7
    weekday_counts = weekday.value_counts()
    by_weekday = [
        {"day": name, "count": int(weekday_counts.get(i, 0))}
        for i, name in enumerate(WEEKDAY_NAMES)
    ]

    period_counts = df["time"].dt.hour.map(_day_period).value_counts()
    by_time_of_day = [
        {"period": key, "label": label, "count": int(period_counts.get(key, 0))}
        for key, label in DAY_PERIODS
        if period_counts.get(key, 0) > 0
    ]

    substance_counts = df.loc[df["substance"].isin(SUBSTANCES), "substance"].value_counts()
    by_substance = {s: int(substance_counts[s]) for s in SUBSTANCES if s in substance_counts}

    notes = df["notes"].str.lower()
    trigger_counts = []
    for trigger, words in TRIGGER_WORDS.items():
        pattern = "|".join(re.escape(w) for w in words)
        count = int(notes.str.contains(pattern, regex=True).sum())
        if count > 0:
            trigger_counts.append({"trigger": trigger, "count": count})
    trigger_counts.sort(key=lambda t: t["count"], reverse=True)

    return {
        "total_relapses": int(len(df)),
        "by_weekday": by_weekday,
        "by_time_of_day": by_time_of_day,
        "by_substance": by_substance,
        "triggers": trigger_counts[:4],
        "streaks": _streaks_between_relapses(df, quit_dates),
    }
