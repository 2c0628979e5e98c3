"""
Recovery Engine: relapse-adjusted progress along a substance's milestone catalog.

Pipeline per substance:
  quit_date + relapse events --> effective quit date --> elapsed time
  elapsed time + milestone catalog --> interpolated progress record

Relapse model:
  Only the most recent relapse after the quit date counts. It moves the
  effective quit date to
      relapse_time + impact * RELAPSE_PUSHBACK_DAYS
  with impact light 0.3 / moderate 0.7 / heavy 1.0 / other 0.5.

Progress model:
  current = last milestone with time <= elapsed
  next    = first milestone with time > elapsed
  progress = current.progress
           + (elapsed - current.time) / (next.time - current.time)
             * (next.progress - current.progress)
  capped at next.progress, clamped to [0, 100].

All functions are pure given `now`. Times are epoch milliseconds; inputs
may also be ISO strings, datetimes or dates.
"""

import math
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from app.config import (
    RELAPSE_DEFAULT_IMPACT,
    RELAPSE_IMPACT,
    RELAPSE_PUSHBACK_DAYS,
    SUBSTANCES,
    UPCOMING_MILESTONE_LIMIT,
)
from app.core.recovery_data import DAY, get_milestones

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ── Time normalisation ───────────────────────────────────────────────

def to_epoch_ms(value) -> Optional[int]:
    """
    Normalise a time value to epoch milliseconds.
    Accepts int/float ms, ISO-8601 strings (trailing 'Z' allowed), digit
    strings, datetimes (naive = UTC) and dates (midnight UTC).
    Falsy or unparseable values return None.
    """
    if not value or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return int(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return (value - _EPOCH) // timedelta(milliseconds=1)
    if isinstance(value, date):
        return to_epoch_ms(datetime(value.year, value.month, value.day, tzinfo=timezone.utc))
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return to_epoch_ms(int(text))
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_epoch_ms(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def now_ms(now=None) -> int:
    """Resolve the evaluation instant; wall clock when `now` is not given."""
    resolved = to_epoch_ms(now)
    if resolved is None:
        return to_epoch_ms(datetime.now(timezone.utc))
    return resolved


def active_substances(quit_dates: Optional[dict]) -> list[str]:
    """Substances with a usable quit date, in canonical order."""
    if not quit_dates:
        return []
    return [s for s in SUBSTANCES if to_epoch_ms(quit_dates.get(s)) is not None]


def event_time(event: dict) -> Optional[int]:
    """Event timestamp in ms (`timestamp`, falling back to `date`)."""
    ts = to_epoch_ms(event.get("timestamp"))
    if ts is None:
        ts = to_epoch_ms(event.get("date"))
    return ts


# ── Relapse impact ───────────────────────────────────────────────────

def relapse_impact(relapse: dict) -> float:
    """Severity multiplier (0.3-1.0) from the qualitative `amount` field."""
    amount = relapse.get("amount")
    if isinstance(amount, str):
        return RELAPSE_IMPACT.get(amount.strip().lower(), RELAPSE_DEFAULT_IMPACT)
    return RELAPSE_DEFAULT_IMPACT


def get_effective_quit_date(original_quit_date, relapse_events: Optional[list],
                            substance: str) -> Optional[int]:
    """
    Quit date pushed forward by the latest relapse of this substance.
    Relapses at or before the original quit date are ignored; earlier
    relapses in the same streak are superseded by the latest one.
    """
    quit_ms = to_epoch_ms(original_quit_date)
    if quit_ms is None:
        return None
    if not relapse_events:
        return quit_ms

    latest = None
    latest_ts = None
    for ev in relapse_events:
        if ev.get("substance") != substance or ev.get("type") != "relapse":
            continue
        ts = event_time(ev)
        if ts is None or ts <= quit_ms:
            continue
        if latest_ts is None or ts > latest_ts:
            latest, latest_ts = ev, ts

    if latest is None:
        return quit_ms

    pushback_ms = relapse_impact(latest) * RELAPSE_PUSHBACK_DAYS * DAY
    return int(round(latest_ts + pushback_ms))


# ── Progress ─────────────────────────────────────────────────────────

def _milestone_dict(m) -> Optional[dict]:
    return m.to_dict() if m is not None else None


def _empty_progress() -> dict:
    return {
        "progress": 0.0,
        "current_milestone": None,
        "next_milestone": None,
        "elapsed_time": 0,
        "quit_date": None,
        "effective_quit_date": None,
        "time_to_next_milestone": None,
        "completed_milestones": [],
        "upcoming_milestones": [],
    }


def compute_progress(
    quit_date,
    substance: str,
    relapse_events: Optional[list] = None,
    now=None,
    milestones: Optional[tuple] = None,
) -> dict:
    """
    Compute the recovery progress record for one substance.

    Returns dict with progress (0-100), current/next milestone, elapsed
    time (ms), effective quit date, time to next milestone and the
    completed / upcoming (max 5) milestone lists.
    """
    quit_ms = to_epoch_ms(quit_date)
    if quit_ms is None:
        return _empty_progress()

    catalog = tuple(milestones) if milestones is not None else get_milestones(substance)
    now_value = now_ms(now)
    effective = get_effective_quit_date(quit_ms, relapse_events, substance)
    elapsed = now_value - effective

    if elapsed < 0:
        first = catalog[0] if catalog else None
        result = _empty_progress()
        result.update({
            "next_milestone": _milestone_dict(first),
            "quit_date": quit_ms,
            "effective_quit_date": effective,
            "time_to_next_milestone": (first.time - elapsed) if first else None,
            "upcoming_milestones": [m.to_dict() for m in catalog[:UPCOMING_MILESTONE_LIMIT]],
        })
        return result

    current = None
    nxt = None
    progress = 0.0
    for i, m in enumerate(catalog):
        if elapsed >= m.time:
            current = m
            nxt = catalog[i + 1] if i + 1 < len(catalog) else None
            progress = float(m.progress)
        else:
            if current is None:
                nxt = m
            break

    if current is not None and nxt is not None:
        span = nxt.time - current.time
        if span > 0:
            fraction = (elapsed - current.time) / span
            progress = min(
                current.progress + fraction * (nxt.progress - current.progress),
                float(nxt.progress),
            )

    completed = [m.to_dict() for m in catalog if elapsed >= m.time]
    upcoming = [m.to_dict() for m in catalog if elapsed < m.time][:UPCOMING_MILESTONE_LIMIT]

    return {
        "progress": min(max(progress, 0.0), 100.0),
        "current_milestone": _milestone_dict(current),
        "next_milestone": _milestone_dict(nxt),
        "elapsed_time": elapsed,
        "quit_date": quit_ms,
        "effective_quit_date": effective,
        "time_to_next_milestone": (nxt.time - elapsed) if nxt is not None else None,
        "completed_milestones": completed,
        "upcoming_milestones": upcoming,
    }


# ── Streak ───────────────────────────────────────────────────────────

def compute_streak(quit_date, relapse_events: Optional[list], substance: str,
                   now=None) -> dict:
    """Whole days since the effective quit date."""
    effective = get_effective_quit_date(quit_date, relapse_events, substance)
    if effective is None:
        return {"days": 0, "is_active": False, "effective_date": None}

    days = math.floor((now_ms(now) - effective) / DAY)
    return {
        "days": max(0, days),
        "is_active": days >= 0,
        "effective_date": effective,
    }


# ── Display helpers ──────────────────────────────────────────────────

def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'s' if n > 1 else ''}"


def format_duration(ms) -> str:
    """Compact human-readable duration, e.g. '2w 3d', '1y 2mo', 'Just now'."""
    if ms is None or ms < 0:
        return "Not started"

    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    weeks = days // 7
    months = days // 30
    years = days // 365

    if years > 0:
        rest = (days % 365) // 30
        return f"{years}y {rest}mo" if rest > 0 else _plural(years, "year")
    if months > 0:
        rest = days % 30
        return f"{months}mo {rest}d" if rest > 0 else _plural(months, "month")
    if weeks > 0:
        rest = days % 7
        return f"{weeks}w {rest}d" if rest > 0 else _plural(weeks, "week")
    if days > 0:
        rest = hours % 24
        return f"{days}d {rest}h" if rest > 0 else _plural(days, "day")
    if hours > 0:
        rest = minutes % 60
        return f"{hours}h {rest}m" if rest > 0 else _plural(hours, "hour")
    if minutes > 0:
        return _plural(minutes, "minute")
    return "Just now"
