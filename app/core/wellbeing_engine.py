"""
Wellbeing Engine: symptom, brain-chemistry and organ recovery sub-models.

All three follow the same shape as the progress engine: time since the
effective quit date -> interpolated value.

  - Mood severity (per indicator x substance): triangular curve
        0 -> 100 over [0, peak]          "building"
        100 -> 0 over [peak, recovery]   "declining"
        0 afterwards                     "recovered"
  - Neurotransmitter recovery: linear ramp elapsed / time_ms, capped at 100.
  - Body system health: share of the system's milestones already reached;
    several substances hitting the same system are averaged.

Unknown or unaffected keys yield a neutral record instead of an error.
"""

from typing import Optional

from app.config import SUBSTANCES
from app.core.recovery_data import (
    BODY_SYSTEMS,
    MOOD_INDICATORS,
    NEUROTRANSMITTER_RECOVERY,
    get_milestones,
)
from app.core.recovery_engine import active_substances, get_effective_quit_date, now_ms


def _elapsed_since_quit(quit_date, substance: str, relapse_events: Optional[list],
                        now) -> Optional[int]:
    effective = get_effective_quit_date(quit_date, relapse_events, substance)
    if effective is None:
        return None
    return now_ms(now) - effective


# ── Mood indicators ──────────────────────────────────────────────────

def compute_mood_progress(
    quit_date,
    substance: str,
    indicator: str,
    relapse_events: Optional[list] = None,
    now=None,
) -> dict:
    """
    Withdrawal symptom severity (0-100) for one mood indicator.
    Phases: not_started / building / declining / recovered / not_affected.
    """
    mood = MOOD_INDICATORS.get(indicator)
    if not mood:
        return {"severity": 0.0, "phase": "not_affected"}

    peak = mood["peak_times"].get(substance)
    recovery = mood["recovery_time"].get(substance)
    if not peak or not recovery:
        return {"severity": 0.0, "phase": "not_affected"}

    elapsed = _elapsed_since_quit(quit_date, substance, relapse_events, now)
    if elapsed is None or elapsed < 0:
        return {
            "severity": 0.0,
            "phase": "not_started",
            "peak_time": peak,
            "recovery_time": recovery,
            "elapsed_time": max(0, elapsed or 0),
        }

    if elapsed < peak:
        severity = elapsed / peak * 100.0
        phase = "building"
    elif elapsed < recovery:
        decline = (elapsed - peak) / (recovery - peak)
        severity = 100.0 - decline * 100.0
        phase = "declining"
    else:
        severity = 0.0
        phase = "recovered"

    return {
        "severity": max(0.0, min(100.0, severity)),
        "phase": phase,
        "peak_time": peak,
        "recovery_time": recovery,
        "elapsed_time": elapsed,
    }


def get_mood_status(quit_date, substance: str, relapse_events: Optional[list] = None,
                    now=None) -> dict:
    """Mood record for every indicator of one substance."""
    return {
        indicator: compute_mood_progress(quit_date, substance, indicator, relapse_events, now)
        for indicator in MOOD_INDICATORS
    }


# ── Neurotransmitters ────────────────────────────────────────────────

def compute_neurotransmitter_progress(
    quit_date,
    substance: str,
    neurotransmitter: str,
    relapse_events: Optional[list] = None,
    now=None,
) -> dict:
    """
    Linear recovery of one neurotransmitter system.
    Phases: early (<25) / progressing (<75) / recovering / recovered (100).
    A system the substance does not touch is reported fully recovered.
    """
    nt = NEUROTRANSMITTER_RECOVERY.get(neurotransmitter)
    if not nt or substance not in nt["affected_by"]:
        return {"progress": 100.0, "phase": "not_affected"}

    elapsed = _elapsed_since_quit(quit_date, substance, relapse_events, now)
    if elapsed is None:
        return {"progress": 0.0, "phase": "not_started"}

    recovery_time = nt["time_ms"]
    progress = max(0.0, min(elapsed / recovery_time * 100.0, 100.0))

    if progress >= 100:
        phase = "recovered"
    elif progress < 25:
        phase = "early"
    elif progress < 75:
        phase = "progressing"
    else:
        phase = "recovering"

    return {
        "progress": progress,
        "phase": phase,
        "recovery_time": recovery_time,
        "elapsed_time": max(0, elapsed),
        "effect": nt["effect"],
        "name": nt["name"],
    }


def get_neurotransmitter_status(quit_date, substance: str,
                                relapse_events: Optional[list] = None, now=None) -> dict:
    """Records for the neurotransmitters this substance affects."""
    return {
        key: compute_neurotransmitter_progress(quit_date, substance, key, relapse_events, now)
        for key, nt in NEUROTRANSMITTER_RECOVERY.items()
        if substance in nt["affected_by"]
    }


# ── Body systems ─────────────────────────────────────────────────────

def _health_status(health: float) -> str:
    if health >= 100:
        return "healed"
    if health >= 75:
        return "mostly_healed"
    if health >= 50:
        return "healing"
    if health >= 25:
        return "early_healing"
    return "damaged"


def compute_system_health(
    quit_dates: dict,
    substance: str,
    system_id: str,
    relapse_events: Optional[list] = None,
    now=None,
) -> dict:
    """
    Health % of one body system for one substance: completed relevant
    milestones / all relevant milestones.
    """
    elapsed = _elapsed_since_quit((quit_dates or {}).get(substance), substance,
                                  relapse_events, now)
    if elapsed is None:
        return {"health": 0.0, "status": "damaged"}

    relevant = [m for m in get_milestones(substance) if system_id in m.systems]
    if not relevant:
        return {"health": 100.0, "status": "not_affected"}

    completed = [m for m in relevant if elapsed >= m.time]
    health = len(completed) / len(relevant) * 100.0
    upcoming = next((m for m in relevant if elapsed < m.time), None)

    return {
        "health": health,
        "status": _health_status(health),
        "last_milestone": completed[-1].to_dict() if completed else None,
        "next_milestone": upcoming.to_dict() if upcoming else None,
        "completed_count": len(completed),
        "total_count": len(relevant),
    }


def compute_overall_system_health(
    quit_dates: dict,
    system_id: str,
    relapse_events: Optional[list] = None,
    substance: Optional[str] = None,
    now=None,
) -> dict:
    """
    Average system health over the active substances that damage it.
    No contributing substance -> 100 (nothing to heal).
    """
    system = BODY_SYSTEMS.get(system_id)
    if not system:
        return {"health": 100.0, "status": "not_affected", "contributors": []}

    candidates = [substance] if substance else list(SUBSTANCES)
    active = active_substances(quit_dates)
    contributors = []
    total = 0.0
    for sub in candidates:
        if sub not in active or sub not in system["affected_by"]:
            continue
        total += compute_system_health(quit_dates, sub, system_id, relapse_events, now)["health"]
        contributors.append(sub)

    if not contributors:
        return {"health": 100.0, "status": "not_affected", "contributors": []}

    health = total / len(contributors)
    return {
        "health": health,
        "status": _health_status(health),
        "contributors": contributors,
    }


def get_body_health_map(quit_dates: dict, relapse_events: Optional[list] = None,
                        substance: Optional[str] = None, now=None) -> dict:
    """System id -> averaged health % for every body system."""
    return {
        system_id: compute_overall_system_health(
            quit_dates, system_id, relapse_events, substance, now
        )["health"]
        for system_id in BODY_SYSTEMS
    }
