"""
FastAPI API routes for the Recovery-Tracker.
"""

import sqlite3
from typing import Optional, Union

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query
from pydantic import BaseModel, Field

from app import config
from app.config import API_KEY, SUBSTANCES, TIMELINE_DEFAULT_ITEMS
from app.core import database
from app.core.database import (
    clear_quit_date,
    delete_event,
    export_data,
    get_cost_config,
    get_event,
    get_events,
    get_quit_dates,
    import_data,
    insert_event,
    update_cost_config,
)
from app.core.analytics_engine import (
    analyze_relapses,
    get_advanced_analytics,
    get_combined_timeline,
    get_overall_health,
)
from app.core.monitor import RecoveryMonitor, compute_snapshot
from app.core.recovery_engine import (
    compute_progress,
    compute_streak,
    format_duration,
    now_ms,
    to_epoch_ms,
)
from app.core.wellbeing_engine import (
    get_body_health_map,
    get_mood_status,
    get_neurotransmitter_status,
)

router = APIRouter(prefix="/api")

monitor = RecoveryMonitor(database)


# --- Auth ---

def verify_api_key(x_api_key: str = Header(default="")):
    if API_KEY and x_api_key != API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")


# --- Models ---

SUBSTANCE_PATTERN = "^(cigarettes|cannabis|alcohol)$"


class EventRequest(BaseModel):
    substance: str = Field(..., pattern=SUBSTANCE_PATTERN)
    type: str = Field(..., pattern="^(quit|relapse|log)$")
    timestamp: Optional[Union[int, str]] = None
    amount: Optional[str] = None
    feeling: Optional[int] = Field(None, ge=0, le=100)
    craving: Optional[int] = Field(None, ge=0, le=100)
    notes: str = ""


class QuitRequest(BaseModel):
    timestamp: Optional[Union[int, str]] = None
    notes: Optional[str] = None


class CostSettingsRequest(BaseModel):
    cigarettes: Optional[float] = Field(None, ge=0)
    cannabis: Optional[float] = Field(None, ge=0)
    alcohol: Optional[float] = Field(None, ge=0)


# --- Helpers ---

def _check_substance(substance: str) -> str:
    if substance not in SUBSTANCES:
        raise HTTPException(status_code=404, detail=f"Unknown substance '{substance}'")
    return substance


def _parse_time(value, field: str = "timestamp") -> Optional[int]:
    if value is None:
        return None
    ts = to_epoch_ms(value)
    if ts is None:
        raise HTTPException(status_code=422, detail=f"Invalid {field}: {value!r}")
    return ts


def _eval_time(now: Optional[str]) -> int:
    """Evaluation instant from an optional ?now= query (ms or ISO)."""
    return now_ms(_parse_time(now, "now"))


def _relapses(events: list, substance: str) -> list:
    return [e for e in events if e["substance"] == substance and e["type"] == "relapse"]


def _refresh_snapshot():
    monitor.refresh()


# --- Events ---

@router.post("/events", dependencies=[Depends(verify_api_key)])
def create_event(req: EventRequest):
    """Log a quit / relapse / check-in event."""
    ts = _parse_time(req.timestamp)
    row_id = insert_event(
        req.substance, req.type, ts, req.amount, req.feeling, req.craving, req.notes,
    )
    if req.type == "quit":
        print(f"[recovery-api] Quit date reset for {req.substance} (#{row_id})", flush=True)
    _refresh_snapshot()
    return {"id": row_id, "substance": req.substance, "type": req.type, "status": "ok"}


@router.get("/events", dependencies=[Depends(verify_api_key)])
def list_events(
    substance: Optional[str] = Query(default=None, pattern=SUBSTANCE_PATTERN),
    type: Optional[str] = Query(default=None, pattern="^(quit|relapse|log)$"),
):
    """Events, newest first."""
    return get_events(substance, type)


@router.delete("/events/{event_id}", dependencies=[Depends(verify_api_key)])
def delete_event_route(event_id: int):
    """Delete an event by ID."""
    if not delete_event(event_id):
        raise HTTPException(status_code=404, detail="Event not found")
    _refresh_snapshot()
    return {"deleted": event_id, "status": "ok"}


@router.get("/events/{event_id}", dependencies=[Depends(verify_api_key)])
def get_event_route(event_id: int):
    event = get_event(event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


# --- Protocols (quit dates) ---

@router.get("/quit-dates", dependencies=[Depends(verify_api_key)])
def quit_dates_route():
    return get_quit_dates()


@router.post("/quit/{substance}", dependencies=[Depends(verify_api_key)])
def start_protocol(substance: str, req: Optional[QuitRequest] = Body(default=None)):
    """
    Start (or restart) a protocol. Overwrites any previous quit date for
    the substance; the old streak is not archived.
    """
    _check_substance(substance)
    req = req or QuitRequest()
    ts = _parse_time(req.timestamp)
    notes = req.notes if req.notes is not None else f"Protocol Initiated: {substance}"
    row_id = insert_event(substance, "quit", ts, notes=notes)
    print(f"[recovery-api] Protocol started: {substance} (#{row_id})", flush=True)
    _refresh_snapshot()
    return {"id": row_id, "quit_dates": get_quit_dates(), "status": "ok"}


@router.delete("/quit/{substance}", dependencies=[Depends(verify_api_key)])
def reset_protocol(substance: str):
    """Stop tracking a substance. Its events are kept."""
    _check_substance(substance)
    quit_dates = clear_quit_date(substance)
    print(f"[recovery-api] Protocol reset: {substance}", flush=True)
    _refresh_snapshot()
    return {"quit_dates": quit_dates, "status": "ok"}


# --- Progress ---

def _progress_record(substance: str, quit_dates: dict, events: list, now_value: int) -> Optional[dict]:
    quit_date = quit_dates.get(substance)
    if to_epoch_ms(quit_date) is None:
        return None
    relapses = _relapses(events, substance)
    record = compute_progress(quit_date, substance, relapses, now=now_value)
    record["streak"] = compute_streak(quit_date, relapses, substance, now=now_value)
    record["elapsed_formatted"] = format_duration(record["elapsed_time"])
    return record


@router.get("/progress", dependencies=[Depends(verify_api_key)])
def progress_all(now: Optional[str] = None):
    """Progress record for every substance (null when inactive)."""
    now_value = _eval_time(now)
    quit_dates = get_quit_dates()
    events = get_events()
    return {s: _progress_record(s, quit_dates, events, now_value) for s in SUBSTANCES}


@router.get("/progress/{substance}", dependencies=[Depends(verify_api_key)])
def progress_one(substance: str, now: Optional[str] = None):
    _check_substance(substance)
    now_value = _eval_time(now)
    quit_dates = get_quit_dates()
    relapses = _relapses(get_events(), substance)
    return compute_progress(quit_dates.get(substance), substance, relapses, now=now_value)


@router.get("/streak/{substance}", dependencies=[Depends(verify_api_key)])
def streak_one(substance: str, now: Optional[str] = None):
    _check_substance(substance)
    now_value = _eval_time(now)
    quit_dates = get_quit_dates()
    relapses = _relapses(get_events(), substance)
    return compute_streak(quit_dates.get(substance), relapses, substance, now=now_value)


@router.get("/health/overall", dependencies=[Depends(verify_api_key)])
def overall_health(now: Optional[str] = None):
    score = get_overall_health(get_quit_dates(), get_events(), now=_eval_time(now))
    return {"overall_health": round(score, 2)}


@router.get("/timeline", dependencies=[Depends(verify_api_key)])
def timeline(
    max_items: int = Query(default=TIMELINE_DEFAULT_ITEMS, ge=1, le=100),
    now: Optional[str] = None,
):
    """Recently completed and upcoming milestones across substances."""
    return get_combined_timeline(get_quit_dates(), get_events(), max_items, now=_eval_time(now))


@router.get("/analytics", dependencies=[Depends(verify_api_key)])
def analytics(now: Optional[str] = None):
    """Money saved, life regained, heartbeats saved."""
    return get_advanced_analytics(
        get_quit_dates(), get_events(), get_cost_config(), now=_eval_time(now),
    )


# --- Wellbeing sub-models ---

@router.get("/mood/{substance}", dependencies=[Depends(verify_api_key)])
def mood(substance: str, now: Optional[str] = None):
    _check_substance(substance)
    quit_date = get_quit_dates().get(substance)
    return get_mood_status(quit_date, substance, _relapses(get_events(), substance),
                           now=_eval_time(now))


@router.get("/neurotransmitters/{substance}", dependencies=[Depends(verify_api_key)])
def neurotransmitters(substance: str, now: Optional[str] = None):
    _check_substance(substance)
    quit_date = get_quit_dates().get(substance)
    return get_neurotransmitter_status(quit_date, substance,
                                       _relapses(get_events(), substance),
                                       now=_eval_time(now))


@router.get("/body-systems", dependencies=[Depends(verify_api_key)])
def body_systems(
    substance: Optional[str] = Query(default=None, pattern=SUBSTANCE_PATTERN),
    now: Optional[str] = None,
):
    """System id -> health % (averaged over active substances)."""
    return get_body_health_map(get_quit_dates(), get_events(), substance, now=_eval_time(now))


@router.get("/relapses/analysis", dependencies=[Depends(verify_api_key)])
def relapse_analysis():
    return analyze_relapses(get_events(type="relapse"), get_quit_dates())


# --- Snapshot ---

@router.get("/snapshot", dependencies=[Depends(verify_api_key)])
def snapshot(now: Optional[str] = None):
    """
    Latest scheduled snapshot. With ?now= (or before the first scheduled
    run) it is computed on demand instead.
    """
    if now is None and monitor.latest is not None:
        return monitor.latest
    return compute_snapshot(get_quit_dates(), get_events(), get_cost_config(),
                            now=_eval_time(now))


# --- Settings ---

@router.get("/settings/costs", dependencies=[Depends(verify_api_key)])
def get_costs():
    return get_cost_config()


@router.put("/settings/costs", dependencies=[Depends(verify_api_key)])
def put_costs(req: CostSettingsRequest):
    costs = update_cost_config(req.model_dump(exclude_none=True))
    _refresh_snapshot()
    return costs


# --- Export / import ---

@router.get("/export", dependencies=[Depends(verify_api_key)])
def export_route():
    return export_data()


@router.post("/import", dependencies=[Depends(verify_api_key)])
def import_route(payload: dict = Body(...)):
    """Replace stored data with an export payload."""
    try:
        imported = import_data(payload)
    except (sqlite3.IntegrityError, KeyError, TypeError, ValueError, AttributeError) as e:
        raise HTTPException(status_code=422, detail=f"Invalid import payload: {e}")
    _refresh_snapshot()
    return {"imported": imported, "status": "ok"}


# --- Status ---

@router.get("/status")
def status():
    latest = monitor.latest
    return {
        "status": "ok",
        "db_path": str(config.DB_PATH),
        "monitor_running": monitor.running,
        "recompute_interval_sec": monitor.interval_sec,
        "last_snapshot_at": latest["computed_at"] if latest else None,
        "last_error": monitor.last_error,
    }
