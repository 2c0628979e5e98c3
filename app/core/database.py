"""
SQLite database setup and access layer.
Schema: events, quit_dates, settings.

This is the snapshot source the engine pulls from:
get_quit_dates(), get_events(), get_cost_config().
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from app import config
from app.config import DEFAULT_COST_PER_DAY, SUBSTANCES
from app.core.recovery_engine import event_time, to_epoch_ms

_local = threading.local()

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS events (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp   INTEGER NOT NULL,
    substance   TEXT    NOT NULL CHECK(substance IN ('cigarettes','cannabis','alcohol')),
    type        TEXT    NOT NULL CHECK(type IN ('quit','relapse','log')),
    amount      TEXT,
    feeling     INTEGER CHECK(feeling BETWEEN 0 AND 100),
    craving     INTEGER CHECK(craving BETWEEN 0 AND 100),
    notes       TEXT    DEFAULT '',
    created_at  TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_ts ON events(timestamp);
CREATE INDEX IF NOT EXISTS idx_events_substance ON events(substance, type);

CREATE TABLE IF NOT EXISTS quit_dates (
    substance   TEXT    PRIMARY KEY CHECK(substance IN ('cigarettes','cannabis','alcohol')),
    quit_date   INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS settings (
    key         TEXT    PRIMARY KEY,
    value       TEXT    NOT NULL
);
"""


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def get_connection() -> sqlite3.Connection:
    """Thread-local SQLite connection with WAL mode."""
    path = config.DB_PATH
    conn = getattr(_local, "conn", None)
    if conn is None or getattr(_local, "path", None) != path:
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        _local.conn = conn
        _local.path = path
    return conn


def close_connection() -> None:
    conn = getattr(_local, "conn", None)
    if conn is not None:
        conn.close()
    _local.conn = None
    _local.path = None


@contextmanager
def db_cursor():
    """Yield a cursor, auto-commit on success, rollback on error."""
    conn = get_connection()
    cur = conn.cursor()
    try:
        yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def init_db():
    """Create tables if they don't exist."""
    with db_cursor() as cur:
        cur.executescript(SCHEMA_SQL)
    print("[recovery-db] Database initialized at", config.DB_PATH, flush=True)


# --- Events ---

def insert_event(substance: str, type: str, timestamp: Optional[int] = None,
                 amount: Optional[str] = None, feeling: Optional[int] = None,
                 craving: Optional[int] = None, notes: str = "") -> int:
    """
    Store an event. A 'quit' event also overwrites the substance's quit
    date, discarding the previous streak.
    """
    ts = timestamp if timestamp is not None else _now_ms()
    with db_cursor() as cur:
        cur.execute(
            """INSERT INTO events
               (timestamp, substance, type, amount, feeling, craving, notes, created_at)
               VALUES (?,?,?,?,?,?,?,?)""",
            (ts, substance, type, amount, feeling, craving, notes or "",
             datetime.now(timezone.utc).isoformat()),
        )
        row_id = cur.lastrowid
        if type == "quit":
            cur.execute(
                """INSERT INTO quit_dates (substance, quit_date) VALUES (?,?)
                   ON CONFLICT(substance) DO UPDATE SET quit_date=excluded.quit_date""",
                (substance, ts),
            )
    return row_id


def get_events(substance: Optional[str] = None, type: Optional[str] = None) -> list[dict]:
    """All events, newest first, optionally filtered."""
    clauses = []
    params: list = []
    if substance:
        clauses.append("substance=?")
        params.append(substance)
    if type:
        clauses.append("type=?")
        params.append(type)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    with db_cursor() as cur:
        cur.execute(f"SELECT * FROM events {where} ORDER BY timestamp DESC, id DESC", params)
        return [dict(r) for r in cur.fetchall()]


def get_event(event_id: int) -> Optional[dict]:
    with db_cursor() as cur:
        cur.execute("SELECT * FROM events WHERE id=?", (event_id,))
        row = cur.fetchone()
        return dict(row) if row else None


def delete_event(event_id: int) -> bool:
    with db_cursor() as cur:
        cur.execute("DELETE FROM events WHERE id=?", (event_id,))
        return cur.rowcount > 0


# --- Quit dates ---

def get_quit_dates() -> dict:
    """Substance -> quit timestamp (ms), None when no protocol is running."""
    result = {s: None for s in SUBSTANCES}
    with db_cursor() as cur:
        cur.execute("SELECT substance, quit_date FROM quit_dates")
        for row in cur.fetchall():
            result[row["substance"]] = row["quit_date"]
    return result


def set_quit_date(substance: str, quit_date: int) -> dict:
    with db_cursor() as cur:
        cur.execute(
            """INSERT INTO quit_dates (substance, quit_date) VALUES (?,?)
               ON CONFLICT(substance) DO UPDATE SET quit_date=excluded.quit_date""",
            (substance, quit_date),
        )
    return get_quit_dates()


def clear_quit_date(substance: str) -> dict:
    """Reset a protocol: the substance becomes inactive. Events are kept."""
    with db_cursor() as cur:
        cur.execute("DELETE FROM quit_dates WHERE substance=?", (substance,))
    return get_quit_dates()


# --- Settings ---

def _get_setting(key: str) -> Optional[dict]:
    with db_cursor() as cur:
        cur.execute("SELECT value FROM settings WHERE key=?", (key,))
        row = cur.fetchone()
    if not row:
        return None
    try:
        return json.loads(row["value"])
    except (ValueError, TypeError) as e:
        print(f"[recovery-db] Unreadable setting '{key}': {e}", flush=True)
        return None


def _put_setting(key: str, value: dict) -> None:
    with db_cursor() as cur:
        cur.execute(
            """INSERT INTO settings (key, value) VALUES (?,?)
               ON CONFLICT(key) DO UPDATE SET value=excluded.value""",
            (key, json.dumps(value)),
        )


def get_cost_config() -> dict:
    """Per-day cost per substance: stored user values over defaults."""
    costs = dict(DEFAULT_COST_PER_DAY)
    stored = _get_setting("costs")
    if isinstance(stored, dict):
        costs.update({k: v for k, v in stored.items() if k in SUBSTANCES})
    return costs


def update_cost_config(updates: dict) -> dict:
    stored = _get_setting("costs") or {}
    stored.update({k: v for k, v in updates.items() if k in SUBSTANCES})
    _put_setting("costs", stored)
    return get_cost_config()


# --- Export / import ---

def export_data() -> dict:
    return {
        "events": list(reversed(get_events())),
        "quit_dates": {k: v for k, v in get_quit_dates().items() if v is not None},
        "settings": {"costs": _get_setting("costs") or {}},
        "exported_at": datetime.now(timezone.utc).isoformat(),
    }


def import_data(data: dict) -> dict:
    """
    Replace stored data with an export payload. Sections missing from the
    payload are left untouched. Returns counts of imported rows.
    Times are stored as epoch ms; one that cannot be parsed raises
    ValueError and nothing is imported.
    """
    imported = {"events": 0, "quit_dates": 0}
    with db_cursor() as cur:
        if "events" in data:
            cur.execute("DELETE FROM events")
            for ev in data["events"] or []:
                ts = event_time(ev)
                if ts is None:
                    raise ValueError(
                        f"unparseable event time: {ev.get('timestamp', ev.get('date'))!r}"
                    )
                cur.execute(
                    """INSERT INTO events
                       (timestamp, substance, type, amount, feeling, craving, notes, created_at)
                       VALUES (?,?,?,?,?,?,?,?)""",
                    (ts, ev["substance"], ev["type"], ev.get("amount"),
                     ev.get("feeling"), ev.get("craving"), ev.get("notes") or "",
                     ev.get("created_at") or datetime.now(timezone.utc).isoformat()),
                )
                imported["events"] += 1
        if "quit_dates" in data:
            cur.execute("DELETE FROM quit_dates")
            for substance, quit_date in (data["quit_dates"] or {}).items():
                if quit_date is None:
                    continue
                quit_ms = to_epoch_ms(quit_date)
                if quit_ms is None:
                    raise ValueError(f"unparseable quit date for {substance}: {quit_date!r}")
                cur.execute(
                    "INSERT INTO quit_dates (substance, quit_date) VALUES (?,?)",
                    (substance, quit_ms),
                )
                imported["quit_dates"] += 1
        costs = (data.get("settings") or {}).get("costs")
        if isinstance(costs, dict):
            cur.execute(
                """INSERT INTO settings (key, value) VALUES ('costs', ?)
                   ON CONFLICT(key) DO UPDATE SET value=excluded.value""",
                (json.dumps(costs),),
            )
    print(f"[recovery-db] Imported {imported['events']} events, "
          f"{imported['quit_dates']} quit dates", flush=True)
    return imported


def clear_all_data() -> None:
    with db_cursor() as cur:
        cur.execute("DELETE FROM events")
        cur.execute("DELETE FROM quit_dates")
        cur.execute("DELETE FROM settings")
    print("[recovery-db] All data cleared", flush=True)
