"""
Scheduled recomputation of the derived recovery snapshot.

The engine is stateless; the monitor pulls a fresh input snapshot from its
source every RECOMPUTE_INTERVAL_SEC (and whenever refresh() is called
after a write), recomputes everything and swaps in the new result.
Readers always get a complete, immutable-by-convention snapshot dict.
"""

import threading
from datetime import datetime, timezone
from typing import Optional

from app.config import RECOMPUTE_INTERVAL_SEC, SUBSTANCES
from app.core.analytics_engine import (
    get_advanced_analytics,
    get_combined_timeline,
    get_operative_rank,
    get_overall_health,
)
from app.core.recovery_engine import compute_progress, compute_streak, now_ms, to_epoch_ms


def compute_snapshot(quit_dates: dict, events: list, cost_config: Optional[dict] = None,
                     now=None) -> dict:
    """Full derived state for one input snapshot at one instant."""
    now_value = now_ms(now)
    quit_dates = quit_dates or {}
    progress = {}
    total_streak_days = 0

    for substance in SUBSTANCES:
        quit_date = quit_dates.get(substance)
        if to_epoch_ms(quit_date) is None:
            progress[substance] = None
            continue
        relapses = [
            e for e in events or []
            if e.get("substance") == substance and e.get("type") == "relapse"
        ]
        record = compute_progress(quit_date, substance, relapses, now=now_value)
        record["streak"] = compute_streak(quit_date, relapses, substance, now=now_value)
        total_streak_days += record["streak"]["days"]
        progress[substance] = record

    analytics = get_advanced_analytics(quit_dates, events, cost_config, now=now_value)
    analytics["current_rank"] = get_operative_rank(total_streak_days)

    return {
        "computed_at": now_value,
        "progress": progress,
        "overall_health": get_overall_health(quit_dates, events, now=now_value),
        "analytics": analytics,
        "timeline": get_combined_timeline(quit_dates, events, now=now_value),
    }


class RecoveryMonitor:
    """
    Fixed-interval background recompute.

    `source` must provide get_quit_dates(), get_events() and
    get_cost_config(); a module such as app.core.database qualifies.
    """

    def __init__(self, source, interval_sec: float = RECOMPUTE_INTERVAL_SEC):
        self.source = source
        self.interval_sec = interval_sec
        self._latest: Optional[dict] = None
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_error: Optional[str] = None

    @property
    def latest(self) -> Optional[dict]:
        with self._lock:
            return self._latest

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def refresh(self, now=None) -> Optional[dict]:
        """
        Pull inputs and recompute now. On a failure (source read or
        recompute) the previous snapshot stays in place and None is returned.
        """
        try:
            quit_dates = self.source.get_quit_dates()
            events = self.source.get_events()
            cost_config = self.source.get_cost_config()
            snapshot = compute_snapshot(quit_dates, events, cost_config, now=now)
        except Exception as e:
            self.last_error = str(e)
            print(f"[recovery-monitor] Recompute failed: {e}", flush=True)
            return None

        with self._lock:
            self._latest = snapshot
        self.last_error = None
        return snapshot

    def _run(self):
        while not self._stop.is_set():
            self.refresh()
            self._stop.wait(self.interval_sec)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="recovery-monitor", daemon=True)
        self._thread.start()
        print(
            f"[recovery-monitor] Started ({self.interval_sec}s interval) at "
            f"{datetime.now(timezone.utc).isoformat()}",
            flush=True,
        )

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None
        print("[recovery-monitor] Stopped", flush=True)
