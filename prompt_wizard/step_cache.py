import time
import threading

from prompt_wizard.catalog import Catalog
from prompt_wizard.steps import StepTracker


class StepRecordCache:
    """
    In-memory, per-session step trackers with:
    - sliding TTL (expires ttl_seconds after last touch)
    - expired sessions swept on access, at most once per sweep interval
    - thread-safe operations (FastAPI runs sync handlers in a thread pool)
    """

    def __init__(self, ttl_seconds: int, catalog: Catalog | None = None, sweep_interval_seconds: int | None = None):
        self.ttl_seconds = ttl_seconds
        self.catalog = catalog
        self.sweep_interval_seconds = sweep_interval_seconds if sweep_interval_seconds is not None else ttl_seconds
        self._lock = threading.Lock()
        # session_id -> {"tracker": StepTracker, "expires_at": float}
        self._items: dict[str, dict[str, object]] = {}
        self._last_sweep = time.time()

    def _sweep_unlocked(self, now: float) -> int:
        expired = [k for k, v in self._items.items() if float(v["expires_at"]) <= now]
        for k in expired:
            del self._items[k]
        self._last_sweep = now
        return len(expired)

    def _get_or_create_unlocked(self, session_id: str) -> StepTracker:
        now = time.time()
        if now - self._last_sweep >= self.sweep_interval_seconds:
            self._sweep_unlocked(now)

        item = self._items.get(session_id)

        if item is not None:
            expires_at = float(item["expires_at"])
            if expires_at > now:
                item["expires_at"] = now + self.ttl_seconds
                return item["tracker"]  # type: ignore[return-value]
            # expired -> replace
            del self._items[session_id]

        tracker = StepTracker(self.catalog)
        self._items[session_id] = {"tracker": tracker, "expires_at": now + self.ttl_seconds}
        return tracker

    def get(self, session_id: str) -> StepTracker:
        with self._lock:
            return self._get_or_create_unlocked(str(session_id))

    def refresh(self, session_id: str, answers) -> tuple[dict[str, bool], bool]:
        """
        Recompute the record for this session's latest Answer Set.
        Returns (record, changed).
        """
        tracker = self.get(session_id)
        return tracker.update(answers)

    def sweep_expired(self) -> int:
        """
        Delete expired trackers. Returns how many entries were removed.
        """
        with self._lock:
            return self._sweep_unlocked(time.time())

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
