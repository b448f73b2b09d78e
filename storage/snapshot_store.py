"""
Local snapshot store — the last-known Report per feed, for instant startup.

Every operation is best-effort: storage trouble (quota, corrupt entries,
I/O errors) is logged and turned into a miss or a no-op, never raised.

Age windows for an entry written at T:
  [T, T+fresh)       fresh — no refetch needed
  [T+fresh, T+stale) stale — still shown while a background refresh runs
  [T+stale, ...)     expired — deleted on read, never served
"""

import json
import logging
import time
from typing import Callable, Optional

from feed.models import CacheEntry, Report, StreamStatus
import config

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 3


def compute_cache_key(run_id: Optional[str] = None, date_range: Optional[str] = None) -> str:
    """
    Cache key for a feed. Quick ranges (last_N_days) are shared across
    runs, so run_id is ignored for them.
    """
    if date_range and date_range in config.QUICK_DATE_RANGES:
        return date_range
    return f"{run_id or 'latest'}_{date_range or 'default'}"


def _epoch_ms() -> float:
    return time.time() * 1000


class SnapshotStore:
    def __init__(
        self,
        backend,
        prefix: str = config.CACHE_PREFIX,
        fresh_ms: int = config.CACHE_FRESH_MS,
        stale_ms: int = config.CACHE_STALE_MS,
        max_records: int = config.MAX_CACHED_TENDERS,
        clock: Callable[[], float] = _epoch_ms,
    ) -> None:
        if fresh_ms >= stale_ms:
            raise ValueError("fresh window must be shorter than the stale window")
        self.backend = backend
        self.prefix = prefix
        self.fresh_ms = fresh_ms
        self.stale_ms = stale_ms
        self.max_records = max_records
        self.clock = clock

    # ── Public API ────────────────────────────────────────────────────────────

    def read(self, key: str) -> Optional[CacheEntry]:
        """Return the cached entry, or None if missing, corrupt or expired."""
        full_key = self.prefix + key
        try:
            raw = self.backend.get_item(full_key)
        except UnicodeDecodeError as exc:
            logger.warning("Discarding unreadable cache entry %s: %s", key, exc)
            self._remove(full_key)
            return None
        except OSError as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None

        try:
            stored = json.loads(raw)
            entry = CacheEntry(
                report=Report.from_dict(stored["report"]),
                status=StreamStatus(stored.get("status", StreamStatus.COMPLETE.value)),
                timestamp=float(stored["timestamp"]),
            )
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Discarding corrupt cache entry %s: %s", key, exc)
            self._remove(full_key)
            return None

        if entry.age_ms(self.clock()) >= self.stale_ms:
            logger.info("Cache entry %s expired, removing it", key)
            self._remove(full_key)
            return None

        return entry

    def write(self, key: str, report: Report, status: StreamStatus) -> bool:
        """Store a size-reduced copy of `report`. Returns False if it was dropped."""
        full_key = self.prefix + key
        try:
            payload = self._serialize(report, status)
        except (TypeError, ValueError) as exc:
            logger.error("Could not serialise report for cache %s: %s", key, exc)
            return False

        try:
            self.backend.set_item(full_key, payload)
        except OSError as exc:
            logger.warning("Cache write failed for %s (%s); evicting old entries", key, exc)
            self.clear()
            try:
                self.backend.set_item(full_key, payload)
            except OSError as retry_exc:
                logger.warning("Cache write for %s dropped: %s", key, retry_exc)
                return False

        logger.debug(
            "Saved %d tender(s) to cache %s (status=%s)",
            report.total_tenders(), key, status.value,
        )
        return True

    def is_fresh(self, key: str) -> bool:
        entry = self.read(key)
        return entry is not None and entry.age_ms(self.clock()) < self.fresh_ms

    def clear(self) -> int:
        """Delete every entry in this store's namespace. Returns how many went."""
        try:
            own = [k for k in self.backend.keys() if k.startswith(self.prefix)]
        except OSError as exc:
            logger.warning("Could not list cache entries: %s", exc)
            return 0
        for k in own:
            self._remove(k)
        return len(own)

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _serialize(self, report: Report, status: StreamStatus) -> str:
        return json.dumps(
            {
                "report": report.to_dict(snapshot=True, limit=self.max_records),
                "status": StreamStatus(status).value,
                "timestamp": self.clock(),
                "version": SCHEMA_VERSION,
            },
            ensure_ascii=False,
        )

    def _remove(self, full_key: str) -> None:
        try:
            self.backend.remove_item(full_key)
        except OSError as exc:
            logger.warning("Could not remove cache entry %s: %s", full_key, exc)
