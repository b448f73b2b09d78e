"""
Stream session — one live feed connection for a (run_id, date_range) pair.

Typical use:

    session = StreamSession(FeedClient(), SnapshotStore(FileBackend(...)))
    session.open(run_id=None, date_range="last_5_days")   # instant, from cache
    session.run()                                         # blocks until done

open() can be called again from another thread to switch feeds; the old
connection is closed first and its reader stops dispatching.
"""

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from feed.models import Report, StreamStatus, parse_batch
from feed.sse import FeedConnectionError, FeedEvent
from storage.snapshot_store import SnapshotStore, compute_cache_key
from stream import status as transitions
from stream.reducer import merge_and_sort
from stream.status import SessionState
import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamSnapshot:
    """Everything a consumer may read. Never mutate `report`."""

    report: Optional[Report]
    status: StreamStatus
    error: Optional[str] = None
    is_refreshing: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "report": self.report.to_dict() if self.report is not None else None,
            "status": self.status.value,
            "error": self.error,
            "isRefreshing": self.is_refreshing,
        }


Listener = Callable[[StreamSnapshot], None]


class StreamSession:
    def __init__(
        self,
        client,
        store: SnapshotStore,
        save_every: int = config.CACHE_SAVE_EVERY_N_BATCHES,
    ) -> None:
        self.client = client            # anything with open_feed(run_id, date_range)
        self.store = store
        self.save_every = save_every

        self.run_id: Optional[str] = None
        self.date_range: Optional[str] = None
        self.cache_key: Optional[str] = None

        self._report: Optional[Report] = None
        self._state = SessionState()
        self._connection = None
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()

    # ── Consumer side ─────────────────────────────────────────────────────────

    def snapshot(self) -> StreamSnapshot:
        with self._lock:
            return StreamSnapshot(
                report=self._report,
                status=self._state.status,
                error=self._state.error,
                is_refreshing=self._state.is_refreshing,
            )

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` after every state change. Returns an unsubscribe hook."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def open(
        self, run_id: Optional[str] = None, date_range: Optional[str] = None
    ) -> StreamSnapshot:
        """Switch to a feed: close the old connection, seed from cache, connect."""
        with self._lock:
            self._close_connection()

            self.run_id = run_id
            self.date_range = date_range
            self.cache_key = compute_cache_key(run_id, date_range)

            had_prior_data = self._report is not None
            cached = self.store.read(self.cache_key)
            if cached is not None:
                self._report = cached.report
                logger.info(
                    "Loaded %d tender(s) from cache %s, refreshing in background",
                    cached.report.total_tenders(), self.cache_key,
                )
            else:
                self._report = None
                logger.info("No cache for %s, loading fresh", self.cache_key)

            self._state = transitions.start(
                had_cache=cached is not None, had_prior_data=had_prior_data
            )
            self._connection = self.client.open_feed(run_id, date_range)
            self._notify()
            return self.snapshot()

    def run(self) -> StreamSnapshot:
        """Read the current connection to the end, dispatching events in order."""
        with self._lock:
            conn = self._connection
        if conn is None:
            return self.snapshot()

        try:
            for event in conn.events():
                with self._lock:
                    if self._connection is not conn:
                        break   # torn down or replaced
                    self.handle_event(event)
                    if self._connection is not conn:
                        break   # `complete` closed it
            else:
                with self._lock:
                    if self._connection is conn:
                        self._fail(FeedConnectionError("feed closed before complete"))
        except FeedConnectionError as exc:
            with self._lock:
                if self._connection is conn:
                    self._fail(exc)
        except Exception as exc:
            logger.exception("Feed reader crashed")
            with self._lock:
                if self._connection is conn:
                    self._fail(FeedConnectionError(f"feed reader crashed: {exc}"))

        return self.snapshot()

    def sync(
        self, run_id: Optional[str] = None, date_range: Optional[str] = None
    ) -> StreamSnapshot:
        """open() then run() — one blocking refresh of a feed."""
        self.open(run_id, date_range)
        return self.run()

    def close(self) -> None:
        """Teardown. Idempotent; no event is dispatched after this returns."""
        with self._lock:
            self._close_connection()

    # ── Event dispatch ────────────────────────────────────────────────────────

    def handle_event(self, event: FeedEvent) -> None:
        handler = {
            "initial_data": self._on_initial_data,
            "batch": self._on_batch,
            "complete": self._on_complete,
        }.get(event.event)
        if handler is None:
            logger.debug("Ignoring feed event %r", event.event)
            return
        with self._lock:
            handler(event.data)

    def _on_initial_data(self, data: str) -> None:
        try:
            incoming = Report.from_dict(json.loads(data))
        except (ValueError, TypeError) as exc:
            logger.warning("Skipping malformed initial_data event: %s", exc)
            return

        self._state = transitions.initial_data_received(self._state)

        prior_count = self._report.total_tenders() if self._report is not None else 0
        incoming_count = incoming.total_tenders()
        if prior_count > 0 and prior_count >= incoming_count:
            # The backend may answer from its own, smaller cache; never let
            # that shrink what the user already sees.
            logger.info(
                "Keeping %d cached tender(s) (backend sent %d)",
                prior_count, incoming_count,
            )
        else:
            self._report = merge_and_sort(incoming, ())
            self.store.write(self.cache_key, self._report, StreamStatus.COMPLETE)
            logger.info("Initial data: %d tender(s)", self._report.total_tenders())

        self._notify()

    def _on_batch(self, data: str) -> None:
        try:
            tenders = parse_batch(json.loads(data))
        except (ValueError, TypeError) as exc:
            logger.warning("Skipping malformed batch event: %s", exc)
            return

        self._state, should_save = transitions.batch_received(self._state, self.save_every)
        self._report = merge_and_sort(self._report or Report.empty(), tenders)
        logger.info(
            "Batch #%d: %d tender(s), %d total",
            self._state.batch_count, len(tenders), self._report.total_tenders(),
        )

        # Persisted as complete: good enough to show as done next startup.
        if should_save and self._report.total_tenders() > 0:
            self.store.write(self.cache_key, self._report, StreamStatus.COMPLETE)

        self._notify()

    def _on_complete(self, data: str) -> None:
        self._state = transitions.stream_completed(self._state)
        if self._report is not None:
            self.store.write(self.cache_key, self._report, StreamStatus.COMPLETE)
        logger.info(
            "Stream completed — %d tender(s)",
            self._report.total_tenders() if self._report else 0,
        )
        self._close_connection()
        self._notify()

    def _fail(self, exc: FeedConnectionError) -> None:
        if self._state.had_cache:
            logger.warning("Stream error, keeping cached data: %s", exc)
        else:
            logger.error("Stream error: %s", exc)
        self._state = transitions.stream_failed(
            self._state, auth_failed=exc.status_code == 401
        )
        self._close_connection()
        self._notify()

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _close_connection(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def _notify(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(snap)
