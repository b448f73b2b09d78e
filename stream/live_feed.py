"""
Background runner for a StreamSession, used by the dashboard.

The session is read on its own daemon thread; select() switches feeds
from any thread.
"""

import logging
import threading
from typing import Optional

from stream.session import StreamSession, StreamSnapshot

logger = logging.getLogger(__name__)


class LiveFeed:
    def __init__(self, session: StreamSession) -> None:
        self.session = session
        self._thread: Optional[threading.Thread] = None

    def select(
        self, run_id: Optional[str] = None, date_range: Optional[str] = None
    ) -> StreamSnapshot:
        """Switch to a feed. Returns immediately with whatever the cache had."""
        snap = self.session.open(run_id, date_range)
        self._thread = threading.Thread(
            target=self._read, name="tender-feed", daemon=True
        )
        self._thread.start()
        return snap

    def snapshot(self) -> StreamSnapshot:
        return self.session.snapshot()

    def stop(self) -> None:
        self.session.close()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the current reader thread finishes. True if it did."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _read(self) -> None:
        try:
            self.session.run()
        except Exception:
            logger.exception("Feed reader crashed")
