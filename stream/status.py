"""
Stream status controller.

SessionState is the whole of a session's bookkeeping. Each transition is a
pure function from one state to the next, so the rules below can be tested
without a connection:

  start                  cache hit -> SEEDED_FROM_CACHE (shown as complete)
                         cache miss -> STREAMING
  initial_data_received  clears the suspect-401 flag
  batch_received         always STREAMING; every Nth batch asks for a save
  stream_completed       COMPLETE
  stream_failed          COMPLETE if we started from cache, else ERRORED
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from feed.models import StreamStatus
import config


class Phase(str, Enum):
    IDLE = "idle"
    SEEDED_FROM_CACHE = "seeded_from_cache"
    STREAMING = "streaming"
    ERRORED = "errored"
    COMPLETE = "complete"


_PHASE_STATUS = {
    Phase.IDLE: StreamStatus.IDLE,
    Phase.SEEDED_FROM_CACHE: StreamStatus.COMPLETE,
    Phase.STREAMING: StreamStatus.STREAMING,
    Phase.ERRORED: StreamStatus.ERROR,
    Phase.COMPLETE: StreamStatus.COMPLETE,
}


@dataclass(frozen=True)
class SessionState:
    phase: Phase = Phase.IDLE
    had_cache: bool = False          # a cache entry seeded this session
    had_prior_data: bool = False     # a report was in memory when it opened
    suspect_401: bool = False        # no initial_data seen on this connection yet
    batch_count: int = 0
    error: Optional[str] = None
    is_refreshing: bool = False

    @property
    def status(self) -> StreamStatus:
        return _PHASE_STATUS[self.phase]


def start(had_cache: bool, had_prior_data: bool) -> SessionState:
    return SessionState(
        phase=Phase.SEEDED_FROM_CACHE if had_cache else Phase.STREAMING,
        had_cache=had_cache,
        had_prior_data=had_prior_data,
        suspect_401=True,
        is_refreshing=had_cache,
    )


def initial_data_received(state: SessionState) -> SessionState:
    return replace(state, suspect_401=False)


def batch_received(
    state: SessionState, save_every: int = config.CACHE_SAVE_EVERY_N_BATCHES
) -> Tuple[SessionState, bool]:
    """Returns the new state and whether this batch should be persisted."""
    count = state.batch_count + 1
    should_save = save_every > 0 and count % save_every == 0
    return replace(state, phase=Phase.STREAMING, batch_count=count), should_save


def stream_completed(state: SessionState) -> SessionState:
    return replace(state, phase=Phase.COMPLETE, batch_count=0, is_refreshing=False)


def stream_failed(
    state: SessionState,
    auth_failed: bool = False,
    expired_message: str = config.SESSION_EXPIRED_MESSAGE,
) -> SessionState:
    if state.had_cache:
        # Never show an error over data the user can already see.
        return replace(state, phase=Phase.COMPLETE, error=None, is_refreshing=False)

    # A dropped stream rarely carries a status code, so an expired login is
    # usually inferred: the connection died before initial_data, yet an
    # earlier session on this consumer streamed fine.
    inferred = state.suspect_401 and state.had_prior_data
    error = expired_message if (auth_failed or inferred) else None
    return replace(state, phase=Phase.ERRORED, error=error, is_refreshing=False)
