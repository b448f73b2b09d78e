# tests/test_status.py

from feed.models import StreamStatus
from stream import status as st
from stream.status import Phase, SessionState


def test_new_state_is_idle():
    state = SessionState()
    assert state.phase == Phase.IDLE
    assert state.status == StreamStatus.IDLE


def test_start_from_cache_shows_complete_and_refreshes():
    state = st.start(had_cache=True, had_prior_data=False)

    assert state.phase == Phase.SEEDED_FROM_CACHE
    assert state.status == StreamStatus.COMPLETE
    assert state.is_refreshing is True
    assert state.suspect_401 is True


def test_start_without_cache_is_streaming():
    state = st.start(had_cache=False, had_prior_data=True)

    assert state.status == StreamStatus.STREAMING
    assert state.is_refreshing is False
    assert state.had_prior_data is True


def test_initial_data_clears_suspect_flag_only():
    state = st.initial_data_received(st.start(had_cache=True, had_prior_data=False))

    assert state.suspect_401 is False
    assert state.phase == Phase.SEEDED_FROM_CACHE


def test_every_batch_forces_streaming():
    state = st.stream_completed(st.start(had_cache=True, had_prior_data=False))
    assert state.status == StreamStatus.COMPLETE

    state, _ = st.batch_received(state)
    assert state.status == StreamStatus.STREAMING


def test_every_third_batch_asks_for_a_save():
    state = st.start(had_cache=False, had_prior_data=False)
    saves = []
    for _ in range(7):
        state, should_save = st.batch_received(state, save_every=3)
        saves.append(should_save)

    assert saves == [False, False, True, False, False, True, False]
    assert state.batch_count == 7


def test_completion_resets_batch_count_and_refreshing():
    state = st.start(had_cache=True, had_prior_data=False)
    state, _ = st.batch_received(state)
    state = st.stream_completed(state)

    assert state.status == StreamStatus.COMPLETE
    assert state.batch_count == 0
    assert state.is_refreshing is False


def test_failure_over_cached_data_is_swallowed():
    state = st.stream_failed(st.start(had_cache=True, had_prior_data=True))

    assert state.status == StreamStatus.COMPLETE
    assert state.error is None
    assert state.is_refreshing is False


def test_failure_without_cache_is_a_plain_error():
    state = st.stream_failed(st.start(had_cache=False, had_prior_data=False))

    assert state.status == StreamStatus.ERROR
    assert state.error is None


def test_failure_before_initial_data_with_prior_data_means_expired_login():
    state = st.stream_failed(
        st.start(had_cache=False, had_prior_data=True), expired_message="log in again"
    )

    assert state.status == StreamStatus.ERROR
    assert state.error == "log in again"


def test_failure_after_initial_data_is_not_blamed_on_login():
    state = st.start(had_cache=False, had_prior_data=True)
    state = st.initial_data_received(state)

    assert st.stream_failed(state).error is None


def test_explicit_auth_failure_means_expired_login():
    state = st.stream_failed(
        st.start(had_cache=False, had_prior_data=False), auth_failed=True
    )
    assert state.error is not None
