import pytest

from readaloud.readalong.synchronizer import (
    SynchronizationState,
    Synchronizer,
    validate_synchronization,
)
from readaloud.utils.errors import SynchronizerClosedError


@pytest.fixture
def sync(loop):
    return Synchronizer(loop=loop)


@pytest.fixture
def states(sync):
    received = []
    sync.subscribe(received.append)
    return received


def test_initial_state_is_idle(sync):
    state = sync.get_state()

    assert state.current_sentence_index == -1
    assert not state.is_playing
    assert not state.is_paused
    assert state.is_idle


def test_start_sentence_notifies_twice(sync, states, loop):
    sync.start_sentence(2)

    assert len(states) == 1
    assert states[0].current_sentence_index == 2
    assert states[0].is_playing and not states[0].is_paused

    loop.advance(99)
    assert len(states) == 1

    loop.advance(1)
    assert len(states) == 2
    assert states[1].current_sentence_index == 2
    assert not sync.has_pending_timer


def test_move_to_next_sentence_clears_then_moves(sync, states, loop):
    sync.start_sentence(4)
    sync.move_to_next_sentence(5)

    assert states[-1].current_sentence_index == -1
    assert states[-1].is_playing

    loop.advance(300)
    assert states[-1].current_sentence_index == 5
    # The start_sentence re-assert was cancelled
    assert [s.current_sentence_index for s in states] == [4, -1, 5]


def test_stop_cancels_pending_timer(sync, states, loop):
    sync.start_sentence(1)
    sync.stop()
    loop.advance(1000)

    assert len(states) == 2
    assert states[-1].is_idle
    assert not sync.has_pending_timer


def test_pause_and_resume_only_flip_flags(sync, states, loop):
    sync.start_sentence(0)
    sync.pause()

    assert sync.get_state().is_paused
    assert sync.get_state().is_playing
    assert sync.has_pending_timer

    sync.resume()
    assert not sync.get_state().is_paused


def test_failing_listener_does_not_block_others(sync, loop):
    received = []

    def broken(state):
        raise RuntimeError("boom")

    sync.subscribe(broken)
    sync.subscribe(received.append)

    sync.start_sentence(0)

    assert len(received) == 1


def test_unsubscribe(sync):
    received = []
    unsubscribe = sync.subscribe(received.append)

    unsubscribe()
    sync.start_sentence(0)

    assert received == []
    assert sync.listener_count == 0


def test_snapshots_are_immutable(sync, states):
    sync.start_sentence(3)

    with pytest.raises(AttributeError):
        states[0].current_sentence_index = 7


def test_destroy(sync, states, loop):
    sync.start_sentence(0)
    sync.destroy()
    loop.advance(1000)

    assert len(states) == 1
    assert sync.listener_count == 0
    assert not sync.has_pending_timer

    with pytest.raises(SynchronizerClosedError):
        sync.start_sentence(1)
    with pytest.raises(SynchronizerClosedError):
        sync.subscribe(lambda state: None)


def test_validate_synchronization_in_step():
    state = SynchronizationState(current_sentence_index=2, is_playing=True)

    report = validate_synchronization(state, state, sentence_count=5)

    assert report.is_valid
    assert report.issues == []


def test_validate_synchronization_reports_problems():
    tts = SynchronizationState(current_sentence_index=6, is_playing=True)
    highlight = SynchronizationState(current_sentence_index=1, is_playing=True)

    report = validate_synchronization(tts, highlight, sentence_count=5)

    assert not report.is_valid
    assert "TTS sentence index 6 is out of bounds (max: 4)" in report.issues
    assert "Synchronization mismatch: TTS at 6, Highlight at 1" in report.issues


def test_validate_synchronization_ignores_mismatch_when_stopped():
    tts = SynchronizationState(current_sentence_index=-1)
    highlight = SynchronizationState(current_sentence_index=3)

    assert validate_synchronization(tts, highlight, sentence_count=5).is_valid
