"""
Playback/Highlight Synchronizer

Broadcasts which sentence is active and whether playback is running.
Speech events and rendering race each other, so the active index is
re-asserted on a short timer after each change.
"""

import asyncio
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional

from readaloud.readalong.fragments import ValidationReport
from readaloud.utils import logger
from readaloud.utils.errors import SynchronizerClosedError


@dataclass(frozen=True)
class SynchronizationState:
    """Snapshot of the synchronizer state handed to listeners."""

    current_sentence_index: int = -1
    is_playing: bool = False
    is_paused: bool = False
    last_update_time: float = 0.0

    @property
    def is_idle(self) -> bool:
        return self.current_sentence_index == -1 and not self.is_playing


@dataclass(frozen=True)
class SynchronizationConfig:
    """Timer settings for the synchronizer."""

    highlight_delay_ms: int = 100
    transition_delay_ms: int = 300
    max_retries: int = 3


DEFAULT_SYNC_CONFIG = SynchronizationConfig()

Listener = Callable[[SynchronizationState], None]


class Synchronizer:
    """
    State machine shared by the speech driver and the highlight renderer.

    States are Idle (index -1), Speaking(i) and Paused(i). At most one
    timer is pending at any time; every operation cancels it first.
    """

    def __init__(
        self,
        config: Optional[SynchronizationConfig] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        """
        Initialize the synchronizer.

        Args:
            config: Timer settings (defaults to DEFAULT_SYNC_CONFIG)
            loop: Event loop providing call_later; defaults to the running loop
        """
        self.config = config or DEFAULT_SYNC_CONFIG
        self._loop = loop
        self._state = SynchronizationState(last_update_time=time.time())
        self._listeners: Dict[int, Listener] = {}
        self._next_token = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._destroyed = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for state changes.

        Returns:
            A function that removes the listener again
        """
        self._check_open()
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = listener

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def get_state(self) -> SynchronizationState:
        return self._state

    def update_state(self, **changes) -> None:
        """Merge ``changes`` into the state and notify every listener."""
        self._check_open()
        self._state = replace(self._state, last_update_time=time.time(), **changes)
        self._notify_listeners()

    def start_sentence(self, index: int) -> None:
        """Highlight ``index`` now and re-assert it after the highlight delay."""
        self._clear_timer()
        self.update_state(current_sentence_index=index, is_playing=True, is_paused=False)
        self._schedule(
            self.config.highlight_delay_ms,
            lambda: self.update_state(current_sentence_index=index),
        )

    def move_to_next_sentence(self, next_index: int) -> None:
        """Clear the highlight now and move to ``next_index`` after the transition delay."""
        self._clear_timer()
        self.update_state(current_sentence_index=-1)
        self._schedule(
            self.config.transition_delay_ms,
            lambda: self.update_state(current_sentence_index=next_index),
        )

    def pause(self) -> None:
        self.update_state(is_paused=True)

    def resume(self) -> None:
        self.update_state(is_paused=False)

    def stop(self) -> None:
        """Cancel pending work and return to Idle."""
        self._clear_timer()
        self.update_state(current_sentence_index=-1, is_playing=False, is_paused=False)

    def destroy(self) -> None:
        """Cancel the pending timer and drop all listeners."""
        self._clear_timer()
        self._listeners.clear()
        self._destroyed = True

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _schedule(self, delay_ms: int, callback: Callable[[], None]) -> None:
        def fire() -> None:
            self._timer = None
            callback()

        self._timer = self.loop.call_later(delay_ms / 1000.0, fire)

    def _clear_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _notify_listeners(self) -> None:
        snapshot = self._state
        # Copy so listeners may unsubscribe while being notified
        for listener in list(self._listeners.values()):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Error in synchronization listener: {e}")

    def _check_open(self) -> None:
        if self._destroyed:
            raise SynchronizerClosedError("Synchronizer has been destroyed")


def validate_synchronization(
    tts_state: SynchronizationState,
    highlight_state: SynchronizationState,
    sentence_count: int,
) -> ValidationReport:
    """
    Compare the speech-side and highlight-side views of playback.

    Args:
        tts_state: State as seen by the speech driver
        highlight_state: State as seen by the highlight renderer
        sentence_count: Number of sentences in the document

    Returns:
        ValidationReport listing out-of-range indices and mismatches
    """
    issues: List[str] = []
    last = sentence_count - 1

    if tts_state.current_sentence_index >= sentence_count:
        issues.append(
            f"TTS sentence index {tts_state.current_sentence_index} is out of bounds (max: {last})"
        )

    if highlight_state.current_sentence_index >= sentence_count:
        issues.append(
            f"Highlight sentence index {highlight_state.current_sentence_index} "
            f"is out of bounds (max: {last})"
        )

    if (
        tts_state.is_playing
        and tts_state.current_sentence_index != highlight_state.current_sentence_index
    ):
        issues.append(
            f"Synchronization mismatch: TTS at {tts_state.current_sentence_index}, "
            f"Highlight at {highlight_state.current_sentence_index}"
        )

    return ValidationReport(is_valid=not issues, issues=issues)
