"""
Speech Driver

Speaks a sentence list one sentence at a time through a speech engine
and keeps the synchronizer in step with it.

The driver keeps its own cursor into the sentence list. The
synchronizer's index is what the user sees highlighted; the cursor is
what decides which sentence is spoken next.
"""

import asyncio
from typing import Callable, List, Optional, Sequence

from readaloud.readalong.engines import SpeechEngine, Utterance
from readaloud.readalong.fragments import Sentence
from readaloud.readalong.language import detect_language
from readaloud.readalong.synchronizer import (
    SynchronizationConfig,
    SynchronizationState,
    Synchronizer,
)
from readaloud.utils import logger
from readaloud.utils.config import config
from readaloud.utils.errors import SpeechEngineError


class _UtteranceTask:
    """
    One spoken sentence.

    The engine's start event and the start fallback timer both resolve
    the same task, so whichever comes second is a no-op.
    """

    def __init__(self, index: int, utterance: Utterance):
        self.index = index
        self.utterance = utterance
        self.started = False
        self.cancelled = False
        self.fallback: Optional[asyncio.TimerHandle] = None

    def mark_started(self) -> bool:
        """Return True only for the first start signal of a live task."""
        if self.cancelled or self.started:
            return False
        self.started = True
        self._clear_fallback()
        return True

    def cancel(self) -> None:
        self.cancelled = True
        self._clear_fallback()

    def _clear_fallback(self) -> None:
        if self.fallback is not None:
            self.fallback.cancel()
            self.fallback = None


class _VoiceGate:
    """One-shot retry shared by the voices-changed event and a timeout."""

    def __init__(self, retry: Callable[[str], None]):
        self._retry = retry
        self._done = False
        self.timer: Optional[asyncio.TimerHandle] = None

    def fire(self, source: str) -> None:
        if self._done:
            return
        self._done = True
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None
        self._retry(source)

    def cancel(self) -> None:
        self._done = True
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class SpeechDriver:
    """
    Sentence-by-sentence playback over an injected speech engine.

    Controls mirror a media player: speak(start), pause, resume, stop and
    skip. Playback state is read from the synchronizer.
    """

    VOICE_FALLBACK_MS = 1000
    START_FALLBACK_MS = 200
    NEXT_SENTENCE_DELAY_MS = 200

    # Error codes engines report when speech is cut short on purpose
    BENIGN_ERRORS = frozenset({"canceled", "interrupted"})

    def __init__(
        self,
        engine: SpeechEngine,
        sentences: Sequence[Sentence] = (),
        synchronizer: Optional[Synchronizer] = None,
        rate: Optional[float] = None,
        pitch: Optional[float] = None,
        volume: Optional[float] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        on_error: Optional[Callable[[SpeechEngineError], None]] = None,
    ):
        """
        Initialize the speech driver.

        Args:
            engine: Speech engine to drive
            sentences: Sentences to speak, usually from the segmenter
            synchronizer: Shared synchronizer (one is created if omitted)
            rate: Speech rate multiplier (default from config)
            pitch: Voice pitch (default from config)
            volume: Volume 0..1 (default from config)
            loop: Event loop for timers (defaults to the running loop)
            on_error: Receives fatal engine errors
        """
        self.engine = engine
        self._loop = loop
        self.rate = rate if rate is not None else config.speech_rate
        self.pitch = pitch if pitch is not None else config.speech_pitch
        self.volume = volume if volume is not None else config.speech_volume
        self.on_error = on_error

        self._owns_synchronizer = synchronizer is None
        self.synchronizer = synchronizer or Synchronizer(
            SynchronizationConfig(
                highlight_delay_ms=config.highlight_delay_ms,
                transition_delay_ms=config.transition_delay_ms,
            ),
            loop=loop,
        )

        self._sentences: List[Sentence] = list(sentences)
        self._cursor = -1
        self._task: Optional[_UtteranceTask] = None
        self._gate: Optional[_VoiceGate] = None
        self._next_timer: Optional[asyncio.TimerHandle] = None
        self._held = False
        self.last_error: Optional[SpeechEngineError] = None

        self._state = self.synchronizer.get_state()
        self._unsubscribe = self.synchronizer.subscribe(self._on_state)

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    # ------------------------------------------------------------------
    # Observables
    # ------------------------------------------------------------------

    @property
    def sentences(self) -> List[Sentence]:
        return list(self._sentences)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def is_playing(self) -> bool:
        return self._state.is_playing

    @property
    def is_paused(self) -> bool:
        return self._state.is_paused

    @property
    def current_sentence_index(self) -> int:
        return self._state.current_sentence_index

    def subscribe(self, listener: Callable[[SynchronizationState], None]) -> Callable[[], None]:
        return self.synchronizer.subscribe(listener)

    def _on_state(self, state: SynchronizationState) -> None:
        self._state = state

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    def load(self, sentences: Sequence[Sentence]) -> None:
        """Replace the sentence list, stopping any playback."""
        if self.is_playing or self._task is not None or self._gate is not None:
            self.stop()
        self._sentences = list(sentences)
        self._cursor = -1

    def speak(self, start_index: int = 0) -> None:
        """Start reading at ``start_index`` (0 if out of range)."""
        if not self._sentences:
            logger.debug("No sentences to speak")
            return

        if not self.engine.get_voices():
            self._wait_for_voices(start_index)
            return

        if self._halt_utterance():
            self.engine.cancel()

        start = start_index if 0 <= start_index < len(self._sentences) else 0
        self._cursor = self._next_speakable(start)

        if self._cursor >= len(self._sentences):
            logger.debug("Nothing left to speak after skipping blank sentences")
            self.synchronizer.stop()
            return

        self.synchronizer.start_sentence(self._cursor)
        self._speak_current()

    def pause(self) -> None:
        if not (self.is_playing and not self.is_paused):
            return

        self.engine.pause()
        self.synchronizer.pause()

        # Paused in the gap between two sentences: hold the next one
        if self._next_timer is not None:
            self._next_timer.cancel()
            self._next_timer = None
            self._held = True

    def resume(self) -> None:
        if self.is_playing and self.is_paused:
            self.engine.resume()
            self.synchronizer.resume()
            if self._held:
                self._held = False
                self._speak_current()
        elif not self.is_playing:
            in_range = 0 <= self._cursor < len(self._sentences)
            self.speak(self._cursor if in_range else 0)

    def stop(self) -> None:
        if self._gate is not None:
            self._gate.cancel()
            self._gate = None

        self._halt_utterance()
        self.engine.cancel()
        self.synchronizer.stop()
        self._cursor = -1

    def skip(self) -> None:
        """Abandon the current sentence and continue with the next one."""
        if not self.is_playing or self._cursor < 0:
            return

        next_index = self._cursor + 1
        if next_index >= len(self._sentences):
            logger.debug("Skipped past the last sentence")
            self.stop()
            return

        self.speak(next_index)

    def close(self) -> None:
        """Release timers and the synchronizer subscription."""
        if self._gate is not None:
            self._gate.cancel()
            self._gate = None
        if self._halt_utterance():
            self.engine.cancel()
        self._unsubscribe()
        if self._owns_synchronizer:
            self.synchronizer.destroy()

    # ------------------------------------------------------------------
    # Sentence loop
    # ------------------------------------------------------------------

    def _next_speakable(self, index: int) -> int:
        while index < len(self._sentences) and not self._sentences[index].text.strip():
            logger.debug(f"Skipping blank sentence {index}")
            index += 1
        return index

    def _speak_current(self) -> None:
        self._next_timer = None
        self._cursor = self._next_speakable(self._cursor)

        if self._cursor >= len(self._sentences):
            self._finish()
            return

        index = self._cursor
        sentence = self._sentences[index]
        utterance = Utterance(
            text=sentence.text,
            rate=self.rate,
            pitch=self.pitch,
            volume=self.volume,
            lang=detect_language(sentence.text),
        )

        task = _UtteranceTask(index, utterance)
        utterance.on_start = lambda: self._on_utterance_start(task)
        utterance.on_end = lambda: self._on_utterance_end(task)
        utterance.on_error = lambda code: self._on_utterance_error(task, code)

        self._task = task
        task.fallback = self.loop.call_later(
            self.START_FALLBACK_MS / 1000.0,
            lambda: self._on_utterance_start(task, from_fallback=True),
        )

        logger.debug(f"Speaking sentence {index} ({utterance.lang}): {sentence.text[:60]}")
        self.engine.speak(utterance)

    def _on_utterance_start(self, task: _UtteranceTask, from_fallback: bool = False) -> None:
        if task is not self._task:
            return
        if from_fallback:
            # The timer handle has fired; nothing left to cancel
            task.fallback = None
        if not task.mark_started():
            return
        if from_fallback:
            logger.debug(f"No start event for sentence {task.index}; highlighting anyway")
        if self.is_paused:
            # Paused before the start signal: keep the pause, re-assert the index
            self.synchronizer.update_state(current_sentence_index=task.index)
            return
        self.synchronizer.start_sentence(task.index)

    def _on_utterance_end(self, task: _UtteranceTask) -> None:
        if task is not self._task:
            return

        task.cancel()
        self._task = None
        self._cursor = self._next_speakable(task.index + 1)

        if self._cursor >= len(self._sentences):
            self._finish()
            return

        self.synchronizer.move_to_next_sentence(self._cursor)
        if self.is_paused:
            self._held = True
        else:
            self._next_timer = self.loop.call_later(
                self.NEXT_SENTENCE_DELAY_MS / 1000.0, self._speak_current
            )

    def _on_utterance_error(self, task: _UtteranceTask, code: str) -> None:
        if task is not self._task or task.cancelled:
            logger.debug(f"Ignoring '{code}' from a superseded utterance")
            return

        task.cancel()
        self._task = None

        if code in self.BENIGN_ERRORS:
            # Cut short by someone else sharing the engine
            logger.warning(f"Speech {code} at sentence {task.index}; stopping")
            self.synchronizer.stop()
            return

        error = SpeechEngineError(code, task.index)
        self.last_error = error
        logger.error(str(error))
        self.synchronizer.stop()

        if self.on_error is None:
            raise error
        self.on_error(error)

    def _finish(self) -> None:
        self._task = None
        logger.debug("End of document reached")
        self.synchronizer.stop()

    def _halt_utterance(self) -> bool:
        """Supersede the active utterance; True if one was active."""
        if self._next_timer is not None:
            self._next_timer.cancel()
            self._next_timer = None
        self._held = False

        task, self._task = self._task, None
        if task is None:
            return False
        task.cancel()
        return True

    # ------------------------------------------------------------------
    # Voice readiness
    # ------------------------------------------------------------------

    def _wait_for_voices(self, start_index: int) -> None:
        if self._gate is not None:
            self._gate.cancel()

        logger.debug("No voices available yet, waiting for the voice list")
        gate = _VoiceGate(lambda source: self._retry_after_voices(gate, start_index, source))
        gate.timer = self.loop.call_later(
            self.VOICE_FALLBACK_MS / 1000.0, lambda: gate.fire("timeout")
        )
        self._gate = gate
        self.engine.on_voices_changed(lambda: gate.fire("voices-changed"))

    def _retry_after_voices(self, gate: _VoiceGate, start_index: int, source: str) -> None:
        if self._gate is gate:
            self._gate = None

        if not self.engine.get_voices():
            logger.warning(f"No speech voices available after {source}; not speaking")
            return

        logger.debug(f"Voices ready ({source}), starting playback")
        self.speak(start_index)
