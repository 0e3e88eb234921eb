"""
Speech Engines

The speech driver talks to an engine through a small interface modelled
on browser speech synthesis: speak/cancel/pause/resume, a voice list that
may start empty, and per-utterance start/end/error callbacks.

Engines:
- SimulatedEngine: timer-driven, no audio; durations come from the word
  timing estimate. Used for dry runs and previews.
- Pyttsx3Engine: system voices through pyttsx3 (optional dependency).
"""

import asyncio
import itertools
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from readaloud.readalong.language import ENGLISH, estimate_duration
from readaloud.utils import logger


@dataclass
class Utterance:
    """One piece of text to speak, with the callbacks the engine fires."""

    text: str
    rate: float = 1.0
    pitch: float = 1.0
    volume: float = 1.0
    lang: str = ENGLISH
    on_start: Optional[Callable[[], None]] = None
    on_end: Optional[Callable[[], None]] = None
    on_error: Optional[Callable[[str], None]] = None

    def fire_start(self) -> None:
        if self.on_start:
            self.on_start()

    def fire_end(self) -> None:
        if self.on_end:
            self.on_end()

    def fire_error(self, code: str) -> None:
        if self.on_error:
            self.on_error(code)


class SpeechEngine(Protocol):
    """Capability the speech driver needs from a text-to-speech backend."""

    def speak(self, utterance: Utterance) -> None: ...

    def cancel(self) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def get_voices(self) -> Sequence[Any]: ...

    def on_voices_changed(self, callback: Callable[[], None]) -> None:
        """Register a one-shot callback for when the voice list changes."""
        ...


class SimulatedEngine:
    """
    Speech engine that only keeps time.

    Start fires on the next loop iteration, end fires after the estimated
    speaking time. A new utterance preempts the current one, which then
    reports "interrupted"; cancel() reports "canceled".
    """

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        voices: Sequence[str] = ("simulated",),
        voices_delay_ms: Optional[int] = None,
    ):
        """
        Initialize the simulated engine.

        Args:
            loop: Event loop for timers (defaults to the running loop)
            voices: Voice names to report
            voices_delay_ms: If set, voices appear only after this delay,
                like browsers that load their voice list asynchronously
        """
        self._loop = loop
        self._voices: List[str] = [] if voices_delay_ms is not None else list(voices)
        self._pending_voices = list(voices)
        self._voice_callbacks: List[Callable[[], None]] = []
        self._current: Optional[Utterance] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._remaining_ms = 0.0
        self._started_at = 0.0
        self._paused = False
        self.spoken: List[Utterance] = []

        if voices_delay_ms is not None:
            self.loop.call_later(voices_delay_ms / 1000.0, self._load_voices)

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def speaking(self) -> bool:
        return self._current is not None

    @property
    def paused(self) -> bool:
        return self._paused

    def get_voices(self) -> List[str]:
        return list(self._voices)

    def on_voices_changed(self, callback: Callable[[], None]) -> None:
        self._voice_callbacks.append(callback)

    def speak(self, utterance: Utterance) -> None:
        if self._current is not None:
            self._abort("interrupted")

        self._current = utterance
        self._paused = False
        self._remaining_ms = estimate_duration(utterance.text, utterance.rate)
        self.spoken.append(utterance)
        self.loop.call_soon(self._begin, utterance)

    def cancel(self) -> None:
        if self._current is not None:
            self._abort("canceled")
        self._paused = False

    def pause(self) -> None:
        if self._current is None or self._paused:
            return
        self._paused = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            elapsed = (self.loop.time() - self._started_at) * 1000.0
            self._remaining_ms = max(0.0, self._remaining_ms - elapsed)

    def resume(self) -> None:
        if self._current is None or not self._paused:
            return
        self._paused = False
        self._schedule_end(self._current)

    def _begin(self, utterance: Utterance) -> None:
        if utterance is not self._current:
            return
        utterance.fire_start()
        if not self._paused:
            self._schedule_end(utterance)

    def _schedule_end(self, utterance: Utterance) -> None:
        self._started_at = self.loop.time()
        self._timer = self.loop.call_later(
            self._remaining_ms / 1000.0, self._finish, utterance
        )

    def _finish(self, utterance: Utterance) -> None:
        if utterance is not self._current:
            return
        self._timer = None
        self._current = None
        utterance.fire_end()

    def _abort(self, code: str) -> None:
        utterance = self._current
        self._current = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        # Engines report cancellation asynchronously
        self.loop.call_soon(utterance.fire_error, code)

    def _load_voices(self) -> None:
        self._voices = list(self._pending_voices)
        callbacks, self._voice_callbacks = self._voice_callbacks, []
        for callback in callbacks:
            callback()


class Pyttsx3Engine:
    """
    System text-to-speech through pyttsx3.

    pyttsx3 runs its own driver loop; it is started in non-blocking mode
    and pumped from the asyncio loop. pyttsx3 has no pause, so pause and
    resume only log a warning.
    """

    POLL_INTERVAL = 0.05
    BASE_RATE = 200  # words per minute at rate 1.0

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        voice: Optional[str] = None,
    ):
        """
        Initialize the pyttsx3 engine.

        Args:
            loop: Event loop used to pump pyttsx3
            voice: Voice name or id fragment to prefer over language matching
        """
        self._loop = loop
        self.voice = voice
        self._engine = None
        self._pump: Optional[asyncio.TimerHandle] = None
        self._names = itertools.count()
        self._utterances: Dict[str, Utterance] = {}
        self._warned_pause = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _get_engine(self):
        """Lazy load pyttsx3 engine."""
        if self._engine is None:
            try:
                import pyttsx3
            except ImportError as e:
                logger.error("pyttsx3 not installed")
                raise RuntimeError(
                    "pyttsx3 not found. Install with: pip install pyttsx3"
                ) from e

            logger.info("Loading pyttsx3 TTS engine...")
            engine = pyttsx3.init()
            engine.connect("started-utterance", self._on_started)
            engine.connect("finished-utterance", self._on_finished)
            engine.connect("error", self._on_error)
            engine.startLoop(False)
            self._engine = engine
            self._pump = self.loop.call_later(self.POLL_INTERVAL, self._iterate)
            logger.success("pyttsx3 TTS loaded")

        return self._engine

    def _iterate(self) -> None:
        if self._engine is None:
            return
        self._engine.iterate()
        self._pump = self.loop.call_later(self.POLL_INTERVAL, self._iterate)

    def get_voices(self) -> List[Any]:
        return list(self._get_engine().getProperty("voices") or [])

    def on_voices_changed(self, callback: Callable[[], None]) -> None:
        # The system voice list is static; the driver's fallback timer retries
        logger.debug("pyttsx3 never reports voice changes")

    def speak(self, utterance: Utterance) -> None:
        engine = self._get_engine()
        engine.setProperty("rate", int(self.BASE_RATE * utterance.rate))
        engine.setProperty("volume", max(0.0, min(1.0, utterance.volume)))

        voice_id = self._pick_voice(utterance.lang)
        if voice_id:
            engine.setProperty("voice", voice_id)

        name = f"utt{next(self._names)}"
        self._utterances[name] = utterance
        engine.say(utterance.text, name)

    def cancel(self) -> None:
        if self._engine is not None:
            self._engine.stop()

    def pause(self) -> None:
        self._warn_no_pause()

    def resume(self) -> None:
        self._warn_no_pause()

    def close(self) -> None:
        if self._pump is not None:
            self._pump.cancel()
            self._pump = None
        if self._engine is not None:
            self._engine.endLoop()
            self._engine = None

    def _pick_voice(self, lang: str) -> Optional[str]:
        wanted = (self.voice or "").lower()
        prefix = lang.split("-")[0].lower()
        for v in self._get_engine().getProperty("voices") or []:
            if wanted:
                if wanted in v.id.lower() or wanted in (v.name or "").lower():
                    return v.id
                continue
            languages = [str(code).lower() for code in (getattr(v, "languages", None) or [])]
            if any(prefix in code for code in languages):
                return v.id
        return None

    def _warn_no_pause(self) -> None:
        if not self._warned_pause:
            logger.warning("pyttsx3 cannot pause; playback continues")
            self._warned_pause = True

    def _on_started(self, name: str) -> None:
        utterance = self._utterances.get(name)
        if utterance:
            utterance.fire_start()

    def _on_finished(self, name: str, completed: bool) -> None:
        utterance = self._utterances.pop(name, None)
        if utterance is None:
            return
        if completed:
            utterance.fire_end()
        else:
            utterance.fire_error("canceled")

    def _on_error(self, name: str, exception: Exception) -> None:
        utterance = self._utterances.pop(name, None)
        if utterance:
            utterance.fire_error(str(exception) or "synthesis-failed")
