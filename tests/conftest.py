"""Shared fixtures: a manual-clock event loop and a scriptable speech engine."""

import itertools
from typing import Callable, List, Optional

import pytest

from readaloud.readalong.engines import Utterance
from readaloud.readalong.fragments import Sentence, TextFragment
from readaloud.readalong.synchronizer import SynchronizationConfig, Synchronizer


class FakeHandle:
    def __init__(self, when: float, seq: int, callback: Callable, args: tuple):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class FakeLoop:
    """Timer source with a clock that only moves when the test says so."""

    def __init__(self):
        self._now = 0.0
        self._seq = itertools.count()
        self._handles: List[FakeHandle] = []

    def time(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable, *args) -> FakeHandle:
        handle = FakeHandle(self._now + max(0.0, delay), next(self._seq), callback, args)
        self._handles.append(handle)
        return handle

    def call_soon(self, callback: Callable, *args) -> FakeHandle:
        return self.call_later(0, callback, *args)

    def advance(self, ms: float = 0) -> None:
        """Move the clock forward, running due callbacks in order."""
        target = self._now + ms / 1000.0
        while True:
            due = [
                h for h in self._handles
                if not h.cancelled() and h.when <= target + 1e-9
            ]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self._handles.remove(handle)
            self._now = max(self._now, handle.when)
            handle.callback(*handle.args)
        self._now = target
        self._handles = [h for h in self._handles if not h.cancelled()]

    @property
    def pending(self) -> int:
        return sum(1 for h in self._handles if not h.cancelled())


class FakeEngine:
    """Speech engine whose events are fired by the test."""

    def __init__(self, voices=("test-voice",)):
        self.voices = list(voices)
        self.spoken: List[Utterance] = []
        self.current: Optional[Utterance] = None
        self.voice_callbacks: List[Callable[[], None]] = []
        self.cancel_calls = 0
        self.paused = False

    def get_voices(self):
        return list(self.voices)

    def on_voices_changed(self, callback: Callable[[], None]) -> None:
        self.voice_callbacks.append(callback)

    def speak(self, utterance: Utterance) -> None:
        self.spoken.append(utterance)
        self.current = utterance

    def cancel(self) -> None:
        self.cancel_calls += 1
        utterance, self.current = self.current, None
        if utterance is not None:
            utterance.fire_error("canceled")

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    # Test controls

    def start(self) -> None:
        self.current.fire_start()

    def finish(self) -> None:
        utterance, self.current = self.current, None
        utterance.fire_end()

    def fail(self, code: str) -> None:
        utterance, self.current = self.current, None
        utterance.fire_error(code)

    def load_voices(self, voices=("test-voice",)) -> None:
        self.voices = list(voices)
        callbacks, self.voice_callbacks = self.voice_callbacks, []
        for callback in callbacks:
            callback()


class RecordingSynchronizer(Synchronizer):
    """Synchronizer that remembers every start_sentence call."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.started: List[int] = []

    def start_sentence(self, index: int) -> None:
        self.started.append(index)
        super().start_sentence(index)


def make_fragments(*texts: str, page: int = 1) -> List[TextFragment]:
    """One fragment per text, stacked down the page."""
    return [
        TextFragment(text=text, page=page, left=10.0, top=5.0 + i * 3.0, width=50.0, height=2.0)
        for i, text in enumerate(texts)
    ]


def make_sentences(*texts: str, page: int = 1) -> List[Sentence]:
    """One single-fragment sentence per text."""
    return [Sentence(text=f.text, fragments=(f,)) for f in make_fragments(*texts, page=page)]


@pytest.fixture
def loop():
    return FakeLoop()


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def synchronizer(loop):
    return RecordingSynchronizer(
        SynchronizationConfig(highlight_delay_ms=50, transition_delay_ms=200),
        loop=loop,
    )
