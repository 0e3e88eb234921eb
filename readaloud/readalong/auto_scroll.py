"""
Auto-Scroll Planner

Keeps the spoken sentence on screen. Decides whether the viewport has to
move (with a hysteresis band around the center so near-centered text does
not cause jitter), coordinates page changes, and animates the scroll.
"""

import asyncio
from dataclasses import dataclass, replace
from typing import Callable, Optional, Protocol, Sequence, Set, Union

from readaloud.readalong.fragments import Sentence
from readaloud.readalong.synchronizer import SynchronizationState, Synchronizer
from readaloud.utils import logger
from readaloud.utils.config import config

EASINGS = ("linear", "ease-in-out", "ease-out")

FRAME_INTERVAL = 1 / 60


@dataclass(frozen=True)
class TextPosition:
    """Vertical placement of a sentence on its page, in percent."""

    page: int
    y_percent: float
    height_percent: float


@dataclass(frozen=True)
class ScrollTarget:
    """A single scroll decision."""

    page: int
    scroll_y: float
    reason: str = "sentence_start"


@dataclass(frozen=True)
class SmoothScrollConfig:
    """Smooth scroll settings."""

    duration_ms: float = 500
    easing: str = "ease-out"
    threshold: float = 50  # minimum distance in pixels to bother scrolling

    def __post_init__(self):
        if self.easing not in EASINGS:
            raise ValueError(f"Unknown easing '{self.easing}', expected one of {EASINGS}")


DEFAULT_SCROLL_CONFIG = SmoothScrollConfig()


def scroll_config_from_settings() -> SmoothScrollConfig:
    """Build a SmoothScrollConfig from the ``scroll`` settings section."""
    return SmoothScrollConfig(
        duration_ms=float(config.get("scroll", "duration_ms", default=500)),
        easing=config.get("scroll", "easing", default="ease-out"),
        threshold=float(config.get("scroll", "threshold_px", default=50)),
    )


class ScrollContainer(Protocol):
    """Anything with a vertical scroll offset."""

    scroll_top: float


class Viewport(Protocol):
    """The page view the planner drives."""

    current_page: int
    scroll_top: float
    viewport_height: float
    page_height: float

    def request_page(self, page: int) -> None: ...


def position_of(sentence: Sentence) -> Optional[TextPosition]:
    """Position of a sentence, taken from its first fragment."""
    if not sentence.fragments:
        return None

    first = sentence.fragments[0]
    return TextPosition(page=first.page, y_percent=first.top, height_percent=first.height)


def is_text_visible(
    position: TextPosition,
    current_scroll_y: float,
    viewport_height: float,
    page_height: float,
) -> bool:
    """True if any part of the text lies inside the viewport."""
    text_top = position.y_percent / 100 * page_height
    text_bottom = text_top + position.height_percent / 100 * page_height
    return text_top < current_scroll_y + viewport_height and text_bottom > current_scroll_y


def plan_scroll(
    position: TextPosition,
    current_scroll_y: float,
    viewport_height: float,
    page_height: float,
    threshold_fraction: float = 0.2,
) -> Optional[ScrollTarget]:
    """
    Decide whether to scroll so the text sits at the viewport center.

    Args:
        position: Where the text is on its page
        current_scroll_y: Current scroll offset in pixels
        viewport_height: Visible height in pixels
        page_height: Rendered page height in pixels
        threshold_fraction: Half-width of the no-scroll band, as a
            fraction of the viewport height

    Returns:
        A ScrollTarget, or None when the text is already close to center
    """
    text_top = position.y_percent / 100 * page_height
    text_height = position.height_percent / 100 * page_height
    text_center = text_top + text_height / 2
    viewport_center = current_scroll_y + viewport_height / 2

    if abs(text_center - viewport_center) < viewport_height * threshold_fraction:
        return None

    return ScrollTarget(
        page=position.page,
        scroll_y=max(0.0, text_center - viewport_height / 2),
        reason="sentence_start",
    )


def ease(progress: float, easing: str) -> float:
    """Map linear progress in [0, 1] through an easing curve."""
    if easing == "ease-in-out":
        if progress < 0.5:
            return 2 * progress * progress
        return 1 - (-2 * progress + 2) ** 2 / 2
    if easing == "ease-out":
        return 1 - (1 - progress) ** 3
    return progress


# Containers with an animation in flight
_animating: Set[int] = set()


async def animate_scroll_to(
    target_y: float,
    container: ScrollContainer,
    scroll_config: SmoothScrollConfig = DEFAULT_SCROLL_CONFIG,
    frame_interval: float = FRAME_INTERVAL,
) -> bool:
    """
    Smoothly scroll ``container`` to ``target_y``.

    Returns once the final frame has been applied. Only one animation runs
    per container; a request made while one is in flight is dropped.

    Returns:
        True if the container moved, False if the request was skipped
    """
    key = id(container)
    if key in _animating:
        logger.debug("Already scrolling, dropping request")
        return False

    start_y = container.scroll_top
    distance = target_y - start_y

    if abs(distance) < scroll_config.threshold:
        return False

    _animating.add(key)
    loop = asyncio.get_running_loop()
    started = loop.time()
    duration = scroll_config.duration_ms / 1000.0

    try:
        while True:
            elapsed = loop.time() - started
            progress = min(elapsed / duration, 1.0) if duration > 0 else 1.0
            container.scroll_top = start_y + distance * ease(progress, scroll_config.easing)
            if progress >= 1.0:
                break
            await asyncio.sleep(frame_interval)
    finally:
        _animating.discard(key)

    return True


def is_animating(container: ScrollContainer) -> bool:
    return id(container) in _animating


class AutoScrollPlanner:
    """
    Follows the synchronizer and keeps the active sentence in view.

    Only newly highlighted sentences are tracked. A sentence on another
    page triggers a page change first, then the scroll is recomputed once
    the new page has had time to render.
    """

    PAGE_SETTLE_MS = 300

    def __init__(
        self,
        viewport: Viewport,
        scroll_config: Optional[SmoothScrollConfig] = None,
        threshold_fraction: Optional[float] = None,
        settle_ms: Optional[float] = None,
    ):
        """
        Initialize the planner.

        Args:
            viewport: The page view to move
            scroll_config: Animation settings (default from config)
            threshold_fraction: Hysteresis band (default from config)
            settle_ms: Wait after a page change (default PAGE_SETTLE_MS)
        """
        self.viewport = viewport
        self.scroll_config = scroll_config or scroll_config_from_settings()
        self.threshold_fraction = (
            threshold_fraction if threshold_fraction is not None else config.scroll_hysteresis
        )
        self.settle_ms = (
            settle_ms
            if settle_ms is not None
            else float(config.get("scroll", "settle_ms", default=self.PAGE_SETTLE_MS))
        )
        self.enabled = True
        self._last_index = -1
        self._pending: Optional[asyncio.Task] = None

    def attach(
        self,
        synchronizer: Synchronizer,
        sentences: Union[Sequence[Sentence], Callable[[], Sequence[Sentence]]],
    ) -> Callable[[], None]:
        """
        Track the synchronizer's highlighted sentence.

        Args:
            synchronizer: Synchronizer to follow
            sentences: Sequence (or callable returning one) indexed by the
                synchronizer

        Returns:
            Function that detaches the planner
        """
        def on_state(state: SynchronizationState) -> None:
            current = sentences() if callable(sentences) else sentences
            index = state.current_sentence_index
            if not state.is_playing or not 0 <= index < len(current):
                return
            self.schedule(index, current[index])

        return synchronizer.subscribe(on_state)

    def schedule(self, index: int, sentence: Sentence) -> Optional[asyncio.Task]:
        """Start tracking ``sentence`` in the background if it is new."""
        if not self.enabled or index == self._last_index:
            return None

        self._last_index = index
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.ensure_future(self.track(sentence))
        return self._pending

    def reset(self) -> None:
        self._last_index = -1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def track(self, sentence: Sentence) -> Optional[ScrollTarget]:
        """
        Bring ``sentence`` into view.

        Returns:
            The scroll target that was executed, or None if no scroll happened
        """
        position = position_of(sentence)
        if position is None:
            logger.debug(f"No position for sentence: {sentence.text[:50]}")
            return None

        page_changed = position.page != self.viewport.current_page
        if page_changed:
            logger.debug(f"Switching page {self.viewport.current_page} -> {position.page}")
            self.viewport.request_page(position.page)
            await asyncio.sleep(self.settle_ms / 1000.0)

        target = plan_scroll(
            position,
            self.viewport.scroll_top,
            self.viewport.viewport_height,
            self.viewport.page_height,
            self.threshold_fraction,
        )
        if target is None:
            return None
        if page_changed:
            target = replace(target, reason="page_change")

        moved = await animate_scroll_to(target.scroll_y, self.viewport, self.scroll_config)
        return target if moved else None
