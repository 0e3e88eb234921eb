import asyncio

import pytest

from readaloud.readalong.auto_scroll import (
    EASINGS,
    AutoScrollPlanner,
    SmoothScrollConfig,
    TextPosition,
    animate_scroll_to,
    ease,
    is_animating,
    is_text_visible,
    plan_scroll,
    position_of,
)
from readaloud.readalong.fragments import Sentence, TextFragment
from readaloud.readalong.synchronizer import SynchronizationConfig, Synchronizer

FAST = SmoothScrollConfig(duration_ms=20, easing="ease-out", threshold=50)


class Container:
    def __init__(self, scroll_top=0.0):
        self.scroll_top = scroll_top


class PageView:
    def __init__(self, current_page=1):
        self.current_page = current_page
        self.scroll_top = 0.0
        self.viewport_height = 500.0
        self.page_height = 1000.0
        self.requested = []

    def request_page(self, page):
        self.requested.append(page)
        self.current_page = page
        self.scroll_top = 0.0


def sentence_at(page, top, height=2.0):
    fragment = TextFragment("Somewhere.", page=page, left=10.0, top=top, width=30.0, height=height)
    return Sentence(text="Somewhere.", fragments=(fragment,))


def test_position_comes_from_first_fragment():
    position = position_of(sentence_at(3, 42.0, 1.5))

    assert position == TextPosition(page=3, y_percent=42.0, height_percent=1.5)


def test_no_scroll_near_center():
    position = TextPosition(page=1, y_percent=50.0, height_percent=2.0)

    # Text center 510, viewport center 510
    assert plan_scroll(position, 260, 500, 1000) is None
    # 90 px off, inside the 100 px band
    assert plan_scroll(position, 350, 500, 1000) is None


def test_scroll_centers_text():
    position = TextPosition(page=1, y_percent=50.0, height_percent=2.0)

    target = plan_scroll(position, 0, 500, 1000)

    assert target is not None
    assert target.page == 1
    assert target.scroll_y == pytest.approx(260.0)
    assert target.reason == "sentence_start"


def test_scroll_target_is_clamped():
    position = TextPosition(page=1, y_percent=1.0, height_percent=2.0)

    target = plan_scroll(position, 500, 500, 1000)

    assert target.scroll_y == 0.0


def test_hysteresis_band_is_configurable():
    position = TextPosition(page=1, y_percent=50.0, height_percent=2.0)

    assert plan_scroll(position, 350, 500, 1000, threshold_fraction=0.1) is not None


def test_is_text_visible():
    position = TextPosition(page=1, y_percent=50.0, height_percent=2.0)

    assert is_text_visible(position, 300, 500, 1000)
    assert not is_text_visible(position, 0, 400, 1000)


@pytest.mark.parametrize("easing", EASINGS)
def test_easing_endpoints(easing):
    assert ease(0.0, easing) == pytest.approx(0.0)
    assert ease(1.0, easing) == pytest.approx(1.0)


def test_unknown_easing_rejected():
    with pytest.raises(ValueError):
        SmoothScrollConfig(easing="bounce")


def test_animation_reaches_target():
    container = Container(0.0)

    moved = asyncio.run(animate_scroll_to(300.0, container, FAST, frame_interval=0.001))

    assert moved
    assert container.scroll_top == pytest.approx(300.0)
    assert not is_animating(container)


def test_small_distance_is_skipped():
    container = Container(100.0)

    moved = asyncio.run(animate_scroll_to(120.0, container, FAST))

    assert not moved
    assert container.scroll_top == 100.0


def test_request_during_animation_is_dropped():
    container = Container(0.0)
    slow = SmoothScrollConfig(duration_ms=50, easing="linear")

    async def run():
        first = asyncio.ensure_future(
            animate_scroll_to(300.0, container, slow, frame_interval=0.001)
        )
        await asyncio.sleep(0)
        assert is_animating(container)
        second = await animate_scroll_to(900.0, container, slow, frame_interval=0.001)
        return await first, second

    first, second = asyncio.run(run())

    assert first is True
    assert second is False
    assert container.scroll_top == pytest.approx(300.0)


def test_planner_changes_page_before_scrolling():
    view = PageView(current_page=1)
    planner = AutoScrollPlanner(view, FAST, threshold_fraction=0.2, settle_ms=0)

    target = asyncio.run(planner.track(sentence_at(2, 80.0)))

    assert view.requested == [2]
    assert target is not None
    assert target.reason == "page_change"
    assert target.scroll_y == pytest.approx(560.0)
    assert view.scroll_top == pytest.approx(560.0)


def test_planner_leaves_centered_text_alone():
    view = PageView(current_page=1)
    view.scroll_top = 260.0
    planner = AutoScrollPlanner(view, FAST, threshold_fraction=0.2, settle_ms=0)

    assert asyncio.run(planner.track(sentence_at(1, 50.0))) is None
    assert view.requested == []
    assert view.scroll_top == 260.0


def test_planner_follows_synchronizer():
    view = PageView(current_page=1)
    planner = AutoScrollPlanner(view, FAST, threshold_fraction=0.2, settle_ms=0)
    sentences = [sentence_at(1, 10.0), sentence_at(1, 90.0)]

    async def run():
        sync = Synchronizer(SynchronizationConfig(highlight_delay_ms=1, transition_delay_ms=1))
        planner.attach(sync, sentences)
        sync.start_sentence(1)
        await asyncio.sleep(0.2)
        # Same index again: already tracked
        assert planner.schedule(1, sentences[1]) is None
        sync.stop()

    asyncio.run(run())

    # Center of the second sentence (910) minus half the viewport
    assert view.scroll_top == pytest.approx(660.0)


def test_new_sentence_cancels_pending_track():
    view = PageView(current_page=1)
    planner = AutoScrollPlanner(view, FAST, threshold_fraction=0.2, settle_ms=100)

    async def run():
        first = planner.schedule(0, sentence_at(2, 90.0))
        # Let the first task switch pages and start waiting for the page to settle
        await asyncio.sleep(0)
        second = planner.schedule(1, sentence_at(2, 25.0))
        result = await second
        await asyncio.sleep(0.15)
        return first, result

    first, result = asyncio.run(run())

    assert first.cancelled()
    assert result is None
    assert view.requested == [2]
    assert view.scroll_top == 0.0


def test_disabled_planner_ignores_sentences():
    view = PageView(current_page=1)
    planner = AutoScrollPlanner(view, FAST, settle_ms=0)
    planner.enabled = False

    async def run():
        return planner.schedule(0, sentence_at(1, 90.0))

    assert asyncio.run(run()) is None
    assert view.scroll_top == 0.0
